from __future__ import annotations

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from ..auth.tokens import TokenError, verify_bearer_token
from ..observability.logging import bound_request_fields, get_logger
from ..problem_details import problem_response

# Sockets authenticate with a `token` query parameter inside the endpoint.
_PUBLIC_PREFIXES = ("/api/notifications/ws",)


def is_public_path(path: str) -> bool:
    if path == "/":
        return True
    return any(path.startswith(p) for p in _PUBLIC_PREFIXES)


def bearer_from_header(value: str | None) -> str | None:
    parts = str(value or "").split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        return None
    return parts[1].strip() or None


def authenticate(request: Request) -> None:
    """Attach `request.state.actor` for protected API routes; raise TokenError otherwise."""
    path = request.url.path
    if request.method.upper() == "OPTIONS":
        return
    if not path.startswith("/api/") or is_public_path(path):
        return

    token = bearer_from_header(request.headers.get("authorization"))
    if not token:
        raise TokenError("Unauthorized")
    verified = verify_bearer_token(token)
    request.state.user = verified
    request.state.actor = verified.to_actor()


class AuthMiddleware(BaseHTTPMiddleware):
    """
    Bearer-token enforcement for /api routes.

    Added before CORSMiddleware so CORS wraps auth failures too.
    """

    async def dispatch(self, request: Request, call_next):
        log = get_logger("auth_middleware")
        try:
            authenticate(request)
        except TokenError as exc:
            if exc.status_code >= 500:
                log.error("auth_middleware_misconfigured", path=request.url.path, reason=str(exc))
            else:
                log.info("auth_middleware_denied", status_code=exc.status_code, path=request.url.path)
            return problem_response(
                request=request,
                status_code=exc.status_code,
                title="Unauthorized" if exc.status_code == 401 else None,
                detail=str(exc),
            )
        actor = getattr(request.state, "actor", None)
        with bound_request_fields(actor_id=getattr(actor, "id", None), actor_role=getattr(actor, "role", None)):
            return await call_next(request)
