from __future__ import annotations

import re
import uuid

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from ..observability.logging import bound_request_fields

REQUEST_ID_HEADER = "X-Request-Id"

# Inbound ids are echoed into logs and headers; anything else is replaced.
_SAFE_ID = re.compile(r"^[A-Za-z0-9._:-]{1,128}$")


def resolve_request_id(inbound: str | None) -> str:
    rid = str(inbound or "").strip()
    return rid if _SAFE_ID.match(rid) else str(uuid.uuid4())


class RequestContextMiddleware(BaseHTTPMiddleware):
    """
    Outermost middleware: assigns the request id.

    The id lands on `request.state.request_id` (problem responses read it), in
    the structlog context for the duration of the request, and on the response.
    """

    async def dispatch(self, request: Request, call_next):
        request_id = resolve_request_id(request.headers.get(REQUEST_ID_HEADER))
        request.state.request_id = request_id
        with bound_request_fields(request_id=request_id, http_path=request.url.path):
            response = await call_next(request)
        response.headers[REQUEST_ID_HEADER] = request_id
        return response
