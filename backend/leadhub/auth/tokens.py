from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any

from jose import JWTError, jwt

from ..modules.identity.roles import Actor, make_actor
from ..settings import settings


class TokenError(Exception):
    def __init__(self, message: str, *, status_code: int = 401):
        super().__init__(message)
        self.status_code = status_code


@dataclass
class VerifiedActor:
    sub: str
    role: str
    name: str | None
    email: str | None
    claims: dict[str, Any]

    def to_actor(self) -> Actor:
        return Actor(id=self.sub, role=self.role, name=self.name, email=self.email)


def _role_claim(claims: dict[str, Any]) -> Any:
    for k in ("role", "userType", "custom:role"):
        if claims.get(k):
            return claims[k]
    return None


def verify_bearer_token(token: str) -> VerifiedActor:
    """
    Verify an HS256 bearer token issued by the identity service.

    Required claims: `sub` (actor id) and a role (`pm` | `vendor`).
    """
    if not token:
        raise TokenError("missing token")
    if not settings.jwt_secret:
        raise TokenError("JWT_SECRET is not set", status_code=500)

    options = {"verify_aud": bool(settings.jwt_audience)}
    try:
        claims = jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[settings.jwt_algorithm],
            audience=settings.jwt_audience,
            options=options,
        )
    except JWTError as e:
        raise TokenError("invalid token") from e

    exp = claims.get("exp")
    if exp and int(exp) < int(time.time()):
        raise TokenError("token expired")

    email = claims.get("email")
    name = claims.get("name") or claims.get("preferred_username")
    actor = make_actor(claims.get("sub"), _role_claim(claims))
    if actor is None:
        raise TokenError("token is missing sub or role", status_code=403)

    return VerifiedActor(
        sub=actor.id,
        role=actor.role,
        name=str(name) if name else None,
        email=str(email) if email else None,
        claims=claims,
    )


def issue_token(*, sub: str, role: str, name: str | None = None, ttl_seconds: int = 3600) -> str:
    """Mint a token (local development, seed scripts and tests)."""
    if not settings.jwt_secret:
        raise TokenError("JWT_SECRET is not set", status_code=500)
    now = int(time.time())
    claims: dict[str, Any] = {"sub": sub, "role": role, "iat": now, "exp": now + int(ttl_seconds)}
    if name:
        claims["name"] = name
    if settings.jwt_audience:
        claims["aud"] = settings.jwt_audience
    return jwt.encode(claims, settings.jwt_secret, algorithm=settings.jwt_algorithm)
