"""
Opaque `nextToken` values for list endpoints.

A token is the query's LastEvaluatedKey sealed with AES-GCM, bound to the
index it came from so it cannot be replayed against a different listing.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any

import orjson

from ...infrastructure.security.token_crypto import seal, unseal
from .errors import DdbValidation

_TOKEN_VERSION = 2


def _default(v: Any) -> Any:
    if isinstance(v, Decimal):
        return int(v) if v == v.to_integral_value() else float(v)
    raise TypeError(f"not JSON serializable: {type(v).__name__}")


def _invalid() -> DdbValidation:
    return DdbValidation(message="Invalid nextToken")


def encode_next_token(last_evaluated_key: dict[str, Any] | None, *, scope: str | None = None) -> str | None:
    if not last_evaluated_key:
        return None
    payload = {"v": _TOKEN_VERSION, "s": scope or "", "lek": last_evaluated_key}
    return seal(orjson.dumps(payload, default=_default).decode("utf-8"))


def decode_next_token(next_token: str | None, *, scope: str | None = None) -> dict[str, Any] | None:
    if not next_token:
        return None

    raw = unseal(next_token)
    if not raw:
        raise _invalid()
    try:
        payload = orjson.loads(raw)
    except orjson.JSONDecodeError as e:
        raise _invalid() from e

    if not isinstance(payload, dict) or payload.get("v") != _TOKEN_VERSION:
        raise _invalid()
    if payload.get("s") != (scope or ""):
        raise _invalid()

    lek = payload.get("lek")
    if not isinstance(lek, dict) or not lek:
        raise _invalid()
    return lek
