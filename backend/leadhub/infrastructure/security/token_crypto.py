from __future__ import annotations

import base64
import hashlib
import os
from typing import Any

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from ...settings import settings

_VERSION = "v1"


def _get_key() -> bytes:
    raw = settings.pagination_token_key or settings.jwt_secret or "leadhub-dev-key"
    return hashlib.sha256(str(raw).encode("utf-8")).digest()  # 32 bytes


def seal(plain_text: Any) -> str | None:
    """AES-GCM seal a string into `v1.<nonce>.<ciphertext+tag>` (urlsafe b64)."""
    if plain_text is None:
        return None

    nonce = os.urandom(12)
    ct = AESGCM(_get_key()).encrypt(nonce, str(plain_text).encode("utf-8"), None)
    return ".".join(
        [
            _VERSION,
            base64.urlsafe_b64encode(nonce).decode("ascii"),
            base64.urlsafe_b64encode(ct).decode("ascii"),
        ]
    )


def unseal(sealed: Any) -> str | None:
    """Inverse of `seal`; returns None for anything tampered or malformed."""
    if not sealed:
        return None

    parts = str(sealed).split(".")
    if len(parts) != 3 or parts[0] != _VERSION:
        return None

    try:
        nonce = base64.urlsafe_b64decode(parts[1])
        ct = base64.urlsafe_b64decode(parts[2])
    except (ValueError, TypeError):
        return None
    if len(nonce) != 12:
        return None

    try:
        return AESGCM(_get_key()).decrypt(nonce, ct, None).decode("utf-8")
    except (InvalidTag, UnicodeDecodeError):
        return None
