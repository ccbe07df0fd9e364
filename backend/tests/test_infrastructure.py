from __future__ import annotations

import pytest

from leadhub.db.dynamodb.errors import DdbConflict, DdbValidation
from leadhub.db.dynamodb.pagination import decode_next_token, encode_next_token
from leadhub.infrastructure.security.token_crypto import seal, unseal
from leadhub.middleware.cors import build_allowed_origins
from leadhub.middleware.request_context import resolve_request_id


def test_seal_roundtrip_and_tamper():
    sealed = seal("hello")
    assert sealed.startswith("v1.")
    assert unseal(sealed) == "hello"
    head, nonce, ct = sealed.split(".")
    assert unseal(f"{head}.{nonce}.{ct[:-4]}AAAA") is None
    assert unseal("garbage") is None


def test_next_token_is_bound_to_its_index():
    lek = {"pk": "LEAD#1", "sk": "PROFILE", "gsi1pk": "PM_LEADS#pm-1"}
    token = encode_next_token(lek, scope="GSI1")
    assert decode_next_token(token, scope="GSI1") == lek
    with pytest.raises(DdbValidation):
        decode_next_token(token, scope="GSI2")
    with pytest.raises(DdbValidation):
        decode_next_token("not-a-token", scope="GSI1")
    assert encode_next_token(None) is None
    assert decode_next_token(None) is None


def test_allowed_origins():
    origins = build_allowed_origins(
        frontend_base_url="https://app.example.com/",
        frontend_urls="https://vendors.example.com/path, ftp://nope, ,",
        include_dev=False,
    )
    assert origins == ["https://app.example.com", "https://vendors.example.com"]
    assert "http://localhost:3000" in build_allowed_origins(frontend_base_url="", frontend_urls=None)


def test_resolve_request_id():
    assert resolve_request_id("abc-123") == "abc-123"
    generated = resolve_request_id("bad id with spaces")
    assert generated != "bad id with spaces"
    assert len(generated) == 36


def test_storage_error_http_mapping():
    err = DdbConflict(message="Conditional check failed", operation="UpdateItem", table_name="t")
    assert err.status_code == 409
    assert err.problem_extensions() == {"operation": "UpdateItem", "table": "t", "retryable": False}
