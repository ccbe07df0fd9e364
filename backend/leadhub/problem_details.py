from __future__ import annotations

from http import HTTPStatus
from typing import Any

from fastapi import Request
from fastapi.responses import ORJSONResponse

from .errors import CommandResult, ErrorKind
from .settings import get_settings

PROBLEM_JSON = "application/problem+json"


def _default_title(status_code: int) -> str:
    if status_code >= 500:
        return "Internal Server Error"
    try:
        return HTTPStatus(status_code).phrase
    except ValueError:
        return "Error"


def _request_id(request: Request) -> str | None:
    rid = getattr(getattr(request, "state", None), "request_id", None)
    if rid:
        return str(rid)
    hdr = request.headers.get("x-request-id")
    return str(hdr) if hdr else None


def problem_payload(
    *,
    request: Request,
    status_code: int,
    title: str | None = None,
    detail: str | None = None,
    type: str = "about:blank",
    errors: list[dict[str, Any]] | None = None,
    extensions: dict[str, Any] | None = None,
) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "type": type or "about:blank",
        "title": title or _default_title(int(status_code)),
        "status": int(status_code),
    }
    if detail:
        payload["detail"] = str(detail)

    inst = str(getattr(request.url, "path", "") or "")
    if inst:
        payload["instance"] = inst

    rid = _request_id(request)
    if rid:
        payload["requestId"] = rid
    if errors:
        payload["errors"] = errors
    if extensions:
        # Extension members live under one key to avoid clashing with RFC7807 names.
        payload["extensions"] = extensions
    return payload


def problem_response(
    *,
    request: Request,
    status_code: int,
    title: str | None = None,
    detail: str | None = None,
    type: str = "about:blank",
    errors: list[dict[str, Any]] | None = None,
    extensions: dict[str, Any] | None = None,
) -> ORJSONResponse:
    # Server errors never carry internal detail in production.
    safe_detail = detail
    if int(status_code) >= 500 and get_settings().is_production:
        safe_detail = None

    return ORJSONResponse(
        status_code=int(status_code),
        content=problem_payload(
            request=request,
            status_code=int(status_code),
            title=title,
            detail=safe_detail,
            type=type,
            errors=errors,
            extensions=extensions,
        ),
        media_type=PROBLEM_JSON,
    )


def result_response(
    request: Request,
    result: CommandResult[Any],
    *,
    key: str | None = None,
    success_status: int = 200,
) -> ORJSONResponse:
    """
    Render a command result.

    Success: `{"ok": true, ...value}` (or `{"ok": true, key: value}`), plus
    `warnings` for partial successes. Failure: problem+json whose title is the
    error kind.
    """
    if result.ok:
        body: dict[str, Any] = {"ok": True}
        if key:
            body[key] = result.value
        elif isinstance(result.value, dict):
            body.update(result.value)
        else:
            body["data"] = result.value
        if result.warnings:
            body["warnings"] = list(result.warnings)
        return ORJSONResponse(status_code=success_status, content=body)

    details = dict(result.details or {})
    errors = details.pop("errors", None)
    kind = result.error_kind or ErrorKind.INTERNAL
    return problem_response(
        request=request,
        status_code=result.http_status,
        title=kind.value,
        detail=result.message,
        errors=errors if isinstance(errors, list) else None,
        extensions={"errorKind": kind.value, **({"details": details} if details else {})},
    )
