from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Generic, TypeVar

T = TypeVar("T")


class ErrorKind(str, Enum):
    INVALID_ARGUMENT = "InvalidArgument"
    NOT_FOUND = "NotFound"
    FORBIDDEN = "Forbidden"
    INVALID_STATE = "InvalidState"
    DEPENDENCY_UNAVAILABLE = "DependencyUnavailable"
    INTERNAL = "Internal"


@dataclass(slots=True)
class LeadHubError(Exception):
    """Base error for lead/workspace commands.

    Raised inside the core and converted into a failed `CommandResult` at the
    command boundary; the HTTP layer renders it as problem-details.
    """

    message: str
    details: dict[str, Any] | None = None
    cause: Exception | None = None

    kind = ErrorKind.INTERNAL

    def __str__(self) -> str:
        return self.message


@dataclass(slots=True)
class InvalidArgument(LeadHubError):
    kind = ErrorKind.INVALID_ARGUMENT


@dataclass(slots=True)
class NotFound(LeadHubError):
    kind = ErrorKind.NOT_FOUND


@dataclass(slots=True)
class Forbidden(LeadHubError):
    kind = ErrorKind.FORBIDDEN


@dataclass(slots=True)
class InvalidState(LeadHubError):
    kind = ErrorKind.INVALID_STATE


@dataclass(slots=True)
class DependencyUnavailable(LeadHubError):
    kind = ErrorKind.DEPENDENCY_UNAVAILABLE


@dataclass(slots=True)
class Internal(LeadHubError):
    kind = ErrorKind.INTERNAL


HTTP_STATUS_BY_KIND: dict[ErrorKind, int] = {
    ErrorKind.INVALID_ARGUMENT: 400,
    ErrorKind.FORBIDDEN: 403,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.INVALID_STATE: 409,
    ErrorKind.DEPENDENCY_UNAVAILABLE: 503,
    ErrorKind.INTERNAL: 500,
}


@dataclass(slots=True)
class CommandResult(Generic[T]):
    """Tagged outcome of a core command.

    `ok` is the only success signal; failures carry the error kind and a
    caller-safe message. Successful mutations carry the entity's new canonical
    state in `value`, plus any partial-success `warnings`.
    """

    ok: bool
    value: T | None = None
    error_kind: ErrorKind | None = None
    message: str | None = None
    details: dict[str, Any] | None = None
    warnings: list[str] = field(default_factory=list)

    @classmethod
    def success(cls, value: T, *, warnings: list[str] | None = None) -> "CommandResult[T]":
        return cls(ok=True, value=value, warnings=list(warnings or []))

    @classmethod
    def failure(cls, err: LeadHubError) -> "CommandResult[T]":
        return cls(ok=False, error_kind=err.kind, message=err.message, details=err.details)

    @property
    def http_status(self) -> int:
        if self.ok:
            return 200
        return HTTP_STATUS_BY_KIND.get(self.error_kind or ErrorKind.INTERNAL, 500)
