from __future__ import annotations

from dataclasses import dataclass
from typing import Any, ClassVar


@dataclass(slots=True)
class DdbError(Exception):
    """Base error for DynamoDB operations.

    Repositories let these propagate; lead commands translate them into the
    domain taxonomy (`DdbConflict` on a status-guarded write is a lost race,
    anything else on a canonical write is `Internal`). When one escapes to the
    HTTP edge, `status_code`/`title` pick the problem response.
    """

    message: str
    operation: str | None = None
    table_name: str | None = None
    key: dict[str, Any] | None = None
    aws_request_id: str | None = None
    retryable: bool = False
    cause: Exception | None = None

    status_code: ClassVar[int] = 500
    title: ClassVar[str] = "Storage Error"

    def __str__(self) -> str:
        return self.message

    def problem_extensions(self) -> dict[str, Any]:
        ext = {
            "operation": self.operation,
            "table": self.table_name,
            "awsRequestId": self.aws_request_id,
            "retryable": bool(self.retryable),
        }
        return {k: v for k, v in ext.items() if v is not None}


@dataclass(slots=True)
class DdbNotFound(DdbError):
    status_code: ClassVar[int] = 404
    title: ClassVar[str] = "Not Found"


@dataclass(slots=True)
class DdbConflict(DdbError):
    """A ConditionExpression (or a transaction member's condition) failed."""

    status_code: ClassVar[int] = 409
    title: ClassVar[str] = "Conflict"


@dataclass(slots=True)
class DdbValidation(DdbError):
    status_code: ClassVar[int] = 400
    title: ClassVar[str] = "Bad Request"


@dataclass(slots=True)
class DdbThrottled(DdbError):
    status_code: ClassVar[int] = 503
    title: ClassVar[str] = "Service Unavailable"


@dataclass(slots=True)
class DdbUnavailable(DdbError):
    status_code: ClassVar[int] = 503
    title: ClassVar[str] = "Service Unavailable"


@dataclass(slots=True)
class DdbInternal(DdbError):
    pass
