from __future__ import annotations

from typing import Any, Literal, TypeVar

from pydantic import AliasChoices, BaseModel, Field, ValidationError

from ...errors import InvalidArgument

Priority = Literal["low", "medium", "high"]

M = TypeVar("M", bound=BaseModel)


class BoqAttachment(BaseModel):
    bucket: str
    key: str
    fileName: str | None = None
    mimeType: str | None = None


class LeadDetails(BaseModel):
    leadTitle: str = Field(default="", validation_alias=AliasChoices("leadTitle", "title"))
    leadDescription: str = Field(default="", validation_alias=AliasChoices("leadDescription", "description"))
    specialization: str | None = None
    estimatedBudget: str | None = None
    estimatedTimeline: str | None = None
    priority: Priority = "medium"
    tags: list[str] = Field(default_factory=list)
    boqAttachment: BoqAttachment | None = None


class SendLeadsRequest(BaseModel):
    projectId: str = ""
    vendorIds: list[str] = Field(default_factory=list)
    leadDetails: LeadDetails | None = None


class RespondRequest(BaseModel):
    accepted: bool | None = None
    message: str = ""
    proposedBudget: str | None = None
    proposedTimeline: str | None = None
    attachments: list[Any] = Field(default_factory=list)


class UpdateResponseRequest(BaseModel):
    message: str | None = None
    proposedBudget: str | None = None
    proposedTimeline: str | None = None
    attachments: list[Any] | None = None


class DecisionRequest(BaseModel):
    approved: bool | None = None
    feedback: str | None = None
    workspaceAccess: bool = False


class CreateProjectRequest(BaseModel):
    name: str = ""
    description: str | None = None
    location: str | None = None
    category: str | None = None


class VendorDirectoryQuery(BaseModel):
    search: str | None = None
    specialization: str | None = None
    location: str | None = None
    minRating: float | None = None


def validation_errors(e: ValidationError) -> list[dict[str, Any]]:
    return [
        {
            "loc": [str(x) for x in (it.get("loc") or [])],
            "msg": str(it.get("msg") or "Invalid value"),
            "type": str(it.get("type") or ""),
        }
        for it in e.errors(include_url=False)
    ]


def parse_model(model: type[M], obj: Any) -> M:
    """Validate a request payload, raising InvalidArgument with field errors."""
    if isinstance(obj, model):
        return obj
    try:
        return model.model_validate(obj or {})
    except ValidationError as e:
        raise InvalidArgument(message="Invalid request", details={"errors": validation_errors(e)}) from e
