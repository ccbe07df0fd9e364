"""
Lead lifecycle state machine.

    sent -> vendor_accepted | vendor_declined
    vendor_accepted -> pm_approved | pm_rejected
    vendor_accepted -> vendor_accepted   (vendor amends its response)

`vendor_declined`, `pm_approved` and `pm_rejected` are terminal.

Everything here is pure: each transition validates the lead it was given and
returns a `Transition` describing the conditional write (guarded by the status
that was read) plus the side effects the caller must run after the write.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from ...errors import InvalidArgument, InvalidState


class LeadStatus(str, Enum):
    SENT = "sent"
    VENDOR_ACCEPTED = "vendor_accepted"
    VENDOR_DECLINED = "vendor_declined"
    PM_APPROVED = "pm_approved"
    PM_REJECTED = "pm_rejected"


ALL_STATUSES: tuple[str, ...] = tuple(s.value for s in LeadStatus)

TRANSITIONS: dict[str, frozenset[str]] = {
    LeadStatus.SENT.value: frozenset({LeadStatus.VENDOR_ACCEPTED.value, LeadStatus.VENDOR_DECLINED.value}),
    LeadStatus.VENDOR_ACCEPTED.value: frozenset(
        {
            LeadStatus.VENDOR_ACCEPTED.value,
            LeadStatus.PM_APPROVED.value,
            LeadStatus.PM_REJECTED.value,
        }
    ),
    LeadStatus.VENDOR_DECLINED.value: frozenset(),
    LeadStatus.PM_APPROVED.value: frozenset(),
    LeadStatus.PM_REJECTED.value: frozenset(),
}

TERMINAL_STATUSES = frozenset(s for s, nxt in TRANSITIONS.items() if not nxt)


def can_transition(current: str, target: str) -> bool:
    return target in TRANSITIONS.get(str(current or ""), frozenset())


# ---- side effects ----


@dataclass(frozen=True, slots=True)
class Notify:
    recipient_id: str
    event_type: str


@dataclass(frozen=True, slots=True)
class AppendProjectVendor:
    project_id: str
    list_name: str  # "invited" | "approved"
    entry: dict[str, Any]


@dataclass(frozen=True, slots=True)
class ProvisionWorkspace:
    project_id: str
    pm_id: str
    vendor_id: str
    lead_id: str


SideEffect = Notify | AppendProjectVendor | ProvisionWorkspace


@dataclass(frozen=True, slots=True)
class Transition:
    lead_id: str
    expected_status: str
    next_status: str
    updates: dict[str, Any]
    effects: tuple[SideEffect, ...] = field(default_factory=tuple)


def _status_of(lead: dict[str, Any]) -> str:
    return str(lead.get("status") or "")


def _require_status(lead: dict[str, Any], target: str, message: str) -> str:
    current = _status_of(lead)
    if not can_transition(current, target):
        raise InvalidState(
            message=message,
            details={"leadId": lead.get("leadId"), "status": current, "target": target},
        )
    return current


# ---- send ----


def invitation(lead: dict[str, Any]) -> AppendProjectVendor:
    """The project's `invitedVendors` entry for a lead, rebuilt from its snapshot."""
    snapshot = lead.get("vendorDetails") if isinstance(lead.get("vendorDetails"), dict) else {}
    entry = {
        "vendorId": str(lead.get("vendorId") or ""),
        "name": snapshot.get("name") or "Unknown",
        "email": snapshot.get("email") or "",
        "companyName": snapshot.get("companyName") or "",
        "specialization": snapshot.get("specialization") or "",
        "status": "pending",
        "invitedAt": lead.get("sentAt"),
        "leadId": lead.get("leadId"),
    }
    return AppendProjectVendor(project_id=str(lead.get("projectId") or ""), list_name="invited", entry=entry)


def build_lead(
    *,
    lead_id: str,
    project: dict[str, Any],
    pm_id: str,
    vendor_id: str,
    vendor_snapshot: dict[str, Any],
    details: dict[str, Any],
    now: str,
) -> tuple[dict[str, Any], tuple[SideEffect, ...]]:
    """Build a new lead in `sent` plus the effects of sending it."""
    title = str(details.get("leadTitle") or "").strip()
    description = str(details.get("leadDescription") or "").strip()
    if not title or not description:
        raise InvalidArgument(message="Lead title and description are required")

    project_id = str(project.get("projectId") or "")
    lead: dict[str, Any] = {
        "leadId": lead_id,
        "projectId": project_id,
        "pmId": pm_id,
        "vendorId": vendor_id,
        "leadTitle": title,
        "leadDescription": description,
        "specialization": details.get("specialization") or vendor_snapshot.get("specialization") or "General",
        "estimatedBudget": details.get("estimatedBudget") or "TBD",
        "estimatedTimeline": details.get("estimatedTimeline") or "TBD",
        "priority": details.get("priority") or "medium",
        "tags": list(details.get("tags") or []),
        "status": LeadStatus.SENT.value,
        "vendorResponse": None,
        "pmDecision": None,
        "sentAt": now,
        "updatedAt": now,
        # One-way copies taken at send time; never re-synchronized.
        "vendorDetails": dict(vendor_snapshot),
        "projectDetails": {
            "name": project.get("name") or "",
            "location": project.get("location") or "",
            "category": project.get("category") or "General",
        },
    }
    if isinstance(details.get("boqAttachment"), dict):
        lead["boqAttachment"] = dict(details["boqAttachment"])

    effects: tuple[SideEffect, ...] = (
        invitation(lead),
        Notify(recipient_id=vendor_id, event_type="new_lead"),
    )
    return lead, effects


# ---- vendor ----


def vendor_respond(
    lead: dict[str, Any],
    *,
    accepted: bool,
    message: str,
    proposed_budget: Any = None,
    proposed_timeline: Any = None,
    attachments: list[Any] | None = None,
    now: str,
) -> Transition:
    if not isinstance(accepted, bool):
        raise InvalidArgument(message="Accepted status (true/false) is required")
    msg = str(message or "").strip()
    if not msg:
        raise InvalidArgument(message="Response message is required")

    target = LeadStatus.VENDOR_ACCEPTED.value if accepted else LeadStatus.VENDOR_DECLINED.value
    current = _require_status(lead, target, "Lead must be in sent status to respond")
    if current != LeadStatus.SENT.value:
        # vendor_accepted -> vendor_accepted is the amend edge, not a second response.
        raise InvalidState(
            message="Lead must be in sent status to respond",
            details={"leadId": lead.get("leadId"), "status": current, "target": target},
        )

    response = {
        "acceptedAt": now,
        "accepted": accepted,
        "message": msg,
        "proposedBudget": (proposed_budget or lead.get("estimatedBudget")) if accepted else None,
        "proposedTimeline": (proposed_timeline or lead.get("estimatedTimeline")) if accepted else None,
        "attachments": list(attachments or []),
    }
    return Transition(
        lead_id=str(lead.get("leadId") or ""),
        expected_status=current,
        next_status=target,
        updates={"status": target, "vendorResponse": response, "updatedAt": now},
        effects=(Notify(recipient_id=str(lead.get("pmId") or ""), event_type="lead_response"),),
    )


_AMENDABLE_FIELDS = ("message", "proposedBudget", "proposedTimeline", "attachments")


def update_vendor_response(lead: dict[str, Any], *, patch: dict[str, Any], now: str) -> Transition:
    """Merge only the supplied fields; `accepted` is never touched."""
    current = _status_of(lead)
    if current != LeadStatus.VENDOR_ACCEPTED.value:
        raise InvalidState(
            message="Can only update response for accepted leads",
            details={"leadId": lead.get("leadId"), "status": current},
        )
    supplied = {k: patch[k] for k in _AMENDABLE_FIELDS if patch.get(k) is not None}
    if "message" in supplied:
        supplied["message"] = str(supplied["message"]).strip()
        if not supplied["message"]:
            raise InvalidArgument(message="Response message cannot be empty")
    if not supplied:
        raise InvalidArgument(message="Nothing to update", details={"fields": list(_AMENDABLE_FIELDS)})

    existing = lead.get("vendorResponse") if isinstance(lead.get("vendorResponse"), dict) else {}
    merged = {**existing, **supplied, "accepted": existing.get("accepted", True), "updatedAt": now}
    return Transition(
        lead_id=str(lead.get("leadId") or ""),
        expected_status=current,
        next_status=current,
        updates={"vendorResponse": merged, "updatedAt": now},
    )


# ---- PM ----


def pm_decide(
    lead: dict[str, Any],
    *,
    approved: bool,
    feedback: str | None = None,
    grant_workspace_access: bool = False,
    now: str,
) -> Transition:
    if not isinstance(approved, bool):
        raise InvalidArgument(message="Approved status (true/false) is required")

    target = LeadStatus.PM_APPROVED.value if approved else LeadStatus.PM_REJECTED.value
    current = _require_status(lead, target, "Lead must be in vendor_accepted status for PM decision")

    grant = bool(approved and grant_workspace_access)
    decision = {
        "decidedAt": now,
        "approved": approved,
        "feedback": str(feedback or ""),
        "workspaceAccess": grant,
    }

    lead_id = str(lead.get("leadId") or "")
    project_id = str(lead.get("projectId") or "")
    vendor_id = str(lead.get("vendorId") or "")
    effects: list[SideEffect] = []
    if approved:
        vendor = lead.get("vendorDetails") if isinstance(lead.get("vendorDetails"), dict) else {}
        effects.append(
            AppendProjectVendor(
                project_id=project_id,
                list_name="approved",
                entry={
                    "vendorId": vendor_id,
                    "name": vendor.get("name") or "Unknown",
                    "companyName": vendor.get("companyName") or "",
                    "specialization": lead.get("specialization") or "",
                    "approvedAt": now,
                    "leadId": lead_id,
                    "workspaceAccess": grant,
                },
            )
        )
        if grant:
            effects.append(
                ProvisionWorkspace(
                    project_id=project_id,
                    pm_id=str(lead.get("pmId") or ""),
                    vendor_id=vendor_id,
                    lead_id=lead_id,
                )
            )
    effects.append(Notify(recipient_id=vendor_id, event_type="pm_decision"))

    return Transition(
        lead_id=lead_id,
        expected_status=current,
        next_status=target,
        updates={"status": target, "pmDecision": decision, "updatedAt": now},
        effects=tuple(effects),
    )
