"""
Notification envelopes for lead lifecycle events.

Every event has the same shape:
  {id, type, title, message, data, timestamp, priority, actionRequired, actions}
"""

from __future__ import annotations

import time
from typing import Any

from ...repositories.leads.leads_repo import now_iso

NEW_LEAD = "new_lead"
LEAD_RESPONSE = "lead_response"
PM_DECISION = "pm_decision"
WORKSPACE_ACCESS = "workspace_access"

VENDOR_LEADS_URL = "/VendorDashboard/leads"


def _envelope(
    *,
    event_type: str,
    ref: str,
    title: str,
    message: str,
    data: dict[str, Any],
    priority: str,
    action_required: bool,
    actions: list[dict[str, str]],
) -> dict[str, Any]:
    return {
        "id": f"{event_type.replace('_', '-')}-{ref}-{int(time.time() * 1000)}",
        "type": event_type,
        "title": title,
        "message": message,
        "data": data,
        "timestamp": now_iso(),
        "priority": priority,
        "actionRequired": action_required,
        "actions": actions,
    }


def _project_leads_url(project_id: str | None) -> str:
    return f"/projects/{project_id}/leads"


def new_lead_event(lead: dict[str, Any], *, pm_name: str | None = None) -> dict[str, Any]:
    pm = pm_name or "Project Manager"
    return _envelope(
        event_type=NEW_LEAD,
        ref=str(lead.get("leadId")),
        title="New Lead Received",
        message=f'You have received a new lead "{lead.get("leadTitle")}" from {pm}',
        data={
            "leadId": lead.get("leadId"),
            "projectId": lead.get("projectId"),
            "pmId": lead.get("pmId"),
            "pmName": pm,
            "leadTitle": lead.get("leadTitle"),
            "specialization": lead.get("specialization"),
            "estimatedBudget": lead.get("estimatedBudget"),
            "estimatedTimeline": lead.get("estimatedTimeline"),
            "priority": lead.get("priority"),
        },
        priority="high" if lead.get("priority") == "high" else "medium",
        action_required=True,
        actions=[
            {"type": "respond", "label": "Respond to Lead", "url": VENDOR_LEADS_URL},
            {"type": "view", "label": "View Details", "url": VENDOR_LEADS_URL},
        ],
    )


def lead_response_event(lead: dict[str, Any]) -> dict[str, Any]:
    resp = lead.get("vendorResponse") if isinstance(lead.get("vendorResponse"), dict) else {}
    vendor = lead.get("vendorDetails") if isinstance(lead.get("vendorDetails"), dict) else {}
    accepted = bool(resp.get("accepted"))
    vendor_name = vendor.get("name") or "Unknown Vendor"
    url = _project_leads_url(lead.get("projectId"))
    actions = [{"type": "view", "label": "View Details", "url": url}]
    if accepted:
        actions.insert(0, {"type": "approve", "label": "Approve & Grant Workspace Access", "url": url})
    return _envelope(
        event_type=LEAD_RESPONSE,
        ref=str(lead.get("leadId")),
        title="Vendor Response Received",
        message=f'{vendor_name} has {"accepted" if accepted else "declined"} your lead "{lead.get("leadTitle")}"',
        data={
            "leadId": lead.get("leadId"),
            "projectId": lead.get("projectId"),
            "vendorId": lead.get("vendorId"),
            "vendorName": vendor_name,
            "accepted": accepted,
            "proposedBudget": resp.get("proposedBudget"),
            "proposedTimeline": resp.get("proposedTimeline"),
            "message": resp.get("message"),
        },
        priority="high",
        action_required=accepted,
        actions=actions,
    )


def pm_decision_event(lead: dict[str, Any], *, workspace_url: str | None = None) -> dict[str, Any]:
    decision = lead.get("pmDecision") if isinstance(lead.get("pmDecision"), dict) else {}
    approved = bool(decision.get("approved"))
    workspace_id = lead.get("workspaceId")
    has_workspace = bool(approved and decision.get("workspaceAccess") and workspace_id)

    title = "Lead Approved!" if approved else "Lead Declined"
    if approved:
        suffix = " with workspace access" if has_workspace else ""
        message = f'Great news! Your lead "{lead.get("leadTitle")}" has been approved{suffix}'
    else:
        message = f'Your lead "{lead.get("leadTitle")}" has been declined'

    actions: list[dict[str, str]] = []
    if has_workspace and workspace_url:
        actions.append({"type": "workspace", "label": "Open Collaborative Workspace", "url": workspace_url})
    actions.append({"type": "view", "label": "View Lead Details", "url": VENDOR_LEADS_URL})

    return _envelope(
        event_type=PM_DECISION,
        ref=str(lead.get("leadId")),
        title=title,
        message=message,
        data={
            "leadId": lead.get("leadId"),
            "projectId": lead.get("projectId"),
            "pmId": lead.get("pmId"),
            "approved": approved,
            "workspaceAccess": bool(decision.get("workspaceAccess")),
            "feedback": decision.get("feedback"),
            "workspaceId": workspace_id if has_workspace else None,
            "workspaceUrl": workspace_url if has_workspace else None,
        },
        priority="high" if approved else "medium",
        action_required=has_workspace,
        actions=actions,
    )


def workspace_access_event(
    *,
    workspace_id: str,
    project_id: str,
    project_name: str | None,
    access_level: str,
    workspace_url: str | None,
) -> dict[str, Any]:
    return _envelope(
        event_type=WORKSPACE_ACCESS,
        ref=workspace_id,
        title="Workspace Access Granted",
        message=f'You now have access to the collaborative workspace for "{project_name or "Project"}"',
        data={
            "workspaceId": workspace_id,
            "projectId": project_id,
            "projectName": project_name,
            "accessLevel": access_level,
            "workspaceUrl": workspace_url,
        },
        priority="high",
        action_required=True,
        actions=[{"type": "workspace", "label": "Open Workspace", "url": workspace_url or ""}],
    )
