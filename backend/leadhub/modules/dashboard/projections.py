from __future__ import annotations

from typing import Any, Iterable

from ..leads.state_machine import ALL_STATUSES, LeadStatus

PRIORITIES = ("high", "medium", "low")


def _pct(part: int, whole: int) -> float:
    if whole <= 0:
        return 0.0
    return round(part * 100.0 / whole, 1)


def group_by_status(leads: Iterable[dict[str, Any]]) -> dict[str, list[dict[str, Any]]]:
    out: dict[str, list[dict[str, Any]]] = {s: [] for s in ALL_STATUSES}
    for lead in leads:
        s = str(lead.get("status") or "")
        if s in out:
            out[s].append(lead)
    return out


def project_summary(leads: list[dict[str, Any]]) -> dict[str, int]:
    """PM view of one project's leads."""
    g = group_by_status(leads)
    return {
        "total": len(leads),
        "pending": len(g[LeadStatus.SENT.value]),
        "awaitingApproval": len(g[LeadStatus.VENDOR_ACCEPTED.value]),
        "approved": len(g[LeadStatus.PM_APPROVED.value]),
        "declined": len(g[LeadStatus.VENDOR_DECLINED.value]) + len(g[LeadStatus.PM_REJECTED.value]),
    }


def vendor_summary(leads: list[dict[str, Any]]) -> dict[str, int]:
    g = group_by_status(leads)
    return {
        "total": len(leads),
        "pending": len(g[LeadStatus.SENT.value]),
        "responded": len(g[LeadStatus.VENDOR_ACCEPTED.value]) + len(g[LeadStatus.VENDOR_DECLINED.value]),
        "approved": len(g[LeadStatus.PM_APPROVED.value]),
        "rejected": len(g[LeadStatus.PM_REJECTED.value]),
    }


def _recent(leads: list[dict[str, Any]], n: int = 5) -> list[dict[str, Any]]:
    ordered = sorted(leads, key=lambda x: str(x.get("sentAt") or ""), reverse=True)
    return [
        {
            "leadId": lead.get("leadId"),
            "projectName": (lead.get("projectDetails") or {}).get("name") or "Unknown Project",
            "vendorName": (lead.get("vendorDetails") or {}).get("name") or "Unknown Vendor",
            "leadTitle": lead.get("leadTitle"),
            "status": lead.get("status"),
            "sentAt": lead.get("sentAt"),
            "priority": lead.get("priority"),
        }
        for lead in ordered[:n]
    ]


def lead_stats(leads: list[dict[str, Any]]) -> dict[str, Any]:
    """
    Counts and rates over a set of leads.

    responseRate counts leads still sitting in a vendor-response state;
    approvalRate counts pm_approved. Both are percentages with one decimal.
    """
    total = len(leads)
    counts = {s: len(v) for s, v in group_by_status(leads).items()}
    by_priority = {p: sum(1 for x in leads if x.get("priority") == p) for p in PRIORITIES}
    responded = counts[LeadStatus.VENDOR_ACCEPTED.value] + counts[LeadStatus.VENDOR_DECLINED.value]
    return {
        "totalLeads": total,
        "leadsByStatus": counts,
        "leadsByPriority": by_priority,
        "responseRate": _pct(responded, total),
        "approvalRate": _pct(counts[LeadStatus.PM_APPROVED.value], total),
        "recentLeads": _recent(leads),
    }


def pm_stats(leads: list[dict[str, Any]], projects: list[dict[str, Any]]) -> dict[str, Any]:
    stats = lead_stats(leads)
    by_project: dict[str, dict[str, Any]] = {}
    for lead in leads:
        pid = str(lead.get("projectId") or "")
        row = by_project.setdefault(
            pid,
            {
                "projectId": pid,
                "projectName": (lead.get("projectDetails") or {}).get("name") or "Unknown Project",
                "leads": [],
            },
        )
        row["leads"].append(lead)
    stats["byProject"] = [
        {"projectId": r["projectId"], "projectName": r["projectName"], **project_summary(r["leads"])}
        for r in by_project.values()
    ]
    stats["totalProjects"] = len(projects)
    stats["totalVendorsInvited"] = sum(len(p.get("invitedVendors") or []) for p in projects)
    stats["totalVendorsApproved"] = sum(len(p.get("approvedVendors") or []) for p in projects)
    stats["workspacesCreated"] = sum(1 for p in projects if p.get("workspaceCreated"))
    return stats
