from __future__ import annotations

from leadhub.modules.dashboard import projections


def _lead(i: int, status: str, priority: str = "medium", project: str = "P1"):
    return {
        "leadId": f"L{i}",
        "projectId": project,
        "status": status,
        "priority": priority,
        "sentAt": f"2026-01-0{i}T00:00:00Z",
        "leadTitle": f"Lead {i}",
        "projectDetails": {"name": f"Project {project}"},
        "vendorDetails": {"name": f"Vendor {i}"},
    }


LEADS = [
    _lead(1, "sent", "high"),
    _lead(2, "vendor_accepted"),
    _lead(3, "vendor_declined", "low"),
    _lead(4, "pm_approved", project="P2"),
    _lead(5, "pm_rejected"),
    _lead(6, "pm_approved", "high"),
]


def test_group_by_status_has_every_status():
    g = projections.group_by_status([])
    assert set(g) == {"sent", "vendor_accepted", "vendor_declined", "pm_approved", "pm_rejected"}


def test_project_and_vendor_summaries():
    assert projections.project_summary(LEADS) == {
        "total": 6,
        "pending": 1,
        "awaitingApproval": 1,
        "approved": 2,
        "declined": 2,
    }
    assert projections.vendor_summary(LEADS) == {
        "total": 6,
        "pending": 1,
        "responded": 2,
        "approved": 2,
        "rejected": 1,
    }


def test_lead_stats_rates_and_recent():
    stats = projections.lead_stats(LEADS)
    assert stats["totalLeads"] == 6
    assert stats["responseRate"] == 33.3
    assert stats["approvalRate"] == 33.3
    assert stats["leadsByPriority"] == {"high": 2, "medium": 3, "low": 1}
    assert [x["leadId"] for x in stats["recentLeads"]] == ["L6", "L5", "L4", "L3", "L2"]


def test_lead_stats_empty():
    stats = projections.lead_stats([])
    assert stats["responseRate"] == 0.0
    assert stats["recentLeads"] == []


def test_pm_stats_by_project():
    projects = [
        {"projectId": "P1", "invitedVendors": [{}, {}, {}], "approvedVendors": [{}], "workspaceCreated": True},
        {"projectId": "P2", "invitedVendors": [{}], "approvedVendors": [], "workspaceCreated": False},
    ]
    stats = projections.pm_stats(LEADS, projects)
    by_project = {r["projectId"]: r for r in stats["byProject"]}
    assert by_project["P1"]["total"] == 5
    assert by_project["P2"]["approved"] == 1
    assert stats["totalProjects"] == 2
    assert stats["totalVendorsInvited"] == 4
    assert stats["totalVendorsApproved"] == 1
    assert stats["workspacesCreated"] == 1
