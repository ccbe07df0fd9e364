from __future__ import annotations

import pytest

from leadhub.errors import InvalidArgument, InvalidState
from leadhub.modules.leads import state_machine as sm

NOW = "2026-01-01T00:00:00Z"


def _lead(status: str = "sent", **extra):
    base = {
        "leadId": "L1",
        "projectId": "P1",
        "pmId": "pm-1",
        "vendorId": "V1",
        "status": status,
        "estimatedBudget": "$50k",
        "estimatedTimeline": "6 weeks",
        "specialization": "Electrical",
        "vendorDetails": {"name": "Volt Electric", "companyName": "Volt LLC"},
        "vendorResponse": None,
        "pmDecision": None,
    }
    base.update(extra)
    return base


def test_transition_table_edges():
    assert sm.can_transition("sent", "vendor_accepted")
    assert sm.can_transition("sent", "vendor_declined")
    assert sm.can_transition("vendor_accepted", "pm_approved")
    assert sm.can_transition("vendor_accepted", "pm_rejected")
    assert sm.can_transition("vendor_accepted", "vendor_accepted")
    assert not sm.can_transition("sent", "pm_approved")
    assert not sm.can_transition("vendor_declined", "vendor_accepted")
    assert not sm.can_transition("unknown", "sent")
    assert sm.TERMINAL_STATUSES == {"vendor_declined", "pm_approved", "pm_rejected"}


def test_build_lead_defaults_and_effects():
    lead, effects = sm.build_lead(
        lead_id="L1",
        project={"projectId": "P1", "name": "Riverside", "location": "Austin"},
        pm_id="pm-1",
        vendor_id="V1",
        vendor_snapshot={"name": "Volt", "email": "v@x", "companyName": "Volt LLC", "specialization": "Electrical"},
        details={"leadTitle": " Wiring ", "leadDescription": "Rewire floor 2"},
        now=NOW,
    )
    assert lead["status"] == "sent"
    assert lead["leadTitle"] == "Wiring"
    assert lead["estimatedBudget"] == "TBD"
    assert lead["estimatedTimeline"] == "TBD"
    assert lead["priority"] == "medium"
    assert lead["vendorResponse"] is None and lead["pmDecision"] is None
    assert lead["projectDetails"] == {"name": "Riverside", "location": "Austin", "category": "General"}
    assert "boqAttachment" not in lead

    append, notify = effects
    assert isinstance(append, sm.AppendProjectVendor)
    assert append.list_name == "invited"
    assert append.entry["status"] == "pending"
    assert notify == sm.Notify(recipient_id="V1", event_type="new_lead")


def test_build_lead_requires_title_and_description():
    with pytest.raises(InvalidArgument):
        sm.build_lead(
            lead_id="L1",
            project={"projectId": "P1"},
            pm_id="pm-1",
            vendor_id="V1",
            vendor_snapshot={},
            details={"leadTitle": "x", "leadDescription": "  "},
            now=NOW,
        )


def test_vendor_accept_falls_back_to_estimates():
    tr = sm.vendor_respond(_lead(), accepted=True, message="We can do it", now=NOW)
    assert tr.expected_status == "sent"
    assert tr.next_status == "vendor_accepted"
    resp = tr.updates["vendorResponse"]
    assert resp["proposedBudget"] == "$50k"
    assert resp["proposedTimeline"] == "6 weeks"
    assert resp["acceptedAt"] == NOW
    assert tr.effects == (sm.Notify(recipient_id="pm-1", event_type="lead_response"),)


def test_vendor_decline_clears_proposals():
    tr = sm.vendor_respond(_lead(), accepted=False, message="Booked", proposed_budget="$1", now=NOW)
    assert tr.next_status == "vendor_declined"
    assert tr.updates["vendorResponse"]["proposedBudget"] is None
    assert tr.updates["vendorResponse"]["proposedTimeline"] is None


@pytest.mark.parametrize("status", ["vendor_accepted", "vendor_declined", "pm_approved", "pm_rejected"])
def test_vendor_cannot_respond_twice(status):
    with pytest.raises(InvalidState):
        sm.vendor_respond(_lead(status), accepted=True, message="again", now=NOW)


def test_vendor_respond_requires_message():
    with pytest.raises(InvalidArgument):
        sm.vendor_respond(_lead(), accepted=True, message="   ", now=NOW)


def test_update_response_merges_supplied_fields_only():
    lead = _lead(
        "vendor_accepted",
        vendorResponse={"accepted": True, "message": "ok", "proposedBudget": "$40k", "proposedTimeline": "5w"},
    )
    tr = sm.update_vendor_response(lead, patch={"proposedBudget": "$45k", "message": None}, now=NOW)
    assert tr.expected_status == tr.next_status == "vendor_accepted"
    merged = tr.updates["vendorResponse"]
    assert merged["proposedBudget"] == "$45k"
    assert merged["message"] == "ok"
    assert merged["proposedTimeline"] == "5w"
    assert merged["accepted"] is True
    assert "status" not in tr.updates


def test_update_response_rejects_other_states_and_empty_patch():
    with pytest.raises(InvalidState):
        sm.update_vendor_response(_lead("sent"), patch={"message": "x"}, now=NOW)
    with pytest.raises(InvalidArgument):
        sm.update_vendor_response(_lead("vendor_accepted"), patch={}, now=NOW)


def test_pm_approve_with_workspace_effects_in_order():
    tr = sm.pm_decide(_lead("vendor_accepted"), approved=True, feedback="great", grant_workspace_access=True, now=NOW)
    assert tr.next_status == "pm_approved"
    assert tr.updates["pmDecision"] == {"decidedAt": NOW, "approved": True, "feedback": "great", "workspaceAccess": True}
    kinds = [type(e) for e in tr.effects]
    assert kinds == [sm.AppendProjectVendor, sm.ProvisionWorkspace, sm.Notify]
    assert tr.effects[1] == sm.ProvisionWorkspace(project_id="P1", pm_id="pm-1", vendor_id="V1", lead_id="L1")


def test_pm_reject_never_grants_workspace():
    tr = sm.pm_decide(_lead("vendor_accepted"), approved=False, grant_workspace_access=True, now=NOW)
    assert tr.next_status == "pm_rejected"
    assert tr.updates["pmDecision"]["workspaceAccess"] is False
    assert tr.effects == (sm.Notify(recipient_id="V1", event_type="pm_decision"),)


@pytest.mark.parametrize("status", ["sent", "vendor_declined", "pm_approved", "pm_rejected"])
def test_pm_decide_requires_vendor_accepted(status):
    with pytest.raises(InvalidState):
        sm.pm_decide(_lead(status), approved=True, now=NOW)
