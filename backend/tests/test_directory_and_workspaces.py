from __future__ import annotations

import threading
import time

import pytest

from leadhub.errors import DependencyUnavailable, Forbidden
from leadhub.modules.directory.directory_service import DirectoryService, normalize_vendor_listing
from leadhub.modules.identity.roles import Actor
from leadhub.modules.workspaces import provisioner
from leadhub.repositories.workspaces import workspaces_repo


def test_resolve_found_and_missing():
    records = {"V1": {"firstName": "Ada", "lastName": "Volt", "email": "ada@volt.example"}}
    d = DirectoryService(get_vendor=records.get, get_pm=lambda _id: None)
    try:
        found = d.resolve("vendor", "V1")
        missing = d.resolve("vendor", "V9")
        pm = d.resolve("pm", "pm-9")
    finally:
        d.close()

    assert found.found and found.name == "Ada Volt"
    assert found.companyName == "Unknown Company"
    assert not missing.found
    assert missing.snapshot() == {
        "name": "Unknown Vendor",
        "email": "unknown@vendor.com",
        "companyName": "Unknown Company",
        "specialization": "General",
    }
    assert pm.name == "Project Manager"


def test_resolve_times_out_to_sentinel():
    def slow(_id):
        time.sleep(1.0)
        return {"name": "Too Late"}

    d = DirectoryService(timeout_s=0.1, get_vendor=slow)
    try:
        start = time.perf_counter()
        entry = d.resolve("vendor", "V1")
        elapsed = time.perf_counter() - start
    finally:
        d.close()
    assert elapsed < 0.9
    assert entry.name == "Unknown Vendor"
    assert entry.found is False


def test_resolve_many_shares_one_deadline():
    def slow(_id):
        time.sleep(1.5)
        return {"name": "Too Late"}

    d = DirectoryService(timeout_s=0.2, max_workers=4, get_vendor=slow)
    try:
        start = time.perf_counter()
        entries = d.resolve_many("vendor", ["V1", "V2", "V3", "V4"])
        elapsed = time.perf_counter() - start
    finally:
        d.close()
    assert elapsed < 0.6
    assert sorted(entries) == ["V1", "V2", "V3", "V4"]
    assert all(not e.found for e in entries.values())


def test_resolve_error_is_soft():
    def broken(_id):
        raise ConnectionError("directory down")

    d = DirectoryService(get_vendor=broken)
    try:
        entries = d.resolve_many("vendor", ["V1", "V2", "V1", ""])
    finally:
        d.close()
    assert sorted(entries) == ["V1", "V2"]
    assert all(not e.found for e in entries.values())


def test_vendor_listing_is_cached_and_unavailable_is_an_error():
    calls = []

    def listing():
        calls.append(1)
        return [{"vendorId": "V1", "name": "Volt"}]

    d = DirectoryService(list_vendors=listing, cache_ttl_s=60)
    try:
        assert d.vendor_listing()[0]["rating"] == 4.0
        d.vendor_listing()
    finally:
        d.close()
    assert len(calls) == 1

    def down():
        raise ConnectionError("nope")

    d = DirectoryService(list_vendors=down)
    try:
        with pytest.raises(DependencyUnavailable):
            d.vendor_listing()
    finally:
        d.close()


def test_normalize_vendor_listing_defaults():
    v = normalize_vendor_listing({"id": "V7", "rating": "not-a-number"})
    assert v["vendorId"] == "V7"
    assert v["name"] == "Unknown Name"
    assert v["rating"] == 4.0
    assert v["status"] == "approved"
    assert v["location"] == "Unknown Location"
    assert v["description"] == "Professional General provider"


def test_create_or_get_is_idempotent_per_vendor(fake_table):
    first = provisioner.create_or_get(project_id="P1", project_name="Clinic", pm_id="pm-1", vendor_id="V1")
    again = provisioner.create_or_get(project_id="P1", project_name="Clinic", pm_id="pm-1", vendor_id="V1")

    assert first.created and first.vendor_added
    assert not again.created and not again.vendor_added
    assert again.workspace_id == first.workspace_id
    ws = workspaces_repo.get_workspace(first.workspace_id)
    assert ws["accessControl"]["collaborators"] == ["V1"]
    assert ws["title"] == "Clinic - Collaborative Workspace"


def test_concurrent_provisioning_creates_one_workspace(fake_table):
    barrier = threading.Barrier(4)
    outcomes = []

    def run(vendor_id):
        barrier.wait()
        outcomes.append(
            provisioner.create_or_get(project_id="P1", project_name="Clinic", pm_id="pm-1", vendor_id=vendor_id)
        )

    threads = [threading.Thread(target=run, args=(v,)) for v in ("V1", "V2", "V3", "V1")]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len({o.workspace_id for o in outcomes}) == 1
    assert sum(o.created for o in outcomes) == 1
    workspaces = [it for it in fake_table.all_items() if it.get("entityType") == "Workspace"]
    assert len(workspaces) == 1
    collaborators = workspaces[0]["accessControl"]["collaborators"]
    assert sorted(collaborators) == ["V1", "V2", "V3"]


def test_other_pm_cannot_extend_workspace(fake_table):
    provisioner.create_or_get(project_id="P1", project_name="Clinic", pm_id="pm-1", vendor_id="V1")
    with pytest.raises(Forbidden):
        provisioner.create_or_get(project_id="P1", project_name="Clinic", pm_id="pm-2", vendor_id="V2")


def test_access_levels():
    ws = workspaces_repo.build_workspace_item(
        workspace_id="W1", project_id="P1", project_name=None, pm_id="pm-1", vendor_id="V1", lead_id=None
    )
    assert provisioner.access_level(ws, Actor(id="pm-1", role="pm")) == "pm_owner"
    assert provisioner.access_level(ws, Actor(id="V1", role="vendor")) == "approved_vendor"
    assert provisioner.access_level(ws, Actor(id="V2", role="vendor")) == "no_access"
    perms = provisioner.permissions_for(ws, Actor(id="V1", role="vendor"))
    assert perms == {
        "canEdit": False,
        "canComment": True,
        "canViewFiles": True,
        "canCreateTasks": False,
        "canAssignTasks": False,
        "canUpdateTaskStatus": True,
        "canInviteUsers": False,
    }
