from __future__ import annotations

import uuid
from typing import Any

from boto3.dynamodb.conditions import Key

from ...db.dynamodb.errors import DdbConflict
from ...db.dynamodb.serialization import from_ddb, to_ddb
from ...db.dynamodb.table import get_main_table
from ..leads.leads_repo import now_iso


def new_project_id() -> str:
    return str(uuid.uuid4())


def project_key(project_id: str) -> dict[str, str]:
    pid = str(project_id or "").strip()
    if not pid:
        raise ValueError("project_id is required")
    return {"pk": f"PROJECT#{pid}", "sk": "PROFILE"}


def pm_projects_pk(pm_id: str) -> str:
    return f"PM_PROJECTS#{pm_id}"


def normalize_project_for_api(item: dict[str, Any] | None) -> dict[str, Any] | None:
    if not item:
        return None
    obj = from_ddb(dict(item))
    for k in ("pk", "sk", "gsi1pk", "gsi1sk", "entityType", "invitedVendorIds", "approvedVendorIds"):
        obj.pop(k, None)
    obj["_id"] = obj.get("projectId")
    obj.setdefault("invitedVendors", [])
    obj.setdefault("approvedVendors", [])
    return obj


def create_project(
    *,
    pm_id: str,
    name: str,
    description: str | None = None,
    location: str | None = None,
    category: str | None = None,
) -> dict[str, Any]:
    pid = new_project_id()
    now = now_iso()
    item: dict[str, Any] = {
        **project_key(pid),
        "entityType": "Project",
        "projectId": pid,
        "pmId": pm_id,
        "name": str(name or "").strip() or "Untitled Project",
        "description": description or "",
        "location": location or "",
        "category": category or "General",
        "status": "active",
        "invitedVendors": [],
        "invitedVendorIds": [],
        "approvedVendors": [],
        "approvedVendorIds": [],
        "workspaceId": None,
        "workspaceCreated": False,
        "createdAt": now,
        "updatedAt": now,
        "gsi1pk": pm_projects_pk(pm_id),
        "gsi1sk": f"{now}#{pid}",
    }
    item = {k: v for k, v in item.items() if v is not None}
    get_main_table().put_item(item=item, condition_expression="attribute_not_exists(pk)")
    return normalize_project_for_api(item) or {}


def get_project_item(project_id: str) -> dict[str, Any] | None:
    return get_main_table().get_item(key=project_key(project_id))


def get_project(project_id: str) -> dict[str, Any] | None:
    return normalize_project_for_api(get_project_item(project_id))


def list_projects_for_pm(*, pm_id: str, limit: int = 50, next_token: str | None = None) -> dict[str, Any]:
    pg = get_main_table().query_page(
        index_name="GSI1",
        key_condition_expression=Key("gsi1pk").eq(pm_projects_pk(pm_id)),
        scan_index_forward=False,
        limit=max(1, min(200, int(limit or 50))),
        next_token=next_token,
    )
    out = [normalize_project_for_api(it) for it in pg.items or []]
    return {"data": [x for x in out if x], "nextToken": pg.next_token}


def _append_vendor_entry(
    *,
    project_id: str,
    list_attr: str,
    ids_attr: str,
    entry: dict[str, Any],
) -> bool:
    """
    Append `entry` to a project's vendor list unless its vendorId is already there.

    The id shadow list makes the dedupe atomic: the condition rejects a second
    append for the same vendor, so retries are no-ops. Returns True if appended.
    """
    vid = str(entry.get("vendorId") or "").strip()
    if not vid:
        raise ValueError("vendorId is required")

    t = get_main_table()
    current = t.get_item(key=project_key(project_id)) or {}
    if vid in (current.get(ids_attr) or []):
        return False

    try:
        t.update_item(
            key=project_key(project_id),
            update_expression=(
                "SET #list = list_append(if_not_exists(#list, :empty), :entry), "
                "#ids = list_append(if_not_exists(#ids, :empty), :vid), "
                "updatedAt = :now"
            ),
            expression_attribute_names={"#list": list_attr, "#ids": ids_attr},
            expression_attribute_values={
                ":entry": [to_ddb(entry)],
                ":vid": [vid],
                ":vid_single": vid,
                ":empty": [],
                ":now": now_iso(),
            },
            condition_expression="attribute_exists(pk) AND NOT contains(#ids, :vid_single)",
            return_values="NONE",
        )
    except DdbConflict:
        return False
    return True


def append_invited_vendor(*, project_id: str, entry: dict[str, Any]) -> bool:
    return _append_vendor_entry(
        project_id=project_id,
        list_attr="invitedVendors",
        ids_attr="invitedVendorIds",
        entry=entry,
    )


def append_approved_vendor(*, project_id: str, entry: dict[str, Any]) -> bool:
    return _append_vendor_entry(
        project_id=project_id,
        list_attr="approvedVendors",
        ids_attr="approvedVendorIds",
        entry=entry,
    )


def set_project_workspace(*, project_id: str, workspace_id: str) -> None:
    get_main_table().update_item(
        key=project_key(project_id),
        update_expression="SET workspaceId = :w, workspaceCreated = :t, updatedAt = :now",
        expression_attribute_names=None,
        expression_attribute_values={":w": workspace_id, ":t": True, ":now": now_iso()},
        condition_expression="attribute_exists(pk)",
        return_values="NONE",
    )
