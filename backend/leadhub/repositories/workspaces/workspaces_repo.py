from __future__ import annotations

import uuid
from typing import Any

from ...db.dynamodb.errors import DdbConflict
from ...db.dynamodb.serialization import from_ddb, to_ddb
from ...db.dynamodb.table import get_main_table
from ..leads.leads_repo import now_iso

# Capabilities granted to a collaborating vendor (never edit/create/assign).
VENDOR_CAPABILITIES = ("canComment", "canViewFiles", "canUpdateTaskStatus")

ALL_CAPABILITIES = (
    "canEdit",
    "canComment",
    "canViewFiles",
    "canCreateTasks",
    "canAssignTasks",
    "canUpdateTaskStatus",
)


def new_workspace_id() -> str:
    return str(uuid.uuid4())


def workspace_key(workspace_id: str) -> dict[str, str]:
    wid = str(workspace_id or "").strip()
    if not wid:
        raise ValueError("workspace_id is required")
    return {"pk": f"WORKSPACE#{wid}", "sk": "PROFILE"}


def project_workspace_key(project_id: str) -> dict[str, str]:
    pid = str(project_id or "").strip()
    if not pid:
        raise ValueError("project_id is required")
    return {"pk": f"PROJECT#{pid}", "sk": "WORKSPACE"}


def normalize_workspace_for_api(item: dict[str, Any] | None) -> dict[str, Any] | None:
    if not item:
        return None
    obj = from_ddb(dict(item))
    for k in ("pk", "sk", "entityType"):
        obj.pop(k, None)
    obj["_id"] = obj.get("workspaceId")
    return obj


def build_workspace_item(
    *,
    workspace_id: str,
    project_id: str,
    project_name: str | None,
    pm_id: str,
    vendor_id: str,
    lead_id: str | None,
) -> dict[str, Any]:
    now = now_iso()
    name = str(project_name or "").strip() or "Project"
    permissions: dict[str, list[str]] = {cap: [pm_id] for cap in ALL_CAPABILITIES}
    for cap in VENDOR_CAPABILITIES:
        permissions[cap].append(vendor_id)
    return {
        "workspaceId": workspace_id,
        "projectId": project_id,
        "title": f"{name} - Collaborative Workspace",
        "description": f"PM-Vendor collaborative workspace for {name}",
        "isShared": True,
        "sharedWith": [vendor_id],
        "accessControl": {
            "owner": pm_id,
            "collaborators": [vendor_id],
            "permissions": permissions,
        },
        "layers": [{"id": "default", "name": "Main Layer", "visible": True, "locked": False}],
        "projectMetadata": {
            "pmId": pm_id,
            "projectName": name,
            "leadId": lead_id,
            "createdBy": "pm_approval_system",
        },
        "status": "active",
        "createdAt": now,
        "updatedAt": now,
    }


def get_workspace(workspace_id: str) -> dict[str, Any] | None:
    return normalize_workspace_for_api(get_main_table().get_item(key=workspace_key(workspace_id)))


def get_workspace_id_for_project(project_id: str) -> str | None:
    ptr = get_main_table().get_item(key=project_workspace_key(project_id)) or {}
    wid = str(ptr.get("workspaceId") or "").strip()
    return wid or None


def get_workspace_for_project(project_id: str) -> dict[str, Any] | None:
    wid = get_workspace_id_for_project(project_id)
    return get_workspace(wid) if wid else None


def create_workspace_for_project(workspace: dict[str, Any]) -> dict[str, Any] | None:
    """
    Create the workspace and its project pointer atomically.

    Returns None if a workspace already exists for the project (the pointer
    condition failed); the caller should then extend the existing one.
    """
    t = get_main_table()
    wid = str(workspace["workspaceId"])
    pid = str(workspace["projectId"])
    ws_item = {**workspace_key(wid), "entityType": "Workspace", **to_ddb(workspace)}
    ptr_item = {
        **project_workspace_key(pid),
        "entityType": "ProjectWorkspacePointer",
        "projectId": pid,
        "workspaceId": wid,
        "createdAt": workspace.get("createdAt") or now_iso(),
    }
    try:
        t.transact_write(
            puts=[
                t.tx_put(item=ptr_item, condition_expression="attribute_not_exists(pk)"),
                t.tx_put(item=ws_item, condition_expression="attribute_not_exists(pk)"),
            ]
        )
    except DdbConflict:
        return None
    return normalize_workspace_for_api(ws_item)


def add_collaborator(*, workspace_id: str, vendor_id: str) -> bool:
    """
    Add a vendor to collaborators, sharedWith and the vendor capability lists.

    Conditional on the vendor not already collaborating, so concurrent or
    repeated calls append exactly once. Returns True if the vendor was added.
    """
    names = {"#ac": "accessControl", "#col": "collaborators", "#perm": "permissions", "#sw": "sharedWith"}
    sets = [
        "#ac.#col = list_append(if_not_exists(#ac.#col, :empty), :v)",
        "#sw = list_append(if_not_exists(#sw, :empty), :v)",
    ]
    for i, cap in enumerate(VENDOR_CAPABILITIES):
        names[f"#cap{i}"] = cap
        sets.append(f"#ac.#perm.#cap{i} = list_append(if_not_exists(#ac.#perm.#cap{i}, :empty), :v)")
    sets.append("updatedAt = :now")

    try:
        get_main_table().update_item(
            key=workspace_key(workspace_id),
            update_expression="SET " + ", ".join(sets),
            expression_attribute_names=names,
            expression_attribute_values={
                ":v": [vendor_id],
                ":vid": vendor_id,
                ":empty": [],
                ":now": now_iso(),
            },
            condition_expression="attribute_exists(pk) AND NOT contains(#ac.#col, :vid)",
            return_values="NONE",
        )
    except DdbConflict:
        return False
    return True
