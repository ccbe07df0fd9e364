"""
Workspace provisioning for approved PM/vendor pairings.

At most one workspace exists per project. Creation is a conditional
transaction on a per-project pointer row; losing that race (or finding the
pointer already there) switches to the extend path, which appends the vendor
to collaborators/permissions exactly once.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from ...errors import Internal
from ...observability.logging import get_logger
from ...repositories.workspaces import workspaces_repo
from ..identity.access_control import require_access
from ..identity.roles import ROLE_PM, ROLE_VENDOR, Actor

log = get_logger("workspaces.provisioner")

ACCESS_PM_OWNER = "pm_owner"
ACCESS_APPROVED_VENDOR = "approved_vendor"
ACCESS_SHARED = "shared_access"
ACCESS_NONE = "no_access"


@dataclass(frozen=True, slots=True)
class ProvisionOutcome:
    workspace: dict[str, Any]
    created: bool
    vendor_added: bool

    @property
    def workspace_id(self) -> str:
        return str(self.workspace.get("workspaceId") or "")


def _extend(*, workspace: dict[str, Any], pm_id: str, vendor_id: str) -> ProvisionOutcome:
    require_access(
        Actor(id=pm_id, role=ROLE_PM),
        "workspace",
        workspace,
        "extend",
        message="Workspace belongs to a different project manager",
    )
    wid = str(workspace.get("workspaceId") or "")
    added = workspaces_repo.add_collaborator(workspace_id=wid, vendor_id=vendor_id)
    current = workspaces_repo.get_workspace(wid) or workspace
    log.info("workspace_extended", workspace_id=wid, vendor_id=vendor_id, vendor_added=added)
    return ProvisionOutcome(workspace=current, created=False, vendor_added=added)


def create_or_get(
    *,
    project_id: str,
    project_name: str | None,
    pm_id: str,
    vendor_id: str,
    lead_id: str | None = None,
) -> ProvisionOutcome:
    existing = workspaces_repo.get_workspace_for_project(project_id)
    if existing:
        return _extend(workspace=existing, pm_id=pm_id, vendor_id=vendor_id)

    item = workspaces_repo.build_workspace_item(
        workspace_id=workspaces_repo.new_workspace_id(),
        project_id=project_id,
        project_name=project_name,
        pm_id=pm_id,
        vendor_id=vendor_id,
        lead_id=lead_id,
    )
    created = workspaces_repo.create_workspace_for_project(item)
    if created:
        log.info("workspace_created", workspace_id=created.get("workspaceId"), project_id=project_id)
        return ProvisionOutcome(workspace=created, created=True, vendor_added=True)

    # Lost the create race: another request owns the project's workspace now.
    winner = workspaces_repo.get_workspace_for_project(project_id)
    if not winner:
        raise Internal(
            message="Workspace pointer exists without a workspace",
            details={"projectId": project_id},
        )
    return _extend(workspace=winner, pm_id=pm_id, vendor_id=vendor_id)


def access_level(workspace: dict[str, Any], actor: Actor) -> str:
    ac = workspace.get("accessControl") if isinstance(workspace.get("accessControl"), dict) else {}
    if actor.role == ROLE_PM and ac.get("owner") == actor.id:
        return ACCESS_PM_OWNER
    if actor.role == ROLE_VENDOR and actor.id in (ac.get("collaborators") or []):
        return ACCESS_APPROVED_VENDOR
    if actor.id in (workspace.get("sharedWith") or []):
        return ACCESS_SHARED
    return ACCESS_NONE


def permissions_for(workspace: dict[str, Any], actor: Actor) -> dict[str, bool]:
    ac = workspace.get("accessControl") if isinstance(workspace.get("accessControl"), dict) else {}
    perms = ac.get("permissions") if isinstance(ac.get("permissions"), dict) else {}
    out = {cap: actor.id in (perms.get(cap) or []) for cap in workspaces_repo.ALL_CAPABILITIES}
    out["canInviteUsers"] = actor.role == ROLE_PM and ac.get("owner") == actor.id
    return out
