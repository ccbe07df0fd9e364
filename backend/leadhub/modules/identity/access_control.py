"""
Pure access-control evaluation for leads, projects and workspaces.

Rules, evaluated in order:
1. The action must be one the actor's role may perform at all
   (e.g. deciding on a lead is PM-only).
2. A PM may act on what it owns (`pmId` or workspace `owner`).
3. A vendor may act on leads addressed to it and on workspaces where it
   collaborates.
4. Everything else is denied.

No I/O happens here; callers load the resource first and must evaluate before
any write.
"""

from __future__ import annotations

from typing import Any, Literal

from ...errors import Forbidden
from .roles import ROLE_PM, ROLE_VENDOR, Actor

ResourceKind = Literal["lead", "project", "workspace"]

_ACTION_ROLES: dict[tuple[str, str], frozenset[str]] = {
    ("lead", "view"): frozenset({ROLE_PM, ROLE_VENDOR}),
    ("lead", "download_attachment"): frozenset({ROLE_PM, ROLE_VENDOR}),
    ("lead", "respond"): frozenset({ROLE_VENDOR}),
    ("lead", "update_response"): frozenset({ROLE_VENDOR}),
    ("lead", "decide"): frozenset({ROLE_PM}),
    ("project", "view"): frozenset({ROLE_PM}),
    ("project", "send_leads"): frozenset({ROLE_PM}),
    ("project", "list_leads"): frozenset({ROLE_PM}),
    ("workspace", "view"): frozenset({ROLE_PM, ROLE_VENDOR}),
    ("workspace", "extend"): frozenset({ROLE_PM}),
}


def _owner_id(kind: str, resource: dict[str, Any]) -> str:
    if kind == "workspace":
        ac = resource.get("accessControl") if isinstance(resource.get("accessControl"), dict) else {}
        return str(ac.get("owner") or "")
    return str(resource.get("pmId") or "")


def _vendor_participates(kind: str, resource: dict[str, Any], vendor_id: str) -> bool:
    if kind == "lead":
        return str(resource.get("vendorId") or "") == vendor_id
    if kind == "workspace":
        ac = resource.get("accessControl") if isinstance(resource.get("accessControl"), dict) else {}
        return vendor_id in (ac.get("collaborators") or [])
    return False


def authorize(
    actor: Actor | None,
    kind: ResourceKind,
    resource: dict[str, Any] | None,
    action: str,
) -> tuple[bool, str | None]:
    """Return (allowed, deny_reason)."""
    if actor is None or not actor.id:
        return False, "actor_not_resolved"
    if not isinstance(resource, dict):
        return False, "resource_not_resolved"

    allowed_roles = _ACTION_ROLES.get((kind, action))
    if not allowed_roles:
        return False, "unknown_action"
    if actor.role not in allowed_roles:
        return False, f"{action}_requires_{'_or_'.join(sorted(allowed_roles))}"

    if actor.role == ROLE_PM:
        if _owner_id(kind, resource) == actor.id:
            return True, None
        return False, "not_owner"

    if actor.role == ROLE_VENDOR:
        if _vendor_participates(kind, resource, actor.id):
            return True, None
        return False, "not_participant"

    return False, "role_not_supported"


def require_access(
    actor: Actor | None,
    kind: ResourceKind,
    resource: dict[str, Any] | None,
    action: str,
    *,
    message: str | None = None,
) -> None:
    allowed, reason = authorize(actor, kind, resource, action)
    if not allowed:
        raise Forbidden(
            message=message or f"Access denied to this {kind}",
            details={"reason": reason, "action": action},
        )


def require_role(actor: Actor | None, role: str, action: str) -> Actor:
    """Role gate for actor-scoped queries that have no single resource."""
    if actor is None or not actor.id:
        raise Forbidden(message="Caller identity is required", details={"reason": "actor_not_resolved"})
    if actor.role != role:
        raise Forbidden(
            message=f"Only a {role} may perform this action",
            details={"reason": f"{action}_requires_{role}", "action": action},
        )
    return actor
