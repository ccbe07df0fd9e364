from __future__ import annotations

from dataclasses import dataclass
from typing import Any

ROLE_PM = "pm"
ROLE_VENDOR = "vendor"


def normalize_role(value: Any) -> str | None:
    """
    Normalize a role claim to `pm` | `vendor`.

    Accepts common variants emitted by older clients (e.g. "project_manager",
    "PM", "Vendor"). Unknown roles return None.
    """
    s = str(value or "").strip().lower().replace("-", "_").replace(" ", "_")
    if s in ("pm", "project_manager", "projectmanager", "manager"):
        return ROLE_PM
    if s in ("vendor", "supplier", "contractor"):
        return ROLE_VENDOR
    return None


@dataclass(frozen=True, slots=True)
class Actor:
    """Caller identity as supplied by the edge; the core never derives it."""

    id: str
    role: str
    name: str | None = None
    email: str | None = None

    @property
    def is_pm(self) -> bool:
        return self.role == ROLE_PM

    @property
    def is_vendor(self) -> bool:
        return self.role == ROLE_VENDOR


def make_actor(actor_id: Any, role: Any, *, name: str | None = None, email: str | None = None) -> Actor | None:
    aid = str(actor_id or "").strip()
    r = normalize_role(role)
    if not aid or not r:
        return None
    return Actor(id=aid, role=r, name=name, email=email)
