from __future__ import annotations

from fastapi import Request

from ..modules.identity.roles import Actor
from ..modules.leads.commands import LeadCommands


def current_actor(request: Request) -> Actor | None:
    return getattr(request.state, "actor", None)


def lead_commands(request: Request) -> LeadCommands:
    return request.app.state.lead_commands
