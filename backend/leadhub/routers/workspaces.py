from __future__ import annotations

from fastapi import APIRouter, Depends, Request

from ..modules.identity.roles import Actor
from ..modules.leads.commands import LeadCommands
from ..problem_details import result_response
from .deps import current_actor, lead_commands

router = APIRouter(tags=["workspaces"])


@router.get("/{workspaceId}/access")
def workspace_access(
    workspaceId: str,
    request: Request,
    actor: Actor | None = Depends(current_actor),
    commands: LeadCommands = Depends(lead_commands),
):
    return result_response(request, commands.get_workspace_access(actor, workspaceId))
