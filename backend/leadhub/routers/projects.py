from __future__ import annotations

from fastapi import APIRouter, Body, Depends, Request

from ..modules.identity.roles import Actor
from ..modules.leads.commands import LeadCommands
from ..problem_details import result_response
from .deps import current_actor, lead_commands

router = APIRouter(tags=["projects"])


@router.post("")
def create_project(
    request: Request,
    body: dict = Body(default_factory=dict),
    actor: Actor | None = Depends(current_actor),
    commands: LeadCommands = Depends(lead_commands),
):
    return result_response(request, commands.create_project(actor, body), key="project", success_status=201)


@router.get("/{projectId}")
def get_project(
    projectId: str,
    request: Request,
    actor: Actor | None = Depends(current_actor),
    commands: LeadCommands = Depends(lead_commands),
):
    return result_response(request, commands.get_project(actor, projectId), key="project")
