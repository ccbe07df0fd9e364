from __future__ import annotations

from fastapi import APIRouter, Body, Depends, Query, Request

from ..modules.identity.roles import Actor
from ..modules.leads.commands import LeadCommands
from ..problem_details import result_response
from .deps import current_actor, lead_commands

router = APIRouter(tags=["pm-leads"])


@router.post("/send-leads")
def send_leads(
    request: Request,
    body: dict = Body(default_factory=dict),
    actor: Actor | None = Depends(current_actor),
    commands: LeadCommands = Depends(lead_commands),
):
    return result_response(request, commands.send_leads(actor, body), success_status=201)


@router.get("")
def list_pm_leads(
    request: Request,
    projectId: str | None = None,
    status: str | None = None,
    limit: int = Query(50, ge=1, le=200),
    nextToken: str | None = None,
    actor: Actor | None = Depends(current_actor),
    commands: LeadCommands = Depends(lead_commands),
):
    res = commands.get_leads_for_pm(actor, project_id=projectId, status=status, limit=limit, next_token=nextToken)
    return result_response(request, res)


@router.get("/vendor-directory")
def vendor_directory(
    request: Request,
    search: str | None = None,
    specialization: str | None = None,
    location: str | None = None,
    minRating: float | None = None,
    actor: Actor | None = Depends(current_actor),
    commands: LeadCommands = Depends(lead_commands),
):
    query = {"search": search, "specialization": specialization, "location": location, "minRating": minRating}
    return result_response(request, commands.get_vendor_directory(actor, query))


@router.get("/stats")
def pm_stats(
    request: Request,
    actor: Actor | None = Depends(current_actor),
    commands: LeadCommands = Depends(lead_commands),
):
    return result_response(request, commands.get_pm_stats(actor), key="stats")


@router.get("/project/{projectId}")
def project_leads(
    projectId: str,
    request: Request,
    actor: Actor | None = Depends(current_actor),
    commands: LeadCommands = Depends(lead_commands),
):
    return result_response(request, commands.get_leads_for_project(actor, projectId))


@router.put("/{leadId}/decision")
def decide(
    leadId: str,
    request: Request,
    body: dict = Body(default_factory=dict),
    actor: Actor | None = Depends(current_actor),
    commands: LeadCommands = Depends(lead_commands),
):
    return result_response(request, commands.decide_on_lead(actor, leadId, body), key="lead")
