from __future__ import annotations

from fastapi import APIRouter, Body, Depends, Query, Request

from ..modules.identity.roles import Actor
from ..modules.leads.commands import LeadCommands
from ..problem_details import result_response
from .deps import current_actor, lead_commands

router = APIRouter(tags=["vendor-leads"])


@router.get("")
def list_vendor_leads(
    request: Request,
    status: str | None = None,
    limit: int = Query(50, ge=1, le=200),
    nextToken: str | None = None,
    actor: Actor | None = Depends(current_actor),
    commands: LeadCommands = Depends(lead_commands),
):
    res = commands.get_leads_for_vendor(actor, status=status, limit=limit, next_token=nextToken)
    return result_response(request, res)


@router.get("/stats")
def vendor_stats(
    request: Request,
    actor: Actor | None = Depends(current_actor),
    commands: LeadCommands = Depends(lead_commands),
):
    return result_response(request, commands.get_vendor_stats(actor), key="stats")


@router.get("/{leadId}")
def get_lead(
    leadId: str,
    request: Request,
    actor: Actor | None = Depends(current_actor),
    commands: LeadCommands = Depends(lead_commands),
):
    return result_response(request, commands.get_lead_for_vendor(actor, leadId), key="lead")


@router.post("/{leadId}/respond")
def respond(
    leadId: str,
    request: Request,
    body: dict = Body(default_factory=dict),
    actor: Actor | None = Depends(current_actor),
    commands: LeadCommands = Depends(lead_commands),
):
    return result_response(request, commands.respond_to_lead(actor, leadId, body), key="lead")


@router.put("/{leadId}/response")
def update_response(
    leadId: str,
    request: Request,
    body: dict = Body(default_factory=dict),
    actor: Actor | None = Depends(current_actor),
    commands: LeadCommands = Depends(lead_commands),
):
    return result_response(request, commands.update_lead_response(actor, leadId, body), key="lead")


@router.post("/{leadId}/boq-download")
def boq_download(
    leadId: str,
    request: Request,
    actor: Actor | None = Depends(current_actor),
    commands: LeadCommands = Depends(lead_commands),
):
    return result_response(request, commands.get_lead_attachment_url(actor, leadId))
