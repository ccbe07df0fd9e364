from __future__ import annotations

from typing import Any, Callable

from ...db.dynamodb.errors import DdbError, DdbValidation
from ...errors import CommandResult, Internal, InvalidArgument, LeadHubError
from ...observability.logging import get_logger
from ..identity.roles import Actor, make_actor
from .lead_service import LeadService, Outcome

log = get_logger("leads.commands")


class LeadCommands:
    """
    Command boundary of the lead workflow.

    Every call takes the caller identity (already verified by the edge) and
    returns a `CommandResult`; no exception escapes for expected failures.
    """

    def __init__(self, service: LeadService):
        self.service = service

    def _run(self, op: str, actor: Actor | None, fn: Callable[[Actor], Outcome]) -> CommandResult[Any]:
        try:
            if actor is None:
                raise InvalidArgument(message="Caller identity and role are required")
            out = fn(actor)
            return CommandResult.success(out.value, warnings=out.warnings)
        except LeadHubError as e:
            log.info("command_rejected", op=op, kind=e.kind.value, reason=e.message)
            return CommandResult.failure(e)
        except DdbValidation as e:
            return CommandResult.failure(InvalidArgument(message=e.message))
        except DdbError as e:
            log.error("command_store_failed", op=op, error=str(e), operation=e.operation)
            return CommandResult.failure(Internal(message="Data store request failed"))
        except Exception as e:  # noqa: BLE001
            log.exception("command_failed", op=op, error=str(e))
            return CommandResult.failure(Internal(message="Unexpected error"))

    @staticmethod
    def actor(actor_id: Any, role: Any, *, name: str | None = None) -> Actor | None:
        return make_actor(actor_id, role, name=name)

    # ---- PM ----

    def send_leads(self, actor: Actor | None, payload: Any) -> CommandResult[Any]:
        return self._run("sendLeads", actor, lambda a: self.service.send_leads(a, payload))

    def get_leads_for_pm(
        self,
        actor: Actor | None,
        *,
        project_id: str | None = None,
        status: str | None = None,
        limit: int = 50,
        next_token: str | None = None,
    ) -> CommandResult[Any]:
        return self._run(
            "getLeadsForPM",
            actor,
            lambda a: self.service.leads_for_pm(
                a, project_id=project_id, status=status, limit=limit, next_token=next_token
            ),
        )

    def get_leads_for_project(self, actor: Actor | None, project_id: str) -> CommandResult[Any]:
        return self._run("getLeadsForProject", actor, lambda a: self.service.leads_for_project(a, project_id))

    def decide_on_lead(self, actor: Actor | None, lead_id: str, payload: Any) -> CommandResult[Any]:
        return self._run("decideOnLead", actor, lambda a: self.service.decide(a, lead_id, payload))

    def get_vendor_directory(self, actor: Actor | None, query: Any = None) -> CommandResult[Any]:
        return self._run("getVendorDirectory", actor, lambda a: self.service.vendor_directory(a, query))

    def get_pm_stats(self, actor: Actor | None) -> CommandResult[Any]:
        return self._run("getPMStats", actor, self.service.pm_stats)

    def create_project(self, actor: Actor | None, payload: Any) -> CommandResult[Any]:
        return self._run("createProject", actor, lambda a: self.service.create_project(a, payload))

    def get_project(self, actor: Actor | None, project_id: str) -> CommandResult[Any]:
        return self._run("getProject", actor, lambda a: self.service.get_project(a, project_id))

    # ---- vendor ----

    def get_leads_for_vendor(
        self,
        actor: Actor | None,
        *,
        status: str | None = None,
        limit: int = 50,
        next_token: str | None = None,
    ) -> CommandResult[Any]:
        return self._run(
            "getLeadsForVendor",
            actor,
            lambda a: self.service.leads_for_vendor(a, status=status, limit=limit, next_token=next_token),
        )

    def get_lead_for_vendor(self, actor: Actor | None, lead_id: str) -> CommandResult[Any]:
        return self._run("getLeadForVendor", actor, lambda a: self.service.lead_for_vendor(a, lead_id))

    def respond_to_lead(self, actor: Actor | None, lead_id: str, payload: Any) -> CommandResult[Any]:
        return self._run("respondToLead", actor, lambda a: self.service.respond(a, lead_id, payload))

    def update_lead_response(self, actor: Actor | None, lead_id: str, payload: Any) -> CommandResult[Any]:
        return self._run("updateLeadResponse", actor, lambda a: self.service.update_response(a, lead_id, payload))

    def get_lead_attachment_url(self, actor: Actor | None, lead_id: str) -> CommandResult[Any]:
        return self._run("getLeadAttachmentUrl", actor, lambda a: self.service.attachment_url(a, lead_id))

    def get_vendor_stats(self, actor: Actor | None) -> CommandResult[Any]:
        return self._run("getVendorStats", actor, self.service.vendor_stats)

    # ---- workspace ----

    def get_workspace_access(self, actor: Actor | None, workspace_id: str) -> CommandResult[Any]:
        return self._run("getWorkspaceAccess", actor, lambda a: self.service.workspace_access(a, workspace_id))
