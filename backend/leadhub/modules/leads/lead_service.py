"""
Lead workflow: validate, authorize, apply one state transition, then run the
side effects the state machine asked for.

Ordering inside every mutating command:
1. Load the canonical record(s); missing -> NotFound.
2. Authorize (no persistence before this).
3. Compute the transition (pure) and persist it with a write conditioned on
   the status that was read. A lost race surfaces as InvalidState; any other
   store failure aborts the command as Internal.
4. Side effects. Project list appends, workspace provisioning and
   notifications are auxiliary: failures are logged and reported as warnings,
   never as a failed command.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable

from ...db.dynamodb.errors import DdbConflict, DdbError
from ...errors import DependencyUnavailable, Internal, InvalidArgument, InvalidState, LeadHubError, NotFound
from ...infrastructure.storage.attachments import presign_get_attachment
from ...observability.logging import get_logger
from ...repositories.leads import leads_repo
from ...repositories.projects import projects_repo
from ...repositories.workspaces import workspaces_repo
from ...settings import settings
from ..dashboard import projections
from ..directory.directory_service import DirectoryService
from ..identity.access_control import require_access, require_role
from ..identity.roles import ROLE_PM, ROLE_VENDOR, Actor
from ..notifications import events
from ..notifications.dispatcher import NotificationDispatcher
from ..workspaces import provisioner
from . import state_machine as sm
from .schemas import (
    CreateProjectRequest,
    DecisionRequest,
    RespondRequest,
    SendLeadsRequest,
    UpdateResponseRequest,
    VendorDirectoryQuery,
    parse_model,
)

log = get_logger("leads")


@dataclass(slots=True)
class Outcome:
    value: Any
    warnings: list[str] = field(default_factory=list)


def _status_filter(status: str | None) -> str | None:
    s = str(status or "").strip()
    if not s:
        return None
    if s not in sm.ALL_STATUSES:
        raise InvalidArgument(message="Unknown lead status", details={"status": s, "allowed": list(sm.ALL_STATUSES)})
    return s


def _lead_summary(lead: dict[str, Any]) -> dict[str, Any]:
    vendor = lead.get("vendorDetails") or {}
    return {
        "leadId": lead.get("leadId"),
        "vendorId": lead.get("vendorId"),
        "vendorName": vendor.get("name"),
        "companyName": vendor.get("companyName"),
        "status": lead.get("status"),
    }


class LeadService:
    def __init__(
        self,
        *,
        directory: DirectoryService,
        dispatcher: NotificationDispatcher | None = None,
        workspace_url: Callable[[str | None], str | None] = settings.workspace_url,
        presign: Callable[..., dict[str, Any]] = presign_get_attachment,
    ):
        self.directory = directory
        self.dispatcher = dispatcher
        self._workspace_url = workspace_url
        self._presign = presign

    # ---- loading ----

    def _load_lead(self, lead_id: str) -> dict[str, Any]:
        lid = str(lead_id or "").strip()
        if not lid:
            raise InvalidArgument(message="leadId is required")
        lead = leads_repo.get_lead(lid)
        if not lead:
            raise NotFound(message="Lead not found", details={"leadId": lid})
        return lead

    def _load_project(self, project_id: str) -> dict[str, Any]:
        pid = str(project_id or "").strip()
        if not pid:
            raise InvalidArgument(message="projectId is required")
        project = projects_repo.get_project(pid)
        if not project:
            raise NotFound(message="Project not found", details={"projectId": pid})
        return project

    # ---- persistence ----

    def _persist(self, tr: sm.Transition) -> dict[str, Any]:
        try:
            return leads_repo.apply_transition(
                lead_id=tr.lead_id,
                expected_status=tr.expected_status,
                updates=tr.updates,
            )
        except DdbConflict as e:
            log.info("lead_transition_conflict", lead_id=tr.lead_id, expected=tr.expected_status, target=tr.next_status)
            raise InvalidState(
                message="Lead status changed concurrently; reload and retry",
                details={"leadId": tr.lead_id, "expectedStatus": tr.expected_status},
                cause=e,
            ) from e
        except DdbError as e:
            log.error("lead_transition_failed", lead_id=tr.lead_id, error=str(e))
            raise Internal(message="Failed to persist lead", details={"leadId": tr.lead_id}, cause=e) from e

    # ---- side effects ----

    def _append_project_vendor(self, eff: sm.AppendProjectVendor, warnings: list[str]) -> None:
        append = (
            projects_repo.append_invited_vendor
            if eff.list_name == "invited"
            else projects_repo.append_approved_vendor
        )
        try:
            appended = append(project_id=eff.project_id, entry=eff.entry)
        except (DdbError, ValueError) as e:
            log.warning(
                "project_vendor_append_failed",
                project_id=eff.project_id,
                vendor_id=eff.entry.get("vendorId"),
                list_name=eff.list_name,
                error=str(e),
            )
            warnings.append(f"Project {eff.list_name} vendor list was not updated for {eff.entry.get('vendorId')}")
            return
        if not appended:
            log.info("project_vendor_already_listed", project_id=eff.project_id, list_name=eff.list_name)

    def _notify(self, deliveries: list[tuple[str, dict[str, Any]]]) -> None:
        if not deliveries:
            return
        if self.dispatcher is None:
            log.info("notify_disabled", count=len(deliveries))
            return
        report = self.dispatcher.notify_many(deliveries)
        log.info("notify_dispatched", **report.to_dict())

    def _provision(self, eff: sm.ProvisionWorkspace, lead: dict[str, Any], warnings: list[str]):
        project_name = (lead.get("projectDetails") or {}).get("name")
        try:
            outcome = provisioner.create_or_get(
                project_id=eff.project_id,
                project_name=project_name,
                pm_id=eff.pm_id,
                vendor_id=eff.vendor_id,
                lead_id=eff.lead_id,
            )
        except (LeadHubError, DdbError) as e:
            log.warning("workspace_provision_failed", lead_id=eff.lead_id, project_id=eff.project_id, error=str(e))
            warnings.append("Workspace provisioning failed; the approval was recorded")
            return None

        try:
            projects_repo.set_project_workspace(project_id=eff.project_id, workspace_id=outcome.workspace_id)
        except DdbError as e:
            log.warning("project_workspace_link_failed", project_id=eff.project_id, error=str(e))
            warnings.append("Project was not linked to its workspace")
        return outcome

    # ---- commands ----

    def send_leads(self, actor: Actor, payload: Any) -> Outcome:
        req = parse_model(SendLeadsRequest, payload)
        if not req.projectId.strip() or not req.vendorIds:
            raise InvalidArgument(message="Project ID and vendor IDs array are required")
        details = req.leadDetails
        if details is None or not details.leadTitle.strip() or not details.leadDescription.strip():
            raise InvalidArgument(message="Lead title and description are required")

        project = self._load_project(req.projectId)
        require_access(actor, "project", project, "send_leads", message="Project not found or access denied")

        requested = [v for v in dict.fromkeys(str(x or "").strip() for x in req.vendorIds) if v]
        if not requested:
            raise InvalidArgument(message="Project ID and vendor IDs array are required")

        pid = project["projectId"]
        existing = {str(x.get("vendorId") or ""): x for x in leads_repo.list_all_leads_for_project(pid)}
        listed = {str(x.get("vendorId") or "") for x in project.get("invitedVendors") or []}
        skipped = [v for v in requested if v in existing or v in listed]
        to_send = [v for v in requested if v not in existing and v not in listed]

        warnings: list[str] = []
        # A previous send may have written the lead but not the project entry.
        for vendor_id in skipped:
            if vendor_id in existing and vendor_id not in listed:
                self._append_project_vendor(sm.invitation(existing[vendor_id]), warnings)

        now = leads_repo.now_iso()
        entries = self.directory.resolve_many("vendor", to_send)
        pm_name = actor.name or self.directory.resolve("pm", actor.id).name

        created: list[dict[str, Any]] = []
        effects: list[sm.SideEffect] = []
        failure: Internal | None = None
        detail_dict = details.model_dump(mode="json", exclude_none=True)
        for vendor_id in to_send:
            lead, lead_effects = sm.build_lead(
                lead_id=leads_repo.new_lead_id(),
                project=project,
                pm_id=actor.id,
                vendor_id=vendor_id,
                vendor_snapshot=entries[vendor_id].snapshot(),
                details=detail_dict,
                now=now,
            )
            try:
                stored = leads_repo.create_lead(lead)
            except DdbError as e:
                log.error("lead_create_failed", project_id=pid, vendor_id=vendor_id, error=str(e))
                failure = Internal(
                    message="Failed to create lead",
                    details={"vendorId": vendor_id, "createdLeadIds": [x["leadId"] for x in created]},
                    cause=e,
                )
                break
            if stored is None:
                log.info("lead_already_sent", project_id=pid, vendor_id=vendor_id)
                skipped.append(vendor_id)
                continue
            created.append(stored)
            effects.extend(lead_effects)

        # Leads written before a failure still get their project entry and notification.
        deliveries: list[tuple[str, dict[str, Any]]] = []
        by_vendor = {x["vendorId"]: x for x in created}
        for eff in effects:
            if isinstance(eff, sm.AppendProjectVendor):
                self._append_project_vendor(eff, warnings)
            elif isinstance(eff, sm.Notify):
                deliveries.append((eff.recipient_id, events.new_lead_event(by_vendor[eff.recipient_id], pm_name=pm_name)))
        self._notify(deliveries)

        if failure is not None:
            raise failure

        log.info("leads_sent", project_id=pid, sent=len(created), skipped=len(skipped))
        return Outcome(
            value={
                "message": f"Successfully sent leads to {len(created)} vendors",
                "projectId": pid,
                "sentAt": now,
                "leads": [_lead_summary(x) for x in created],
                "skippedVendorIds": skipped,
            },
            warnings=warnings,
        )

    def respond(self, actor: Actor, lead_id: str, payload: Any) -> Outcome:
        req = parse_model(RespondRequest, payload)
        lead = self._load_lead(lead_id)
        require_access(actor, "lead", lead, "respond", message="Access denied to this lead")
        if req.accepted is None:
            raise InvalidArgument(message="Accepted status (true/false) is required")

        tr = sm.vendor_respond(
            lead,
            accepted=req.accepted,
            message=req.message,
            proposed_budget=req.proposedBudget,
            proposed_timeline=req.proposedTimeline,
            attachments=req.attachments,
            now=leads_repo.now_iso(),
        )
        updated = self._persist(tr)
        self._notify(
            [(eff.recipient_id, events.lead_response_event(updated)) for eff in tr.effects if isinstance(eff, sm.Notify)]
        )
        log.info("lead_responded", lead_id=tr.lead_id, status=tr.next_status)
        return Outcome(value=updated)

    def update_response(self, actor: Actor, lead_id: str, payload: Any) -> Outcome:
        req = parse_model(UpdateResponseRequest, payload)
        lead = self._load_lead(lead_id)
        require_access(actor, "lead", lead, "update_response", message="Access denied to this lead")
        tr = sm.update_vendor_response(lead, patch=req.model_dump(), now=leads_repo.now_iso())
        updated = self._persist(tr)
        log.info("lead_response_updated", lead_id=tr.lead_id)
        return Outcome(value=updated)

    def decide(self, actor: Actor, lead_id: str, payload: Any) -> Outcome:
        req = parse_model(DecisionRequest, payload)
        lead = self._load_lead(lead_id)
        require_access(actor, "lead", lead, "decide", message="Access denied to this lead")
        if req.approved is None:
            raise InvalidArgument(message="Approved status (true/false) is required")

        tr = sm.pm_decide(
            lead,
            approved=req.approved,
            feedback=req.feedback,
            grant_workspace_access=req.workspaceAccess,
            now=leads_repo.now_iso(),
        )
        updated = self._persist(tr)

        warnings: list[str] = []
        deliveries: list[tuple[str, dict[str, Any]]] = []
        for eff in tr.effects:
            if isinstance(eff, sm.AppendProjectVendor):
                self._append_project_vendor(eff, warnings)
            elif isinstance(eff, sm.ProvisionWorkspace):
                outcome = self._provision(eff, updated, warnings)
                if outcome is None:
                    continue
                try:
                    updated = leads_repo.apply_transition(
                        lead_id=tr.lead_id,
                        expected_status=tr.next_status,
                        updates={"workspaceId": outcome.workspace_id},
                    )
                except DdbError as e:
                    log.warning("lead_workspace_link_failed", lead_id=tr.lead_id, error=str(e))
                    warnings.append("Lead was not linked to its workspace")
                    updated = {**updated, "workspaceId": outcome.workspace_id}
                if outcome.vendor_added:
                    deliveries.append(
                        (
                            eff.vendor_id,
                            events.workspace_access_event(
                                workspace_id=outcome.workspace_id,
                                project_id=eff.project_id,
                                project_name=(updated.get("projectDetails") or {}).get("name"),
                                access_level=provisioner.ACCESS_APPROVED_VENDOR,
                                workspace_url=self._workspace_url(outcome.workspace_id),
                            ),
                        )
                    )
            elif isinstance(eff, sm.Notify):
                deliveries.insert(
                    0,
                    (
                        eff.recipient_id,
                        events.pm_decision_event(updated, workspace_url=self._workspace_url(updated.get("workspaceId"))),
                    ),
                )
        self._notify(deliveries)

        log.info("lead_decided", lead_id=tr.lead_id, status=tr.next_status, warnings=len(warnings))
        return Outcome(value=updated, warnings=warnings)

    # ---- queries ----

    def leads_for_pm(
        self,
        actor: Actor,
        *,
        project_id: str | None = None,
        status: str | None = None,
        limit: int = 50,
        next_token: str | None = None,
    ) -> Outcome:
        require_role(actor, ROLE_PM, "list_leads")
        st = _status_filter(status)
        pid = str(project_id or "").strip() or None
        if pid:
            require_access(actor, "project", self._load_project(pid), "list_leads")
        page = leads_repo.list_leads_for_pm(pm_id=actor.id, project_id=pid, status=st, limit=limit, next_token=next_token)
        leads = page["data"]
        return Outcome(
            value={"leads": leads, "count": len(leads), "nextToken": page["nextToken"], "hasMore": bool(page["nextToken"])}
        )

    def leads_for_project(self, actor: Actor, project_id: str) -> Outcome:
        project = self._load_project(project_id)
        require_access(actor, "project", project, "list_leads", message="Project not found or access denied")
        leads = leads_repo.list_all_leads_for_project(project["projectId"])
        return Outcome(
            value={
                "projectId": project["projectId"],
                "projectName": project.get("name"),
                "leads": leads,
                "leadsByStatus": projections.group_by_status(leads),
                "summary": projections.project_summary(leads),
            }
        )

    def leads_for_vendor(
        self,
        actor: Actor,
        *,
        status: str | None = None,
        limit: int = 50,
        next_token: str | None = None,
    ) -> Outcome:
        require_role(actor, ROLE_VENDOR, "list_leads")
        page = leads_repo.list_leads_for_vendor(
            vendor_id=actor.id, status=_status_filter(status), limit=limit, next_token=next_token
        )
        leads = page["data"]
        return Outcome(
            value={
                "leads": leads,
                "leadsByStatus": projections.group_by_status(leads),
                "summary": projections.vendor_summary(leads),
                "nextToken": page["nextToken"],
            }
        )

    def lead_for_vendor(self, actor: Actor, lead_id: str) -> Outcome:
        lead = self._load_lead(lead_id)
        require_access(actor, "lead", lead, "view", message="Access denied to this lead")
        return Outcome(value=lead)

    def attachment_url(self, actor: Actor, lead_id: str) -> Outcome:
        lead = self._load_lead(lead_id)
        require_access(actor, "lead", lead, "download_attachment", message="Access denied to this lead")
        boq = lead.get("boqAttachment") if isinstance(lead.get("boqAttachment"), dict) else {}
        if not boq.get("key"):
            raise NotFound(message="No BOQ attachment for this lead", details={"leadId": lead.get("leadId")})
        try:
            signed = self._presign(bucket=boq.get("bucket"), key=boq["key"])
        except ValueError as e:
            raise NotFound(message="No BOQ attachment for this lead", details={"leadId": lead.get("leadId")}) from e
        except Exception as e:  # noqa: BLE001
            log.error("attachment_presign_failed", lead_id=lead.get("leadId"), error=str(e))
            raise DependencyUnavailable(message="Attachment storage is unavailable", cause=e) from e
        return Outcome(
            value={
                "url": signed["url"],
                "expiresIn": signed.get("expiresIn"),
                "fileName": boq.get("fileName") or str(boq["key"]).rsplit("/", 1)[-1],
                "contentType": boq.get("mimeType") or "application/pdf",
            }
        )

    def vendor_directory(self, actor: Actor, query: Any = None) -> Outcome:
        require_role(actor, ROLE_PM, "view_vendor_directory")
        q = parse_model(VendorDirectoryQuery, query)
        vendors = self.directory.search_vendors(
            search=q.search,
            specialization=q.specialization,
            location=q.location,
            min_rating=q.minRating,
        )
        return Outcome(value={"vendors": vendors, "total": len(vendors), "filters": q.model_dump()})

    def vendor_stats(self, actor: Actor) -> Outcome:
        require_role(actor, ROLE_VENDOR, "view_stats")
        return Outcome(value=projections.lead_stats(leads_repo.list_all_leads_for_vendor(actor.id)))

    def pm_stats(self, actor: Actor) -> Outcome:
        require_role(actor, ROLE_PM, "view_stats")
        leads = leads_repo.list_all_leads_for_pm(actor.id)
        projects = projects_repo.list_projects_for_pm(pm_id=actor.id, limit=200)["data"]
        return Outcome(value=projections.pm_stats(leads, projects))

    # ---- projects / workspaces ----

    def create_project(self, actor: Actor, payload: Any) -> Outcome:
        require_role(actor, ROLE_PM, "create_project")
        req = parse_model(CreateProjectRequest, payload)
        if not req.name.strip():
            raise InvalidArgument(message="Project name is required")
        project = projects_repo.create_project(
            pm_id=actor.id,
            name=req.name,
            description=req.description,
            location=req.location,
            category=req.category,
        )
        log.info("project_created", project_id=project.get("projectId"))
        return Outcome(value=project)

    def get_project(self, actor: Actor, project_id: str) -> Outcome:
        project = self._load_project(project_id)
        require_access(actor, "project", project, "view", message="Project not found or access denied")
        return Outcome(value=project)

    def workspace_access(self, actor: Actor, workspace_id: str) -> Outcome:
        wid = str(workspace_id or "").strip()
        if not wid:
            raise InvalidArgument(message="workspaceId is required")
        workspace = workspaces_repo.get_workspace(wid)
        if not workspace:
            raise NotFound(message="Workspace not found", details={"workspaceId": wid})
        require_access(actor, "workspace", workspace, "view", message="Access denied to this workspace")
        level = provisioner.access_level(workspace, actor)
        return Outcome(
            value={
                "workspaceId": wid,
                "projectId": workspace.get("projectId"),
                "accessLevel": level,
                "permissions": provisioner.permissions_for(workspace, actor),
                "hasAccess": level != provisioner.ACCESS_NONE,
            }
        )
