"""/api/leads: lead intake, stage transitions and follow-up views."""

from datetime import datetime
from typing import Any
from uuid import UUID

from fastapi import APIRouter, Query, Request
from pydantic import BaseModel

from api.base import success_response
from core.exceptions import validate_input
from core.models import (
    ActivityCreate, DemoDetailsCreate, LeadCreate, LeadUpdate, LostReasonCreate,
    OrganizationInfoCreate, ProposalCreate,
)


# Bodies stay loose; the services own the field rules and raise
# InputValidationError, so every validation failure has one envelope.

class StageUpdateRequest(BaseModel):
    stage: str
    note: str | None = None
    demo_date: datetime | None = None
    lost_reason: dict[str, Any] | None = None
    force: bool = False


class CloseWonRequest(BaseModel):
    notes: str | None = None


class CloseLostRequest(BaseModel):
    competitor_name: str | None = None
    reason: str | None = None
    notes: str | None = None


class NurtureRequest(BaseModel):
    nurture_period: int | None = None
    notes: str | None = None


class LostReasonRequest(BaseModel):
    reason: str | None = None
    competitor_name: str | None = None
    notes: str | None = None


class ArchiveRequest(BaseModel):
    reason: str | None = None


def _ok(request: Request, data: Any) -> dict:
    request_id = getattr(request.state, "request_id", None)
    return success_response(data, request_id).model_dump(mode="json")


def create_leads_router(services: dict) -> APIRouter:
    router = APIRouter(prefix="/leads")

    lead_svc = services["lead"]
    action_svc = services["lead_action"]
    activity_svc = services["activity"]
    details_svc = services["lead_details"]
    lost_reason_svc = services["lost_reason"]

    # -------------------------------------------------------------------------
    # Collection routes (registered before /{lead_id})
    # -------------------------------------------------------------------------

    @router.post("", status_code=201)
    async def create_lead(request: Request, body: dict[str, Any]):
        lead = lead_svc.create(validate_input(LeadCreate, **body))
        return _ok(request, lead.model_dump(mode="json"))

    @router.get("/follow-ups")
    async def follow_ups(request: Request):
        result = lead_svc.get_follow_up_leads()
        return _ok(request, result.model_dump(mode="json"))

    @router.get("/archived")
    async def archived(request: Request):
        return _ok(request, [lead.model_dump(mode="json") for lead in lead_svc.list_archived()])

    @router.get("/planner")
    async def planner(request: Request):
        return _ok(request, lead_svc.get_planner().model_dump(mode="json"))

    # -------------------------------------------------------------------------
    # Single lead
    # -------------------------------------------------------------------------

    @router.get("/{lead_id}")
    async def get_lead(request: Request, lead_id: UUID):
        lead = lead_svc.get_by_id(lead_id)
        if lead is None:
            raise ValueError(f"Lead {lead_id} not found")
        return _ok(request, lead.model_dump(mode="json"))

    @router.patch("/{lead_id}")
    async def update_lead(request: Request, lead_id: UUID, body: dict[str, Any]):
        lead = lead_svc.update(lead_id, validate_input(LeadUpdate, **body))
        return _ok(request, lead.model_dump(mode="json"))

    @router.get("/{lead_id}/history")
    async def stage_history(request: Request, lead_id: UUID):
        history = lead_svc.get_stage_history(lead_id)
        return _ok(request, [h.model_dump(mode="json") for h in history])

    @router.get("/{lead_id}/validate-stage")
    async def validate_stage(
        request: Request,
        lead_id: UUID,
        stage: str = Query(...),
        force: bool = Query(False),
    ):
        result = lead_svc.validate_transition(lead_id, stage, force)
        return _ok(request, result.model_dump(mode="json"))

    @router.post("/{lead_id}/stage")
    async def update_stage(request: Request, lead_id: UUID, body: StageUpdateRequest):
        lost_reason = (
            validate_input(LostReasonCreate, **body.lost_reason)
            if body.lost_reason is not None else None
        )
        lead = lead_svc.update_stage(
            lead_id,
            body.stage,
            note=body.note,
            demo_date=body.demo_date,
            lost_reason=lost_reason,
            force=body.force,
        )
        return _ok(request, lead.model_dump(mode="json"))

    @router.post("/{lead_id}/close-won")
    async def close_won(request: Request, lead_id: UUID, body: CloseWonRequest):
        lead = action_svc.close_as_won(lead_id, body.notes)
        return _ok(request, lead.model_dump(mode="json"))

    @router.post("/{lead_id}/close-lost")
    async def close_lost(request: Request, lead_id: UUID, body: CloseLostRequest):
        lead = action_svc.close_as_lost(
            lead_id, body.competitor_name, body.reason, body.notes
        )
        return _ok(request, lead.model_dump(mode="json"))

    @router.post("/{lead_id}/nurture")
    async def nurture(request: Request, lead_id: UUID, body: NurtureRequest):
        lead = action_svc.move_to_nurture(lead_id, body.nurture_period, body.notes)
        return _ok(request, lead.model_dump(mode="json"))

    @router.post("/{lead_id}/archive")
    async def archive(request: Request, lead_id: UUID, body: ArchiveRequest | None = None):
        lead = lead_svc.archive(lead_id, body.reason if body else None)
        return _ok(request, lead.model_dump(mode="json"))

    @router.post("/{lead_id}/restore")
    async def restore(request: Request, lead_id: UUID):
        return _ok(request, lead_svc.restore(lead_id).model_dump(mode="json"))

    @router.delete("/{lead_id}")
    async def purge(request: Request, lead_id: UUID):
        if not lead_svc.purge(lead_id):
            raise ValueError(f"Lead {lead_id} not found")
        return _ok(request, {"deleted": True})

    # -------------------------------------------------------------------------
    # Activities and side records
    # -------------------------------------------------------------------------

    @router.get("/{lead_id}/activities")
    async def list_activities(request: Request, lead_id: UUID):
        activities = activity_svc.list_for_lead(lead_id)
        return _ok(request, [a.model_dump(mode="json") for a in activities])

    @router.post("/{lead_id}/activities", status_code=201)
    async def log_activity(request: Request, lead_id: UUID, body: dict[str, Any]):
        activity = activity_svc.log(lead_id, validate_input(ActivityCreate, **body))
        return _ok(request, activity.model_dump(mode="json"))

    @router.post("/{lead_id}/activities/{activity_id}/complete")
    async def complete_activity(request: Request, lead_id: UUID, activity_id: UUID):
        activity = activity_svc.complete(activity_id, lead_id=lead_id)
        return _ok(request, activity.model_dump(mode="json"))

    @router.get("/{lead_id}/related")
    async def related_records(request: Request, lead_id: UUID):
        related = details_svc.get_related_records(lead_id)
        return _ok(request, related.model_dump(mode="json"))

    @router.put("/{lead_id}/lost-reason")
    async def put_lost_reason(request: Request, lead_id: UUID, body: LostReasonRequest):
        record = lost_reason_svc.upsert(
            lead_id, body.reason, competitor_name=body.competitor_name, notes=body.notes
        )
        return _ok(request, record.model_dump(mode="json"))

    @router.put("/{lead_id}/organization")
    async def put_organization(request: Request, lead_id: UUID, body: dict[str, Any]):
        record = details_svc.upsert_organization(
            lead_id, validate_input(OrganizationInfoCreate, **body)
        )
        return _ok(request, record.model_dump(mode="json"))

    @router.put("/{lead_id}/demo")
    async def put_demo(request: Request, lead_id: UUID, body: dict[str, Any]):
        record = details_svc.upsert_demo(lead_id, validate_input(DemoDetailsCreate, **body))
        return _ok(request, record.model_dump(mode="json"))

    @router.put("/{lead_id}/proposal")
    async def put_proposal(request: Request, lead_id: UUID, body: dict[str, Any]):
        record = details_svc.upsert_proposal(lead_id, validate_input(ProposalCreate, **body))
        return _ok(request, record.model_dump(mode="json"))

    return router
