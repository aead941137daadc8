"""
Lead service for intake, stage updates and follow-up views.

Every stage change runs in one transaction that locks the lead row,
captures the pre-transition stage, writes the lead, and appends one
stage_history row. Closed deals (CLOSED_WON, CLOSED_LOST) are terminal.
"""

import logging
from datetime import datetime, timedelta
from enum import Enum
from typing import Callable
from uuid import UUID, uuid4

from core.config import PipelineConfig
from core.event_bus import EventBus
from core.events import LeadCreated, LeadStageChanged
from core.exceptions import (
    AdmissibilityError,
    ClosedDealImmutableError,
    InputValidationError,
    LeadNotFoundError,
    LostReasonRequiredError,
)
from core.follow_up import FollowUpStatus, calculate_next_follow_up, classify_follow_up
from core.models import (
    Activity, FollowUpLeads, Lead, LeadCreate, LeadUpdate, LeadWithActivities,
    LostReason, LostReasonCreate, PlannerView, Stage, StageHistory,
)
from core.services.lead_details_service import load_related_records
from core.services.lost_reason_service import write_lost_reason
from core.stage_validator import StageValidationResult, validate_transition
from core.store import LeadStore
from utils.timezone import now_utc, to_utc

logger = logging.getLogger(__name__)


def new_stage_history_row(
    lead_id: UUID,
    from_stage: Stage | None,
    to_stage: Stage,
    now: datetime,
    note: str | None,
) -> dict:
    """Row for the stage_history table."""
    return {
        "id": uuid4(),
        "lead_id": lead_id,
        "from_stage": from_stage.value if from_stage is not None else None,
        "to_stage": to_stage.value,
        "changed_at": now,
        "note": note,
    }


def _parse_stage(value: Stage | str) -> Stage:
    try:
        return Stage(value)
    except ValueError:
        valid = ", ".join(s.value for s in Stage)
        raise InputValidationError(f"Unknown stage '{value}'. Valid stages: {valid}")


class LeadService:
    """Service for lead operations."""

    def __init__(
        self,
        store: LeadStore,
        config: PipelineConfig | None = None,
        event_bus: EventBus | None = None,
        clock: Callable[[], datetime] = now_utc,
    ):
        self.store = store
        self.config = config or PipelineConfig()
        self.event_bus = event_bus
        self.clock = clock

    def _publish(self, event) -> None:
        if self.event_bus is not None:
            self.event_bus.publish(event)

    def create(self, data: LeadCreate) -> Lead:
        """
        Create a new lead at INQUIRY with its first follow-up scheduled.

        Args:
            data: Lead creation data

        Returns:
            Created lead
        """
        now = self.clock()
        lead_id = uuid4()
        follow_up = calculate_next_follow_up(
            Stage.INQUIRY, now, tz_name=self.config.business_timezone
        )

        row = {
            "id": lead_id,
            "company_name": data.company_name,
            "contact_name": data.contact_name,
            "contact_title": data.contact_title,
            "phone": data.phone,
            "email": data.email,
            "company_description": data.company_description,
            "lead_source": data.lead_source.value if data.lead_source else None,
            "current_stage": Stage.INQUIRY.value,
            "estimated_value": data.estimated_value,
            "next_follow_up_date": follow_up,
            "last_activity_date": None,
            "next_action_type": None,
            "next_action_description": None,
            "next_action_due_date": None,
            "is_archived": False,
            "archived_at": None,
            "archive_reason": None,
            "created_at": now,
            "updated_at": now,
        }

        with self.store.transaction() as session:
            created = session.insert_lead(row)
            session.insert_stage_history(
                new_stage_history_row(lead_id, None, Stage.INQUIRY, now, "Lead created")
            )

        lead = Lead.model_validate(created)
        logger.info(f"Lead {lead.id} created at {Stage.INQUIRY.value}")
        self._publish(LeadCreated.create(lead))
        return lead

    def get_by_id(self, lead_id: UUID) -> Lead | None:
        """
        Get lead by ID.

        Returns:
            Lead if found, None otherwise.
        """
        with self.store.transaction() as session:
            row = session.get_lead(lead_id)

        if row is None:
            return None

        return Lead.model_validate(row)

    def update(self, lead_id: UUID, data: LeadUpdate) -> Lead:
        """
        Update lead details and next-action fields.

        Stage and follow-up date only change through stage transitions, so
        this works on closed leads too.

        Args:
            lead_id: Lead UUID
            data: Fields to update (only non-None fields are changed)

        Returns:
            Updated lead

        Raises:
            LeadNotFoundError: If lead not found
        """
        fields = {
            field: value.value if isinstance(value, Enum) else value
            for field, value in data.model_dump(exclude_none=True).items()
        }

        with self.store.transaction() as session:
            row = session.get_lead(lead_id, for_update=True)
            if row is None:
                raise LeadNotFoundError(lead_id)

            if not fields:
                return Lead.model_validate(row)

            fields["updated_at"] = self.clock()
            row = session.update_lead(lead_id, fields)

        logger.info(f"Lead {lead_id} updated: {', '.join(sorted(fields))}")
        return Lead.model_validate(row)

    def validate_transition(
        self,
        lead_id: UUID,
        target_stage: Stage | str,
        force: bool = False,
    ) -> StageValidationResult:
        """
        Preview whether a lead may move to target_stage. Writes nothing.

        An unknown lead yields valid=False with a NOT_FOUND error rather than raising.
        """
        target = _parse_stage(target_stage)

        with self.store.transaction() as session:
            row = session.get_lead(lead_id)
            lead = Lead.model_validate(row) if row else None
            related = load_related_records(session, lead_id) if lead else None

        return validate_transition(lead, related, target, self.clock(), force)

    def update_stage(
        self,
        lead_id: UUID,
        target_stage: Stage | str,
        note: str | None = None,
        demo_date: datetime | None = None,
        lost_reason: LostReasonCreate | None = None,
        force: bool = False,
    ) -> Lead:
        """
        Move a lead to another stage.

        Args:
            lead_id: Lead UUID
            target_stage: Stage to move to
            note: History note (defaults to "Stage changed from X to Y")
            demo_date: Scheduled demo, drives the DEMO_SCHEDULED follow-up
            lost_reason: Required when target_stage is CLOSED_LOST
            force: Proceed despite stage validator warnings

        Returns:
            Updated lead

        Raises:
            LeadNotFoundError: If lead not found
            ClosedDealImmutableError: If lead is closed and target differs
            LostReasonRequiredError: If CLOSED_LOST without lost_reason
            AdmissibilityError: If the stage validator rejects the move
            InputValidationError: Unknown stage or naive demo_date
        """
        target = _parse_stage(target_stage)
        if demo_date is not None:
            try:
                demo_date = to_utc(demo_date)
            except ValueError as e:
                raise InputValidationError(f"demo_date: {e}")

        now = self.clock()

        with self.store.transaction() as session:
            row = session.get_lead(lead_id, for_update=True)
            if row is None:
                raise LeadNotFoundError(lead_id)

            current = Lead.model_validate(row)
            from_stage = current.current_stage

            if current.is_closed and target != from_stage:
                logger.info(f"Rejected {from_stage.value} -> {target.value} for closed lead {lead_id}")
                raise ClosedDealImmutableError(lead_id, from_stage.value)

            if target == Stage.CLOSED_LOST and lost_reason is None:
                raise LostReasonRequiredError(lead_id)

            related = load_related_records(session, lead_id)
            if target == Stage.CLOSED_LOST:
                pending = LostReason(
                    lead_id=lead_id,
                    reason=lost_reason.reason,
                    competitor_name=lost_reason.competitor_name,
                    lost_date=now,
                    notes=lost_reason.notes,
                    created_at=now,
                    updated_at=now,
                )
                related = related.model_copy(update={"lost_reason": pending})

            result = validate_transition(current, related, target, now, force)
            if not result.valid:
                logger.info(f"Rejected {from_stage.value} -> {target.value} for lead {lead_id}")
                raise AdmissibilityError(target.value, result)

            if demo_date is None and related.demo_details is not None:
                demo_date = related.demo_details.demo_date

            follow_up = calculate_next_follow_up(
                target, now, demo_date, tz_name=self.config.business_timezone
            )

            updated = session.update_lead(lead_id, {
                "current_stage": target.value,
                "last_activity_date": now,
                "next_follow_up_date": follow_up,
                "updated_at": now,
            })

            session.insert_stage_history(new_stage_history_row(
                lead_id, from_stage, target, now,
                note or f"Stage changed from {from_stage.value} to {target.value}",
            ))

            if target == Stage.CLOSED_LOST:
                write_lost_reason(session, lead_id, lost_reason, now)

        lead = Lead.model_validate(updated)
        logger.info(f"Lead {lead_id} moved {from_stage.value} -> {target.value}")
        self._publish(LeadStageChanged.create(lead, from_stage.value, target.value))
        return lead

    def get_stage_history(self, lead_id: UUID) -> list[StageHistory]:
        """Stage history for a lead, oldest first."""
        with self.store.transaction() as session:
            rows = session.list_stage_history(lead_id)

        return [StageHistory.model_validate(row) for row in rows]

    def get_follow_up_leads(self, now: datetime | None = None) -> FollowUpLeads:
        """
        Partition active leads by follow-up urgency.

        Upcoming follow-ups further out than the configured window are
        dropped. Each lead carries its most recent activities.

        Args:
            now: Reference instant (defaults to the service clock)

        Returns:
            FollowUpLeads with overdue, today and upcoming lists, each
            ordered by next_follow_up_date ascending.
        """
        now = now or self.clock()
        tz_name = self.config.business_timezone
        horizon = now + timedelta(days=self.config.upcoming_window_days)

        buckets: dict[FollowUpStatus, list[Lead]] = {
            FollowUpStatus.OVERDUE: [],
            FollowUpStatus.TODAY: [],
            FollowUpStatus.UPCOMING: [],
        }

        with self.store.transaction() as session:
            for row in session.list_follow_up_candidates():
                lead = Lead.model_validate(row)
                status = classify_follow_up(lead.next_follow_up_date, now, tz_name)

                if status == FollowUpStatus.NONE:
                    continue
                if status == FollowUpStatus.UPCOMING and lead.next_follow_up_date > horizon:
                    continue

                buckets[status].append(lead)

            lead_ids = [lead.id for leads in buckets.values() for lead in leads]
            activities = session.list_recent_activities(
                lead_ids, self.config.recent_activity_limit
            )

        def attach(leads: list[Lead]) -> list[LeadWithActivities]:
            return [
                LeadWithActivities(
                    **lead.model_dump(),
                    recent_activities=[
                        Activity.model_validate(a) for a in activities.get(lead.id, [])
                    ],
                )
                for lead in leads
            ]

        return FollowUpLeads(
            overdue=attach(buckets[FollowUpStatus.OVERDUE]),
            today=attach(buckets[FollowUpStatus.TODAY]),
            upcoming=attach(buckets[FollowUpStatus.UPCOMING]),
        )

    def get_planner(self, now: datetime | None = None) -> PlannerView:
        """
        Group non-archived leads by next-action due date.

        Closed leads stay in view here: their handoff and recheck actions are
        scheduled through the next-action fields. Actions due after the
        configured window are left out. no_date lists open, non-nurture
        leads missing either a next action or a follow-up, most recently
        updated first.
        """
        now = now or self.clock()
        tz_name = self.config.business_timezone
        horizon = now + timedelta(days=self.config.upcoming_window_days)

        view = PlannerView()

        with self.store.transaction() as session:
            scheduled = session.list_next_action_leads()
            unscheduled = session.list_unscheduled_leads()

        for row in scheduled:
            lead = Lead.model_validate(row)
            status = classify_follow_up(lead.next_action_due_date, now, tz_name)

            if status == FollowUpStatus.OVERDUE:
                view.overdue.append(lead)
            elif status == FollowUpStatus.TODAY:
                view.today.append(lead)
            elif lead.next_action_due_date <= horizon:
                view.this_week.append(lead)

        view.no_date = [Lead.model_validate(row) for row in unscheduled]
        return view

    def archive(self, lead_id: UUID, reason: str | None = None) -> Lead:
        """
        Soft delete a lead. Archived leads drop out of follow-up views.

        Raises:
            LeadNotFoundError: If lead not found
        """
        now = self.clock()
        with self.store.transaction() as session:
            if session.get_lead(lead_id, for_update=True) is None:
                raise LeadNotFoundError(lead_id)
            row = session.update_lead(lead_id, {
                "is_archived": True,
                "archived_at": now,
                "archive_reason": reason,
                "updated_at": now,
            })

        return Lead.model_validate(row)

    def restore(self, lead_id: UUID) -> Lead:
        """
        Undo archive.

        Raises:
            LeadNotFoundError: If lead not found
        """
        with self.store.transaction() as session:
            if session.get_lead(lead_id, for_update=True) is None:
                raise LeadNotFoundError(lead_id)
            row = session.update_lead(lead_id, {
                "is_archived": False,
                "archived_at": None,
                "archive_reason": None,
                "updated_at": self.clock(),
            })

        return Lead.model_validate(row)

    def list_archived(self) -> list[Lead]:
        """Archived leads, most recently archived first."""
        with self.store.transaction() as session:
            rows = session.list_archived_leads()

        return [Lead.model_validate(row) for row in rows]

    def purge(self, lead_id: UUID) -> bool:
        """
        Hard delete a lead with its history, activities and side records.

        Returns:
            True if deleted, False if not found
        """
        with self.store.transaction() as session:
            deleted = session.delete_lead(lead_id)

        if deleted:
            logger.info(f"Lead {lead_id} purged")
        return deleted
