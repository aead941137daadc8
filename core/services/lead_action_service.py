"""
Lead action service: close as won, close as lost, move to nurture.

Each action is one transaction that locks the lead, captures its stage
before any write, then performs the stage write, any side-record upsert,
a NOTE activity, and a stage_history row. A failure at any step rolls
back all of them.
"""

import logging
from datetime import datetime, timedelta
from typing import Callable
from uuid import UUID

from core.config import PipelineConfig
from core.event_bus import EventBus
from core.events import LeadClosedLost, LeadClosedWon, LeadMovedToNurture
from core.exceptions import ClosedDealImmutableError, LeadNotFoundError, validate_input
from core.models import (
    ActivityType, CloseLostInput, CloseWonInput, Lead, LostReasonCreate,
    NURTURE_STAGES, NurtureInput, Stage,
)
from core.services.activity_service import new_activity_row
from core.services.lead_service import new_stage_history_row
from core.services.lost_reason_service import write_lost_reason
from core.store import LeadStore, LeadStoreSession
from utils.timezone import now_utc

logger = logging.getLogger(__name__)


class LeadActionService:
    """Service for terminal and nurture transitions."""

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

    def _lock_open_lead(self, session: LeadStoreSession, lead_id: UUID) -> Lead:
        """Lock the lead row and refuse closed deals."""
        row = session.get_lead(lead_id, for_update=True)
        if row is None:
            raise LeadNotFoundError(lead_id)

        lead = Lead.model_validate(row)
        if lead.is_closed:
            logger.info(f"Rejected action on closed lead {lead_id} ({lead.current_stage.value})")
            raise ClosedDealImmutableError(lead_id, lead.current_stage.value)
        return lead

    def close_as_won(self, lead_id: UUID, notes: str) -> Lead:
        """
        Close a deal as won and schedule the handoff task.

        Args:
            lead_id: Lead UUID
            notes: Closing notes (required)

        Returns:
            Updated lead in CLOSED_WON

        Raises:
            InputValidationError: If notes empty
            LeadNotFoundError: If lead not found
            ClosedDealImmutableError: If lead already closed
        """
        data = validate_input(CloseWonInput, notes=notes)
        now = self.clock()

        with self.store.transaction() as session:
            original_stage = self._lock_open_lead(session, lead_id).current_stage

            row = session.update_lead(lead_id, {
                "current_stage": Stage.CLOSED_WON.value,
                "next_follow_up_date": None,
                "last_activity_date": now,
                "next_action_type": ActivityType.TASK.value,
                "next_action_description": "Complete handoff workflow",
                "next_action_due_date": now + timedelta(days=self.config.won_handoff_days),
                "updated_at": now,
            })

            session.insert_activity(new_activity_row(
                lead_id, ActivityType.NOTE, "Deal Closed - Won", now,
                notes=data.notes, completed=True,
            ))

            session.insert_stage_history(new_stage_history_row(
                lead_id, original_stage, Stage.CLOSED_WON, now, data.notes
            ))

        lead = Lead.model_validate(row)
        logger.info(f"Lead {lead_id} closed as won from {original_stage.value}")
        self._publish(LeadClosedWon.create(lead, original_stage.value))
        return lead

    def close_as_lost(
        self,
        lead_id: UUID,
        competitor_name: str,
        reason: str,
        notes: str,
    ) -> Lead:
        """
        Close a deal as lost, recording who won it and why.

        Args:
            lead_id: Lead UUID
            competitor_name: Competitor the deal went to (required)
            reason: LostReasonCategory value (required)
            notes: Closing notes (required)

        Returns:
            Updated lead in CLOSED_LOST

        Raises:
            InputValidationError: If any field is missing or reason is unknown
            LeadNotFoundError: If lead not found
            ClosedDealImmutableError: If lead already closed
        """
        data = validate_input(
            CloseLostInput, competitor_name=competitor_name, reason=reason, notes=notes
        )
        now = self.clock()

        with self.store.transaction() as session:
            original_stage = self._lock_open_lead(session, lead_id).current_stage

            row = session.update_lead(lead_id, {
                "current_stage": Stage.CLOSED_LOST.value,
                "next_follow_up_date": None,
                "last_activity_date": now,
                "next_action_type": ActivityType.EMAIL.value,
                "next_action_description": "Follow up to check if situation changed",
                "next_action_due_date": now + timedelta(days=self.config.lost_recheck_days),
                "updated_at": now,
            })

            write_lost_reason(
                session,
                lead_id,
                LostReasonCreate(
                    reason=data.reason,
                    competitor_name=data.competitor_name,
                    notes=data.notes,
                ),
                now,
            )

            session.insert_activity(new_activity_row(
                lead_id, ActivityType.NOTE, "Deal Closed - Lost", now,
                notes=(
                    f"Lost to: {data.competitor_name}\n"
                    f"Reason: {data.reason.value}\n\n"
                    f"{data.notes}"
                ),
                completed=True,
            ))

            session.insert_stage_history(new_stage_history_row(
                lead_id, original_stage, Stage.CLOSED_LOST, now, data.notes
            ))

        lead = Lead.model_validate(row)
        logger.info(
            f"Lead {lead_id} closed as lost from {original_stage.value} "
            f"({data.reason.value}, {data.competitor_name})"
        )
        self._publish(LeadClosedLost.create(
            lead, original_stage.value, data.reason.value, data.competitor_name
        ))
        return lead

    def move_to_nurture(self, lead_id: UUID, nurture_period: int, notes: str) -> Lead:
        """
        Park a lead in NURTURE_30_DAY or NURTURE_90_DAY.

        Both next_follow_up_date and next_action_due_date are set to
        now + nurture_period days.

        Args:
            lead_id: Lead UUID
            nurture_period: 30 or 90
            notes: Reason for nurturing (required)

        Returns:
            Updated lead in the nurture stage

        Raises:
            InputValidationError: If period not 30/90 or notes empty
            LeadNotFoundError: If lead not found
            ClosedDealImmutableError: If lead already closed
        """
        data = validate_input(NurtureInput, nurture_period=nurture_period, notes=notes)
        new_stage = NURTURE_STAGES[data.nurture_period]
        now = self.clock()
        follow_up = now + timedelta(days=data.nurture_period)

        with self.store.transaction() as session:
            original_stage = self._lock_open_lead(session, lead_id).current_stage

            row = session.update_lead(lead_id, {
                "current_stage": new_stage.value,
                "last_activity_date": now,
                "next_action_type": ActivityType.EMAIL.value,
                "next_action_description": "Check in to see if timing has improved",
                "next_action_due_date": follow_up,
                "next_follow_up_date": follow_up,
                "updated_at": now,
            })

            session.insert_activity(new_activity_row(
                lead_id, ActivityType.NOTE,
                f"Moved to Nurture ({data.nurture_period}d)", now,
                notes=data.notes, completed=True,
            ))

            session.insert_stage_history(new_stage_history_row(
                lead_id, original_stage, new_stage, now, data.notes
            ))

        lead = Lead.model_validate(row)
        logger.info(f"Lead {lead_id} moved to {new_stage.value} from {original_stage.value}")
        self._publish(LeadMovedToNurture.create(lead, original_stage.value, data.nurture_period))
        return lead
