"""Lost reason service. At most one record per lead, replaced on every upsert."""

import logging
from datetime import datetime
from typing import Callable
from uuid import UUID

from core.exceptions import LeadNotFoundError, validate_input
from core.models import LostReason, LostReasonCreate, LostReasonCategory
from core.store import LeadStore, LeadStoreSession
from utils.timezone import now_utc

logger = logging.getLogger(__name__)


def write_lost_reason(
    session: LeadStoreSession,
    lead_id: UUID,
    data: LostReasonCreate,
    now: datetime,
) -> LostReason:
    """Create or replace the lead's lost reason inside an open session."""
    row = session.upsert_side_record(
        "lost_reasons",
        lead_id,
        {
            "reason": data.reason.value,
            "competitor_name": data.competitor_name,
            "lost_date": now,
            "notes": data.notes,
        },
        now,
    )
    return LostReason.model_validate(row)


class LostReasonService:
    """Service for lost reason records."""

    def __init__(self, store: LeadStore, clock: Callable[[], datetime] = now_utc):
        self.store = store
        self.clock = clock

    def upsert(
        self,
        lead_id: UUID,
        reason: LostReasonCategory | str,
        competitor_name: str | None = None,
        notes: str | None = None,
    ) -> LostReason:
        """
        Record why a lead was lost, replacing any earlier record.

        Raises:
            InputValidationError: Unknown reason, or COMPETITOR without competitor name
            LeadNotFoundError: If lead does not exist
        """
        data = validate_input(
            LostReasonCreate, reason=reason, competitor_name=competitor_name, notes=notes
        )

        with self.store.transaction() as session:
            if session.get_lead(lead_id, for_update=True) is None:
                raise LeadNotFoundError(lead_id)
            return write_lost_reason(session, lead_id, data, self.clock())

    def get_by_lead_id(self, lead_id: UUID) -> LostReason | None:
        """Get the lead's lost reason, if any."""
        with self.store.transaction() as session:
            row = session.get_side_record("lost_reasons", lead_id)

        if row is None:
            return None

        return LostReason.model_validate(row)
