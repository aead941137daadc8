"""
Lead details service for the 1:1 side records the stage validator reads.

Organization info, demo details and proposal are each create-or-replace
keyed by lead id. A proposal with a value also sets the lead's
estimated_value.
"""

import logging
from datetime import datetime
from typing import Callable
from uuid import UUID

from core.exceptions import LeadNotFoundError
from core.models import (
    LostReason, OrganizationInfo, OrganizationInfoCreate,
    DemoDetails, DemoDetailsCreate, Proposal, ProposalCreate, RelatedRecords,
)
from core.store import LeadStore, LeadStoreSession
from utils.timezone import now_utc

logger = logging.getLogger(__name__)


def load_related_records(session: LeadStoreSession, lead_id: UUID) -> RelatedRecords:
    """Read all side records for a lead within an open session."""
    org = session.get_side_record("organization_info", lead_id)
    demo = session.get_side_record("demo_details", lead_id)
    proposal = session.get_side_record("proposals", lead_id)
    lost = session.get_side_record("lost_reasons", lead_id)

    return RelatedRecords(
        organization_info=OrganizationInfo.model_validate(org) if org else None,
        demo_details=DemoDetails.model_validate(demo) if demo else None,
        proposal=Proposal.model_validate(proposal) if proposal else None,
        lost_reason=LostReason.model_validate(lost) if lost else None,
    )


class LeadDetailsService:
    """Service for organization, demo and proposal records."""

    def __init__(self, store: LeadStore, clock: Callable[[], datetime] = now_utc):
        self.store = store
        self.clock = clock

    def _upsert(self, table: str, lead_id: UUID, fields: dict, session: LeadStoreSession) -> dict:
        if session.get_lead(lead_id, for_update=True) is None:
            raise LeadNotFoundError(lead_id)
        return session.upsert_side_record(table, lead_id, fields, self.clock())

    def upsert_organization(self, lead_id: UUID, data: OrganizationInfoCreate) -> OrganizationInfo:
        """
        Create or replace organization info.

        Raises:
            LeadNotFoundError: If lead does not exist
        """
        with self.store.transaction() as session:
            row = self._upsert("organization_info", lead_id, data.model_dump(mode="json"), session)
        return OrganizationInfo.model_validate(row)

    def upsert_demo(self, lead_id: UUID, data: DemoDetailsCreate) -> DemoDetails:
        """
        Create or replace demo details.

        Raises:
            LeadNotFoundError: If lead does not exist
        """
        with self.store.transaction() as session:
            row = self._upsert("demo_details", lead_id, data.model_dump(mode="json"), session)
        return DemoDetails.model_validate(row)

    def upsert_proposal(self, lead_id: UUID, data: ProposalCreate) -> Proposal:
        """
        Create or replace the proposal, copying its value onto the lead.

        Raises:
            LeadNotFoundError: If lead does not exist
        """
        with self.store.transaction() as session:
            row = self._upsert("proposals", lead_id, data.model_dump(mode="json"), session)
            if data.estimated_value is not None:
                session.update_lead(lead_id, {
                    "estimated_value": data.estimated_value,
                    "updated_at": self.clock(),
                })
        return Proposal.model_validate(row)

    def get_related_records(self, lead_id: UUID) -> RelatedRecords:
        """
        Get the side records for a lead.

        Raises:
            LeadNotFoundError: If lead does not exist
        """
        with self.store.transaction() as session:
            if session.get_lead(lead_id) is None:
                raise LeadNotFoundError(lead_id)
            return load_related_records(session, lead_id)
