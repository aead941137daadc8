"""Tests for domain event models."""

from dataclasses import FrozenInstanceError
from datetime import timedelta, timezone
from uuid import uuid4, UUID

import pytest

from core.events import (
    PipelineEvent, LeadEvent,
    LeadCreated, LeadStageChanged, LeadClosedWon, LeadClosedLost, LeadMovedToNurture,
)
from core.models import Lead, Stage
from utils.timezone import now_utc


# =============================================================================
# FIXTURES - lightweight in-memory stubs, no DB needed
# =============================================================================


@pytest.fixture
def _lead():
    now = now_utc()
    return Lead(
        id=uuid4(),
        company_name="Acme Rentals", contact_name="Dana Reyes",
        contact_title=None, phone="555-0100", email="dana@acme.example",
        company_description=None, lead_source=None,
        current_stage=Stage.QUALIFICATION, estimated_value=None,
        next_follow_up_date=now + timedelta(hours=48), last_activity_date=now,
        next_action_type=None, next_action_description=None, next_action_due_date=None,
        is_archived=False, archived_at=None, archive_reason=None,
        created_at=now, updated_at=now,
    )


# =============================================================================
# CONSTRUCTION VIA .create() FACTORY
# =============================================================================


class TestLeadEventFactory:

    def test_lead_created_stores_lead_by_identity(self, _lead):
        event = LeadCreated.create(_lead)
        assert event.lead is _lead

    def test_stage_changed_carries_both_stages(self, _lead):
        event = LeadStageChanged.create(_lead, "INQUIRY", "QUALIFICATION")
        assert event.lead is _lead
        assert (event.from_stage, event.to_stage) == ("INQUIRY", "QUALIFICATION")

    def test_closed_won_carries_original_stage(self, _lead):
        event = LeadClosedWon.create(_lead, "NEGOTIATION")
        assert event.from_stage == "NEGOTIATION"

    def test_closed_lost_carries_reason_and_competitor(self, _lead):
        event = LeadClosedLost.create(_lead, "PROPOSAL_SENT", "PRICE", "Globex")
        assert event.from_stage == "PROPOSAL_SENT"
        assert event.reason == "PRICE"
        assert event.competitor_name == "Globex"

    def test_moved_to_nurture_carries_period(self, _lead):
        event = LeadMovedToNurture.create(_lead, "OPPORTUNITY", 90)
        assert event.nurture_period == 90

    def test_all_lead_events_are_lead_events(self, _lead):
        events = [
            LeadCreated.create(_lead),
            LeadStageChanged.create(_lead, "INQUIRY", "QUALIFICATION"),
            LeadClosedWon.create(_lead, "NEGOTIATION"),
            LeadClosedLost.create(_lead, "NEGOTIATION", "TIMING", "Globex"),
            LeadMovedToNurture.create(_lead, "INQUIRY", 30),
        ]
        assert all(isinstance(e, LeadEvent) and isinstance(e, PipelineEvent) for e in events)


# =============================================================================
# AUTO-GENERATED METADATA
# =============================================================================


class TestEventId:

    def test_is_valid_uuid4_string(self, _lead):
        event = LeadCreated.create(_lead)
        parsed = UUID(event.event_id, version=4)
        assert str(parsed) == event.event_id

    def test_unique_across_events(self, _lead):
        ids = {LeadCreated.create(_lead).event_id for _ in range(10)}
        assert len(ids) == 10


class TestOccurredAt:

    def test_is_utc_timezone_aware(self, _lead):
        event = LeadClosedWon.create(_lead, "NEGOTIATION")
        assert event.occurred_at.tzinfo == timezone.utc

    def test_bounded_by_wall_clock(self, _lead):
        before = now_utc()
        event = LeadCreated.create(_lead)
        after = now_utc()
        assert before <= event.occurred_at <= after


# =============================================================================
# IMMUTABILITY
# =============================================================================


class TestFrozen:

    def test_cannot_reassign_lead(self, _lead):
        event = LeadCreated.create(_lead)
        with pytest.raises(FrozenInstanceError):
            event.lead = None

    def test_cannot_reassign_stages(self, _lead):
        event = LeadStageChanged.create(_lead, "INQUIRY", "QUALIFICATION")
        with pytest.raises(FrozenInstanceError):
            event.to_stage = "NEGOTIATION"
