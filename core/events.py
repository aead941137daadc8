"""
Domain events for the lead pipeline.

Immutable event objects published after a transition has committed.
Handlers (notifications, reporting caches) react without the publishing
service knowing who's listening.

Events carry the committed Lead so handlers don't need to re-fetch state.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any
from uuid import uuid4

from utils.timezone import now_utc


@dataclass(frozen=True, kw_only=True)
class PipelineEvent:
    """Base class for all pipeline domain events."""
    event_id: str = field(default_factory=lambda: str(uuid4()))
    occurred_at: datetime = field(default_factory=now_utc)


@dataclass(frozen=True)
class LeadEvent(PipelineEvent):
    """Events related to a lead's lifecycle."""
    lead: Any = None  # Lead; Any avoids a circular import


@dataclass(frozen=True)
class LeadCreated(LeadEvent):
    """A new lead entered the pipeline at INQUIRY."""

    @classmethod
    def create(cls, lead: Any) -> "LeadCreated":
        return cls(lead=lead)


@dataclass(frozen=True)
class LeadStageChanged(LeadEvent):
    """Generic stage update committed."""
    from_stage: str | None = None
    to_stage: str | None = None

    @classmethod
    def create(cls, lead: Any, from_stage: str, to_stage: str) -> "LeadStageChanged":
        return cls(lead=lead, from_stage=from_stage, to_stage=to_stage)


@dataclass(frozen=True)
class LeadClosedWon(LeadEvent):
    """Deal closed as won."""
    from_stage: str | None = None

    @classmethod
    def create(cls, lead: Any, from_stage: str) -> "LeadClosedWon":
        return cls(lead=lead, from_stage=from_stage)


@dataclass(frozen=True)
class LeadClosedLost(LeadEvent):
    """Deal closed as lost."""
    from_stage: str | None = None
    reason: str | None = None
    competitor_name: str | None = None

    @classmethod
    def create(
        cls, lead: Any, from_stage: str, reason: str, competitor_name: str
    ) -> "LeadClosedLost":
        return cls(
            lead=lead, from_stage=from_stage,
            reason=reason, competitor_name=competitor_name,
        )


@dataclass(frozen=True)
class LeadMovedToNurture(LeadEvent):
    """Lead parked in a 30- or 90-day nurture stage."""
    from_stage: str | None = None
    nurture_period: int | None = None

    @classmethod
    def create(cls, lead: Any, from_stage: str, nurture_period: int) -> "LeadMovedToNurture":
        return cls(lead=lead, from_stage=from_stage, nurture_period=nurture_period)
