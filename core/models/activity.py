"""Activity domain models."""

from datetime import datetime
from enum import Enum
from uuid import UUID

from pydantic import AwareDatetime, BaseModel, Field


class ActivityType(str, Enum):
    """Kind of logged interaction."""

    EMAIL = "EMAIL"
    PHONE_CALL = "PHONE_CALL"
    MEETING = "MEETING"
    NOTE = "NOTE"
    TASK = "TASK"


class ActivityCreate(BaseModel):
    """Data required to log an activity."""

    type: ActivityType
    subject: str = Field(..., min_length=1, max_length=500)
    notes: str | None = None
    due_date: AwareDatetime | None = None


class Activity(BaseModel):
    """Full activity entity as stored."""

    id: UUID
    lead_id: UUID
    type: ActivityType
    subject: str
    notes: str | None
    completed: bool
    completed_at: datetime | None
    due_date: datetime | None
    created_at: datetime

    model_config = {"from_attributes": True}
