"""Lead domain models."""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Literal
from uuid import UUID

from pydantic import AwareDatetime, BaseModel, Field, EmailStr, field_validator, model_validator

from core.models.activity import Activity, ActivityType
from core.models.lost_reason import LostReasonCategory
from core.models.stage import Stage


class LeadSource(str, Enum):
    """How the lead was acquired."""

    EMAIL = "EMAIL"
    PHONE = "PHONE"
    WEBSITE = "WEBSITE"
    REFERRAL = "REFERRAL"
    TRADE_SHOW = "TRADE_SHOW"
    OTHER = "OTHER"


class LeadCreate(BaseModel):
    """Data required to create a lead. Stage is always INQUIRY on intake."""

    company_name: str = Field(..., min_length=2, max_length=200)
    contact_name: str = Field(..., min_length=2, max_length=100)
    contact_title: str | None = Field(None, max_length=200)
    phone: str | None = Field(None, min_length=1, max_length=50)
    email: EmailStr | None = None
    company_description: str | None = Field(None, max_length=2000)
    lead_source: LeadSource | None = None
    estimated_value: Decimal | None = Field(None, gt=0)

    @model_validator(mode="after")
    def require_contact_method(self) -> "LeadCreate":
        """At least one of phone or email."""
        if not self.phone and not self.email:
            raise ValueError("At least one contact method (phone or email) required")
        return self


class LeadUpdate(BaseModel):
    """Editable lead details. All fields optional; stage is not editable here."""

    company_name: str | None = Field(None, min_length=2, max_length=200)
    contact_name: str | None = Field(None, min_length=2, max_length=100)
    contact_title: str | None = Field(None, max_length=200)
    phone: str | None = Field(None, min_length=1, max_length=50)
    email: EmailStr | None = None
    company_description: str | None = Field(None, max_length=2000)
    lead_source: LeadSource | None = None
    estimated_value: Decimal | None = Field(None, gt=0)
    next_action_type: ActivityType | None = None
    next_action_description: str | None = Field(None, min_length=1, max_length=500)
    next_action_due_date: AwareDatetime | None = None

    model_config = {"extra": "forbid"}


class Lead(BaseModel):
    """Full lead entity as stored."""

    id: UUID
    company_name: str
    contact_name: str
    contact_title: str | None
    phone: str | None
    email: str | None
    company_description: str | None
    lead_source: LeadSource | None
    current_stage: Stage
    estimated_value: Decimal | None
    next_follow_up_date: datetime | None
    last_activity_date: datetime | None
    next_action_type: ActivityType | None
    next_action_description: str | None
    next_action_due_date: datetime | None
    is_archived: bool
    archived_at: datetime | None
    archive_reason: str | None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}

    @property
    def is_closed(self) -> bool:
        """Whether the lead is in a terminal (immutable) stage."""
        return self.current_stage.is_closed


class LeadWithActivities(Lead):
    """Lead plus its most recent activities, newest first."""

    recent_activities: list[Activity] = Field(default_factory=list)


class FollowUpLeads(BaseModel):
    """Active leads partitioned by follow-up urgency."""

    overdue: list[LeadWithActivities] = Field(default_factory=list)
    today: list[LeadWithActivities] = Field(default_factory=list)
    upcoming: list[LeadWithActivities] = Field(default_factory=list)


class PlannerView(BaseModel):
    """Non-archived leads grouped by when their next action is due."""

    overdue: list[Lead] = Field(default_factory=list)
    today: list[Lead] = Field(default_factory=list)
    this_week: list[Lead] = Field(default_factory=list)
    no_date: list[Lead] = Field(default_factory=list)


def _require_text(value: str) -> str:
    if not value.strip():
        raise ValueError("must not be blank")
    return value


class CloseWonInput(BaseModel):
    """Input for closing a deal as won."""

    notes: str = Field(..., min_length=1, max_length=5000)

    check_notes = field_validator("notes")(_require_text)


class CloseLostInput(BaseModel):
    """Input for closing a deal as lost. All three fields are required."""

    competitor_name: str = Field(..., min_length=1, max_length=200)
    reason: LostReasonCategory
    notes: str = Field(..., min_length=1, max_length=5000)

    check_text = field_validator("competitor_name", "notes")(_require_text)


class NurtureInput(BaseModel):
    """Input for moving a lead to a nurture stage."""

    nurture_period: Literal[30, 90]
    notes: str = Field(..., min_length=1, max_length=5000)

    check_notes = field_validator("notes")(_require_text)
