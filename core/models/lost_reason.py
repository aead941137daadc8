"""Lost reason domain models (1:1 with lead)."""

from datetime import datetime
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, Field, model_validator


class LostReasonCategory(str, Enum):
    """Why a deal was lost."""

    PRICE = "PRICE"
    COMPETITOR = "COMPETITOR"
    NO_RESPONSE = "NO_RESPONSE"
    NOT_QUALIFIED = "NOT_QUALIFIED"
    TIMING = "TIMING"
    OTHER = "OTHER"


class LostReasonCreate(BaseModel):
    """Data required to record (or replace) a lead's lost reason."""

    reason: LostReasonCategory
    competitor_name: str | None = Field(None, max_length=200)
    notes: str | None = Field(None, max_length=5000)

    @model_validator(mode="after")
    def require_competitor(self) -> "LostReasonCreate":
        """Competitor name is mandatory exactly when the deal went to a competitor."""
        if self.reason == LostReasonCategory.COMPETITOR and not (self.competitor_name or "").strip():
            raise ValueError("Competitor name is required when lost reason is COMPETITOR")
        return self


class LostReason(BaseModel):
    """Full lost reason entity as stored."""

    lead_id: UUID
    reason: LostReasonCategory | None
    competitor_name: str | None
    lost_date: datetime
    notes: str | None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}
