"""Organization, demo and proposal records. Each is optional and 1:1 with a lead."""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from pydantic import AwareDatetime, BaseModel, Field

from core.models.lost_reason import LostReason


class DemoType(str, Enum):
    ONLINE = "ONLINE"
    IN_PERSON = "IN_PERSON"
    HYBRID = "HYBRID"


class DemoOutcome(str, Enum):
    POSITIVE = "POSITIVE"
    NEUTRAL = "NEUTRAL"
    NEGATIVE = "NEGATIVE"
    NO_SHOW = "NO_SHOW"


class ProposalStatus(str, Enum):
    DRAFT = "DRAFT"
    SENT = "SENT"
    VIEWED = "VIEWED"
    ACCEPTED = "ACCEPTED"
    REJECTED = "REJECTED"
    EXPIRED = "EXPIRED"


class OrganizationInfoCreate(BaseModel):
    """Organization details. All fields optional."""

    employee_count: int | None = Field(None, gt=0)
    annual_revenue: Decimal | None = Field(None, gt=0)
    industry: str | None = Field(None, min_length=1, max_length=200)
    decision_maker: str | None = Field(None, min_length=1, max_length=200)
    decision_maker_role: str | None = Field(None, min_length=1, max_length=200)
    current_solution: str | None = Field(None, max_length=1000)
    pain_points: str | None = Field(None, max_length=2000)
    budget: Decimal | None = Field(None, gt=0)
    timeline: str | None = Field(None, min_length=1, max_length=200)


class OrganizationInfo(OrganizationInfoCreate):
    """Organization details as stored."""

    lead_id: UUID
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class DemoDetailsCreate(BaseModel):
    """Demo details. The date may be unknown when the record is first created."""

    demo_date: AwareDatetime | None = None
    demo_type: DemoType = DemoType.ONLINE
    attendees: str | None = Field(None, max_length=500)
    demo_outcome: DemoOutcome | None = None
    user_count_estimate: int | None = Field(None, gt=0)
    follow_up_required: bool = False
    notes: str | None = Field(None, max_length=2000)


class DemoDetails(DemoDetailsCreate):
    """Demo details as stored."""

    lead_id: UUID
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class ProposalCreate(BaseModel):
    """Proposal data."""

    proposal_date: AwareDatetime | None = None
    estimated_value: Decimal | None = Field(None, gt=0)
    products: str | None = Field(None, max_length=1000)
    contract_term: str | None = Field(None, max_length=200)
    status: ProposalStatus = ProposalStatus.DRAFT
    notes: str | None = Field(None, max_length=2000)


class Proposal(ProposalCreate):
    """Proposal as stored."""

    lead_id: UUID
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class RelatedRecords(BaseModel):
    """The lead's 1:1 side records, as consumed by the stage validator."""

    organization_info: OrganizationInfo | None = None
    demo_details: DemoDetails | None = None
    proposal: Proposal | None = None
    lost_reason: LostReason | None = None
