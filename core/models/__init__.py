"""Core domain models."""

from core.models.stage import Stage, CLOSED_STAGES, NURTURE_STAGES
from core.models.activity import Activity, ActivityCreate, ActivityType
from core.models.stage_history import StageHistory
from core.models.lost_reason import LostReason, LostReasonCreate, LostReasonCategory
from core.models.lead_details import (
    OrganizationInfo, OrganizationInfoCreate,
    DemoDetails, DemoDetailsCreate, DemoType, DemoOutcome,
    Proposal, ProposalCreate, ProposalStatus,
    RelatedRecords,
)
from core.models.lead import (
    Lead, LeadCreate, LeadUpdate, LeadSource, LeadWithActivities, FollowUpLeads, PlannerView,
    CloseWonInput, CloseLostInput, NurtureInput,
)

__all__ = [
    # Stage
    "Stage", "CLOSED_STAGES", "NURTURE_STAGES",
    # Activity
    "Activity", "ActivityCreate", "ActivityType",
    # StageHistory
    "StageHistory",
    # LostReason
    "LostReason", "LostReasonCreate", "LostReasonCategory",
    # Lead details
    "OrganizationInfo", "OrganizationInfoCreate",
    "DemoDetails", "DemoDetailsCreate", "DemoType", "DemoOutcome",
    "Proposal", "ProposalCreate", "ProposalStatus",
    "RelatedRecords",
    # Lead
    "Lead", "LeadCreate", "LeadUpdate", "LeadSource", "LeadWithActivities", "FollowUpLeads", "PlannerView",
    "CloseWonInput", "CloseLostInput", "NurtureInput",
]
