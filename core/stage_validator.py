"""
Stage transition admissibility.

Two severities:
- errors: prerequisite data is missing or wrong. Always block.
- warnings: qualification quality is weak. Block unless the caller forces.

Rules are keyed by target stage; every Stage has an entry.
"""

from datetime import datetime
from typing import Callable

from pydantic import BaseModel, Field

from core.models import Lead, RelatedRecords, Stage


class ValidationIssue(BaseModel):
    """A single error or warning about a target stage."""

    field: str
    reason: str
    code: str


class StageValidationResult(BaseModel):
    """Verdict for one proposed transition."""

    valid: bool
    errors: list[ValidationIssue] = Field(default_factory=list)
    warnings: list[ValidationIssue] = Field(default_factory=list)
    can_force: bool = False


REQUIRED_FIELD = "REQUIRED_FIELD"
RECOMMENDED_FIELD = "RECOMMENDED_FIELD"
INVALID_DATE = "INVALID_DATE"
NOT_FOUND = "NOT_FOUND"


class _Checks:
    """Collects issues for one validation run."""

    def __init__(self, lead: Lead, related: RelatedRecords, now: datetime):
        self.lead = lead
        self.related = related
        self.now = now
        self.errors: list[ValidationIssue] = []
        self.warnings: list[ValidationIssue] = []

    def error(self, field: str, reason: str, code: str = REQUIRED_FIELD) -> None:
        self.errors.append(ValidationIssue(field=field, reason=reason, code=code))

    def warn(self, field: str, reason: str) -> None:
        self.warnings.append(ValidationIssue(field=field, reason=reason, code=RECOMMENDED_FIELD))


def _inquiry(c: _Checks) -> None:
    if not c.lead.company_name or len(c.lead.company_name) < 2:
        c.error("companyName", "Company name required (2-200 chars)")
    if not c.lead.contact_name or len(c.lead.contact_name) < 2:
        c.error("contactName", "Contact name required (2-100 chars)")
    if not c.lead.phone and not c.lead.email:
        c.error("phone|email", "At least one contact method (phone or email) required")


def _qualification(c: _Checks) -> None:
    if not c.lead.email:
        c.warn("email", "Email recommended for qualified leads")


def _opportunity(c: _Checks) -> None:
    org = c.related.organization_info
    if org is None:
        c.warn("OrganizationInfo", "Organization details recommended for opportunities")
        return
    if not org.employee_count:
        c.warn("OrganizationInfo.employeeCount", "Employee count helps qualify opportunity")
    if not org.industry:
        c.warn("OrganizationInfo.industry", "Industry information recommended")


def _demo_scheduled(c: _Checks) -> None:
    demo = c.related.demo_details
    if demo is None:
        c.error("DemoDetails", "Demo details required for scheduled demo")
    elif demo.demo_date is None:
        c.error("DemoDetails.demoDate", "Demo date must be set")


def _demo_complete(c: _Checks) -> None:
    demo = c.related.demo_details
    if demo is None:
        c.error("DemoDetails", "Demo details required")
        return
    if demo.demo_date is None:
        c.error("DemoDetails.demoDate", "Demo date required")
    elif demo.demo_date > c.now:
        c.error(
            "DemoDetails.demoDate",
            "Demo date must be in the past for completed demos",
            INVALID_DATE,
        )
    if demo.demo_outcome is None:
        c.warn("DemoDetails.demoOutcome", "Demo outcome recommended")


def _has_value(c: _Checks) -> bool:
    proposal = c.related.proposal
    return proposal is not None and proposal.estimated_value is not None and proposal.estimated_value > 0


def _proposal_sent(c: _Checks) -> None:
    proposal = c.related.proposal
    if proposal is None:
        c.error("Proposal", "Proposal required before sending")
        return
    if proposal.proposal_date is None:
        c.error("Proposal.proposalDate", "Proposal date required")
    if not _has_value(c):
        c.error("Proposal.estimatedValue", "Estimated value must be set for proposal")


def _negotiation(c: _Checks) -> None:
    if not _has_value(c):
        c.error("Proposal.estimatedValue", "Proposal value required for negotiation")


def _closed_won(c: _Checks) -> None:
    if not _has_value(c):
        c.error("Proposal.estimatedValue", "Final deal value required")


def _closed_lost(c: _Checks) -> None:
    lost = c.related.lost_reason
    if lost is None:
        c.error("LostReason", "Lost reason required when marking as closed-lost")
    elif lost.reason is None:
        c.error("LostReason.reason", "Lost reason must be documented")


def _no_requirements(c: _Checks) -> None:
    pass


_RULES: dict[Stage, Callable[[_Checks], None]] = {
    Stage.INQUIRY: _inquiry,
    Stage.QUALIFICATION: _qualification,
    Stage.OPPORTUNITY: _opportunity,
    Stage.DEMO_SCHEDULED: _demo_scheduled,
    Stage.DEMO_COMPLETE: _demo_complete,
    Stage.PROPOSAL_SENT: _proposal_sent,
    Stage.NEGOTIATION: _negotiation,
    Stage.CLOSED_WON: _closed_won,
    Stage.CLOSED_LOST: _closed_lost,
    Stage.NURTURE_30_DAY: _no_requirements,
    Stage.NURTURE_90_DAY: _no_requirements,
}


def validate_transition(
    lead: Lead | None,
    related: RelatedRecords | None,
    target_stage: Stage,
    now: datetime,
    force: bool = False,
) -> StageValidationResult:
    """
    Decide whether ``lead`` may move to ``target_stage``.

    Args:
        lead: Current lead state, or None if the reference was invalid
        related: The lead's side records (organization, demo, proposal, lost reason)
        target_stage: Requested stage
        now: Reference instant for date checks
        force: Caller accepts outstanding warnings

    Returns:
        valid is True when there are no errors and either no warnings or force.
        can_force is True when only warnings stand in the way.
    """
    if lead is None:
        return StageValidationResult(
            valid=False,
            errors=[ValidationIssue(field="leadId", reason="Lead not found", code=NOT_FOUND)],
        )

    checks = _Checks(lead, related or RelatedRecords(), now)
    _RULES[Stage(target_stage)](checks)

    errors, warnings = checks.errors, checks.warnings
    return StageValidationResult(
        valid=not errors and (not warnings or force),
        errors=errors,
        warnings=warnings,
        can_force=not errors and bool(warnings),
    )
