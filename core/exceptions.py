"""Typed exceptions for pipeline engine failures.

Every failure the engine raises is a PipelineError. The API layer translates
each subclass into a response using its ``code``.
"""

from typing import Any
from uuid import UUID

from pydantic import BaseModel, ValidationError as PydanticValidationError


class PipelineError(ValueError):
    """Base class for lead pipeline errors."""

    code = "PIPELINE_ERROR"


class LeadNotFoundError(PipelineError):
    """Referenced lead (or a record owned by it) does not exist."""

    code = "NOT_FOUND"

    def __init__(self, lead_id: UUID, what: str = "Lead"):
        self.lead_id = lead_id
        super().__init__(f"{what} {lead_id} not found")


class InputValidationError(PipelineError):
    """
    Malformed or missing required input.

    Examples: empty notes, nurture period other than 30/90, competitor
    missing for a COMPETITOR loss.
    """

    code = "VALIDATION_ERROR"

    def __init__(self, message: str, details: list[dict[str, Any]] | None = None):
        self.details = details or []
        super().__init__(message)


class AdmissibilityError(PipelineError):
    """
    Stage Validator rejected the transition.

    Carries the full validation result so callers can show errors and
    warnings, and offer a forced retry when ``result.can_force`` is set.
    """

    code = "STAGE_NOT_ADMISSIBLE"

    def __init__(self, target_stage: str, result: Any):
        self.target_stage = target_stage
        self.result = result
        reasons = [issue.reason for issue in result.errors] or [
            issue.reason for issue in result.warnings
        ]
        super().__init__(
            f"Transition to {target_stage} not allowed: {'; '.join(reasons)}"
        )


class ClosedDealImmutableError(PipelineError):
    """Lead is in CLOSED_WON or CLOSED_LOST. Closed deals accept no transitions."""

    code = "CLOSED_DEAL_IMMUTABLE"

    def __init__(self, lead_id: UUID, current_stage: str):
        self.lead_id = lead_id
        self.current_stage = current_stage
        super().__init__(
            f"Lead {lead_id} is {current_stage}; cannot change stage of closed deals"
        )


class LostReasonRequiredError(PipelineError):
    """CLOSED_LOST requested without a lost reason."""

    code = "LOST_REASON_REQUIRED"

    def __init__(self, lead_id: UUID):
        self.lead_id = lead_id
        super().__init__("Lost reason is required when closing lead as lost")


def validate_input(model_cls: type[BaseModel], **values: Any) -> Any:
    """
    Build an input model, converting pydantic errors to InputValidationError.

    Lets services take plain arguments while keeping field rules on the model.
    """
    try:
        return model_cls(**values)
    except PydanticValidationError as e:
        messages = [
            f"{'.'.join(str(p) for p in err['loc']) or 'input'}: {err['msg']}"
            for err in e.errors()
        ]
        raise InputValidationError("; ".join(messages), e.errors(include_url=False, include_context=False, include_input=False)) from e
