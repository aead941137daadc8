"""Pipeline stage enumeration and stage groupings."""

from enum import Enum


class Stage(str, Enum):
    """A lead's position in the sales pipeline."""

    INQUIRY = "INQUIRY"
    QUALIFICATION = "QUALIFICATION"
    OPPORTUNITY = "OPPORTUNITY"
    DEMO_SCHEDULED = "DEMO_SCHEDULED"
    DEMO_COMPLETE = "DEMO_COMPLETE"
    PROPOSAL_SENT = "PROPOSAL_SENT"
    NEGOTIATION = "NEGOTIATION"
    CLOSED_WON = "CLOSED_WON"
    CLOSED_LOST = "CLOSED_LOST"
    NURTURE_30_DAY = "NURTURE_30_DAY"
    NURTURE_90_DAY = "NURTURE_90_DAY"

    @property
    def is_closed(self) -> bool:
        """Terminal stages. No transitions out of these."""
        return self in CLOSED_STAGES


CLOSED_STAGES = frozenset({Stage.CLOSED_WON, Stage.CLOSED_LOST})

NURTURE_STAGES = {
    30: Stage.NURTURE_30_DAY,
    90: Stage.NURTURE_90_DAY,
}
