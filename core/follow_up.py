"""
Follow-up date calculation and urgency classification.

Stage offsets:
- INQUIRY: +24 hours
- QUALIFICATION: +48 hours
- OPPORTUNITY: +3 days
- DEMO_SCHEDULED: day before the demo (start of day), else +1 day
- DEMO_COMPLETE: +1 day
- PROPOSAL_SENT: +3 days
- NEGOTIATION: +2 days
- NURTURE_30_DAY / NURTURE_90_DAY: +30 / +90 days
- CLOSED_WON / CLOSED_LOST: no follow-up

Both functions are pure. Callers pass "now" explicitly.
"""

import logging
from datetime import datetime, timedelta
from enum import Enum

from core.models import Stage
from utils.timezone import start_of_day, is_same_day

logger = logging.getLogger(__name__)


class FollowUpStatus(str, Enum):
    """Urgency bucket for a follow-up instant."""

    OVERDUE = "overdue"
    TODAY = "today"
    UPCOMING = "upcoming"
    NONE = "none"


_STAGE_OFFSETS = {
    Stage.INQUIRY: timedelta(hours=24),
    Stage.QUALIFICATION: timedelta(hours=48),
    Stage.OPPORTUNITY: timedelta(days=3),
    Stage.DEMO_SCHEDULED: timedelta(days=1),
    Stage.DEMO_COMPLETE: timedelta(days=1),
    Stage.PROPOSAL_SENT: timedelta(days=3),
    Stage.NEGOTIATION: timedelta(days=2),
    Stage.NURTURE_30_DAY: timedelta(days=30),
    Stage.NURTURE_90_DAY: timedelta(days=90),
    Stage.CLOSED_WON: None,
    Stage.CLOSED_LOST: None,
}

_DEFAULT_OFFSET = timedelta(days=1)


def calculate_next_follow_up(
    stage: Stage | str,
    base: datetime,
    demo_date: datetime | None = None,
    tz_name: str = "UTC",
) -> datetime | None:
    """
    Compute when a lead in ``stage`` next needs attention.

    Args:
        stage: Stage the lead is moving into
        base: Instant offsets are measured from (normally "now")
        demo_date: Scheduled demo, only used for DEMO_SCHEDULED
        tz_name: Zone whose calendar defines "start of day"

    Returns:
        Follow-up instant, or None for closed stages.
    """
    try:
        stage = Stage(stage)
    except ValueError:
        logger.warning(f"Unknown stage '{stage}', defaulting to +1 day follow-up")
        return base + _DEFAULT_OFFSET

    if stage == Stage.DEMO_SCHEDULED and demo_date is not None:
        return start_of_day(demo_date, tz_name) - timedelta(days=1)

    offset = _STAGE_OFFSETS[stage]
    if offset is None:
        return None

    return base + offset


def classify_follow_up(
    follow_up: datetime | None,
    now: datetime,
    tz_name: str = "UTC",
) -> FollowUpStatus:
    """
    Bucket a follow-up instant relative to now.

    Overdue means before the start of today, so something due earlier
    today is still "today".
    """
    if follow_up is None:
        return FollowUpStatus.NONE

    if follow_up < start_of_day(now, tz_name):
        return FollowUpStatus.OVERDUE

    if is_same_day(follow_up, now, tz_name):
        return FollowUpStatus.TODAY

    return FollowUpStatus.UPCOMING
