"""Pipeline engine configuration."""

import os

from pydantic import BaseModel, Field, field_validator

from utils.timezone import to_local, now_utc


class PipelineConfig(BaseModel):
    """
    Pipeline engine configuration.

    Durations are in days. Calendar-day boundaries (overdue vs today) are
    evaluated in ``business_timezone``; everything stored stays UTC.
    """

    business_timezone: str = Field(
        default="UTC",
        description="IANA timezone defining start of day for follow-up buckets",
    )
    upcoming_window_days: int = Field(
        default=7,
        description="Upcoming follow-ups further out than this are not listed",
        ge=1,
        le=90,
    )
    recent_activity_limit: int = Field(
        default=5,
        description="Activities attached to each lead in follow-up views",
        ge=0,
        le=50,
    )
    won_handoff_days: int = Field(
        default=7,
        description="Due offset for the handoff task after a won deal",
        ge=1,
    )
    lost_recheck_days: int = Field(
        default=180,
        description="Due offset for re-checking a lost deal",
        ge=1,
    )

    @field_validator("business_timezone")
    @classmethod
    def known_timezone(cls, value: str) -> str:
        to_local(now_utc(), value)
        return value


_ENV_FIELDS = {
    "business_timezone": "PIPELINE_TIMEZONE",
    "upcoming_window_days": "PIPELINE_UPCOMING_WINDOW_DAYS",
    "recent_activity_limit": "PIPELINE_RECENT_ACTIVITY_LIMIT",
    "won_handoff_days": "PIPELINE_WON_HANDOFF_DAYS",
    "lost_recheck_days": "PIPELINE_LOST_RECHECK_DAYS",
}


def load_config() -> PipelineConfig:
    """Build config from PIPELINE_* environment variables. Unset vars use defaults."""
    values = {
        field: os.environ[env_var]
        for field, env_var in _ENV_FIELDS.items()
        if os.getenv(env_var)
    }
    return PipelineConfig(**values)
