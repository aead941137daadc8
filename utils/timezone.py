"""UTC-everywhere time handling. Calendar-day math happens in the business zone."""

from datetime import datetime, timezone
from zoneinfo import ZoneInfo


def now_utc() -> datetime:
    """
    Current time in UTC.

    Use this instead of datetime.now() everywhere. Services take it as their
    default clock so tests can substitute a fixed instant.
    """
    return datetime.now(timezone.utc)


def to_utc(dt: datetime) -> datetime:
    """
    Convert a datetime to UTC.

    Raises ValueError if datetime is naive (no timezone).
    """
    if dt.tzinfo is None:
        raise ValueError(
            "Cannot convert naive datetime to UTC. Datetime must be timezone-aware."
        )
    return dt.astimezone(timezone.utc)


def to_local(dt: datetime, tz_name: str) -> datetime:
    """
    Convert UTC datetime to a local timezone.

    Args:
        dt: UTC datetime
        tz_name: IANA timezone name (e.g., "America/Chicago")

    Raises:
        ValueError: If datetime is naive or timezone name is invalid
    """
    if dt.tzinfo is None:
        raise ValueError(
            "Cannot convert naive datetime. Datetime must be timezone-aware."
        )

    try:
        local_tz = ZoneInfo(tz_name)
    except (KeyError, ValueError):
        raise ValueError(f"Unknown timezone: {tz_name}")

    return dt.astimezone(local_tz)


def start_of_day(dt: datetime, tz_name: str = "UTC") -> datetime:
    """
    Midnight of the calendar day containing dt, as seen in tz_name.

    Returned in UTC so it can be compared with stored instants.
    """
    local = to_local(dt, tz_name)
    midnight = local.replace(hour=0, minute=0, second=0, microsecond=0)
    return to_utc(midnight)


def is_same_day(a: datetime, b: datetime, tz_name: str = "UTC") -> bool:
    """Whether two instants fall on the same calendar day in tz_name."""
    return to_local(a, tz_name).date() == to_local(b, tz_name).date()
