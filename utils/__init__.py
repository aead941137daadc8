"""Utility modules for cross-cutting concerns."""

from utils.timezone import now_utc, to_utc, to_local, start_of_day, is_same_day
