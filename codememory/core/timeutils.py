"""
Instant and calendar-date helpers.

All instants handled by the engine are timezone-aware UTC datetimes. Naive
datetimes are interpreted as UTC.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, date, datetime
from zoneinfo import ZoneInfo

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    """Default clock."""
    return datetime.now(UTC)


def ensure_utc(value: datetime) -> datetime:
    """Normalize a datetime to an aware UTC datetime."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def calendar_days_between(earlier: datetime, later: datetime) -> int:
    """
    Whole UTC calendar days from `earlier` to `later`, never negative.

    Clock skew (later < earlier) yields 0.
    """
    delta = ensure_utc(later).date() - ensure_utc(earlier).date()
    return max(0, delta.days)


def activity_date(instant: datetime, timezone: str = "UTC") -> date:
    """Calendar date of an instant in the activity time zone."""
    return ensure_utc(instant).astimezone(ZoneInfo(timezone)).date()


def to_db_timestamp(value: datetime) -> str:
    """Fixed-width ISO-8601 text that sorts chronologically."""
    return ensure_utc(value).isoformat(timespec="microseconds")


def from_db_timestamp(value: str | None) -> datetime | None:
    """Parse text written by `to_db_timestamp`."""
    if value is None:
        return None
    return ensure_utc(datetime.fromisoformat(value))
