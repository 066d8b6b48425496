"""Centralized datetime utilities for consistent timezone handling.

All persisted timestamps are naive UTC (SQLAlchemy models and the JSON
files both store naive values). The scheduling engine reports aware UTC
datetimes; `to_display_time` converts those into the naive display time
that is cached on job definitions.

Usage:
    from jobwarden.core.datetime_utils import utc_now, get_cutoff, to_display_time

    now = utc_now()
    cutoff = get_cutoff(days=30)
    job.next_run_time = to_display_time(trigger.next_fire_time)
"""

from datetime import UTC, datetime, timedelta

from jobwarden.config import get_settings


def utc_now() -> datetime:
    """Get current UTC time as naive datetime.

    Returns naive datetime for database compatibility.
    Replaces deprecated datetime.utcnow().
    """
    return datetime.now(UTC).replace(tzinfo=None)


def get_cutoff(hours: int = 0, days: int = 0) -> datetime:
    """Get cutoff datetime for filtering queries.

    Args:
        hours: Hours to subtract from now
        days: Days to subtract from now

    Returns:
        Naive UTC datetime representing the cutoff point
    """
    delta = timedelta(hours=hours, days=days)
    return utc_now() - delta


def to_naive_utc(dt: datetime) -> datetime:
    """Convert a datetime to naive UTC.

    Args:
        dt: Datetime to convert (can be aware or naive)

    Returns:
        Naive UTC datetime for database compatibility
    """
    if dt.tzinfo is None:
        # Already naive, assume it's UTC
        return dt
    return dt.astimezone(UTC).replace(tzinfo=None)


def to_naive_utc_or_none(dt: datetime | None) -> datetime | None:
    """`to_naive_utc` that passes None through (for optional fields)."""
    return None if dt is None else to_naive_utc(dt)


def to_aware_utc(dt: datetime) -> datetime:
    """Attach UTC to a naive datetime (aware values are converted)."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)


def to_display_time(dt: datetime | None) -> datetime | None:
    """Convert an engine-reported fire time to the naive display time.

    Applies the fixed `display_utc_offset_hours` offset from settings.
    """
    if dt is None:
        return None
    offset = timedelta(hours=get_settings().display_utc_offset_hours)
    return to_naive_utc(dt) + offset


def duration_ms(start: datetime, end: datetime) -> int:
    """Milliseconds elapsed between two naive UTC datetimes."""
    return int((end - start).total_seconds() * 1000)
