"""
Time utilities for the job runner.

All timestamps are stored as naive UTC datetimes (the DateTime columns carry
no timezone), so every "now" in the jobs goes through utcnow().
"""
from datetime import datetime, timezone, timedelta
from typing import Optional

from apscheduler.util import astimezone

UTC = timezone.utc


def utcnow() -> datetime:
    """Current time as a naive UTC datetime."""
    return datetime.now(UTC).replace(tzinfo=None)


def local_now(tz) -> datetime:
    """
    Naive wall-clock time in ``tz`` (an IANA name or a tzinfo).

    Cron schedules and calendar rules such as "Monday 09:00" are read in the
    scheduler's zone; stored timestamps stay UTC.
    """
    return datetime.now(astimezone(tz)).replace(tzinfo=None)


def to_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    """
    Normalize a datetime to naive UTC.

    Aware datetimes are converted to UTC first; naive ones are assumed to
    already be UTC.
    """
    if value is None:
        return None
    if value.tzinfo is not None:
        return value.astimezone(UTC).replace(tzinfo=None)
    return value


def hours_until(target: datetime, now: Optional[datetime] = None) -> float:
    """Hours from now until target (negative once target has passed)."""
    now = now or utcnow()
    return (to_naive_utc(target) - now).total_seconds() / 3600


def cron_weekday(moment: datetime) -> int:
    """
    Day of week in cron numbering.

    Examples:
        >>> cron_weekday(datetime(2025, 1, 5))  # Sunday
        0
        >>> cron_weekday(datetime(2025, 1, 6))  # Monday
        1
    """
    return (moment.weekday() + 1) % 7


def most_recent_sunday(now: Optional[datetime] = None) -> datetime:
    """Midnight at the start of the most recent Sunday (today if Sunday)."""
    now = now or utcnow()
    midnight = now.replace(hour=0, minute=0, second=0, microsecond=0)
    return midnight - timedelta(days=cron_weekday(now))
