"""Timezone utilities for converting stored UTC timestamps to local time"""
from datetime import date, datetime, timezone
import pytz

from app.config import LOCAL_TIMEZONE

# Marrakech timezone (handles the Ramadan DST switch automatically)
LOCAL_TZ = pytz.timezone(LOCAL_TIMEZONE)


def utc_now() -> datetime:
    """Current time as a naive UTC datetime, the storage convention."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def convert_to_local(dt: datetime | None) -> datetime | None:
    """
    Convert UTC naive datetime to the local timezone.

    Args:
        dt: Naive datetime assumed to be in UTC, or an aware datetime, or None

    Returns:
        Naive datetime in local time, or None if input is None
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        # Assume it's UTC
        dt = pytz.utc.localize(dt)
    return dt.astimezone(LOCAL_TZ).replace(tzinfo=None)


def local_today(now: datetime | None = None) -> date:
    """Calendar day in local time for a UTC instant (defaults to now)."""
    return convert_to_local(now or utc_now()).date()
