"""Urgency of unassigned pending bookings (derived on read, never stored)"""
from datetime import datetime
from enum import Enum

from app.utils.timezone import utc_now

WARNING_AFTER_HOURS = 1
CRITICAL_AFTER_HOURS = 3


class UrgencyLevel(str, Enum):
    """How long a booking has been waiting for a nanny"""
    NORMAL = "normal"
    WARNING = "warning"
    CRITICAL = "critical"


def hours_waiting(created_at: datetime, now: datetime | None = None) -> float:
    if created_at is None:
        return 0.0
    now = now or utc_now()
    return (now - created_at).total_seconds() / 3600


def get_urgency_level(booking, now: datetime | None = None) -> UrgencyLevel:
    """
    Priority signal for the operator dashboard.

    Only pending bookings without a nanny age: more than 1 hour waiting is
    a warning, more than 3 hours is critical.

    Args:
        booking: Booking with status, nanny_id and created_at
        now: Reference time (naive UTC), defaults to now

    Returns:
        UrgencyLevel enum
    """
    if booking.status != "pending" or booking.nanny_id is not None:
        return UrgencyLevel.NORMAL

    elapsed = hours_waiting(booking.created_at, now)
    if elapsed > CRITICAL_AFTER_HOURS:
        return UrgencyLevel.CRITICAL
    if elapsed > WARNING_AFTER_HOURS:
        return UrgencyLevel.WARNING
    return UrgencyLevel.NORMAL
