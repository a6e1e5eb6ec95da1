"""Time label parsing and booking duration arithmetic"""
import math
import re
from datetime import date, datetime, timedelta
from typing import List, Optional

H_FORMAT = re.compile(r"^(\d{1,2})h(\d{2})$", re.IGNORECASE)
COLON_FORMAT = re.compile(r"^(\d{1,2}):(\d{2})\s*(am|pm)?$", re.IGNORECASE)

END_OF_DAY = 23 + 59 / 60


def parse_time_label(label) -> Optional[float]:
    """
    Parse a time label into decimal hours.

    Accepts "19h30", "9h00", "9:00", "14:30" and "2:30 PM". Anything else
    (including out-of-range hours or minutes) yields None.

    Args:
        label: Time label as entered on a booking

    Returns:
        Decimal hours in [0, 24), or None if the label is not understood
    """
    if not isinstance(label, str):
        return None
    text = label.strip()
    if not text:
        return None

    match = H_FORMAT.match(text)
    meridiem = None
    if not match:
        match = COLON_FORMAT.match(text)
        if not match:
            return None
        meridiem = (match.group(3) or "").lower()

    hours = int(match.group(1))
    minutes = int(match.group(2))
    if meridiem == "pm" and hours < 12:
        hours += 12
    elif meridiem == "am" and hours == 12:
        hours = 0

    if hours > 23 or minutes > 59:
        return None
    return hours + minutes / 60


def format_hours(hours: float) -> str:
    """Render decimal hours back into the "HHhMM" label form."""
    total_minutes = int(round(hours * 60)) % (24 * 60)
    return f"{total_minutes // 60:02d}h{total_minutes % 60:02d}"


def compute_duration(start_label, end_label) -> float:
    """
    Hours between two time labels on the same booking day.

    An end at or before the start is an overnight wrap: 19:00 -> 01:00 is
    six hours. Unparsable labels give 0.0, which callers treat as
    insufficient data rather than a zero-length booking.
    """
    start = parse_time_label(start_label)
    end = parse_time_label(end_label)
    if start is None or end is None:
        return 0.0
    if end > start:
        return end - start
    return (24 - start) + end


def is_overnight(start_label, end_label) -> bool:
    start = parse_time_label(start_label)
    end = parse_time_label(end_label)
    if start is None or end is None:
        return False
    return end <= start


def to_date(value) -> Optional[date]:
    """Coerce a date, datetime or ISO string into a date (None if impossible)."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value)[:10])
    except ValueError:
        return None


def compute_span_days(start_date, end_date=None) -> int:
    """Inclusive number of calendar days a booking covers (minimum 1)."""
    start = to_date(start_date)
    end = to_date(end_date)
    if start is None or end is None or end == start:
        return 1
    return max(1, (end - start).days + 1)


def booked_hours(start_label, end_label, start_date=None, end_date=None) -> float:
    """
    Total scheduled hours for billing.

    Every day of a multi-day booking repeats the same daily window.
    """
    return compute_duration(start_label, end_label) * compute_span_days(start_date, end_date)


def span_dates(start_date, end_date=None) -> List[date]:
    """All calendar days covered by a booking, inclusive."""
    start = to_date(start_date)
    if start is None:
        return []
    days = compute_span_days(start, end_date)
    return [start + timedelta(days=offset) for offset in range(days)]


def clocked_hours(clock_in: datetime | None, clock_out: datetime | None) -> float:
    """Hours actually worked between clock-in and clock-out timestamps."""
    if clock_in is None or clock_out is None:
        return 0.0
    return max(0.0, (clock_out - clock_in).total_seconds() / 3600)


def round_half_up(value: float) -> int:
    """Round money half-up (2.5 -> 3), unlike Python's banker's rounding."""
    return int(math.floor(value + 0.5))


def _build_time_slots() -> List[str]:
    # Business-day ordering: 06h00 .. 23h30, then 00h00 .. 05h30
    slots = []
    for i in range(48):
        hour = (6 + i // 2) % 24
        minute = (i % 2) * 30
        slots.append(f"{hour:02d}h{minute:02d}")
    return slots


TIME_SLOTS: List[str] = _build_time_slots()
