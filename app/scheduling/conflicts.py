"""Caregiver double-booking and availability checks"""
from dataclasses import dataclass
from datetime import date
from typing import Iterable, List, Optional

from app.scheduling.time_model import (
    END_OF_DAY,
    compute_duration,
    format_hours,
    parse_time_label,
    span_dates,
    to_date,
)


@dataclass(frozen=True)
class TimeWindow:
    """Half-open [start, end) window in decimal hours of the booking day"""
    start: float
    end: float

    @classmethod
    def from_labels(cls, start_label, end_label) -> Optional["TimeWindow"]:
        """
        Build a window from time labels.

        A missing or unreadable end runs to 23:59. An overnight end is
        carried past 24 so the window stays contiguous.
        """
        start = parse_time_label(start_label)
        if start is None:
            return None
        end = parse_time_label(end_label)
        if end is None:
            return cls(start, max(END_OF_DAY, start))
        return cls(start, start + compute_duration(start_label, end_label))

    def label(self) -> str:
        return f"{format_hours(self.start)}–{format_hours(self.end)}"


def windows_overlap(a: TimeWindow, b: TimeWindow) -> bool:
    return a.start < b.end and b.start < a.end


def find_conflicts(
    bookings: Iterable,
    candidate_date,
    start_time,
    end_time,
    exclude_id=None,
) -> List:
    """
    Existing bookings that overlap a candidate slot.

    Args:
        bookings: The caregiver's bookings
        candidate_date: Day of the candidate booking
        start_time: Candidate start label
        end_time: Candidate end label (may be missing)
        exclude_id: Booking being edited, never conflicts with itself

    Returns:
        List of conflicting bookings
    """
    window = TimeWindow.from_labels(start_time, end_time)
    day = to_date(candidate_date)
    if window is None or day is None:
        return []

    conflicts = []
    for booking in bookings:
        if exclude_id is not None and str(booking.id) == str(exclude_id):
            continue
        if booking.status == "cancelled" or getattr(booking, "deleted_at", None):
            continue
        if to_date(booking.date) != day:
            continue
        other = TimeWindow.from_labels(booking.start_time, booking.end_time)
        if other is not None and windows_overlap(window, other):
            conflicts.append(booking)
    return conflicts


def has_conflict(bookings: Iterable, candidate_date, start_time, end_time, exclude_id=None) -> bool:
    return bool(find_conflicts(bookings, candidate_date, start_time, end_time, exclude_id))


def available_caregivers(
    caregivers: Iterable,
    bookings: Iterable,
    candidate_date,
    start_time,
    end_time,
    exclude_id=None,
) -> List:
    """Active caregivers with no overlapping booking on the candidate slot."""
    bookings = list(bookings)
    free = []
    for caregiver in caregivers:
        if caregiver.status != "active":
            continue
        own = [b for b in bookings if b.nanny_id == caregiver.id]
        if not has_conflict(own, candidate_date, start_time, end_time, exclude_id):
            free.append(caregiver)
    return free


def blackout_hits(blocked_dates: Iterable, start_date, end_date=None) -> List[date]:
    """Blocked days that fall inside the booking span, whatever the time of day."""
    blocked = {to_date(d) for d in blocked_dates}
    return sorted(day for day in span_dates(start_date, end_date) if day in blocked)


def is_blacked_out(blocked_dates: Iterable, start_date, end_date=None) -> bool:
    return bool(blackout_hits(blocked_dates, start_date, end_date))


def describe_conflict(conflicts: List, nanny_name: str | None = None) -> str:
    """User-facing message, e.g. "Sara already booked 14h00–16h00"."""
    who = nanny_name or "Nanny"
    windows = []
    for booking in conflicts:
        window = TimeWindow.from_labels(booking.start_time, booking.end_time)
        if window is not None:
            windows.append(window.label())
    if not windows:
        return f"{who} already has a booking at this time"
    return f"{who} already booked {', '.join(windows)}"
