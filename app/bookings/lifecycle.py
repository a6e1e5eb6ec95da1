"""Booking status state machine and shift guards"""
from datetime import date, datetime
from typing import List, Optional

from app.bookings.exceptions import (
    ActiveShiftExistsException,
    InvalidTransitionException,
)
from app.scheduling.time_model import TIME_SLOTS, compute_duration, parse_time_label

PENDING = "pending"
CONFIRMED = "confirmed"
COMPLETED = "completed"
CANCELLED = "cancelled"

VALID_STATUSES = [PENDING, CONFIRMED, COMPLETED, CANCELLED]
VALID_ACTORS = ["parent", "admin", "nanny"]

# Allowed explicit status changes; clock-in/out are tracked separately
TRANSITIONS = {
    PENDING: {CONFIRMED, CANCELLED},
    CONFIRMED: {COMPLETED, CANCELLED},
    COMPLETED: set(),
    CANCELLED: set(),
}


def is_clocked_in(booking) -> bool:
    """Shift in progress: clocked in, not yet clocked out."""
    return bool(booking.clock_in) and not booking.clock_out


def is_later_end(start_time, current_end, new_end) -> bool:
    """New end lengthens the shift without wrapping back to its start."""
    current = compute_duration(start_time, current_end)
    if current <= 0 or parse_time_label(new_end) is None:
        return False
    return current < compute_duration(start_time, new_end) < 24


def extension_options(start_time, current_end) -> List[str]:
    """Time slots that lengthen the shift, shortest extension first."""
    later = [slot for slot in TIME_SLOTS if is_later_end(start_time, current_end, slot)]
    return sorted(later, key=lambda slot: compute_duration(start_time, slot))


class BookingLifecycle:
    """Validates booking state transitions"""

    VALID_STATUSES = VALID_STATUSES

    def _require_transition(self, booking, target: str) -> None:
        if target not in TRANSITIONS.get(booking.status, set()):
            raise InvalidTransitionException(
                f"Cannot move booking {booking.id} from {booking.status} to {target}"
            )

    def validate_confirm(self, booking) -> None:
        """pending -> confirmed"""
        if booking.status != PENDING:
            raise InvalidTransitionException(
                f"Only pending bookings can be confirmed (booking {booking.id} is {booking.status})"
            )

    def validate_clock_in(self, booking, active_shift, today: date) -> None:
        """
        Validate a clock-in.

        Rules:
        - booking is confirmed, assigned and not yet clocked in
        - booking is dated today
        - the nanny has no other shift in progress
        """
        if booking.status != CONFIRMED:
            raise InvalidTransitionException(
                f"Cannot clock in booking {booking.id} with status: {booking.status}"
            )
        if booking.nanny_id is None:
            raise InvalidTransitionException(f"Booking {booking.id} has no nanny assigned")
        if booking.clock_in:
            raise InvalidTransitionException(f"Booking {booking.id} is already clocked in")
        if booking.date != today:
            raise InvalidTransitionException(
                f"Booking {booking.id} is dated {booking.date}, clock-in is only allowed on the day"
            )
        if active_shift is not None and active_shift.id != booking.id:
            raise ActiveShiftExistsException(active_shift.id)

    def validate_clock_out(self, booking, now: datetime) -> None:
        """Validate a clock-out: must be in progress, and end after it started"""
        if booking.status == CANCELLED:
            raise InvalidTransitionException(f"Booking {booking.id} is cancelled")
        if not booking.clock_in:
            raise InvalidTransitionException(f"Booking {booking.id} has not been clocked in")
        if booking.clock_out:
            raise InvalidTransitionException(f"Booking {booking.id} is already clocked out")
        if now <= booking.clock_in:
            raise InvalidTransitionException("Clock-out time must be after clock-in time")

    def validate_complete(self, booking) -> None:
        """Manual completion by an operator or the nanny"""
        if is_clocked_in(booking):
            raise InvalidTransitionException(
                f"Booking {booking.id} has a shift in progress, clock out to complete it"
            )
        self._require_transition(booking, COMPLETED)

    def validate_cancel(self, booking, actor: Optional[str]) -> None:
        """Any non-terminal booking can be cancelled by a known actor"""
        if actor not in VALID_ACTORS:
            raise InvalidTransitionException(
                f"Cancellation requires an actor, one of: {', '.join(VALID_ACTORS)}"
            )
        if booking.status == CANCELLED:
            raise InvalidTransitionException(f"Booking {booking.id} is already cancelled")
        if booking.status == COMPLETED:
            raise InvalidTransitionException(f"Booking {booking.id} is completed and cannot be cancelled")

    def validate_reassign(self, booking, new_nanny_id) -> None:
        """Forwarding to another nanny before the shift starts"""
        if booking.status not in (PENDING, CONFIRMED):
            raise InvalidTransitionException(
                f"Cannot reassign booking {booking.id} with status: {booking.status}"
            )
        if booking.clock_in:
            raise InvalidTransitionException(f"Booking {booking.id} is already clocked in")
        if booking.nanny_id is not None and booking.nanny_id == new_nanny_id:
            raise InvalidTransitionException(f"Booking {booking.id} is already assigned to nanny {new_nanny_id}")

    def validate_extend(self, booking, new_end_time: str) -> None:
        """Extending the end time of an upcoming or running shift"""
        if booking.status not in (PENDING, CONFIRMED) or booking.clock_out:
            raise InvalidTransitionException(
                f"Cannot extend booking {booking.id} with status: {booking.status}"
            )
        if parse_time_label(new_end_time) is None:
            raise InvalidTransitionException(f"Invalid end time '{new_end_time}'")
        if not is_later_end(booking.start_time, booking.end_time, new_end_time):
            raise InvalidTransitionException(
                f"New end time {new_end_time} must be later than {booking.end_time or 'the current end'}"
            )
