"""Custom exceptions for bookings"""
from typing import List, Optional
from fastapi import HTTPException, status


class BookingNotFoundException(HTTPException):
    """Raised when a booking is not found or has been deleted"""
    def __init__(self, booking_id=None):
        detail = "Booking not found"
        if booking_id is not None:
            detail = f"Booking {booking_id} not found"
        super().__init__(status_code=status.HTTP_404_NOT_FOUND, detail=detail)


class NannyNotFoundException(HTTPException):
    """Raised when a nanny is not found"""
    def __init__(self, nanny_id):
        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Nanny {nanny_id} not found"
        )


class InvalidTimeWindowException(HTTPException):
    """Raised when start/end labels cannot be turned into a duration"""
    def __init__(self, start_time: str, end_time: str):
        super().__init__(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=f"Invalid time window '{start_time}' - '{end_time}'"
        )


class InvalidDateRangeException(HTTPException):
    """Raised when end_date is before date"""
    def __init__(self):
        super().__init__(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="End date must be on or after the start date"
        )


class PriceMismatchException(HTTPException):
    """Raised when a submitted total_price disagrees with the recomputed price"""
    def __init__(self, submitted: int, expected: int):
        super().__init__(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=f"Total price {submitted} does not match computed price {expected}"
        )


class SchedulingConflictException(HTTPException):
    """Raised when the nanny is already booked on an overlapping slot"""
    def __init__(self, message: str, conflicts: List[dict], available_caregivers: Optional[List[dict]] = None):
        self.conflicts = conflicts
        self.available_caregivers = available_caregivers or []
        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            detail={
                "message": message,
                "conflict_count": len(conflicts),
                "conflicts": conflicts,
                "available_caregivers": self.available_caregivers,
            }
        )


class BlackoutDateException(HTTPException):
    """Raised when the booking span hits a day the nanny has blocked"""
    def __init__(self, nanny_id, dates: List[str]):
        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            detail={
                "message": f"Nanny {nanny_id} is unavailable on {', '.join(dates)}",
                "dates": dates,
            }
        )


class InvalidTransitionException(HTTPException):
    """Raised when a status change or shift action is not allowed from the current state"""
    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(status_code=status.HTTP_409_CONFLICT, detail=reason)


class ActiveShiftExistsException(InvalidTransitionException):
    """Raised when the nanny already has a shift clocked in and not clocked out"""
    def __init__(self, active_booking_id=None):
        reason = "Nanny already has an active shift"
        if active_booking_id is not None:
            reason = f"Nanny already has an active shift on booking {active_booking_id}"
        super().__init__(reason)
