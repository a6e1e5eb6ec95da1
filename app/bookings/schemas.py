from datetime import date as date_type, datetime
from typing import List, Literal, Optional
from pydantic import BaseModel, Field


class BookingDetails(BaseModel):
    """Client and schedule fields shared by every booking request"""
    nanny_id: Optional[int] = None
    start_time: str = Field(..., description="Start label, e.g. 19h30 or 7:30 PM")
    end_time: str = ""
    plan: Literal["hourly", "half-day", "full-day"] = "hourly"
    client_name: str
    client_email: str = ""
    client_phone: str = ""
    hotel: str = ""
    children_count: int = Field(1, ge=1)
    children_ages: str = ""
    notes: str = ""
    locale: str = "en"


class CreateBookingRequest(BookingDetails):
    """Request to create a single booking"""
    date: date_type
    end_date: Optional[date_type] = None
    total_price: Optional[int] = Field(None, ge=0, description="Checked against the computed price when given")
    status: Literal["pending", "confirmed"] = "pending"


class MultiDateBookingRequest(BookingDetails):
    """Same window and nanny on several non-contiguous dates"""
    dates: List[date_type] = Field(..., min_length=1)
    status: Literal["pending", "confirmed"] = "pending"


class RecurringBookingRequest(BookingDetails):
    """Repeat a booking on a fixed cadence"""
    date: date_type
    end_date: Optional[date_type] = None
    cadence: Literal["weekly", "biweekly", "monthly"]
    repeat_count: int = Field(..., description="Clamped to 1-12")
    status: Literal["pending", "confirmed"] = "pending"


class UpdateScheduleRequest(BaseModel):
    """Request to change the schedule of a booking (admin only)"""
    date: Optional[date_type] = None
    end_date: Optional[date_type] = None
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    total_price: Optional[int] = Field(None, ge=0)


class CancelBookingRequest(BaseModel):
    """Request to cancel a booking"""
    reason: str = ""
    cancelled_by: Optional[Literal["parent", "admin", "nanny"]] = None


class ReassignBookingRequest(BaseModel):
    """Request to forward a booking to another nanny"""
    nanny_id: int


class ExtendBookingRequest(BaseModel):
    """Request to push the end time later"""
    end_time: str


class DeleteBookingRequest(BaseModel):
    """Request to move a booking to the audit trail"""
    deleted_by: str = ""


class ConflictCheckRequest(BaseModel):
    """Ask whether a nanny is free on a slot"""
    nanny_id: int
    date: date_type
    end_date: Optional[date_type] = None
    start_time: str
    end_time: str = ""
    exclude_id: Optional[int] = None


class PayBreakdownResponse(BaseModel):
    """Nanny pay for a booking"""
    source: str  # actual | estimated
    base_pay: int
    taxi_fee: int
    total: int
    hours: float


class BookingResponse(BaseModel):
    """Booking response"""
    id: int
    nanny_id: Optional[int] = None
    nanny_name: str = ""
    date: date_type
    end_date: Optional[date_type] = None
    start_time: str
    end_time: str = ""
    plan: str
    total_price: int
    client_name: str = ""
    client_email: str = ""
    client_phone: str = ""
    hotel: str = ""
    children_count: int = 1
    children_ages: str = ""
    notes: str = ""
    status: str  # pending | confirmed | completed | cancelled
    clock_in: Optional[datetime] = None
    clock_out: Optional[datetime] = None
    created_by: str
    created_at: datetime
    cancelled_at: Optional[datetime] = None
    cancelled_by: str = ""
    cancellation_reason: str = ""
    deleted_at: Optional[datetime] = None
    urgency: str  # normal | warning | critical
    scheduled_hours: float
    nanny_pay: PayBreakdownResponse


class BookingListResponse(BaseModel):
    """List of bookings"""
    bookings: List[BookingResponse]
    count: int


class BatchBookingResponse(BaseModel):
    """Outcome of a multi-date or recurring creation"""
    requested: int
    created: int
    partial: bool
    error: Optional[str] = None
    bookings: List[BookingResponse]


class NannySummary(BaseModel):
    """Nanny suggestion item"""
    id: int
    name: str
    rate: float

    class Config:
        from_attributes = True


class ConflictWindow(BaseModel):
    """An existing booking that blocks the slot"""
    booking_id: int
    date: date_type
    start_time: str
    end_time: str = ""


class ConflictCheckResponse(BaseModel):
    """Conflict check result"""
    has_conflict: bool
    message: Optional[str] = None
    conflicts: List[ConflictWindow]
    blocked_dates: List[date_type]
    available_caregivers: List[NannySummary]


class ExtensionOption(BaseModel):
    """A later end time and what it would cost"""
    end_time: str
    hours: float
    total_price: int
    additional_cost: int


class ExtensionOptionsResponse(BaseModel):
    """Possible extensions of a booking"""
    booking_id: int
    current_end_time: str
    options: List[ExtensionOption]
