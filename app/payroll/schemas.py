from datetime import date
from typing import List, Optional
from pydantic import BaseModel


class CaregiverPayrollItem(BaseModel):
    """Payroll totals of one caregiver"""
    nanny_id: Optional[int] = None
    name: str
    total_bookings: int
    completed_bookings: int
    actual_pay_bookings: int
    actual_hours: float
    estimated_hours: float
    best_hours: float
    base_pay: int
    taxi_fees: int
    total_owed: int
    client_revenue: float
    first_booking: Optional[date] = None
    last_booking: Optional[date] = None

    class Config:
        from_attributes = True


class PayrollDetailItem(BaseModel):
    """One booking on the payroll"""
    booking_id: int
    date: date
    nanny_name: str
    status: str
    pay_source: str  # actual | estimated
    actual_hours: Optional[float] = None
    estimated_hours: float
    hours_worked: float
    base_pay: int
    taxi_fee: int
    total_pay: int
    client_price: int


class PayrollSummaryResponse(BaseModel):
    """Payroll report for a date range"""
    from_date: Optional[date] = None
    to_date: date
    caregivers: List[CaregiverPayrollItem]
    total: CaregiverPayrollItem
    details: List[PayrollDetailItem] = []


class NannyStatsResponse(BaseModel):
    """Caregiver dashboard figures"""
    nanny_id: int
    total_hours_worked: float
    completed_bookings: int
    upcoming_bookings: int
    pending_bookings: int
    total_earnings: int
    this_week_bookings: int
