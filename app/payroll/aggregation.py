"""Payroll roll-up of bookings into per-caregiver totals"""
from dataclasses import dataclass, field, fields
from datetime import date, timedelta
from typing import Dict, Iterable, List, Optional

from app.config import CAREGIVER_HOURLY_RATE
from app.scheduling.pricing import PAY_SOURCE_ACTUAL, resolve_pay
from app.scheduling.time_model import booked_hours, clocked_hours, to_date
from app.utils.timezone import convert_to_local, local_today

UNASSIGNED = "Unassigned"
TOTAL_LABEL = "TOTAL"
MISSING = "—"

SUMMARY_COLUMNS = [
    "Nanny Name",
    "Rate (DH/hr)",
    "Total Bookings",
    "Completed Bookings",
    "Actual Hours Worked",
    "Estimated Total Hours",
    "Base Pay (DH)",
    "Taxi Fees (DH)",
    "TOTAL OWED (DH)",
    "Client Revenue (€)",
    "First Booking",
    "Last Booking",
]

DETAIL_COLUMNS = [
    "Booking #",
    "Date",
    "Nanny",
    "Parent Name",
    "Hotel",
    "Children",
    "Start Time",
    "End Time",
    "Clock In",
    "Clock Out",
    "Hours Worked",
    "Actual Hours",
    "Estimated Hours",
    "Status",
    "Pay Source",
    "Client Price (€)",
    "Base Pay (DH)",
    "Taxi Fee (DH)",
    "Total Nanny Pay (DH)",
    "Payment Collected",
    "Payment Method",
    "Notes",
]


def _round2(value: float) -> float:
    return round(value, 2)


@dataclass
class PayrollFilter:
    """Which bookings a payroll run covers"""
    from_date: Optional[date] = None
    to_date: Optional[date] = None
    nanny_ids: Optional[List[int]] = None
    statuses: Optional[List[str]] = None

    def end(self, today: Optional[date] = None) -> date:
        return self.to_date or today or local_today()

    def matches(self, booking, today: Optional[date] = None) -> bool:
        """Cancelled and deleted bookings never match, whatever the filter says."""
        if booking.status == "cancelled" or getattr(booking, "deleted_at", None):
            return False
        day = to_date(booking.date)
        if day is None or day > self.end(today):
            return False
        if self.from_date and day < self.from_date:
            return False
        if self.nanny_ids and booking.nanny_id not in self.nanny_ids:
            return False
        if self.statuses and booking.status not in self.statuses:
            return False
        return True


@dataclass
class PayrollDetail:
    """One booking's line on the payroll, tagged with its pay source"""
    booking: object
    nanny_name: str
    pay_source: str
    actual_hours: Optional[float]
    estimated_hours: float
    hours_worked: float
    base_pay: int
    taxi_fee: int
    total_pay: int


@dataclass
class CaregiverPayroll:
    """Additive totals for one caregiver (or the unassigned bucket)"""
    name: str
    nanny_id: Optional[int] = None
    total_bookings: int = 0
    completed_bookings: int = 0
    actual_pay_bookings: int = 0
    actual_hours: float = 0.0
    estimated_hours: float = 0.0
    best_hours: float = 0.0
    base_pay: int = 0
    taxi_fees: int = 0
    total_owed: int = 0
    client_revenue: float = 0.0
    first_booking: Optional[date] = None
    last_booking: Optional[date] = None

    def add(self, detail: PayrollDetail) -> None:
        booking = detail.booking
        self.total_bookings += 1
        if booking.status == "completed":
            self.completed_bookings += 1
        if detail.pay_source == PAY_SOURCE_ACTUAL:
            self.actual_pay_bookings += 1
        self.actual_hours += detail.actual_hours or 0.0
        self.estimated_hours += detail.estimated_hours
        self.best_hours += detail.hours_worked
        self.base_pay += detail.base_pay
        self.taxi_fees += detail.taxi_fee
        self.total_owed += detail.total_pay
        self.client_revenue += booking.total_price or 0

        day = to_date(booking.date)
        if self.first_booking is None or day < self.first_booking:
            self.first_booking = day
        if self.last_booking is None or day > self.last_booking:
            self.last_booking = day


ADDITIVE_FIELDS = [
    f.name for f in fields(CaregiverPayroll)
    if f.name not in ("name", "nanny_id", "first_booking", "last_booking")
]


@dataclass
class PayrollReport:
    """Per-caregiver rows, per-booking details and their grand total"""
    from_date: Optional[date]
    to_date: date
    caregivers: List[CaregiverPayroll] = field(default_factory=list)
    details: List[PayrollDetail] = field(default_factory=list)

    @property
    def total(self) -> CaregiverPayroll:
        """Elementwise sum of every caregiver row"""
        total = CaregiverPayroll(name=TOTAL_LABEL)
        for row in self.caregivers:
            for name in ADDITIVE_FIELDS:
                setattr(total, name, getattr(total, name) + getattr(row, name))
        return total


def payroll_detail(booking, nanny_name: str) -> PayrollDetail:
    """
    Pay one booking.

    Clocked time wins over the schedule whenever both clock stamps exist;
    the chosen path is kept on the detail.
    """
    pay = resolve_pay(booking)
    estimated = booked_hours(booking.start_time, booking.end_time, booking.date, booking.end_date)
    actual = None
    if booking.clock_in and booking.clock_out:
        actual = clocked_hours(booking.clock_in, booking.clock_out)
    hours_worked = actual if pay.source == PAY_SOURCE_ACTUAL else estimated
    return PayrollDetail(
        booking=booking,
        nanny_name=nanny_name,
        pay_source=pay.source,
        actual_hours=actual,
        estimated_hours=estimated,
        hours_worked=hours_worked,
        base_pay=pay.base_pay,
        taxi_fee=pay.taxi_fee,
        total_pay=pay.total,
    )


def aggregate_payroll(
    bookings: Iterable,
    nannies: Optional[Dict[int, object]] = None,
    payroll_filter: Optional[PayrollFilter] = None,
    today: Optional[date] = None,
) -> PayrollReport:
    """
    Roll bookings up into a payroll report.

    Args:
        bookings: Candidate bookings; the filter decides which count
        nannies: Nanny records by id, for names
        payroll_filter: Date range, nanny subset and statuses
        today: Default end of the range (local today)

    Returns:
        PayrollReport with caregivers sorted by name and details sorted by
        caregiver name, then date
    """
    payroll_filter = payroll_filter or PayrollFilter()
    nannies = nannies or {}
    report = PayrollReport(from_date=payroll_filter.from_date, to_date=payroll_filter.end(today))

    rows: Dict[object, CaregiverPayroll] = {}
    for booking in bookings:
        if not payroll_filter.matches(booking, today):
            continue
        nanny = nannies.get(booking.nanny_id) if booking.nanny_id is not None else None
        name = (nanny.name if nanny else None) or booking.nanny_name or UNASSIGNED
        key = booking.nanny_id if booking.nanny_id is not None else UNASSIGNED

        detail = payroll_detail(booking, name)
        report.details.append(detail)
        if key not in rows:
            rows[key] = CaregiverPayroll(name=name, nanny_id=booking.nanny_id)
        rows[key].add(detail)

    report.caregivers = sorted(rows.values(), key=lambda r: r.name.lower())
    report.details.sort(key=lambda d: (d.nanny_name.lower(), to_date(d.booking.date)))
    return report


def _clock(value) -> str:
    if not value:
        return MISSING
    return convert_to_local(value).strftime("%d/%m/%Y %H:%M")


def _day(value) -> str:
    return value.isoformat() if value else ""


def summary_rows(report: PayrollReport) -> List[Dict]:
    """Summary sheet rows, one per caregiver, then the grand total"""
    rows = []
    for row in report.caregivers:
        rows.append({
            "Nanny Name": row.name,
            "Rate (DH/hr)": CAREGIVER_HOURLY_RATE,
            "Total Bookings": row.total_bookings,
            "Completed Bookings": row.completed_bookings,
            "Actual Hours Worked": _round2(row.actual_hours),
            "Estimated Total Hours": _round2(row.estimated_hours),
            "Base Pay (DH)": row.base_pay,
            "Taxi Fees (DH)": row.taxi_fees,
            "TOTAL OWED (DH)": row.total_owed,
            "Client Revenue (€)": _round2(row.client_revenue),
            "First Booking": _day(row.first_booking),
            "Last Booking": _day(row.last_booking),
        })
    if rows:
        total = report.total
        rows.append({
            "Nanny Name": TOTAL_LABEL,
            "Rate (DH/hr)": None,
            "Total Bookings": total.total_bookings,
            "Completed Bookings": total.completed_bookings,
            "Actual Hours Worked": _round2(total.actual_hours),
            "Estimated Total Hours": _round2(total.estimated_hours),
            "Base Pay (DH)": total.base_pay,
            "Taxi Fees (DH)": total.taxi_fees,
            "TOTAL OWED (DH)": total.total_owed,
            "Client Revenue (€)": _round2(total.client_revenue),
            "First Booking": "",
            "Last Booking": "",
        })
    return rows


def detail_rows(report: PayrollReport) -> List[Dict]:
    """Booking detail sheet rows"""
    rows = []
    for detail in report.details:
        b = detail.booking
        rows.append({
            "Booking #": b.id,
            "Date": _day(to_date(b.date)),
            "Nanny": detail.nanny_name,
            "Parent Name": b.client_name or "",
            "Hotel": b.hotel or MISSING,
            "Children": b.children_count or 1,
            "Start Time": b.start_time,
            "End Time": b.end_time or "",
            "Clock In": _clock(b.clock_in),
            "Clock Out": _clock(b.clock_out),
            "Hours Worked": _round2(detail.hours_worked),
            "Actual Hours": _round2(detail.actual_hours) if detail.actual_hours is not None else MISSING,
            "Estimated Hours": _round2(detail.estimated_hours),
            "Status": (b.status or "").capitalize(),
            "Pay Source": detail.pay_source,
            "Client Price (€)": b.total_price or 0,
            "Base Pay (DH)": detail.base_pay,
            "Taxi Fee (DH)": detail.taxi_fee,
            "Total Nanny Pay (DH)": detail.total_pay,
            "Payment Collected": "Yes" if b.collected_at else "No",
            "Payment Method": b.payment_method or MISSING,
            "Notes": b.notes or "",
        })
    return rows


def caregiver_stats(bookings: Iterable, today: Optional[date] = None) -> Dict:
    """
    Dashboard figures for one caregiver.

    Hours and earnings come from completed bookings and follow the same
    actual-over-estimated rule as payroll.
    """
    today = today or local_today()
    week_start = today - timedelta(days=today.weekday())
    week_end = week_start + timedelta(days=7)

    stats = {
        "total_hours_worked": 0.0,
        "completed_bookings": 0,
        "upcoming_bookings": 0,
        "pending_bookings": 0,
        "total_earnings": 0,
        "this_week_bookings": 0,
    }
    for booking in bookings:
        if getattr(booking, "deleted_at", None):
            continue
        day = to_date(booking.date)
        if booking.status == "completed":
            detail = payroll_detail(booking, booking.nanny_name or "")
            stats["completed_bookings"] += 1
            stats["total_hours_worked"] += detail.hours_worked
            stats["total_earnings"] += detail.total_pay
        elif booking.status == "confirmed" and day is not None and day >= today:
            stats["upcoming_bookings"] += 1
        elif booking.status == "pending":
            stats["pending_bookings"] += 1
        if booking.status in ("confirmed", "completed") and day is not None and week_start <= day < week_end:
            stats["this_week_bookings"] += 1

    stats["total_hours_worked"] = round(stats["total_hours_worked"], 1)
    return stats
