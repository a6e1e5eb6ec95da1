"""Customer pricing and caregiver pay rules"""
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from app.config import (
    CAREGIVER_HOURLY_RATE,
    CAREGIVER_TAXI_FEE,
    CUSTOMER_NIGHT_FEE,
    DEFAULT_CUSTOMER_RATE,
)
from app.scheduling.time_model import (
    booked_hours,
    clocked_hours,
    compute_duration,
    compute_span_days,
    parse_time_label,
    round_half_up,
)
from app.utils.timezone import convert_to_local

NIGHT_START_HOUR = 19
NIGHT_END_HOUR = 7

PAY_SOURCE_ACTUAL = "actual"
PAY_SOURCE_ESTIMATED = "estimated"


@dataclass(frozen=True)
class PriceQuote:
    """Customer price for a booking window"""
    hours_per_day: float
    span_days: int
    base: int
    night_surcharge: int
    total: int

    @property
    def hours(self) -> float:
        return self.hours_per_day * self.span_days


@dataclass(frozen=True)
class PayBreakdown:
    """What the caregiver is owed for a booking, tagged with how it was computed"""
    source: str  # actual | estimated
    base_pay: int
    taxi_fee: int
    total: int
    hours: float = 0.0

    @classmethod
    def zero(cls, source: str = PAY_SOURCE_ESTIMATED) -> "PayBreakdown":
        return cls(source=source, base_pay=0, taxi_fee=0, total=0, hours=0.0)


def is_customer_night_shift(start_label, end_label) -> bool:
    """
    Customer-side night test.

    Night when the shift starts in [19:00, 07:00), ends after 19:00 (19:00
    itself is day, 19:01 is night) or wraps past midnight.
    """
    start = parse_time_label(start_label)
    end = parse_time_label(end_label)
    if start is None or end is None:
        return False
    if start >= NIGHT_START_HOUR or start < NIGHT_END_HOUR:
        return True
    if end > NIGHT_START_HOUR:
        return True
    return end <= start


def is_caregiver_night_shift(start_hour: float, end_hour: float) -> bool:
    """Caregiver-side taxi test. An end at exactly 07:00 counts as night."""
    return (
        start_hour >= NIGHT_START_HOUR
        or start_hour < NIGHT_END_HOUR
        or end_hour > NIGHT_START_HOUR
        or end_hour <= NIGHT_END_HOUR
    )


def night_surcharge(start_label, end_label, span_days: int = 1) -> int:
    """Flat customer night fee, charged once per booking day."""
    if not is_customer_night_shift(start_label, end_label):
        return 0
    return CUSTOMER_NIGHT_FEE * span_days


def customer_price(hours: float, customer_rate: float, span_days: int = 1, night: bool = False) -> int:
    """
    Price owed by the customer.

    Args:
        hours: Hours per day
        customer_rate: Caregiver's customer-facing hourly rate
        span_days: Number of booking days
        night: Whether the night surcharge applies

    Returns:
        Whole-unit price, never negative
    """
    if hours <= 0 or customer_rate <= 0:
        return 0
    total = round_half_up(customer_rate * hours * span_days)
    if night:
        total += CUSTOMER_NIGHT_FEE * span_days
    return total


def quote_booking(start_label, end_label, start_date, end_date, customer_rate: float) -> PriceQuote:
    """Price a booking from its schedule and the caregiver's rate."""
    hours = compute_duration(start_label, end_label)
    days = compute_span_days(start_date, end_date)
    if hours <= 0:
        return PriceQuote(hours_per_day=0.0, span_days=days, base=0, night_surcharge=0, total=0)
    base = customer_price(hours, customer_rate, days)
    surcharge = night_surcharge(start_label, end_label, days) if base > 0 else 0
    return PriceQuote(
        hours_per_day=hours,
        span_days=days,
        base=base,
        night_surcharge=surcharge,
        total=base + surcharge,
    )


def actual_pay(clock_in: datetime, clock_out: datetime) -> PayBreakdown:
    """Pay from real clock timestamps; a clocked shift happens once, so no span scaling."""
    hours = clocked_hours(clock_in, clock_out)
    base_pay = round_half_up(hours * CAREGIVER_HOURLY_RATE)
    in_hour = convert_to_local(clock_in).hour
    out_hour = convert_to_local(clock_out).hour
    taxi_fee = CAREGIVER_TAXI_FEE if is_caregiver_night_shift(in_hour, out_hour) else 0
    return PayBreakdown(
        source=PAY_SOURCE_ACTUAL,
        base_pay=base_pay,
        taxi_fee=taxi_fee,
        total=base_pay + taxi_fee,
        hours=hours,
    )


def estimated_pay(start_label, end_label, start_date=None, end_date=None) -> PayBreakdown:
    """Projected pay from the scheduled window, before any clock data exists."""
    hours = booked_hours(start_label, end_label, start_date, end_date)
    if hours <= 0:
        return PayBreakdown.zero()
    base_pay = round_half_up(hours * CAREGIVER_HOURLY_RATE)
    start = parse_time_label(start_label)
    end = parse_time_label(end_label)
    taxi_fee = 0
    if is_caregiver_night_shift(start, end):
        taxi_fee = CAREGIVER_TAXI_FEE * compute_span_days(start_date, end_date)
    return PayBreakdown(
        source=PAY_SOURCE_ESTIMATED,
        base_pay=base_pay,
        taxi_fee=taxi_fee,
        total=base_pay + taxi_fee,
        hours=hours,
    )


def resolve_pay(booking) -> PayBreakdown:
    """
    Single entry point for caregiver pay.

    Uses clocked time whenever both clock-in and clock-out exist and falls
    back to the scheduled window otherwise.
    """
    if booking.status == "cancelled":
        return PayBreakdown.zero()
    if booking.clock_in and booking.clock_out:
        return actual_pay(booking.clock_in, booking.clock_out)
    return estimated_pay(booking.start_time, booking.end_time, booking.date, booking.end_date)


def rate_for(nanny, default_rate: Optional[float] = None) -> float:
    """Customer rate of the assigned nanny, or the house rate for unassigned bookings."""
    if nanny is not None and nanny.rate:
        return float(nanny.rate)
    return default_rate if default_rate is not None else DEFAULT_CUSTOMER_RATE
