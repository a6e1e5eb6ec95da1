from app.scheduling.conflicts import available_caregivers, blackout_hits, find_conflicts, has_conflict
from app.scheduling.pricing import PayBreakdown, PriceQuote, quote_booking, resolve_pay
from app.scheduling.time_model import compute_duration, compute_span_days, parse_time_label

__all__ = [
    "available_caregivers",
    "blackout_hits",
    "compute_duration",
    "compute_span_days",
    "find_conflicts",
    "has_conflict",
    "parse_time_label",
    "PayBreakdown",
    "PriceQuote",
    "quote_booking",
    "resolve_pay",
]
