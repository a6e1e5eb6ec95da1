"""Expansion of multi-date and recurring requests into concrete bookings"""
import logging
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Awaitable, Callable, Dict, Iterable, List, Optional

from fastapi import HTTPException

from app.scheduling.pricing import customer_price, is_customer_night_shift, quote_booking
from app.scheduling.time_model import compute_duration, round_half_up, to_date

logger = logging.getLogger(__name__)

CADENCE_DAYS = {
    "weekly": 7,
    "biweekly": 14,
    "monthly": 30,
}
MIN_REPEAT = 1
MAX_REPEAT = 12


@dataclass
class BatchResult:
    """Created-vs-requested outcome of a batch"""
    requested: int
    created: List = field(default_factory=list)
    error: Optional[str] = None

    @property
    def created_count(self) -> int:
        return len(self.created)

    @property
    def succeeded(self) -> bool:
        return self.error is None and self.created_count == self.requested

    @property
    def partial(self) -> bool:
        return not self.succeeded


def clamp_repeat_count(count: int) -> int:
    return max(MIN_REPEAT, min(MAX_REPEAT, int(count)))


def expand_multi_date(template: Dict, dates: Iterable, customer_rate: float) -> List[Dict]:
    """
    One booking per selected date, sharing the template's window and nanny.

    The price is computed once for the whole set and divided evenly, so the
    night surcharge is counted once per date.

    Args:
        template: Booking fields without date/end_date/total_price
        dates: Selected days (duplicates are ignored)
        customer_rate: Hourly customer rate

    Returns:
        List of booking field dicts, sorted by date
    """
    days = sorted({to_date(d) for d in dates if to_date(d) is not None})
    if not days:
        return []

    hours = compute_duration(template["start_time"], template["end_time"])
    aggregate = customer_price(
        hours,
        customer_rate,
        len(days),
        night=is_customer_night_shift(template["start_time"], template["end_time"]),
    ) if hours > 0 else 0
    per_booking = round_half_up(aggregate / len(days))

    return [
        {**template, "date": day, "end_date": None, "total_price": per_booking}
        for day in days
    ]


def expand_recurring(
    template: Dict,
    start_date: date,
    cadence: str,
    repeat_count: int,
    customer_rate: float,
    end_date: Optional[date] = None,
) -> List[Dict]:
    """
    Repeat a booking every week, two weeks or 30 days.

    Each occurrence carries the price of a single booking. A multi-day
    template keeps its length on every occurrence.
    """
    if cadence not in CADENCE_DAYS:
        raise ValueError(f"Unknown cadence '{cadence}'")
    step = timedelta(days=CADENCE_DAYS[cadence])
    count = clamp_repeat_count(repeat_count)

    quote = quote_booking(template["start_time"], template["end_time"], start_date, end_date, customer_rate)
    length = (end_date - start_date) if end_date else None

    drafts = []
    for i in range(count):
        day = start_date + step * i
        drafts.append({
            **template,
            "date": day,
            "end_date": day + length if length else None,
            "total_price": quote.total,
        })
    return drafts


def _error_message(exc: Exception) -> str:
    if isinstance(exc, HTTPException):
        detail = exc.detail
        if isinstance(detail, dict):
            return str(detail.get("message", detail))
        return str(detail)
    return str(exc) or exc.__class__.__name__


async def persist_sequentially(
    drafts: List[Dict],
    create: Callable[[Dict], Awaitable],
) -> BatchResult:
    """
    Create bookings one at a time, stopping at the first failure.

    Instances created before the failure stay; the result says how many of
    the requested instances exist and why the next one did not.
    """
    result = BatchResult(requested=len(drafts))
    for index, draft in enumerate(drafts):
        try:
            booking = await create(draft)
        except Exception as e:
            result.error = _error_message(e)
            logger.warning(
                f"Batch stopped at instance {index + 1}/{len(drafts)} ({draft.get('date')}): {result.error}"
            )
            break
        result.created.append(booking)
    return result
