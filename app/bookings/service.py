import logging
from datetime import date
from typing import Dict, Iterable, List, Optional

from fastapi import HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.bookings.batch import BatchResult, expand_multi_date, expand_recurring, persist_sequentially
from app.bookings.exceptions import (
    ActiveShiftExistsException,
    BlackoutDateException,
    BookingNotFoundException,
    InvalidDateRangeException,
    InvalidTimeWindowException,
    InvalidTransitionException,
    NannyNotFoundException,
    PriceMismatchException,
    SchedulingConflictException,
)
from app.bookings.lifecycle import (
    CANCELLED,
    COMPLETED,
    CONFIRMED,
    PENDING,
    BookingLifecycle,
    extension_options,
)
from app.bookings.notifications import (
    BookingNotifier,
    cancelled_notifications,
    completed_notifications,
    confirmed_notifications,
    reassigned_notifications,
    reminder_notifications,
)
from app.bookings.repository import BookingRepository
from app.db.models import Booking, Nanny
from app.nannies.repository import NannyRepository
from app.scheduling.conflicts import (
    available_caregivers,
    blackout_hits,
    describe_conflict,
    find_conflicts,
)
from app.scheduling.pricing import PriceQuote, quote_booking, rate_for
from app.scheduling.time_model import compute_duration, parse_time_label, to_date
from app.utils.timezone import local_today, utc_now

logger = logging.getLogger(__name__)

BOOKING_FIELDS = (
    "nanny_id", "date", "end_date", "start_time", "plan",
    "client_name", "client_email", "client_phone", "hotel",
    "children_count", "children_ages", "notes", "locale", "status",
)


def conflict_window(booking) -> Dict:
    return {
        "booking_id": booking.id,
        "date": to_date(booking.date).isoformat(),
        "start_time": booking.start_time,
        "end_time": booking.end_time or "",
    }


def nanny_summary(nanny) -> Dict:
    return {"id": nanny.id, "name": nanny.name, "rate": float(nanny.rate or 0)}


class BookingService:
    """Service layer for booking scheduling and lifecycle"""

    def __init__(
        self,
        db: Optional[AsyncSession] = None,
        schema: Optional[str] = None,
        repository: Optional[BookingRepository] = None,
        nannies: Optional[NannyRepository] = None,
        notifier: Optional[BookingNotifier] = None,
    ):
        self.db = db
        self.repository = repository or BookingRepository(db, schema)
        self.nannies = nannies or NannyRepository(db, schema)
        self.notifier = notifier or BookingNotifier()
        self.lifecycle = BookingLifecycle()

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    async def get_booking(self, booking_id: int, include_deleted: bool = False) -> Booking:
        """Get a booking by ID"""
        booking = await self.repository.get_by_id(booking_id, include_deleted=include_deleted)
        if not booking:
            raise BookingNotFoundException(booking_id)
        return booking

    async def _get_nanny(self, nanny_id: int) -> Nanny:
        nanny = await self.nannies.get_by_id(nanny_id)
        if not nanny:
            raise NannyNotFoundException(nanny_id)
        return nanny

    async def _nanny_of(self, booking) -> Optional[Nanny]:
        if booking.nanny_id is None:
            return None
        return await self.nannies.get_by_id(booking.nanny_id)

    async def list_bookings(
        self,
        nanny_id: Optional[int] = None,
        day: Optional[date] = None,
    ) -> List[Booking]:
        """Bookings of a nanny (optionally on one day) or every assigned booking on a day"""
        if nanny_id is not None and day is not None:
            return await self.repository.list_for_nanny_on_date(nanny_id, day)
        if nanny_id is not None:
            return await self.repository.list_for_nanny(nanny_id)
        return await self.repository.list_on_date(day or local_today())

    @staticmethod
    def ensure_own_booking(booking, nanny_id: Optional[int]) -> None:
        """Nannies may only act on bookings assigned to them."""
        if nanny_id is not None and booking.nanny_id != nanny_id:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="You can only act on your own bookings"
            )

    # ------------------------------------------------------------------
    # Pricing and availability
    # ------------------------------------------------------------------

    @staticmethod
    def _check_schedule(start_time: str, end_time: str, start_date, end_date) -> None:
        if parse_time_label(start_time) is None:
            raise InvalidTimeWindowException(start_time, end_time)
        if end_time and parse_time_label(end_time) is None:
            raise InvalidTimeWindowException(start_time, end_time)
        if end_date is not None and to_date(end_date) < to_date(start_date):
            raise InvalidDateRangeException()

    @staticmethod
    def _price(quote: PriceQuote, submitted: Optional[int]) -> int:
        """
        Final price of a booking.

        A schedule with an end time is always priced by the engine and a
        different submitted price is rejected. Without an end time there is
        nothing to compute from, so the submitted price (or 0) stands.
        """
        if quote.hours_per_day <= 0:
            return submitted or 0
        if submitted is not None and submitted != quote.total:
            raise PriceMismatchException(submitted, quote.total)
        return quote.total

    async def available_nannies(
        self,
        day,
        start_time: str,
        end_time: str = "",
        exclude_id=None,
        end_date=None,
    ) -> List[Nanny]:
        """Active nannies who are neither booked on the slot nor blocked that day."""
        caregivers = await self.nannies.list_active()
        bookings = await self.repository.list_on_date(to_date(day))
        free = available_caregivers(caregivers, bookings, day, start_time, end_time, exclude_id)
        result = []
        for nanny in free:
            blocked = await self.nannies.get_blocked_dates(nanny.id)
            if not blackout_hits(blocked, day, end_date):
                result.append(nanny)
        return result

    async def check_conflict(
        self,
        nanny_id: int,
        day,
        start_time: str,
        end_time: str = "",
        end_date=None,
        exclude_id=None,
    ) -> Dict:
        """
        Dry-run of the availability rules for one nanny and slot.

        Returns:
            Dict with has_conflict, message, conflicts, blocked_dates and
            available_caregivers
        """
        nanny = await self._get_nanny(nanny_id)
        existing = await self.repository.list_for_nanny_on_date(nanny.id, to_date(day))
        conflicts = find_conflicts(existing, day, start_time, end_time, exclude_id)
        blocked = blackout_hits(await self.nannies.get_blocked_dates(nanny.id), day, end_date)

        alternatives = []
        message = None
        if conflicts or blocked:
            alternatives = [
                n for n in await self.available_nannies(day, start_time, end_time, exclude_id, end_date)
                if n.id != nanny.id
            ]
            if conflicts:
                message = describe_conflict(conflicts, nanny.name)
            else:
                message = f"{nanny.name} is unavailable on {', '.join(d.isoformat() for d in blocked)}"

        return {
            "has_conflict": bool(conflicts or blocked),
            "message": message,
            "conflicts": [conflict_window(c) for c in conflicts],
            "blocked_dates": blocked,
            "available_caregivers": [nanny_summary(n) for n in alternatives],
        }

    async def _ensure_available(
        self,
        nanny: Nanny,
        day,
        end_date,
        start_time: str,
        end_time: str,
        exclude_id=None,
    ) -> None:
        """Reject a slot that hits a blocked day or overlaps another booking of the nanny."""
        blocked = blackout_hits(await self.nannies.get_blocked_dates(nanny.id), day, end_date)
        if blocked:
            logger.warning(f"Nanny {nanny.id} blocked on {blocked}")
            raise BlackoutDateException(nanny.id, [d.isoformat() for d in blocked])

        existing = await self.repository.list_for_nanny_on_date(nanny.id, to_date(day))
        conflicts = find_conflicts(existing, day, start_time, end_time, exclude_id)
        if conflicts:
            alternatives = [
                n for n in await self.available_nannies(day, start_time, end_time, exclude_id, end_date)
                if n.id != nanny.id
            ]
            message = describe_conflict(conflicts, nanny.name)
            logger.warning(f"Scheduling conflict for nanny {nanny.id} on {day}: {message}")
            raise SchedulingConflictException(
                message,
                [conflict_window(c) for c in conflicts],
                [nanny_summary(n) for n in alternatives],
            )

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    async def create_booking(
        self,
        details: Dict,
        created_by: str = "parent",
        created_by_name: str = "",
        check_price: bool = True,
    ) -> Booking:
        """
        Create a single booking.

        Steps:
        1. Validate the schedule and date range
        2. Price it with the assigned nanny's rate (or the house rate)
        3. Check blocked days and overlapping bookings of the nanny
        4. Persist

        Args:
            details: Booking fields, as in CreateBookingRequest
            created_by: Actor tag (parent | admin | nanny)
            created_by_name: Display name of the creator
            check_price: Reject a submitted total_price that differs from the
                computed one. Batch instances carry their own split price.
        """
        start_time = details["start_time"]
        end_time = details.get("end_time") or ""
        day = details["date"]
        end_date = details.get("end_date")
        self._check_schedule(start_time, end_time, day, end_date)

        nanny = None
        if details.get("nanny_id") is not None:
            nanny = await self._get_nanny(details["nanny_id"])

        submitted = details.get("total_price")
        if check_price:
            quote = quote_booking(start_time, end_time, day, end_date, rate_for(nanny))
            total_price = self._price(quote, submitted)
        else:
            total_price = submitted or 0

        if nanny is not None:
            await self._ensure_available(nanny, day, end_date, start_time, end_time)

        fields = {key: details[key] for key in BOOKING_FIELDS if details.get(key) is not None}
        booking = Booking(
            **fields,
            end_time=end_time,
            nanny_name=nanny.name if nanny else "",
            total_price=total_price,
            created_by=created_by,
            created_by_name=created_by_name,
        )
        booking = await self.repository.create(booking)
        logger.info(
            f"Booking {booking.id} created by {created_by} for {day} {start_time}-{end_time or '?'} "
            f"(nanny {booking.nanny_id}, price {total_price})"
        )
        return booking

    async def _create_batch(self, drafts: List[Dict], created_by: str, created_by_name: str) -> BatchResult:
        async def create(draft):
            return await self.create_booking(draft, created_by, created_by_name, check_price=False)

        result = await persist_sequentially(drafts, create)
        logger.info(f"Batch created {result.created_count}/{result.requested} bookings")
        return result

    async def create_multi_date(
        self,
        template: Dict,
        dates: Iterable,
        created_by: str = "parent",
        created_by_name: str = "",
    ) -> BatchResult:
        """Same window and nanny on several dates, price split evenly."""
        self._check_schedule(template["start_time"], template.get("end_time") or "", date.min, None)
        nanny = await self._get_nanny(template["nanny_id"]) if template.get("nanny_id") is not None else None
        drafts = expand_multi_date(template, dates, rate_for(nanny))
        return await self._create_batch(drafts, created_by, created_by_name)

    async def create_recurring(
        self,
        template: Dict,
        start_date: date,
        cadence: str,
        repeat_count: int,
        end_date: Optional[date] = None,
        created_by: str = "parent",
        created_by_name: str = "",
    ) -> BatchResult:
        """Weekly, biweekly or monthly repetition of one booking."""
        self._check_schedule(template["start_time"], template.get("end_time") or "", start_date, end_date)
        nanny = await self._get_nanny(template["nanny_id"]) if template.get("nanny_id") is not None else None
        drafts = expand_recurring(template, start_date, cadence, repeat_count, rate_for(nanny), end_date)
        return await self._create_batch(drafts, created_by, created_by_name)

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    async def confirm_booking(self, booking_id: int) -> Booking:
        """pending -> confirmed, then notify"""
        booking = await self.get_booking(booking_id)
        self.lifecycle.validate_confirm(booking)

        booking.status = CONFIRMED
        booking = await self.repository.update(booking)
        logger.info(f"Booking {booking.id} confirmed")

        self.notifier.send(confirmed_notifications(booking, await self._nanny_of(booking)))
        return booking

    async def clock_in(self, booking_id: int, nanny_id: Optional[int] = None) -> Booking:
        """
        Start a shift.

        The final write is conditional on the nanny having no other shift in
        progress, so a concurrent clock-in elsewhere still fails here.
        """
        booking = await self.get_booking(booking_id)
        self.ensure_own_booking(booking, nanny_id)

        active = await self.repository.get_active_shift(booking.nanny_id) if booking.nanny_id else None
        self.lifecycle.validate_clock_in(booking, active, local_today())

        written = await self.repository.clock_in_if_no_active_shift(booking, utc_now())
        if not written:
            logger.warning(f"Clock-in of booking {booking.id} lost to another active shift")
            raise ActiveShiftExistsException()
        logger.info(f"Booking {booking.id} clocked in by nanny {booking.nanny_id}")
        return booking

    async def clock_out(self, booking_id: int, nanny_id: Optional[int] = None) -> Booking:
        """End a shift; the booking becomes completed."""
        booking = await self.get_booking(booking_id)
        self.ensure_own_booking(booking, nanny_id)

        now = utc_now()
        self.lifecycle.validate_clock_out(booking, now)

        booking.clock_out = now
        booking.status = COMPLETED
        booking = await self.repository.update(booking)
        logger.info(f"Booking {booking.id} clocked out by nanny {booking.nanny_id}")

        self.notifier.send(completed_notifications(booking, await self._nanny_of(booking)))
        return booking

    async def complete_booking(self, booking_id: int) -> Booking:
        """Manual completion without clock data"""
        booking = await self.get_booking(booking_id)
        self.lifecycle.validate_complete(booking)

        booking.status = COMPLETED
        booking = await self.repository.update(booking)
        logger.info(f"Booking {booking.id} completed")

        self.notifier.send(completed_notifications(booking, await self._nanny_of(booking)))
        return booking

    async def cancel_booking(self, booking_id: int, actor: str, reason: str = "") -> Booking:
        """Cancel a booking; the actor is recorded"""
        booking = await self.get_booking(booking_id)
        self.lifecycle.validate_cancel(booking, actor)

        booking.status = CANCELLED
        booking.cancelled_at = utc_now()
        booking.cancelled_by = actor
        booking.cancellation_reason = reason or ""
        booking = await self.repository.update(booking)
        logger.info(f"Booking {booking.id} cancelled by {actor}")

        self.notifier.send(cancelled_notifications(booking, await self._nanny_of(booking)))
        return booking

    async def reassign_booking(self, booking_id: int, new_nanny_id: int) -> Booking:
        """
        Forward a booking to another nanny.

        The new nanny must be free on the slot; the price follows the new
        nanny's rate.
        """
        booking = await self.get_booking(booking_id)
        self.lifecycle.validate_reassign(booking, new_nanny_id)

        new_nanny = await self._get_nanny(new_nanny_id)
        await self._ensure_available(
            new_nanny, booking.date, booking.end_date, booking.start_time, booking.end_time,
            exclude_id=booking.id,
        )
        previous = await self._nanny_of(booking)

        quote = quote_booking(booking.start_time, booking.end_time, booking.date, booking.end_date, rate_for(new_nanny))
        if quote.hours_per_day > 0:
            booking.total_price = quote.total
        booking.nanny_id = new_nanny.id
        booking.nanny_name = new_nanny.name
        booking = await self.repository.update(booking)
        logger.info(
            f"Booking {booking.id} reassigned from nanny {previous.id if previous else None} to {new_nanny.id}"
        )

        self.notifier.send(reassigned_notifications(booking, new_nanny, previous))
        return booking

    async def extend_booking(self, booking_id: int, new_end_time: str) -> Booking:
        """Push the end time later and reprice"""
        booking = await self.get_booking(booking_id)
        self.lifecycle.validate_extend(booking, new_end_time)

        nanny = await self._nanny_of(booking)
        if nanny is not None:
            await self._ensure_available(
                nanny, booking.date, booking.end_date, booking.start_time, new_end_time,
                exclude_id=booking.id,
            )

        quote = quote_booking(booking.start_time, new_end_time, booking.date, booking.end_date, rate_for(nanny))
        previous_end = booking.end_time
        booking.end_time = new_end_time
        booking.total_price = quote.total
        booking = await self.repository.update(booking)
        logger.info(f"Booking {booking.id} extended from {previous_end} to {new_end_time} (price {quote.total})")
        return booking

    async def get_extension_options(self, booking_id: int) -> List[Dict]:
        """Later end times with the price each would carry"""
        booking = await self.get_booking(booking_id)
        nanny = await self._nanny_of(booking)
        rate = rate_for(nanny)

        options = []
        for slot in extension_options(booking.start_time, booking.end_time):
            quote = quote_booking(booking.start_time, slot, booking.date, booking.end_date, rate)
            options.append({
                "end_time": slot,
                "hours": compute_duration(booking.start_time, slot),
                "total_price": quote.total,
                "additional_cost": quote.total - (booking.total_price or 0),
            })
        return options

    async def update_schedule(self, booking_id: int, changes: Dict) -> Booking:
        """
        Edit date, times or price of an open booking.

        The edited schedule is re-priced and re-checked against the nanny's
        calendar, excluding the booking itself.
        """
        booking = await self.get_booking(booking_id)
        if booking.status not in (PENDING, CONFIRMED) or booking.clock_in:
            raise InvalidTransitionException(
                f"Cannot change the schedule of booking {booking.id} with status: {booking.status}"
            )

        day = changes.get("date") or booking.date
        end_date = changes["end_date"] if "end_date" in changes else booking.end_date
        start_time = changes.get("start_time") or booking.start_time
        end_time = changes["end_time"] if changes.get("end_time") is not None else booking.end_time
        self._check_schedule(start_time, end_time or "", day, end_date)

        nanny = await self._nanny_of(booking)
        quote = quote_booking(start_time, end_time, day, end_date, rate_for(nanny))
        submitted = changes.get("total_price")
        if quote.hours_per_day <= 0 and submitted is None:
            submitted = booking.total_price
        total_price = self._price(quote, submitted)
        if nanny is not None:
            await self._ensure_available(nanny, day, end_date, start_time, end_time, exclude_id=booking.id)

        booking.date = day
        booking.end_date = end_date
        booking.start_time = start_time
        booking.end_time = end_time or ""
        booking.total_price = total_price
        booking = await self.repository.update(booking)
        logger.info(f"Booking {booking.id} rescheduled to {day} {start_time}-{end_time}")
        return booking

    async def delete_booking(self, booking_id: int, deleted_by: str) -> Booking:
        """Soft delete; the row stays for the audit trail"""
        booking = await self.get_booking(booking_id)
        booking = await self.repository.soft_delete(booking, deleted_by)
        logger.info(f"Booking {booking.id} deleted by {deleted_by}")
        return booking

    async def restore_booking(self, booking_id: int) -> Booking:
        booking = await self.get_booking(booking_id, include_deleted=True)
        if booking.deleted_at is None:
            raise InvalidTransitionException(f"Booking {booking.id} is not deleted")
        booking = await self.repository.restore(booking)
        logger.info(f"Booking {booking.id} restored")
        return booking

    async def send_reminder(self, booking_id: int) -> int:
        """Remind the assigned nanny of a pending booking"""
        booking = await self.get_booking(booking_id)
        notifications = reminder_notifications(booking, await self._nanny_of(booking))
        if not notifications:
            raise InvalidTransitionException(
                f"Reminders are only sent for pending bookings with a nanny (booking {booking.id} is {booking.status})"
            )
        return self.notifier.send(notifications)

