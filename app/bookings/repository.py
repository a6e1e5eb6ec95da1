"""Booking Repository Layer"""
from datetime import date, datetime
from typing import Iterable, List, Optional
from sqlalchemy import and_, exists, select, update
from sqlalchemy.orm import aliased

from app.db.models import Booking, Nanny
from app.db.repository import BaseRepository
from app.utils.timezone import utc_now


class BookingRepository(BaseRepository):
    """Repository for booking database operations"""

    async def create(self, booking: Booking) -> Booking:
        """Create a new booking"""
        await self._set_search_path()
        self.db.add(booking)
        await self.db.commit()
        await self.db.refresh(booking)
        return booking

    async def get_by_id(self, booking_id: int, include_deleted: bool = False) -> Optional[Booking]:
        """Get booking by ID"""
        stmt = select(Booking).where(Booking.id == booking_id)
        if not include_deleted:
            stmt = stmt.where(Booking.deleted_at.is_(None))
        return await self._first(stmt)

    async def list_for_nanny_on_date(self, nanny_id: int, day: date) -> List[Booking]:
        """All non-deleted bookings of a nanny on a day (any status)"""
        stmt = select(Booking).where(
            and_(
                Booking.nanny_id == nanny_id,
                Booking.date == day,
                Booking.deleted_at.is_(None),
            )
        ).order_by(Booking.start_time.asc())
        return await self._all(stmt)

    async def list_on_date(self, day: date) -> List[Booking]:
        """All non-deleted, assigned bookings on a day"""
        stmt = select(Booking).where(
            and_(
                Booking.date == day,
                Booking.nanny_id.is_not(None),
                Booking.deleted_at.is_(None),
            )
        )
        return await self._all(stmt)

    async def list_for_nanny(self, nanny_id: int, limit: int = 500) -> List[Booking]:
        """Bookings of a nanny, most recent first"""
        stmt = select(Booking).where(
            and_(
                Booking.nanny_id == nanny_id,
                Booking.deleted_at.is_(None),
            )
        ).order_by(Booking.date.desc()).limit(limit)
        return await self._all(stmt)

    async def get_active_shift(self, nanny_id: int) -> Optional[Booking]:
        """The nanny's booking that is clocked in and not clocked out, if any"""
        stmt = select(Booking).where(
            and_(
                Booking.nanny_id == nanny_id,
                Booking.clock_in.is_not(None),
                Booking.clock_out.is_(None),
                Booking.status != "cancelled",
                Booking.deleted_at.is_(None),
            )
        ).limit(1)
        return await self._first(stmt)

    async def clock_in_if_no_active_shift(self, booking: Booking, clock_in: datetime) -> bool:
        """
        Set clock_in only if the nanny has no other shift in progress.

        The nanny row is locked first so two devices clocking the same nanny
        in at once are serialized.

        Returns:
            True if the clock-in was written
        """
        await self._set_search_path()
        await self.db.execute(
            select(Nanny.id).where(Nanny.id == booking.nanny_id).with_for_update()
        )
        other = aliased(Booking)
        active_elsewhere = exists().where(
            and_(
                other.nanny_id == booking.nanny_id,
                other.id != booking.id,
                other.clock_in.is_not(None),
                other.clock_out.is_(None),
                other.status != "cancelled",
                other.deleted_at.is_(None),
            )
        )
        stmt = (
            update(Booking)
            .where(
                and_(
                    Booking.id == booking.id,
                    Booking.clock_in.is_(None),
                    ~active_elsewhere,
                )
            )
            .values(clock_in=clock_in, updated_at=utc_now())
        )
        result = await self.db.execute(stmt)
        await self.db.commit()
        await self.db.refresh(booking)
        return result.rowcount == 1

    async def update(self, booking: Booking) -> Booking:
        """Update booking"""
        await self._set_search_path()
        booking.updated_at = utc_now()
        await self.db.commit()
        await self.db.refresh(booking)
        return booking

    async def soft_delete(self, booking: Booking, deleted_by: str) -> Booking:
        """Move booking to the audit trail"""
        booking.deleted_at = utc_now()
        booking.deleted_by = deleted_by
        return await self.update(booking)

    async def restore(self, booking: Booking) -> Booking:
        """Bring a soft-deleted booking back"""
        booking.deleted_at = None
        booking.deleted_by = ""
        return await self.update(booking)

    async def list_for_payroll(
        self,
        from_date: Optional[date],
        to_date: date,
        nanny_ids: Optional[Iterable[int]] = None,
        statuses: Optional[Iterable[str]] = None,
    ) -> List[Booking]:
        """Non-deleted, non-cancelled bookings in a date range"""
        conditions = [
            Booking.date <= to_date,
            Booking.deleted_at.is_(None),
            Booking.status != "cancelled",
        ]
        if from_date:
            conditions.append(Booking.date >= from_date)
        if nanny_ids:
            conditions.append(Booking.nanny_id.in_(list(nanny_ids)))
        if statuses:
            conditions.append(Booking.status.in_(list(statuses)))
        stmt = select(Booking).where(and_(*conditions)).order_by(Booking.date.asc(), Booking.id.asc())
        return await self._all(stmt)
