import logging
from datetime import date
from typing import Dict, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from app.bookings.exceptions import InvalidDateRangeException, NannyNotFoundException
from app.bookings.repository import BookingRepository
from app.nannies.repository import NannyRepository
from app.payroll.aggregation import PayrollFilter, PayrollReport, aggregate_payroll, caregiver_stats
from app.utils.timezone import local_today

logger = logging.getLogger(__name__)


class PayrollService:
    """Builds payroll reports from the booking store"""

    def __init__(
        self,
        db: Optional[AsyncSession] = None,
        schema: Optional[str] = None,
        repository: Optional[BookingRepository] = None,
        nannies: Optional[NannyRepository] = None,
    ):
        self.repository = repository or BookingRepository(db, schema)
        self.nannies = nannies or NannyRepository(db, schema)

    async def get_report(self, payroll_filter: PayrollFilter) -> PayrollReport:
        """Aggregate the bookings matching the filter"""
        today = local_today()
        to_date = payroll_filter.end(today)
        if payroll_filter.from_date and payroll_filter.from_date > to_date:
            raise InvalidDateRangeException()

        bookings = await self.repository.list_for_payroll(
            payroll_filter.from_date,
            to_date,
            payroll_filter.nanny_ids,
            payroll_filter.statuses,
        )
        nanny_ids = sorted({b.nanny_id for b in bookings if b.nanny_id is not None})
        nannies = await self.nannies.get_by_ids(nanny_ids)

        report = aggregate_payroll(bookings, nannies, payroll_filter, today)
        logger.info(
            f"Payroll {payroll_filter.from_date or 'start'}..{to_date}: "
            f"{len(report.details)} bookings, {len(report.caregivers)} caregivers, "
            f"{report.total.total_owed} DH owed"
        )
        return report

    async def get_nanny_stats(self, nanny_id: int, today: Optional[date] = None) -> Dict:
        """Dashboard figures of one nanny"""
        nanny = await self.nannies.get_by_id(nanny_id)
        if not nanny:
            raise NannyNotFoundException(nanny_id)
        bookings = await self.repository.list_for_nanny(nanny_id, limit=5000)
        return caregiver_stats(bookings, today or local_today())
