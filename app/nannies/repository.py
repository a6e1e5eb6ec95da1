"""Nanny Repository Layer (read-only)"""
from datetime import date
from typing import Dict, List, Optional
from sqlalchemy import select

from app.db.models import Nanny, NannyBlockedDate
from app.db.repository import BaseRepository


class NannyRepository(BaseRepository):
    """Read access to nannies and their blocked days"""

    async def get_by_id(self, nanny_id: int) -> Optional[Nanny]:
        """Get nanny by ID"""
        return await self._first(select(Nanny).where(Nanny.id == nanny_id))

    async def get_by_ids(self, nanny_ids: List[int]) -> Dict[int, Nanny]:
        """Fetch nannies by IDs."""
        if not nanny_ids:
            return {}
        nannies = await self._all(select(Nanny).where(Nanny.id.in_(nanny_ids)))
        return {nanny.id: nanny for nanny in nannies}

    async def list_active(self) -> List[Nanny]:
        """Active nannies, for suggesting alternatives"""
        stmt = select(Nanny).where(Nanny.status == "active").order_by(Nanny.name.asc())
        return await self._all(stmt)

    async def list_all(self) -> List[Nanny]:
        return await self._all(select(Nanny).order_by(Nanny.name.asc()))

    async def get_blocked_dates(self, nanny_id: int) -> List[date]:
        """Days blocked on the nanny's calendar"""
        stmt = select(NannyBlockedDate.date).where(NannyBlockedDate.nanny_id == nanny_id)
        return await self._all(stmt)
