"""Shared repository base helpers."""
from typing import List, Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import text


class BaseRepository:
    """Base repository with common DB helpers."""

    def __init__(self, db: AsyncSession, schema: Optional[str] = None):
        self.db = db
        self.schema = schema

    async def _set_search_path(self):
        """Set PostgreSQL search_path when the service runs in a dedicated schema."""
        if self.schema:
            await self.db.execute(text(f'SET search_path TO "{self.schema}", public'))

    async def _first(self, stmt):
        await self._set_search_path()
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def _all(self, stmt) -> List:
        await self._set_search_path()
        result = await self.db.execute(stmt)
        return list(result.scalars().all())
