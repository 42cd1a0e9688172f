"""Shared persistence helpers for the row-backed repositories."""

from typing import Any, ClassVar

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from agencyflow.db.base import Base


class BaseRepository:
    """Thin wrapper over one mapped row class.

    Subclasses set ``model``. Writes flush but never commit; the calling
    service owns the transaction.
    """

    model: ClassVar[type[Base]]

    def __init__(self, session: AsyncSession):
        self.session = session

    def _where(self, criteria: dict[str, Any]):
        stmt = select(self.model)
        for column, value in criteria.items():
            stmt = stmt.where(getattr(self.model, column) == value)
        return stmt

    async def find_one(self, **criteria: Any):
        result = await self.session.execute(self._where(criteria))
        return result.scalar_one_or_none()

    async def find_all(self, **criteria: Any) -> list:
        result = await self.session.execute(self._where(criteria))
        return list(result.scalars())

    async def create(self, **values: Any):
        row = self.model(**values)
        self.session.add(row)
        await self.session.flush()
        return row

    async def update(self, row, **changes: Any):
        for column, value in changes.items():
            setattr(row, column, value)
        await self.session.flush()
        return row
