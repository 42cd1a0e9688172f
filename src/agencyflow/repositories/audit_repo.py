"""Append-only audit log repository.

Entries are insert-only; nothing here updates or deletes them.
"""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from agencyflow.db.base import utcnow
from agencyflow.db.models.audit import AuditLogRow
from agencyflow.services.id_generator import generate_id


class AuditLogRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def append(
        self,
        user_id: str,
        action: str,
        entity_type: str,
        entity_id: str,
        metadata: dict | None = None,
    ) -> AuditLogRow:
        row = AuditLogRow(
            entry_id=generate_id("aud_"),
            user_id=user_id,
            action=action,
            entity_type=entity_type,
            entity_id=entity_id,
            timestamp=utcnow(),
            extra_data=metadata,
        )
        self.session.add(row)
        await self.session.flush()
        return row

    async def list_for_entity(self, entity_type: str, entity_id: str) -> list[AuditLogRow]:
        stmt = (
            select(AuditLogRow)
            .where(AuditLogRow.entity_type == entity_type, AuditLogRow.entity_id == entity_id)
            .order_by(AuditLogRow.timestamp.asc())
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())
