"""Notification repository."""

from sqlalchemy import func, select, update

from agencyflow.db.models.notification import NotificationRow
from agencyflow.repositories.base import BaseRepository


class NotificationRepository(BaseRepository):
    model = NotificationRow

    async def get(self, notification_id: str) -> NotificationRow | None:
        return await self.find_one(notification_id=notification_id)

    async def list_for_recipient(
        self, recipient_id: str, unread_only: bool = False, limit: int = 50
    ) -> list[NotificationRow]:
        stmt = select(NotificationRow).where(NotificationRow.recipient_id == recipient_id)
        if unread_only:
            stmt = stmt.where(NotificationRow.is_read.is_(False))
        stmt = stmt.order_by(NotificationRow.created_at.desc()).limit(limit)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def count_unread(self, recipient_id: str) -> int:
        stmt = select(func.count()).select_from(NotificationRow).where(
            NotificationRow.recipient_id == recipient_id,
            NotificationRow.is_read.is_(False),
        )
        return (await self.session.execute(stmt)).scalar_one()

    async def mark_read(self, notification_id: str) -> bool:
        stmt = (
            update(NotificationRow)
            .where(NotificationRow.notification_id == notification_id)
            .values(is_read=True)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.rowcount > 0
