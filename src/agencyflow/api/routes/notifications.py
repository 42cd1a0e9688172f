"""The caller's notification inbox."""

from fastapi import APIRouter, Query

from agencyflow.dependencies import CurrentActor, DBSession
from agencyflow.errors.exceptions import ForbiddenError, NotFoundError
from agencyflow.models.notification import NotificationOut
from agencyflow.repositories.notification_repo import NotificationRepository

router = APIRouter(tags=["Notifications"])


@router.get("/notifications", response_model=list[NotificationOut])
async def list_notifications(
    db: DBSession,
    actor: CurrentActor,
    unread_only: bool = False,
    limit: int = Query(50, ge=1, le=200),
):
    repo = NotificationRepository(db)
    return await repo.list_for_recipient(actor.id, unread_only=unread_only, limit=limit)


@router.get("/notifications/unread-count")
async def unread_notification_count(db: DBSession, actor: CurrentActor) -> dict:
    return {"count": await NotificationRepository(db).count_unread(actor.id)}


@router.post("/notifications/{notification_id}/read")
async def mark_notification_read(notification_id: str, db: DBSession, actor: CurrentActor) -> dict:
    repo = NotificationRepository(db)
    notification = await repo.get(notification_id)
    if notification is None:
        raise NotFoundError("Notification", notification_id)
    if notification.recipient_id != actor.id:
        raise ForbiddenError("Notifications can only be marked read by their recipient")
    await repo.mark_read(notification_id)
    await db.commit()
    return {"notification_id": notification_id, "is_read": True}
