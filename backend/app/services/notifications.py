from __future__ import annotations

import asyncio
import json
import logging
import uuid
from collections.abc import Iterable
from datetime import datetime, timezone

from sqlalchemy import select, update

from app.config import settings
from app.integrations.redis import get_redis_sync
from app.models.enums import NotificationType
from app.models.notification import Notification


CHANNEL = "volunteer_notifications"
logger = logging.getLogger(__name__)


def add_notification(
    *,
    db,
    user_id: uuid.UUID,
    type: NotificationType,
    title: str,
    message: str,
    payload: dict | None = None,
    event_id: uuid.UUID | None = None,
) -> Notification:
    notification = Notification(
        id=uuid.uuid4(),
        user_id=user_id,
        event_id=event_id,
        type=type,
        title=title,
        message=message,
        payload=payload,
        created_at=datetime.now(timezone.utc),
    )
    db.add(notification)
    return notification


def notification_to_payload(notification: Notification) -> dict:
    return {
        "id": str(notification.id),
        "user_id": str(notification.user_id),
        "event_id": str(notification.event_id) if notification.event_id else None,
        "type": notification.type.value,
        "title": notification.title,
        "message": notification.message,
        "payload": notification.payload,
        "created_at": notification.created_at.isoformat() if notification.created_at else None,
        "read_at": notification.read_at.isoformat() if notification.read_at else None,
    }


async def publish_notification(*, user_id: uuid.UUID, notification: Notification) -> None:
    if not settings.REDIS_ENABLED:
        return
    client = get_redis_sync()
    message = json.dumps({"user_id": str(user_id), "notification": {"type": "notification", **notification_to_payload(notification)}})
    await asyncio.to_thread(client.publish, CHANNEL, message)


class NotificationOutbox:
    """Notification sink bound to one unit of work.

    ``notify`` stages rows in the caller's session so they commit together with
    the attendance change that caused them; ``publish`` pushes the committed
    rows to Redis. Publishing is best effort: failures are logged and dropped.
    """

    def __init__(self, db) -> None:
        self.db = db
        self._staged: list[Notification] = []

    def notify(
        self,
        user_ids: Iterable[uuid.UUID | None],
        *,
        type: NotificationType,
        title: str,
        message: str,
        payload: dict | None = None,
        event_id: uuid.UUID | None = None,
    ) -> int:
        recipients = list(dict.fromkeys(uid for uid in user_ids if uid is not None))
        for user_id in recipients:
            self._staged.append(
                add_notification(
                    db=self.db,
                    user_id=user_id,
                    type=type,
                    title=title,
                    message=message,
                    payload=payload,
                    event_id=event_id,
                )
            )
        return len(recipients)

    def discard(self) -> None:
        self._staged.clear()

    async def publish(self) -> None:
        staged, self._staged = self._staged, []
        for notification in staged:
            try:
                await publish_notification(user_id=notification.user_id, notification=notification)
            except Exception:
                logger.exception("Failed to publish notification %s", notification.id)


async def list_notifications(
    db, *, user_id: uuid.UUID, unread_only: bool = False, event_id: uuid.UUID | None = None, limit: int = 100
) -> list[Notification]:
    stmt = select(Notification).where(Notification.user_id == user_id)
    if unread_only:
        stmt = stmt.where(Notification.read_at.is_(None))
    if event_id is not None:
        stmt = stmt.where(Notification.event_id == event_id)
    stmt = stmt.order_by(Notification.created_at.desc()).limit(limit)
    return list((await db.execute(stmt)).scalars().all())


async def mark_notification_read(db, *, notification_id: uuid.UUID, user_id: uuid.UUID, now: datetime) -> bool:
    notification = (
        await db.execute(
            select(Notification).where(Notification.id == notification_id, Notification.user_id == user_id)
        )
    ).scalar_one_or_none()
    if notification is None:
        return False
    if notification.read_at is None:
        notification.read_at = now
        await db.commit()
    return True


async def mark_all_notifications_read(db, *, user_id: uuid.UUID, now: datetime) -> int:
    result = await db.execute(
        update(Notification)
        .where(Notification.user_id == user_id, Notification.read_at.is_(None))
        .values(read_at=now)
    )
    await db.commit()
    return result.rowcount or 0
