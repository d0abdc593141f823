from __future__ import annotations

import uuid
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_current_user
from app.db import get_db
from app.schemas.notification import NotificationOut
from app.services.errors import NotificationNotFound
from app.services.notifications import list_notifications, mark_all_notifications_read, mark_notification_read


router = APIRouter()


@router.get("", response_model=list[NotificationOut])
async def inbox(
    unread_only: bool = False,
    event_id: uuid.UUID | None = None,
    limit: int = Query(100, ge=1, le=500),
    db: AsyncSession = Depends(get_db),
    user=Depends(get_current_user),
) -> list[NotificationOut]:
    notifications = await list_notifications(
        db, user_id=user.id, unread_only=unread_only, event_id=event_id, limit=limit
    )
    return [NotificationOut.model_validate(n, from_attributes=True) for n in notifications]


@router.post("/{notification_id}/read")
async def read_one(
    notification_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    user=Depends(get_current_user),
) -> dict:
    found = await mark_notification_read(
        db, notification_id=notification_id, user_id=user.id, now=datetime.now(timezone.utc)
    )
    if not found:
        raise NotificationNotFound()
    return {"status": "ok"}


@router.post("/read-all")
async def read_all(db: AsyncSession = Depends(get_db), user=Depends(get_current_user)) -> dict:
    updated = await mark_all_notifications_read(db, user_id=user.id, now=datetime.now(timezone.utc))
    return {"status": "ok", "updated": updated}
