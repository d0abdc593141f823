from __future__ import annotations

import uuid
from datetime import datetime

from pydantic import BaseModel

from app.models.enums import NotificationType


class NotificationOut(BaseModel):
    id: uuid.UUID
    user_id: uuid.UUID
    event_id: uuid.UUID | None = None
    type: NotificationType
    title: str
    message: str
    payload: dict | None = None
    created_at: datetime
    read_at: datetime | None = None
