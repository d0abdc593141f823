from __future__ import annotations

import uuid

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.security import ACCESS_TOKEN_TYPE, decode_token, require_token_type
from app.db import get_db
from app.models.user import User
from app.services.attendance_store import AttendanceStore
from app.services.errors import InactiveUser, InvalidAccessToken, NotAuthenticated
from app.services.notifications import NotificationOutbox


http_bearer = HTTPBearer(auto_error=False)


def access_token_user_id(token: str) -> uuid.UUID:
    """Volunteer or organizer id carried by an access token issued by the auth service."""
    try:
        payload = decode_token(token)
        require_token_type(payload, ACCESS_TOKEN_TYPE)
        return uuid.UUID(str(payload.get("sub")))
    except ValueError as exc:
        raise InvalidAccessToken() from exc


async def get_current_user(
    db: AsyncSession = Depends(get_db),
    credentials: HTTPAuthorizationCredentials | None = Depends(http_bearer),
) -> User:
    # Rendered by the AttendanceError handler.
    if credentials is None or not credentials.credentials:
        raise NotAuthenticated()

    user_id = access_token_user_id(credentials.credentials)
    user = (await db.execute(select(User).where(User.id == user_id))).scalar_one_or_none()
    if user is None or not user.is_active:
        raise InactiveUser()
    return user


def get_store(db: AsyncSession = Depends(get_db)) -> AttendanceStore:
    return AttendanceStore(db)


def get_outbox(db: AsyncSession = Depends(get_db)) -> NotificationOutbox:
    return NotificationOutbox(db)
