from __future__ import annotations

import secrets
import uuid
from datetime import datetime, timedelta, timezone

from jose import ExpiredSignatureError, JWTError, jwt

from app.config import settings
from app.services.errors import TokenExpiredOrInvalid


ACCESS_TOKEN_TYPE = "access"
ATTENDANCE_SUBJECT = "attendance"
ALGORITHM = "HS256"


def create_access_token(*, user_id: uuid.UUID, role: str, expires_minutes: int = 60) -> str:
    # Access tokens are minted by the external auth service; this mirrors its claims.
    now = datetime.now(timezone.utc)
    payload = {
        "type": ACCESS_TOKEN_TYPE,
        "sub": str(user_id),
        "role": role,
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(minutes=expires_minutes)).timestamp()),
    }
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=ALGORITHM)


def decode_token(token: str) -> dict:
    try:
        return jwt.decode(token, settings.JWT_SECRET, algorithms=[ALGORITHM])
    except JWTError as exc:
        raise ValueError("Invalid token") from exc


def require_token_type(payload: dict, expected_type: str) -> None:
    token_type = payload.get("type")
    if token_type != expected_type:
        raise ValueError("Invalid token type")


def issue_attendance_token(
    *,
    event_id: uuid.UUID,
    issued_by: uuid.UUID | None,
    ttl_seconds: int | None = None,
    now: datetime | None = None,
) -> str:
    """Sign a short-lived QR payload that binds an event to the organizer who issued it."""
    now = now or datetime.now(timezone.utc)
    ttl = settings.ATTENDANCE_TOKEN_TTL_SECONDS if ttl_seconds is None else ttl_seconds
    issued_at = int(now.timestamp())
    payload = {
        "sub": ATTENDANCE_SUBJECT,
        "evt": str(event_id),
        "issr": str(issued_by) if issued_by else "",
        "jti": f"{event_id}.{issued_at}.{secrets.token_hex(4)}",
        "iat": issued_at,
        "exp": issued_at + ttl,
    }
    return jwt.encode(payload, settings.attendance_token_secret, algorithm=ALGORITHM)


def verify_attendance_token(token: str) -> dict:
    try:
        decoded = jwt.decode(token, settings.attendance_token_secret, algorithms=[ALGORITHM])
    except ExpiredSignatureError as exc:
        raise TokenExpiredOrInvalid("Attendance token expired") from exc
    except JWTError as exc:
        raise TokenExpiredOrInvalid() from exc
    if decoded.get("sub") != ATTENDANCE_SUBJECT or not decoded.get("evt"):
        raise TokenExpiredOrInvalid()
    return decoded
