from __future__ import annotations

import json
import secrets
import uuid
from dataclasses import dataclass
from datetime import date, datetime, timedelta

from app.api.access import ensure_organizer
from app.config import settings
from app.models.enums import QrCodeType
from app.models.event_qr_code import EventQrCode
from app.services.errors import EventNotActive, InvalidQrCode
from app.services.hours import as_utc, end_of_local_day, local_day


@dataclass(frozen=True)
class QrPayload:
    event_id: uuid.UUID
    type: QrCodeType
    date: str | None
    generated_at: str | None
    generated_by: str | None
    random: str | None


def build_qr_payload(
    *, event_id: uuid.UUID, type: QrCodeType, day: date, now: datetime, generated_by: uuid.UUID
) -> str:
    return json.dumps(
        {
            "eventId": str(event_id),
            "type": type.value,
            "date": day.isoformat(),
            "generatedAt": now.isoformat(),
            "generatedBy": str(generated_by),
            "random": secrets.token_hex(16),
        },
        separators=(",", ":"),
    )


def parse_qr_payload(raw: str) -> QrPayload:
    try:
        data = json.loads(raw)
    except (TypeError, ValueError) as exc:
        raise InvalidQrCode() from exc
    if not isinstance(data, dict):
        raise InvalidQrCode()
    try:
        event_id = uuid.UUID(str(data["eventId"]))
        qr_type = QrCodeType(data["type"])
    except (KeyError, ValueError) as exc:
        raise InvalidQrCode() from exc
    return QrPayload(
        event_id=event_id,
        type=qr_type,
        date=data.get("date"),
        generated_at=data.get("generatedAt"),
        generated_by=data.get("generatedBy"),
        random=data.get("random"),
    )


def _expiry_for(event, day: date) -> datetime:
    grace = timedelta(minutes=settings.CHECKOUT_GRACE_MINUTES)
    return min(end_of_local_day(day), as_utc(event.end_date) + grace)


async def generate_daily_qr_codes(store, *, event, user, now: datetime, day: date | None = None) -> EventQrCode:
    """Create or rotate the check-in/check-out codes of one event day.

    Codes can be generated from ``QR_GENERATION_LEAD_HOURS`` before the event
    starts until it ends. Rotating replaces both payloads, which invalidates
    any screenshot of the previous codes.
    """
    ensure_organizer(user, event)

    lead = timedelta(hours=settings.QR_GENERATION_LEAD_HOURS)
    if now < as_utc(event.start_date) - lead:
        raise EventNotActive(f"QR codes can only be generated {settings.QR_GENERATION_LEAD_HOURS} hours before the event starts")
    if now > as_utc(event.end_date):
        raise EventNotActive("Event already ended")

    day = day or local_day(now)
    if day < local_day(event.start_date) or day > local_day(event.end_date):
        raise EventNotActive("Day is outside the event dates")

    check_in = build_qr_payload(event_id=event.id, type=QrCodeType.checkIn, day=day, now=now, generated_by=user.id)
    check_out = build_qr_payload(event_id=event.id, type=QrCodeType.checkOut, day=day, now=now, generated_by=user.id)

    qr = await store.get_qr_code(event.id, day)
    if qr is None:
        qr = EventQrCode(id=uuid.uuid4(), event_id=event.id, date=day)
        store.add(qr)
    qr.check_in_code = check_in
    qr.check_out_code = check_out
    qr.generated_at = now
    qr.generated_by_user_id = user.id
    qr.is_active = True
    qr.expires_at = _expiry_for(event, day)
    await store.save()
    return qr


async def deactivate_qr_codes(store, *, event, user, day: date) -> EventQrCode | None:
    ensure_organizer(user, event)
    qr = await store.get_qr_code(event.id, day)
    if qr is None:
        return None
    qr.is_active = False
    await store.save()
    return qr


def qr_is_live(qr: EventQrCode | None, now: datetime) -> bool:
    return qr is not None and qr.is_active and now <= as_utc(qr.expires_at)
