"""Time-in/time-out state machine for volunteer attendance.

A record moves through ``NONE -> TIMED_IN -> TIMED_OUT`` per volunteer, event
and local day. Time-out attaches the feedback policy: a deadline and
``pending`` status on the final day of an event that requires feedback,
``not_required`` otherwise. Two redemption paths feed the same transitions:
short-lived signed tokens and the per-day check-in/check-out QR codes.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import date, datetime, timedelta

from app.api.access import ensure_organizer
from app.auth.security import issue_attendance_token, verify_attendance_token
from app.config import settings
from app.models.attendance_record import AttendanceRecord
from app.models.enums import AttendanceAction, AttendanceSource, FeedbackStatus, QrCodeType
from app.services.attendance_store import APPROVED_REGISTRATION_STATUSES
from app.services.errors import (
    DuplicateTimeIn,
    DuplicateTimeOut,
    EventNotActive,
    EventNotFound,
    NoTimeInRecorded,
    NotRegisteredVolunteer,
    QrActionMismatch,
    QrExpiredOrInactive,
    TokenExpiredOrInvalid,
)
from app.services.hours import (
    as_utc,
    compute_hours,
    feedback_deadline,
    is_final_day,
    is_multi_day,
    local_day,
    round_hours,
)
from app.services.qr_codes import parse_qr_payload, qr_is_live


logger = logging.getLogger(__name__)

QR_TYPE_FOR_ACTION = {
    AttendanceAction.timein: QrCodeType.checkIn,
    AttendanceAction.timeout: QrCodeType.checkOut,
}


@dataclass
class RecordingResult:
    record: AttendanceRecord
    action: AttendanceAction


def apply_feedback_policy(event, record: AttendanceRecord, *, deadline: datetime) -> None:
    """Attach the feedback lifecycle to a record whose time-out was just set.

    Non-final days of a multi-day event never ask for feedback; it is collected
    once, on the last day.
    """
    if event.require_feedback and is_final_day(event, record.date):
        record.status = FeedbackStatus.pending
        record.deadline_at = deadline
    else:
        record.status = FeedbackStatus.not_required
        record.deadline_at = None


def _new_record(*, event_id: uuid.UUID, user_id: uuid.UUID, now: datetime) -> AttendanceRecord:
    return AttendanceRecord(
        id=uuid.uuid4(),
        event_id=event_id,
        user_id=user_id,
        date=local_day(now),
        day_hours=0,
        previous_day_hours=0,
        total_hours=0,
        is_valid=True,
        voided_hours=False,
        feedback_overridden=False,
    )


def _counts(record) -> bool:
    return bool(record.is_valid) and not record.voided_hours


async def _carried_hours(store, event, user_id: uuid.UUID, day: date) -> float:
    if not is_multi_day(event):
        return 0
    prior = await store.prior_day_records(event.id, user_id, day)
    return round_hours(sum(r.day_hours or 0 for r in prior if _counts(r)))


async def recompute_carried_hours(store, event, user_id: uuid.UUID) -> None:
    """Re-derive ``previous_day_hours`` and ``total_hours`` across a volunteer's days.

    Called after an earlier day gains or loses credited hours once later days
    exist (exception approval, organizer void or reinstatement).
    """
    if not is_multi_day(event):
        return
    carried = 0.0
    for record in await store.volunteer_event_days(event.id, user_id):
        record.previous_day_hours = round_hours(carried)
        if record.time_out is not None and _counts(record):
            record.total_hours = round_hours((record.day_hours or 0) + record.previous_day_hours)
        if _counts(record):
            carried += record.day_hours or 0


async def _ensure_registered(store, event, user_id: uuid.UUID, *, strict: bool) -> None:
    # Token redemption only enforces the list when the event has one.
    if not strict and not await store.has_registrations(event.id):
        return
    registration = await store.get_registration(event.id, user_id)
    if registration is None or registration.status not in APPROVED_REGISTRATION_STATUSES:
        raise NotRegisteredVolunteer()


async def check_in(
    store,
    *,
    event,
    user_id: uuid.UUID,
    now: datetime,
    source: AttendanceSource,
    scan_reference: str | None = None,
) -> AttendanceRecord:
    record = await store.get_record_for_day(event.id, user_id, local_day(now))
    if record is not None and record.time_in is not None:
        raise DuplicateTimeIn()

    previous = await _carried_hours(store, event, user_id, local_day(now))
    if record is None:
        record = _new_record(event_id=event.id, user_id=user_id, now=now)
        record.time_in = now
        record.previous_day_hours = previous
        record.source = source
        record.scan_reference = scan_reference
        await store.add_record(record)
    else:
        record.time_in = now
        record.previous_day_hours = previous
        record.is_valid = True
        record.source = source
        record.scan_reference = scan_reference
    await store.save()
    logger.info("Time in recorded for user %s at event %s", user_id, event.id)
    return record


async def check_out(store, *, event, record: AttendanceRecord | None, now: datetime) -> AttendanceRecord:
    if record is None or record.time_in is None:
        raise NoTimeInRecorded()
    if record.time_out is not None:
        raise DuplicateTimeOut()
    if not record.is_valid:
        raise NoTimeInRecorded("Your time in for today was invalidated")

    record.time_out = now
    record.day_hours = compute_hours(record.time_in, now)
    # Earlier days may have changed since this day's time-in.
    record.previous_day_hours = await _carried_hours(store, event, record.user_id, record.date)
    record.total_hours = round_hours(record.day_hours + (record.previous_day_hours or 0))
    apply_feedback_policy(event, record, deadline=feedback_deadline(event, now))
    await store.save()
    logger.info("Time out recorded for user %s at event %s (%.2f h)", record.user_id, event.id, record.day_hours)
    return record


def issue_event_token(*, event, user, now: datetime, ttl_seconds: int | None = None) -> str:
    ensure_organizer(user, event)
    if now < as_utc(event.start_date) - timedelta(minutes=settings.TOKEN_CHECKIN_LEAD_MINUTES):
        raise EventNotActive("Token issuance not yet available")
    if now > as_utc(event.end_date):
        raise EventNotActive("Event already ended")
    return issue_attendance_token(event_id=event.id, issued_by=user.id, ttl_seconds=ttl_seconds, now=now)


async def _load_event(store, event_id: uuid.UUID):
    event = await store.get_event(event_id)
    if event is None:
        raise EventNotFound()
    return event


async def redeem_token(
    store,
    *,
    token: str,
    user_id: uuid.UUID,
    now: datetime,
    action: AttendanceAction | None = None,
) -> RecordingResult:
    claims = verify_attendance_token(token)
    try:
        event_id = uuid.UUID(str(claims["evt"]))
    except ValueError as exc:
        raise TokenExpiredOrInvalid() from exc
    event = await _load_event(store, event_id)
    await _ensure_registered(store, event, user_id, strict=False)

    record = await store.get_record_for_day(event.id, user_id, local_day(now))
    if action is None:
        action = AttendanceAction.timein if record is None or record.time_in is None else AttendanceAction.timeout

    start = as_utc(event.start_date)
    end = as_utc(event.end_date)
    if action == AttendanceAction.timein:
        if now < start - timedelta(minutes=settings.TOKEN_CHECKIN_LEAD_MINUTES):
            raise EventNotActive("Event has not started yet")
        if now > end:
            raise EventNotActive("Event already ended")
        record = await check_in(
            store, event=event, user_id=user_id, now=now, source=AttendanceSource.token, scan_reference=claims.get("jti")
        )
    else:
        if now > end + timedelta(minutes=settings.CHECKOUT_GRACE_MINUTES):
            raise EventNotActive("Event window closed")
        record = await check_out(store, event=event, record=record, now=now)
    return RecordingResult(record=record, action=action)


async def redeem_qr(
    store,
    *,
    qr_code: str,
    action: AttendanceAction,
    user_id: uuid.UUID,
    now: datetime,
) -> RecordingResult:
    payload = parse_qr_payload(qr_code)
    event = await _load_event(store, payload.event_id)

    qr = await store.get_qr_code(event.id, local_day(now))
    if not qr_is_live(qr, now) or qr_code not in (qr.check_in_code, qr.check_out_code):
        raise QrExpiredOrInactive()
    scanned_type = QrCodeType.checkIn if qr_code == qr.check_in_code else QrCodeType.checkOut
    expected = QR_TYPE_FOR_ACTION[action]
    if payload.type != expected or scanned_type != expected:
        raise QrActionMismatch(
            "This is a check-in QR code" if scanned_type == QrCodeType.checkIn else "This is a check-out QR code"
        )

    await _ensure_registered(store, event, user_id, strict=True)

    if action == AttendanceAction.timein:
        if now > as_utc(event.end_date):
            raise EventNotActive("Event already ended")
        record = await check_in(
            store, event=event, user_id=user_id, now=now, source=AttendanceSource.qr, scan_reference=payload.random
        )
    else:
        record = await store.get_record_for_day(event.id, user_id, local_day(now))
        record = await check_out(store, event=event, record=record, now=now)
    return RecordingResult(record=record, action=action)


async def invalidate_open_sessions(store, *, event, user) -> int:
    """Invalidate every record of ``event`` that has a time-in but no time-out."""
    ensure_organizer(user, event)
    records = await store.open_sessions(event.id)
    for record in records:
        record.is_valid = False
        record.total_hours = 0
    if records:
        await store.save()
    logger.info("Validation sweep invalidated %d attendance records for event %s", len(records), event.id)
    return len(records)
