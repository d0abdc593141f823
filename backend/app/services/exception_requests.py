from __future__ import annotations

import logging
import uuid
from datetime import datetime, timedelta

from app.api.access import ensure_organizer, is_organizer, is_privileged
from app.models.attendance_record import AttendanceRecord
from app.models.enums import ExceptionStatus, NotificationType
from app.services.attendance_recording import apply_feedback_policy, recompute_carried_hours
from app.services.errors import (
    AttendanceNotFound,
    DuplicateExceptionRequest,
    EventNotFound,
    Forbidden,
    NoPendingException,
    NoTimeInRecorded,
    ReasonRequired,
    TimeOutAlreadyRecorded,
)
from app.services.hours import as_utc, compute_hours, end_of_local_day, round_hours


logger = logging.getLogger(__name__)

REASON_MAX_LENGTH = 2000
OPEN_EXCEPTION_STATUSES = (ExceptionStatus.pending, ExceptionStatus.approved)


async def _load(store, record_id: uuid.UUID):
    record = await store.get_record(record_id)
    if record is None:
        raise AttendanceNotFound()
    event = await store.get_event(record.event_id)
    if event is None:
        raise EventNotFound()
    return record, event


async def submit_exception_request(
    store, outbox, *, record_id: uuid.UUID, user, reason: str | None, now: datetime
) -> AttendanceRecord:
    record, event = await _load(store, record_id)
    if record.user_id != user.id:
        raise Forbidden()
    if record.time_out is not None:
        raise TimeOutAlreadyRecorded()
    if record.time_in is None:
        raise NoTimeInRecorded()
    if record.exception_status in OPEN_EXCEPTION_STATUSES:
        raise DuplicateExceptionRequest()

    text = (reason or "").strip()
    if not text:
        raise ReasonRequired()

    record.exception_reason = text[:REASON_MAX_LENGTH]
    record.exception_status = ExceptionStatus.pending
    record.exception_requested_at = now
    record.exception_reviewed_at = None
    record.exception_reviewed_by = None
    record.exception_review_notes = None

    outbox.notify(
        [event.created_by_user_id],
        type=NotificationType.exception_requested,
        title="Attendance exception request",
        message=f"{getattr(user, 'full_name', None) or 'A volunteer'} missed the time out for {event.title} and requested an exception.",
        payload={"eventId": str(event.id), "attendanceId": str(record.id)},
        event_id=event.id,
    )
    await store.save()
    await outbox.publish()
    logger.info("Exception request submitted for attendance %s", record.id)
    return record


def synthesized_time_out(record: AttendanceRecord, event) -> datetime:
    return min(end_of_local_day(record.date), as_utc(event.end_date))


async def review_exception_request(
    store,
    outbox,
    *,
    record_id: uuid.UUID,
    user,
    approve: bool,
    notes: str | None,
    now: datetime,
) -> AttendanceRecord:
    """Approve or reject a pending exception request.

    Approval reconstructs the missing time-out at the end of the attendance
    day (never past the event end), recomputes hours from the real time-in and
    reopens the feedback window with a fresh deadline counted from ``now``.
    """
    record, event = await _load(store, record_id)
    ensure_organizer(user, event)
    if record.exception_status != ExceptionStatus.pending:
        raise NoPendingException()

    record.exception_reviewed_at = now
    record.exception_reviewed_by = user.id
    record.exception_review_notes = (notes or "").strip() or None

    if approve:
        record.exception_status = ExceptionStatus.approved
        time_out = synthesized_time_out(record, event)
        record.time_out = time_out
        record.day_hours = compute_hours(record.time_in, time_out)
        record.voided_hours = False
        record.is_valid = True
        record.total_hours = round_hours(record.day_hours + (record.previous_day_hours or 0))
        await recompute_carried_hours(store, event, record.user_id)
        record.feedback_reminder_sent_at = None
        apply_feedback_policy(event, record, deadline=now + timedelta(hours=event.feedback_deadline_hours))
        title = "Exception request approved"
        message = f"Your exception request for {event.title} was approved. Your hours have been recorded."
    else:
        record.exception_status = ExceptionStatus.rejected
        title = "Exception request rejected"
        message = f"Your exception request for {event.title} was rejected."

    outbox.notify(
        [record.user_id],
        type=NotificationType.exception_reviewed,
        title=title,
        message=message,
        payload={"eventId": str(event.id), "attendanceId": str(record.id)},
        event_id=event.id,
    )
    await store.save()
    await outbox.publish()
    logger.info("Exception request for attendance %s %s by %s", record.id, record.exception_status.value, user.id)
    return record


async def list_pending_exception_requests(store, *, user):
    return await store.pending_exception_requests(None if is_privileged(user) else user.id)


async def get_exception_request(store, *, record_id: uuid.UUID, user) -> AttendanceRecord:
    record, event = await _load(store, record_id)
    if record.user_id != user.id and not is_organizer(user, event):
        raise Forbidden()
    return record
