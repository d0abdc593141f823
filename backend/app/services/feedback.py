from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime

from app.api.access import ensure_organizer, is_organizer
from app.config import settings
from app.models.attendance_record import AttendanceRecord
from app.models.enums import FeedbackStatus, NotificationType
from app.services.attendance_recording import recompute_carried_hours
from app.services.errors import (
    AlreadySubmitted,
    AttendanceNotCompleted,
    AttendanceNotFound,
    CommentRequired,
    CommentTooLong,
    DeadlinePassed,
    EventNotFound,
    FeedbackNotRequired,
    Forbidden,
    InvalidRating,
    OverrideDisabled,
)
from app.services.hours import as_utc, restored_total, round_hours


logger = logging.getLogger(__name__)

OVERRIDE_REASON_MAX_LENGTH = 1000
PROXY_SUBMISSION_REASON = "Submitted by organizer"


def is_attendance_completed(record: AttendanceRecord) -> bool:
    return record.time_in is not None and record.time_out is not None


# TODO: drop once rows imported from the legacy attendance collection carry both time_in and time_out.
def _legacy_completion_hint(record: AttendanceRecord) -> bool:
    return (
        record.status in (FeedbackStatus.submitted, FeedbackStatus.overridden, FeedbackStatus.pending)
        or record.time_out is not None
        or (record.total_hours or 0) > 0
    )


def validate_rating(value) -> int:
    if value is None or isinstance(value, bool):
        raise InvalidRating()
    try:
        number = float(value)
    except (TypeError, ValueError) as exc:
        raise InvalidRating() from exc
    if not number.is_integer() or not 1 <= number <= 5:
        raise InvalidRating()
    return int(number)


def normalize_comment(value, *, max_length: int | None = None) -> str:
    text = str(value).strip() if value is not None else ""
    if not text:
        raise CommentRequired()
    if len(text) > (max_length or settings.FEEDBACK_COMMENT_MAX_LENGTH):
        raise CommentTooLong()
    return text


def _clear_void(record: AttendanceRecord) -> None:
    record.voided_hours = False
    record.is_valid = True
    record.total_hours = restored_total(record)


async def _load(store, record_id: uuid.UUID):
    record = await store.get_record(record_id)
    if record is None:
        raise AttendanceNotFound()
    event = await store.get_event(record.event_id)
    if event is None:
        raise EventNotFound()
    return record, event


async def recalculate_event_feedback(store, event_id: uuid.UUID, *, now: datetime) -> None:
    """Refresh the event's cached rating summary. Failures are logged, never raised."""
    # Runs after the triggering change is committed; the savepoint keeps a
    # failure here from expiring that change's loaded state.
    try:
        async with store.savepoint():
            average, total = await store.feedback_aggregate(event_id)
            await store.write_feedback_summary(
                event_id,
                average_rating=round_hours(average) if average is not None else 0,
                total_responses=total,
                calculated_at=now,
            )
        await store.commit()
    except Exception:
        logger.exception("Error recalculating feedback summary for event %s", event_id)


def _payload(event, record: AttendanceRecord) -> dict:
    return {"eventId": str(event.id), "attendanceId": str(record.id)}


async def submit_feedback(
    store,
    outbox,
    *,
    record_id: uuid.UUID,
    user,
    rating,
    comment,
    now: datetime,
) -> AttendanceRecord:
    record, event = await _load(store, record_id)

    is_volunteer = record.user_id == user.id
    organizer = is_organizer(user, event)
    if not is_volunteer and not organizer:
        raise Forbidden()

    if not is_attendance_completed(record) and not _legacy_completion_hint(record):
        raise AttendanceNotCompleted()
    if record.status == FeedbackStatus.not_required:
        raise FeedbackNotRequired()
    if record.status == FeedbackStatus.submitted and not organizer:
        raise AlreadySubmitted()
    if is_volunteer and not organizer:
        if record.deadline_at is not None and now > as_utc(record.deadline_at):
            raise DeadlinePassed()

    parsed_rating = validate_rating(rating)
    comment_text = normalize_comment(comment)

    proxy = organizer and not is_volunteer
    record.feedback_rating = parsed_rating
    record.feedback_comment = comment_text
    record.feedback_submitted_at = now
    record.feedback_submitted_by = user.id
    record.feedback_overridden = proxy
    record.feedback_override_reason = PROXY_SUBMISSION_REASON if proxy else None
    record.status = FeedbackStatus.overridden if proxy else FeedbackStatus.submitted
    _clear_void(record)

    if is_volunteer:
        outbox.notify(
            [event.created_by_user_id],
            type=NotificationType.feedback_received,
            title="Volunteer feedback received",
            message=f"{getattr(user, 'full_name', None) or 'Volunteer'} submitted feedback for {event.title}",
            payload=_payload(event, record),
            event_id=event.id,
        )
    await store.save()
    await outbox.publish()
    await recalculate_event_feedback(store, event.id, now=now)
    logger.info("Feedback %s for attendance %s by user %s", record.status.value, record.id, user.id)
    return record


async def override_feedback(
    store,
    outbox,
    *,
    record_id: uuid.UUID,
    user,
    now: datetime,
    rating=None,
    comment=None,
    reinstate_hours: bool = False,
    reason: str | None = None,
) -> AttendanceRecord:
    record, event = await _load(store, record_id)
    ensure_organizer(user, event)
    if event.allow_organizer_override is False:
        raise OverrideDisabled()

    if rating is not None:
        record.feedback_rating = validate_rating(rating)
    if comment is not None:
        text = str(comment).strip()
        if len(text) > settings.FEEDBACK_COMMENT_MAX_LENGTH:
            raise CommentTooLong()
        record.feedback_comment = text

    record.feedback_submitted_at = now
    record.feedback_submitted_by = user.id
    record.feedback_overridden = True
    record.feedback_override_reason = (str(reason).strip() if reason else "")[:OVERRIDE_REASON_MAX_LENGTH]

    if reinstate_hours:
        record.status = FeedbackStatus.overridden
        _clear_void(record)
        title = "Feedback override approved"
        message = f"Your attendance for {event.title} has been reinstated by the organizer."
    else:
        record.status = FeedbackStatus.voided
        record.voided_hours = True
        record.total_hours = 0
        title = "Attendance voided"
        message = f"Your attendance for {event.title} was voided by the organizer."
    await recompute_carried_hours(store, event, record.user_id)

    outbox.notify(
        [record.user_id],
        type=NotificationType.feedback_override,
        title=title,
        message=message,
        payload=_payload(event, record),
        event_id=event.id,
    )
    await store.save()
    await outbox.publish()
    await recalculate_event_feedback(store, event.id, now=now)
    logger.info("Organizer %s overrode attendance %s -> %s", user.id, record.id, record.status.value)
    return record


@dataclass
class PendingFeedbackItem:
    record: AttendanceRecord
    event: object
    overdue: bool


async def pending_feedback_for_volunteer(store, *, user_id: uuid.UUID, now: datetime) -> list[PendingFeedbackItem]:
    rows = await store.pending_feedback_for_user(user_id)
    return [
        PendingFeedbackItem(
            record=record,
            event=event,
            overdue=record.deadline_at is not None and now > as_utc(record.deadline_at),
        )
        for record, event in rows
    ]


async def event_feedback(store, *, event_id: uuid.UUID, user):
    event = await store.get_event(event_id)
    if event is None:
        raise EventNotFound()
    ensure_organizer(user, event)
    return event, await store.event_records(event.id)
