from __future__ import annotations

import uuid
from datetime import date, datetime

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from app.models.enums import AttendanceAction, AttendanceSource, ExceptionStatus, FeedbackStatus


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class FeedbackOut(CamelModel):
    rating: int | None = None
    comment: str | None = None
    submitted_at: datetime | None = None
    submitted_by: uuid.UUID | None = None
    overridden: bool = False
    override_reason: str | None = None


class ExceptionRequestOut(CamelModel):
    reason: str | None = None
    status: ExceptionStatus | None = None
    requested_at: datetime | None = None
    reviewed_at: datetime | None = None
    reviewed_by: uuid.UUID | None = None
    review_notes: str | None = None


class AttendanceOut(CamelModel):
    id: uuid.UUID
    event_id: uuid.UUID
    user_id: uuid.UUID
    date: date
    time_in: datetime | None = None
    time_out: datetime | None = None
    day_hours: float
    previous_day_hours: float
    total_hours: float
    is_valid: bool
    voided_hours: bool
    status: FeedbackStatus | None = None
    deadline_at: datetime | None = None
    source: AttendanceSource | None = None
    feedback: FeedbackOut | None = None
    exception_request: ExceptionRequestOut | None = None


def attendance_to_out(record) -> AttendanceOut:
    feedback = None
    if record.feedback_submitted_at is not None or record.feedback_rating is not None:
        feedback = FeedbackOut(
            rating=record.feedback_rating,
            comment=record.feedback_comment,
            submitted_at=record.feedback_submitted_at,
            submitted_by=record.feedback_submitted_by,
            overridden=bool(record.feedback_overridden),
            override_reason=record.feedback_override_reason,
        )
    exception_request = None
    if record.exception_status is not None:
        exception_request = ExceptionRequestOut(
            reason=record.exception_reason,
            status=record.exception_status,
            requested_at=record.exception_requested_at,
            reviewed_at=record.exception_reviewed_at,
            reviewed_by=record.exception_reviewed_by,
            review_notes=record.exception_review_notes,
        )
    return AttendanceOut(
        id=record.id,
        event_id=record.event_id,
        user_id=record.user_id,
        date=record.date,
        time_in=record.time_in,
        time_out=record.time_out,
        day_hours=record.day_hours or 0,
        previous_day_hours=record.previous_day_hours or 0,
        total_hours=record.total_hours or 0,
        is_valid=record.is_valid,
        voided_hours=record.voided_hours,
        status=record.status,
        deadline_at=record.deadline_at,
        source=record.source,
        feedback=feedback,
        exception_request=exception_request,
    )


class TokenIssueOut(CamelModel):
    token: str
    event_id: uuid.UUID
    expires_in: int


class CheckInIn(CamelModel):
    token: str = Field(min_length=1)
    action: AttendanceAction | None = None


class ScanIn(CamelModel):
    qr_code: str = Field(min_length=1)
    action: AttendanceAction


class RecordingOut(CamelModel):
    success: bool = True
    action: AttendanceAction
    message: str
    attendance: AttendanceOut


class QrCodesIn(CamelModel):
    day: date | None = Field(default=None, alias="date")


class QrCodesOut(CamelModel):
    event_id: uuid.UUID
    date: date
    check_in_code: str
    check_out_code: str
    generated_at: datetime
    expires_at: datetime
    is_active: bool


class ValidateOut(CamelModel):
    success: bool = True
    invalidated: int


class CountOut(CamelModel):
    event_id: uuid.UUID
    date: date
    count: int


class EventSummaryOut(CamelModel):
    event_id: uuid.UUID
    title: str
    days_attended: int
    hours: float


class VolunteerSummaryOut(CamelModel):
    user_id: uuid.UUID
    total_hours: float
    events: list[EventSummaryOut]
