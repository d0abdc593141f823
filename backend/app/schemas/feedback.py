from __future__ import annotations

import uuid
from datetime import datetime

from pydantic import Field

from app.schemas.attendance import AttendanceOut, CamelModel


class FeedbackSubmitIn(CamelModel):
    # Range and length are checked by the feedback service so the error codes stay stable.
    rating: int | float | str | None = None
    comment: str | None = None


class FeedbackOverrideIn(CamelModel):
    rating: int | float | str | None = None
    comment: str | None = None
    reinstate_hours: bool = False
    reason: str | None = Field(default=None, max_length=1000)


class FeedbackResultOut(CamelModel):
    success: bool = True
    message: str
    attendance: AttendanceOut


class PendingFeedbackOut(CamelModel):
    attendance: AttendanceOut
    event_id: uuid.UUID
    event_title: str
    event_end_date: datetime
    deadline_at: datetime | None = None
    overdue: bool


class EventFeedbackRowOut(CamelModel):
    attendance: AttendanceOut
    volunteer_name: str | None = None
    volunteer_email: str | None = None


class EventFeedbackOut(CamelModel):
    event_id: uuid.UUID
    title: str
    require_feedback: bool
    allow_organizer_override: bool
    feedback_deadline_hours: int
    average_rating: float
    total_responses: int
    last_calculated_at: datetime | None = None
    records: list[EventFeedbackRowOut]
