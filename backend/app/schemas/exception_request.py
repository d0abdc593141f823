from __future__ import annotations

import uuid
from typing import Literal

from pydantic import Field

from app.schemas.attendance import AttendanceOut, CamelModel


class ExceptionRequestIn(CamelModel):
    reason: str | None = Field(default=None, max_length=2000)


class ExceptionReviewIn(CamelModel):
    action: Literal["approve", "reject"]
    notes: str | None = Field(default=None, max_length=2000)


class ExceptionRequestResultOut(CamelModel):
    success: bool = True
    message: str
    attendance: AttendanceOut


class PendingExceptionOut(CamelModel):
    attendance: AttendanceOut
    event_id: uuid.UUID
    event_title: str
    volunteer_name: str | None = None
    volunteer_email: str | None = None
