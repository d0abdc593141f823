from __future__ import annotations

import uuid
from datetime import date, datetime

from sqlalchemy import Boolean, Date, DateTime, Enum, Float, ForeignKey, Integer, String, UniqueConstraint, func
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from app.db import Base
from app.models.enums import AttendanceSource, ExceptionStatus, FeedbackStatus


class AttendanceRecord(Base):
    __tablename__ = "attendance_records"
    __table_args__ = (
        UniqueConstraint("event_id", "user_id", "date", name="uq_attendance_record_event_user_day"),
    )

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    event_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("events.id", ondelete="CASCADE"), index=True, nullable=False
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False
    )
    date: Mapped[date] = mapped_column(Date, nullable=False)

    time_in: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    time_out: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    day_hours: Mapped[float] = mapped_column(Float, nullable=False, default=0, server_default="0")
    previous_day_hours: Mapped[float] = mapped_column(Float, nullable=False, default=0, server_default="0")
    total_hours: Mapped[float] = mapped_column(Float, nullable=False, default=0, server_default="0")

    is_valid: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default="true")
    voided_hours: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default="false")
    # NULL while the volunteer is timed in and no feedback policy applies yet
    status: Mapped[FeedbackStatus | None] = mapped_column(
        Enum(FeedbackStatus, name="feedback_status"), index=True
    )
    deadline_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), index=True)
    feedback_reminder_sent_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    feedback_rating: Mapped[int | None] = mapped_column(Integer)
    feedback_comment: Mapped[str | None] = mapped_column(String(2000))
    feedback_submitted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    feedback_submitted_by: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL")
    )
    feedback_overridden: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default="false")
    feedback_override_reason: Mapped[str | None] = mapped_column(String(1000))

    exception_reason: Mapped[str | None] = mapped_column(String(2000))
    exception_status: Mapped[ExceptionStatus | None] = mapped_column(
        Enum(ExceptionStatus, name="exception_status"), index=True
    )
    exception_requested_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    exception_reviewed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    exception_reviewed_by: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL")
    )
    exception_review_notes: Mapped[str | None] = mapped_column(String(2000))

    source: Mapped[AttendanceSource | None] = mapped_column(Enum(AttendanceSource, name="attendance_source"))
    scan_reference: Mapped[str | None] = mapped_column(String(200), index=True)

    version: Mapped[int] = mapped_column(Integer, nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    __mapper_args__ = {"version_id_col": version}
