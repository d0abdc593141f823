from __future__ import annotations

import uuid
from datetime import date, datetime

from sqlalchemy import func, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from app.models.attendance_record import AttendanceRecord
from app.models.enums import ExceptionStatus, FeedbackStatus, RegistrationStatus
from app.models.event import Event
from app.models.event_qr_code import EventQrCode
from app.models.event_volunteer import EventVolunteer
from app.models.user import User
from app.services.errors import ConcurrentUpdate, DuplicateTimeIn


APPROVED_REGISTRATION_STATUSES = (RegistrationStatus.approved, RegistrationStatus.accepted)
FEEDBACK_RESPONSE_STATUSES = (FeedbackStatus.submitted, FeedbackStatus.overridden)


class AttendanceStore:
    """Persistence boundary for attendance records and the event fields they depend on.

    Holds no business rules. Mutations made on loaded records are written by
    ``save``; the scheduler-facing ``claim_reminder``/``mark_*`` methods are
    conditional updates keyed on the record still being ``pending`` so that
    concurrent sweeps and request handlers cannot double-apply a transition.
    """

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    # --- lookups -----------------------------------------------------------------

    async def get_event(self, event_id: uuid.UUID) -> Event | None:
        return (await self.db.execute(select(Event).where(Event.id == event_id))).scalar_one_or_none()

    async def get_record(self, record_id: uuid.UUID) -> AttendanceRecord | None:
        return (
            await self.db.execute(select(AttendanceRecord).where(AttendanceRecord.id == record_id))
        ).scalar_one_or_none()

    async def get_record_for_day(self, event_id: uuid.UUID, user_id: uuid.UUID, day: date) -> AttendanceRecord | None:
        return (
            await self.db.execute(
                select(AttendanceRecord).where(
                    AttendanceRecord.event_id == event_id,
                    AttendanceRecord.user_id == user_id,
                    AttendanceRecord.date == day,
                )
            )
        ).scalar_one_or_none()

    async def prior_day_records(self, event_id: uuid.UUID, user_id: uuid.UUID, before: date) -> list[AttendanceRecord]:
        stmt = (
            select(AttendanceRecord)
            .where(
                AttendanceRecord.event_id == event_id,
                AttendanceRecord.user_id == user_id,
                AttendanceRecord.date < before,
            )
            .order_by(AttendanceRecord.date)
        )
        return list((await self.db.execute(stmt)).scalars().all())

    async def volunteer_event_days(self, event_id: uuid.UUID, user_id: uuid.UUID) -> list[AttendanceRecord]:
        stmt = (
            select(AttendanceRecord)
            .where(AttendanceRecord.event_id == event_id, AttendanceRecord.user_id == user_id)
            .order_by(AttendanceRecord.date)
        )
        return list((await self.db.execute(stmt)).scalars().all())

    async def get_registration(self, event_id: uuid.UUID, user_id: uuid.UUID) -> EventVolunteer | None:
        return (
            await self.db.execute(
                select(EventVolunteer).where(EventVolunteer.event_id == event_id, EventVolunteer.user_id == user_id)
            )
        ).scalar_one_or_none()

    async def has_registrations(self, event_id: uuid.UUID) -> bool:
        count = (
            await self.db.execute(select(func.count(EventVolunteer.id)).where(EventVolunteer.event_id == event_id))
        ).scalar_one()
        return count > 0

    async def get_qr_code(self, event_id: uuid.UUID, day: date) -> EventQrCode | None:
        return (
            await self.db.execute(select(EventQrCode).where(EventQrCode.event_id == event_id, EventQrCode.date == day))
        ).scalar_one_or_none()

    # --- writes ------------------------------------------------------------------

    def add(self, entity) -> None:
        self.db.add(entity)

    async def add_record(self, record: AttendanceRecord) -> None:
        try:
            async with self.db.begin_nested():
                self.db.add(record)
        except IntegrityError as exc:
            raise DuplicateTimeIn() from exc

    async def save(self) -> None:
        try:
            await self.db.commit()
        except StaleDataError as exc:
            await self.db.rollback()
            raise ConcurrentUpdate() from exc

    async def commit(self) -> None:
        await self.db.commit()

    async def rollback(self) -> None:
        await self.db.rollback()

    def savepoint(self):
        return self.db.begin_nested()

    # --- feedback aggregate ------------------------------------------------------

    async def feedback_aggregate(self, event_id: uuid.UUID) -> tuple[float | None, int]:
        row = (
            await self.db.execute(
                select(func.avg(AttendanceRecord.feedback_rating), func.count(AttendanceRecord.id)).where(
                    AttendanceRecord.event_id == event_id,
                    AttendanceRecord.status.in_(FEEDBACK_RESPONSE_STATUSES),
                    AttendanceRecord.feedback_rating.is_not(None),
                )
            )
        ).one()
        average, total = row
        return (float(average) if average is not None else None), int(total or 0)

    async def write_feedback_summary(
        self, event_id: uuid.UUID, *, average_rating: float, total_responses: int, calculated_at: datetime
    ) -> None:
        await self.db.execute(
            update(Event)
            .where(Event.id == event_id)
            .values(
                feedback_average_rating=average_rating,
                feedback_total_responses=total_responses,
                feedback_last_calculated_at=calculated_at,
            )
        )

    # --- queries -----------------------------------------------------------------

    async def open_sessions(self, event_id: uuid.UUID) -> list[AttendanceRecord]:
        stmt = select(AttendanceRecord).where(
            AttendanceRecord.event_id == event_id,
            AttendanceRecord.time_in.is_not(None),
            AttendanceRecord.time_out.is_(None),
            AttendanceRecord.is_valid.is_(True),
        )
        return list((await self.db.execute(stmt)).scalars().all())

    async def pending_due_for_reminder(self, now: datetime, until: datetime) -> list[AttendanceRecord]:
        stmt = select(AttendanceRecord).where(
            AttendanceRecord.status == FeedbackStatus.pending,
            AttendanceRecord.is_valid.is_(True),
            AttendanceRecord.deadline_at > now,
            AttendanceRecord.deadline_at <= until,
            AttendanceRecord.feedback_reminder_sent_at.is_(None),
        )
        return list((await self.db.execute(stmt.order_by(AttendanceRecord.deadline_at))).scalars().all())

    async def pending_past_deadline(self, now: datetime) -> list[AttendanceRecord]:
        stmt = select(AttendanceRecord).where(
            AttendanceRecord.status == FeedbackStatus.pending,
            AttendanceRecord.is_valid.is_(True),
            AttendanceRecord.deadline_at <= now,
        )
        return list((await self.db.execute(stmt.order_by(AttendanceRecord.deadline_at))).scalars().all())

    async def pending_feedback_for_user(self, user_id: uuid.UUID) -> list[tuple[AttendanceRecord, Event]]:
        stmt = (
            select(AttendanceRecord, Event)
            .join(Event, Event.id == AttendanceRecord.event_id)
            .where(
                AttendanceRecord.user_id == user_id,
                or_(
                    (AttendanceRecord.status == FeedbackStatus.pending) & AttendanceRecord.is_valid.is_(True),
                    AttendanceRecord.status == FeedbackStatus.missed,
                ),
            )
            .order_by(AttendanceRecord.deadline_at.asc().nulls_last())
        )
        return [(row[0], row[1]) for row in (await self.db.execute(stmt)).all()]

    async def event_records(self, event_id: uuid.UUID) -> list[tuple[AttendanceRecord, User | None]]:
        stmt = (
            select(AttendanceRecord, User)
            .outerjoin(User, User.id == AttendanceRecord.user_id)
            .where(AttendanceRecord.event_id == event_id)
            .order_by(AttendanceRecord.date, AttendanceRecord.time_in)
        )
        return [(row[0], row[1]) for row in (await self.db.execute(stmt)).all()]

    async def volunteer_records(self, user_id: uuid.UUID) -> list[tuple[AttendanceRecord, Event]]:
        stmt = (
            select(AttendanceRecord, Event)
            .join(Event, Event.id == AttendanceRecord.event_id)
            .where(AttendanceRecord.user_id == user_id)
            .order_by(Event.start_date, AttendanceRecord.date)
        )
        return [(row[0], row[1]) for row in (await self.db.execute(stmt)).all()]

    async def pending_exception_requests(
        self, organizer_id: uuid.UUID | None
    ) -> list[tuple[AttendanceRecord, Event, User | None]]:
        stmt = (
            select(AttendanceRecord, Event, User)
            .join(Event, Event.id == AttendanceRecord.event_id)
            .outerjoin(User, User.id == AttendanceRecord.user_id)
            .where(AttendanceRecord.exception_status == ExceptionStatus.pending)
        )
        if organizer_id is not None:
            stmt = stmt.where(Event.created_by_user_id == organizer_id)
        stmt = stmt.order_by(AttendanceRecord.exception_requested_at)
        return [(row[0], row[1], row[2]) for row in (await self.db.execute(stmt)).all()]

    async def count_for_day(self, event_id: uuid.UUID, day: date) -> int:
        return (
            await self.db.execute(
                select(func.count(AttendanceRecord.id)).where(
                    AttendanceRecord.event_id == event_id, AttendanceRecord.date == day
                )
            )
        ).scalar_one()

    # --- conditional transitions used by the scheduler -----------------------------

    async def _conditional_update(self, record_id: uuid.UUID, *conditions, **values) -> bool:
        result = await self.db.execute(
            update(AttendanceRecord)
            .where(
                AttendanceRecord.id == record_id,
                AttendanceRecord.status == FeedbackStatus.pending,
                AttendanceRecord.is_valid.is_(True),
                *conditions,
            )
            .values(version=AttendanceRecord.version + 1, **values)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def claim_reminder(self, record_id: uuid.UUID, now: datetime) -> bool:
        return await self._conditional_update(
            record_id,
            AttendanceRecord.feedback_reminder_sent_at.is_(None),
            feedback_reminder_sent_at=now,
        )

    async def mark_missed(self, record_id: uuid.UUID, now: datetime) -> bool:
        return await self._conditional_update(
            record_id,
            AttendanceRecord.deadline_at <= now,
            status=FeedbackStatus.missed,
            voided_hours=True,
            total_hours=0,
            is_valid=False,
        )

    async def mark_not_required(self, record_id: uuid.UUID, now: datetime) -> bool:
        return await self._conditional_update(
            record_id,
            AttendanceRecord.deadline_at <= now,
            status=FeedbackStatus.not_required,
        )
