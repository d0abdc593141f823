import unittest
from datetime import datetime, timedelta, timezone

from attendance_fakes import END, START, FakeAttendanceStore, FakeOutbox, make_event, make_user, timed_out_record

from app.models.enums import AttendanceSource, ExceptionStatus, FeedbackStatus, NotificationType, UserRole
from app.services.attendance_recording import check_in, check_out, invalidate_open_sessions
from app.services.errors import (
    DuplicateExceptionRequest,
    Forbidden,
    NoPendingException,
    NotOrganizer,
    ReasonRequired,
    TimeOutAlreadyRecorded,
)
from app.services.exception_requests import (
    get_exception_request,
    list_pending_exception_requests,
    review_exception_request,
    submit_exception_request,
)


class _ExceptionCase(unittest.IsolatedAsyncioTestCase):
    def setUp(self) -> None:
        self.store = FakeAttendanceStore()
        self.outbox = FakeOutbox()
        self.organizer = make_user(UserRole.DEPARTMENT, "Organizer")
        self.volunteer = make_user(name="Volunteer")
        self.event = make_event(self.organizer)
        self.store.add_event(self.event)
        self.store.add_user(self.volunteer)

    async def _open_record(self, event=None, at=None):
        return await check_in(
            self.store,
            event=event or self.event,
            user_id=self.volunteer.id,
            now=at or START + timedelta(hours=1),
            source=AttendanceSource.token,
        )

    async def _request(self, record, reason="My phone died before I could check out", user=None):
        return await submit_exception_request(
            self.store, self.outbox, record_id=record.id, user=user or self.volunteer, reason=reason, now=END
        )

    async def _review(self, record, approve: bool, user=None, now=None):
        return await review_exception_request(
            self.store,
            self.outbox,
            record_id=record.id,
            user=user or self.organizer,
            approve=approve,
            notes="Checked with the shift lead",
            now=now or END + timedelta(hours=2),
        )


class TestSubmitExceptionRequest(_ExceptionCase):
    async def test_submit_notifies_organizer(self) -> None:
        record = await self._open_record()
        await self._request(record)
        self.assertEqual(record.exception_status, ExceptionStatus.pending)
        self.assertEqual(record.exception_requested_at, END)
        notes = self.outbox.sent_to(self.organizer.id)
        self.assertEqual([n.type for n in notes], [NotificationType.exception_requested])

    async def test_duplicate_request(self) -> None:
        record = await self._open_record()
        await self._request(record)
        with self.assertRaises(DuplicateExceptionRequest):
            await self._request(record)

    async def test_rejected_request_can_be_resubmitted(self) -> None:
        record = await self._open_record()
        await self._request(record)
        await self._review(record, approve=False)
        await self._request(record, reason="Second attempt with proof")
        self.assertEqual(record.exception_status, ExceptionStatus.pending)
        self.assertIsNone(record.exception_reviewed_by)

    async def test_completed_record_rejected(self) -> None:
        record = timed_out_record(self.store, self.event, self.volunteer)
        with self.assertRaises(TimeOutAlreadyRecorded):
            await self._request(record)

    async def test_reason_required_and_owner_only(self) -> None:
        record = await self._open_record()
        with self.assertRaises(ReasonRequired):
            await self._request(record, reason="   ")
        with self.assertRaises(Forbidden):
            await self._request(record, user=make_user(name="Stranger"))


class TestReviewExceptionRequest(_ExceptionCase):
    async def test_approval_synthesizes_time_out_and_opens_feedback(self) -> None:
        record = await self._open_record()
        await self._request(record)
        approved_at = END + timedelta(hours=2)
        await self._review(record, approve=True, now=approved_at)

        self.assertEqual(record.exception_status, ExceptionStatus.approved)
        self.assertEqual(record.exception_reviewed_by, self.organizer.id)
        self.assertEqual(record.time_out, END)
        self.assertEqual(record.day_hours, 7.0)
        self.assertEqual(record.total_hours, 7.0)
        self.assertEqual(record.status, FeedbackStatus.pending)
        self.assertEqual(record.deadline_at, approved_at + timedelta(hours=24))
        self.assertEqual(self.outbox.sent_to(self.volunteer.id)[-1].title, "Exception request approved")

    async def test_approval_revalidates_swept_record(self) -> None:
        record = await self._open_record()
        await invalidate_open_sessions(self.store, event=self.event, user=self.organizer)
        self.assertFalse(record.is_valid)
        await self._request(record)
        await self._review(record, approve=True)
        self.assertTrue(record.is_valid)
        self.assertFalse(record.voided_hours)
        self.assertEqual(record.total_hours, 7.0)

    async def test_non_final_day_of_multi_day_event(self) -> None:
        event = make_event(self.organizer, end=datetime(2025, 6, 2, 17, tzinfo=timezone.utc))
        self.store.add_event(event)
        record = await self._open_record(event=event)
        await self._request(record)
        await self._review(record, approve=True)
        # Capped at the end of the record's own day.
        self.assertEqual(record.time_out, datetime(2025, 6, 1, 23, 59, 59, 999000, tzinfo=timezone.utc))
        self.assertEqual(record.status, FeedbackStatus.not_required)
        self.assertIsNone(record.deadline_at)

    async def test_approved_earlier_day_counts_toward_later_days(self) -> None:
        event = make_event(self.organizer, end=datetime(2025, 6, 2, 17, tzinfo=timezone.utc))
        self.store.add_event(event)
        day1 = await self._open_record(event=event, at=START)
        day2 = await self._open_record(event=event, at=START + timedelta(days=1))
        self.assertEqual(day2.previous_day_hours, 0)

        await self._request(day1)
        await self._review(day1, approve=True, now=datetime(2025, 6, 2, 11, tzinfo=timezone.utc))
        self.assertEqual(day1.day_hours, 15.0)
        self.assertEqual(day2.previous_day_hours, 15.0)

        await check_out(self.store, event=event, record=day2, now=datetime(2025, 6, 2, 12, tzinfo=timezone.utc))
        self.assertEqual(day2.day_hours, 3.0)
        self.assertEqual(day2.total_hours, 18.0)
        self.assertEqual(day2.status, FeedbackStatus.pending)

    async def test_approval_after_final_day_updates_its_total(self) -> None:
        event = make_event(self.organizer, end=datetime(2025, 6, 2, 17, tzinfo=timezone.utc))
        self.store.add_event(event)
        day1 = await self._open_record(event=event, at=START)
        day2 = await self._open_record(event=event, at=START + timedelta(days=1))
        await check_out(self.store, event=event, record=day2, now=datetime(2025, 6, 2, 12, tzinfo=timezone.utc))
        self.assertEqual(day2.total_hours, 3.0)

        await self._request(day1)
        await self._review(day1, approve=True, now=datetime(2025, 6, 2, 13, tzinfo=timezone.utc))
        self.assertEqual(day2.previous_day_hours, 15.0)
        self.assertEqual(day2.total_hours, 18.0)

    async def test_rejection_keeps_record_open(self) -> None:
        record = await self._open_record()
        await self._request(record)
        await self._review(record, approve=False)
        self.assertEqual(record.exception_status, ExceptionStatus.rejected)
        self.assertIsNone(record.time_out)
        self.assertIsNone(record.status)
        self.assertEqual(self.outbox.sent_to(self.volunteer.id)[-1].title, "Exception request rejected")

    async def test_review_requires_organizer_and_pending_request(self) -> None:
        record = await self._open_record()
        with self.assertRaises(NoPendingException):
            await self._review(record, approve=True)
        await self._request(record)
        with self.assertRaises(NotOrganizer):
            await self._review(record, approve=True, user=self.volunteer)


class TestExceptionQueries(_ExceptionCase):
    async def test_listing_scoped_to_organized_events(self) -> None:
        record = await self._open_record()
        await self._request(record)

        rows = await list_pending_exception_requests(self.store, user=self.organizer)
        self.assertEqual([(r.id, e.id) for r, e, _ in rows], [(record.id, self.event.id)])
        other_organizer = make_user(UserRole.DEPARTMENT, "Other Organizer")
        self.assertEqual(await list_pending_exception_requests(self.store, user=other_organizer), [])
        staff = make_user(UserRole.CRD_STAFF, "Staff")
        self.assertEqual(len(await list_pending_exception_requests(self.store, user=staff)), 1)

    async def test_read_access(self) -> None:
        record = await self._open_record()
        self.assertIs(await get_exception_request(self.store, record_id=record.id, user=self.volunteer), record)
        self.assertIs(await get_exception_request(self.store, record_id=record.id, user=self.organizer), record)
        with self.assertRaises(Forbidden):
            await get_exception_request(self.store, record_id=record.id, user=make_user(name="Stranger"))


if __name__ == "__main__":
    unittest.main()
