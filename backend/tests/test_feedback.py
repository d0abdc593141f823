import unittest
from datetime import timedelta

from attendance_fakes import END, START, FakeAttendanceStore, FakeOutbox, make_event, make_user, timed_out_record

from app.jobs.feedback_deadlines import expire_missed_feedback
from app.models.enums import AttendanceSource, FeedbackStatus, NotificationType, UserRole
from app.services.attendance_recording import check_in, check_out
from app.services.errors import (
    AlreadySubmitted,
    AttendanceNotCompleted,
    AttendanceNotFound,
    CommentRequired,
    CommentTooLong,
    DeadlinePassed,
    FeedbackNotRequired,
    Forbidden,
    InvalidRating,
    NotOrganizer,
    OverrideDisabled,
)
from app.services.feedback import (
    event_feedback,
    override_feedback,
    pending_feedback_for_volunteer,
    submit_feedback,
    validate_rating,
)


class _FeedbackCase(unittest.IsolatedAsyncioTestCase):
    def setUp(self) -> None:
        self.store = FakeAttendanceStore()
        self.outbox = FakeOutbox()
        self.organizer = make_user(UserRole.DEPARTMENT, "Organizer")
        self.volunteer = make_user(name="Volunteer")
        self.event = make_event(self.organizer)
        self.store.add_event(self.event)
        self.store.add_user(self.volunteer)
        self.record = timed_out_record(self.store, self.event, self.volunteer)

    async def _submit(self, user=None, rating=5, comment="Great day", now=None):
        return await submit_feedback(
            self.store,
            self.outbox,
            record_id=self.record.id,
            user=user or self.volunteer,
            rating=rating,
            comment=comment,
            now=now or END + timedelta(hours=1),
        )


class TestSubmitFeedback(_FeedbackCase):
    async def test_volunteer_submission(self) -> None:
        record = await self._submit(rating=4)
        self.assertEqual(record.status, FeedbackStatus.submitted)
        self.assertEqual(record.feedback_rating, 4)
        self.assertEqual(record.feedback_comment, "Great day")
        self.assertEqual(record.feedback_submitted_by, self.volunteer.id)
        self.assertFalse(record.feedback_overridden)
        self.assertEqual(record.total_hours, 8.0)

        notes = self.outbox.sent_to(self.organizer.id)
        self.assertEqual(len(notes), 1)
        self.assertEqual(notes[0].type, NotificationType.feedback_received)
        self.assertEqual(self.event.feedback_average_rating, 4.0)
        self.assertEqual(self.event.feedback_total_responses, 1)

    async def test_second_submission_rejected(self) -> None:
        await self._submit()
        with self.assertRaises(AlreadySubmitted):
            await self._submit(rating=1)
        self.assertEqual(self.record.feedback_rating, 5)

    async def test_deadline_passed(self) -> None:
        with self.assertRaises(DeadlinePassed):
            await self._submit(now=END + timedelta(hours=24, seconds=1))

    async def test_rating_and_comment_validation(self) -> None:
        for bad in (0, 6, 3.5, True, "abc", None):
            with self.subTest(rating=bad), self.assertRaises(InvalidRating):
                await self._submit(rating=bad)
        with self.assertRaises(CommentRequired):
            await self._submit(comment="   ")
        with self.assertRaises(CommentTooLong):
            await self._submit(comment="x" * 2001)
        self.assertEqual(self.record.status, FeedbackStatus.pending)

    async def test_numeric_strings_are_accepted(self) -> None:
        self.assertEqual(validate_rating("4"), 4)
        self.assertEqual(validate_rating(2.0), 2)

    async def test_incomplete_attendance(self) -> None:
        other = make_user(name="Late")
        open_record = await check_in(
            self.store, event=self.event, user_id=other.id, now=START, source=AttendanceSource.token
        )
        with self.assertRaises(AttendanceNotCompleted):
            await submit_feedback(
                self.store, self.outbox, record_id=open_record.id, user=other, rating=5, comment="ok", now=START
            )

    async def test_not_required(self) -> None:
        self.record.status = FeedbackStatus.not_required
        with self.assertRaises(FeedbackNotRequired):
            await self._submit()

    async def test_stranger_forbidden_and_unknown_record(self) -> None:
        with self.assertRaises(Forbidden):
            await self._submit(user=make_user(name="Stranger"))
        with self.assertRaises(AttendanceNotFound):
            await submit_feedback(
                self.store,
                self.outbox,
                record_id=self.event.id,
                user=self.volunteer,
                rating=5,
                comment="x",
                now=END,
            )

    async def test_organizer_submits_on_behalf_after_deadline(self) -> None:
        record = await self._submit(user=self.organizer, now=END + timedelta(days=3))
        self.assertEqual(record.status, FeedbackStatus.overridden)
        self.assertTrue(record.feedback_overridden)
        self.assertEqual(record.feedback_override_reason, "Submitted by organizer")
        self.assertEqual(self.outbox.published, [])

    async def test_aggregate_failure_does_not_fail_submission(self) -> None:
        async def broken(event_id):
            raise RuntimeError("aggregate unavailable")

        self.store.feedback_aggregate = broken
        record = await self._submit()
        self.assertEqual(record.status, FeedbackStatus.submitted)
        self.assertEqual(self.store.savepoint_rollbacks, 1)
        self.assertEqual(self.store.rollbacks, 0)


class TestOverrideFeedback(_FeedbackCase):
    async def _override(self, user=None, **kwargs):
        return await override_feedback(
            self.store,
            self.outbox,
            record_id=self.record.id,
            user=user or self.organizer,
            now=END + timedelta(days=2),
            **kwargs,
        )

    async def test_missed_then_reinstated(self) -> None:
        await expire_missed_feedback(self.store, self.outbox, now=END + timedelta(hours=25))
        self.assertEqual(self.record.status, FeedbackStatus.missed)
        self.assertEqual(self.record.total_hours, 0)
        self.assertTrue(self.record.voided_hours)

        record = await self._override(reinstate_hours=True, reason="Volunteer was ill", rating=3)
        self.assertEqual(record.status, FeedbackStatus.overridden)
        self.assertFalse(record.voided_hours)
        self.assertTrue(record.is_valid)
        self.assertEqual(record.total_hours, 8.0)
        self.assertEqual(record.feedback_override_reason, "Volunteer was ill")
        self.assertEqual(self.outbox.sent_to(self.volunteer.id)[-1].title, "Feedback override approved")
        self.assertEqual(self.event.feedback_average_rating, 3.0)

    async def test_void(self) -> None:
        record = await self._override(reinstate_hours=False, reason="No show")
        self.assertEqual(record.status, FeedbackStatus.voided)
        self.assertTrue(record.voided_hours)
        self.assertEqual(record.total_hours, 0)
        self.assertEqual(self.outbox.sent_to(self.volunteer.id)[-1].title, "Attendance voided")

    async def test_void_and_reinstate_of_earlier_day_update_final_total(self) -> None:
        event = make_event(self.organizer, end=END + timedelta(days=1))
        self.store.add_event(event)
        days = []
        for offset in (0, 1):
            record = await check_in(
                self.store,
                event=event,
                user_id=self.volunteer.id,
                now=START + timedelta(days=offset),
                source=AttendanceSource.token,
            )
            days.append(await check_out(self.store, event=event, record=record, now=END + timedelta(days=offset)))
        day1, day2 = days
        self.assertEqual(day2.total_hours, 16.0)

        for reinstate, expected in ((False, 8.0), (True, 16.0)):
            await override_feedback(
                self.store,
                self.outbox,
                record_id=day1.id,
                user=self.organizer,
                now=END + timedelta(days=2),
                reinstate_hours=reinstate,
            )
            self.assertEqual(day2.previous_day_hours, expected - 8.0)
            self.assertEqual(day2.total_hours, expected)

    async def test_override_permissions(self) -> None:
        with self.assertRaises(NotOrganizer):
            await self._override(user=self.volunteer, reinstate_hours=True)
        self.event.allow_organizer_override = False
        with self.assertRaises(OverrideDisabled):
            await self._override(reinstate_hours=True)

    async def test_privileged_staff_can_override(self) -> None:
        record = await self._override(user=make_user(UserRole.SYSTEM_ADMIN, "Admin"), reinstate_hours=True)
        self.assertEqual(record.status, FeedbackStatus.overridden)


class TestFeedbackQueries(_FeedbackCase):
    async def test_pending_list_includes_missed_with_overdue_flag(self) -> None:
        other_event = make_event(self.organizer, start=START + timedelta(days=1), end=END + timedelta(days=1))
        self.store.add_event(other_event)
        later = timed_out_record(self.store, other_event, self.volunteer)
        await expire_missed_feedback(self.store, self.outbox, now=END + timedelta(hours=25))

        items = await pending_feedback_for_volunteer(
            self.store, user_id=self.volunteer.id, now=END + timedelta(hours=25)
        )
        by_id = {item.record.id: item for item in items}
        self.assertEqual(set(by_id), {self.record.id, later.id})
        self.assertEqual(by_id[self.record.id].record.status, FeedbackStatus.missed)
        self.assertTrue(by_id[self.record.id].overdue)
        self.assertFalse(by_id[later.id].overdue)

    async def test_event_feedback_requires_organizer(self) -> None:
        with self.assertRaises(NotOrganizer):
            await event_feedback(self.store, event_id=self.event.id, user=self.volunteer)
        event, rows = await event_feedback(self.store, event_id=self.event.id, user=self.organizer)
        self.assertIs(event, self.event)
        self.assertEqual([(r.id, u.id) for r, u in rows], [(self.record.id, self.volunteer.id)])


if __name__ == "__main__":
    unittest.main()
