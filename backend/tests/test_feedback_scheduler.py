import unittest
from datetime import timedelta

from attendance_fakes import END, START, FakeAttendanceStore, FakeOutbox, make_event, make_user, timed_out_record

from app.jobs.feedback_deadlines import expire_missed_feedback
from app.jobs.feedback_maintenance import run_feedback_cycle
from app.jobs.feedback_reminders import send_feedback_reminders
from app.models.enums import FeedbackStatus, NotificationType, UserRole


class _SchedulerCase(unittest.IsolatedAsyncioTestCase):
    def setUp(self) -> None:
        self.store = FakeAttendanceStore()
        self.outbox = FakeOutbox()
        self.organizer = make_user(UserRole.DEPARTMENT, "Organizer")
        self.volunteer = make_user(name="Volunteer")
        self.event = make_event(self.organizer)
        self.store.add_event(self.event)
        self.record = timed_out_record(self.store, self.event, self.volunteer)


class TestReminderSweep(_SchedulerCase):
    async def test_single_reminder_inside_window(self) -> None:
        now = END + timedelta(hours=20)
        self.assertEqual(await send_feedback_reminders(self.store, self.outbox, now=now), (1, 0))
        self.assertEqual(await send_feedback_reminders(self.store, self.outbox, now=now + timedelta(minutes=15)), (0, 0))

        reminders = self.outbox.sent_to(self.volunteer.id)
        self.assertEqual(len(reminders), 1)
        self.assertEqual(reminders[0].type, NotificationType.feedback_reminder)
        self.assertEqual(reminders[0].message, "Please submit your feedback for Beach Clean-up before the deadline.")
        self.assertEqual(self.record.feedback_reminder_sent_at, now)

    async def test_nothing_before_window(self) -> None:
        self.assertEqual(await send_feedback_reminders(self.store, self.outbox, now=END + timedelta(hours=10)), (0, 0))
        self.assertIsNone(self.record.feedback_reminder_sent_at)


class TestExpirySweep(_SchedulerCase):
    async def test_missed_deadline_voids_hours_once(self) -> None:
        now = END + timedelta(hours=24, minutes=1)
        first = await expire_missed_feedback(self.store, self.outbox, now=now)
        self.assertEqual(first, {"missed": 1, "not_required": 0, "failed": 0})
        self.assertEqual(self.record.status, FeedbackStatus.missed)
        self.assertTrue(self.record.voided_hours)
        self.assertFalse(self.record.is_valid)
        self.assertEqual(self.record.total_hours, 0)

        second = await expire_missed_feedback(self.store, self.outbox, now=now + timedelta(minutes=15))
        self.assertEqual(second, {"missed": 0, "not_required": 0, "failed": 0})
        self.assertEqual(len(self.outbox.sent_to(self.volunteer.id)), 1)
        self.assertEqual(len(self.outbox.sent_to(self.organizer.id)), 1)
        self.assertIn("within 24 hours", self.outbox.sent_to(self.volunteer.id)[0].message)

    async def test_event_no_longer_requiring_feedback(self) -> None:
        self.event.require_feedback = False
        result = await expire_missed_feedback(self.store, self.outbox, now=END + timedelta(days=2))
        self.assertEqual(result["not_required"], 1)
        self.assertEqual(self.record.status, FeedbackStatus.not_required)
        self.assertEqual(self.record.total_hours, 8.0)
        self.assertFalse(self.record.voided_hours)
        self.assertEqual(self.outbox.published, [])

    async def test_failure_is_isolated_per_record(self) -> None:
        broken_event = make_event(self.organizer)
        self.store.add_event(broken_event)
        broken = timed_out_record(self.store, broken_event, make_user(name="Other"))
        self.store.failing_event_ids.add(broken_event.id)

        result = await expire_missed_feedback(self.store, self.outbox, now=END + timedelta(days=2))
        self.assertEqual(result, {"missed": 1, "not_required": 0, "failed": 1})
        self.assertEqual(broken.status, FeedbackStatus.pending)
        self.assertEqual(self.record.status, FeedbackStatus.missed)
        self.assertEqual(self.store.rollbacks, 1)

    async def test_submission_racing_the_sweep_wins(self) -> None:
        store = self.store
        original = store.pending_past_deadline

        async def pending_then_submitted(now):
            rows = await original(now)
            # Volunteer's submission commits between the query and the update.
            self.record.status = FeedbackStatus.submitted
            return rows

        store.pending_past_deadline = pending_then_submitted
        result = await expire_missed_feedback(store, self.outbox, now=END + timedelta(days=2))
        self.assertEqual(result["missed"], 0)
        self.assertEqual(self.record.status, FeedbackStatus.submitted)
        self.assertEqual(self.record.total_hours, 8.0)
        self.assertEqual(self.outbox.published, [])


class TestFeedbackCycle(_SchedulerCase):
    async def test_cycle_reports_counts(self) -> None:
        early_event = make_event(self.organizer, start=START - timedelta(days=3), end=END - timedelta(days=3))
        self.store.add_event(early_event)
        timed_out_record(self.store, early_event, make_user(name="Early"))

        result = await run_feedback_cycle(self.store, self.outbox, now=END + timedelta(hours=20))
        self.assertEqual(result, {"reminded": 1, "missed": 1, "not_required": 0, "failed": 0})


if __name__ == "__main__":
    unittest.main()
