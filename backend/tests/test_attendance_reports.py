import csv
import io
import unittest
from datetime import date, timedelta

from attendance_fakes import END, START, FakeAttendanceStore, make_event, make_user, timed_out_record

from app.models.enums import AttendanceSource, FeedbackStatus, UserRole
from app.services.attendance_recording import check_in
from app.services.attendance_reports import EXPORT_HEADERS, export_event_csv, today_count, volunteer_summary
from app.services.errors import EventNotFound, NotOrganizer


class TestAttendanceReports(unittest.IsolatedAsyncioTestCase):
    def setUp(self) -> None:
        self.store = FakeAttendanceStore()
        self.organizer = make_user(UserRole.DEPARTMENT, "Organizer")
        self.volunteer = make_user(name="Ana Volunteer")
        self.store.add_user(self.volunteer)
        self.event = make_event(self.organizer)
        self.store.add_event(self.event)

    async def test_summary_counts_only_credited_hours(self) -> None:
        timed_out_record(self.store, self.event, self.volunteer)
        second = make_event(self.organizer, title="Food Drive", start=START + timedelta(days=7), end=END + timedelta(days=7))
        self.store.add_event(second)
        voided = timed_out_record(self.store, second, self.volunteer, status=FeedbackStatus.voided)
        voided.voided_hours = True
        voided.total_hours = 0

        summary = await volunteer_summary(self.store, user_id=self.volunteer.id)
        by_title = {e.title: e for e in summary.events}
        self.assertEqual(by_title["Beach Clean-up"].hours, 8.0)
        self.assertEqual(by_title["Food Drive"].hours, 0)
        self.assertEqual(by_title["Food Drive"].days_attended, 1)
        self.assertEqual(summary.total_hours, 8.0)

    async def test_today_count(self) -> None:
        await check_in(self.store, event=self.event, user_id=self.volunteer.id, now=START, source=AttendanceSource.qr)
        self.assertEqual(await today_count(self.store, event_id=self.event.id, user=self.organizer, now=START), 1)
        self.assertEqual(
            await today_count(self.store, event_id=self.event.id, user=self.organizer, now=START + timedelta(days=1)), 0
        )
        with self.assertRaises(NotOrganizer):
            await today_count(self.store, event_id=self.event.id, user=self.volunteer, now=START)

    async def test_csv_export(self) -> None:
        timed_out_record(self.store, self.event, self.volunteer)
        filename, content = await export_event_csv(self.store, event_id=self.event.id, user=self.organizer)
        self.assertEqual(filename, f"attendance_{self.event.id}.csv")
        rows = list(csv.reader(io.StringIO(content)))
        self.assertEqual(rows[0], EXPORT_HEADERS)
        self.assertEqual(rows[1][0], "Ana Volunteer")
        self.assertEqual(rows[1][2], date(2025, 6, 1).isoformat())
        self.assertEqual(rows[1][5], "8.00")
        self.assertEqual(rows[1][6], "pending")

    async def test_csv_export_unknown_event(self) -> None:
        with self.assertRaises(EventNotFound):
            await export_event_csv(self.store, event_id=self.volunteer.id, user=self.organizer)


if __name__ == "__main__":
    unittest.main()
