import unittest
import uuid
from unittest.mock import patch

from app.config import settings
from app.models.enums import NotificationType
from app.services.notifications import NotificationOutbox, notification_to_payload


class FakeSession:
    def __init__(self) -> None:
        self.added = []

    def add(self, obj) -> None:
        self.added.append(obj)


class TestNotificationOutbox(unittest.IsolatedAsyncioTestCase):
    def test_notify_stages_one_row_per_distinct_recipient(self) -> None:
        db = FakeSession()
        outbox = NotificationOutbox(db)
        user_id = uuid.uuid4()
        event_id = uuid.uuid4()
        count = outbox.notify(
            [user_id, None, user_id],
            type=NotificationType.feedback_reminder,
            title="Feedback reminder",
            message="Please submit your feedback",
            payload={"eventId": str(event_id)},
            event_id=event_id,
        )
        self.assertEqual(count, 1)
        self.assertEqual(len(db.added), 1)
        payload = notification_to_payload(db.added[0])
        self.assertEqual(payload["type"], "feedback_reminder")
        self.assertEqual(payload["event_id"], str(event_id))

    async def test_publish_is_best_effort(self) -> None:
        outbox = NotificationOutbox(FakeSession())
        outbox.notify([uuid.uuid4()], type=NotificationType.feedback_missed, title="t", message="m")

        async def broken(**kwargs):
            raise ConnectionError("redis down")

        with patch("app.services.notifications.publish_notification", broken):
            with self.assertLogs("app.services.notifications", level="ERROR"):
                await outbox.publish()
        self.assertEqual(outbox._staged, [])

    async def test_publish_skipped_when_redis_disabled(self) -> None:
        outbox = NotificationOutbox(FakeSession())
        outbox.notify([uuid.uuid4()], type=NotificationType.feedback_override, title="t", message="m")
        with patch.object(settings, "REDIS_ENABLED", False), patch(
            "app.services.notifications.get_redis_sync"
        ) as redis_factory:
            await outbox.publish()
        redis_factory.assert_not_called()

    def test_discard_drops_staged_rows(self) -> None:
        outbox = NotificationOutbox(FakeSession())
        outbox.notify([uuid.uuid4()], type=NotificationType.exception_reviewed, title="t", message="m")
        outbox.discard()
        self.assertEqual(outbox._staged, [])


if __name__ == "__main__":
    unittest.main()
