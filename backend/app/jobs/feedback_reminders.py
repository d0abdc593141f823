from __future__ import annotations

import logging
from datetime import datetime, timedelta

from app.config import settings
from app.models.enums import NotificationType


logger = logging.getLogger(__name__)


async def send_feedback_reminders(store, outbox, *, now: datetime) -> tuple[int, int]:
    """Remind volunteers whose feedback deadline falls within the reminder window.

    Returns ``(reminded, failed)``.
    """
    until = now + timedelta(hours=settings.FEEDBACK_REMINDER_WINDOW_HOURS)
    # Plain values: a rollback below expires every loaded instance.
    due = [(r.id, r.event_id, r.user_id) for r in await store.pending_due_for_reminder(now, until)]

    events: dict = {}
    reminded = failed = 0
    for record_id, event_id, user_id in due:
        try:
            if event_id not in events:
                events[event_id] = await store.get_event(event_id)
            event = events[event_id]
            if event is None:
                continue
            if not await store.claim_reminder(record_id, now):
                # Already reminded or no longer pending.
                continue
            outbox.notify(
                [user_id],
                type=NotificationType.feedback_reminder,
                title="Feedback reminder",
                message=f"Please submit your feedback for {event.title} before the deadline.",
                payload={"eventId": str(event_id), "attendanceId": str(record_id)},
                event_id=event_id,
            )
            await store.commit()
        except Exception:
            logger.exception("Feedback reminder failed for attendance %s", record_id)
            outbox.discard()
            await store.rollback()
            events.clear()
            failed += 1
            continue
        await outbox.publish()
        reminded += 1

    return reminded, failed
