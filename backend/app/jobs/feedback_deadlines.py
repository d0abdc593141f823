from __future__ import annotations

import logging
from datetime import datetime

from app.models.enums import NotificationType


logger = logging.getLogger(__name__)


def _notify_missed(outbox, *, record_id, user_id, event) -> None:
    payload = {"eventId": str(event.id), "attendanceId": str(record_id)}
    hours = event.feedback_deadline_hours
    outbox.notify(
        [user_id],
        type=NotificationType.feedback_missed,
        title="Feedback deadline missed",
        message=(
            f"Your volunteer hours for {event.title} were voided because feedback was not submitted "
            f"within {hours} hours after the event ended. Please contact the event organizer to reinstate your hours."
        ),
        payload=payload,
        event_id=event.id,
    )
    outbox.notify(
        [event.created_by_user_id],
        type=NotificationType.feedback_missed,
        title="Volunteer missed feedback deadline",
        message=(
            f"A volunteer missed the {hours}-hour feedback deadline for {event.title}. "
            "Their hours have been automatically voided. You can override this decision if needed."
        ),
        payload=payload,
        event_id=event.id,
    )


async def expire_missed_feedback(store, outbox, *, now: datetime) -> dict[str, int]:
    """Void hours of pending records whose feedback deadline has passed.

    Records of events that stopped requiring feedback are closed as
    ``not_required`` instead. Every transition is a conditional update on the
    record still being pending, so a second run over the same records is a
    no-op and a record that changed after the query is skipped.
    """
    counts = {"missed": 0, "not_required": 0, "failed": 0}
    # Plain values: a rollback below expires every loaded instance.
    due = [(r.id, r.event_id, r.user_id) for r in await store.pending_past_deadline(now)]

    events: dict = {}
    for record_id, event_id, user_id in due:
        try:
            if event_id not in events:
                events[event_id] = await store.get_event(event_id)
            event = events[event_id]
            if event is None:
                logger.warning("Attendance %s references a missing event %s", record_id, event_id)
                continue

            if event.require_feedback:
                if not await store.mark_missed(record_id, now):
                    continue
                _notify_missed(outbox, record_id=record_id, user_id=user_id, event=event)
                outcome = "missed"
            else:
                if not await store.mark_not_required(record_id, now):
                    continue
                outcome = "not_required"
            await store.commit()
        except Exception:
            logger.exception("Feedback expiry failed for attendance %s", record_id)
            outbox.discard()
            await store.rollback()
            events.clear()
            counts["failed"] += 1
            continue
        await outbox.publish()
        counts[outcome] += 1

    return counts
