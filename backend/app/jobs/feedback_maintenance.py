from __future__ import annotations

import logging
from datetime import datetime, timezone

from app.db import SessionLocal
from app.jobs.feedback_deadlines import expire_missed_feedback
from app.jobs.feedback_reminders import send_feedback_reminders
from app.services.attendance_store import AttendanceStore
from app.services.notifications import NotificationOutbox


logger = logging.getLogger(__name__)


async def run_feedback_cycle(store, outbox, *, now: datetime) -> dict[str, int]:
    reminded, reminder_failures = await send_feedback_reminders(store, outbox, now=now)
    expired = await expire_missed_feedback(store, outbox, now=now)
    return {
        "reminded": reminded,
        "missed": expired["missed"],
        "not_required": expired["not_required"],
        "failed": reminder_failures + expired["failed"],
    }


async def run_feedback_maintenance(now: datetime | None = None) -> dict[str, int]:
    now = now or datetime.now(timezone.utc)
    async with SessionLocal() as db:
        result = await run_feedback_cycle(AttendanceStore(db), NotificationOutbox(db), now=now)
    logger.info("Feedback maintenance: %s", result)
    return result
