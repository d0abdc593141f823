from __future__ import annotations

import asyncio
import logging

from redis.exceptions import LockError

from app.celery_app import celery_app
from app.config import settings
from app.integrations.redis import get_redis_sync
from app.jobs.feedback_maintenance import run_feedback_maintenance as _run_feedback_maintenance


FEEDBACK_LOCK_NAME = "locks:feedback-maintenance"
logger = logging.getLogger(__name__)


@celery_app.task(name="app.celery_tasks.run_feedback_maintenance")
def run_feedback_maintenance() -> dict | None:
    lock = get_redis_sync().lock(
        FEEDBACK_LOCK_NAME,
        timeout=settings.FEEDBACK_SWEEP_LOCK_TIMEOUT_SECONDS,
        blocking=False,
    )
    if not lock.acquire():
        logger.info("Feedback maintenance already running; skipping this cycle")
        return None
    try:
        return asyncio.run(_run_feedback_maintenance())
    finally:
        try:
            lock.release()
        except LockError:
            logger.warning("Feedback maintenance lock expired before the cycle finished")
