from __future__ import annotations

from celery import Celery
from celery.schedules import crontab
from celery.signals import worker_ready

from app.config import settings


celery_app = Celery(
    "volunteer_hub",
    broker=settings.REDIS_URL,
    backend=settings.REDIS_URL,
    include=["app.celery_tasks"],
)

celery_app.conf.timezone = "UTC"
celery_app.conf.task_serializer = "json"
celery_app.conf.result_serializer = "json"
celery_app.conf.accept_content = ["json"]

celery_app.conf.beat_schedule = {
    "run-feedback-maintenance": {
        "task": "app.celery_tasks.run_feedback_maintenance",
        "schedule": crontab(minute=f"*/{settings.FEEDBACK_SWEEP_INTERVAL_MINUTES}"),
    },
}


@worker_ready.connect
def _run_feedback_maintenance_on_start(sender=None, **kwargs) -> None:
    celery_app.send_task("app.celery_tasks.run_feedback_maintenance")
