"""
Celery application configuration.
"""

from celery import Celery
from celery.schedules import crontab

from app.config import settings

celery_app = Celery(
    "swisstools",
    broker=settings.redis_url,
    backend=settings.redis_url,
    include=[
        "app.workers.reconcile",
    ],
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="Africa/Lagos",
    enable_utc=True,
    task_track_started=True,
    task_time_limit=300,  # 5 minutes
    worker_prefetch_multiplier=1,
    task_acks_late=True,
)

celery_app.conf.beat_schedule = {
    "reconcile-pending-transactions": {
        "task": "app.workers.reconcile.reconcile_pending_transactions",
        "schedule": crontab(minute="*/15"),
    },
}
