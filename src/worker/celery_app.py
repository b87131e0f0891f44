"""
Celery application configuration.
"""

import ssl

from celery import Celery
from celery.schedules import crontab

from src.core.config import settings

# Create Celery app
celery_app = Celery(
    "network_crm_worker",
    broker=settings.redis_url,
    backend=settings.redis_url,
    include=["src.worker.tasks"],
)

# Celery configuration
celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    task_time_limit=3600,  # 1 hour max per task
    task_soft_time_limit=3000,
    worker_prefetch_multiplier=1,
    worker_max_tasks_per_child=50,
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    result_expires=3600 * 24,  # Results expire after 24 hours
)

if settings.redis_url.startswith("rediss://"):
    # Managed Redis terminates TLS with certificates we cannot verify
    celery_app.conf.update(
        broker_use_ssl={"ssl_cert_reqs": ssl.CERT_NONE},
        redis_backend_use_ssl={"ssl_cert_reqs": ssl.CERT_NONE},
    )

celery_app.conf.beat_schedule = {
    "send-due-reminder-notifications": {
        "task": "send_due_reminder_notifications_task",
        "schedule": crontab(minute="*/15"),
    },
    "schedule-calendar-syncs": {
        "task": "schedule_calendar_syncs",
        "schedule": crontab(minute="*/15"),
    },
    "recalculate-relationship-scores": {
        "task": "recalculate_relationship_scores_task",
        "schedule": crontab(hour=3, minute=0),
    },
}
