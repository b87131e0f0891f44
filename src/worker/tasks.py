"""
Celery tasks for the network CRM.
Tasks stay thin: they open a session, call the owning service and close it.
"""

import uuid
from typing import Any

from celery import Task
from sqlalchemy import select

from src.core.database import SyncSessionLocal
from src.core.logging import get_logger, new_correlation_id
from src.models import User
from src.services.calendar.sync import CalendarSyncService
from src.services.contacts.relationship_score import RelationshipScoreService
from src.services.gmail.sync import GmailSyncService
from src.services.google_contacts.importer import GoogleContactsService, ImportOptions
from src.services.reminders.service import ReminderService
from src.worker.celery_app import celery_app

logger = get_logger(__name__)


class CallbackTask(Task):
    """Base task with progress callback support."""

    def update_progress(self, phase: str, progress: int, message: str = "") -> None:
        """Update task progress."""
        self.update_state(
            state="PROGRESS",
            meta={
                "phase": phase,
                "progress": progress,
                "message": message,
            },
        )


@celery_app.task(
    bind=True,
    base=CallbackTask,
    name="gmail_sync_task",
    autoretry_for=(Exception,),
    max_retries=3,
    retry_backoff=30,
)
def gmail_sync_task(self, job_id: str, full: bool = False) -> dict[str, Any]:
    """
    Sync Gmail messages for the job's user.

    Phases:
    1. List message ids (full window or history delta) (0-20%)
    2. Fetch in batches and store threads for known contacts (20-95%)
    3. Recalculate relationship scores (95-100%)
    """
    correlation_id = new_correlation_id()
    logger.info(f"[{correlation_id}] Starting Gmail sync job {job_id} (full={full})")

    db = SyncSessionLocal()
    try:
        return GmailSyncService(db).run_sync(
            uuid.UUID(job_id),
            full=full,
            correlation_id=correlation_id,
            on_progress=self.update_progress,
        )
    finally:
        db.close()


@celery_app.task(bind=True, base=CallbackTask, name="google_contacts_import_task")
def google_contacts_import_task(self, job_id: str, options: dict[str, Any] | None = None) -> dict[str, Any]:
    """Run a queued Google Contacts import."""
    correlation_id = new_correlation_id()
    logger.info(f"[{correlation_id}] Starting Google Contacts import job {job_id}")

    db = SyncSessionLocal()
    try:
        return GoogleContactsService(db).run_import_job(
            uuid.UUID(job_id),
            ImportOptions.from_dict(options),
            correlation_id=correlation_id,
            on_progress=self.update_progress,
        )
    finally:
        db.close()


@celery_app.task(name="calendar_sync_task")
def calendar_sync_task(job_id: str) -> dict[str, Any]:
    correlation_id = new_correlation_id()
    logger.info(f"[{correlation_id}] Starting calendar sync job {job_id}")

    db = SyncSessionLocal()
    try:
        return CalendarSyncService(db).run_sync_job(uuid.UUID(job_id), correlation_id=correlation_id)
    finally:
        db.close()


@celery_app.task(name="schedule_calendar_syncs")
def schedule_calendar_syncs() -> dict[str, int]:
    """Periodic fan-out: queue a calendar sync for every connected user."""
    db = SyncSessionLocal()
    queued = 0
    failed = 0
    try:
        service = CalendarSyncService(db)
        for user_id in service.users_with_calendar():
            try:
                service.queue_sync(user_id)
                queued += 1
            except Exception as e:
                db.rollback()
                failed += 1
                logger.error(f"Failed to queue calendar sync for user {user_id}: {e}", exc_info=True)
        logger.info(f"Queued {queued} calendar syncs ({failed} failed)")
        return {"queued": queued, "failed": failed}
    finally:
        db.close()


@celery_app.task(name="send_due_reminder_notifications_task")
def send_due_reminder_notifications_task() -> dict[str, int]:
    db = SyncSessionLocal()
    try:
        result = ReminderService(db).send_due_notifications()
        logger.info(f"Reminder notifications: {result['sent']} sent, {result['failed']} failed")
        return result
    finally:
        db.close()


@celery_app.task(name="recalculate_relationship_scores_task")
def recalculate_relationship_scores_task() -> dict[str, int]:
    """Nightly rescoring of every user's contacts."""
    db = SyncSessionLocal()
    totals = {"users": 0, "processed": 0, "failed": 0}
    try:
        service = RelationshipScoreService(db)
        for user_id in db.execute(select(User.id)).scalars().all():
            result = service.recalculate_all_for_user(user_id)
            totals["users"] += 1
            totals["processed"] += result["processed"]
            totals["failed"] += result["failed"]
        logger.info(
            f"Recalculated relationship scores for {totals['users']} users: "
            f"{totals['processed']} contacts, {totals['failed']} failed"
        )
        return totals
    finally:
        db.close()
