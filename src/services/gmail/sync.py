"""
Gmail sync: settings, job queueing and the sync run itself.

A sync lists message ids (incrementally from the stored historyId when possible),
fetches them in batches, matches participants to contacts and upserts one
EmailThread row per (contact, message).
"""

import time
import uuid
from datetime import datetime, timezone
from typing import Any, Callable

from google.oauth2.credentials import Credentials
from sqlalchemy import func, select
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.orm import Session

from src.core.config import settings
from src.core.exceptions import ValidationError
from src.core.logging import get_logger, new_correlation_id
from src.integrations.google.credentials import GoogleCredentialsProvider
from src.integrations.google.gmail_client import GmailClient, HistoryExpiredError
from src.models import EmailSyncConfig, EmailThread, ImportJob, Integration, User
from src.models.enums import (
    EmailDirection,
    IntegrationType,
    JobStatus,
    JobType,
    NotificationType,
)
from src.services.contacts.relationship_score import RelationshipScoreService
from src.services.gmail.email_matcher import extract_addresses, filter_participants, match_contacts
from src.services.jobs import JobService
from src.services.notifications import NotificationService
from src.worker.celery_app import celery_app

logger = get_logger(__name__)

MIN_HISTORY_DAYS = 1
MAX_HISTORY_DAYS = 3650
FETCH_PROGRESS_CAP = 25

ProgressCallback = Callable[[str, int, str], None]


class GmailSyncService:
    def __init__(
        self,
        db: Session,
        client_factory: Callable[[Credentials], GmailClient] = GmailClient,
    ):
        self.db = db
        self.client_factory = client_factory

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------

    def get_config(self, user_id: uuid.UUID) -> EmailSyncConfig:
        """Return the user's sync config, creating defaults on first access."""
        config = self.db.execute(
            select(EmailSyncConfig).where(EmailSyncConfig.user_id == user_id)
        ).scalar_one_or_none()

        if config is None:
            config = EmailSyncConfig(
                user_id=user_id,
                gmail_enabled=False,
                sync_enabled=True,
                privacy_mode=True,
                excluded_emails=[],
                excluded_domains=[],
                sync_history_days=settings.gmail_sync_history_days,
            )
            self.db.add(config)
            self.db.commit()
        return config

    def update_config(self, user_id: uuid.UUID, changes: dict[str, Any]) -> EmailSyncConfig:
        config = self.get_config(user_id)

        days = changes.get("sync_history_days")
        if days is not None:
            if not MIN_HISTORY_DAYS <= days <= MAX_HISTORY_DAYS:
                raise ValidationError(
                    f"sync_history_days must be between {MIN_HISTORY_DAYS} and {MAX_HISTORY_DAYS}"
                )
            config.sync_history_days = days

        for field in ("gmail_enabled", "sync_enabled", "privacy_mode"):
            if changes.get(field) is not None:
                setattr(config, field, changes[field])

        if changes.get("excluded_emails") is not None:
            config.excluded_emails = sorted(
                {e.strip().lower() for e in changes["excluded_emails"] if e.strip()}
            )
        if changes.get("excluded_domains") is not None:
            config.excluded_domains = sorted(
                {d.strip().lower().lstrip("@") for d in changes["excluded_domains"] if d.strip()}
            )

        self.db.commit()
        return config

    # ------------------------------------------------------------------
    # Queueing
    # ------------------------------------------------------------------

    def _get_integration(self, user_id: uuid.UUID) -> Integration | None:
        return self.db.execute(
            select(Integration).where(
                Integration.user_id == user_id,
                Integration.type == IntegrationType.GMAIL.value,
                Integration.is_active.is_(True),
            )
        ).scalar_one_or_none()

    def queue_sync(self, user_id: uuid.UUID, full: bool = False) -> dict[str, Any]:
        """
        Create a sync job and enqueue it, unless one is already queued or running.

        Raises:
            ValidationError: Gmail not connected or sync disabled
        """
        if self._get_integration(user_id) is None:
            raise ValidationError("Gmail is not connected")

        config = self.get_config(user_id)
        if not config.gmail_enabled or not config.sync_enabled:
            raise ValidationError("Gmail sync is disabled")

        jobs = JobService(self.db)
        existing = jobs.find_running(user_id, JobType.GMAIL_EMAIL_SYNC)
        if existing:
            logger.info(f"Gmail sync already queued for user {user_id}: {existing.id}")
            return {"job_id": str(existing.id), "status": existing.status, "already_queued": True}

        job = jobs.create(user_id, JobType.GMAIL_EMAIL_SYNC, meta={"full": full})
        task = celery_app.send_task("gmail_sync_task", args=[str(job.id), full])
        job.celery_task_id = task.id
        self.db.commit()

        logger.info(f"Enqueued Gmail sync task {task.id} for user {user_id} (job {job.id})")
        return {"job_id": str(job.id), "status": job.status, "already_queued": False}

    # ------------------------------------------------------------------
    # Sync run
    # ------------------------------------------------------------------

    def _list_message_ids(
        self,
        client: GmailClient,
        config: EmailSyncConfig,
        full: bool,
        profile_history_id: str | None,
        on_progress: ProgressCallback,
        correlation_id: str,
    ) -> tuple[list[str], str | None, bool]:
        """Returns (message_ids, new_history_id, was_full_sync)."""
        if config.history_id and not full:
            try:
                ids, latest = client.list_history(config.history_id)
                return ids, latest or profile_history_id, False
            except HistoryExpiredError:
                logger.warning(
                    f"[{correlation_id}] History {config.history_id} expired, running full sync"
                )

        query = f"newer_than:{config.sync_history_days}d"
        message_ids: list[str] = []
        page_token: str | None = None
        pages = 0

        while True:
            ids, page_token = client.list_message_ids(query=query, page_token=page_token)
            message_ids.extend(ids)
            pages += 1
            on_progress("fetch", min(FETCH_PROGRESS_CAP, pages * 5), f"Listed {len(message_ids)} messages")
            if not page_token:
                break

        return message_ids, profile_history_id, True

    def _process_message(
        self,
        user_id: uuid.UUID,
        message: dict[str, Any],
        user_email: str,
        config: EmailSyncConfig,
        matched_contact_ids: set[uuid.UUID],
    ) -> int:
        """Upsert thread rows for every matched participant. Returns rows written."""
        participants = filter_participants(
            extract_addresses(message),
            user_email,
            config.excluded_emails or [],
            config.excluded_domains or [],
        )
        contacts = match_contacts(self.db, user_id, participants.keys())
        if not contacts:
            return 0

        sender = (message["from"][1] or "").lower()
        direction = EmailDirection.OUTBOUND if sender == user_email else EmailDirection.INBOUND
        body = None if config.privacy_mode else message.get("body")

        for address, contact in contacts.items():
            stmt = insert(EmailThread).values(
                id=uuid.uuid4(),
                user_id=user_id,
                contact_id=contact.id,
                thread_id=message.get("thread_id"),
                external_id=message["message_id"],
                subject=message.get("subject"),
                snippet=message.get("snippet"),
                body=body,
                direction=direction.value,
                participation_type=participants[address].value,
                occurred_at=message["date"],
                source="gmail",
                meta={},
            )
            stmt = stmt.on_conflict_do_update(
                index_elements=["contact_id", "external_id"],
                set_={
                    "subject": stmt.excluded.subject,
                    "snippet": stmt.excluded.snippet,
                    "body": stmt.excluded.body,
                    "updated_at": func.now(),
                },
            )
            self.db.execute(stmt)

            if contact.last_contact is None or message["date"] > contact.last_contact:
                contact.last_contact = message["date"]
            matched_contact_ids.add(contact.id)

        return len(contacts)

    def run_sync(
        self,
        job_id: uuid.UUID,
        full: bool = False,
        correlation_id: str | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> dict[str, Any]:
        """
        Execute a queued Gmail sync job.

        Per-batch failures are recorded on the job and the run continues.
        A fatal error marks the job failed, notifies the user and is re-raised.
        """
        correlation_id = correlation_id or new_correlation_id()
        on_progress = on_progress or (lambda phase, progress, message: None)
        start = time.monotonic()

        job = self.db.get(ImportJob, job_id)
        if job is None:
            raise ValueError(f"Import job {job_id} not found")
        user_id = job.user_id

        # A Celery retry reruns the same job row; counters describe this attempt only
        job.status = JobStatus.PROCESSING.value
        job.started_at = datetime.now(timezone.utc)
        job.completed_at = None
        job.error_message = None
        job.reset_counters()
        self.db.commit()

        logger.info(f"[{correlation_id}] Starting Gmail sync job {job_id} (full={full})")

        try:
            integration = self._get_integration(user_id)
            if integration is None:
                raise ValidationError("Gmail is not connected")

            config = self.get_config(user_id)
            credentials = GoogleCredentialsProvider(self.db).get_credentials(integration)
            client = self.client_factory(credentials)

            profile = client.get_profile()
            user_email = (integration.account_email or profile.get("emailAddress") or "").lower()
            if not user_email:
                user = self.db.get(User, user_id)
                user_email = user.email.lower() if user else ""

            message_ids, new_history_id, was_full = self._list_message_ids(
                client, config, full, profile.get("historyId"), on_progress, correlation_id
            )

            job.total_count = len(message_ids)
            self.db.commit()
            logger.info(f"[{correlation_id}] {len(message_ids)} messages to process")

            batch_size = settings.gmail_sync_batch_size
            total_batches = (len(message_ids) + batch_size - 1) // batch_size
            matched_contact_ids: set[uuid.UUID] = set()

            for batch_number, offset in enumerate(range(0, len(message_ids), batch_size), start=1):
                batch = message_ids[offset : offset + batch_size]
                try:
                    messages = client.fetch_message_batch(batch)
                    written = 0
                    unmatched = 0
                    for message in messages:
                        rows = self._process_message(
                            user_id, message, user_email, config, matched_contact_ids
                        )
                        written += rows
                        if rows == 0:
                            unmatched += 1

                    job.imported_count += written
                    job.skipped_count += unmatched + (len(batch) - len(messages))
                    job.processed_count += len(batch)
                    self.db.commit()
                except Exception as e:
                    self.db.rollback()
                    logger.error(
                        f"[{correlation_id}] Batch {batch_number}/{total_batches} failed: {e}",
                        exc_info=True,
                    )
                    job.failed_count += len(batch)
                    job.processed_count += len(batch)
                    job.record_error(
                        {
                            "batch": batch_number,
                            "message_ids": batch[:5],
                            "error": str(e),
                            "at": datetime.now(timezone.utc).isoformat(),
                        }
                    )
                    self.db.commit()

                on_progress(
                    "process",
                    FETCH_PROGRESS_CAP
                    + round((100 - FETCH_PROGRESS_CAP) * job.processed_count / max(1, job.total_count)),
                    f"Processed {job.processed_count}/{job.total_count} messages",
                )

            now = datetime.now(timezone.utc)
            config.history_id = new_history_id or config.history_id
            config.last_gmail_sync = now
            integration.meta = {**(integration.meta or {}), "last_sync_at": now.isoformat()}
            self.db.commit()

            if matched_contact_ids:
                RelationshipScoreService(self.db).recalculate_for_contacts(list(matched_contact_ids))

            duration_ms = int((time.monotonic() - start) * 1000)
            job.status = JobStatus.COMPLETED.value
            job.completed_at = datetime.now(timezone.utc)
            job.meta = {
                **(job.meta or {}),
                "duration_ms": duration_ms,
                "total_batches": total_batches,
                "contacts_matched": len(matched_contact_ids),
                "full_sync": was_full,
            }

            NotificationService(self.db).create(
                user_id=user_id,
                type=NotificationType.INTEGRATION_SYNC,
                title="Gmail Sync Complete",
                message=(
                    f"Synced {job.imported_count} emails across "
                    f"{len(matched_contact_ids)} contacts"
                ),
                meta={"job_id": str(job.id)},
                commit=False,
            )
            self.db.commit()

            logger.info(
                f"[{correlation_id}] Gmail sync job {job_id} completed in {duration_ms}ms: "
                f"{job.imported_count} imported, {job.failed_count} failed"
            )
            return {
                "job_id": str(job.id),
                "status": job.status,
                "processed": job.processed_count,
                "imported": job.imported_count,
                "skipped": job.skipped_count,
                "failed": job.failed_count,
                "contacts_matched": len(matched_contact_ids),
                "duration_ms": duration_ms,
            }

        except Exception as e:
            logger.error(f"[{correlation_id}] Gmail sync job {job_id} failed: {e}", exc_info=True)
            self.db.rollback()
            job = self.db.get(ImportJob, job_id)
            if job is not None:
                job.status = JobStatus.FAILED.value
                job.error_message = str(e)
                job.completed_at = datetime.now(timezone.utc)
            NotificationService(self.db).create(
                user_id=user_id,
                type=NotificationType.INTEGRATION_SYNC,
                title="Gmail Sync Failed",
                message=f"Gmail sync failed: {e}",
                meta={"job_id": str(job_id)},
                commit=False,
            )
            self.db.commit()
            raise
