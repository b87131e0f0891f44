"""
Google Calendar sync: turns meetings with known contacts into MEETING activities.
"""

import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Callable

from google.oauth2.credentials import Credentials
from sqlalchemy import func, select
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.orm import Session

from src.core.config import settings
from src.core.exceptions import NotFoundError
from src.core.logging import get_logger, new_correlation_id
from src.integrations.google.calendar_client import CalendarClient
from src.integrations.google.credentials import GoogleCredentialsProvider
from src.models import ContactActivity, ImportJob, Integration
from src.models.enums import ActivityType, IntegrationType, JobStatus, JobType
from src.services.contacts.relationship_score import RelationshipScoreService
from src.services.gmail.email_matcher import match_contacts
from src.services.jobs import JobService
from src.worker.celery_app import celery_app

logger = get_logger(__name__)


def event_start(event: dict[str, Any]) -> datetime | None:
    """Start time of an event; all-day events start at midnight UTC."""
    start = event.get("start") or {}
    if start.get("dateTime"):
        return datetime.fromisoformat(start["dateTime"].replace("Z", "+00:00"))
    if start.get("date"):
        return datetime.fromisoformat(start["date"]).replace(tzinfo=timezone.utc)
    return None


def event_attendee_emails(event: dict[str, Any], user_email: str | None) -> list[str]:
    """Attendee addresses other than the calendar owner."""
    own = (user_email or "").lower()
    emails = []
    for attendee in event.get("attendees") or []:
        address = (attendee.get("email") or "").lower()
        if not address or attendee.get("self") or attendee.get("resource"):
            continue
        if address == own:
            continue
        if attendee.get("organizer") and (event.get("organizer") or {}).get("self"):
            continue
        emails.append(address)
    return list(dict.fromkeys(emails))


class CalendarSyncService:
    def __init__(
        self,
        db: Session,
        client_factory: Callable[[Credentials], CalendarClient] = CalendarClient,
    ):
        self.db = db
        self.client_factory = client_factory

    def _get_integration(self, user_id: uuid.UUID) -> Integration | None:
        return self.db.execute(
            select(Integration).where(
                Integration.user_id == user_id,
                Integration.type == IntegrationType.GOOGLE_CALENDAR.value,
                Integration.is_active.is_(True),
            )
        ).scalar_one_or_none()

    def queue_sync(self, user_id: uuid.UUID) -> ImportJob:
        if self._get_integration(user_id) is None:
            raise NotFoundError("Google Calendar integration not found")

        jobs = JobService(self.db)
        existing = jobs.find_running(user_id, JobType.GOOGLE_CALENDAR_SYNC)
        if existing:
            return existing

        job = jobs.create(user_id, JobType.GOOGLE_CALENDAR_SYNC)
        task = celery_app.send_task("calendar_sync_task", args=[str(job.id)])
        job.celery_task_id = task.id
        self.db.commit()
        return job

    def users_with_calendar(self) -> list[uuid.UUID]:
        """Users with an active calendar integration (for the periodic fan-out)."""
        return list(
            self.db.execute(
                select(Integration.user_id).where(
                    Integration.type == IntegrationType.GOOGLE_CALENDAR.value,
                    Integration.is_active.is_(True),
                )
            ).scalars()
        )

    def sync(self, user_id: uuid.UUID, job: ImportJob | None = None, correlation_id: str = "") -> dict[str, Any]:
        """
        Pull events in the configured window and upsert MEETING activities.
        Per-event failures are recorded on the job and skipped.
        """
        integration = self._get_integration(user_id)
        if integration is None:
            raise NotFoundError("Google Calendar integration not found")

        credentials = GoogleCredentialsProvider(self.db).get_credentials(integration)
        client = self.client_factory(credentials)

        now = datetime.now(timezone.utc)
        events = client.list_events(
            time_min=now - timedelta(days=settings.calendar_sync_days_back),
            time_max=now + timedelta(days=settings.calendar_sync_days_ahead),
        )
        logger.info(f"[{correlation_id}] {len(events)} calendar events for user {user_id}")

        if job is not None:
            job.total_count = len(events)
            self.db.commit()

        touched: set[uuid.UUID] = set()
        activities = 0
        skipped = 0
        failed = 0

        for event in events:
            if event.get("status") == "cancelled" or not event.get("attendees"):
                skipped += 1
                continue
            try:
                with self.db.begin_nested():
                    written = self._process_event(user_id, event, integration.account_email, now, touched)
                activities += written
                if written == 0:
                    skipped += 1
            except Exception as e:
                failed += 1
                logger.warning(f"[{correlation_id}] Failed to process event {event.get('id')}: {e}")
                if job is not None:
                    job.record_error({"event_id": event.get("id"), "error": str(e)})

        if job is not None:
            job.processed_count = len(events)
            job.imported_count = activities
            job.skipped_count = skipped
            job.failed_count = failed

        integration.meta = {**(integration.meta or {}), "last_sync_at": now.isoformat()}
        self.db.commit()

        if touched:
            RelationshipScoreService(self.db).recalculate_for_contacts(list(touched))

        return {
            "events": len(events),
            "activities": activities,
            "contacts_touched": len(touched),
            "skipped": skipped,
            "failed": failed,
            "synced_at": now.isoformat(),
        }

    def _process_event(
        self,
        user_id: uuid.UUID,
        event: dict[str, Any],
        user_email: str | None,
        now: datetime,
        touched: set[uuid.UUID],
    ) -> int:
        start = event_start(event)
        if start is None:
            return 0

        contacts = match_contacts(self.db, user_id, event_attendee_emails(event, user_email))
        for contact in contacts.values():
            stmt = insert(ContactActivity).values(
                id=uuid.uuid4(),
                user_id=user_id,
                contact_id=contact.id,
                type=ActivityType.MEETING.value,
                title=event.get("summary") or "Meeting",
                description=event.get("description"),
                occurred_at=start,
                external_id=event["id"],
                meta={"html_link": event.get("htmlLink"), "location": event.get("location")},
            )
            stmt = stmt.on_conflict_do_update(
                index_elements=["contact_id", "external_id"],
                set_={
                    "title": stmt.excluded.title,
                    "description": stmt.excluded.description,
                    "occurred_at": stmt.excluded.occurred_at,
                    "updated_at": func.now(),
                },
            )
            self.db.execute(stmt)

            if start <= now and (contact.last_contact is None or start > contact.last_contact):
                contact.last_contact = start
            touched.add(contact.id)

        return len(contacts)

    def run_sync_job(self, job_id: uuid.UUID, correlation_id: str | None = None) -> dict[str, Any]:
        correlation_id = correlation_id or new_correlation_id()
        job = self.db.get(ImportJob, job_id)
        if job is None:
            raise ValueError(f"Import job {job_id} not found")

        job.status = JobStatus.PROCESSING.value
        job.started_at = datetime.now(timezone.utc)
        self.db.commit()

        try:
            result = self.sync(job.user_id, job=job, correlation_id=correlation_id)
        except Exception as e:
            logger.error(f"[{correlation_id}] Calendar sync job {job_id} failed: {e}", exc_info=True)
            self.db.rollback()
            job = self.db.get(ImportJob, job_id)
            job.status = JobStatus.FAILED.value
            job.error_message = str(e)
            job.completed_at = datetime.now(timezone.utc)
            self.db.commit()
            raise

        job.status = JobStatus.COMPLETED.value
        job.completed_at = datetime.now(timezone.utc)
        job.meta = {**(job.meta or {}), "contacts_touched": result["contacts_touched"]}
        self.db.commit()
        return result
