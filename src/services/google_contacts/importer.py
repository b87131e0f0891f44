"""
Google Contacts import: preview, synchronous import, queued import and incremental sync.
"""

import time
import uuid
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable

from google.oauth2.credentials import Credentials
from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.orm import Session

from src.core.config import settings
from src.core.exceptions import NotFoundError, ServiceUnavailableError, ValidationError
from src.core.logging import get_logger, new_correlation_id
from src.integrations.google.base import GoogleApiError
from src.integrations.google.credentials import GoogleCredentialsProvider
from src.integrations.google.people_client import PeopleClient, SyncTokenExpiredError
from src.models import Contact, ImportJob, Integration, IntegrationLink
from src.models.enums import ContactSource, IntegrationType, JobStatus, JobType, NotificationType
from src.services.contacts.deduplication import (
    DuplicateMatch,
    batch_find_duplicates,
    merge_contact_data,
)
from src.services.contacts.relationship_score import RelationshipScoreService
from src.services.jobs import JobService
from src.services.notifications import NotificationService
from src.worker.celery_app import celery_app

logger = get_logger(__name__)

CONTACT_GROUP_PREFIX = "contactGroups/"
MERGE_FIELDS = ("first_name", "last_name", "email", "phone", "company", "position")


@dataclass
class ImportOptions:
    selected_contact_ids: list[str] | None = None
    skip_duplicates: bool = True
    update_existing: bool = False
    tag_mapping: dict[str, str] = field(default_factory=dict)
    exclude_labels: list[str] = field(default_factory=list)
    preserve_original_tags: bool = True

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "ImportOptions":
        data = data or {}
        return cls(**{k: v for k, v in data.items() if k in cls.__dataclass_fields__ and v is not None})

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class ImportResult:
    imported: int = 0
    updated: int = 0
    skipped: int = 0
    failed: int = 0
    errors: list[dict[str, Any]] = field(default_factory=list)
    touched_contact_ids: list[uuid.UUID] = field(default_factory=list)

    def to_dict(self, duration_ms: int) -> dict[str, Any]:
        return {
            "imported": self.imported,
            "updated": self.updated,
            "skipped": self.skipped,
            "failed": self.failed,
            "errors": self.errors,
            "duration_ms": duration_ms,
        }


def transform_person(person: dict[str, Any]) -> dict[str, Any]:
    """
    Convert a People API person into contact fields.

    The primary email (else the first) becomes email; the rest are kept in
    metadata["alternate_emails"]. Contact group memberships become tags.
    """
    names = person.get("names") or [{}]
    emails = person.get("emailAddresses") or []
    phones = person.get("phoneNumbers") or []
    organizations = person.get("organizations") or [{}]

    primary = next((e for e in emails if e.get("metadata", {}).get("primary")), None)
    primary = primary or (emails[0] if emails else None)
    primary_email = primary.get("value") if primary else None

    tags = []
    for membership in person.get("memberships") or []:
        group = membership.get("contactGroupMembership", {}).get("contactGroupResourceName")
        if group:
            tags.append(group.replace(CONTACT_GROUP_PREFIX, ""))

    return {
        "external_id": person["resourceName"],
        "first_name": names[0].get("givenName") or "",
        "last_name": names[0].get("familyName"),
        "email": primary_email.strip().lower() if primary_email else None,
        "phone": phones[0].get("value") if phones else None,
        "company": organizations[0].get("name"),
        "position": organizations[0].get("title"),
        "tags": tags,
        "metadata": {
            "alternate_emails": [
                e["value"] for e in emails if e.get("value") and e.get("value") != primary_email
            ],
            "google_resource_name": person["resourceName"],
        },
    }


def apply_tag_options(tags: list[str], options: ImportOptions) -> list[str]:
    """Map, filter and optionally keep original labels."""
    mapped = [options.tag_mapping.get(tag, tag) for tag in tags]
    if options.exclude_labels:
        mapped = [tag for tag in mapped if tag not in options.exclude_labels]
    if options.preserve_original_tags and options.tag_mapping:
        mapped += [tag for tag in tags if tag not in options.tag_mapping]
    return list(dict.fromkeys(mapped))


def _contact_dict(contact: Contact) -> dict[str, Any]:
    return {
        "id": contact.id,
        "first_name": contact.first_name,
        "last_name": contact.last_name,
        "email": contact.email,
        "phone": contact.phone,
        "company": contact.company,
        "position": contact.position,
        "tags": list(contact.tags or []),
        "metadata": dict(contact.meta or {}),
    }


class GoogleContactsService:
    def __init__(
        self,
        db: Session,
        client_factory: Callable[[Credentials], PeopleClient] = PeopleClient,
    ):
        self.db = db
        self.client_factory = client_factory

    def _get_integration(self, user_id: uuid.UUID) -> Integration:
        integration = self.db.execute(
            select(Integration).where(
                Integration.user_id == user_id,
                Integration.type == IntegrationType.GOOGLE_CONTACTS.value,
                Integration.is_active.is_(True),
            )
        ).scalar_one_or_none()
        if integration is None:
            raise NotFoundError("Google Contacts integration not found")
        return integration

    def _fetch_people(
        self, integration: Integration, sync_token: str | None = None
    ) -> tuple[list[dict[str, Any]], list[str], str | None]:
        """Pull connections, translating People API failures into user-facing errors."""
        credentials = GoogleCredentialsProvider(self.db).get_credentials(integration)
        client = self.client_factory(credentials)
        try:
            return client.list_all_connections(sync_token=sync_token)
        except SyncTokenExpiredError:
            raise
        except GoogleApiError as e:
            logger.error(f"People API call failed for integration {integration.id}: {e}")
            if e.status_code == 403:
                raise ValidationError("People API access denied") from e
            if e.status_code == 401:
                raise ValidationError("Google authentication expired. Please reconnect") from e
            raise ServiceUnavailableError("Google Contacts is unavailable") from e

    def _existing_contacts(self, user_id: uuid.UUID) -> list[Contact]:
        return list(
            self.db.execute(
                select(Contact).where(Contact.user_id == user_id, Contact.deleted_at.is_(None))
            ).scalars()
        )

    # ------------------------------------------------------------------
    # Preview
    # ------------------------------------------------------------------

    def preview(self, user_id: uuid.UUID) -> dict[str, Any]:
        """Show what an import would do without writing anything."""
        integration = self._get_integration(user_id)
        people, _, _ = self._fetch_people(integration)
        candidates = [transform_person(p) for p in people]

        existing = [_contact_dict(c) for c in self._existing_contacts(user_id)]
        matches = batch_find_duplicates(candidates, existing)

        tag_counts: dict[str, int] = {}
        contacts = []
        exact = potential = 0
        for index, candidate in enumerate(candidates):
            match = matches.get(index)
            if match and match.match_type == "EXACT":
                exact += 1
            elif match:
                potential += 1
            for tag in candidate["tags"]:
                tag_counts[tag] = tag_counts.get(tag, 0) + 1
            contacts.append({**candidate, "duplicate_match": match.to_dict() if match else None})

        return {
            "total_count": len(candidates),
            "new_contacts": len(candidates) - exact - potential,
            "exact_duplicates": exact,
            "potential_duplicates": potential,
            "tags_preview": [
                {"name": tag, "count": count}
                for tag, count in sorted(tag_counts.items(), key=lambda item: -item[1])
            ],
            "contacts": contacts,
        }

    # ------------------------------------------------------------------
    # Import
    # ------------------------------------------------------------------

    def _upsert_link(self, integration_id: uuid.UUID, contact_id: uuid.UUID, external_id: str) -> None:
        stmt = insert(IntegrationLink).values(
            id=uuid.uuid4(),
            integration_id=integration_id,
            contact_id=contact_id,
            external_id=external_id,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["integration_id", "external_id"],
            set_={"contact_id": stmt.excluded.contact_id},
        )
        self.db.execute(stmt)

    def _import_one(
        self,
        user_id: uuid.UUID,
        integration: Integration,
        candidate: dict[str, Any],
        match: DuplicateMatch | None,
        existing_by_id: dict[uuid.UUID, Contact],
        options: ImportOptions,
        result: ImportResult,
    ) -> None:
        if not candidate["first_name"] and not candidate["email"] and not candidate["phone"]:
            result.skipped += 1
            return

        tags = apply_tag_options(candidate["tags"], options)
        is_exact = match is not None and match.match_type == "EXACT"

        if is_exact and not options.update_existing:
            result.skipped += 1
            return

        if is_exact:
            contact = existing_by_id[match.contact_id]
            merged = merge_contact_data(_contact_dict(contact), {**candidate, "tags": tags})
            for name in MERGE_FIELDS:
                if merged.get(name) is not None:
                    setattr(contact, name, merged[name])
            contact.tags = merged["tags"]
            contact.meta = merged["metadata"]
            contact.source = ContactSource.GOOGLE_CONTACTS.value
            self.db.flush()
            self._upsert_link(integration.id, contact.id, candidate["external_id"])
            result.updated += 1
        else:
            contact = Contact(
                id=uuid.uuid4(),
                user_id=user_id,
                first_name=candidate["first_name"] or (candidate["email"] or "").split("@")[0] or "Unknown",
                last_name=candidate["last_name"],
                email=candidate["email"],
                phone=candidate["phone"],
                company=candidate["company"],
                position=candidate["position"],
                tags=tags,
                meta=candidate["metadata"],
                source=ContactSource.GOOGLE_CONTACTS.value,
                importance=0,
                frequency=0,
            )
            self.db.add(contact)
            self.db.flush()
            self._upsert_link(integration.id, contact.id, candidate["external_id"])
            existing_by_id[contact.id] = contact
            result.imported += 1

        result.touched_contact_ids.append(contact.id)

    def import_batch(
        self,
        user_id: uuid.UUID,
        integration: Integration,
        candidates: list[dict[str, Any]],
        existing: list[Contact],
        options: ImportOptions,
        result: ImportResult,
    ) -> None:
        """
        Import one batch. Each contact runs in a savepoint so a failure only
        loses that contact and is recorded in result.errors.
        """
        existing_by_id = {c.id: c for c in existing}
        matches = batch_find_duplicates(candidates, [_contact_dict(c) for c in existing])

        for index, candidate in enumerate(candidates):
            try:
                with self.db.begin_nested():
                    self._import_one(
                        user_id,
                        integration,
                        candidate,
                        matches.get(index),
                        existing_by_id,
                        options,
                        result,
                    )
            except Exception as e:
                result.failed += 1
                result.errors.append({"contact_id": candidate["external_id"], "error": str(e)})
                logger.warning(f"Failed to import {candidate['external_id']}: {e}")

        self.db.commit()
        existing[:] = list(existing_by_id.values())

    def _select_candidates(self, people: list[dict[str, Any]], options: ImportOptions) -> list[dict[str, Any]]:
        candidates = [transform_person(p) for p in people]
        if options.selected_contact_ids:
            selected = set(options.selected_contact_ids)
            candidates = [c for c in candidates if c["external_id"] in selected]
        return candidates

    def _finish(self, integration: Integration, result: ImportResult, sync_token: str | None) -> None:
        integration.meta = {
            **(integration.meta or {}),
            "sync_token": sync_token or (integration.meta or {}).get("sync_token"),
            "last_sync_at": datetime.now(timezone.utc).isoformat(),
        }
        self.db.commit()

        if result.touched_contact_ids:
            try:
                RelationshipScoreService(self.db).recalculate_for_contacts(result.touched_contact_ids)
            except Exception as e:
                self.db.rollback()
                logger.warning(f"Failed to calculate relationship scores after import: {e}")

    def import_contacts(self, user_id: uuid.UUID, options: ImportOptions | None = None) -> dict[str, Any]:
        """Import synchronously and return the counters."""
        options = options or ImportOptions()
        start = time.monotonic()

        integration = self._get_integration(user_id)
        people, _, sync_token = self._fetch_people(integration)
        candidates = self._select_candidates(people, options)
        logger.info(f"Importing {len(candidates)} Google contacts for user {user_id}")

        result = ImportResult()
        self.import_batch(
            user_id, integration, candidates, self._existing_contacts(user_id), options, result
        )
        self._finish(integration, result, sync_token)

        return result.to_dict(int((time.monotonic() - start) * 1000))

    def queue_import(self, user_id: uuid.UUID, options: ImportOptions | None = None) -> ImportJob:
        options = options or ImportOptions()
        self._get_integration(user_id)

        job = JobService(self.db).create(user_id, JobType.GOOGLE_CONTACTS, meta={"options": options.to_dict()})
        task = celery_app.send_task("google_contacts_import_task", args=[str(job.id), options.to_dict()])
        job.celery_task_id = task.id
        self.db.commit()

        logger.info(f"Enqueued Google Contacts import {task.id} for user {user_id} (job {job.id})")
        return job

    def run_import_job(
        self,
        job_id: uuid.UUID,
        options: ImportOptions,
        correlation_id: str | None = None,
        on_progress: Callable[[str, int, str], None] | None = None,
    ) -> dict[str, Any]:
        """Execute a queued import in batches, persisting counters after each batch."""
        correlation_id = correlation_id or new_correlation_id()
        on_progress = on_progress or (lambda phase, progress, message: None)
        start = time.monotonic()

        job = self.db.get(ImportJob, job_id)
        if job is None:
            raise ValueError(f"Import job {job_id} not found")
        user_id = job.user_id

        job.status = JobStatus.PROCESSING.value
        job.started_at = datetime.now(timezone.utc)
        job.reset_counters()
        self.db.commit()

        try:
            integration = self._get_integration(user_id)
            people, _, sync_token = self._fetch_people(integration)
            candidates = self._select_candidates(people, options)

            job.total_count = len(candidates)
            self.db.commit()
            logger.info(f"[{correlation_id}] Importing {len(candidates)} contacts (job {job_id})")

            existing = self._existing_contacts(user_id)
            result = ImportResult()
            batch_size = settings.google_contacts_batch_size

            for offset in range(0, len(candidates), batch_size):
                batch = candidates[offset : offset + batch_size]
                errors_before = len(result.errors)
                self.import_batch(user_id, integration, batch, existing, options, result)

                job.processed_count += len(batch)
                job.imported_count = result.imported + result.updated
                job.skipped_count = result.skipped
                job.failed_count = result.failed
                for entry in result.errors[errors_before:]:
                    job.record_error(entry)
                self.db.commit()
                on_progress("import", job.progress, f"Processed {job.processed_count}/{job.total_count}")

            self._finish(integration, result, sync_token)

            duration_ms = int((time.monotonic() - start) * 1000)
            job.status = JobStatus.COMPLETED.value
            job.completed_at = datetime.now(timezone.utc)
            job.meta = {**(job.meta or {}), "duration_ms": duration_ms, "updated": result.updated}

            NotificationService(self.db).create(
                user_id=user_id,
                type=NotificationType.INTEGRATION_SYNC,
                title="Google Contacts Import Complete",
                message=(
                    f"Imported {result.imported} new contacts, updated {result.updated}, "
                    f"skipped {result.skipped}"
                ),
                meta={"job_id": str(job.id)},
                commit=False,
            )
            self.db.commit()

            logger.info(f"[{correlation_id}] Google Contacts job {job_id} completed in {duration_ms}ms")
            return result.to_dict(duration_ms)

        except Exception as e:
            logger.error(f"[{correlation_id}] Google Contacts job {job_id} failed: {e}", exc_info=True)
            self.db.rollback()
            job = self.db.get(ImportJob, job_id)
            if job is not None:
                job.status = JobStatus.FAILED.value
                job.error_message = str(e)
                job.completed_at = datetime.now(timezone.utc)
            NotificationService(self.db).create(
                user_id=user_id,
                type=NotificationType.INTEGRATION_SYNC,
                title="Google Contacts Import Failed",
                message=f"Import failed: {e}",
                meta={"job_id": str(job_id)},
                commit=False,
            )
            self.db.commit()
            raise

    # ------------------------------------------------------------------
    # Incremental sync
    # ------------------------------------------------------------------

    def sync_incremental(self, user_id: uuid.UUID) -> dict[str, Any]:
        """
        Apply changes since the stored sync token.
        Without a token only a fresh token is recorded.
        """
        integration = self._get_integration(user_id)
        sync_token = (integration.meta or {}).get("sync_token")
        synced_at = datetime.now(timezone.utc)

        people: list[dict[str, Any]] = []
        deleted_names: list[str] = []
        next_token: str | None = None
        if sync_token:
            try:
                people, deleted_names, next_token = self._fetch_people(
                    integration, sync_token=sync_token
                )
            except SyncTokenExpiredError:
                logger.warning(f"Sync token expired for integration {integration.id}, resetting")
                sync_token = None

        if not sync_token:
            _, _, next_token = self._fetch_people(integration)
            integration.meta = {
                **(integration.meta or {}),
                "sync_token": next_token,
                "last_sync_at": synced_at.isoformat(),
            }
            self.db.commit()
            return {"added": 0, "updated": 0, "deleted": 0, "synced_at": synced_at.isoformat()}

        links = {
            link.external_id: link
            for link in self.db.execute(
                select(IntegrationLink).where(IntegrationLink.integration_id == integration.id)
            ).scalars()
        }

        added = updated = deleted = 0
        touched: list[uuid.UUID] = []

        for person in people:
            data = transform_person(person)
            link = links.get(data["external_id"])
            contact = self.db.get(Contact, link.contact_id) if link else None

            if contact is not None:
                for name in MERGE_FIELDS:
                    if data.get(name):
                        setattr(contact, name, data[name])
                contact.tags = list(dict.fromkeys([*(contact.tags or []), *data["tags"]]))
                contact.meta = {**(contact.meta or {}), **data["metadata"]}
                updated += 1
            else:
                contact = Contact(
                    id=uuid.uuid4(),
                    user_id=user_id,
                    first_name=data["first_name"] or (data["email"] or "").split("@")[0] or "Unknown",
                    last_name=data["last_name"],
                    email=data["email"],
                    phone=data["phone"],
                    company=data["company"],
                    position=data["position"],
                    tags=data["tags"],
                    meta=data["metadata"],
                    source=ContactSource.GOOGLE_CONTACTS.value,
                    importance=0,
                    frequency=0,
                )
                self.db.add(contact)
                self.db.flush()
                self._upsert_link(integration.id, contact.id, data["external_id"])
                added += 1
            touched.append(contact.id)

        for resource_name in deleted_names:
            link = links.get(resource_name)
            if link is None:
                continue
            contact = self.db.get(Contact, link.contact_id)
            if contact is not None and contact.deleted_at is None:
                contact.deleted_at = synced_at
                deleted += 1

        integration.meta = {
            **(integration.meta or {}),
            "sync_token": next_token or sync_token,
            "last_sync_at": synced_at.isoformat(),
        }
        self.db.commit()

        if touched:
            RelationshipScoreService(self.db).recalculate_for_contacts(touched)

        logger.info(
            f"Google Contacts sync for user {user_id}: "
            f"{added} added, {updated} updated, {deleted} deleted"
        )
        return {"added": added, "updated": updated, "deleted": deleted, "synced_at": synced_at.isoformat()}
