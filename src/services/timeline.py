"""
Unified per-contact timeline: emails, logged activities and notes, newest first.

Pagination is by cursor: the occurred_at of the last event on the previous page.
Each source is queried for limit + 1 rows below the cursor, then the sources are
merged and cut to the page size.
"""

import uuid
from datetime import datetime
from typing import Any

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from src.core.exceptions import ValidationError
from src.models import ContactActivity, EmailThread, Note
from src.models.enums import ActivityType
from src.services.contacts.service import get_owned_contact
from src.services.reminders.due_dates import as_utc

DEFAULT_LIMIT = 20
MAX_LIMIT = 100
SNIPPET_LENGTH = 200

TIMELINE_TYPES = tuple(t.value for t in ActivityType)


def truncate(text: str | None, length: int = SNIPPET_LENGTH) -> str | None:
    if text is None or len(text) <= length:
        return text
    return text[: length - 3] + "..."


def email_event(email: EmailThread) -> dict[str, Any]:
    return {
        "id": email.id,
        "type": ActivityType.EMAIL.value,
        "occurred_at": as_utc(email.occurred_at),
        "title": email.subject or "(No subject)",
        "snippet": email.snippet,
        "direction": email.direction,
        "source": email.source,
        "metadata": {"thread_id": email.thread_id, **(email.meta or {})},
    }


def activity_event(activity: ContactActivity) -> dict[str, Any]:
    kind = activity.type if activity.type in TIMELINE_TYPES else ActivityType.OTHER.value
    return {
        "id": activity.id,
        "type": kind,
        "occurred_at": as_utc(activity.occurred_at),
        "title": activity.title or kind.title(),
        "snippet": activity.description,
        "direction": None,
        "source": "activity",
        "metadata": activity.meta or {},
    }


def note_event(note: Note) -> dict[str, Any]:
    return {
        "id": note.id,
        "type": ActivityType.NOTE.value,
        "occurred_at": as_utc(note.created_at),
        "title": "Note",
        "snippet": truncate(note.content),
        "direction": None,
        "source": "manual",
        "metadata": {"is_pinned": note.is_pinned, "full_content": note.content},
    }


class TimelineService:
    def __init__(self, db: Session):
        self.db = db

    def timeline(
        self,
        user_id: uuid.UUID,
        contact_id: uuid.UUID,
        types: list[str] | None = None,
        search: str | None = None,
        cursor: datetime | None = None,
        limit: int = DEFAULT_LIMIT,
    ) -> dict[str, Any]:
        """
        One page of a contact's history.

        Args:
            types: Event types to include (EMAIL, CALL, MEETING, NOTE, MESSAGE, OTHER); all when empty
            search: Case-insensitive substring matched against titles and text
            cursor: Only events strictly older than this
            limit: Page size, 1 to 100

        Returns:
            {"data", "total", "next_cursor", "has_more"}

        Raises:
            ValidationError: Unknown type or limit out of range
            NotFoundError: Contact missing or owned by someone else
        """
        if not 1 <= limit <= MAX_LIMIT:
            raise ValidationError(f"limit must be between 1 and {MAX_LIMIT}")

        wanted = {t.upper() for t in types or []} or set(TIMELINE_TYPES)
        unknown = wanted - set(TIMELINE_TYPES)
        if unknown:
            raise ValidationError(f"Unknown timeline type: {', '.join(sorted(unknown))}")

        get_owned_contact(self.db, user_id, contact_id)
        cursor = as_utc(cursor)
        pattern = f"%{search.strip()}%" if search and search.strip() else None

        sources = self._sources(user_id, contact_id, wanted, pattern)
        events: list[dict[str, Any]] = []
        for model, timestamp, conditions, to_event in sources:
            stmt = select(model).where(*conditions)
            if cursor is not None:
                stmt = stmt.where(timestamp < cursor)
            rows = self.db.execute(stmt.order_by(timestamp.desc()).limit(limit + 1)).scalars()
            events.extend(to_event(row) for row in rows)

        events.sort(key=lambda event: event["occurred_at"], reverse=True)
        has_more = len(events) > limit
        page = events[:limit]

        total = sum(
            self.db.execute(select(func.count(model.id)).where(*conditions)).scalar() or 0
            for model, _, conditions, _ in sources
        )

        return {
            "data": page,
            "total": total,
            "next_cursor": page[-1]["occurred_at"] if has_more and page else None,
            "has_more": has_more,
        }

    def _sources(
        self, user_id: uuid.UUID, contact_id: uuid.UUID, wanted: set[str], pattern: str | None
    ) -> list[tuple]:
        """(model, timestamp column, filters, row converter) for each requested source."""
        sources = []

        if ActivityType.EMAIL.value in wanted:
            conditions = [EmailThread.contact_id == contact_id, EmailThread.user_id == user_id]
            if pattern:
                conditions.append(or_(EmailThread.subject.ilike(pattern), EmailThread.snippet.ilike(pattern)))
            sources.append((EmailThread, EmailThread.occurred_at, conditions, email_event))

        activity_types = sorted(wanted - {ActivityType.EMAIL.value, ActivityType.NOTE.value})
        if activity_types:
            conditions = [
                ContactActivity.contact_id == contact_id,
                ContactActivity.user_id == user_id,
                ContactActivity.type.in_(activity_types),
            ]
            if pattern:
                conditions.append(
                    or_(ContactActivity.title.ilike(pattern), ContactActivity.description.ilike(pattern))
                )
            sources.append((ContactActivity, ContactActivity.occurred_at, conditions, activity_event))

        if ActivityType.NOTE.value in wanted:
            conditions = [Note.contact_id == contact_id, Note.user_id == user_id]
            if pattern:
                conditions.append(Note.content.ilike(pattern))
            sources.append((Note, Note.created_at, conditions, note_event))

        return sources
