"""
Contact CRUD, search and duplicate checks.
"""

import math
import re
import uuid
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from src.core.exceptions import ConflictError, NotFoundError, ValidationError
from src.core.logging import get_logger
from src.models import Contact
from src.models.enums import ContactSource
from src.services.reminders.due_dates import as_utc

logger = get_logger(__name__)

EMAIL_PATTERN = re.compile(r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$")
PHONE_PATTERN = re.compile(r"^\+[1-9]\d{1,14}$")

SORT_COLUMNS = {
    "last_contact": Contact.last_contact,
    "importance": Contact.importance,
    "name": Contact.first_name,
    "created_at": Contact.created_at,
}

EDITABLE_FIELDS = (
    "first_name",
    "last_name",
    "email",
    "phone",
    "company",
    "position",
    "location",
    "linkedin_url",
    "notes",
    "tags",
    "importance",
    "frequency",
    "last_contact",
    "contact_frequency_days",
)


def get_owned_contact(db: Session, user_id: uuid.UUID, contact_id: uuid.UUID) -> Contact:
    """
    Load a live contact belonging to the user.

    Raises:
        NotFoundError: Missing, soft-deleted or owned by another user
    """
    contact = db.get(Contact, contact_id)
    if contact is None or contact.user_id != user_id or contact.deleted_at is not None:
        raise NotFoundError("Contact not found")
    return contact


def validate_contact_fields(data: dict[str, Any]) -> None:
    email = data.get("email")
    if email and not EMAIL_PATTERN.match(email):
        raise ValidationError("Invalid email format")

    phone = data.get("phone")
    if phone and not PHONE_PATTERN.match(phone):
        raise ValidationError("Invalid phone format")


class ContactService:
    def __init__(self, db: Session):
        self.db = db

    def _find_live(
        self, user_id: uuid.UUID, field: str, value: str, exclude_id: uuid.UUID | None = None
    ) -> Contact | None:
        column = getattr(Contact, field)
        conditions = [Contact.user_id == user_id, Contact.deleted_at.is_(None)]
        if field == "email":
            conditions.append(func.lower(column) == value.lower())
        else:
            conditions.append(column == value)
        if exclude_id is not None:
            conditions.append(Contact.id != exclude_id)
        return self.db.execute(select(Contact).where(*conditions)).scalars().first()

    def _ensure_unique(
        self, user_id: uuid.UUID, data: dict[str, Any], exclude_id: uuid.UUID | None = None
    ) -> None:
        for field in ("email", "phone"):
            if data.get(field) and self._find_live(user_id, field, data[field], exclude_id):
                raise ValidationError(f"Contact already exists with this {field}")

    def _commit(self) -> None:
        """Commit, turning a (user_id, email) unique violation into a 409."""
        try:
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            logger.warning(f"Contact unique constraint violated: {e.orig}")
            raise ConflictError("Contact already exists with this email") from e

    def list(
        self,
        user_id: uuid.UUID,
        search: str | None = None,
        page: int = 1,
        limit: int = 20,
        sort_by: str = "last_contact",
        sort_order: str = "desc",
        tags: list[str] | None = None,
        company: str | None = None,
        position: str | None = None,
        location: str | None = None,
        source: str | None = None,
        has_email: bool | None = None,
        has_phone: bool | None = None,
        last_contacted_after: datetime | None = None,
        last_contacted_before: datetime | None = None,
    ) -> dict[str, Any]:
        """
        Paginated, filtered contact listing.

        Returns:
            {"data": [Contact], "meta": {total, page, limit, total_pages}}
        """
        page = max(1, page)
        limit = max(1, min(100, limit))

        conditions = [Contact.user_id == user_id, Contact.deleted_at.is_(None)]

        if search:
            pattern = f"%{search}%"
            conditions.append(
                or_(
                    Contact.first_name.ilike(pattern),
                    Contact.last_name.ilike(pattern),
                    Contact.email.ilike(pattern),
                    Contact.company.ilike(pattern),
                )
            )
        if tags:
            conditions.append(Contact.tags.overlap(tags))
        if company:
            conditions.append(Contact.company.ilike(f"%{company}%"))
        if position:
            conditions.append(Contact.position.ilike(f"%{position}%"))
        if location:
            conditions.append(Contact.location.ilike(f"%{location}%"))
        if source:
            conditions.append(Contact.source == source)
        if has_email is not None:
            conditions.append(Contact.email.isnot(None) if has_email else Contact.email.is_(None))
        if has_phone is not None:
            conditions.append(Contact.phone.isnot(None) if has_phone else Contact.phone.is_(None))
        if last_contacted_after:
            conditions.append(Contact.last_contact >= as_utc(last_contacted_after))
        if last_contacted_before:
            conditions.append(Contact.last_contact <= as_utc(last_contacted_before))

        column = SORT_COLUMNS.get(sort_by, Contact.last_contact)
        order = column.asc().nulls_last() if sort_order == "asc" else column.desc().nulls_last()

        total = self.db.execute(select(func.count(Contact.id)).where(*conditions)).scalar() or 0
        contacts = self.db.execute(
            select(Contact)
            .where(*conditions)
            .order_by(order, Contact.id)
            .offset((page - 1) * limit)
            .limit(limit)
        ).scalars()

        return {
            "data": list(contacts),
            "meta": {
                "total": total,
                "page": page,
                "limit": limit,
                "total_pages": math.ceil(total / limit) if total else 0,
            },
        }

    def get(self, user_id: uuid.UUID, contact_id: uuid.UUID) -> Contact:
        return get_owned_contact(self.db, user_id, contact_id)

    def create(self, user_id: uuid.UUID, data: dict[str, Any]) -> Contact:
        """
        Create a contact after format and duplicate checks.

        Raises:
            ValidationError: Missing first name, bad email/phone format, or duplicate
        """
        if not (data.get("first_name") or "").strip():
            raise ValidationError("First name is required")

        validate_contact_fields(data)
        self._ensure_unique(user_id, data)
        if data.get("last_contact") is not None:
            data = {**data, "last_contact": as_utc(data["last_contact"])}

        contact = Contact(
            user_id=user_id,
            **{field: data[field] for field in EDITABLE_FIELDS if data.get(field) is not None},
        )
        contact.tags = data.get("tags") or []
        contact.importance = data.get("importance") or 0
        contact.frequency = data.get("frequency") or 0
        contact.source = data.get("source") or ContactSource.MANUAL.value
        contact.meta = data.get("metadata") or {}

        self.db.add(contact)
        self._commit()

        logger.info(f"Created contact {contact.id} for user {user_id}")
        return contact

    def update(self, user_id: uuid.UUID, contact_id: uuid.UUID, changes: dict[str, Any]) -> Contact:
        contact = get_owned_contact(self.db, user_id, contact_id)

        if "first_name" in changes and not (changes["first_name"] or "").strip():
            raise ValidationError("First name is required")

        validate_contact_fields(changes)
        if changes.get("last_contact") is not None:
            changes = {**changes, "last_contact": as_utc(changes["last_contact"])}

        # Only a changed email/phone can collide with another contact
        collisions = {
            field: changes[field]
            for field in ("email", "phone")
            if changes.get(field) and changes[field] != getattr(contact, field)
        }
        self._ensure_unique(user_id, collisions, exclude_id=contact.id)

        for field in EDITABLE_FIELDS:
            if field in changes:
                setattr(contact, field, changes[field])
        if "metadata" in changes:
            contact.meta = {**(contact.meta or {}), **(changes["metadata"] or {})}

        self._commit()
        return contact

    def delete(self, user_id: uuid.UUID, contact_id: uuid.UUID) -> None:
        """Soft delete: the row stays for history and integration links."""
        contact = get_owned_contact(self.db, user_id, contact_id)
        contact.deleted_at = datetime.now(timezone.utc)
        self.db.commit()
        logger.info(f"Soft-deleted contact {contact_id}")

    def check_duplicate(
        self, user_id: uuid.UUID, email: str | None = None, phone: str | None = None
    ) -> dict[str, Any]:
        if not email and not phone:
            raise ValidationError("Email or phone is required")

        for field, value in (("email", email), ("phone", phone)):
            if not value:
                continue
            existing = self._find_live(user_id, field, value)
            if existing:
                return {"is_duplicate": True, "existing_contact": existing, "match_field": field}

        return {"is_duplicate": False, "existing_contact": None, "match_field": None}
