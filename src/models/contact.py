"""
Contact model and interaction activity records.
"""

import uuid
from datetime import datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy import (
    JSON,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import ARRAY, UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.models.base import Base, TimestampMixin, UserOwnedMixin, UUIDMixin
from src.models.enums import ContactSource

if TYPE_CHECKING:
    from src.models.email_sync import EmailThread
    from src.models.note import Note
    from src.models.reminder import Reminder
    from src.models.user import User


class Contact(Base, UUIDMixin, TimestampMixin, UserOwnedMixin):
    """
    Contact model.
    A person in the user's network. Deleting a contact only sets deleted_at so
    integration links and history stay intact.
    """

    __tablename__ = "contacts"
    __table_args__ = (
        UniqueConstraint("user_id", "email", name="uq_contacts_user_email"),
        Index("ix_contacts_user_last_contact", "user_id", "last_contact"),
        Index("ix_contacts_user_importance", "user_id", "importance"),
    )

    # Identity
    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    email: Mapped[str | None] = mapped_column(
        String(255), nullable=True, index=True, comment="Primary email (unique per user)"
    )
    phone: Mapped[str | None] = mapped_column(String(50), nullable=True, comment="E.164 phone")

    # Professional info
    company: Mapped[str | None] = mapped_column(String(255), nullable=True)
    position: Mapped[str | None] = mapped_column(String(255), nullable=True)
    location: Mapped[str | None] = mapped_column(String(255), nullable=True)
    linkedin_url: Mapped[str | None] = mapped_column(String(500), nullable=True)

    notes: Mapped[str | None] = mapped_column(Text, nullable=True, comment="Free-form summary")
    tags: Mapped[list[str]] = mapped_column(ARRAY(String), nullable=False, default=list)

    source: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        default=ContactSource.MANUAL.value,
        comment="Origin: MANUAL, IMPORT, EMAIL, GOOGLE_CONTACTS, CALENDAR, API",
    )

    # Relationship tracking
    last_contact: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True, comment="Most recent known interaction"
    )
    frequency: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, comment="Interaction frequency counter (0-20)"
    )
    importance: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, comment="Relationship strength score (0-100)"
    )
    contact_frequency_days: Mapped[int | None] = mapped_column(
        Integer, nullable=True, comment="Desired follow-up cadence in days"
    )

    meta: Mapped[dict[str, Any] | None] = mapped_column(
        "metadata", JSON, nullable=True, default=dict, comment="Provider-specific extras"
    )

    deleted_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True, index=True, comment="Soft delete timestamp"
    )

    # Relationships
    user: Mapped["User"] = relationship("User", back_populates="contacts")

    reminders: Mapped[list["Reminder"]] = relationship(
        "Reminder", back_populates="contact", cascade="all, delete-orphan"
    )

    contact_notes: Mapped[list["Note"]] = relationship(
        "Note", back_populates="contact", cascade="all, delete-orphan"
    )

    email_threads: Mapped[list["EmailThread"]] = relationship(
        "EmailThread", back_populates="contact", cascade="all, delete-orphan"
    )

    activities: Mapped[list["ContactActivity"]] = relationship(
        "ContactActivity", back_populates="contact", cascade="all, delete-orphan"
    )

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name or ''}".strip()

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    def __repr__(self) -> str:
        return f"<Contact(id={self.id}, name={self.full_name}, email={self.email})>"


class ContactActivity(Base, UUIDMixin, TimestampMixin, UserOwnedMixin):
    """
    A dated interaction with a contact (meeting, call, ...).
    Calendar sync writes MEETING rows keyed by the provider event id.
    """

    __tablename__ = "contact_activities"
    __table_args__ = (
        UniqueConstraint("contact_id", "external_id", name="uq_contact_activities_external"),
    )

    contact_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("contacts.id", ondelete="CASCADE"), nullable=False, index=True
    )

    type: Mapped[str] = mapped_column(
        String(20), nullable=False, comment="EMAIL, CALL, MEETING, NOTE, MESSAGE, OTHER"
    )
    title: Mapped[str | None] = mapped_column(String(500), nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    occurred_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    external_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    meta: Mapped[dict[str, Any] | None] = mapped_column("metadata", JSON, nullable=True)

    contact: Mapped["Contact"] = relationship("Contact", back_populates="activities")

    def __repr__(self) -> str:
        return f"<ContactActivity(id={self.id}, type={self.type}, occurred_at={self.occurred_at})>"
