"""
Email sync configuration and synced email thread models.
"""

import uuid
from datetime import datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy import (
    ARRAY,
    JSON,
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.models.base import Base, TimestampMixin, UserOwnedMixin, UUIDMixin

if TYPE_CHECKING:
    from src.models.contact import Contact
    from src.models.user import User


class EmailSyncConfig(Base, UUIDMixin, TimestampMixin):
    """
    Per-user Gmail sync settings.
    privacy_mode keeps only metadata and snippets; full bodies are stored only when disabled.
    """

    __tablename__ = "email_sync_configs"

    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )

    gmail_enabled: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    sync_enabled: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    privacy_mode: Mapped[bool] = mapped_column(
        Boolean, default=True, nullable=False, comment="Store metadata only (no bodies)"
    )

    excluded_emails: Mapped[list[str]] = mapped_column(ARRAY(String), nullable=False, default=list)
    excluded_domains: Mapped[list[str]] = mapped_column(
        ARRAY(String), nullable=False, default=list
    )

    sync_history_days: Mapped[int] = mapped_column(
        Integer, default=365, nullable=False, comment="How far back a full sync reaches"
    )
    history_id: Mapped[str | None] = mapped_column(
        String(100), nullable=True, comment="Gmail historyId for incremental sync"
    )
    last_gmail_sync: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    user: Mapped["User"] = relationship("User", back_populates="email_sync_config")

    def __repr__(self) -> str:
        return f"<EmailSyncConfig(user_id={self.user_id}, gmail_enabled={self.gmail_enabled})>"


class EmailThread(Base, UUIDMixin, TimestampMixin, UserOwnedMixin):
    """
    One synced Gmail message as seen from a single contact.
    A message with three matched participants produces three rows.
    """

    __tablename__ = "email_threads"
    __table_args__ = (
        UniqueConstraint("contact_id", "external_id", name="uq_email_threads_contact_external"),
        Index("ix_email_threads_contact_occurred", "contact_id", "occurred_at"),
    )

    contact_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("contacts.id", ondelete="CASCADE"), nullable=False
    )

    thread_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    external_id: Mapped[str] = mapped_column(
        String(255), nullable=False, comment="Gmail message id"
    )

    subject: Mapped[str | None] = mapped_column(Text, nullable=True)
    snippet: Mapped[str | None] = mapped_column(Text, nullable=True)
    body: Mapped[str | None] = mapped_column(
        Text, nullable=True, comment="Plain text body, null in privacy mode"
    )

    direction: Mapped[str] = mapped_column(String(10), nullable=False, comment="INBOUND/OUTBOUND")
    participation_type: Mapped[str] = mapped_column(
        String(10), nullable=False, comment="SENDER/RECIPIENT/CC"
    )

    occurred_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    source: Mapped[str] = mapped_column(String(20), nullable=False, default="gmail")
    meta: Mapped[dict[str, Any] | None] = mapped_column("metadata", JSON, nullable=True)

    contact: Mapped["Contact"] = relationship("Contact", back_populates="email_threads")

    def __repr__(self) -> str:
        return f"<EmailThread(id={self.id}, subject={self.subject}, direction={self.direction})>"
