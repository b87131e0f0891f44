"""
Note and Notification models.
"""

import uuid
from typing import TYPE_CHECKING, Any

from sqlalchemy import JSON, Boolean, ForeignKey, Index, String, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.models.base import Base, TimestampMixin, UserOwnedMixin, UUIDMixin

if TYPE_CHECKING:
    from src.models.contact import Contact


class Note(Base, UUIDMixin, TimestampMixin, UserOwnedMixin):
    """Manual note attached to a contact."""

    __tablename__ = "notes"

    contact_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("contacts.id", ondelete="CASCADE"), nullable=False, index=True
    )
    content: Mapped[str] = mapped_column(Text, nullable=False)
    is_pinned: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    contact: Mapped["Contact"] = relationship("Contact", back_populates="contact_notes")

    def __repr__(self) -> str:
        return f"<Note(id={self.id}, pinned={self.is_pinned})>"


class Notification(Base, UUIDMixin, TimestampMixin, UserOwnedMixin):
    """
    In-app notification.
    Created by background jobs (reminders, sync results) and read by the user.
    """

    __tablename__ = "notifications"
    __table_args__ = (Index("ix_notifications_user_read", "user_id", "is_read"),)

    type: Mapped[str] = mapped_column(
        String(30), nullable=False, comment="REMINDER, INSIGHT, INTEGRATION_SYNC, SYSTEM, SUGGESTION"
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    meta: Mapped[dict[str, Any] | None] = mapped_column("metadata", JSON, nullable=True)
    is_read: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    def __repr__(self) -> str:
        return f"<Notification(id={self.id}, type={self.type}, read={self.is_read})>"
