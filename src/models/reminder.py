"""
Reminder model for contact follow-ups.
"""

import uuid
from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.models.base import Base, TimestampMixin, UserOwnedMixin, UUIDMixin
from src.models.enums import ReminderStatus

if TYPE_CHECKING:
    from src.models.contact import Contact


class Reminder(Base, UUIDMixin, TimestampMixin, UserOwnedMixin):
    """
    Reminder model.
    A recurring reminder carries frequency_days; completing it schedules the next one.
    """

    __tablename__ = "reminders"
    __table_args__ = (Index("ix_reminders_user_status_due", "user_id", "status", "due_at"),)

    contact_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("contacts.id", ondelete="CASCADE"), nullable=False, index=True
    )

    title: Mapped[str] = mapped_column(String(255), nullable=False)
    message: Mapped[str | None] = mapped_column(Text, nullable=True)

    scheduled_for: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    due_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    frequency_days: Mapped[int | None] = mapped_column(Integer, nullable=True)
    priority: Mapped[int] = mapped_column(Integer, default=0, nullable=False, comment="0-100")

    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=ReminderStatus.PENDING.value,
        comment="PENDING, SENT, SNOOZED, COMPLETED, DISMISSED",
    )
    snoozed_until: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    notified_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    contact: Mapped["Contact"] = relationship("Contact", back_populates="reminders")

    @property
    def effective_due_at(self) -> datetime | None:
        """When the reminder next needs attention (snooze wins over due date)."""
        if self.status == ReminderStatus.SNOOZED.value and self.snoozed_until:
            return self.snoozed_until
        return self.due_at

    def __repr__(self) -> str:
        return f"<Reminder(id={self.id}, status={self.status}, due_at={self.due_at})>"
