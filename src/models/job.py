"""
Import Job model for tracking background sync and import progress.
"""

from datetime import datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy import JSON, DateTime, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.models.base import Base, TimestampMixin, UserOwnedMixin, UUIDMixin
from src.models.enums import JobStatus

if TYPE_CHECKING:
    from src.models.user import User

# Per-item error entries kept on the row
MAX_STORED_ERRORS = 100


class ImportJob(Base, UUIDMixin, TimestampMixin, UserOwnedMixin):
    """
    Import Job model.
    Tracks counters for Gmail syncs, Google Contacts imports and calendar syncs.
    """

    __tablename__ = "import_jobs"

    type: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        index=True,
        comment="gmail_email_sync, google_contacts, google_calendar_sync",
    )

    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=JobStatus.QUEUED.value,
        comment="Job status: queued, processing, completed, failed",
    )

    # Counters
    total_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    processed_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    imported_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    skipped_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    failed_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    errors: Mapped[list[dict[str, Any]]] = mapped_column(
        JSON, nullable=False, default=list, comment="Per-item error entries (last 100)"
    )
    meta: Mapped[dict[str, Any] | None] = mapped_column(
        "metadata", JSON, nullable=True, default=dict
    )

    # Timestamps
    started_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    error_message: Mapped[str | None] = mapped_column(
        Text, nullable=True, comment="Fatal error if the job failed"
    )

    celery_task_id: Mapped[str | None] = mapped_column(
        String(255), nullable=True, index=True, comment="Celery task ID for tracking"
    )

    # Relationships
    user: Mapped["User"] = relationship("User", back_populates="import_jobs")

    def __repr__(self) -> str:
        return f"<ImportJob(id={self.id}, type={self.type}, status={self.status})>"

    @property
    def is_running(self) -> bool:
        """Check if job is queued or in progress."""
        return self.status in (JobStatus.QUEUED.value, JobStatus.PROCESSING.value)

    @property
    def progress(self) -> int:
        """Percentage of items processed (0 when the total is unknown)."""
        if not self.total_count:
            return 0
        return round(self.processed_count / self.total_count * 100)

    @property
    def duration_seconds(self) -> int | None:
        """Calculate job duration in seconds."""
        if self.started_at and self.completed_at:
            return int((self.completed_at - self.started_at).total_seconds())
        return None

    def reset_counters(self) -> None:
        """Zero progress before a (re)run of the same job."""
        self.total_count = 0
        self.processed_count = 0
        self.imported_count = 0
        self.skipped_count = 0
        self.failed_count = 0
        self.errors = []

    def record_error(self, entry: dict[str, Any]) -> None:
        """Append a per-item error, keeping only the most recent entries."""
        errors = list(self.errors or [])
        errors.append(entry)
        self.errors = errors[-MAX_STORED_ERRORS:]
