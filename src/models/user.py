"""
User model.
"""

from typing import TYPE_CHECKING

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.models.base import Base, TimestampMixin, UUIDMixin

if TYPE_CHECKING:
    from src.models.contact import Contact
    from src.models.email_sync import EmailSyncConfig
    from src.models.integration import Integration
    from src.models.job import ImportJob


class User(Base, UUIDMixin, TimestampMixin):
    """
    User model.
    Every other row in the CRM is owned by exactly one user (tenant).
    """

    __tablename__ = "users"

    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    first_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    last_name: Mapped[str | None] = mapped_column(String(100), nullable=True)

    # Relationships
    contacts: Mapped[list["Contact"]] = relationship(
        "Contact", back_populates="user", cascade="all, delete-orphan"
    )

    integrations: Mapped[list["Integration"]] = relationship(
        "Integration", back_populates="user", cascade="all, delete-orphan"
    )

    email_sync_config: Mapped["EmailSyncConfig | None"] = relationship(
        "EmailSyncConfig", back_populates="user", cascade="all, delete-orphan", uselist=False
    )

    import_jobs: Mapped[list["ImportJob"]] = relationship(
        "ImportJob", back_populates="user", cascade="all, delete-orphan"
    )

    @property
    def display_name(self) -> str:
        """Best available human-readable name."""
        full = " ".join(part for part in (self.first_name, self.last_name) if part)
        return self.name or full or self.email

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email})>"
