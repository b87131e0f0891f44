"""
Integration model: stored OAuth credentials for a third-party provider.
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
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.models.base import Base, TimestampMixin, UserOwnedMixin, UUIDMixin

if TYPE_CHECKING:
    from src.models.user import User


class Integration(Base, UUIDMixin, TimestampMixin, UserOwnedMixin):
    """
    Integration model.
    One row per (user, provider type). Tokens are Fernet-encrypted.
    """

    __tablename__ = "integrations"
    __table_args__ = (UniqueConstraint("user_id", "type", name="uq_integrations_user_type"),)

    type: Mapped[str] = mapped_column(
        String(50), nullable=False, comment="GMAIL, GOOGLE_CONTACTS, GOOGLE_CALENDAR"
    )
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    account_email: Mapped[str | None] = mapped_column(
        String(255), nullable=True, comment="Google account the tokens belong to"
    )

    # OAuth2 credentials (encrypted)
    access_token: Mapped[str | None] = mapped_column(Text, nullable=True)
    refresh_token: Mapped[str | None] = mapped_column(Text, nullable=True)
    expires_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    scopes: Mapped[list[str]] = mapped_column(ARRAY(String), nullable=False, default=list)

    meta: Mapped[dict[str, Any] | None] = mapped_column(
        "metadata",
        JSON,
        nullable=True,
        default=dict,
        comment="Provider sync state (sync_token, last_sync_at)",
    )

    is_active: Mapped[bool] = mapped_column(
        Boolean, default=True, nullable=False, comment="Whether this integration is usable"
    )

    # Relationships
    user: Mapped["User"] = relationship("User", back_populates="integrations")

    links: Mapped[list["IntegrationLink"]] = relationship(
        "IntegrationLink", back_populates="integration", cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:
        return f"<Integration(id={self.id}, type={self.type}, active={self.is_active})>"


class IntegrationLink(Base, UUIDMixin, TimestampMixin):
    """Maps a provider record (e.g. a People API resource name) to a local contact."""

    __tablename__ = "integration_links"
    __table_args__ = (
        UniqueConstraint("integration_id", "external_id", name="uq_integration_links_external"),
    )

    integration_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("integrations.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    contact_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("contacts.id", ondelete="CASCADE"), nullable=False, index=True
    )
    external_id: Mapped[str] = mapped_column(String(255), nullable=False)

    integration: Mapped["Integration"] = relationship("Integration", back_populates="links")

    def __repr__(self) -> str:
        return f"<IntegrationLink(external_id={self.external_id}, contact_id={self.contact_id})>"
