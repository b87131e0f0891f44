"""
AI-generated artifacts: insights and icebreaker messages.
"""

import uuid
from datetime import datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy import JSON, Boolean, DateTime, Float, ForeignKey, Integer, String, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.models.base import Base, TimestampMixin, UserOwnedMixin, UUIDMixin

if TYPE_CHECKING:
    from src.models.contact import Contact


class AIInsight(Base, UUIDMixin, TimestampMixin, UserOwnedMixin):
    """
    AI Insight model.
    Observations about a contact or the whole network (score changes, follow-up suggestions).
    """

    __tablename__ = "ai_insights"

    contact_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("contacts.id", ondelete="CASCADE"), nullable=True, index=True
    )

    type: Mapped[str] = mapped_column(String(50), nullable=False)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    confidence: Mapped[float] = mapped_column(
        Float, nullable=False, default=1.0, comment="Confidence score (0-1)"
    )
    meta: Mapped[dict[str, Any] | None] = mapped_column("metadata", JSON, nullable=True)

    def __repr__(self) -> str:
        return f"<AIInsight(id={self.id}, type={self.type})>"


class GeneratedIcebreaker(Base, UUIDMixin, TimestampMixin, UserOwnedMixin):
    """
    Generated Icebreaker model.
    Stores the three variations returned by the LLM plus the user's choices and feedback.
    """

    __tablename__ = "generated_icebreakers"

    contact_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("contacts.id", ondelete="CASCADE"), nullable=False, index=True
    )

    channel: Mapped[str] = mapped_column(String(20), nullable=False, comment="email, linkedin, whatsapp")
    tone: Mapped[str] = mapped_column(
        String(20), nullable=False, comment="professional, friendly, casual"
    )
    trigger_event: Mapped[str | None] = mapped_column(Text, nullable=True)

    variations: Mapped[list[dict[str, Any]]] = mapped_column(JSON, nullable=False)
    selected: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    edited: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    edited_content: Mapped[str | None] = mapped_column(Text, nullable=True)
    feedback: Mapped[str | None] = mapped_column(String(30), nullable=True)
    sent: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    sent_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    # Usage tracking
    llm_provider: Mapped[str] = mapped_column(String(30), nullable=False, default="anthropic")
    model_version: Mapped[str] = mapped_column(String(100), nullable=False)
    prompt_version: Mapped[str] = mapped_column(String(20), nullable=False)
    tokens_used: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    context_data: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    generation_time_ms: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    contact: Mapped["Contact"] = relationship("Contact")

    def __repr__(self) -> str:
        return f"<GeneratedIcebreaker(id={self.id}, channel={self.channel}, tone={self.tone})>"
