"""
Icebreaker generation and lifecycle (select, edit, feedback, sent).
"""

import time
import uuid
from datetime import datetime, timezone
from typing import Any, Callable

from sqlalchemy import select
from sqlalchemy.orm import Session

from src.core.config import settings
from src.core.exceptions import NotFoundError, ServiceUnavailableError, ValidationError
from src.core.logging import get_logger
from src.integrations.claude.icebreaker_client import IcebreakerClient, IcebreakerGenerationError
from src.models import Contact, EmailThread, GeneratedIcebreaker, User
from src.models.enums import Channel, Feedback, Tone
from src.services.contacts.service import get_owned_contact
from src.services.icebreaker.prompt_template import (
    PROMPT_VERSION,
    generate_user_prompt,
    normalize_variations,
    relationship_summary,
)

logger = get_logger(__name__)

DEFAULT_WORD_LIMIT = 150
MIN_WORD_LIMIT = 50
MAX_WORD_LIMIT = 500
MAX_MUTUAL_CONNECTIONS = 5
HISTORY_LIMIT = 50


class IcebreakerService:
    def __init__(self, db: Session, client_factory: Callable[[], IcebreakerClient] = IcebreakerClient):
        self.db = db
        self.client_factory = client_factory

    def _get(self, user_id: uuid.UUID, icebreaker_id: uuid.UUID) -> GeneratedIcebreaker:
        icebreaker = self.db.get(GeneratedIcebreaker, icebreaker_id)
        if icebreaker is None or icebreaker.user_id != user_id:
            raise NotFoundError("Icebreaker not found")
        return icebreaker

    def build_context(self, user_id: uuid.UUID, contact: Contact) -> dict[str, Any]:
        """Contact, relationship and user context fed into the prompt."""
        latest_subject = self.db.execute(
            select(EmailThread.subject)
            .where(EmailThread.contact_id == contact.id)
            .order_by(EmailThread.occurred_at.desc())
            .limit(1)
        ).scalar_one_or_none()

        mutual: list[str] = []
        if contact.company:
            peers = self.db.execute(
                select(Contact)
                .where(
                    Contact.user_id == user_id,
                    Contact.company == contact.company,
                    Contact.id != contact.id,
                    Contact.deleted_at.is_(None),
                )
                .limit(MAX_MUTUAL_CONNECTIONS)
            ).scalars()
            mutual = [peer.full_name for peer in peers]

        user = self.db.get(User, user_id)

        return {
            "contact_name": contact.full_name,
            "current_title": contact.position,
            "current_company": contact.company,
            "relationship": relationship_summary(contact.importance, contact.last_contact, latest_subject),
            "last_interaction_date": contact.last_contact.date().isoformat() if contact.last_contact else None,
            "mutual_connections": mutual,
            "user_name": user.display_name if user else "",
        }

    def _generate_variations(
        self,
        context: dict[str, Any],
        channel: str,
        tone: str,
        word_limit: int,
        trigger_event: str | None,
    ) -> tuple[list[dict[str, Any]], int, str, int]:
        if not settings.anthropic_api_key:
            raise ServiceUnavailableError("AI service not configured")

        prompt = generate_user_prompt(
            channel=channel,
            tone=tone,
            word_limit=word_limit,
            trigger_event=trigger_event,
            **context,
        )

        started = time.monotonic()
        try:
            result = self.client_factory().generate(prompt)
        except IcebreakerGenerationError as e:
            logger.error(f"Icebreaker generation failed: {e}")
            raise ServiceUnavailableError("Failed to generate icebreaker") from e
        elapsed_ms = int((time.monotonic() - started) * 1000)

        return normalize_variations(result.variations, channel), result.tokens_used, result.model, elapsed_ms

    def generate(
        self,
        user_id: uuid.UUID,
        contact_id: uuid.UUID,
        channel: str,
        tone: str,
        trigger_event: str | None = None,
        word_limit: int = DEFAULT_WORD_LIMIT,
    ) -> GeneratedIcebreaker:
        """
        Generate three message variations for a contact and store them.

        Raises:
            NotFoundError: Contact is not the user's
            ValidationError: Bad channel, tone or word limit
            ServiceUnavailableError: AI key missing or generation failed
        """
        if channel not in Channel._value2member_map_:
            raise ValidationError("Invalid channel")
        if tone not in Tone._value2member_map_:
            raise ValidationError("Invalid tone")
        if not MIN_WORD_LIMIT <= word_limit <= MAX_WORD_LIMIT:
            raise ValidationError(f"word_limit must be between {MIN_WORD_LIMIT} and {MAX_WORD_LIMIT}")

        contact = get_owned_contact(self.db, user_id, contact_id)
        context = self.build_context(user_id, contact)

        variations, tokens, model, elapsed_ms = self._generate_variations(
            context, channel, tone, word_limit, trigger_event
        )

        icebreaker = GeneratedIcebreaker(
            user_id=user_id,
            contact_id=contact.id,
            channel=channel,
            tone=tone,
            trigger_event=trigger_event,
            variations=variations,
            llm_provider="anthropic",
            model_version=model,
            prompt_version=PROMPT_VERSION,
            tokens_used=tokens,
            context_data={**context, "word_limit": word_limit},
            generation_time_ms=elapsed_ms,
        )
        self.db.add(icebreaker)
        self.db.commit()
        self.db.refresh(icebreaker)

        logger.info(
            f"Generated icebreaker {icebreaker.id} for contact {contact.id} "
            f"({channel}/{tone}, {tokens} tokens, {elapsed_ms}ms)"
        )
        return icebreaker

    def regenerate(
        self,
        user_id: uuid.UUID,
        icebreaker_id: uuid.UUID,
        tone: str | None = None,
        trigger_event: str | None = None,
    ) -> GeneratedIcebreaker:
        """Rerun generation for an existing icebreaker, optionally overriding tone or trigger."""
        original = self._get(user_id, icebreaker_id)
        word_limit = (original.context_data or {}).get("word_limit", DEFAULT_WORD_LIMIT)
        return self.generate(
            user_id,
            original.contact_id,
            channel=original.channel,
            tone=tone or original.tone,
            trigger_event=trigger_event if trigger_event is not None else original.trigger_event,
            word_limit=word_limit,
        )

    def edit(self, user_id: uuid.UUID, icebreaker_id: uuid.UUID, edited_content: str) -> GeneratedIcebreaker:
        icebreaker = self._get(user_id, icebreaker_id)
        icebreaker.edited = True
        icebreaker.edited_content = edited_content
        self.db.commit()
        self.db.refresh(icebreaker)
        return icebreaker

    def select(self, user_id: uuid.UUID, icebreaker_id: uuid.UUID, variation_index: int) -> GeneratedIcebreaker:
        icebreaker = self._get(user_id, icebreaker_id)
        if not 0 <= variation_index < min(len(icebreaker.variations), 3):
            raise ValidationError("Invalid variation index")
        icebreaker.selected = {"index": variation_index, **icebreaker.variations[variation_index]}
        self.db.commit()
        self.db.refresh(icebreaker)
        return icebreaker

    def feedback(self, user_id: uuid.UUID, icebreaker_id: uuid.UUID, feedback: str) -> GeneratedIcebreaker:
        if feedback not in Feedback._value2member_map_:
            raise ValidationError("Invalid feedback")
        icebreaker = self._get(user_id, icebreaker_id)
        icebreaker.feedback = feedback
        self.db.commit()
        self.db.refresh(icebreaker)
        return icebreaker

    def mark_sent(self, user_id: uuid.UUID, icebreaker_id: uuid.UUID) -> GeneratedIcebreaker:
        icebreaker = self._get(user_id, icebreaker_id)
        icebreaker.sent = True
        icebreaker.sent_at = datetime.now(timezone.utc)
        self.db.commit()
        self.db.refresh(icebreaker)
        return icebreaker

    def history(self, user_id: uuid.UUID) -> list[dict[str, Any]]:
        """Latest icebreakers with the contact's name."""
        rows = self.db.execute(
            select(GeneratedIcebreaker, Contact)
            .join(Contact, GeneratedIcebreaker.contact_id == Contact.id)
            .where(GeneratedIcebreaker.user_id == user_id)
            .order_by(GeneratedIcebreaker.created_at.desc())
            .limit(HISTORY_LIMIT)
        ).all()
        return [{"icebreaker": icebreaker, "contact_name": contact.full_name} for icebreaker, contact in rows]
