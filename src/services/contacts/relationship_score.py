"""
Relationship strength scoring.

The score (0-100) is stored in Contact.importance and is made of five parts:
recency (40), frequency (25), bidirectionality (15), engagement (10) and
investment (10). All interaction counts use a trailing 90-day window.
"""

import uuid
from dataclasses import asdict, dataclass
from datetime import datetime, timedelta, timezone

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from src.core.logging import get_logger
from src.models import AIInsight, Contact, ContactActivity, EmailThread, Note, Reminder
from src.models.enums import ActivityType, EmailDirection, InsightType, ReminderStatus

logger = get_logger(__name__)

INTERACTION_WINDOW_DAYS = 90
RECALCULATION_BATCH_SIZE = 50


@dataclass
class InteractionStats:
    """Counts feeding the score, all within the interaction window."""

    email_count: int = 0
    inbound_email_count: int = 0
    activity_count: int = 0
    meeting_or_call_count: int = 0
    pending_reminders: int = 0
    notes_count: int = 0


@dataclass
class ScoreBreakdown:
    recency: int
    frequency: int
    bidirectionality: int
    engagement: int
    investment: int

    @property
    def total(self) -> int:
        return min(
            100,
            self.recency + self.frequency + self.bidirectionality + self.engagement + self.investment,
        )

    def to_dict(self) -> dict[str, int]:
        return {**asdict(self), "total": self.total}


def recency_score(last_contact: datetime | None, now: datetime | None = None) -> int:
    if last_contact is None:
        return 0
    now = now or datetime.now(timezone.utc)
    days_since = (now - last_contact).days

    if days_since <= 7:
        return 40
    if days_since <= 30:
        return 30
    if days_since <= 90:
        return 20
    if days_since <= 180:
        return 10
    return 0


def frequency_score(interactions: int) -> int:
    if interactions >= 10:
        return 25
    if interactions >= 5:
        return 20
    if interactions >= 3:
        return 15
    if interactions >= 1:
        return 10
    return 0


def bidirectionality_score(inbound: int, total: int) -> int:
    if total == 0:
        return 0
    inbound_pct = inbound / total * 100

    if inbound_pct > 50:
        return 15
    if inbound_pct >= 25:
        return 10
    if inbound_pct >= 10:
        return 5
    return 0


def engagement_score(meetings_or_calls: int, emails: int) -> int:
    if meetings_or_calls > 0:
        return 10
    if emails > 0:
        return 5
    return 0


def investment_score(pending_reminders: int, notes: int) -> int:
    score = 0
    if pending_reminders > 0:
        score += 5
    if notes > 0:
        score += 5
    return score


def calculate_score(
    last_contact: datetime | None, stats: InteractionStats, now: datetime | None = None
) -> ScoreBreakdown:
    """Combine the five components for one contact."""
    return ScoreBreakdown(
        recency=recency_score(last_contact, now),
        frequency=frequency_score(stats.email_count + stats.activity_count),
        bidirectionality=bidirectionality_score(stats.inbound_email_count, stats.email_count),
        engagement=engagement_score(stats.meeting_or_call_count, stats.email_count),
        investment=investment_score(stats.pending_reminders, stats.notes_count),
    )


def relationship_label(score: int) -> str:
    """Badge shown next to a contact."""
    if score >= 80:
        return "strong"
    if score >= 50:
        return "moderate"
    if score >= 20:
        return "weak"
    return "new"


class RelationshipScoreService:
    """Loads interaction counts and persists scores onto contacts."""

    def __init__(self, db: Session):
        self.db = db

    def _count(self, stmt) -> int:
        return self.db.execute(stmt).scalar() or 0

    def gather_stats(self, contact_id: uuid.UUID, now: datetime | None = None) -> InteractionStats:
        """Query the interaction counts for a contact."""
        since = (now or datetime.now(timezone.utc)) - timedelta(days=INTERACTION_WINDOW_DAYS)

        email_rows = self.db.execute(
            select(EmailThread.direction, func.count(EmailThread.id))
            .where(EmailThread.contact_id == contact_id, EmailThread.occurred_at >= since)
            .group_by(EmailThread.direction)
        ).all()
        by_direction = {direction: count for direction, count in email_rows}

        activity_filter = (
            ContactActivity.contact_id == contact_id,
            ContactActivity.occurred_at >= since,
        )

        return InteractionStats(
            email_count=sum(by_direction.values()),
            inbound_email_count=by_direction.get(EmailDirection.INBOUND.value, 0),
            activity_count=self._count(
                select(func.count(ContactActivity.id)).where(*activity_filter)
            ),
            meeting_or_call_count=self._count(
                select(func.count(ContactActivity.id)).where(
                    *activity_filter,
                    ContactActivity.type.in_(
                        [ActivityType.MEETING.value, ActivityType.CALL.value]
                    ),
                )
            ),
            pending_reminders=self._count(
                select(func.count(Reminder.id)).where(
                    Reminder.contact_id == contact_id,
                    Reminder.status == ReminderStatus.PENDING.value,
                )
            ),
            notes_count=self._count(select(func.count(Note.id)).where(Note.contact_id == contact_id)),
        )

    def update_score(self, contact_id: uuid.UUID, commit: bool = True) -> int | None:
        """
        Recalculate and store the score for one contact.

        Returns:
            The new score, or None if the contact does not exist
        """
        contact = self.db.get(Contact, contact_id)
        if contact is None:
            logger.warning(f"Contact not found for scoring: {contact_id}")
            return None

        breakdown = calculate_score(contact.last_contact, self.gather_stats(contact_id))
        previous_label = relationship_label(contact.importance or 0)
        new_label = relationship_label(breakdown.total)

        contact.importance = breakdown.total

        if previous_label != new_label:
            self.db.add(
                AIInsight(
                    user_id=contact.user_id,
                    contact_id=contact.id,
                    type=InsightType.RELATIONSHIP_STRENGTH.value,
                    title=f"Relationship with {contact.full_name} is now {new_label}",
                    content=(
                        f"Relationship strength changed from {previous_label} to {new_label} "
                        f"(score {breakdown.total})."
                    ),
                    confidence=1.0,
                    meta={
                        "breakdown": breakdown.to_dict(),
                        "previous_label": previous_label,
                        "label": new_label,
                    },
                )
            )

        if commit:
            self.db.commit()

        logger.debug(f"Score for {contact_id}: {breakdown.to_dict()}")
        return breakdown.total

    def recalculate_for_contacts(self, contact_ids: list[uuid.UUID]) -> int:
        """Recalculate a known set of contacts. Returns how many were updated."""
        updated = 0
        for contact_id in contact_ids:
            if self.update_score(contact_id, commit=False) is not None:
                updated += 1
        self.db.commit()
        return updated

    def recalculate_all_for_user(self, user_id: uuid.UUID) -> dict[str, int]:
        """
        Recalculate every live contact of a user in batches.
        A failure on one contact is logged and does not stop the run.
        """
        contact_ids = list(
            self.db.execute(
                select(Contact.id).where(Contact.user_id == user_id, Contact.deleted_at.is_(None))
            ).scalars()
        )

        logger.info(f"Recalculating scores for {len(contact_ids)} contacts of user {user_id}")

        processed = 0
        failed = 0
        for start in range(0, len(contact_ids), RECALCULATION_BATCH_SIZE):
            for contact_id in contact_ids[start : start + RECALCULATION_BATCH_SIZE]:
                try:
                    with self.db.begin_nested():
                        self.update_score(contact_id, commit=False)
                    processed += 1
                except Exception as e:
                    failed += 1
                    logger.error(f"Failed to score contact {contact_id}: {e}", exc_info=True)
            self.db.commit()

        return {"processed": processed, "failed": failed}
