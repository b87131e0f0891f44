"""
Reminder service: follow-up scheduling, due lists and completion.
"""

import uuid
from datetime import datetime, timedelta, timezone
from typing import Any

from sqlalchemy import or_, select
from sqlalchemy.orm import Session, joinedload

from src.core.exceptions import NotFoundError, ValidationError
from src.core.logging import get_logger
from src.models import Contact, Reminder
from src.models.enums import NotificationType, ReminderStatus
from src.services.contacts.service import get_owned_contact
from src.services.notifications import NotificationService
from src.services.reminders.due_dates import (
    adjust_importance,
    as_utc,
    calculate_due_date,
    calculate_priority,
    days_overdue,
    overdue_indicator,
    relationship_strength,
)

logger = get_logger(__name__)

ACTIVE_STATUSES = (ReminderStatus.PENDING.value, ReminderStatus.SNOOZED.value)
DUE_WINDOWS = {"day": 1, "week": 7, "month": 30}
MAX_FREQUENCY = 20
MIN_FREQUENCY_DAYS = 1
MAX_FREQUENCY_DAYS = 365


class ReminderService:
    def __init__(self, db: Session):
        self.db = db

    # ------------------------------------------------------------------
    # CRUD
    # ------------------------------------------------------------------

    def get(self, user_id: uuid.UUID, reminder_id: uuid.UUID) -> Reminder:
        reminder = self.db.get(Reminder, reminder_id)
        if reminder is None or reminder.user_id != user_id:
            raise NotFoundError("Reminder not found")
        return reminder

    def list_for_contact(self, user_id: uuid.UUID, contact_id: uuid.UUID) -> list[Reminder]:
        get_owned_contact(self.db, user_id, contact_id)
        return list(
            self.db.execute(
                select(Reminder)
                .where(Reminder.user_id == user_id, Reminder.contact_id == contact_id)
                .order_by(Reminder.due_at.asc())
            ).scalars()
        )

    def create(
        self,
        user_id: uuid.UUID,
        contact_id: uuid.UUID,
        title: str,
        message: str | None = None,
        scheduled_for: datetime | None = None,
        frequency_days: int | None = None,
    ) -> Reminder:
        """
        Create a reminder for one of the user's contacts.

        Raises:
            NotFoundError: Contact missing or owned by someone else
            ValidationError: Neither scheduled_for nor frequency_days given
        """
        scheduled_for = as_utc(scheduled_for)
        contact = get_owned_contact(self.db, user_id, contact_id)

        if scheduled_for is not None:
            due_at = scheduled_for
        elif frequency_days is not None:
            due_at = calculate_due_date(contact.last_contact, frequency_days)
        else:
            raise ValidationError("Either scheduled_for or frequency_days is required")

        reminder = Reminder(
            user_id=user_id,
            contact_id=contact.id,
            title=title,
            message=message,
            scheduled_for=scheduled_for,
            due_at=due_at,
            frequency_days=frequency_days,
            priority=calculate_priority(contact.importance, contact.frequency, 0),
            status=ReminderStatus.PENDING.value,
        )
        self.db.add(reminder)
        self.db.commit()

        logger.info(f"Created reminder {reminder.id} for contact {contact.id}, due {due_at}")
        return reminder

    def update(self, user_id: uuid.UUID, reminder_id: uuid.UUID, changes: dict[str, Any]) -> Reminder:
        reminder = self.get(user_id, reminder_id)

        for field in ("title", "message", "priority"):
            if field in changes and changes[field] is not None:
                setattr(reminder, field, changes[field])

        if changes.get("frequency_days") is not None:
            reminder.frequency_days = changes["frequency_days"]
            if changes.get("scheduled_for") is None:
                reminder.due_at = calculate_due_date(
                    reminder.contact.last_contact, reminder.frequency_days
                )

        if changes.get("scheduled_for") is not None:
            reminder.scheduled_for = as_utc(changes["scheduled_for"])
            reminder.due_at = reminder.scheduled_for

        self.db.commit()
        return reminder

    def delete(self, user_id: uuid.UUID, reminder_id: uuid.UUID) -> None:
        reminder = self.get(user_id, reminder_id)
        self.db.delete(reminder)
        self.db.commit()

    # ------------------------------------------------------------------
    # Frequency
    # ------------------------------------------------------------------

    def set_frequency(
        self, user_id: uuid.UUID, contact_id: uuid.UUID, days: int, commit: bool = True
    ) -> Reminder:
        """
        Set the follow-up cadence for a contact.
        Updates the active reminder or creates one if there is none.
        """
        if not MIN_FREQUENCY_DAYS <= days <= MAX_FREQUENCY_DAYS:
            raise ValidationError(
                f"Frequency must be between {MIN_FREQUENCY_DAYS} and {MAX_FREQUENCY_DAYS} days"
            )

        contact = get_owned_contact(self.db, user_id, contact_id)
        contact.contact_frequency_days = days
        due_at = calculate_due_date(contact.last_contact, days)

        reminder = self.db.execute(
            select(Reminder).where(
                Reminder.contact_id == contact.id,
                Reminder.status.in_(ACTIVE_STATUSES),
            )
        ).scalars().first()

        if reminder is None:
            reminder = Reminder(
                user_id=user_id,
                contact_id=contact.id,
                title=f"Follow up with {contact.first_name}",
                frequency_days=days,
                due_at=due_at,
                priority=calculate_priority(contact.importance, contact.frequency, 0),
                status=ReminderStatus.PENDING.value,
            )
            self.db.add(reminder)
        else:
            reminder.frequency_days = days
            reminder.due_at = due_at

        if commit:
            self.db.commit()
        return reminder

    def bulk_set_frequency(self, user_id: uuid.UUID, tags: list[str], days: int) -> int:
        """Apply a cadence to every live contact carrying any of the tags."""
        if not tags:
            raise ValidationError("At least one tag is required")

        contact_ids = list(
            self.db.execute(
                select(Contact.id).where(
                    Contact.user_id == user_id,
                    Contact.deleted_at.is_(None),
                    Contact.tags.overlap(tags),
                )
            ).scalars()
        )

        for contact_id in contact_ids:
            self.set_frequency(user_id, contact_id, days, commit=False)
        self.db.commit()

        logger.info(f"Set {days}-day frequency on {len(contact_ids)} contacts for tags {tags}")
        return len(contact_ids)

    # ------------------------------------------------------------------
    # Due lists
    # ------------------------------------------------------------------

    def _active_reminders(self, user_id: uuid.UUID, horizon: datetime) -> list[Reminder]:
        return list(
            self.db.execute(
                select(Reminder)
                .options(joinedload(Reminder.contact))
                .where(
                    Reminder.user_id == user_id,
                    or_(
                        (Reminder.status == ReminderStatus.PENDING.value)
                        & (Reminder.due_at <= horizon),
                        (Reminder.status == ReminderStatus.SNOOZED.value)
                        & (Reminder.snoozed_until <= horizon),
                    ),
                )
            )
            .unique()
            .scalars()
        )

    @staticmethod
    def enrich(reminder: Reminder, now: datetime) -> dict[str, Any]:
        """Attach priority, lateness and relationship strength to a reminder."""
        contact = reminder.contact
        overdue = days_overdue(reminder.effective_due_at, now)
        return {
            "reminder": reminder,
            "priority": calculate_priority(contact.importance, contact.frequency, overdue),
            "days_overdue": overdue,
            "overdue_indicator": overdue_indicator(overdue),
            "relationship_strength": relationship_strength(contact.importance, contact.frequency),
        }

    def due(self, user_id: uuid.UUID, filter: str = "week") -> list[dict[str, Any]]:
        """
        Reminders due within the window, highest priority first.

        Args:
            filter: "day", "week" or "month"
        """
        if filter not in DUE_WINDOWS:
            raise ValidationError("filter must be one of: day, week, month")

        now = datetime.now(timezone.utc)
        horizon = now + timedelta(days=DUE_WINDOWS[filter])
        items = [self.enrich(r, now) for r in self._active_reminders(user_id, horizon)]
        items.sort(key=lambda item: item["priority"], reverse=True)
        return items

    def overdue(self, user_id: uuid.UUID) -> list[dict[str, Any]]:
        now = datetime.now(timezone.utc)
        items = [
            self.enrich(r, now)
            for r in self._active_reminders(user_id, now)
            if r.effective_due_at is not None and r.effective_due_at < now
        ]
        items.sort(key=lambda item: item["priority"], reverse=True)
        return items

    # ------------------------------------------------------------------
    # Status transitions
    # ------------------------------------------------------------------

    def snooze(self, user_id: uuid.UUID, reminder_id: uuid.UUID, until: datetime) -> Reminder:
        until = as_utc(until)
        if until <= datetime.now(timezone.utc):
            raise ValidationError("Snooze time must be in the future")

        reminder = self.get(user_id, reminder_id)
        reminder.status = ReminderStatus.SNOOZED.value
        reminder.snoozed_until = until
        self.db.commit()
        return reminder

    def dismiss(self, user_id: uuid.UUID, reminder_id: uuid.UUID) -> Reminder:
        reminder = self.get(user_id, reminder_id)
        reminder.status = ReminderStatus.DISMISSED.value
        self.db.commit()
        return reminder

    def mark_done(self, user_id: uuid.UUID, reminder_id: uuid.UUID) -> Reminder:
        """
        Complete a reminder and record the interaction on the contact.

        Returns:
            The next scheduled reminder when the reminder recurs, else the completed one
        """
        reminder = self.get(user_id, reminder_id)
        contact = reminder.contact
        now = datetime.now(timezone.utc)

        reminder.status = ReminderStatus.COMPLETED.value
        reminder.completed_at = now

        previous_contact = contact.last_contact
        contact.last_contact = now
        contact.frequency = min(MAX_FREQUENCY, (contact.frequency or 0) + 1)
        contact.importance = adjust_importance(contact.importance or 0, previous_contact, now)

        next_reminder = None
        if reminder.frequency_days:
            next_reminder = Reminder(
                user_id=user_id,
                contact_id=contact.id,
                title=reminder.title,
                message=reminder.message,
                frequency_days=reminder.frequency_days,
                due_at=now + timedelta(days=reminder.frequency_days),
                priority=calculate_priority(contact.importance, contact.frequency, 0),
                status=ReminderStatus.PENDING.value,
            )
            self.db.add(next_reminder)

        self.db.commit()
        logger.info(f"Completed reminder {reminder.id} for contact {contact.id}")
        return next_reminder or reminder

    # ------------------------------------------------------------------
    # Background notifications
    # ------------------------------------------------------------------

    def send_due_notifications(self, now: datetime | None = None) -> dict[str, int]:
        """
        Create a REMINDER notification for every pending reminder that is due.
        Each reminder is notified once; failures are logged and skipped.
        """
        now = now or datetime.now(timezone.utc)
        reminders = list(
            self.db.execute(
                select(Reminder)
                .options(joinedload(Reminder.contact))
                .where(
                    Reminder.status == ReminderStatus.PENDING.value,
                    Reminder.due_at <= now,
                )
            )
            .unique()
            .scalars()
        )

        notifications = NotificationService(self.db)
        sent = 0
        failed = 0

        for reminder in reminders:
            try:
                contact = reminder.contact
                notifications.create(
                    user_id=reminder.user_id,
                    type=NotificationType.REMINDER,
                    title=f"Time to reach out to {contact.first_name}",
                    message=reminder.message
                    or f"You scheduled a reminder to follow up with {contact.full_name}",
                    meta={
                        "reminder_id": str(reminder.id),
                        "contact_id": str(contact.id),
                        "contact_name": contact.full_name,
                    },
                    commit=False,
                )
                reminder.status = ReminderStatus.SENT.value
                reminder.notified_at = now
                self.db.commit()
                sent += 1
            except Exception as e:
                self.db.rollback()
                failed += 1
                logger.error(f"Failed to notify reminder {reminder.id}: {e}", exc_info=True)

        return {"sent": sent, "failed": failed}
