"""
Dashboard aggregates.
"""

import uuid
from datetime import datetime, timedelta, timezone
from typing import Any

from sqlalchemy import case, func, select
from sqlalchemy.orm import Session

from src.models import Contact, Notification, Reminder
from src.models.enums import ReminderStatus
from src.services.reminders.service import ReminderService


class DashboardService:
    def __init__(self, db: Session):
        self.db = db

    def _scalar(self, stmt) -> int:
        return self.db.execute(stmt).scalar() or 0

    def stats(self, user_id: uuid.UUID) -> dict[str, Any]:
        now = datetime.now(timezone.utc)
        month_start = now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
        live = (Contact.user_id == user_id, Contact.deleted_at.is_(None))

        strength = case(
            (Contact.importance >= 80, "strong"),
            (Contact.importance >= 50, "moderate"),
            (Contact.importance >= 20, "weak"),
            else_="new",
        )
        distribution = {"strong": 0, "moderate": 0, "weak": 0, "new": 0}
        for label, count in self.db.execute(
            select(strength, func.count(Contact.id)).where(*live).group_by(strength)
        ).all():
            distribution[label] = count

        return {
            "total_contacts": self._scalar(select(func.count(Contact.id)).where(*live)),
            "contacts_added_this_month": self._scalar(
                select(func.count(Contact.id)).where(*live, Contact.created_at >= month_start)
            ),
            "pending_reminders": self._scalar(
                select(func.count(Reminder.id)).where(
                    Reminder.user_id == user_id,
                    Reminder.status == ReminderStatus.PENDING.value,
                )
            ),
            "overdue_reminders": self._scalar(
                select(func.count(Reminder.id)).where(
                    Reminder.user_id == user_id,
                    Reminder.status == ReminderStatus.PENDING.value,
                    Reminder.due_at < now,
                )
            ),
            "relationship_distribution": distribution,
            "unread_notifications": self._scalar(
                select(func.count(Notification.id)).where(
                    Notification.user_id == user_id, Notification.is_read.is_(False)
                )
            ),
        }

    def follow_ups(self, user_id: uuid.UUID, limit: int = 5) -> list[dict[str, Any]]:
        """Top overdue or due-today reminders by priority."""
        end_of_today = datetime.now(timezone.utc).replace(
            hour=0, minute=0, second=0, microsecond=0
        ) + timedelta(days=1)
        items = [
            item
            for item in ReminderService(self.db).due(user_id, filter="day")
            if item["reminder"].effective_due_at < end_of_today
        ]
        return items[:limit]
