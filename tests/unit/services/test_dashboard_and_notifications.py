"""
Unit tests for dashboard aggregates and in-app notifications.
"""

import uuid
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock, patch

import pytest

from src.core.exceptions import NotFoundError
from src.models import Notification
from src.models.enums import NotificationType
from src.services.dashboard import DashboardService
from src.services.notifications import NotificationService


def scalar_result(value):
    result = MagicMock()
    result.scalar.return_value = value
    return result


class TestDashboardService:
    """Test stats and follow-ups."""

    def test_stats(self, mock_db, user_id):
        distribution = MagicMock()
        distribution.all.return_value = [("strong", 2), ("new", 5)]
        mock_db.execute.side_effect = [
            distribution,
            scalar_result(7),
            scalar_result(1),
            scalar_result(4),
            scalar_result(None),
            scalar_result(3),
        ]

        stats = DashboardService(mock_db).stats(user_id)

        assert stats == {
            "total_contacts": 7,
            "contacts_added_this_month": 1,
            "pending_reminders": 4,
            "overdue_reminders": 0,
            "relationship_distribution": {"strong": 2, "moderate": 0, "weak": 0, "new": 5},
            "unread_notifications": 3,
        }

    def test_follow_ups_only_due_today(self, mock_db, user_id):
        """Test reminders due after today are left out and the limit applies."""
        now = datetime.now(timezone.utc)

        def item(due_at):
            reminder = MagicMock(effective_due_at=due_at)
            return {"reminder": reminder, "priority": 1}

        items = [item(now - timedelta(days=i)) for i in range(7)] + [item(now + timedelta(days=2))]

        with patch("src.services.dashboard.ReminderService") as reminders:
            reminders.return_value.due.return_value = items
            follow_ups = DashboardService(mock_db).follow_ups(user_id)

        assert len(follow_ups) == 5
        reminders.return_value.due.assert_called_once_with(user_id, filter="day")
        assert all(f["reminder"].effective_due_at <= now for f in follow_ups)


class TestNotificationService:
    """Test notification CRUD."""

    def test_create_commits_by_default(self, mock_db, user_id):
        notification = NotificationService(mock_db).create(
            user_id, NotificationType.REMINDER, "Reminder", "Call Ada", meta={"reminder_id": "r1"}
        )

        assert notification.type == NotificationType.REMINDER.value
        assert notification.is_read is False
        mock_db.add.assert_called_once_with(notification)
        mock_db.commit.assert_called_once()

    def test_create_inside_caller_transaction(self, mock_db, user_id):
        NotificationService(mock_db).create(
            user_id, NotificationType.INTEGRATION_SYNC, "Sync", "Done", commit=False
        )

        mock_db.commit.assert_not_called()

    def test_list_returns_total(self, mock_db, user_id):
        rows = [Notification(id=uuid.uuid4(), user_id=user_id, title="a", message="b")]
        items = MagicMock()
        items.scalars.return_value = rows
        mock_db.execute.side_effect = [scalar_result(12), items]

        result, total = NotificationService(mock_db).list(user_id, page=2, limit=10)

        assert result == rows
        assert total == 12

    def test_mark_read_foreign(self, mock_db, user_id, other_user_id):
        mock_db.get.return_value = Notification(id=uuid.uuid4(), user_id=other_user_id, is_read=False)

        with pytest.raises(NotFoundError):
            NotificationService(mock_db).mark_read(user_id, uuid.uuid4())

    def test_mark_read(self, mock_db, user_id):
        notification = Notification(id=uuid.uuid4(), user_id=user_id, is_read=False)
        mock_db.get.return_value = notification

        NotificationService(mock_db).mark_read(user_id, notification.id)

        assert notification.is_read is True

    def test_mark_all_read(self, mock_db, user_id):
        mock_db.execute.return_value.rowcount = 4

        assert NotificationService(mock_db).mark_all_read(user_id) == 4
        mock_db.commit.assert_called_once()
