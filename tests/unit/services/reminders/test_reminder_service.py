"""
Unit tests for ReminderService with a mocked database session.
"""

import uuid
from datetime import datetime, timedelta, timezone

import pytest

from src.core.exceptions import NotFoundError, ValidationError
from src.models import Reminder
from src.models.enums import ReminderStatus
from src.services.reminders.service import ReminderService


@pytest.fixture
def make_reminder(user_id):
    def _make(contact, **overrides) -> Reminder:
        fields = {
            "id": uuid.uuid4(),
            "user_id": user_id,
            "contact_id": contact.id,
            "title": f"Follow up with {contact.first_name}",
            "status": ReminderStatus.PENDING.value,
            "due_at": datetime.now(timezone.utc) - timedelta(days=3, hours=1),
            "frequency_days": None,
            "snoozed_until": None,
        }
        fields.update(overrides)
        reminder = Reminder(**fields)
        reminder.contact = contact
        return reminder

    return _make


class TestCreateReminder:
    """Test reminder creation."""

    def test_create_with_frequency(self, mock_db, make_contact, user_id, now):
        """Test due date is derived from the last contact and cadence."""
        contact = make_contact(last_contact=now, importance=40, frequency=2)
        mock_db.get.return_value = contact

        reminder = ReminderService(mock_db).create(user_id, contact.id, "Catch up", frequency_days=14)

        assert reminder.due_at == now + timedelta(days=14)
        assert reminder.status == ReminderStatus.PENDING.value
        assert reminder.priority == 43
        mock_db.add.assert_called_once_with(reminder)
        mock_db.commit.assert_called_once()

    def test_create_with_explicit_date(self, mock_db, make_contact, user_id, now):
        """Test scheduled_for wins as the due date."""
        contact = make_contact()
        mock_db.get.return_value = contact
        when = now + timedelta(days=2)

        reminder = ReminderService(mock_db).create(user_id, contact.id, "Coffee", scheduled_for=when)

        assert reminder.due_at == when
        assert reminder.scheduled_for == when

    def test_create_naive_scheduled_for(self, mock_db, make_contact, user_id):
        contact = make_contact()
        mock_db.get.return_value = contact

        reminder = ReminderService(mock_db).create(
            user_id, contact.id, "Coffee", scheduled_for=datetime(2099, 3, 1, 8, 30)
        )

        assert reminder.due_at == datetime(2099, 3, 1, 8, 30, tzinfo=timezone.utc)

    def test_create_requires_schedule(self, mock_db, make_contact, user_id):
        """Test a reminder needs a date or a cadence."""
        contact = make_contact()
        mock_db.get.return_value = contact

        with pytest.raises(ValidationError):
            ReminderService(mock_db).create(user_id, contact.id, "Nothing")
        mock_db.add.assert_not_called()

    def test_create_for_foreign_contact(self, mock_db, make_contact, user_id, other_user_id):
        """Test another user's contact reads as not found."""
        contact = make_contact(user_id=other_user_id)
        mock_db.get.return_value = contact

        with pytest.raises(NotFoundError):
            ReminderService(mock_db).create(user_id, contact.id, "Hi", frequency_days=7)


class TestGetReminder:
    """Test ownership checks on single reminders."""

    def test_missing(self, mock_db, user_id):
        mock_db.get.return_value = None
        with pytest.raises(NotFoundError):
            ReminderService(mock_db).get(user_id, uuid.uuid4())

    def test_foreign(self, mock_db, make_contact, make_reminder, user_id, other_user_id):
        """Test another user's reminder is reported as not found."""
        reminder = make_reminder(make_contact(), user_id=other_user_id)
        mock_db.get.return_value = reminder

        with pytest.raises(NotFoundError):
            ReminderService(mock_db).get(user_id, reminder.id)


class TestSetFrequency:
    """Test per-contact follow-up cadence."""

    @pytest.mark.parametrize("days", [0, 366])
    def test_out_of_range(self, mock_db, user_id, days):
        """Test cadence must be between 1 and 365 days."""
        with pytest.raises(ValidationError):
            ReminderService(mock_db).set_frequency(user_id, uuid.uuid4(), days)

    def test_creates_reminder_when_none_active(self, mock_db, make_contact, user_id, now):
        """Test a pending reminder is created for a contact without one."""
        contact = make_contact(last_contact=now)
        mock_db.get.return_value = contact
        mock_db.execute.return_value.scalars.return_value.first.return_value = None

        reminder = ReminderService(mock_db).set_frequency(user_id, contact.id, 30)

        assert contact.contact_frequency_days == 30
        assert reminder.due_at == now + timedelta(days=30)
        assert reminder.title == "Follow up with Ada"
        mock_db.add.assert_called_once_with(reminder)

    def test_updates_active_reminder(self, mock_db, make_contact, make_reminder, user_id, now):
        """Test the existing active reminder is rescheduled in place."""
        contact = make_contact(last_contact=now)
        existing = make_reminder(contact, frequency_days=7)
        mock_db.get.return_value = contact
        mock_db.execute.return_value.scalars.return_value.first.return_value = existing

        reminder = ReminderService(mock_db).set_frequency(user_id, contact.id, 21)

        assert reminder is existing
        assert existing.frequency_days == 21
        assert existing.due_at == now + timedelta(days=21)
        mock_db.add.assert_not_called()

    def test_bulk_requires_tags(self, mock_db, user_id):
        """Test bulk frequency needs at least one tag."""
        with pytest.raises(ValidationError):
            ReminderService(mock_db).bulk_set_frequency(user_id, [], 30)


class TestDueLists:
    """Test due and overdue lists."""

    def test_invalid_filter(self, mock_db, user_id):
        with pytest.raises(ValidationError):
            ReminderService(mock_db).due(user_id, filter="year")

    def test_due_sorted_by_priority(self, mock_db, make_contact, make_reminder, user_id):
        """Test the most important contact comes first."""
        low = make_reminder(make_contact(importance=10))
        high = make_reminder(make_contact(importance=80))
        mock_db.execute.return_value.unique.return_value.scalars.return_value = [low, high]

        items = ReminderService(mock_db).due(user_id, filter="week")

        assert [item["reminder"] for item in items] == [high, low]
        assert items[0]["days_overdue"] == 4
        assert items[0]["overdue_indicator"] == "attention"

    def test_overdue_excludes_future(self, mock_db, make_contact, make_reminder, user_id):
        """Test snoozed reminders not yet back are left out."""
        late = make_reminder(make_contact())
        snoozed = make_reminder(
            make_contact(),
            status=ReminderStatus.SNOOZED.value,
            snoozed_until=datetime.now(timezone.utc) + timedelta(hours=2),
        )
        mock_db.execute.return_value.unique.return_value.scalars.return_value = [late, snoozed]

        items = ReminderService(mock_db).overdue(user_id)

        assert [item["reminder"] for item in items] == [late]


class TestStatusTransitions:
    """Test snooze, dismiss and done."""

    def test_snooze_in_past_rejected(self, mock_db, user_id):
        with pytest.raises(ValidationError):
            ReminderService(mock_db).snooze(
                user_id, uuid.uuid4(), datetime.now(timezone.utc) - timedelta(minutes=1)
            )

    def test_snooze(self, mock_db, make_contact, make_reminder, user_id):
        """Test snoozing moves the reminder to SNOOZED."""
        reminder = make_reminder(make_contact())
        mock_db.get.return_value = reminder
        until = datetime.now(timezone.utc) + timedelta(days=1)

        ReminderService(mock_db).snooze(user_id, reminder.id, until)

        assert reminder.status == ReminderStatus.SNOOZED.value
        assert reminder.snoozed_until == until
        assert reminder.effective_due_at == until

    def test_snooze_naive_until_treated_as_utc(self, mock_db, make_contact, make_reminder, user_id):
        """Test a timestamp without an offset is read as UTC instead of failing the comparison."""
        reminder = make_reminder(make_contact())
        mock_db.get.return_value = reminder

        ReminderService(mock_db).snooze(user_id, reminder.id, datetime(2099, 1, 1, 9, 0))

        assert reminder.status == ReminderStatus.SNOOZED.value
        assert reminder.snoozed_until == datetime(2099, 1, 1, 9, 0, tzinfo=timezone.utc)

    def test_snooze_naive_past_rejected(self, mock_db, user_id):
        with pytest.raises(ValidationError, match="in the future"):
            ReminderService(mock_db).snooze(user_id, uuid.uuid4(), datetime(2000, 1, 1))

    def test_dismiss(self, mock_db, make_contact, make_reminder, user_id):
        reminder = make_reminder(make_contact())
        mock_db.get.return_value = reminder

        ReminderService(mock_db).dismiss(user_id, reminder.id)

        assert reminder.status == ReminderStatus.DISMISSED.value

    def test_mark_done_one_off(self, mock_db, make_contact, make_reminder, user_id):
        """Test completing updates the contact and returns the reminder."""
        contact = make_contact(importance=50, frequency=2, last_contact=None)
        reminder = make_reminder(contact)
        mock_db.get.return_value = reminder

        result = ReminderService(mock_db).mark_done(user_id, reminder.id)

        assert result is reminder
        assert reminder.status == ReminderStatus.COMPLETED.value
        assert reminder.completed_at is not None
        assert contact.last_contact == reminder.completed_at
        assert contact.frequency == 3
        assert contact.importance == 50
        mock_db.add.assert_not_called()

    def test_mark_done_recurring(self, mock_db, make_contact, make_reminder, user_id):
        """Test a recurring reminder schedules the next one."""
        contact = make_contact(
            importance=50, frequency=20, last_contact=datetime.now(timezone.utc) - timedelta(days=3)
        )
        reminder = make_reminder(contact, frequency_days=14)
        mock_db.get.return_value = reminder

        result = ReminderService(mock_db).mark_done(user_id, reminder.id)

        assert result is not reminder
        assert result.status == ReminderStatus.PENDING.value
        assert result.due_at == reminder.completed_at + timedelta(days=14)
        assert contact.frequency == 20
        assert contact.importance == 55
        mock_db.add.assert_called_once_with(result)


class TestSendDueNotifications:
    """Test the background notifier."""

    def test_marks_sent(self, mock_db, make_contact, make_reminder, now):
        """Test each due reminder creates a notification and is marked SENT."""
        reminder = make_reminder(make_contact())
        mock_db.execute.return_value.unique.return_value.scalars.return_value = [reminder]

        result = ReminderService(mock_db).send_due_notifications(now=now)

        assert result == {"sent": 1, "failed": 0}
        assert reminder.status == ReminderStatus.SENT.value
        assert reminder.notified_at == now

    def test_failure_is_isolated(self, mock_db, make_contact, make_reminder, now):
        """Test a failing commit rolls back and the rest continue."""
        first = make_reminder(make_contact())
        second = make_reminder(make_contact())
        mock_db.execute.return_value.unique.return_value.scalars.return_value = [first, second]
        mock_db.commit.side_effect = [RuntimeError("db down"), None]

        result = ReminderService(mock_db).send_due_notifications(now=now)

        assert result == {"sent": 1, "failed": 1}
        mock_db.rollback.assert_called_once()
