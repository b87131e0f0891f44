"""
Unit tests for reminder due date and priority helpers.
"""

from datetime import datetime, timedelta, timezone

import pytest

from src.services.reminders.due_dates import (
    adjust_importance,
    as_utc,
    calculate_due_date,
    calculate_priority,
    days_overdue,
    overdue_indicator,
    relationship_strength,
)


class TestAsUtc:
    """Test timezone normalisation of incoming timestamps."""

    def test_naive_is_utc(self):
        assert as_utc(datetime(2099, 1, 1, 9, 0)) == datetime(2099, 1, 1, 9, 0, tzinfo=timezone.utc)

    def test_offset_converted(self):
        plus_two = timezone(timedelta(hours=2))
        converted = as_utc(datetime(2099, 1, 1, 11, 0, tzinfo=plus_two))

        assert converted == datetime(2099, 1, 1, 9, 0, tzinfo=timezone.utc)
        assert converted.tzinfo == timezone.utc

    def test_none(self):
        assert as_utc(None) is None


class TestCalculateDueDate:
    """Test due date calculation."""

    def test_from_last_contact(self, now):
        """Test due date is last contact plus the cadence."""
        assert calculate_due_date(now, 30) == now + timedelta(days=30)

    def test_without_last_contact_uses_now(self, now):
        """Test a never-contacted contact is due cadence days from now."""
        due = calculate_due_date(None, 7)
        assert due - timedelta(days=7) > now


class TestDaysOverdue:
    """Test lateness in whole days."""

    def test_not_yet_due(self, now):
        """Test future due dates are not overdue."""
        assert days_overdue(now + timedelta(hours=1), now) == 0

    def test_partial_day_rounds_up(self, now):
        """Test a few hours late counts as one day."""
        assert days_overdue(now - timedelta(hours=3), now) == 1

    def test_exact_days(self, now):
        """Test exact multiples of a day."""
        assert days_overdue(now - timedelta(days=5), now) == 5

    def test_no_due_date(self, now):
        """Test reminders without a due date are never overdue."""
        assert days_overdue(None, now) == 0


class TestCalculatePriority:
    """Test priority scoring."""

    def test_components(self):
        """Test importance + capped frequency + capped lateness."""
        # 40 + min(4 * 1.5, 20) + min(3 * 2, 30) = 52
        assert calculate_priority(40, 4, 3) == 52

    def test_caps(self):
        """Test frequency caps at 20, lateness at 30 and the total at 100."""
        assert calculate_priority(10, 50, 100) == 60
        assert calculate_priority(90, 50, 100) == 100

    def test_rounding(self):
        """Test fractional frequency contributions are rounded."""
        assert calculate_priority(0, 1, 0) == 2


class TestIndicators:
    """Test lateness and strength labels."""

    @pytest.mark.parametrize(
        "days,label",
        [(0, "none"), (1, "attention"), (7, "attention"), (8, "warning"), (14, "warning"), (15, "critical")],
    )
    def test_overdue_indicator(self, days, label):
        """Test indicator thresholds."""
        assert overdue_indicator(days) == label

    @pytest.mark.parametrize(
        "importance,frequency,label",
        [(80, 10, "strong"), (80, 9, "moderate"), (45, 5, "moderate"), (30, 5, "weak")],
    )
    def test_relationship_strength(self, importance, frequency, label):
        """Test strength thresholds on importance + frequency."""
        assert relationship_strength(importance, frequency) == label


class TestAdjustImportance:
    """Test the post-follow-up importance nudge."""

    @pytest.mark.parametrize(
        "days_ago,expected",
        [(3, 55), (20, 52), (60, 50), (120, 45)],
    )
    def test_adjustments(self, now, days_ago, expected):
        """Test +5 within a week, +2 within a month, -5 after 90 days."""
        assert adjust_importance(50, now - timedelta(days=days_ago), now) == expected

    def test_clamped(self, now):
        """Test the result stays within 0-100."""
        assert adjust_importance(98, now - timedelta(days=1), now) == 100
        assert adjust_importance(2, now - timedelta(days=200), now) == 0

    def test_no_previous_contact(self, now):
        """Test importance is unchanged without a previous contact."""
        assert adjust_importance(50, None, now) == 50
