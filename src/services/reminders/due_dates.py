"""
Pure helpers for reminder due dates and prioritisation.
"""

import math
from datetime import datetime, timedelta, timezone


def as_utc(value: datetime | None) -> datetime | None:
    """Attach UTC to naive datetimes; aware values are converted to UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def calculate_due_date(last_contact: datetime | None, frequency_days: int) -> datetime:
    """Due date is the last interaction (or now) plus the follow-up cadence."""
    base = last_contact or datetime.now(timezone.utc)
    return base + timedelta(days=frequency_days)


def days_overdue(due_at: datetime | None, now: datetime | None = None) -> int:
    """Whole days past due, rounded up; 0 when not yet due."""
    if due_at is None:
        return 0
    now = now or datetime.now(timezone.utc)
    if due_at > now:
        return 0
    return math.ceil((now - due_at) / timedelta(days=1))


def calculate_priority(importance: int, frequency: int, overdue_days: int) -> int:
    """
    Priority score (0-100) used to sort follow-ups.

    importance contributes fully, frequency up to 20 and lateness up to 30.
    """
    score = importance + min(frequency * 1.5, 20) + min(overdue_days * 2, 30)
    return round(min(100, score))


def overdue_indicator(overdue_days: int) -> str:
    if overdue_days <= 0:
        return "none"
    if overdue_days <= 7:
        return "attention"
    if overdue_days <= 14:
        return "warning"
    return "critical"


def relationship_strength(importance: int, frequency: int) -> str:
    combined = importance + frequency
    if combined >= 90:
        return "strong"
    if combined >= 50:
        return "moderate"
    return "weak"


def adjust_importance(importance: int, previous_contact: datetime | None, now: datetime) -> int:
    """
    Nudge importance after a completed follow-up.
    Quick repeat contact raises it, a long gap lowers it.
    """
    if previous_contact is None:
        return importance

    days_since = (now - previous_contact).days
    if days_since <= 7:
        importance += 5
    elif days_since <= 30:
        importance += 2
    elif days_since > 90:
        importance -= 5
    return max(0, min(100, importance))
