"""
Reminder routes: scheduling, due lists and status transitions.
"""

import uuid
from datetime import datetime
from typing import Any

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.orm import Session

from src.api.deps import get_current_user
from src.core.database import get_sync_db
from src.models import User
from src.services.reminders.service import ReminderService

router = APIRouter()


# Request/Response models
class ReminderCreateRequest(BaseModel):
    contact_id: uuid.UUID
    title: str = Field(..., min_length=1, max_length=255)
    message: str | None = None
    scheduled_for: datetime | None = None
    frequency_days: int | None = Field(default=None, ge=1, le=365)


class ReminderUpdateRequest(BaseModel):
    title: str | None = Field(default=None, min_length=1, max_length=255)
    message: str | None = None
    scheduled_for: datetime | None = None
    frequency_days: int | None = Field(default=None, ge=1, le=365)
    priority: int | None = Field(default=None, ge=0, le=100)


class SnoozeRequest(BaseModel):
    until: datetime


class BulkFrequencyRequest(BaseModel):
    tags: list[str]
    days: int


class ReminderResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    contact_id: uuid.UUID
    title: str
    message: str | None
    scheduled_for: datetime | None
    due_at: datetime | None
    frequency_days: int | None
    priority: int
    status: str
    snoozed_until: datetime | None
    completed_at: datetime | None
    notified_at: datetime | None
    created_at: datetime


class DueReminderResponse(BaseModel):
    """A reminder with its computed urgency."""

    reminder: ReminderResponse
    priority: int
    days_overdue: int
    overdue_indicator: str
    relationship_strength: str


@router.post("", response_model=ReminderResponse, status_code=status.HTTP_201_CREATED)
def create_reminder(
    request: ReminderCreateRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_sync_db),
):
    return ReminderService(db).create(
        user.id,
        request.contact_id,
        title=request.title,
        message=request.message,
        scheduled_for=request.scheduled_for,
        frequency_days=request.frequency_days,
    )


@router.get("/due", response_model=list[DueReminderResponse])
def due_reminders(
    filter: str = Query(default="week", pattern="^(day|week|month)$"),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_sync_db),
) -> list[dict[str, Any]]:
    return ReminderService(db).due(user.id, filter=filter)


@router.get("/overdue", response_model=list[DueReminderResponse])
def overdue_reminders(
    user: User = Depends(get_current_user),
    db: Session = Depends(get_sync_db),
) -> list[dict[str, Any]]:
    return ReminderService(db).overdue(user.id)


@router.post("/bulk-frequency")
def bulk_set_frequency(
    request: BulkFrequencyRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_sync_db),
) -> dict[str, int]:
    updated = ReminderService(db).bulk_set_frequency(user.id, request.tags, request.days)
    return {"updated": updated}


@router.get("/{reminder_id}", response_model=ReminderResponse)
def get_reminder(
    reminder_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_sync_db),
):
    return ReminderService(db).get(user.id, reminder_id)


@router.patch("/{reminder_id}", response_model=ReminderResponse)
def update_reminder(
    reminder_id: uuid.UUID,
    request: ReminderUpdateRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_sync_db),
):
    return ReminderService(db).update(user.id, reminder_id, request.model_dump(exclude_unset=True))


@router.delete("/{reminder_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_reminder(
    reminder_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_sync_db),
) -> None:
    ReminderService(db).delete(user.id, reminder_id)


@router.post("/{reminder_id}/snooze", response_model=ReminderResponse)
def snooze_reminder(
    reminder_id: uuid.UUID,
    request: SnoozeRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_sync_db),
):
    return ReminderService(db).snooze(user.id, reminder_id, request.until)


@router.post("/{reminder_id}/done", response_model=ReminderResponse)
def complete_reminder(
    reminder_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_sync_db),
):
    """Complete the reminder; recurring reminders return the next occurrence."""
    return ReminderService(db).mark_done(user.id, reminder_id)


@router.post("/{reminder_id}/dismiss", response_model=ReminderResponse)
def dismiss_reminder(
    reminder_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_sync_db),
):
    return ReminderService(db).dismiss(user.id, reminder_id)
