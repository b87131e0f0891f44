"""
Contact routes: CRUD, search, duplicate checks and per-contact sub-resources.
"""

import uuid
from datetime import datetime
from typing import Any

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.orm import Session

from src.api.deps import get_current_user
from src.api.routers.notes import NoteCreateRequest, NoteListResponse, NoteResponse
from src.api.routers.reminders import ReminderResponse
from src.core.database import get_sync_db
from src.core.logging import get_logger
from src.models import User
from src.services.contacts.service import ContactService
from src.services.insights import InsightService
from src.services.notes import NoteService
from src.services.reminders.service import ReminderService
from src.services.timeline import TimelineService

logger = get_logger(__name__)

router = APIRouter()


# Request/Response models
class ContactBase(BaseModel):
    last_name: str | None = None
    email: str | None = None
    phone: str | None = None
    company: str | None = None
    position: str | None = None
    location: str | None = None
    linkedin_url: str | None = None
    notes: str | None = None
    tags: list[str] | None = None
    importance: int | None = Field(default=None, ge=0, le=100)
    frequency: int | None = Field(default=None, ge=0)
    last_contact: datetime | None = None
    contact_frequency_days: int | None = Field(default=None, ge=1, le=365)


class ContactCreateRequest(ContactBase):
    first_name: str = Field(..., min_length=1)
    source: str | None = None
    metadata: dict[str, Any] | None = None


class ContactUpdateRequest(ContactBase):
    first_name: str | None = Field(default=None, min_length=1)


class ContactResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    first_name: str
    last_name: str | None
    email: str | None
    phone: str | None
    company: str | None
    position: str | None
    location: str | None
    linkedin_url: str | None
    notes: str | None
    tags: list[str]
    source: str
    last_contact: datetime | None
    frequency: int
    importance: int
    contact_frequency_days: int | None
    metadata: dict[str, Any] | None = Field(default=None, validation_alias="meta")
    created_at: datetime
    updated_at: datetime


class PaginationMeta(BaseModel):
    total: int
    page: int
    limit: int
    total_pages: int


class ContactListResponse(BaseModel):
    data: list[ContactResponse]
    meta: PaginationMeta


class DuplicateCheckRequest(BaseModel):
    email: str | None = None
    phone: str | None = None


class DuplicateCheckResponse(BaseModel):
    is_duplicate: bool
    existing_contact: ContactResponse | None = None
    match_field: str | None = None


class ReminderFrequencyRequest(BaseModel):
    days: int


class InsightResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    contact_id: uuid.UUID | None
    type: str
    title: str
    content: str
    confidence: float
    metadata: dict[str, Any] | None = Field(default=None, validation_alias="meta")
    created_at: datetime


@router.get("", response_model=ContactListResponse)
def list_contacts(
    search: str | None = None,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    sort_by: str = Query(default="last_contact", pattern="^(last_contact|importance|name|created_at)$"),
    sort_order: str = Query(default="desc", pattern="^(asc|desc)$"),
    tags: list[str] | None = Query(default=None),
    company: str | None = None,
    position: str | None = None,
    location: str | None = None,
    source: str | None = None,
    has_email: bool | None = None,
    has_phone: bool | None = None,
    last_contacted_after: datetime | None = None,
    last_contacted_before: datetime | None = None,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_sync_db),
) -> dict[str, Any]:
    return ContactService(db).list(
        user.id,
        search=search,
        page=page,
        limit=limit,
        sort_by=sort_by,
        sort_order=sort_order,
        tags=tags,
        company=company,
        position=position,
        location=location,
        source=source,
        has_email=has_email,
        has_phone=has_phone,
        last_contacted_after=last_contacted_after,
        last_contacted_before=last_contacted_before,
    )


@router.post("", response_model=ContactResponse, status_code=status.HTTP_201_CREATED)
def create_contact(
    request: ContactCreateRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_sync_db),
):
    return ContactService(db).create(user.id, request.model_dump(exclude_none=True))


@router.post("/check-duplicate", response_model=DuplicateCheckResponse)
def check_duplicate(
    request: DuplicateCheckRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_sync_db),
) -> dict[str, Any]:
    return ContactService(db).check_duplicate(user.id, email=request.email, phone=request.phone)


@router.get("/{contact_id}", response_model=ContactResponse)
def get_contact(
    contact_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_sync_db),
):
    return ContactService(db).get(user.id, contact_id)


@router.patch("/{contact_id}", response_model=ContactResponse)
def update_contact(
    contact_id: uuid.UUID,
    request: ContactUpdateRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_sync_db),
):
    return ContactService(db).update(user.id, contact_id, request.model_dump(exclude_unset=True))


@router.delete("/{contact_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_contact(
    contact_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_sync_db),
) -> None:
    ContactService(db).delete(user.id, contact_id)


@router.put("/{contact_id}/reminder-frequency", response_model=ReminderResponse)
def set_reminder_frequency(
    contact_id: uuid.UUID,
    request: ReminderFrequencyRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_sync_db),
):
    """Set the follow-up cadence (1-365 days) and upsert the follow-up reminder."""
    return ReminderService(db).set_frequency(user.id, contact_id, request.days)


@router.get("/{contact_id}/reminders", response_model=list[ReminderResponse])
def list_contact_reminders(
    contact_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_sync_db),
):
    return ReminderService(db).list_for_contact(user.id, contact_id)


@router.get("/{contact_id}/notes", response_model=NoteListResponse)
def list_contact_notes(
    contact_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_sync_db),
) -> dict[str, Any]:
    return NoteService(db).list_for_contact(user.id, contact_id)


@router.post("/{contact_id}/notes", response_model=NoteResponse, status_code=status.HTTP_201_CREATED)
def create_contact_note(
    contact_id: uuid.UUID,
    request: NoteCreateRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_sync_db),
):
    return NoteService(db).create(user.id, contact_id, request.content, is_pinned=request.is_pinned)


@router.get("/{contact_id}/insights", response_model=list[InsightResponse])
def list_contact_insights(
    contact_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_sync_db),
):
    return InsightService(db).list_for_contact(user.id, contact_id)


class TimelineEvent(BaseModel):
    id: uuid.UUID
    type: str
    occurred_at: datetime
    title: str
    snippet: str | None = None
    direction: str | None = None
    source: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)


class TimelineResponse(BaseModel):
    data: list[TimelineEvent]
    total: int
    next_cursor: datetime | None = None
    has_more: bool


@router.get("/{contact_id}/timeline", response_model=TimelineResponse)
def get_contact_timeline(
    contact_id: uuid.UUID,
    types: list[str] | None = Query(default=None),
    search: str | None = None,
    cursor: datetime | None = None,
    limit: int = Query(default=20, ge=1, le=100),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_sync_db),
) -> dict[str, Any]:
    """Emails, activities and notes for a contact, newest first."""
    return TimelineService(db).timeline(
        user.id, contact_id, types=types, search=search, cursor=cursor, limit=limit
    )
