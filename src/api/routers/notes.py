"""
Note routes. Listing and creation live under /contacts/{id}/notes.
"""

import uuid
from datetime import datetime

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.orm import Session

from src.api.deps import get_current_user
from src.core.database import get_sync_db
from src.models import User
from src.services.notes import NoteService

router = APIRouter()


class NoteCreateRequest(BaseModel):
    content: str = Field(..., min_length=1)
    is_pinned: bool = False


class NoteUpdateRequest(BaseModel):
    content: str | None = Field(default=None, min_length=1)
    is_pinned: bool | None = None


class NoteResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    contact_id: uuid.UUID
    content: str
    is_pinned: bool
    created_at: datetime
    updated_at: datetime


class NoteListResponse(BaseModel):
    data: list[NoteResponse]
    total: int


@router.patch("/{note_id}", response_model=NoteResponse)
def update_note(
    note_id: uuid.UUID,
    request: NoteUpdateRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_sync_db),
):
    return NoteService(db).update(user.id, note_id, content=request.content, is_pinned=request.is_pinned)


@router.delete("/{note_id}")
def delete_note(
    note_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_sync_db),
) -> dict[str, bool]:
    return NoteService(db).delete(user.id, note_id)


@router.post("/{note_id}/pin", response_model=NoteResponse)
def toggle_pin(
    note_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_sync_db),
):
    return NoteService(db).toggle_pin(user.id, note_id)
