"""
Notes attached to contacts.
"""

import uuid
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from src.core.exceptions import NotFoundError, PermissionDeniedError, ValidationError
from src.models import Note
from src.services.contacts.service import get_owned_contact


class NoteService:
    def __init__(self, db: Session):
        self.db = db

    def _get_for_user(self, user_id: uuid.UUID, note_id: uuid.UUID) -> Note:
        note = self.db.get(Note, note_id)
        if note is None:
            raise NotFoundError("Note not found")
        if note.user_id != user_id:
            raise PermissionDeniedError("You do not have access to this note")
        return note

    def list_for_contact(self, user_id: uuid.UUID, contact_id: uuid.UUID) -> dict[str, Any]:
        """Pinned notes first, then newest first."""
        get_owned_contact(self.db, user_id, contact_id)

        conditions = (Note.contact_id == contact_id, Note.user_id == user_id)
        notes = self.db.execute(
            select(Note)
            .where(*conditions)
            .order_by(Note.is_pinned.desc(), Note.created_at.desc())
        ).scalars()
        total = self.db.execute(select(func.count(Note.id)).where(*conditions)).scalar() or 0
        return {"data": list(notes), "total": total}

    def create(
        self, user_id: uuid.UUID, contact_id: uuid.UUID, content: str, is_pinned: bool = False
    ) -> Note:
        get_owned_contact(self.db, user_id, contact_id)
        if not content.strip():
            raise ValidationError("Note content is required")

        note = Note(user_id=user_id, contact_id=contact_id, content=content, is_pinned=is_pinned)
        self.db.add(note)
        self.db.commit()
        return note

    def update(
        self,
        user_id: uuid.UUID,
        note_id: uuid.UUID,
        content: str | None = None,
        is_pinned: bool | None = None,
    ) -> Note:
        note = self._get_for_user(user_id, note_id)
        if content is not None:
            if not content.strip():
                raise ValidationError("Note content is required")
            note.content = content
        if is_pinned is not None:
            note.is_pinned = is_pinned
        self.db.commit()
        return note

    def delete(self, user_id: uuid.UUID, note_id: uuid.UUID) -> dict[str, bool]:
        note = self._get_for_user(user_id, note_id)
        self.db.delete(note)
        self.db.commit()
        return {"success": True}

    def toggle_pin(self, user_id: uuid.UUID, note_id: uuid.UUID) -> Note:
        note = self._get_for_user(user_id, note_id)
        note.is_pinned = not note.is_pinned
        self.db.commit()
        return note
