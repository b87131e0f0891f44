"""
Notification routes.
"""

import math
import uuid
from datetime import datetime
from typing import Any

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.orm import Session

from src.api.deps import get_current_user
from src.core.database import get_sync_db
from src.models import User
from src.services.notifications import NotificationService

router = APIRouter()


class NotificationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    type: str
    title: str
    message: str
    metadata: dict[str, Any] | None = Field(default=None, validation_alias="meta")
    is_read: bool
    created_at: datetime


class NotificationListResponse(BaseModel):
    data: list[NotificationResponse]
    total: int
    page: int
    limit: int
    total_pages: int


@router.get("", response_model=NotificationListResponse)
def list_notifications(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    unread_only: bool = False,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_sync_db),
) -> dict[str, Any]:
    items, total = NotificationService(db).list(user.id, page=page, limit=limit, unread_only=unread_only)
    return {
        "data": items,
        "total": total,
        "page": page,
        "limit": limit,
        "total_pages": math.ceil(total / limit) if total else 0,
    }


@router.get("/unread-count")
def unread_count(
    user: User = Depends(get_current_user),
    db: Session = Depends(get_sync_db),
) -> dict[str, int]:
    return {"count": NotificationService(db).unread_count(user.id)}


@router.post("/read-all")
def mark_all_read(
    user: User = Depends(get_current_user),
    db: Session = Depends(get_sync_db),
) -> dict[str, int]:
    return {"updated": NotificationService(db).mark_all_read(user.id)}


@router.post("/{notification_id}/read", response_model=NotificationResponse)
def mark_read(
    notification_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_sync_db),
):
    return NotificationService(db).mark_read(user.id, notification_id)
