"""
In-app notifications.
"""

import uuid
from typing import Any

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from src.core.exceptions import NotFoundError
from src.core.logging import get_logger
from src.models import Notification
from src.models.enums import NotificationType

logger = get_logger(__name__)


class NotificationService:
    def __init__(self, db: Session):
        self.db = db

    def create(
        self,
        user_id: uuid.UUID,
        type: NotificationType,
        title: str,
        message: str,
        meta: dict[str, Any] | None = None,
        commit: bool = True,
    ) -> Notification:
        """Create a notification. Used by background jobs."""
        notification = Notification(
            user_id=user_id,
            type=type.value,
            title=title,
            message=message,
            meta=meta or {},
            is_read=False,
        )
        self.db.add(notification)
        if commit:
            self.db.commit()
        logger.debug(f"Created {type.value} notification for user {user_id}: {title}")
        return notification

    def list(
        self, user_id: uuid.UUID, page: int = 1, limit: int = 20, unread_only: bool = False
    ) -> tuple[list[Notification], int]:
        """Newest first. Returns (items, total)."""
        conditions = [Notification.user_id == user_id]
        if unread_only:
            conditions.append(Notification.is_read.is_(False))

        total = self.db.execute(select(func.count(Notification.id)).where(*conditions)).scalar() or 0
        items = self.db.execute(
            select(Notification)
            .where(*conditions)
            .order_by(Notification.created_at.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        ).scalars()
        return list(items), total

    def unread_count(self, user_id: uuid.UUID) -> int:
        return (
            self.db.execute(
                select(func.count(Notification.id)).where(
                    Notification.user_id == user_id, Notification.is_read.is_(False)
                )
            ).scalar()
            or 0
        )

    def mark_read(self, user_id: uuid.UUID, notification_id: uuid.UUID) -> Notification:
        notification = self.db.get(Notification, notification_id)
        if notification is None or notification.user_id != user_id:
            raise NotFoundError("Notification not found")
        notification.is_read = True
        self.db.commit()
        return notification

    def mark_all_read(self, user_id: uuid.UUID) -> int:
        result = self.db.execute(
            update(Notification)
            .where(Notification.user_id == user_id, Notification.is_read.is_(False))
            .values(is_read=True)
        )
        self.db.commit()
        return result.rowcount or 0
