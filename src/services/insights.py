"""
Read access to stored AI insights.
"""

import uuid

from sqlalchemy import select
from sqlalchemy.orm import Session

from src.models import AIInsight
from src.services.contacts.service import get_owned_contact


class InsightService:
    def __init__(self, db: Session):
        self.db = db

    def list_for_contact(
        self, user_id: uuid.UUID, contact_id: uuid.UUID, limit: int = 50
    ) -> list[AIInsight]:
        get_owned_contact(self.db, user_id, contact_id)
        return list(
            self.db.execute(
                select(AIInsight)
                .where(AIInsight.user_id == user_id, AIInsight.contact_id == contact_id)
                .order_by(AIInsight.created_at.desc())
                .limit(limit)
            ).scalars()
        )

    def list_for_user(self, user_id: uuid.UUID, limit: int = 50) -> list[AIInsight]:
        return list(
            self.db.execute(
                select(AIInsight)
                .where(AIInsight.user_id == user_id)
                .order_by(AIInsight.created_at.desc())
                .limit(limit)
            ).scalars()
        )
