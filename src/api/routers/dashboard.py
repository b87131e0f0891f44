"""
Dashboard routes.
"""

from typing import Any

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from src.api.deps import get_current_user
from src.api.routers.contacts import InsightResponse
from src.api.routers.reminders import DueReminderResponse
from src.core.database import get_sync_db
from src.models import User
from src.services.dashboard import DashboardService
from src.services.insights import InsightService

router = APIRouter()


@router.get("/stats")
def dashboard_stats(
    user: User = Depends(get_current_user),
    db: Session = Depends(get_sync_db),
) -> dict[str, Any]:
    return DashboardService(db).stats(user.id)


@router.get("/follow-ups", response_model=list[DueReminderResponse])
def follow_ups(
    limit: int = Query(default=5, ge=1, le=50),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_sync_db),
) -> list[dict[str, Any]]:
    """Top overdue or due-today reminders."""
    return DashboardService(db).follow_ups(user.id, limit=limit)


@router.get("/insights", response_model=list[InsightResponse])
def recent_insights(
    limit: int = Query(default=20, ge=1, le=100),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_sync_db),
):
    return InsightService(db).list_for_user(user.id, limit=limit)
