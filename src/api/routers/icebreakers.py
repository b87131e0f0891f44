"""
Icebreaker routes: AI-generated outreach messages.
"""

import uuid
from datetime import datetime
from typing import Any, Literal

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.orm import Session

from src.api.deps import get_current_user
from src.core.database import get_sync_db
from src.models import User
from src.services.icebreaker.service import (
    DEFAULT_WORD_LIMIT,
    MAX_WORD_LIMIT,
    MIN_WORD_LIMIT,
    IcebreakerService,
)

router = APIRouter()


# Request/Response models
class GenerateRequest(BaseModel):
    contact_id: uuid.UUID
    channel: Literal["email", "linkedin", "whatsapp"]
    tone: Literal["professional", "friendly", "casual"]
    trigger_event: str | None = Field(default=None, max_length=1000)
    word_limit: int = Field(default=DEFAULT_WORD_LIMIT, ge=MIN_WORD_LIMIT, le=MAX_WORD_LIMIT)


class RegenerateRequest(BaseModel):
    tone: Literal["professional", "friendly", "casual"] | None = None
    trigger_event: str | None = Field(default=None, max_length=1000)


class EditRequest(BaseModel):
    edited_content: str = Field(..., min_length=1)


class SelectRequest(BaseModel):
    variation_index: int


class FeedbackRequest(BaseModel):
    feedback: Literal["helpful", "not_helpful", "needs_improvement"]


class Variation(BaseModel):
    subject: str | None = None
    body: str
    talking_points: list[str] = []
    reasoning: str = ""


class IcebreakerResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    contact_id: uuid.UUID
    channel: str
    tone: str
    trigger_event: str | None
    variations: list[Variation]
    selected: dict[str, Any] | None
    edited: bool
    edited_content: str | None
    feedback: str | None
    sent: bool
    sent_at: datetime | None
    model_version: str
    prompt_version: str
    tokens_used: int
    generation_time_ms: int
    created_at: datetime


class IcebreakerHistoryItem(BaseModel):
    icebreaker: IcebreakerResponse
    contact_name: str


@router.post("", response_model=IcebreakerResponse, status_code=status.HTTP_201_CREATED)
def generate_icebreaker(
    request: GenerateRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_sync_db),
):
    return IcebreakerService(db).generate(
        user.id,
        request.contact_id,
        channel=request.channel,
        tone=request.tone,
        trigger_event=request.trigger_event,
        word_limit=request.word_limit,
    )


@router.get("/history", response_model=list[IcebreakerHistoryItem])
def icebreaker_history(
    user: User = Depends(get_current_user),
    db: Session = Depends(get_sync_db),
) -> list[dict[str, Any]]:
    return IcebreakerService(db).history(user.id)


@router.post(
    "/{icebreaker_id}/regenerate",
    response_model=IcebreakerResponse,
    status_code=status.HTTP_201_CREATED,
)
def regenerate_icebreaker(
    icebreaker_id: uuid.UUID,
    request: RegenerateRequest | None = None,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_sync_db),
):
    request = request or RegenerateRequest()
    return IcebreakerService(db).regenerate(
        user.id, icebreaker_id, tone=request.tone, trigger_event=request.trigger_event
    )


@router.patch("/{icebreaker_id}", response_model=IcebreakerResponse)
def edit_icebreaker(
    icebreaker_id: uuid.UUID,
    request: EditRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_sync_db),
):
    return IcebreakerService(db).edit(user.id, icebreaker_id, request.edited_content)


@router.post("/{icebreaker_id}/select", response_model=IcebreakerResponse)
def select_variation(
    icebreaker_id: uuid.UUID,
    request: SelectRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_sync_db),
):
    return IcebreakerService(db).select(user.id, icebreaker_id, request.variation_index)


@router.post("/{icebreaker_id}/feedback", response_model=IcebreakerResponse)
def icebreaker_feedback(
    icebreaker_id: uuid.UUID,
    request: FeedbackRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_sync_db),
):
    return IcebreakerService(db).feedback(user.id, icebreaker_id, request.feedback)


@router.post("/{icebreaker_id}/sent", response_model=IcebreakerResponse)
def mark_icebreaker_sent(
    icebreaker_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_sync_db),
):
    return IcebreakerService(db).mark_sent(user.id, icebreaker_id)
