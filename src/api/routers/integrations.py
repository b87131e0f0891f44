"""
Integration routes: Google OAuth connect/callback, status, disconnect,
sync triggers and background job status.
"""

import uuid
from datetime import datetime
from typing import Any
from urllib.parse import urlencode

from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import RedirectResponse
from pydantic import BaseModel, ConfigDict
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Session

from src.api.deps import get_current_user
from src.core.config import settings
from src.core.database import get_async_db, get_sync_db
from src.core.exceptions import CRMError, ValidationError
from src.core.logging import get_logger, safe_repr
from src.integrations.google.oauth import GoogleOAuthService
from src.models import User
from src.models.enums import IntegrationType, JobType
from src.services.calendar.sync import CalendarSyncService
from src.services.gmail.sync import GmailSyncService
from src.services.google_contacts.importer import GoogleContactsService, ImportOptions
from src.services.jobs import JobService, job_status_payload

logger = get_logger(__name__)

router = APIRouter()


def get_oauth_service(db: AsyncSession = Depends(get_async_db)) -> GoogleOAuthService:
    return GoogleOAuthService(db)


def parse_provider(provider: str) -> IntegrationType:
    try:
        return IntegrationType.from_slug(provider)
    except ValueError as e:
        raise ValidationError(str(e)) from e


# Request/Response models
class AuthUrlResponse(BaseModel):
    auth_url: str
    provider: str


class IntegrationStatusResponse(BaseModel):
    is_connected: bool
    integration_id: str | None
    account_email: str | None
    connected_at: str | None
    last_sync_at: str | None
    is_active: bool
    synced_contacts: int


class DisconnectResponse(BaseModel):
    success: bool
    tokens_revoked: bool
    links_deleted: int
    contacts_preserved: bool
    message: str
    warning: str | None = None


class GmailConfigResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    gmail_enabled: bool
    sync_enabled: bool
    privacy_mode: bool
    excluded_emails: list[str]
    excluded_domains: list[str]
    sync_history_days: int
    last_gmail_sync: datetime | None


class GmailConfigUpdateRequest(BaseModel):
    gmail_enabled: bool | None = None
    sync_enabled: bool | None = None
    privacy_mode: bool | None = None
    excluded_emails: list[str] | None = None
    excluded_domains: list[str] | None = None
    sync_history_days: int | None = None


class GmailSyncRequest(BaseModel):
    full: bool = False


class QueuedJobResponse(BaseModel):
    job_id: str
    status: str
    already_queued: bool = False


class ImportOptionsRequest(BaseModel):
    selected_contact_ids: list[str] | None = None
    skip_duplicates: bool = True
    update_existing: bool = False
    tag_mapping: dict[str, str] = {}
    exclude_labels: list[str] = []
    preserve_original_tags: bool = True

    def to_options(self) -> ImportOptions:
        return ImportOptions.from_dict(self.model_dump())


class ImportResultResponse(BaseModel):
    imported: int
    updated: int
    skipped: int
    failed: int
    errors: list[dict[str, Any]]
    duration_ms: int


class JobStatusResponse(BaseModel):
    job_id: str
    type: str
    status: str
    progress: int
    total_count: int
    processed_count: int
    imported_count: int
    skipped_count: int
    failed_count: int
    errors: list[dict[str, Any]]
    metadata: dict[str, Any]
    error_message: str | None
    created_at: str | None
    started_at: str | None
    completed_at: str | None
    duration_seconds: int | None


# ----------------------------------------------------------------------
# Background jobs
# ----------------------------------------------------------------------


@router.get("/jobs", response_model=list[JobStatusResponse])
def list_jobs(
    limit: int = Query(default=20, ge=1, le=100),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_sync_db),
) -> list[dict[str, Any]]:
    return [job_status_payload(job) for job in JobService(db).list_recent(user.id, limit=limit)]


@router.get("/jobs/{job_id}", response_model=JobStatusResponse)
def get_job_status(
    job_id: uuid.UUID,
    type: JobType | None = None,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_sync_db),
) -> dict[str, Any]:
    return JobService(db).get_status(user.id, job_id, expected_type=type)


# ----------------------------------------------------------------------
# Gmail
# ----------------------------------------------------------------------


@router.get("/gmail/config", response_model=GmailConfigResponse)
def get_gmail_config(
    user: User = Depends(get_current_user),
    db: Session = Depends(get_sync_db),
):
    return GmailSyncService(db).get_config(user.id)


@router.patch("/gmail/config", response_model=GmailConfigResponse)
def update_gmail_config(
    request: GmailConfigUpdateRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_sync_db),
):
    return GmailSyncService(db).update_config(user.id, request.model_dump(exclude_unset=True))


@router.post("/gmail/sync", response_model=QueuedJobResponse, status_code=status.HTTP_202_ACCEPTED)
def start_gmail_sync(
    request: GmailSyncRequest | None = None,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_sync_db),
) -> dict[str, Any]:
    full = request.full if request else False
    return GmailSyncService(db).queue_sync(user.id, full=full)


# ----------------------------------------------------------------------
# Google Contacts
# ----------------------------------------------------------------------


@router.get("/google-contacts/preview")
def preview_google_contacts(
    user: User = Depends(get_current_user),
    db: Session = Depends(get_sync_db),
) -> dict[str, Any]:
    return GoogleContactsService(db).preview(user.id)


@router.post("/google-contacts/import", response_model=ImportResultResponse)
def import_google_contacts(
    request: ImportOptionsRequest | None = None,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_sync_db),
) -> dict[str, Any]:
    options = request.to_options() if request else ImportOptions()
    return GoogleContactsService(db).import_contacts(user.id, options)


@router.post(
    "/google-contacts/import-job",
    response_model=QueuedJobResponse,
    status_code=status.HTTP_202_ACCEPTED,
)
def queue_google_contacts_import(
    request: ImportOptionsRequest | None = None,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_sync_db),
) -> dict[str, Any]:
    options = request.to_options() if request else ImportOptions()
    job = GoogleContactsService(db).queue_import(user.id, options)
    return {"job_id": str(job.id), "status": job.status}


@router.post("/google-contacts/sync")
def sync_google_contacts(
    user: User = Depends(get_current_user),
    db: Session = Depends(get_sync_db),
) -> dict[str, Any]:
    return GoogleContactsService(db).sync_incremental(user.id)


# ----------------------------------------------------------------------
# Google Calendar
# ----------------------------------------------------------------------


@router.post(
    "/google-calendar/sync",
    response_model=QueuedJobResponse,
    status_code=status.HTTP_202_ACCEPTED,
)
def start_calendar_sync(
    user: User = Depends(get_current_user),
    db: Session = Depends(get_sync_db),
) -> dict[str, Any]:
    job = CalendarSyncService(db).queue_sync(user.id)
    return {"job_id": str(job.id), "status": job.status}


# ----------------------------------------------------------------------
# OAuth lifecycle (per provider)
# ----------------------------------------------------------------------


@router.get("/{provider}/connect", response_model=AuthUrlResponse)
def connect(
    provider: str,
    user: User = Depends(get_current_user),
    oauth: GoogleOAuthService = Depends(get_oauth_service),
) -> AuthUrlResponse:
    """Return the Google consent URL for the provider."""
    integration_type = parse_provider(provider)
    auth_url = oauth.get_auth_url(user.id, integration_type)
    return AuthUrlResponse(auth_url=auth_url, provider=integration_type.slug)


@router.get("/{provider}/callback")
async def oauth_callback(
    provider: str,
    code: str | None = None,
    state: str | None = None,
    error: str | None = None,
    oauth: GoogleOAuthService = Depends(get_oauth_service),
) -> RedirectResponse:
    """
    OAuth redirect target. Not authenticated: the state identifies the user.
    Always redirects back to the frontend settings page.
    """
    params: dict[str, str] = {"provider": provider}

    if error or not code or not state:
        received = {"code": code, "state": state, "error": error}
        logger.warning(
            f"OAuth callback for {provider} incomplete: {safe_repr(received, redact_keys=['state'])}"
        )
        params.update(status="error", message=error or "Missing authorization code")
    else:
        try:
            result = await oauth.handle_callback(parse_provider(provider), code, state)
            params.update(status="success")
            if result.get("account_email"):
                params["account"] = result["account_email"]
        except CRMError as e:
            logger.warning(f"OAuth callback for {provider} failed: {e.message}")
            params.update(status="error", message=e.message)

    return RedirectResponse(
        url=f"{settings.frontend_url}/settings/integrations?{urlencode(params)}",
        status_code=status.HTTP_302_FOUND,
    )


@router.get("/{provider}/status", response_model=IntegrationStatusResponse)
async def integration_status(
    provider: str,
    user: User = Depends(get_current_user),
    oauth: GoogleOAuthService = Depends(get_oauth_service),
) -> dict[str, Any]:
    return await oauth.get_status(user.id, parse_provider(provider))


@router.delete("/{provider}", response_model=DisconnectResponse)
async def disconnect(
    provider: str,
    user: User = Depends(get_current_user),
    oauth: GoogleOAuthService = Depends(get_oauth_service),
) -> dict[str, Any]:
    return await oauth.disconnect(user.id, parse_provider(provider))
