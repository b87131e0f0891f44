"""
Google OAuth2 service for Gmail, Google Contacts and Google Calendar integrations.
Handles the authorization redirect, code exchange, encrypted token storage and disconnects.
"""

import json
import os
import secrets
import uuid
from datetime import timezone
from typing import Any

import jwt
import redis
import requests
from google.oauth2.credentials import Credentials
from google_auth_oauthlib.flow import Flow
from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.config import settings
from src.core.exceptions import AuthenticationError, NotFoundError, ValidationError
from src.core.logging import get_logger
from src.core.security import TokenCipher, TokenDecryptionError
from src.models import EmailSyncConfig, Integration, IntegrationLink, User
from src.models.enums import IntegrationType

logger = get_logger(__name__)

# Google may return the previously granted scopes as well (include_granted_scopes)
os.environ.setdefault("OAUTHLIB_RELAX_TOKEN_SCOPE", "1")

IDENTITY_SCOPES = [
    "openid",
    "https://www.googleapis.com/auth/userinfo.email",
]

PROVIDER_SCOPES: dict[IntegrationType, list[str]] = {
    IntegrationType.GMAIL: IDENTITY_SCOPES
    + ["https://www.googleapis.com/auth/gmail.readonly"],
    IntegrationType.GOOGLE_CONTACTS: IDENTITY_SCOPES
    + ["https://www.googleapis.com/auth/contacts.readonly"],
    IntegrationType.GOOGLE_CALENDAR: IDENTITY_SCOPES
    + ["https://www.googleapis.com/auth/calendar.readonly"],
}

INTEGRATION_NAMES = {
    IntegrationType.GMAIL: "Gmail",
    IntegrationType.GOOGLE_CONTACTS: "Google Contacts",
    IntegrationType.GOOGLE_CALENDAR: "Google Calendar",
}

AUTH_URI = "https://accounts.google.com/o/oauth2/auth"
TOKEN_URI = "https://oauth2.googleapis.com/token"
USERINFO_URL = "https://www.googleapis.com/oauth2/v2/userinfo"
REVOKE_URL = "https://oauth2.googleapis.com/revoke"

STATE_KEY_PREFIX = "oauth_state:"
STATE_TTL_SECONDS = 600


def build_flow(integration_type: IntegrationType) -> Flow:
    """Create an OAuth2 flow for one integration type."""
    redirect_uri = settings.oauth_redirect_uri(integration_type.slug)
    return Flow.from_client_config(
        client_config={
            "web": {
                "client_id": settings.google_client_id,
                "client_secret": settings.google_client_secret,
                "auth_uri": AUTH_URI,
                "token_uri": TOKEN_URI,
                "redirect_uris": [redirect_uri],
            }
        },
        scopes=PROVIDER_SCOPES[integration_type],
        redirect_uri=redirect_uri,
    )


class GoogleOAuthService:
    """OAuth2 flow and integration lifecycle for Google providers."""

    def __init__(
        self,
        db_session: AsyncSession,
        redis_client: redis.Redis | None = None,
        cipher: TokenCipher | None = None,
    ):
        """
        Args:
            db_session: SQLAlchemy async database session
            redis_client: Redis client for OAuth state (defaults to settings.redis_url)
            cipher: Token cipher (defaults to the configured key)
        """
        self.db = db_session
        self.redis = redis_client or redis.from_url(settings.redis_url, decode_responses=True)
        self.cipher = cipher or TokenCipher()

    def _validate_config(self) -> None:
        if not settings.google_oauth_configured:
            raise ValidationError("Google OAuth is not configured")

    def get_auth_url(self, user_id: uuid.UUID, integration_type: IntegrationType) -> str:
        """
        Build the Google consent URL and remember the state for the callback.

        Returns:
            Authorization URL to redirect the user to

        Raises:
            ValidationError: If Google OAuth is not configured
        """
        self._validate_config()
        logger.info(f"Generating OAuth URL for user_id={user_id}, type={integration_type.value}")

        state = secrets.token_urlsafe(32)
        self.redis.setex(
            f"{STATE_KEY_PREFIX}{state}",
            STATE_TTL_SECONDS,
            json.dumps({"user_id": str(user_id), "type": integration_type.value}),
        )

        auth_url, _ = build_flow(integration_type).authorization_url(
            access_type="offline",  # Request refresh token
            prompt="consent",  # Force consent screen to ensure refresh token
            state=state,
            include_granted_scopes="true",
        )
        return auth_url

    def _consume_state(self, state: str) -> dict[str, str] | None:
        """Read and delete the stored state so it cannot be replayed."""
        pipe = self.redis.pipeline()
        pipe.get(f"{STATE_KEY_PREFIX}{state}")
        pipe.delete(f"{STATE_KEY_PREFIX}{state}")
        raw, _ = pipe.execute()
        return json.loads(raw) if raw else None

    async def handle_callback(
        self, integration_type: IntegrationType, code: str, state: str
    ) -> dict[str, Any]:
        """
        Exchange the authorization code and store the integration.

        Returns:
            {"integration_id": str, "type": str, "account_email": str | None}

        Raises:
            ValidationError: Unknown, expired or mismatched state
            AuthenticationError: Code exchange failed
        """
        self._validate_config()
        logger.info(f"Processing OAuth2 callback for {integration_type.value}")

        stored = self._consume_state(state)
        if not stored:
            raise ValidationError("Invalid or expired OAuth state")
        if stored["type"] != integration_type.value:
            raise ValidationError("OAuth state does not match this integration")

        user_id = uuid.UUID(stored["user_id"])
        user = (await self.db.execute(select(User).where(User.id == user_id))).scalar_one_or_none()
        if not user:
            raise ValidationError(f"User not found: {user_id}")

        flow = build_flow(integration_type)
        try:
            flow.fetch_token(code=code)
        except Exception as e:
            logger.error(f"Token exchange failed for {integration_type.value}: {e}", exc_info=True)
            raise AuthenticationError("Failed to exchange authorization code") from e

        credentials = flow.credentials
        account_email = self._get_account_email(credentials)

        integration = await self._store_integration(
            user_id, integration_type, credentials, account_email
        )

        if integration_type == IntegrationType.GMAIL:
            await self._enable_gmail_sync(user_id)

        await self.db.commit()

        logger.info(
            f"OAuth2 callback processed - integration_id={integration.id}, "
            f"type={integration_type.value}, email={account_email}"
        )
        return {
            "integration_id": str(integration.id),
            "type": integration_type.value,
            "account_email": account_email,
        }

    def _get_account_email(self, credentials: Credentials) -> str | None:
        """
        Read the Google account email from the ID token, falling back to userinfo.
        The ID token signature is not verified.
        """
        if credentials.id_token:
            try:
                claims = jwt.decode(credentials.id_token, options={"verify_signature": False})
                if claims.get("email"):
                    return claims["email"]
            except jwt.PyJWTError as e:
                logger.warning(f"Could not decode id_token: {e}")

        try:
            response = requests.get(
                USERINFO_URL,
                headers={"Authorization": f"Bearer {credentials.token}"},
                timeout=10,
            )
            response.raise_for_status()
            return response.json().get("email")
        except requests.RequestException as e:
            logger.warning(f"Userinfo lookup failed: {e}")
            return None

    async def _get_integration(
        self, user_id: uuid.UUID, integration_type: IntegrationType
    ) -> Integration | None:
        result = await self.db.execute(
            select(Integration).where(
                Integration.user_id == user_id, Integration.type == integration_type.value
            )
        )
        return result.scalar_one_or_none()

    async def _store_integration(
        self,
        user_id: uuid.UUID,
        integration_type: IntegrationType,
        credentials: Credentials,
        account_email: str | None,
    ) -> Integration:
        """Create or update the integration with freshly encrypted tokens."""
        expires_at = (
            credentials.expiry.replace(tzinfo=timezone.utc) if credentials.expiry else None
        )
        scopes = list(credentials.scopes or PROVIDER_SCOPES[integration_type])

        integration = await self._get_integration(user_id, integration_type)
        if integration:
            integration.access_token = self.cipher.encrypt(credentials.token)
            # Google omits the refresh token on some re-consents; keep the old one
            if credentials.refresh_token:
                integration.refresh_token = self.cipher.encrypt(credentials.refresh_token)
            integration.expires_at = expires_at
            integration.scopes = scopes
            integration.account_email = account_email or integration.account_email
            integration.is_active = True
        else:
            integration = Integration(
                id=uuid.uuid4(),
                user_id=user_id,
                type=integration_type.value,
                name=INTEGRATION_NAMES[integration_type],
                account_email=account_email,
                access_token=self.cipher.encrypt(credentials.token),
                refresh_token=self.cipher.encrypt(credentials.refresh_token),
                expires_at=expires_at,
                scopes=scopes,
                meta={},
                is_active=True,
            )
            self.db.add(integration)

        await self.db.flush()
        return integration

    async def _enable_gmail_sync(self, user_id: uuid.UUID) -> None:
        result = await self.db.execute(
            select(EmailSyncConfig).where(EmailSyncConfig.user_id == user_id)
        )
        config = result.scalar_one_or_none()
        if config:
            config.gmail_enabled = True
        else:
            self.db.add(
                EmailSyncConfig(
                    user_id=user_id,
                    gmail_enabled=True,
                    sync_enabled=True,
                    privacy_mode=True,
                    excluded_emails=[],
                    excluded_domains=[],
                    sync_history_days=settings.gmail_sync_history_days,
                )
            )

    async def get_status(
        self, user_id: uuid.UUID, integration_type: IntegrationType
    ) -> dict[str, Any]:
        integration = await self._get_integration(user_id, integration_type)
        if not integration:
            return {
                "is_connected": False,
                "integration_id": None,
                "account_email": None,
                "connected_at": None,
                "last_sync_at": None,
                "is_active": False,
                "synced_contacts": 0,
            }

        synced_contacts = (
            await self.db.execute(
                select(func.count(IntegrationLink.id)).where(
                    IntegrationLink.integration_id == integration.id
                )
            )
        ).scalar() or 0

        return {
            "is_connected": True,
            "integration_id": str(integration.id),
            "account_email": integration.account_email,
            "connected_at": integration.created_at.isoformat() if integration.created_at else None,
            "last_sync_at": (integration.meta or {}).get("last_sync_at"),
            "is_active": integration.is_active,
            "synced_contacts": synced_contacts,
        }

    def _revoke_token(self, integration: Integration) -> bool:
        """Best-effort revocation at Google. Returns whether Google accepted it."""
        try:
            token = self.cipher.decrypt(integration.refresh_token) or self.cipher.decrypt(
                integration.access_token
            )
        except TokenDecryptionError as e:
            logger.warning(f"Cannot revoke integration {integration.id}: {e}")
            return False

        if not token:
            return False

        try:
            response = requests.post(
                REVOKE_URL,
                params={"token": token},
                headers={"Content-Type": "application/x-www-form-urlencoded"},
                timeout=10,
            )
            return response.status_code == 200
        except requests.RequestException as e:
            logger.warning(f"Token revocation failed for integration {integration.id}: {e}")
            return False

    async def disconnect(
        self, user_id: uuid.UUID, integration_type: IntegrationType
    ) -> dict[str, Any]:
        """
        Revoke tokens, remove links and delete the integration.
        Contacts created by the integration are kept.

        Raises:
            NotFoundError: If the user has no such integration
        """
        integration = await self._get_integration(user_id, integration_type)
        if not integration:
            raise NotFoundError(f"{INTEGRATION_NAMES[integration_type]} integration not found")

        tokens_revoked = self._revoke_token(integration)

        links_result = await self.db.execute(
            delete(IntegrationLink).where(IntegrationLink.integration_id == integration.id)
        )
        links_deleted = links_result.rowcount or 0

        await self.db.delete(integration)

        if integration_type == IntegrationType.GMAIL:
            await self.db.execute(
                update(EmailSyncConfig)
                .where(EmailSyncConfig.user_id == user_id)
                .values(gmail_enabled=False)
            )

        await self.db.commit()

        logger.info(
            f"Disconnected {integration_type.value} for user {user_id} "
            f"(revoked={tokens_revoked}, links_deleted={links_deleted})"
        )

        result: dict[str, Any] = {
            "success": True,
            "tokens_revoked": tokens_revoked,
            "links_deleted": links_deleted,
            "contacts_preserved": True,
            "message": f"{INTEGRATION_NAMES[integration_type]} disconnected. Your contacts were kept.",
        }
        if not tokens_revoked:
            result["warning"] = (
                "Tokens could not be revoked at Google. "
                "You can remove access from your Google account settings."
            )
        return result

    def __repr__(self) -> str:
        return f"<GoogleOAuthService(providers={len(PROVIDER_SCOPES)})>"
