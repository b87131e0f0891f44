"""
Builds refreshed Google credentials from a stored Integration (sync session, used by workers).
"""

from datetime import datetime, timedelta, timezone

from google.auth.exceptions import RefreshError
from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from sqlalchemy.orm import Session

from src.core.config import settings
from src.core.exceptions import AuthenticationError
from src.core.logging import get_logger
from src.core.security import TokenCipher, TokenDecryptionError
from src.integrations.google.oauth import TOKEN_URI
from src.models import Integration

logger = get_logger(__name__)

REFRESH_MARGIN = timedelta(minutes=5)


class GoogleCredentialsProvider:
    """Decrypts stored tokens and keeps them fresh."""

    def __init__(self, db: Session, cipher: TokenCipher | None = None):
        self.db = db
        self.cipher = cipher or TokenCipher()

    def needs_refresh(self, integration: Integration, now: datetime | None = None) -> bool:
        if integration.expires_at is None:
            return True
        now = now or datetime.now(timezone.utc)
        return integration.expires_at - now <= REFRESH_MARGIN

    def get_credentials(self, integration: Integration) -> Credentials:
        """
        Return usable credentials for an integration.

        Tokens within five minutes of expiry are refreshed and persisted.

        Raises:
            AuthenticationError: Missing refresh token, undecryptable tokens or failed refresh
        """
        try:
            access_token = self.cipher.decrypt(integration.access_token)
            refresh_token = self.cipher.decrypt(integration.refresh_token)
        except TokenDecryptionError as e:
            raise AuthenticationError(
                f"Stored credentials for {integration.name} are unreadable. Please reconnect"
            ) from e

        if not refresh_token:
            raise AuthenticationError(f"No refresh token for {integration.name}. Please reconnect")

        credentials = Credentials(
            token=access_token,
            refresh_token=refresh_token,
            token_uri=TOKEN_URI,
            client_id=settings.google_client_id,
            client_secret=settings.google_client_secret,
            scopes=integration.scopes or None,
        )

        if self.needs_refresh(integration):
            logger.info(f"Refreshing token for integration {integration.id}")
            try:
                credentials.refresh(Request())
            except RefreshError as e:
                logger.error(f"Token refresh failed for integration {integration.id}: {e}")
                raise AuthenticationError(
                    f"{integration.name} authorization expired. Please reconnect"
                ) from e

            integration.access_token = self.cipher.encrypt(credentials.token)
            if credentials.expiry:
                integration.expires_at = credentials.expiry.replace(tzinfo=timezone.utc)
            self.db.commit()

        return credentials
