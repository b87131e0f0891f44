"""
Unit tests for stored-token credentials and refresh.
"""

import uuid
from datetime import datetime, timedelta, timezone
from unittest.mock import patch

import pytest
from cryptography.fernet import Fernet
from google.auth.exceptions import RefreshError
from google.oauth2.credentials import Credentials

from src.core.exceptions import AuthenticationError
from src.core.security import TokenCipher
from src.integrations.google.credentials import GoogleCredentialsProvider
from src.models import Integration

MODULE = "src.integrations.google.credentials"


@pytest.fixture
def cipher():
    return TokenCipher(Fernet.generate_key().decode())


@pytest.fixture
def make_integration(cipher, user_id):
    def _make(expires_in: timedelta | None = timedelta(hours=1), refresh_token: str | None = "refresh-1"):
        return Integration(
            id=uuid.uuid4(),
            user_id=user_id,
            type="GMAIL",
            name="Gmail",
            access_token=cipher.encrypt("access-1"),
            refresh_token=cipher.encrypt(refresh_token),
            expires_at=datetime.now(timezone.utc) + expires_in if expires_in is not None else None,
            scopes=["https://www.googleapis.com/auth/gmail.readonly"],
        )

    return _make


def fake_refresh(credentials, request):
    credentials.token = "access-2"
    credentials.expiry = datetime(2099, 1, 1, 12, 0)


class TestGoogleCredentialsProvider:
    """Test decryption and refresh of stored tokens."""

    def test_fresh_token_used_as_is(self, mock_db, cipher, make_integration):
        integration = make_integration()

        with patch.object(Credentials, "refresh", autospec=True) as refresh:
            credentials = GoogleCredentialsProvider(mock_db, cipher).get_credentials(integration)

        assert credentials.token == "access-1"
        assert credentials.refresh_token == "refresh-1"
        refresh.assert_not_called()
        mock_db.commit.assert_not_called()

    def test_refresh_within_five_minutes(self, mock_db, cipher, make_integration):
        """Test a token four minutes from expiry is refreshed and persisted encrypted."""
        integration = make_integration(expires_in=timedelta(minutes=4))

        with patch(f"{MODULE}.Request"), patch.object(
            Credentials, "refresh", autospec=True, side_effect=fake_refresh
        ):
            credentials = GoogleCredentialsProvider(mock_db, cipher).get_credentials(integration)

        assert credentials.token == "access-2"
        assert cipher.decrypt(integration.access_token) == "access-2"
        assert integration.expires_at == datetime(2099, 1, 1, 12, 0, tzinfo=timezone.utc)
        mock_db.commit.assert_called_once()

    def test_unknown_expiry_refreshes(self, mock_db, cipher, make_integration):
        integration = make_integration(expires_in=None)

        assert GoogleCredentialsProvider(mock_db, cipher).needs_refresh(integration)

    def test_missing_refresh_token(self, mock_db, cipher, make_integration):
        integration = make_integration(refresh_token=None)

        with pytest.raises(AuthenticationError, match="No refresh token"):
            GoogleCredentialsProvider(mock_db, cipher).get_credentials(integration)

    def test_failed_refresh(self, mock_db, cipher, make_integration):
        integration = make_integration(expires_in=timedelta(minutes=-10))

        with patch(f"{MODULE}.Request"), patch.object(
            Credentials, "refresh", autospec=True, side_effect=RefreshError("invalid_grant")
        ):
            with pytest.raises(AuthenticationError, match="expired"):
                GoogleCredentialsProvider(mock_db, cipher).get_credentials(integration)

    def test_unreadable_tokens(self, mock_db, make_integration):
        integration = make_integration()
        other_cipher = TokenCipher(Fernet.generate_key().decode())

        with pytest.raises(AuthenticationError, match="unreadable"):
            GoogleCredentialsProvider(mock_db, other_cipher).get_credentials(integration)
