"""
Session tokens and encryption of OAuth credentials at rest.
"""

import base64
import hashlib
from datetime import datetime, timedelta, timezone

import jwt
from cryptography.fernet import Fernet, InvalidToken

from src.core.config import settings


class TokenDecryptionError(Exception):
    """Raised when a stored token cannot be decrypted with the current key."""

    pass


class TokenCipher:
    """
    Symmetric encryption for provider tokens stored on Integration rows.

    Uses Fernet (AES-128-CBC + HMAC). When TOKEN_ENCRYPTION_KEY is not set,
    a key is derived from SECRET_KEY so development setups work unchanged.
    """

    def __init__(self, key: str | None = None):
        key = key or settings.token_encryption_key
        if not key:
            digest = hashlib.sha256(settings.secret_key.encode("utf-8")).digest()
            key = base64.urlsafe_b64encode(digest).decode("ascii")
        self.fernet = Fernet(key)

    def encrypt(self, value: str | None) -> str | None:
        if not value:
            return None
        return self.fernet.encrypt(value.encode("utf-8")).decode("ascii")

    def decrypt(self, value: str | None) -> str | None:
        if not value:
            return None
        try:
            return self.fernet.decrypt(value.encode("ascii")).decode("utf-8")
        except InvalidToken as e:
            raise TokenDecryptionError("Stored token could not be decrypted") from e


def create_access_token(user_id: str, expires_in: timedelta = timedelta(hours=12)) -> str:
    """
    Issue a session JWT for a user.

    Args:
        user_id: UUID of the user (stored in the "sub" claim)
        expires_in: Token lifetime

    Returns:
        Encoded JWT string
    """
    now = datetime.now(timezone.utc)
    payload = {"sub": str(user_id), "iat": now, "exp": now + expires_in}
    return jwt.encode(payload, settings.secret_key, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str) -> str:
    """
    Validate a session JWT and return its subject.

    Raises:
        jwt.PyJWTError: If the signature, expiry or claims are invalid
    """
    claims = jwt.decode(
        token,
        settings.secret_key,
        algorithms=[settings.jwt_algorithm],
        options={"require": ["sub", "exp"]},
    )
    return claims["sub"]
