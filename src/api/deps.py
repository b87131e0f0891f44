"""
Shared FastAPI dependencies.
"""

import uuid

import jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from src.core.database import get_sync_db
from src.core.logging import get_logger
from src.core.security import decode_access_token
from src.models import User

logger = get_logger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    db: Session = Depends(get_sync_db),
) -> User:
    """
    Resolve the bearer JWT to a user.

    Raises:
        HTTPException(401): Missing header, invalid/expired token or unknown user
    """
    unauthorized = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Not authenticated",
        headers={"WWW-Authenticate": "Bearer"},
    )
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise unauthorized

    try:
        user_id = uuid.UUID(decode_access_token(credentials.credentials))
    except (jwt.PyJWTError, ValueError) as e:
        logger.warning(f"Rejected session token: {e}")
        raise unauthorized from e

    user = db.get(User, user_id)
    if user is None:
        raise unauthorized
    return user
