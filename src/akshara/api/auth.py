"""
Bearer-token authentication for API endpoints.

Tokens are HS256 JWTs whose subject is the user id. Routes that need a caller
declare `user: User = Depends(get_current_user)`; anything else about the
request (ownership, permissions) is checked by the repositories.
"""

import logging
import uuid
from datetime import UTC, datetime, timedelta
from typing import Optional

import jwt
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from akshara.config import settings
from akshara.db.connection import get_db
from akshara.db.repositories import UserRepository
from akshara.exceptions import AuthenticationError
from akshara.models.db import User

logger = logging.getLogger(__name__)

# auto_error=False so a missing header goes through our own 401 envelope
bearer_scheme = HTTPBearer(auto_error=False)


def create_access_token(
    user_id: uuid.UUID, expires_delta: Optional[timedelta] = None
) -> str:
    """
    Issue a signed token for a user.

    Args:
        user_id: Subject of the token
        expires_delta: Lifetime, defaults to `jwt_expire_days`

    Returns:
        Encoded JWT
    """
    now = datetime.now(UTC)
    expires = now + (expires_delta or timedelta(days=settings.jwt_expire_days))
    payload = {"sub": str(user_id), "iat": now, "exp": expires}
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str) -> uuid.UUID:
    """
    Verify a token and return the user id it was issued for.

    Raises:
        AuthenticationError: If the token is malformed, tampered with or expired
    """
    try:
        payload = jwt.decode(
            token, settings.jwt_secret, algorithms=[settings.jwt_algorithm]
        )
        return uuid.UUID(payload["sub"])
    except jwt.ExpiredSignatureError:
        raise AuthenticationError("Token has expired")
    except (jwt.InvalidTokenError, KeyError, ValueError):
        raise AuthenticationError("Invalid token")


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    session: Session = Depends(get_db),
) -> User:
    """
    FastAPI dependency resolving the bearer token to an active user.

    Raises:
        AuthenticationError: If the token is missing or invalid, or the user
            no longer exists or has been deactivated
    """
    if credentials is None or not credentials.credentials:
        raise AuthenticationError("Authentication required")

    user_id = decode_access_token(credentials.credentials)
    user = UserRepository(session).get(user_id)
    if user is None or not user.is_active:
        logger.debug(f"Rejected token for unknown or inactive user {user_id}")
        raise AuthenticationError("Invalid token")
    return user
