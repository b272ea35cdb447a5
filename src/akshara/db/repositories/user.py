"""
User repository.
"""

import logging
import uuid
from typing import Optional

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from akshara.db.repositories.base import BaseRepository
from akshara.exceptions import AuthenticationError, NotFoundError, ValidationError
from akshara.models.db import StatsKind, User

logger = logging.getLogger(__name__)

USERNAME_MIN_LENGTH = 3
USERNAME_MAX_LENGTH = 30
PASSWORD_MIN_LENGTH = 6

INVALID_CREDENTIALS = "Invalid login credentials"


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


def _validate_username(username: str) -> str:
    username = (username or "").strip()
    if not USERNAME_MIN_LENGTH <= len(username) <= USERNAME_MAX_LENGTH:
        raise ValidationError(
            f"Username must be between {USERNAME_MIN_LENGTH} and "
            f"{USERNAME_MAX_LENGTH} characters"
        )
    return username


def _validate_email(email: str) -> str:
    email = normalize_email(email)
    if "@" not in email or len(email) > 255:
        raise ValidationError("A valid email is required")
    return email


def _validate_password(password: str, label: str = "Password") -> None:
    if not password or len(password) < PASSWORD_MIN_LENGTH:
        raise ValidationError(
            f"{label} must be at least {PASSWORD_MIN_LENGTH} characters"
        )


class UserRepository(BaseRepository[User]):
    """Repository for User model."""

    def __init__(self, session: Session):
        super().__init__(User, session)

    def get_by_email(self, email: str) -> Optional[User]:
        """
        Get user by email (case-insensitive).

        Args:
            email: Email address

        Returns:
            User instance or None
        """
        return (
            self.session.query(User)
            .filter(User.email == normalize_email(email))
            .first()
        )

    def get_by_username(self, username: str) -> Optional[User]:
        """
        Get user by exact username.

        Args:
            username: Username

        Returns:
            User instance or None
        """
        return (
            self.session.query(User)
            .filter(User.username == (username or "").strip())
            .first()
        )

    def get_or_404(self, id: uuid.UUID) -> User:
        user = self.get(id)
        if user is None:
            raise NotFoundError("User not found")
        return user

    def exists(self, email: str, username: str) -> bool:
        """Check whether either the email or the username is already taken."""
        return (
            self.session.query(User.id)
            .filter(
                or_(
                    User.email == normalize_email(email),
                    User.username == (username or "").strip(),
                )
            )
            .first()
            is not None
        )

    def create_user(self, username: str, email: str, password: str) -> User:
        """
        Register a new account.

        Args:
            username: 3-30 characters, unique
            email: Unique, stored lowercased
            password: Plaintext, at least 6 characters; only its hash is stored

        Returns:
            Created user

        Raises:
            ValidationError: On malformed input or when the email or username exists
        """
        if not username or not email or not password:
            raise ValidationError("All fields are required")
        username = _validate_username(username)
        email = _validate_email(email)
        _validate_password(password)

        if self.exists(email, username):
            raise ValidationError("User already exists")

        user = User(username=username, email=email)
        user.set_password(password)
        # A concurrent registration can still win between the check and the insert
        try:
            with self.session.begin_nested():
                self.session.add(user)
        except IntegrityError as e:
            raise ValidationError("User already exists") from e

        logger.info(f"Registered user {user.id} ({username})")
        return user

    def find_by_credentials(self, email: str, password: str) -> User:
        """
        Locate an account by email and verify its password.

        Unknown email, wrong password and deactivated accounts all raise the
        same error so callers cannot tell them apart.

        Raises:
            AuthenticationError: If the credentials do not match an active account
        """
        user = self.get_by_email(email)
        if user is None:
            raise AuthenticationError(INVALID_CREDENTIALS)
        if not user.check_password(password):
            raise AuthenticationError(INVALID_CREDENTIALS)
        if not user.is_active:
            raise AuthenticationError(INVALID_CREDENTIALS)
        return user

    def update_stats(self, user: User, kind: str | StatsKind, increment: int = 1) -> User:
        """Increment one usage counter and flush. Unknown kinds are ignored."""
        user.update_stats(kind, increment)
        self.session.flush()
        return user

    def touch(self, user: User) -> User:
        user.touch()
        self.session.flush()
        return user

    def update_profile(
        self,
        user: User,
        username: Optional[str] = None,
        email: Optional[str] = None,
        avatar: Optional[str] = None,
    ) -> User:
        """
        Change username, email or avatar.

        Raises:
            ValidationError: If the new username or email belongs to someone else
        """
        if username and username.strip() != user.username:
            username = _validate_username(username)
            if self.get_by_username(username) is not None:
                raise ValidationError("Username already taken")
            user.username = username

        if email and normalize_email(email) != user.email:
            email = _validate_email(email)
            if self.get_by_email(email) is not None:
                raise ValidationError("Email already taken")
            user.email = email

        if avatar:
            user.avatar = avatar

        self.session.flush()
        return user

    def update_preferences(self, user: User, **changes) -> User:
        """Merge preference changes; None values are left untouched."""
        user.update_preferences(
            **{key: value for key, value in changes.items() if value is not None}
        )
        self.session.flush()
        return user

    def change_password(
        self, user: User, current_password: str, new_password: str
    ) -> User:
        """
        Replace the password after checking the current one.

        Raises:
            ValidationError: If a field is missing, too short or the current
                password does not match
        """
        if not current_password or not new_password:
            raise ValidationError("Current and new password are required")
        _validate_password(new_password, label="New password")
        if not user.check_password(current_password):
            raise ValidationError("Current password is incorrect")

        user.set_password(new_password)
        self.session.flush()
        logger.info(f"Password changed for user {user.id}")
        return user

    def deactivate(self, user: User) -> User:
        """Soft-delete the account. The row is kept."""
        user.deactivate()
        self.session.flush()
        logger.info(f"Deactivated user {user.id}")
        return user
