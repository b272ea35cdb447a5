"""
User API routes.

Registration, login and account management for the authenticated caller.
Handlers that hash or verify passwords are plain functions so FastAPI runs
them in its threadpool instead of on the event loop.
"""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from akshara.api.auth import create_access_token, get_current_user
from akshara.api.schemas import (
    AuthResponse,
    LoginRequest,
    PasswordChangeRequest,
    PreferencesUpdateRequest,
    ProfileUpdateRequest,
    RegisterRequest,
    SuccessResponse,
    UserProfile,
    UserResponse,
    UserStatsResponse,
)
from akshara.db.connection import get_db
from akshara.db.repositories import UserRepository
from akshara.models.db import User

logger = logging.getLogger(__name__)

router = APIRouter()


def _profile(user: User) -> UserProfile:
    return UserProfile.model_validate(user)


@router.post("/register", response_model=AuthResponse, status_code=201)
def register(
    body: RegisterRequest,
    session: Session = Depends(get_db),
) -> AuthResponse:
    """Create an account and return it with a fresh token."""
    user = UserRepository(session).create_user(
        username=body.username,
        email=body.email,
        password=body.password,
    )
    return AuthResponse(
        user=_profile(user),
        token=create_access_token(user.id),
        message="User registered successfully",
    )


@router.post("/login", response_model=AuthResponse)
def login(
    body: LoginRequest,
    session: Session = Depends(get_db),
) -> AuthResponse:
    """
    Exchange email and password for a token.

    Unknown email and wrong password produce the same 401.
    """
    repo = UserRepository(session)
    user = repo.find_by_credentials(body.email, body.password)
    repo.touch(user)
    logger.info(f"User {user.id} logged in")
    return AuthResponse(
        user=_profile(user),
        token=create_access_token(user.id),
        message="Login successful",
    )


@router.get("/profile", response_model=UserResponse)
async def get_profile(user: User = Depends(get_current_user)) -> UserResponse:
    return UserResponse(user=_profile(user))


@router.put("/profile", response_model=UserResponse)
async def update_profile(
    body: ProfileUpdateRequest,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_db),
) -> UserResponse:
    """Change username, email or avatar. Taken names are rejected with 400."""
    UserRepository(session).update_profile(
        user,
        username=body.username,
        email=body.email,
        avatar=body.avatar,
    )
    return UserResponse(user=_profile(user), message="Profile updated successfully")


@router.put("/preferences", response_model=UserResponse)
async def update_preferences(
    body: PreferencesUpdateRequest,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_db),
) -> UserResponse:
    UserRepository(session).update_preferences(user, **body.model_dump())
    return UserResponse(
        user=_profile(user), message="Preferences updated successfully"
    )


@router.get("/stats", response_model=UserStatsResponse)
async def get_stats(user: User = Depends(get_current_user)) -> UserStatsResponse:
    return UserStatsResponse(stats=user.stats)


@router.put("/password", response_model=SuccessResponse)
def change_password(
    body: PasswordChangeRequest,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_db),
) -> SuccessResponse:
    UserRepository(session).change_password(
        user, body.current_password, body.new_password
    )
    return SuccessResponse(message="Password updated successfully")


@router.delete("/account", response_model=SuccessResponse)
async def delete_account(
    user: User = Depends(get_current_user),
    session: Session = Depends(get_db),
) -> SuccessResponse:
    """Deactivate the account. Existing tokens stop working."""
    UserRepository(session).deactivate(user)
    return SuccessResponse(message="Account deactivated successfully")
