"""
Authentication routes: register, login, refresh and profile management.
=======================================================================

This module provides user registration and authentication endpoints.
Business rules live in AuthService; handlers validate input with Pydantic
models, call the service and wrap results in the ``{message, data}``
envelope. Errors propagate to the centralized handlers in app.core.errors.

Features:
- User registration with email validation and password length check
- Login returning the user and an access/refresh token pair
- Refresh token exchange (rotation without revocation)
- Profile, password and preferences endpoints behind the request gate
"""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator, model_validator
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.core.logging import get_logger
from app.core.security import TokenClaims, TokenPair, get_current_user
from app.models.user import RiskAppetite
from app.services.auth_service import AuthService

logger = get_logger(__name__)
router = APIRouter()

MIN_PASSWORD_LENGTH = 8


def _check_password_length(v: str) -> str:
    if len(v) < MIN_PASSWORD_LENGTH:
        raise ValueError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters long")
    return v


def _clean_username(v: Optional[str]) -> Optional[str]:
    if v is None:
        return v
    v = v.strip()
    if not v:
        raise ValueError("Username cannot be empty")
    return v


class RegisterRequest(BaseModel):
    """User registration request model."""
    email: EmailStr
    username: str = Field(..., min_length=1, max_length=50)
    password: str
    bankroll: Optional[Decimal] = Field(None, ge=0, max_digits=12, decimal_places=2)
    risk_appetite: Optional[RiskAppetite] = None

    @field_validator("username")
    @classmethod
    def strip_username(cls, v):
        return _clean_username(v)

    @field_validator("password")
    @classmethod
    def validate_password(cls, v):
        return _check_password_length(v)


class LoginRequest(BaseModel):
    """User login request model."""
    email: EmailStr
    password: str = Field(..., min_length=1)


class RefreshRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    refresh_token: str = Field(..., alias="refreshToken", min_length=1)


class ChangePasswordRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    current_password: str = Field(..., alias="currentPassword", min_length=1)
    new_password: str = Field(..., alias="newPassword")

    @field_validator("new_password")
    @classmethod
    def validate_new_password(cls, v):
        return _check_password_length(v)


class ProfileUpdateRequest(BaseModel):
    """Fields a user may change on their own profile; anything else is rejected."""
    model_config = ConfigDict(extra="forbid")

    username: Optional[str] = Field(None, min_length=1, max_length=50)
    bankroll: Optional[Decimal] = Field(None, ge=0, max_digits=12, decimal_places=2)
    risk_appetite: Optional[RiskAppetite] = None
    preferred_odds_range_min: Optional[Decimal] = Field(None, gt=0)
    preferred_odds_range_max: Optional[Decimal] = Field(None, gt=0)
    max_correlation_threshold: Optional[Decimal] = Field(None, ge=0, le=1)
    timezone: Optional[str] = Field(None, min_length=1, max_length=64)

    @field_validator("username")
    @classmethod
    def strip_username(cls, v):
        return _clean_username(v)

    @model_validator(mode="after")
    def check_odds_range(self):
        low, high = self.preferred_odds_range_min, self.preferred_odds_range_max
        if low is not None and high is not None and low > high:
            raise ValueError("preferred_odds_range_min cannot be greater than preferred_odds_range_max")
        return self


class PreferencesUpdateRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    preferred_sports: Optional[List[str]] = None
    notification_enabled: Optional[bool] = None
    email_notifications: Optional[bool] = None
    dashboard_layout: Optional[Dict[str, Any]] = None


class UserResponse(BaseModel):
    """User profile response model. The password hash is never part of it."""
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    email: str
    username: str
    bankroll: float
    risk_appetite: RiskAppetite
    preferred_odds_range_min: Optional[float] = None
    preferred_odds_range_max: Optional[float] = None
    max_correlation_threshold: float
    timezone: str
    is_active: bool
    last_login: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime


class PreferencesResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    preferred_sports: List[str]
    notification_enabled: bool
    email_notifications: bool
    dashboard_layout: Optional[Dict[str, Any]] = None
    updated_at: datetime


class AuthData(BaseModel):
    user: UserResponse
    tokens: TokenPair


class AuthResponse(BaseModel):
    message: str
    data: AuthData


class RefreshResponse(BaseModel):
    message: str
    data: TokenPair


class ProfileResponse(BaseModel):
    data: UserResponse


class ProfileUpdateResponse(ProfileResponse):
    message: str


class PreferencesEnvelope(BaseModel):
    data: PreferencesResponse


class PreferencesUpdateEnvelope(PreferencesEnvelope):
    message: str


class MessageResponse(BaseModel):
    message: str


def get_auth_service(db: AsyncSession = Depends(get_db)) -> AuthService:
    return AuthService(db)


@router.post("/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
async def register(payload: RegisterRequest, service: AuthService = Depends(get_auth_service)) -> AuthResponse:
    """
    Register a new user account.

    Creates the user and its default preferences, then returns the user
    together with an access/refresh token pair.

    Raises:
        DuplicateEmailError / DuplicateUsernameError: 400
    """
    logger.info(f"Registration attempt for email: {payload.email}")
    result = await service.register(
        email=payload.email,
        username=payload.username,
        password=payload.password,
        bankroll=payload.bankroll,
        risk_appetite=payload.risk_appetite,
    )
    return AuthResponse(
        message="User registered successfully",
        data=AuthData(user=UserResponse.model_validate(result.user), tokens=result.tokens),
    )


@router.post("/login", response_model=AuthResponse)
async def login(payload: LoginRequest, service: AuthService = Depends(get_auth_service)) -> AuthResponse:
    """
    Authenticate user and return a fresh token pair.

    Raises:
        InvalidCredentialsError / AccountDeactivatedError: 401
    """
    logger.info(f"Login attempt for email: {payload.email}")
    result = await service.login(email=payload.email, password=payload.password)
    return AuthResponse(
        message="Login successful",
        data=AuthData(user=UserResponse.model_validate(result.user), tokens=result.tokens),
    )


@router.post("/refresh", response_model=RefreshResponse)
async def refresh_token(payload: RefreshRequest, service: AuthService = Depends(get_auth_service)) -> RefreshResponse:
    """
    Exchange a refresh token for a new access/refresh pair.

    The presented refresh token is not revoked; it stays valid until it
    expires.
    """
    tokens = await service.refresh(payload.refresh_token)
    return RefreshResponse(message="Token refreshed successfully", data=tokens)


@router.get("/profile", response_model=ProfileResponse)
async def get_profile(
    current_user: TokenClaims = Depends(get_current_user),
    service: AuthService = Depends(get_auth_service),
) -> ProfileResponse:
    user = await service.get_profile(current_user.user_id)
    return ProfileResponse(data=UserResponse.model_validate(user))


@router.patch("/profile", response_model=ProfileUpdateResponse)
async def update_profile(
    payload: ProfileUpdateRequest,
    current_user: TokenClaims = Depends(get_current_user),
    service: AuthService = Depends(get_auth_service),
) -> ProfileUpdateResponse:
    user = await service.update_profile(current_user.user_id, **payload.model_dump(exclude_unset=True))
    return ProfileUpdateResponse(message="Profile updated successfully", data=UserResponse.model_validate(user))


@router.post("/change-password", response_model=MessageResponse)
async def change_password(
    payload: ChangePasswordRequest,
    current_user: TokenClaims = Depends(get_current_user),
    service: AuthService = Depends(get_auth_service),
) -> MessageResponse:
    """
    Change the authenticated user's password.

    Tokens issued before the change remain valid until they expire.
    """
    await service.change_password(current_user.user_id, payload.current_password, payload.new_password)
    return MessageResponse(message="Password changed successfully")


@router.get("/preferences", response_model=PreferencesEnvelope)
async def get_preferences(
    current_user: TokenClaims = Depends(get_current_user),
    service: AuthService = Depends(get_auth_service),
) -> PreferencesEnvelope:
    preferences = await service.get_preferences(current_user.user_id)
    return PreferencesEnvelope(data=PreferencesResponse.model_validate(preferences))


@router.put("/preferences", response_model=PreferencesUpdateEnvelope)
async def update_preferences(
    payload: PreferencesUpdateRequest,
    current_user: TokenClaims = Depends(get_current_user),
    service: AuthService = Depends(get_auth_service),
) -> PreferencesUpdateEnvelope:
    preferences = await service.update_preferences(
        current_user.user_id, **payload.model_dump(exclude_unset=True)
    )
    return PreferencesUpdateEnvelope(
        message="Preferences updated successfully",
        data=PreferencesResponse.model_validate(preferences),
    )
