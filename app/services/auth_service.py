"""
Authentication Service
======================

Orchestrates registration, login, token refresh and password management
on top of the user repository, password hashing and token service.

Transactions:
- Registration writes the user and its default preferences in a single
  transaction; a failure in either insert rolls both back.
- The last-login stamp written at login is best-effort: a failure is
  logged and the login still succeeds.

Refresh tokens are not revoked on rotation (no server-side token state),
so an older refresh token remains usable until it expires.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import (
    AccountDeactivatedError,
    DuplicateEmailError,
    DuplicateUsernameError,
    IncorrectPasswordError,
    InvalidCredentialsError,
    InvalidRefreshTokenError,
    NotFoundError,
    TokenError,
    ValidationError,
)
from app.core.logging import get_logger
from app.core.security import (
    TokenClaims,
    TokenPair,
    create_token_pair,
    hash_password,
    verify_password,
    verify_refresh_token,
)
from app.models.user import RiskAppetite, User, UserPreferences
from app.services.user_repository import UserRepository

logger = get_logger(__name__)


@dataclass
class AuthResult:
    """A user (ORM row) together with a freshly issued token pair."""

    user: User
    tokens: TokenPair


def claims_for(user: User) -> TokenClaims:
    return TokenClaims(user_id=str(user.id), email=user.email, username=user.username)


class AuthService:
    """
    Authentication use cases bound to one database session.

    Args:
        session: Session used for every read and write of this service
    """

    def __init__(self, session: AsyncSession):
        self.session = session
        self.users = UserRepository(session)

    async def register(
        self,
        email: str,
        username: str,
        password: str,
        bankroll: Optional[Decimal] = None,
        risk_appetite: Optional[RiskAppetite] = None,
    ) -> AuthResult:
        """
        Create a user with default preferences and issue a token pair.

        Raises:
            DuplicateEmailError: If the email is already registered
            DuplicateUsernameError: If the username is already taken
            ValidationError: If a concurrent registration won the unique constraint
        """
        if await self.users.find_by_email(email):
            logger.warning(f"Registration failed: email {email} already exists")
            raise DuplicateEmailError()

        if await self.users.find_by_username(username):
            logger.warning(f"Registration failed: username {username} already exists")
            raise DuplicateUsernameError()

        password_hash = hash_password(password)

        try:
            user = await self.users.create(
                email=email,
                username=username,
                password_hash=password_hash,
                bankroll=bankroll,
                risk_appetite=risk_appetite,
            )
            await self.users.create_preferences(user.id)
            await self.session.commit()
            await self.session.refresh(user)
        except IntegrityError:
            await self.session.rollback()
            logger.warning(f"Registration conflict for {email} / {username}")
            raise ValidationError("User with this email or username already exists")
        except Exception:
            await self.session.rollback()
            raise

        logger.info(f"User registered successfully: {user.id} ({user.email})")
        return AuthResult(user=user, tokens=create_token_pair(claims_for(user)))

    async def login(self, email: str, password: str) -> AuthResult:
        """
        Authenticate by email and password.

        Raises:
            InvalidCredentialsError: Unknown email or wrong password
            AccountDeactivatedError: The account exists but is inactive
        """
        user = await self.users.find_by_email(email)
        if user is None:
            logger.warning(f"Login failed: unknown email {email}")
            raise InvalidCredentialsError()

        if not user.is_active:
            logger.warning(f"Login failed: inactive user {email}")
            raise AccountDeactivatedError()

        if not verify_password(password, user.password_hash):
            logger.warning(f"Login failed: invalid credentials for {email}")
            raise InvalidCredentialsError()

        try:
            await self.users.update_last_login(user.id)
            await self.session.commit()
        except SQLAlchemyError as e:
            user_id = user.id
            await self.session.rollback()
            logger.warning(f"Could not record last login for {user_id}: {e}")
            # rollback expires every loaded instance
            await self.session.refresh(user)

        logger.info(f"User logged in successfully: {user.id} ({user.email})")
        return AuthResult(user=user, tokens=create_token_pair(claims_for(user)))

    async def refresh(self, refresh_token: str) -> TokenPair:
        """
        Exchange a valid refresh token for a brand-new token pair.

        Raises:
            InvalidRefreshTokenError: Token invalid/expired, or its user is
                missing or inactive
        """
        try:
            claims = verify_refresh_token(refresh_token)
        except TokenError:
            raise InvalidRefreshTokenError()

        user = await self.users.find_by_id(claims.user_id)
        if user is None or not user.is_active:
            logger.warning(f"Refresh rejected for missing or inactive user {claims.user_id}")
            raise InvalidRefreshTokenError()

        logger.info(f"Token refreshed for user: {user.id}")
        return create_token_pair(claims_for(user))

    async def validate_password(self, user_id: str, password: str) -> bool:
        user = await self.users.find_by_id(user_id)
        if user is None:
            return False
        return verify_password(password, user.password_hash)

    async def change_password(self, user_id: str, old_password: str, new_password: str) -> None:
        """
        Replace the stored hash after checking the current password.

        Raises:
            IncorrectPasswordError: If old_password does not match
        """
        if not await self.validate_password(user_id, old_password):
            raise IncorrectPasswordError()

        await self.users.set_password_hash(user_id, hash_password(new_password))
        await self.session.commit()
        logger.info(f"Password changed successfully for user: {user_id}")

    async def get_profile(self, user_id: str) -> User:
        user = await self.users.find_by_id(user_id)
        if user is None:
            raise NotFoundError("User not found")
        return user

    async def update_profile(self, user_id: str, **updates: Any) -> User:
        """
        Update the profile fields a user may change themselves.

        Raises:
            NotFoundError: If the user does not exist
            DuplicateUsernameError: If the new username is already taken
            ValidationError: If a non-updatable field is supplied or the odds
                range would end up inverted
        """
        username = updates.get("username")
        if username:
            existing = await self.users.find_by_username(username)
            if existing is not None and str(existing.id) != str(user_id):
                raise DuplicateUsernameError()

        try:
            user = await self.users.update(user_id, **updates)
            if user is None:
                raise NotFoundError("User not found")
            low, high = user.preferred_odds_range_min, user.preferred_odds_range_max
            if low is not None and high is not None and low > high:
                await self.session.rollback()
                raise ValidationError("preferred_odds_range_min cannot be greater than preferred_odds_range_max")
            await self.session.commit()
        except IntegrityError:
            await self.session.rollback()
            raise DuplicateUsernameError()

        logger.info(f"Profile updated for user: {user_id}")
        return user

    async def get_preferences(self, user_id: str) -> UserPreferences:
        preferences = await self.users.get_preferences(user_id)
        if preferences is None:
            raise NotFoundError("Preferences not found")
        return preferences

    async def update_preferences(self, user_id: str, **updates: Any) -> UserPreferences:
        preferences = await self.users.update_preferences(user_id, **updates)
        if preferences is None:
            raise NotFoundError("Preferences not found")
        await self.session.commit()
        return preferences
