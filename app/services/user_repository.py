"""
User data access
================

Queries and writes for users and their preferences. Statements are built
with SQLAlchemy, so every value travels as a bound parameter.

The repository flushes but never commits: the calling service owns the
transaction boundary. Partial updates only accept the fields listed in
``USER_UPDATABLE_FIELDS`` / ``PREFERENCES_UPDATABLE_FIELDS``.
"""

import uuid
from decimal import Decimal
from typing import Any, Dict, Optional, Union

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import ValidationError
from app.core.logging import get_logger
from app.core.utils import utcnow
from app.models.user import RiskAppetite, User, UserPreferences

logger = get_logger(__name__)

USER_UPDATABLE_FIELDS = frozenset({
    "username",
    "bankroll",
    "risk_appetite",
    "preferred_odds_range_min",
    "preferred_odds_range_max",
    "max_correlation_threshold",
    "timezone",
})

PREFERENCES_UPDATABLE_FIELDS = frozenset({
    "preferred_sports",
    "notification_enabled",
    "email_notifications",
    "dashboard_layout",
})

DEFAULT_PREFERRED_SPORTS = ["NBA"]


def _as_uuid(value: Union[str, uuid.UUID]) -> Optional[uuid.UUID]:
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except (ValueError, TypeError):
        return None


def _check_fields(updates: Dict[str, Any], allowed: frozenset) -> Dict[str, Any]:
    unknown = sorted(set(updates) - allowed)
    if unknown:
        logger.warning(f"Rejected update of protected fields: {unknown}")
        raise ValidationError(f"Fields cannot be updated: {', '.join(unknown)}")
    return {key: value for key, value in updates.items() if value is not None}


class UserRepository:
    """Data access for ``users`` and ``user_preferences``."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def find_by_id(self, user_id: Union[str, uuid.UUID]) -> Optional[User]:
        key = _as_uuid(user_id)
        if key is None:
            return None
        return await self.session.get(User, key)

    async def find_by_email(self, email: str) -> Optional[User]:
        result = await self.session.execute(select(User).where(User.email == email))
        return result.scalar_one_or_none()

    async def find_by_username(self, username: str) -> Optional[User]:
        result = await self.session.execute(select(User).where(User.username == username))
        return result.scalar_one_or_none()

    async def create(
        self,
        email: str,
        username: str,
        password_hash: str,
        bankroll: Optional[Decimal] = None,
        risk_appetite: Optional[RiskAppetite] = None,
    ) -> User:
        """
        Insert a user row and flush it so the generated id is available.

        Raises:
            sqlalchemy.exc.IntegrityError: On a unique constraint violation
        """
        user = User(
            email=email,
            username=username,
            password_hash=password_hash,
            bankroll=bankroll if bankroll is not None else Decimal("0"),
            risk_appetite=risk_appetite or RiskAppetite.BALANCED,
            is_active=True,
        )
        self.session.add(user)
        await self.session.flush()
        return user

    async def update(self, user_id: Union[str, uuid.UUID], **updates: Any) -> Optional[User]:
        """
        Apply a partial update restricted to USER_UPDATABLE_FIELDS.

        None values are skipped. Returns the refreshed user, or None if the
        user does not exist.

        Raises:
            ValidationError: If a field outside the allow-list is supplied
        """
        values = _check_fields(updates, USER_UPDATABLE_FIELDS)
        user = await self.find_by_id(user_id)
        if user is None:
            return None

        for field, value in values.items():
            setattr(user, field, value)
        if values:
            await self.session.flush()
        return user

    async def set_password_hash(self, user_id: Union[str, uuid.UUID], password_hash: str) -> bool:
        key = _as_uuid(user_id)
        if key is None:
            return False
        result = await self.session.execute(
            update(User)
            .where(User.id == key)
            .values(password_hash=password_hash, updated_at=utcnow())
        )
        return result.rowcount > 0

    async def update_last_login(self, user_id: Union[str, uuid.UUID]) -> None:
        await self.session.execute(
            update(User).where(User.id == _as_uuid(user_id)).values(last_login=utcnow())
        )

    async def get_preferences(self, user_id: Union[str, uuid.UUID]) -> Optional[UserPreferences]:
        key = _as_uuid(user_id)
        if key is None:
            return None
        result = await self.session.execute(
            select(UserPreferences).where(UserPreferences.user_id == key)
        )
        return result.scalar_one_or_none()

    async def create_preferences(
        self,
        user_id: Union[str, uuid.UUID],
        preferred_sports: Optional[list] = None,
        notification_enabled: bool = True,
        email_notifications: bool = False,
        dashboard_layout: Optional[Dict[str, Any]] = None,
    ) -> UserPreferences:
        preferences = UserPreferences(
            user_id=_as_uuid(user_id),
            preferred_sports=list(preferred_sports or DEFAULT_PREFERRED_SPORTS),
            notification_enabled=notification_enabled,
            email_notifications=email_notifications,
            dashboard_layout=dashboard_layout,
        )
        self.session.add(preferences)
        await self.session.flush()
        return preferences

    async def update_preferences(
        self, user_id: Union[str, uuid.UUID], **updates: Any
    ) -> Optional[UserPreferences]:
        """
        Apply a partial update restricted to PREFERENCES_UPDATABLE_FIELDS.

        Raises:
            ValidationError: If a field outside the allow-list is supplied
        """
        values = _check_fields(updates, PREFERENCES_UPDATABLE_FIELDS)
        preferences = await self.get_preferences(user_id)
        if preferences is None:
            return None

        for field, value in values.items():
            setattr(preferences, field, value)
        if values:
            await self.session.flush()
        return preferences
