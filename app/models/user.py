"""
User models
===========

Defines the user credential record and its 1:1 preferences extension.
"""

import enum
import uuid
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from sqlalchemy import JSON, Boolean, CheckConstraint, DateTime, Enum, ForeignKey, Numeric, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.database import Base
from app.core.utils import utcnow


class RiskAppetite(str, enum.Enum):
    CONSERVATIVE = "conservative"
    BALANCED = "balanced"
    AGGRESSIVE = "aggressive"


class TimestampMixin:
    """Reusable created_at and updated_at columns."""

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False
    )


class User(TimestampMixin, Base):
    """
    Application user.

    Fields:
    - email / username: each globally unique
    - password_hash: bcrypt hash, never serialized to clients
    - bankroll: non-negative amount available for staking
    - risk_appetite: conservative / balanced / aggressive
    - is_active: soft disable flag; inactive users cannot authenticate
    - last_login: stamped on each successful login
    """

    __tablename__ = "users"
    __table_args__ = (
        CheckConstraint("bankroll >= 0", name="bankroll_non_negative"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    email: Mapped[str] = mapped_column(String(255), unique=True, index=True, nullable=False)
    username: Mapped[str] = mapped_column(String(50), unique=True, index=True, nullable=False)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    bankroll: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=Decimal("0"), nullable=False)
    risk_appetite: Mapped[RiskAppetite] = mapped_column(
        Enum(RiskAppetite, native_enum=False, length=20, values_callable=lambda e: [m.value for m in e]),
        default=RiskAppetite.BALANCED,
        nullable=False,
    )
    preferred_odds_range_min: Mapped[Optional[Decimal]] = mapped_column(Numeric(8, 2), nullable=True)
    preferred_odds_range_max: Mapped[Optional[Decimal]] = mapped_column(Numeric(8, 2), nullable=True)
    max_correlation_threshold: Mapped[Decimal] = mapped_column(
        Numeric(4, 3), default=Decimal("0.7"), nullable=False
    )
    timezone: Mapped[str] = mapped_column(String(64), default="UTC", nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    last_login: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    # Relationships
    preferences: Mapped[Optional["UserPreferences"]] = relationship(
        back_populates="user", cascade="all, delete-orphan", passive_deletes=True, uselist=False, lazy="raise"
    )

    def __repr__(self) -> str:
        return f"User(id={self.id}, email={self.email}, username={self.username})"


class UserPreferences(TimestampMixin, Base):
    """Notification flags and dashboard layout for one user."""

    __tablename__ = "user_preferences"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), unique=True, index=True, nullable=False
    )
    preferred_sports: Mapped[List[str]] = mapped_column(JSON, default=lambda: ["NBA"], nullable=False)
    notification_enabled: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    email_notifications: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    dashboard_layout: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSON, nullable=True)

    user: Mapped[User] = relationship(back_populates="preferences", lazy="raise")

    def __repr__(self) -> str:
        return f"UserPreferences(id={self.id}, user_id={self.user_id})"
