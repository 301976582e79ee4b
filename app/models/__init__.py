"""
SQLAlchemy models package for Betting Insights API.

This package contains ORM models for users and their preferences.
"""

from .user import RiskAppetite, User, UserPreferences

__all__ = [
    "RiskAppetite",
    "User",
    "UserPreferences",
]
