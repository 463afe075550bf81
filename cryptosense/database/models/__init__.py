"""
SQLAlchemy Models for CryptoSense

Exports all database models for ORM operations.
"""

from cryptosense.database.connection import Base
from cryptosense.database.models.user import User, UserPreferences
from cryptosense.database.models.alert import AlertRule, AlertHistory

__all__ = [
    # Core
    "Base",
    # User models
    "User",
    "UserPreferences",
    # Alert models
    "AlertRule",
    "AlertHistory",
]
