"""User and notification preference models."""

import uuid
from typing import Any, Dict, List

from sqlalchemy import Column, String, DateTime, Boolean, ForeignKey, JSON
from sqlalchemy.orm import relationship

from cryptosense.core.timeutils import utcnow
from cryptosense.database.connection import Base


class User(Base):
    """Dashboard user who owns alert rules"""
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    email = Column(String(255), unique=True, nullable=False)
    username = Column(String(100), unique=True, nullable=False)
    notifications_enabled = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=utcnow)

    preferences = relationship(
        "UserPreferences",
        uselist=False,
        lazy="selectin",
        cascade="all, delete-orphan",
    )

    def channel_preferences(self, method: str) -> Dict[str, Any]:
        """Stored preference block for one channel, empty when unset."""
        if self.preferences is None:
            return {}
        return (self.preferences.notification_preferences or {}).get(method) or {}


class UserPreferences(Base):
    """Per-user defaults for notification destinations"""
    __tablename__ = "user_preferences"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False)
    watchlist = Column(JSON, default=lambda: ["BTC", "ETH", "SOL"])
    # {"email": {...}, "sms": {"phone_number"}, "push": {"tokens"}, "webhook": {"url", "secret"}}
    notification_preferences = Column(JSON, default=dict)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    @property
    def push_tokens(self) -> List[str]:
        return list(((self.notification_preferences or {}).get("push") or {}).get("tokens") or [])
