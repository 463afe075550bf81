"""
Alert Management Models for CryptoSense

Defines SQLAlchemy models for:
- Alert rules and their trigger bookkeeping
- Alert history (one row per trigger attempt) with per-channel delivery status
"""

import copy
import uuid
from datetime import datetime, timedelta
from typing import Dict, List, Optional

from sqlalchemy import (
    Column, Integer, String, DateTime, Boolean,
    Index, ForeignKey, Enum, Text, JSON
)

from cryptosense.core.models.enums import (
    AlertType, AlertSeverity, AlertStatus, NotificationMethod
)
from cryptosense.core.timeutils import utcnow
from cryptosense.database.connection import Base


def _uuid() -> str:
    return str(uuid.uuid4())


class AlertRule(Base):
    """User-defined condition on market data plus notification configuration"""
    __tablename__ = "alert_rules"

    id = Column(String(36), primary_key=True, default=_uuid)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    symbol = Column(String(10), nullable=False)  # BTC, ETH, SOL, USDT, ...
    alert_type = Column(Enum(AlertType), nullable=False)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    severity = Column(Enum(AlertSeverity), default=AlertSeverity.MEDIUM, nullable=False)

    # {"threshold", "comparison", "timeframe", "percentage", "indicator", "parameters"}
    conditions = Column(JSON, nullable=False, default=dict)

    notification_methods = Column(JSON, nullable=False, default=lambda: [NotificationMethod.EMAIL.value])
    # {"email", "phone_number", "webhook_url", "webhook_secret", "push_token"}
    notification_config = Column(JSON, nullable=True)

    is_active = Column(Boolean, default=True, nullable=False)
    is_one_time = Column(Boolean, default=False, nullable=False)

    trigger_count = Column(Integer, default=0, nullable=False)
    last_triggered_at = Column(DateTime, nullable=True)
    cooldown_minutes = Column(Integer, default=0, nullable=False)

    extra = Column("metadata", JSON, nullable=True)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        Index('ix_alert_rule_user_active', 'user_id', 'is_active'),
        Index('ix_alert_rule_symbol_type', 'symbol', 'alert_type'),
    )

    @property
    def methods(self) -> List[NotificationMethod]:
        return [NotificationMethod(m) for m in (self.notification_methods or [])]

    @property
    def threshold(self) -> Optional[float]:
        return (self.conditions or {}).get("threshold")

    def is_in_cooldown(self, now: Optional[datetime] = None) -> bool:
        if self.last_triggered_at is None or not self.cooldown_minutes:
            return False
        now = now or utcnow()
        return now < self.last_triggered_at + timedelta(minutes=self.cooldown_minutes)

    def should_trigger(self, now: Optional[datetime] = None) -> bool:
        return bool(self.is_active) and not self.is_in_cooldown(now)

    def mark_triggered(self, now: datetime) -> None:
        """Apply trigger bookkeeping; one-time rules deactivate themselves."""
        self.trigger_count = (self.trigger_count or 0) + 1
        self.last_triggered_at = now
        if self.is_one_time:
            self.is_active = False

    def __repr__(self) -> str:
        return f"<AlertRule {self.id} {self.symbol} {self.alert_type}>"


class AlertHistory(Base):
    """Record of every trigger attempt and its delivery outcome"""
    __tablename__ = "alert_history"

    id = Column(String(36), primary_key=True, default=_uuid)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    # Survives rule deletion
    alert_rule_id = Column(String(36), ForeignKey("alert_rules.id", ondelete="SET NULL"), nullable=True)

    symbol = Column(String(10), nullable=False)
    title = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)
    severity = Column(Enum(AlertSeverity), default=AlertSeverity.MEDIUM, nullable=False)
    status = Column(Enum(AlertStatus), default=AlertStatus.PENDING, nullable=False)
    notification_methods = Column(JSON, nullable=False, default=list)

    # Snapshot at trigger time; never updated after insert
    trigger_data = Column(JSON, nullable=True)
    # {method: {"status", "timestamp", "error"?, "status_code"?}}
    delivery_status = Column(JSON, nullable=True)

    acknowledged_at = Column(DateTime, nullable=True)
    dismissed_at = Column(DateTime, nullable=True)
    sent_at = Column(DateTime, nullable=True)
    extra = Column("metadata", JSON, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    __table_args__ = (
        Index('ix_alert_history_user_created', 'user_id', 'created_at'),
        Index('ix_alert_history_rule_created', 'alert_rule_id', 'created_at'),
        Index('ix_alert_history_status_created', 'status', 'created_at'),
    )

    def to_dict(self) -> Dict:
        return {
            "id": self.id,
            "userId": self.user_id,
            "alertRuleId": self.alert_rule_id,
            "symbol": self.symbol,
            "title": self.title,
            "message": self.message,
            "severity": self.severity.value if self.severity else None,
            "status": self.status.value if self.status else None,
            "notificationMethods": list(self.notification_methods or []),
            "triggerData": copy.deepcopy(self.trigger_data),
            "deliveryStatus": copy.deepcopy(self.delivery_status),
            "acknowledgedAt": self.acknowledged_at.isoformat() if self.acknowledged_at else None,
            "dismissedAt": self.dismissed_at.isoformat() if self.dismissed_at else None,
            "sentAt": self.sent_at.isoformat() if self.sent_at else None,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self) -> str:
        return f"<AlertHistory {self.id} {self.symbol} {self.status}>"
