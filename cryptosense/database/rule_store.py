"""
Rule Store for CryptoSense

Persistence capability set used by the alerting pipeline: active rule
lookup, atomic trigger bookkeeping, alert history writes and the
maintenance queries behind the REST surface.
"""

from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, AsyncIterator, Dict, Iterable, List, Optional

from sqlalchemy import and_, case, delete, desc, func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from cryptosense.core.exceptions import PersistenceError
from cryptosense.core.logging.structured_logger import get_logger
from cryptosense.core.models.enums import AlertSeverity, AlertStatus, AlertType
from cryptosense.core.timeutils import utcnow
from cryptosense.database.models import AlertHistory, AlertRule, User

logger = get_logger(__name__)


class RuleStore:
    """Repository for alert rules, alert history and users"""

    def __init__(self, session_factory: async_sessionmaker):
        """
        Args:
            session_factory: async session factory; one session per operation
        """
        self._session_factory = session_factory

    @asynccontextmanager
    async def _session(self, operation: str) -> AsyncIterator[AsyncSession]:
        async with self._session_factory() as session:
            try:
                yield session
            except SQLAlchemyError as e:
                await session.rollback()
                logger.error(f"Persistence failure during {operation}", error=e)
                raise PersistenceError(f"{operation} failed: {e}") from e

    # ==================== Rules ====================

    async def find_active_rules(
        self,
        symbol: Optional[str] = None,
        alert_types: Optional[Iterable[AlertType]] = None
    ) -> List[AlertRule]:
        """Active rules, optionally narrowed by symbol and alert type"""
        stmt = select(AlertRule).where(AlertRule.is_active.is_(True))
        if symbol:
            stmt = stmt.where(AlertRule.symbol == symbol.upper())
        if alert_types is not None:
            stmt = stmt.where(AlertRule.alert_type.in_(list(alert_types)))

        async with self._session("find_active_rules") as session:
            result = await session.execute(stmt.order_by(AlertRule.created_at))
            return list(result.scalars().all())

    async def get_rule(self, rule_id: str) -> Optional[AlertRule]:
        async with self._session("get_rule") as session:
            return await session.get(AlertRule, rule_id)

    async def save(self, entity: Any) -> Any:
        """Insert or update any mapped entity and return the persisted copy"""
        async with self._session("save") as session:
            merged = await session.merge(entity)
            await session.commit()
            return merged

    async def delete_rule(self, rule_id: str) -> bool:
        """Delete a rule; its history rows stay with a null rule reference"""
        async with self._session("delete_rule") as session:
            await session.execute(
                update(AlertHistory)
                .where(AlertHistory.alert_rule_id == rule_id)
                .values(alert_rule_id=None)
            )
            result = await session.execute(delete(AlertRule).where(AlertRule.id == rule_id))
            await session.commit()
            return result.rowcount > 0

    async def reactivate_rule(self, rule_id: str, user_id: Optional[str] = None) -> Optional[AlertRule]:
        """INACTIVE -> ACTIVE; bookkeeping is left untouched"""
        async with self._session("reactivate_rule") as session:
            rule = await session.get(AlertRule, rule_id)
            if rule is None or (user_id is not None and rule.user_id != user_id):
                return None
            rule.is_active = True
            await session.commit()
            logger.info("Alert rule reactivated", {"rule_id": rule_id})
            return rule

    async def record_trigger(
        self,
        rule: AlertRule,
        history: AlertHistory,
        now: datetime
    ) -> Optional[AlertHistory]:
        """Persist a pending history row and the rule bookkeeping atomically

        The rule row is re-read inside the transaction and its eligibility
        re-checked, so two near-simultaneous triggers cannot both commit.

        Returns:
            The saved history, or None when the rule is no longer eligible

        Raises:
            PersistenceError: nothing was written; the rule stays eligible
        """
        async with self._session("record_trigger") as session:
            stmt = select(AlertRule).where(AlertRule.id == rule.id).with_for_update()
            current = (await session.execute(stmt)).scalar_one_or_none()
            if current is None or not current.should_trigger(now):
                await session.rollback()
                return None

            current.mark_triggered(now)
            session.add(history)
            await session.commit()

        rule.trigger_count = current.trigger_count
        rule.last_triggered_at = current.last_triggered_at
        rule.is_active = current.is_active
        return history

    # ==================== History ====================

    async def complete_delivery(
        self,
        history_id: str,
        status: AlertStatus,
        delivery_status: Dict[str, Dict[str, Any]],
        sent_at: Optional[datetime] = None
    ) -> bool:
        """Single pending -> sent|failed transition; False if already settled"""
        async with self._session("complete_delivery") as session:
            result = await session.execute(
                update(AlertHistory)
                .where(and_(
                    AlertHistory.id == history_id,
                    AlertHistory.status == AlertStatus.PENDING
                ))
                .values(status=status, delivery_status=delivery_status, sent_at=sent_at)
            )
            await session.commit()
            return result.rowcount == 1

    async def get_history(self, history_id: str) -> Optional[AlertHistory]:
        async with self._session("get_history") as session:
            return await session.get(AlertHistory, history_id)

    async def list_history(
        self,
        user_id: str,
        status: Optional[AlertStatus] = None,
        limit: int = 100
    ) -> List[AlertHistory]:
        stmt = select(AlertHistory).where(AlertHistory.user_id == user_id)
        if status is not None:
            stmt = stmt.where(AlertHistory.status == status)
        stmt = stmt.order_by(desc(AlertHistory.created_at)).limit(limit)

        async with self._session("list_history") as session:
            result = await session.execute(stmt)
            return list(result.scalars().all())

    async def set_history_status(
        self,
        history_id: str,
        user_id: str,
        status: AlertStatus
    ) -> Optional[AlertHistory]:
        """Acknowledge or dismiss a settled alert owned by ``user_id``

        Raises:
            ValueError: unsupported target status, or delivery still pending
        """
        if status not in (AlertStatus.ACKNOWLEDGED, AlertStatus.DISMISSED):
            raise ValueError(f"Cannot set alert status to {status.value}")

        async with self._session("set_history_status") as session:
            alert = await session.get(AlertHistory, history_id)
            if alert is None or alert.user_id != user_id:
                return None
            if alert.status == AlertStatus.PENDING:
                raise ValueError(f"Alert {history_id} is still being delivered")

            alert.status = status
            if status == AlertStatus.ACKNOWLEDGED:
                alert.acknowledged_at = utcnow()
            else:
                alert.dismissed_at = utcnow()
            await session.commit()
            return alert

    async def delete_history_before(self, cutoff: datetime) -> int:
        async with self._session("delete_history_before") as session:
            result = await session.execute(
                delete(AlertHistory).where(AlertHistory.created_at < cutoff)
            )
            await session.commit()
            return result.rowcount or 0

    async def get_alert_stats(self, user_id: str, since: datetime) -> Dict[str, Any]:
        """Counts by status and severity for alerts created after ``since``"""
        stmt = select(
            func.count(AlertHistory.id),
            func.sum(case((AlertHistory.status == AlertStatus.SENT, 1), else_=0)),
            func.sum(case((AlertHistory.status == AlertStatus.FAILED, 1), else_=0)),
            func.sum(case((AlertHistory.severity == AlertSeverity.CRITICAL, 1), else_=0)),
            func.sum(case((AlertHistory.severity == AlertSeverity.HIGH, 1), else_=0)),
        ).where(and_(
            AlertHistory.user_id == user_id,
            AlertHistory.created_at >= since
        ))

        async with self._session("get_alert_stats") as session:
            total, sent, failed, critical, high = (await session.execute(stmt)).one()

        total = int(total or 0)
        sent = int(sent or 0)
        return {
            "total": total,
            "sent": sent,
            "failed": int(failed or 0),
            "critical": int(critical or 0),
            "high": int(high or 0),
            "successRate": (sent / total) * 100 if total > 0 else 0,
        }

    # ==================== Users ====================

    async def get_user(self, user_id: str) -> Optional[User]:
        """User with preferences eagerly loaded"""
        async with self._session("get_user") as session:
            return await session.get(User, user_id)
