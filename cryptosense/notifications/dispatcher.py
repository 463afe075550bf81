"""
Notification Dispatcher for CryptoSense

Turns a fired rule into an alert history record and fans it out across the
rule's notification channels:
- pending history row and rule bookkeeping are committed before delivery
- every channel is attempted concurrently; one failure never affects another
- the terminal sent/failed status is written once, after all channels settle
"""

import asyncio
import copy
import uuid
from contextlib import asynccontextmanager
from datetime import timedelta
from typing import Callable, Dict, List, Optional, Set

from cryptosense.alerts.evaluator import AlertEvaluator
from cryptosense.alerts.templates import build_trigger_data, render_message, render_title
from cryptosense.core.exceptions import PersistenceError
from cryptosense.core.logging.structured_logger import get_logger
from cryptosense.core.models.data_models import DeliveryResult, MarketObservation
from cryptosense.core.models.enums import AlertStatus, DeliveryState, NotificationMethod
from cryptosense.core.timeutils import utcnow
from cryptosense.database.models import AlertHistory, AlertRule
from cryptosense.database.rule_store import RuleStore
from cryptosense.notifications.channels.base import NotificationChannel

logger = get_logger(__name__)


class _RuleLock:
    """Per-rule mutex with a count of coroutines holding or awaiting it."""

    def __init__(self):
        self.lock = asyncio.Lock()
        self.users = 0


class NotificationDispatcher:
    """Processes fired alert rules and delivers their notifications"""

    def __init__(
        self,
        store: RuleStore,
        channels: Dict[NotificationMethod, NotificationChannel],
        evaluator: Optional[AlertEvaluator] = None,
        clock: Callable = utcnow
    ):
        """
        Args:
            store: rule and history persistence
            channels: adapter per notification method
            evaluator: eligibility gate; defaults to one sharing ``clock``
            clock: returns the current naive UTC time
        """
        self.store = store
        self.channels = channels
        self.clock = clock
        self.evaluator = evaluator or AlertEvaluator(clock=clock)

        self._rule_locks: Dict[str, _RuleLock] = {}
        self._tasks: Set[asyncio.Task] = set()

    # ==================== Triggering ====================

    async def process_alert(
        self,
        rule: AlertRule,
        observation: MarketObservation
    ) -> Optional[AlertHistory]:
        """Fire ``rule`` for ``observation`` and schedule delivery

        Returns:
            The pending AlertHistory, or None when the rule is not eligible

        Raises:
            PersistenceError: the trigger could not be recorded; the rule
                stays eligible and no notification is attempted
        """
        async with self._rule_lock(rule.id):
            now = self.clock()
            if not self.evaluator.is_eligible(rule, now):
                logger.debug("Alert rule inactive or in cooldown", {"rule_id": rule.id})
                return None

            trigger_data = build_trigger_data(rule, observation)
            history = AlertHistory(
                id=str(uuid.uuid4()),
                user_id=rule.user_id,
                alert_rule_id=rule.id,
                symbol=observation.symbol,
                title=render_title(rule, trigger_data),
                message=render_message(rule, trigger_data, now),
                severity=rule.severity,
                status=AlertStatus.PENDING,
                notification_methods=list(rule.notification_methods or []),
                trigger_data=copy.deepcopy(trigger_data),
                created_at=now,
            )

            saved = await self.store.record_trigger(rule, history, now)
            if saved is None:
                logger.debug("Alert rule no longer eligible at commit", {"rule_id": rule.id})
                return None

        logger.log_alert_trigger(
            rule_id=rule.id,
            symbol=saved.symbol,
            alert_type=rule.alert_type.value,
            severity=rule.severity.value
        )

        task = asyncio.create_task(self._deliver(rule, saved))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return saved

    @asynccontextmanager
    async def _rule_lock(self, rule_id: str):
        entry = self._rule_locks.get(rule_id)
        if entry is None:
            entry = self._rule_locks[rule_id] = _RuleLock()
        entry.users += 1
        try:
            async with entry.lock:
                yield
        finally:
            entry.users -= 1
            if entry.users == 0:
                del self._rule_locks[rule_id]

    async def _deliver(self, rule: AlertRule, alert: AlertHistory) -> None:
        try:
            await self.send_notifications(rule, alert)
        except PersistenceError as e:
            logger.error("Could not record delivery outcome", {
                "history_id": alert.id,
                "rule_id": rule.id
            }, error=e)

    # ==================== Delivery ====================

    async def send_notifications(self, rule: AlertRule, alert: AlertHistory) -> Dict[str, Dict]:
        """Attempt every configured channel and persist the aggregate outcome

        Returns:
            The per-method delivery status map that was stored
        """
        methods = rule.methods
        user = await self.store.get_user(rule.user_id)

        if user is None:
            logger.error("User not found for alert", {"user_id": rule.user_id, "history_id": alert.id})
            results = [self._failed(method, "User not found") for method in methods]
        elif not user.notifications_enabled:
            results = [self._failed(method, "Notifications disabled for user") for method in methods]
        else:
            attempts = [self._attempt(method, user, alert, rule.notification_config) for method in methods]
            results = await asyncio.gather(*attempts, return_exceptions=True)

        delivery_status: Dict[str, Dict] = {}
        for method, result in zip(methods, results):
            if isinstance(result, BaseException):
                logger.error(f"Exception sending {method.value} notification", {
                    "history_id": alert.id
                }, error=result)
                result = self._failed(method, str(result) or type(result).__name__)

            delivery_status[method.value] = self._status_entry(result)
            logger.log_delivery(alert.id, method.value, result.success, result.error)

        delivered = any(entry["status"] == DeliveryState.SENT.value for entry in delivery_status.values())
        status = AlertStatus.SENT if delivered else AlertStatus.FAILED
        sent_at = self.clock() if delivered else None

        await self.store.complete_delivery(alert.id, status, delivery_status, sent_at)

        alert.status = status
        alert.delivery_status = delivery_status
        alert.sent_at = sent_at
        return delivery_status

    async def _attempt(self, method: NotificationMethod, user, alert: AlertHistory,
                       override_config: Optional[Dict]) -> DeliveryResult:
        channel = self.channels.get(method)
        if channel is None:
            return self._failed(method, f"No channel registered for {method.value}")
        return await channel.send(user, alert, override_config or {})

    def _failed(self, method: NotificationMethod, error: str) -> DeliveryResult:
        return DeliveryResult(success=False, method=method, delivered_at=self.clock(), error=error)

    def _status_entry(self, result: DeliveryResult) -> Dict:
        entry = {
            "status": DeliveryState.SENT.value if result.success else DeliveryState.FAILED.value,
            "timestamp": (result.delivered_at or self.clock()).isoformat(),
        }
        if result.error:
            entry["error"] = result.error
        if result.status_code is not None:
            entry["statusCode"] = result.status_code
        return entry

    async def drain(self) -> None:
        """Wait for every in-flight delivery to finish"""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    @property
    def pending_deliveries(self) -> int:
        return len(self._tasks)

    # ==================== User actions and maintenance ====================

    async def acknowledge(self, history_id: str, user_id: str) -> Optional[AlertHistory]:
        return await self.store.set_history_status(history_id, user_id, AlertStatus.ACKNOWLEDGED)

    async def dismiss(self, history_id: str, user_id: str) -> Optional[AlertHistory]:
        return await self.store.set_history_status(history_id, user_id, AlertStatus.DISMISSED)

    async def reactivate_rule(self, rule_id: str, user_id: Optional[str] = None) -> Optional[AlertRule]:
        return await self.store.reactivate_rule(rule_id, user_id)

    async def get_alert_history(self, user_id: str, status: Optional[AlertStatus] = None,
                                limit: int = 100) -> List[AlertHistory]:
        return await self.store.list_history(user_id, status=status, limit=limit)

    async def get_alert_stats(self, user_id: str, days: int = 7) -> Dict:
        since = self.clock() - timedelta(days=days)
        return await self.store.get_alert_stats(user_id, since)

    async def cleanup_old_alerts(self, retention_days: int = 30) -> int:
        """Delete alert history older than the retention window"""
        cutoff = self.clock() - timedelta(days=retention_days)
        deleted = await self.store.delete_history_before(cutoff)
        logger.info(f"Cleaned up {deleted} old alert history records", {
            "retention_days": retention_days
        })
        return deleted

    async def close(self) -> None:
        await self.drain()
        for channel in self.channels.values():
            await channel.close()
