"""
Alert Monitor

Maps normalized market events onto alert observations, evaluates the active
rules they concern and hands fired rules to the notification dispatcher.
Events are queued so slow rule evaluation never stalls a feed.
"""

import asyncio
from collections import deque
from typing import Any, Deque, Dict, List, Optional, Tuple

from cryptosense.alerts.evaluator import AlertEvaluator
from cryptosense.alerts.indicators import PriceHistory
from cryptosense.core.exceptions import PersistenceError
from cryptosense.core.logging.structured_logger import get_logger
from cryptosense.core.models.data_models import (
    CorrelationUpdate,
    FundingRateUpdate,
    LiquidationEvent,
    MarketObservation,
    PriceUpdate,
    SentimentUpdate,
)
from cryptosense.core.models.enums import AlertType
from cryptosense.database.models import AlertRule
from cryptosense.database.rule_store import RuleStore
from cryptosense.notifications.dispatcher import NotificationDispatcher

logger = get_logger(__name__)

PRICE_TYPES = (
    AlertType.PRICE_ABOVE,
    AlertType.PRICE_BELOW,
    AlertType.PRICE_CHANGE,
    AlertType.VOLUME_SPIKE,
    AlertType.TECHNICAL_INDICATOR,
)
SENTIMENT_TYPES = (AlertType.SENTIMENT, AlertType.ETF_FLOW)


class AlertMonitor:
    """Evaluates alert rules against the market event stream"""

    def __init__(self, store: RuleStore, dispatcher: NotificationDispatcher,
                 history: Optional[PriceHistory] = None,
                 evaluator: Optional[AlertEvaluator] = None,
                 queue_size: int = 1000,
                 volume_window: int = 20):
        self.store = store
        self.dispatcher = dispatcher
        self.history = history or PriceHistory()
        self.evaluator = evaluator or dispatcher.evaluator
        self.volume_window = volume_window

        self._volumes: Dict[Tuple[str, str], Deque[float]] = {}
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=queue_size)
        self._worker: Optional[asyncio.Task] = None

    # ==================== Queue ====================

    async def on_event(self, event: Any) -> None:
        """Hub handler: enqueue without waiting on rule evaluation"""
        try:
            self._queue.put_nowait(event)
        except asyncio.QueueFull:
            logger.warning("Alert monitor queue full, dropping event", {"event": type(event).__name__})

    def start(self) -> None:
        if self._worker is None or self._worker.done():
            self._worker = asyncio.create_task(self._run())

    async def stop(self) -> None:
        if self._worker:
            self._worker.cancel()
            try:
                await self._worker
            except asyncio.CancelledError:
                pass
            self._worker = None

    async def _run(self) -> None:
        while True:
            event = await self._queue.get()
            try:
                await self.process_event(event)
            except Exception as e:
                logger.error("Alert evaluation failed", {"event": type(event).__name__}, error=e)
            finally:
                self._queue.task_done()

    # ==================== Evaluation ====================

    async def process_event(self, event: Any) -> int:
        """Evaluate every rule the event concerns; returns the number fired"""
        pairs = await self._observations_for(event)
        fired = 0
        for rule, observation in pairs:
            if not self.evaluator.evaluate(rule, observation):
                continue
            try:
                if await self.dispatcher.process_alert(rule, observation) is not None:
                    fired += 1
            except PersistenceError as e:
                logger.error("Alert rule processing aborted", {"rule_id": rule.id}, error=e)
        return fired

    async def _observations_for(self, event: Any) -> List[Tuple[AlertRule, MarketObservation]]:
        if isinstance(event, PriceUpdate):
            return await self._price_observations(event)

        if isinstance(event, FundingRateUpdate):
            rules = await self.store.find_active_rules(event.symbol, [AlertType.FUNDING_RATE])
            observation = MarketObservation(
                symbol=event.symbol,
                current_value=event.funding_rate,
                percentage=round(event.annualized_percent, 2),
                raw=event.to_dict(),
            )
            return [(rule, observation) for rule in rules]

        if isinstance(event, LiquidationEvent):
            rules = await self.store.find_active_rules(event.symbol, [AlertType.LIQUIDATION])
            observation = MarketObservation(
                symbol=event.symbol,
                current_value=event.total_value,
                price_change=event.price,
                volume=event.quantity,
                raw=event.to_dict(),
            )
            return [(rule, observation) for rule in rules]

        if isinstance(event, SentimentUpdate):
            rules = await self.store.find_active_rules(alert_types=SENTIMENT_TYPES)
            pairs = []
            for rule in rules:
                value = event.fear_greed_index if rule.alert_type == AlertType.SENTIMENT else event.etf_net_flow
                pairs.append((rule, MarketObservation(
                    symbol=rule.symbol,
                    current_value=value,
                    raw=event.to_dict(),
                )))
            return pairs

        if isinstance(event, CorrelationUpdate):
            return await self._correlation_observations(event)

        return []

    async def _price_observations(self, event: PriceUpdate) -> List[Tuple[AlertRule, MarketObservation]]:
        volume_change = self._track_volume(event.source, event.symbol, event.volume_24h)
        rules = await self.store.find_active_rules(event.symbol, PRICE_TYPES)

        pairs = []
        for rule in rules:
            if rule.alert_type == AlertType.VOLUME_SPIKE:
                observation = MarketObservation(
                    symbol=event.symbol,
                    current_value=event.volume_24h,
                    percentage=volume_change,
                    volume=event.volume_24h,
                    raw=event.to_dict(),
                )
            elif rule.alert_type == AlertType.TECHNICAL_INDICATOR:
                observation = self._indicator_observation(rule, event)
                if observation is None:
                    continue
            else:
                observation = MarketObservation(
                    symbol=event.symbol,
                    current_value=event.price,
                    percentage=event.change_percent_24h,
                    price_change=event.change_24h,
                    volume=event.volume_24h,
                    raw=event.to_dict(),
                )
            pairs.append((rule, observation))
        return pairs

    def _track_volume(self, source: str, symbol: str, volume: float) -> Optional[float]:
        """Percent change of ``volume`` against the trailing window average.

        Windows are kept per venue; each reports its own 24h volume.
        """
        window = self._volumes.setdefault((source, symbol), deque(maxlen=self.volume_window))
        baseline = sum(window) / len(window) if window else None
        window.append(volume)
        if not baseline:
            return None
        return round((volume - baseline) / baseline * 100, 2)

    def _indicator_observation(self, rule: AlertRule, event: PriceUpdate) -> Optional[MarketObservation]:
        conditions = rule.conditions or {}
        indicator = (conditions.get("indicator") or "").lower()
        period = int((conditions.get("parameters") or {}).get("period", 14 if indicator == "rsi" else 20))

        if indicator == "rsi":
            value = self.history.rsi(event.symbol, period)
        elif indicator == "sma":
            value = self.history.sma(event.symbol, period)
        else:
            logger.debug("Unsupported indicator", {"rule_id": rule.id, "indicator": indicator})
            return None

        if value is None:
            return None
        return MarketObservation(
            symbol=event.symbol,
            current_value=round(value, 2),
            indicator=indicator,
            raw=event.to_dict(),
        )

    async def _correlation_observations(self, event: CorrelationUpdate) -> List[Tuple[AlertRule, MarketObservation]]:
        rules = await self.store.find_active_rules(alert_types=[AlertType.CROSS_ASSET])
        pairs = []
        for rule in rules:
            against = str(((rule.conditions or {}).get("parameters") or {}).get("against") or "").upper()
            if not against:
                logger.debug("Cross-asset rule has no comparison asset", {"rule_id": rule.id})
                continue
            value = event.matrix.get(rule.symbol, {}).get(against)
            if value is None:
                continue
            pairs.append((rule, MarketObservation(
                symbol=rule.symbol,
                current_value=value,
                raw={"against": against, "matrix": event.to_dict()["matrix"]},
            )))
        return pairs
