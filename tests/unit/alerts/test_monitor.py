"""Unit tests for AlertMonitor event mapping and end-to-end triggering."""
import asyncio
from unittest.mock import AsyncMock

import pytest

from conftest import make_rule
from cryptosense.alerts.monitor import AlertMonitor
from cryptosense.core.exceptions import PersistenceError
from cryptosense.core.models.data_models import (
    CorrelationUpdate,
    FundingRateUpdate,
    LiquidationEvent,
    OpenInterestUpdate,
    PriceUpdate,
    SentimentUpdate,
)
from cryptosense.core.models.enums import AlertStatus, AlertType, LiquidationSide, NotificationMethod
from cryptosense.notifications.dispatcher import NotificationDispatcher


def price(symbol="BTC", value=43250.0, change_percent=1.2, volume=1000.0, source="binance"):
    return PriceUpdate(
        symbol=symbol, price=value, change_24h=500.0, change_percent_24h=change_percent,
        volume_24h=volume, high_24h=value + 100, low_24h=value - 100,
        timestamp=1709294400000, source=source,
    )


@pytest.fixture
def dispatcher(store, clock, email_channel):
    return NotificationDispatcher(store, {NotificationMethod.EMAIL: email_channel}, clock=clock)


@pytest.fixture
def monitor(store, dispatcher):
    return AlertMonitor(store, dispatcher)


@pytest.mark.asyncio
async def test_price_alert_end_to_end(monitor, dispatcher, store, user, clock, email_channel):
    await store.save(make_rule(cooldown_minutes=60))

    assert await monitor.process_event(price(value=43250)) == 1
    await dispatcher.drain()

    clock.advance(minutes=10)
    assert await monitor.process_event(price(value=43500)) == 0
    await dispatcher.drain()

    history = await store.list_history("user-1")
    assert len(history) == 1
    assert history[0].status == AlertStatus.SENT
    assert history[0].trigger_data["currentValue"] == 43250
    assert len(email_channel.delivered) == 1


@pytest.mark.asyncio
async def test_price_below_threshold_does_not_fire(monitor, store, user):
    await store.save(make_rule())
    assert await monitor.process_event(price(value=42000)) == 0


@pytest.mark.asyncio
async def test_funding_rule(monitor, dispatcher, store, user):
    await store.save(make_rule(alert_type=AlertType.FUNDING_RATE, symbol="ETH",
                               conditions={"threshold": 0.0005, "comparison": "above"}))
    event = FundingRateUpdate(symbol="ETH", funding_rate=0.001, next_funding_time=0,
                              mark_price=3000.0, timestamp=0)

    assert await monitor.process_event(event) == 1
    await dispatcher.drain()

    alert = (await store.list_history("user-1"))[0]
    assert alert.trigger_data["percentage"] == 109.5


@pytest.mark.asyncio
async def test_liquidation_rule(monitor, store, user):
    await store.save(make_rule(alert_type=AlertType.LIQUIDATION, conditions={"threshold": 1_000_000}))
    small = LiquidationEvent(symbol="BTC", side=LiquidationSide.LONG, price=40000, quantity=10, timestamp=0)
    large = LiquidationEvent(symbol="BTC", side=LiquidationSide.SHORT, price=40000, quantity=50, timestamp=0)

    assert await monitor.process_event(small) == 0
    assert await monitor.process_event(large) == 1


@pytest.mark.asyncio
async def test_sentiment_rule(monitor, store, user):
    await store.save(make_rule(alert_type=AlertType.SENTIMENT,
                               conditions={"threshold": 20, "comparison": "below"}))
    event = SentimentUpdate(fear_greed_index=12, fear_greed_classification="Extreme Fear", timestamp=0)

    assert await monitor.process_event(event) == 1


@pytest.mark.asyncio
async def test_cross_asset_rule(monitor, store, user):
    await store.save(make_rule(alert_type=AlertType.CROSS_ASSET,
                               conditions={"threshold": 0.3, "comparison": "below",
                                           "parameters": {"against": "ETH"}}))
    event = CorrelationUpdate(matrix={"BTC": {"BTC": 1.0, "ETH": 0.12}, "ETH": {"BTC": 0.12, "ETH": 1.0}},
                              timestamp=0)

    assert await monitor.process_event(event) == 1


@pytest.mark.asyncio
async def test_cross_asset_rule_without_target_does_not_block_others(monitor, store, user):
    await store.save(make_rule(id="rule-broken", alert_type=AlertType.CROSS_ASSET,
                               conditions={"threshold": 0.3, "comparison": "below",
                                           "parameters": {"against": None}}))
    await store.save(make_rule(alert_type=AlertType.CROSS_ASSET,
                               conditions={"threshold": 0.3, "comparison": "below",
                                           "parameters": {"against": "ETH"}}))
    event = CorrelationUpdate(matrix={"BTC": {"BTC": 1.0, "ETH": 0.12}, "ETH": {"BTC": 0.12, "ETH": 1.0}},
                              timestamp=0)

    assert await monitor.process_event(event) == 1
    history = await store.list_history("user-1")
    assert [alert.alert_rule_id for alert in history] == ["rule-1"]


@pytest.mark.asyncio
async def test_volume_windows_are_kept_per_source(monitor, store, user):
    await store.save(make_rule(alert_type=AlertType.VOLUME_SPIKE, conditions={"percentage": 25}))

    fired = 0
    for _ in range(4):
        fired += await monitor.process_event(price(volume=20000, source="binance"))
        fired += await monitor.process_event(price(volume=10000, source="coinbase"))

    assert fired == 0


@pytest.mark.asyncio
async def test_volume_spike_against_trailing_average(monitor, store, user):
    await store.save(make_rule(alert_type=AlertType.VOLUME_SPIKE, conditions={"percentage": 100}))

    assert await monitor.process_event(price(volume=1000)) == 0
    assert await monitor.process_event(price(volume=1100)) == 0
    assert await monitor.process_event(price(volume=5000)) == 1


@pytest.mark.asyncio
async def test_rsi_rule_waits_for_history(monitor, store, user):
    await store.save(make_rule(alert_type=AlertType.TECHNICAL_INDICATOR,
                               conditions={"threshold": 70, "comparison": "above", "indicator": "rsi",
                                           "parameters": {"period": 14}}))

    assert await monitor.process_event(price(value=100)) == 0

    monitor.history.extend("BTC", [100 + i for i in range(20)])
    assert await monitor.process_event(price(value=121)) == 1


@pytest.mark.asyncio
async def test_unrouted_event_is_ignored(monitor):
    assert await monitor.process_event(OpenInterestUpdate(symbol="BTC", open_interest=1.0, timestamp=0)) == 0


@pytest.mark.asyncio
async def test_persistence_error_does_not_stop_other_rules(monitor, dispatcher, store, user):
    await store.save(make_rule(id="rule-1"))
    await store.save(make_rule(id="rule-2"))
    original = store.record_trigger
    calls = []

    async def flaky(rule, history, now):
        calls.append(rule.id)
        if len(calls) == 1:
            raise PersistenceError("record_trigger failed")
        return await original(rule, history, now)

    store.record_trigger = flaky

    assert await monitor.process_event(price()) == 1
    assert len(calls) == 2


@pytest.mark.asyncio
async def test_queue_worker(monitor, dispatcher, store, user):
    await store.save(make_rule())
    monitor.process_event = AsyncMock(return_value=1)

    monitor.start()
    await monitor.on_event(price())
    await asyncio.wait_for(monitor._queue.join(), timeout=1)
    await monitor.stop()

    monitor.process_event.assert_awaited_once()


@pytest.mark.asyncio
async def test_full_queue_drops_events(store, dispatcher):
    monitor = AlertMonitor(store, dispatcher, queue_size=1)
    await monitor.on_event(price())
    await monitor.on_event(price())
    assert monitor._queue.qsize() == 1
