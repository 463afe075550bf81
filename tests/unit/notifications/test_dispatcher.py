"""Unit tests for NotificationDispatcher."""
import asyncio
from unittest.mock import AsyncMock

import pytest

from conftest import T0, ExplodingChannel, RecordingChannel, make_rule, make_user
from cryptosense.core.exceptions import PersistenceError
from cryptosense.core.models.data_models import MarketObservation
from cryptosense.core.models.enums import AlertStatus, NotificationMethod
from cryptosense.notifications.dispatcher import NotificationDispatcher


def btc(price: float) -> MarketObservation:
    return MarketObservation(symbol="BTC", current_value=price, raw={"source": "binance"})


@pytest.fixture
def dispatcher(store, clock, email_channel, failing_sms_channel):
    return NotificationDispatcher(store, {
        NotificationMethod.EMAIL: email_channel,
        NotificationMethod.SMS: failing_sms_channel,
    }, clock=clock)


class TestProcessAlert:

    @pytest.mark.asyncio
    async def test_trigger_creates_pending_history_then_sends(self, dispatcher, store, user, email_channel):
        rule = await store.save(make_rule())

        alert = await dispatcher.process_alert(rule, btc(43250))
        assert alert is not None
        assert alert.title == "BTC Price Alert: Above $43000"
        assert alert.trigger_data["currentValue"] == 43250
        assert alert.created_at == T0

        await dispatcher.drain()

        stored = await store.get_history(alert.id)
        assert stored.status == AlertStatus.SENT
        assert stored.sent_at == T0
        assert stored.delivery_status["email"]["status"] == "sent"
        assert len(email_channel.delivered) == 1
        assert (await store.get_rule(rule.id)).trigger_count == 1

    @pytest.mark.asyncio
    async def test_cooldown_blocks_second_trigger(self, dispatcher, store, user, clock):
        rule = await store.save(make_rule(cooldown_minutes=60))

        assert await dispatcher.process_alert(rule, btc(43250)) is not None
        clock.advance(minutes=10)
        assert await dispatcher.process_alert(rule, btc(43500)) is None
        await dispatcher.drain()

        assert len(await store.list_history("user-1")) == 1
        assert (await store.get_rule(rule.id)).trigger_count == 1

    @pytest.mark.asyncio
    async def test_one_time_rule_fires_once_under_concurrency(self, dispatcher, store, user, clock):
        rule = await store.save(make_rule(is_one_time=True))

        results = await asyncio.gather(
            dispatcher.process_alert(rule, btc(43250)),
            dispatcher.process_alert(rule, btc(43300)),
        )
        await dispatcher.drain()

        assert sum(result is not None for result in results) == 1
        assert dispatcher._rule_locks == {}
        assert len(await store.list_history("user-1")) == 1
        stored = await store.get_rule(rule.id)
        assert stored.is_active is False
        assert stored.trigger_count == 1

        clock.advance(days=1)
        assert await dispatcher.process_alert(rule, btc(44000)) is None

    @pytest.mark.asyncio
    async def test_persistence_failure_leaves_rule_eligible(self, dispatcher, store, user, email_channel):
        rule = await store.save(make_rule())
        store.record_trigger = AsyncMock(side_effect=PersistenceError("record_trigger failed"))

        with pytest.raises(PersistenceError):
            await dispatcher.process_alert(rule, btc(43250))

        assert email_channel.delivered == []
        assert dispatcher._rule_locks == {}
        assert dispatcher.pending_deliveries == 0
        stored = await store.get_rule(rule.id)
        assert stored.trigger_count == 0
        assert dispatcher.evaluator.is_eligible(stored)


class TestSendNotifications:

    @pytest.mark.asyncio
    async def test_one_success_is_enough(self, dispatcher, store, user):
        rule = await store.save(make_rule(notification_methods=["email", "sms"]))

        alert = await dispatcher.process_alert(rule, btc(43250))
        await dispatcher.drain()

        stored = await store.get_history(alert.id)
        assert stored.status == AlertStatus.SENT
        assert stored.delivery_status["email"]["status"] == "sent"
        assert stored.delivery_status["sms"] == {
            "status": "failed",
            "timestamp": stored.delivery_status["sms"]["timestamp"],
            "error": "sms endpoint returned HTTP 502",
            "statusCode": 502,
        }

    @pytest.mark.asyncio
    async def test_all_channels_failing_marks_failed(self, dispatcher, store, user):
        rule = await store.save(make_rule(notification_methods=["sms"]))

        alert = await dispatcher.process_alert(rule, btc(43250))
        await dispatcher.drain()

        stored = await store.get_history(alert.id)
        assert stored.status == AlertStatus.FAILED
        assert stored.sent_at is None

    @pytest.mark.asyncio
    async def test_crashing_channel_is_isolated(self, store, user, clock, email_channel):
        dispatcher = NotificationDispatcher(store, {
            NotificationMethod.EMAIL: email_channel,
            NotificationMethod.PUSH: ExplodingChannel(),
        }, clock=clock)
        rule = await store.save(make_rule(notification_methods=["push", "email"]))

        alert = await dispatcher.process_alert(rule, btc(43250))
        await dispatcher.drain()

        stored = await store.get_history(alert.id)
        assert stored.status == AlertStatus.SENT
        assert stored.delivery_status["push"]["status"] == "failed"
        assert stored.delivery_status["push"]["error"] == "adapter crashed"
        assert len(email_channel.delivered) == 1

    @pytest.mark.asyncio
    async def test_unregistered_channel(self, dispatcher, store, user):
        rule = await store.save(make_rule(notification_methods=["webhook"]))

        alert = await dispatcher.process_alert(rule, btc(43250))
        await dispatcher.drain()

        stored = await store.get_history(alert.id)
        assert stored.status == AlertStatus.FAILED
        assert stored.delivery_status["webhook"]["error"] == "No channel registered for webhook"

    @pytest.mark.asyncio
    async def test_notifications_disabled(self, dispatcher, store, email_channel):
        await store.save(make_user(notifications_enabled=False))
        rule = await store.save(make_rule())

        alert = await dispatcher.process_alert(rule, btc(43250))
        await dispatcher.drain()

        stored = await store.get_history(alert.id)
        assert stored.status == AlertStatus.FAILED
        assert stored.delivery_status["email"]["error"] == "Notifications disabled for user"
        assert email_channel.delivered == []

    @pytest.mark.asyncio
    async def test_missing_user(self, dispatcher, store, user):
        rule = await store.save(make_rule())
        store.get_user = AsyncMock(return_value=None)

        alert = await dispatcher.process_alert(rule, btc(43250))
        await dispatcher.drain()

        stored = await store.get_history(alert.id)
        assert stored.status == AlertStatus.FAILED
        assert stored.delivery_status["email"]["error"] == "User not found"

    @pytest.mark.asyncio
    async def test_rule_override_config_reaches_channel(self, dispatcher, store, user, email_channel):
        rule = await store.save(make_rule(notification_config={"email": "desk@example.com"}))

        await dispatcher.process_alert(rule, btc(43250))
        await dispatcher.drain()

        assert email_channel.delivered[0][2] == {"email": "desk@example.com"}

    @pytest.mark.asyncio
    async def test_delivery_persistence_failure_is_logged(self, dispatcher, store, user):
        rule = await store.save(make_rule())
        store.complete_delivery = AsyncMock(side_effect=PersistenceError("complete_delivery failed"))

        alert = await dispatcher.process_alert(rule, btc(43250))
        await dispatcher.drain()

        assert (await store.get_history(alert.id)).status == AlertStatus.PENDING


class TestUserActions:

    @pytest.mark.asyncio
    async def test_acknowledge_and_dismiss(self, dispatcher, store, user):
        rule = await store.save(make_rule())
        alert = await dispatcher.process_alert(rule, btc(43250))
        await dispatcher.drain()

        acknowledged = await dispatcher.acknowledge(alert.id, "user-1")
        assert acknowledged.status == AlertStatus.ACKNOWLEDGED
        assert acknowledged.acknowledged_at is not None

        dismissed = await dispatcher.dismiss(alert.id, "user-1")
        assert dismissed.status == AlertStatus.DISMISSED

    @pytest.mark.asyncio
    async def test_stats_and_cleanup(self, dispatcher, store, user, clock):
        rule = await store.save(make_rule(notification_methods=["email"]))
        await dispatcher.process_alert(rule, btc(43250))
        await dispatcher.drain()

        stats = await dispatcher.get_alert_stats("user-1", days=7)
        assert stats["total"] == 1
        assert stats["successRate"] == 100

        clock.advance(days=31)
        assert await dispatcher.cleanup_old_alerts(retention_days=30) == 1
        assert await dispatcher.get_alert_history("user-1") == []

    @pytest.mark.asyncio
    async def test_reactivate_after_one_time_trigger(self, dispatcher, store, user, clock):
        rule = await store.save(make_rule(is_one_time=True))
        await dispatcher.process_alert(rule, btc(43250))
        await dispatcher.drain()

        reactivated = await dispatcher.reactivate_rule(rule.id, "user-1")
        assert reactivated.is_active is True
        assert reactivated.trigger_count == 1

        clock.advance(minutes=1)
        assert await dispatcher.process_alert(reactivated, btc(43400)) is not None
        await dispatcher.drain()

    @pytest.mark.asyncio
    async def test_close_drains_and_closes_channels(self, dispatcher, email_channel, failing_sms_channel):
        await dispatcher.close()
        assert email_channel.closed
        assert failing_sms_channel.closed
