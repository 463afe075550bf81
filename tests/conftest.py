"""
Pytest configuration and fixtures
"""
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

import pytest
import pytest_asyncio

from cryptosense.core.exceptions import DeliveryError
from cryptosense.core.models.enums import AlertSeverity, AlertStatus, AlertType, NotificationMethod
from cryptosense.database import RuleStore, close_db, create_engine, create_session_factory, init_db
from cryptosense.database.models import AlertHistory, AlertRule, User, UserPreferences
from cryptosense.notifications.channels.base import NotificationChannel

T0 = datetime(2024, 3, 1, 12, 0, 0)


class FakeClock:
    """Settable naive-UTC clock."""

    def __init__(self, now: datetime = T0):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


class RecordingChannel(NotificationChannel):
    """Channel that records deliveries and optionally fails them."""

    def __init__(self, method: NotificationMethod, error: Optional[Exception] = None,
                 status_code: Optional[int] = 200):
        self.method = method
        self.error = error
        self.status_code = status_code
        self.delivered: List[Any] = []
        self.closed = False

    async def _deliver(self, user, alert, override_config: Dict[str, Any]) -> Optional[int]:
        if self.error is not None:
            raise self.error
        self.delivered.append((user.id, alert.id, dict(override_config)))
        return self.status_code

    async def close(self) -> None:
        self.closed = True


class ExplodingChannel:
    """Broken adapter whose ``send`` raises before returning a coroutine."""

    method = NotificationMethod.PUSH

    def send(self, user, alert, override_config=None):
        raise RuntimeError("adapter crashed")

    async def close(self) -> None:
        pass


def make_rule(**overrides) -> AlertRule:
    fields = dict(
        id="rule-1",
        user_id="user-1",
        symbol="BTC",
        alert_type=AlertType.PRICE_ABOVE,
        name="BTC breakout",
        description=None,
        severity=AlertSeverity.HIGH,
        conditions={"threshold": 43000, "comparison": "above"},
        notification_methods=[NotificationMethod.EMAIL.value],
        notification_config=None,
        is_active=True,
        is_one_time=False,
        trigger_count=0,
        last_triggered_at=None,
        cooldown_minutes=0,
        created_at=T0 - timedelta(days=1),
    )
    fields.update(overrides)
    return AlertRule(**fields)


def make_history(**overrides) -> AlertHistory:
    fields = dict(
        id="hist-1",
        user_id="user-1",
        alert_rule_id="rule-1",
        symbol="BTC",
        title="BTC Price Alert: Above $43000",
        message="Alert: BTC breakout",
        severity=AlertSeverity.HIGH,
        status=AlertStatus.PENDING,
        notification_methods=["email"],
        trigger_data={"currentValue": 43250.0},
        created_at=T0,
    )
    fields.update(overrides)
    return AlertHistory(**fields)


def make_user(**overrides) -> User:
    preferences = overrides.pop("notification_preferences", {
        "sms": {"phone_number": "+15550001111"},
        "push": {"tokens": ["device-token-1"]},
        "webhook": {"url": "https://hooks.example.com/alerts", "secret": "s3cret"},
    })
    fields = dict(
        id="user-1",
        email="trader@example.com",
        username="trader",
        notifications_enabled=True,
        created_at=T0 - timedelta(days=30),
    )
    fields.update(overrides)
    user = User(**fields)
    user.preferences = UserPreferences(
        id=f"prefs-{fields['id']}",
        user_id=fields["id"],
        notification_preferences=preferences,
    )
    return user


@pytest.fixture
def clock():
    return FakeClock()


@pytest_asyncio.fixture
async def engine():
    engine = create_engine("sqlite+aiosqlite:///:memory:")
    await init_db(engine)
    yield engine
    await close_db(engine)


@pytest_asyncio.fixture
async def store(engine):
    return RuleStore(create_session_factory(engine))


@pytest_asyncio.fixture
async def user(store):
    return await store.save(make_user())


@pytest.fixture
def email_channel():
    return RecordingChannel(NotificationMethod.EMAIL, status_code=None)


@pytest.fixture
def failing_sms_channel():
    return RecordingChannel(NotificationMethod.SMS, error=DeliveryError("sms endpoint returned HTTP 502", 502))
