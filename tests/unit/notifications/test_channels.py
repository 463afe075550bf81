"""Unit tests for notification channel adapters."""
import hashlib
import hmac
import json
import smtplib
from unittest.mock import AsyncMock, patch

import aiohttp
import pytest

from conftest import make_history, make_user
from cryptosense.core.models.config_schema import (
    EmailConfig,
    NotificationsConfig,
    PushConfig,
    SmsConfig,
    WebhookConfig,
)
from cryptosense.core.models.enums import NotificationMethod
from cryptosense.notifications.channels import (
    EmailChannel,
    PushChannel,
    SmsChannel,
    WebhookChannel,
    build_channels,
    sign_payload,
)


@pytest.fixture
def alert():
    return make_history(
        title="BTC Price Alert: Above $43000",
        message=(
            "Alert: BTC breakout\n\n"
            "BTC price is now $43,250, above your threshold of $43,000.\n\n"
            "Triggered at: 2024-03-01 12:00:00 UTC"
        ),
    )


def test_build_channels_covers_every_method():
    channels = build_channels(NotificationsConfig())
    assert set(channels) == set(NotificationMethod)
    assert all(channel.method == method for method, channel in channels.items())


class TestWebhookChannel:

    @pytest.fixture
    def channel(self):
        channel = WebhookChannel(WebhookConfig())
        channel.http.post = AsyncMock(return_value=(200, {"ok": True}))
        return channel

    @pytest.mark.asyncio
    async def test_signed_delivery(self, channel, alert):
        result = await channel.send(make_user(), alert)

        assert result.success
        assert result.status_code == 200
        url = channel.http.post.call_args.args[0]
        body = channel.http.post.call_args.kwargs["data"]
        headers = channel.http.post.call_args.kwargs["headers"]
        assert url == "https://hooks.example.com/alerts"
        assert headers["X-CryptoSense-Signature"] == sign_payload("s3cret", body)
        payload = json.loads(body)
        assert payload["event"] == "alert.triggered"
        assert payload["alert"]["id"] == alert.id

    @pytest.mark.asyncio
    async def test_override_url_without_secret(self, channel, alert):
        result = await channel.send(make_user(notification_preferences={}), alert,
                                    {"webhook_url": "https://other.example.com/hook"})

        assert result.success
        headers = channel.http.post.call_args.kwargs["headers"]
        assert "X-CryptoSense-Signature" not in headers

    @pytest.mark.asyncio
    async def test_missing_url(self, channel, alert):
        result = await channel.send(make_user(notification_preferences={}), alert)

        assert not result.success
        assert result.error == "No webhook URL configured for webhook notifications"
        channel.http.post.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_http_error_status(self, channel, alert):
        channel.http.post = AsyncMock(side_effect=aiohttp.ClientResponseError(None, (), status=500))

        result = await channel.send(make_user(), alert)

        assert not result.success
        assert result.status_code == 500
        assert result.error == "webhook endpoint returned HTTP 500"

    @pytest.mark.asyncio
    async def test_connection_error(self, channel, alert):
        channel.http.post = AsyncMock(side_effect=aiohttp.ClientConnectionError("refused"))

        result = await channel.send(make_user(), alert)

        assert not result.success
        assert result.error == "webhook request failed: refused"

    def test_signature_is_hmac_sha256(self):
        expected = hmac.new(b"key", b"body", hashlib.sha256).hexdigest()
        assert sign_payload("key", "body") == expected


class TestSmsChannel:

    @pytest.fixture
    def channel(self):
        channel = SmsChannel(SmsConfig(gateway_url="https://sms.example.com/send", api_key="k"))
        channel.http.post = AsyncMock(return_value=(202, {}))
        return channel

    @pytest.mark.asyncio
    async def test_sends_headline(self, channel, alert):
        result = await channel.send(make_user(), alert)

        assert result.success
        payload = channel.http.post.call_args.kwargs["json"]
        assert payload["to"] == "+15550001111"
        assert payload["body"] == (
            "BTC Price Alert: Above $43000: BTC price is now $43,250, above your threshold of $43,000."
        )

    @pytest.mark.asyncio
    async def test_missing_phone_number(self, channel, alert):
        result = await channel.send(make_user(notification_preferences={}), alert)

        assert not result.success
        assert result.error == "No phone number configured for SMS notifications"

    @pytest.mark.asyncio
    async def test_missing_gateway(self, alert):
        channel = SmsChannel(SmsConfig())
        result = await channel.send(make_user(), alert)

        assert not result.success
        assert result.error == "SMS gateway is not configured"

    def test_text_is_truncated(self, alert):
        alert.message = "Alert: x\n\n" + "y" * 300
        text = SmsChannel.format_text(alert)
        assert len(text) == 160
        assert text.endswith("...")


class TestPushChannel:

    @pytest.mark.asyncio
    async def test_sends_to_registered_tokens(self, alert):
        channel = PushChannel(PushConfig(gateway_url="https://push.example.com/send"))
        channel.http.post = AsyncMock(return_value=(200, {}))

        result = await channel.send(make_user(), alert)

        assert result.success
        payload = channel.http.post.call_args.kwargs["json"]
        assert payload["registration_ids"] == ["device-token-1"]
        assert payload["data"] == {"alertId": alert.id, "symbol": "BTC", "severity": "high"}

    @pytest.mark.asyncio
    async def test_missing_tokens(self, alert):
        channel = PushChannel(PushConfig(gateway_url="https://push.example.com/send"))
        result = await channel.send(make_user(notification_preferences={}), alert)

        assert not result.success
        assert result.error == "No push tokens configured for push notifications"


class TestEmailChannel:

    @pytest.fixture
    def channel(self):
        return EmailChannel(EmailConfig(smtp_host="smtp.test", smtp_user="alerts", smtp_password="pw"))

    @pytest.mark.asyncio
    async def test_sends_via_smtp(self, channel, alert):
        with patch("cryptosense.notifications.channels.email.smtplib.SMTP") as smtp:
            result = await channel.send(make_user(), alert)

        assert result.success
        server = smtp.return_value.__enter__.return_value
        server.starttls.assert_called_once()
        server.login.assert_called_once_with("alerts", "pw")
        message = server.send_message.call_args.args[0]
        assert message["To"] == "trader@example.com"
        assert message["Subject"] == "[Warning] BTC Price Alert: Above $43000"

    @pytest.mark.asyncio
    async def test_override_recipient(self, channel, alert):
        with patch("cryptosense.notifications.channels.email.smtplib.SMTP") as smtp:
            await channel.send(make_user(), alert, {"email": "desk@example.com"})

        message = smtp.return_value.__enter__.return_value.send_message.call_args.args[0]
        assert message["To"] == "desk@example.com"

    @pytest.mark.asyncio
    async def test_smtp_failure(self, channel, alert):
        with patch("cryptosense.notifications.channels.email.smtplib.SMTP",
                   side_effect=smtplib.SMTPConnectError(421, "busy")):
            result = await channel.send(make_user(), alert)

        assert not result.success
        assert result.error.startswith("SMTP error")

    @pytest.mark.asyncio
    async def test_unconfigured_smtp(self, alert):
        channel = EmailChannel(EmailConfig(smtp_host=""))
        result = await channel.send(make_user(), alert)

        assert not result.success
        assert result.error == "SMTP server is not configured"
