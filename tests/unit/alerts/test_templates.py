"""Unit tests for alert title and message rendering."""
from conftest import T0, make_rule
from cryptosense.alerts.templates import build_trigger_data, render_message, render_title
from cryptosense.core.models.data_models import MarketObservation
from cryptosense.core.models.enums import AlertType


def test_trigger_data_snapshot():
    rule = make_rule()
    observation = MarketObservation(symbol="BTC", current_value=43250.0, percentage=2.5,
                                    raw={"source": "binance"})

    data = build_trigger_data(rule, observation)

    assert data["symbol"] == "BTC"
    assert data["alertType"] == "price_above"
    assert data["currentValue"] == 43250.0
    assert data["threshold"] == 43000
    assert data["rawData"] == {"source": "binance"}


def test_price_above_title_and_message():
    rule = make_rule(description="Watch the range high")
    data = build_trigger_data(rule, MarketObservation(symbol="BTC", current_value=43250.5))

    title = render_title(rule, data)
    message = render_message(rule, data, T0)

    assert title == "BTC Price Alert: Above $43000"
    assert message.startswith("Alert: BTC breakout\n\n")
    assert "BTC price is now $43,250.50, above your threshold of $43,000." in message
    assert "Triggered at: 2024-03-01 12:00:00 UTC" in message
    assert message.endswith("Alert Description: Watch the range high")


def test_message_without_description():
    rule = make_rule()
    data = build_trigger_data(rule, MarketObservation(symbol="BTC", current_value=43010))

    message = render_message(rule, data, T0)

    assert "$43,010," in message
    assert "Alert Description" not in message


def test_funding_rate_message():
    rule = make_rule(alert_type=AlertType.FUNDING_RATE, conditions={"threshold": 0.0005})
    data = build_trigger_data(rule, MarketObservation(symbol="ETH", current_value=0.001, percentage=109.5))

    assert render_title(rule, data) == "ETH Funding Rate Alert"
    assert "0.1000%" in render_message(rule, data, T0)


def test_liquidation_title():
    rule = make_rule(alert_type=AlertType.LIQUIDATION, conditions={"threshold": 1_000_000})
    data = build_trigger_data(rule, MarketObservation(symbol="BTC", current_value=2_000_000, price_change=40000))

    assert render_title(rule, data) == "BTC Large Liquidation Detected"
    assert "$2,000,000 at $40,000" in render_message(rule, data, T0)
