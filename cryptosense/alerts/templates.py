"""Title and message rendering for triggered alerts."""
from datetime import datetime
from typing import Any, Dict, Optional

from cryptosense.core.models.enums import AlertType


def _money(value: Optional[float]) -> str:
    if value is None:
        return "n/a"
    text = f"{value:,.2f}"
    return text[:-3] if text.endswith(".00") else text


def _number(value: Optional[float]) -> str:
    if value is None:
        return "n/a"
    return f"{value:g}"


def build_trigger_data(rule, observation) -> Dict[str, Any]:
    """Snapshot of the observation at trigger time, stored on the history row."""
    return {
        "symbol": observation.symbol,
        "alertType": rule.alert_type.value,
        "currentValue": observation.current_value,
        "threshold": rule.threshold,
        "percentage": observation.percentage,
        "priceChange": observation.price_change,
        "volume": observation.volume,
        "indicator": observation.indicator,
        "rawData": dict(observation.raw or {}),
    }


def render_title(rule, trigger_data: Dict[str, Any]) -> str:
    symbol = trigger_data["symbol"]
    threshold = trigger_data.get("threshold")
    alert_type = rule.alert_type

    if alert_type == AlertType.PRICE_ABOVE:
        return f"{symbol} Price Alert: Above ${_number(threshold)}"
    if alert_type == AlertType.PRICE_BELOW:
        return f"{symbol} Price Alert: Below ${_number(threshold)}"
    if alert_type == AlertType.PRICE_CHANGE:
        return f"{symbol} Price Movement: {_number(trigger_data.get('percentage'))}% change"
    if alert_type == AlertType.VOLUME_SPIKE:
        return f"{symbol} Volume Spike Detected"
    if alert_type == AlertType.FUNDING_RATE:
        return f"{symbol} Funding Rate Alert"
    if alert_type == AlertType.LIQUIDATION:
        return f"{symbol} Large Liquidation Detected"
    if alert_type == AlertType.SENTIMENT:
        return f"{symbol} Sentiment Alert"
    if alert_type == AlertType.ETF_FLOW:
        return f"{symbol} ETF Flow Alert"
    if alert_type == AlertType.CROSS_ASSET:
        return f"{symbol} Cross-Asset Alert"
    if alert_type == AlertType.TECHNICAL_INDICATOR:
        return f"{symbol} Technical Indicator: {trigger_data.get('indicator')}"
    return f"{symbol} Alert: {rule.name}"


def render_message(rule, trigger_data: Dict[str, Any], triggered_at: datetime) -> str:
    """Plain text body shared by every channel.

    Layout: ``Alert: <name>``, a type-specific line, the trigger time and,
    when present, the rule description.
    """
    symbol = trigger_data["symbol"]
    current = trigger_data.get("currentValue")
    threshold = trigger_data.get("threshold")
    percentage = trigger_data.get("percentage")
    alert_type = rule.alert_type

    if alert_type == AlertType.PRICE_ABOVE:
        body = (f"{symbol} price is now ${_money(current)}, "
                f"above your threshold of ${_money(threshold)}.")
    elif alert_type == AlertType.PRICE_BELOW:
        body = (f"{symbol} price is now ${_money(current)}, "
                f"below your threshold of ${_money(threshold)}.")
    elif alert_type == AlertType.PRICE_CHANGE:
        body = f"{symbol} price has changed by {_number(percentage)}% to ${_money(current)}."
    elif alert_type == AlertType.VOLUME_SPIKE:
        body = (f"{symbol} is experiencing unusual volume: "
                f"{_money(trigger_data.get('volume'))} ({_number(percentage)}% increase).")
    elif alert_type == AlertType.FUNDING_RATE:
        body = (f"{symbol} funding rate is now {(current or 0) * 100:.4f}% "
                f"({_number(percentage)}% APR).")
    elif alert_type == AlertType.LIQUIDATION:
        body = (f"Large {symbol} liquidation detected: ${_money(current)} "
                f"at ${_money(trigger_data.get('priceChange'))}.")
    elif alert_type == AlertType.TECHNICAL_INDICATOR:
        body = (f"{symbol} {trigger_data.get('indicator')} signal triggered. "
                f"Current value: {_number(current)}.")
    else:
        body = f"{symbol} alert triggered. Current value: {_number(current)}."

    message = f"Alert: {rule.name}\n\n{body}"
    message += f"\n\nTriggered at: {triggered_at.strftime('%Y-%m-%d %H:%M:%S')} UTC"
    if rule.description:
        message += f"\n\nAlert Description: {rule.description}"
    return message
