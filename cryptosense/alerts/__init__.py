"""Alert rule evaluation, message rendering and market event monitoring."""

from cryptosense.alerts.evaluator import AlertEvaluator, compare
from cryptosense.alerts.indicators import PriceHistory, calculate_rsi, calculate_sma
from cryptosense.alerts.templates import build_trigger_data, render_title, render_message

__all__ = [
    "AlertEvaluator",
    "compare",
    "PriceHistory",
    "calculate_rsi",
    "calculate_sma",
    "build_trigger_data",
    "render_title",
    "render_message",
]
