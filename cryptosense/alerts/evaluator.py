"""
Alert Evaluator

Stateless predicate over (rule, observation). Evaluation runs two gates in
order: eligibility (active and outside cooldown), then the type-specific
condition.
"""

import math
from datetime import datetime
from typing import Callable, Optional

from cryptosense.core.logging.structured_logger import get_logger
from cryptosense.core.models.data_models import MarketObservation
from cryptosense.core.models.enums import AlertType, Comparison
from cryptosense.core.timeutils import utcnow

logger = get_logger(__name__)

# Types whose configured percentage is compared against |observed change|
_MAGNITUDE_TYPES = (AlertType.PRICE_CHANGE, AlertType.VOLUME_SPIKE)


def compare(value: float, threshold: float, comparison: Comparison) -> bool:
    """Strict comparison for above/below; tolerance match for equal."""
    if comparison == Comparison.ABOVE:
        return value > threshold
    if comparison == Comparison.BELOW:
        return value < threshold
    return math.isclose(value, threshold, rel_tol=1e-9, abs_tol=1e-12)


class AlertEvaluator:
    """Decides whether an alert rule fires for an observation"""

    def __init__(self, clock: Callable[[], datetime] = utcnow):
        self.clock = clock

    def is_eligible(self, rule, now: Optional[datetime] = None) -> bool:
        """Eligibility gate: rule is active and its cooldown has elapsed"""
        return rule.should_trigger(now or self.clock())

    def condition_met(self, rule, observation: MarketObservation) -> bool:
        """Condition gate for the rule's alert type"""
        conditions = rule.conditions or {}
        alert_type = rule.alert_type

        if observation.symbol.upper() != (rule.symbol or "").upper():
            return False

        if alert_type in _MAGNITUDE_TYPES:
            required = conditions.get("percentage", conditions.get("threshold"))
            if required is None or observation.percentage is None:
                return False
            return abs(observation.percentage) >= abs(float(required))

        threshold = conditions.get("threshold")
        if threshold is None:
            logger.debug("Alert rule has no threshold", {"rule_id": rule.id})
            return False
        threshold = float(threshold)

        if alert_type == AlertType.PRICE_ABOVE:
            return observation.current_value > threshold
        if alert_type == AlertType.PRICE_BELOW:
            return observation.current_value < threshold

        if alert_type == AlertType.TECHNICAL_INDICATOR:
            wanted = (conditions.get("indicator") or "").lower()
            if not wanted or (observation.indicator or "").lower() != wanted:
                return False

        if alert_type == AlertType.CROSS_ASSET:
            against = ((conditions.get("parameters") or {}).get("against") or "").upper()
            if against and str((observation.raw or {}).get("against") or "").upper() != against:
                return False

        try:
            comparison = Comparison(conditions.get("comparison", Comparison.ABOVE.value))
        except ValueError:
            logger.warning("Unknown comparison operator", {
                "rule_id": rule.id,
                "comparison": conditions.get("comparison"),
            })
            return False

        return compare(observation.current_value, threshold, comparison)

    def evaluate(self, rule, observation: MarketObservation,
                 now: Optional[datetime] = None) -> bool:
        """Both gates; the condition is not examined for an ineligible rule"""
        if not self.is_eligible(rule, now):
            return False
        return self.condition_met(rule, observation)
