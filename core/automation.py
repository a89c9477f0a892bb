"""Threshold-based automation rules for sensor readings.

Rules come from the profile store (profiles.yaml, ``automation_rules``):

    automation_rules:
      soil_moisture:
        if_below_min: start_irrigation
        if_below_optimal: schedule_irrigation
        if_above_max: stop_irrigation

Every tick each metric with a rule set is compared against its active
envelope. At most one rule fires per metric, checked in this order:

    below_min  >  below_optimal  >  above_max

A value under min is also under optimal; only the first match is
reported. The output is advisory telemetry for the dashboard's
notification layer and is rebuilt from scratch each tick. The valve
itself is only driven by the moisture control in core.watering.
"""

import logging
import threading
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from config import RULE_METRICS

logger = logging.getLogger(__name__)

# Precedence order
CONDITIONS = ["below_min", "below_optimal", "above_max"]


@dataclass(frozen=True)
class AutomationRule:
    below_min: Optional[str] = None
    below_optimal: Optional[str] = None
    above_max: Optional[str] = None

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "AutomationRule":
        return cls(
            below_min=raw.get("if_below_min") or raw.get("belowMin"),
            below_optimal=raw.get("if_below_optimal") or raw.get("belowOptimal"),
            above_max=raw.get("if_above_max") or raw.get("aboveMax"),
        )

    def action_for(self, condition: str) -> Optional[str]:
        return getattr(self, condition)


def _matches(condition: str, value: float, envelope) -> Optional[float]:
    """Return the threshold crossed for ``condition``, or None."""
    if condition == "below_min":
        return envelope.min if value < envelope.min else None
    if condition == "below_optimal":
        floor = envelope.optimal_floor
        return floor if value < floor else None
    return envelope.max if value > envelope.max else None


class AutomationEvaluator:
    """Evaluates current readings against the rule table."""

    def __init__(self, rules: Optional[Dict[str, Dict]] = None):
        self._lock = threading.Lock()
        self._rules: Dict[str, AutomationRule] = {}
        self._triggered: List[Dict] = []
        self.set_rules(rules or {})

    def set_rules(self, rules: Dict[str, Dict]) -> None:
        parsed = {}
        for metric, raw in (rules or {}).items():
            if metric not in RULE_METRICS:
                logger.warning("Skipping rules for unknown metric: %s", metric)
                continue
            if not isinstance(raw, dict):
                logger.warning("Skipping malformed rule set for %s: %r", metric, raw)
                continue
            parsed[metric] = AutomationRule.from_dict(raw)
        with self._lock:
            self._rules = parsed
        logger.info("Automation rules loaded: %d metrics", len(parsed))

    @property
    def rules(self) -> Dict[str, AutomationRule]:
        with self._lock:
            return dict(self._rules)

    def evaluate(self, readings: Dict[str, float], thresholds) -> List[Dict]:
        """Check every rule set once. Replaces the previous result."""
        triggered = []
        for metric, rule in self.rules.items():
            threshold_key, reading_id, multiplier = RULE_METRICS[metric]
            envelope = thresholds.get(threshold_key)
            raw_value = readings.get(reading_id)
            if envelope is None or raw_value is None:
                continue
            value = raw_value * multiplier

            for condition in CONDITIONS:
                threshold = _matches(condition, value, envelope)
                if threshold is None:
                    continue
                action = rule.action_for(condition)
                if not action:
                    # No action configured for this condition; a lower
                    # precedence condition may still fire.
                    continue
                triggered.append({
                    "sensor": metric,
                    "condition": condition,
                    "action": action,
                    "value": round(value, 2),
                    "threshold": threshold,
                })
                break

        with self._lock:
            self._triggered = triggered
        for item in triggered:
            logger.debug("Rule triggered: %s %s -> %s", item["sensor"], item["condition"], item["action"])
        return triggered

    @property
    def triggered(self) -> List[Dict]:
        with self._lock:
            return list(self._triggered)
