"""Threshold envelopes and the config update formats that carry them.

Two payload shapes reach the station:

  Legacy    {"minThreshold": 60, "optimalMin": 70, "optimalMax": 80}
            Soil moisture only, max is implied to be 100.

  Extended  {"thresholds": {"soilMoisture": {"min": 60, "optimal": [70, 80], "max": 100},
                            "airTemperature": {"min": 15, "optimal": 22, "max": 30}, ...}}

Both are normalized once, at the boundary, into Envelope /
MoistureEnvelope objects. Nothing downstream looks at raw dicts.
No range validation is done: min > max is stored as given.
"""

import copy
import logging
import threading
from dataclasses import dataclass
from typing import Any, Dict, Optional, Union

from config import DEFAULT_THRESHOLDS

logger = logging.getLogger(__name__)

MOISTURE_KEY = "soilMoisture"


@dataclass(frozen=True)
class Envelope:
    min: float
    optimal: float
    max: float

    @property
    def optimal_floor(self) -> float:
        """Lower edge of the optimal band (what "below optimal" compares to)."""
        return self.optimal

    def to_dict(self) -> Dict[str, float]:
        return {"min": self.min, "optimal": self.optimal, "max": self.max}


@dataclass(frozen=True)
class MoistureEnvelope:
    """Soil moisture carries an optimal band rather than a single point."""

    min: float
    optimal_min: float
    optimal_max: float
    max: float

    @property
    def optimal_floor(self) -> float:
        return self.optimal_min

    def to_dict(self) -> Dict[str, float]:
        return {
            "min": self.min,
            "optimalMin": self.optimal_min,
            "optimalMax": self.optimal_max,
            "max": self.max,
        }


AnyEnvelope = Union[Envelope, MoistureEnvelope]


@dataclass(frozen=True)
class LegacyThresholds:
    min_threshold: Optional[float]
    optimal_min: Optional[float]
    optimal_max: Optional[float]


@dataclass(frozen=True)
class ExtendedThresholds:
    thresholds: Dict[str, Dict[str, Any]]


def _split_optimal(value: Any):
    """Return (low, high) for a scalar or [low, high] optimal."""
    if isinstance(value, (list, tuple)):
        if len(value) >= 2:
            return value[0], value[1]
        if len(value) == 1:
            return value[0], value[0]
        return None, None
    return value, value


def _number(key: str, field: str, value: Any) -> Optional[float]:
    """Coerce one threshold field to float. Unusable values count as missing."""
    if value is None:
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        logger.warning("Ignoring non-numeric %s.%s: %r", key, field, value)
        return None
    if number != number:  # NaN compares false against everything
        logger.warning("Ignoring non-numeric %s.%s: %r", key, field, value)
        return None
    return number


def _pick(new: Optional[float], old: float) -> float:
    return old if new is None else new


def build_envelope(key: str, raw: Dict[str, Any], previous: Optional[AnyEnvelope] = None) -> AnyEnvelope:
    """Turn one raw envelope dict into its canonical type.

    Every field is coerced to float ("30" -> 30.0). Fields that are
    missing from ``raw`` or cannot be read as numbers keep their value
    from ``previous``.
    """
    lo = _number(key, "min", raw.get("min"))
    hi = _number(key, "max", raw.get("max"))

    if key == MOISTURE_KEY:
        prev = previous if isinstance(previous, MoistureEnvelope) else None
        if "optimal" in raw:
            low, high = _split_optimal(raw.get("optimal"))
        else:
            low, high = raw.get("optimalMin"), raw.get("optimalMax")
        return MoistureEnvelope(
            min=_pick(lo, prev.min if prev else 0),
            optimal_min=_pick(_number(key, "optimalMin", low), prev.optimal_min if prev else 0),
            optimal_max=_pick(_number(key, "optimalMax", high), prev.optimal_max if prev else 0),
            max=_pick(hi, prev.max if prev else 100),
        )

    prev = previous if isinstance(previous, Envelope) else None
    optimal = raw.get("optimal")
    if isinstance(optimal, (list, tuple)):
        low, high = _split_optimal(optimal)
        low = _number(key, "optimal", low)
        high = _number(key, "optimal", high)
        optimal = None if low is None or high is None else (low + high) / 2.0
    else:
        optimal = _number(key, "optimal", optimal)
    return Envelope(
        min=_pick(lo, prev.min if prev else 0),
        optimal=_pick(optimal, prev.optimal if prev else 0),
        max=_pick(hi, prev.max if prev else 0),
    )


def classify(settings: Dict[str, Any]) -> list:
    """Split an update payload into its Legacy / Extended parts."""
    parts = []
    if not isinstance(settings, dict):
        return parts
    if "minThreshold" in settings:
        parts.append(LegacyThresholds(
            min_threshold=settings.get("minThreshold"),
            optimal_min=settings.get("optimalMin"),
            optimal_max=settings.get("optimalMax"),
        ))
    thresholds = settings.get("thresholds")
    if isinstance(thresholds, dict):
        parts.append(ExtendedThresholds(thresholds=thresholds))
    return parts


def normalize_settings(settings: Dict[str, Any], current: Dict[str, AnyEnvelope]) -> Dict[str, AnyEnvelope]:
    """Return the envelopes an update replaces, keyed by threshold key."""
    updates: Dict[str, AnyEnvelope] = {}
    for part in classify(settings):
        if isinstance(part, LegacyThresholds):
            updates[MOISTURE_KEY] = build_envelope(
                MOISTURE_KEY,
                {
                    "min": part.min_threshold,
                    "optimalMin": part.optimal_min,
                    "optimalMax": part.optimal_max,
                    "max": 100,
                },
                current.get(MOISTURE_KEY),
            )
        else:
            for key, raw in part.thresholds.items():
                if not isinstance(raw, dict):
                    logger.warning("Ignoring non-mapping threshold for %s: %r", key, raw)
                    continue
                updates[key] = build_envelope(key, raw, updates.get(key, current.get(key)))
    return updates


class ThresholdConfig:
    """Thread-safe holder for the active envelope of every metric."""

    def __init__(self, thresholds: Optional[Dict[str, Dict[str, Any]]] = None):
        self._lock = threading.Lock()
        raw = copy.deepcopy(thresholds if thresholds is not None else DEFAULT_THRESHOLDS)
        self._envelopes: Dict[str, AnyEnvelope] = {
            key: build_envelope(key, value) for key, value in raw.items()
        }

    def get(self, key: str) -> Optional[AnyEnvelope]:
        with self._lock:
            return self._envelopes.get(key)

    @property
    def moisture(self) -> MoistureEnvelope:
        with self._lock:
            return self._envelopes[MOISTURE_KEY]

    def apply(self, settings: Dict[str, Any]) -> Dict[str, AnyEnvelope]:
        """Apply a legacy or extended update. Returns the replaced envelopes."""
        with self._lock:
            updates = normalize_settings(settings, self._envelopes)
            self._envelopes.update(updates)
        if updates:
            logger.info("Thresholds updated: %s", ", ".join(sorted(updates)))
        return updates

    def to_dict(self) -> Dict[str, Dict[str, float]]:
        with self._lock:
            return {key: env.to_dict() for key, env in self._envelopes.items()}
