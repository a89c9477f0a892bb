"""Base class for the simulated sensors.

Every metric the station reports comes from a BaseSensor subclass.
There is no hardware behind them: each subclass synthesizes one value
per control tick from the active threshold envelope.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional
import logging
import random

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SensorReading:
    metric_id: str
    value: float
    unit: str


class BaseSensor(ABC):
    """Abstract base class for simulated sensors.

    Subclasses must implement:
        _simulate(envelope, elapsed, watering) - return the next raw value

    The base class provides:
        read(...)   - unified read with error handling, keeps the last value
        value       - latest raw (unrounded) value
        reading()   - latest value as a rounded SensorReading
    """

    def __init__(self, metric_id: str, cfg: dict, rng: Optional[random.Random] = None):
        self.metric_id = metric_id
        self._cfg = cfg
        self.unit = cfg.get("unit", "")
        self.precision = cfg.get("precision", 1)
        self._rng = rng or random.Random()
        self._value: Optional[float] = cfg.get("initial")
        self._consecutive_failures = 0

    # ------------------------------------------------------------------
    # Abstract methods - subclasses MUST implement
    # ------------------------------------------------------------------

    @abstractmethod
    def _simulate(self, envelope, elapsed: float, watering: bool) -> float:
        """Return the next simulated value."""
        ...

    # ------------------------------------------------------------------
    # Public interface
    # ------------------------------------------------------------------

    @property
    def value(self) -> Optional[float]:
        return self._value

    def jitter(self, span: float) -> float:
        """Symmetric uniform noise with total width ``span``."""
        return (self._rng.random() - 0.5) * span

    def read(self, envelope, elapsed: float, watering: bool = False) -> Optional[float]:
        """Advance the sensor one tick.

        A failing simulation keeps the previous value so one bad
        envelope never takes the whole tick down.
        """
        try:
            self._value = self._simulate(envelope, elapsed, watering)
            self._consecutive_failures = 0
        except Exception as exc:
            self._consecutive_failures += 1
            if self._consecutive_failures == 1 or self._consecutive_failures % 50 == 0:
                logger.warning(
                    "%s: simulation failed (%d consecutive) - %s",
                    self.metric_id, self._consecutive_failures, exc,
                )
        return self._value

    def reading(self) -> Optional[SensorReading]:
        if self._value is None:
            return None
        return SensorReading(self.metric_id, round(self._value, self.precision), self.unit)

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} {self.metric_id}={self._value}>"
