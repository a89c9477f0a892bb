"""Soil moisture sensor (simulated random walk).

How it behaves:
  Idle   -> moisture drops 0.3-1.8 % per tick (evaporation, plant uptake)
            plus a little symmetric jitter.
  Valve  -> moisture rises 1-3 % per tick.

Rise must stay faster than fall: the autonomous controller starts at
min and stops at the bottom of the optimal band, and episodes only
close if watering outpaces the drying in between.

Unlike the environment sensors this one is stateful: each reading
starts from the previous one, and the envelope plays no part in it.
"""

import logging

from config import MOISTURE_DRY_RATE, MOISTURE_NOISE, MOISTURE_WATER_RATE
from sensors.base import BaseSensor

logger = logging.getLogger(__name__)


class SoilMoistureSensor(BaseSensor):

    def set_value(self, value: float) -> None:
        """Force the current moisture (used when seeding a scenario)."""
        self._value = max(0.0, min(100.0, float(value)))

    def _simulate(self, envelope, elapsed: float, watering: bool) -> float:
        moisture = self._value
        if watering:
            moisture = min(100.0, moisture + self._rng.uniform(*MOISTURE_WATER_RATE))
        else:
            moisture = max(0.0, moisture - self._rng.uniform(*MOISTURE_DRY_RATE))
            moisture += self.jitter(MOISTURE_NOISE)
        return max(0.0, min(100.0, moisture))
