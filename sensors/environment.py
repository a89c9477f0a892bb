"""Environment sensors: temperature, air humidity, light, pH.

Each one follows a triangle wave across its threshold envelope with a
small amount of noise on top. The noise can push a reading slightly
past the configured min or max. Thresholds are advisory, so only
light gets clamped (it is a percentage).

Light thresholds are configured in lux but the sensor reports percent
of full sun, so the envelope is scaled before the wave is evaluated.
"""

import logging

from sensors.base import BaseSensor
from sensors.waveform import WaveformGenerator

logger = logging.getLogger(__name__)


class WaveformSensor(BaseSensor):

    def __init__(self, metric_id: str, cfg: dict, rng=None,
                 period: float = 120.0, phase_offset: float = 0.0):
        super().__init__(metric_id, cfg, rng)
        self.generator = WaveformGenerator(period, phase_offset)
        self.noise = cfg.get("noise", 0.0)
        self.scale = cfg.get("scale", 1.0)
        self.clamp = cfg.get("clamp")

    def _simulate(self, envelope, elapsed: float, watering: bool) -> float:
        value = self.generator.value(
            envelope.min * self.scale,
            envelope.optimal * self.scale,
            envelope.max * self.scale,
            elapsed,
        )
        value += self.jitter(self.noise)
        if self.clamp:
            low, high = self.clamp
            value = max(low, min(high, value))
        return value
