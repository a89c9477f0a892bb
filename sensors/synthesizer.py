"""Signal synthesis: one simulated reading per metric per tick.

SimulationClock holds the single process start time every waveform is
phased against. SignalSynthesizer owns one sensor per metric and keeps
only the current value of each; history is the dashboard's problem.
"""

import logging
import random
import time
from typing import Dict, Optional

from config import CYCLE_DURATION, METRICS, PHASE_OFFSETS, SOIL_MOISTURE
from sensors.environment import WaveformSensor
from sensors.soil_moisture import SoilMoistureSensor

logger = logging.getLogger(__name__)

MOISTURE_ID = "soilMoisture"


class SimulationClock:
    """Wall-clock elapsed time since the station started. Set once."""

    def __init__(self, start_time: Optional[float] = None, time_fn=time.time):
        self._time_fn = time_fn
        self.start_time = time_fn() if start_time is None else start_time

    def elapsed(self) -> float:
        return self._time_fn() - self.start_time


class SignalSynthesizer:
    """Drives every simulated sensor from the active thresholds."""

    def __init__(self, clock: SimulationClock, cycle_duration: float = CYCLE_DURATION,
                 phase_offsets: Optional[Dict[str, float]] = None,
                 rng: Optional[random.Random] = None):
        self.clock = clock
        offsets = dict(PHASE_OFFSETS)
        offsets.update(phase_offsets or {})
        rng = rng or random.Random()

        self.moisture_sensor = SoilMoistureSensor(MOISTURE_ID, SOIL_MOISTURE, rng=rng)
        self.sensors: Dict[str, WaveformSensor] = {
            metric_id: WaveformSensor(
                metric_id, cfg, rng=rng,
                period=cycle_duration,
                phase_offset=offsets.get(metric_id, 0.0),
            )
            for metric_id, cfg in METRICS.items()
        }

    @property
    def moisture(self) -> float:
        return self.moisture_sensor.value

    def set_moisture(self, value: float) -> None:
        self.moisture_sensor.set_value(value)

    def step(self, thresholds, watering: bool) -> Dict[str, float]:
        """Advance every sensor one tick. Returns raw values by metric id."""
        elapsed = self.clock.elapsed()
        self.moisture_sensor.read(None, elapsed, watering)
        for metric_id, sensor in self.sensors.items():
            envelope = thresholds.get(METRICS[metric_id]["threshold_key"])
            if envelope is None:
                continue
            sensor.read(envelope, elapsed, watering)
        return self.values()

    def values(self) -> Dict[str, float]:
        """Current raw values, moisture first."""
        result = {MOISTURE_ID: self.moisture_sensor.value}
        for metric_id, sensor in self.sensors.items():
            result[metric_id] = sensor.value
        return result

    def readings(self) -> Dict[str, float]:
        """Current values rounded for display, keyed by metric id."""
        result = {}
        for sensor in [self.moisture_sensor, *self.sensors.values()]:
            reading = sensor.reading()
            if reading is not None:
                result[reading.metric_id] = reading.value
        return result
