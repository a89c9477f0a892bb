"""Control loop: the single fixed-period driver of the station.

Each tick, in order:
  1. SignalSynthesizer advances every sensor (moisture depends on the valve)
  2. AutomationEvaluator rebuilds the triggered-action list
  3. WateringStateMachine runs its autonomous moisture check
  4. a snapshot is assembled and published on the "state" topic

The whole tick runs under the state machine lock, so the scheduler's
timers and inbound commands land either before or after a tick, never
in the middle of one.
"""

import logging
from datetime import datetime
from typing import Any, Dict, Optional

from config import TICK_INTERVAL
from core.automation import AutomationEvaluator
from core.data_source import DataSource
from core.event_log import EventLog
from core.thresholds import ThresholdConfig
from core.watering import WateringStateMachine
from sensors.synthesizer import SignalSynthesizer, SimulationClock

logger = logging.getLogger(__name__)

STATE_TOPIC = "state"


class ControlLoop(DataSource):
    """Owns the simulation state. One instance per process, passed by reference."""

    def __init__(self, bus=None, config: Optional[Dict] = None,
                 thresholds: Optional[ThresholdConfig] = None,
                 synthesizer: Optional[SignalSynthesizer] = None,
                 evaluator: Optional[AutomationEvaluator] = None,
                 clock=datetime.now):
        config = dict(config or {})
        config.setdefault("interval", config.get("tick_interval", TICK_INTERVAL))
        super().__init__(STATE_TOPIC, bus, config)

        self.thresholds = thresholds or ThresholdConfig()
        self.synthesizer = synthesizer or SignalSynthesizer(
            SimulationClock(),
            cycle_duration=config.get("cycle_duration", 120.0),
            phase_offsets=config.get("phase_offsets"),
        )
        self.evaluator = evaluator or AutomationEvaluator()
        self.event_log = EventLog()
        self.machine = WateringStateMachine(
            event_log=self.event_log,
            moisture_probe=lambda: self.synthesizer.moisture,
            clock=clock,
        )
        self._clock = clock

    @property
    def lock(self):
        return self.machine.lock

    # ------------------------------------------------------------------
    # Tick
    # ------------------------------------------------------------------

    def fetch(self) -> Dict[str, Any]:
        self.tick()
        return self.snapshot()

    def tick(self) -> None:
        with self.lock:
            values = self.synthesizer.step(self.thresholds, watering=self.machine.is_on)
            self.evaluator.evaluate(values, self.thresholds)
            self.machine.step(values["soilMoisture"], self.thresholds.moisture)

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def apply_config(self, settings: Dict[str, Any]) -> bool:
        """Apply a legacy or extended threshold update. True if anything changed."""
        with self.lock:
            updates = self.thresholds.apply(settings or {})
        if not updates:
            logger.warning("Config update carried no thresholds: %r", settings)
        return bool(updates)

    def set_automation_rules(self, rules: Dict[str, Dict]) -> None:
        with self.lock:
            self.evaluator.set_rules(rules)

    def start_manual(self) -> bool:
        logger.info("Manual watering mode activated")
        return self.machine.start_manual()

    def stop_manual(self):
        logger.info("Manual watering mode deactivated")
        return self.machine.stop_manual()

    # ------------------------------------------------------------------
    # Outbound
    # ------------------------------------------------------------------

    def snapshot(self) -> Dict[str, Any]:
        with self.lock:
            actuator = self.machine.actuator
            return {
                "timestamp": self._clock().isoformat(),
                "sensors": self.synthesizer.readings(),
                "isWatering": actuator.is_on,
                "manualMode": actuator.manual_mode,
                "wateringEvents": self.event_log.to_list(),
                "config": self.thresholds.to_dict(),
                "triggeredActions": self.evaluator.triggered,
            }

    def broadcast(self) -> Dict[str, Any]:
        """Publish a snapshot right away, outside the regular tick."""
        data = self.snapshot()
        if self.bus is not None:
            self.bus.publish(self.topic, data)
        return data
