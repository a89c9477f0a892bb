"""Watering valve state machine.

    IDLE --(moisture <= min, autonomous)--> WATERING
    IDLE --(manual start / schedule fire)--> WATERING
    WATERING --(moisture >= optimal min, autonomous)--> IDLE
    WATERING --(manual stop / schedule stop)--> IDLE

Three parties can move the valve: the control loop (autonomous moisture
control, only while not in manual mode), an operator (manual commands)
and the scheduler (which ignores manual mode entirely). All of them go
through start()/stop(), which hold the machine lock, so the
is_on <-> episode_start pairing can never be observed half-written.

Repeated start() or stop() calls are no-ops.
"""

import logging
import threading
from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum, auto
from typing import Callable, Optional

from core.event_log import EventLog, WateringEvent

logger = logging.getLogger(__name__)


class WateringState(Enum):
    IDLE = auto()       # Valve closed
    WATERING = auto()   # Valve open, episode in progress


@dataclass(frozen=True)
class ActuatorState:
    is_on: bool = False
    manual_mode: bool = False
    episode_start: Optional[datetime] = None
    moisture_at_start: Optional[float] = None


def _round1(value: Optional[float]) -> Optional[float]:
    return None if value is None else round(value, 1)


class WateringStateMachine:
    """Owns the ActuatorState and every transition of it."""

    def __init__(self, event_log: Optional[EventLog] = None,
                 moisture_probe: Optional[Callable[[], Optional[float]]] = None,
                 clock: Callable[[], datetime] = datetime.now):
        self.event_log = event_log if event_log is not None else EventLog()
        self._moisture_probe = moisture_probe or (lambda: None)
        self._clock = clock
        # Re-entrant so the control loop can hold it for a whole tick
        # while still calling start()/stop().
        self.lock = threading.RLock()
        self._state = ActuatorState()

    # ------------------------------------------------------------------
    # Read side
    # ------------------------------------------------------------------

    @property
    def state(self) -> WateringState:
        with self.lock:
            return WateringState.WATERING if self._state.is_on else WateringState.IDLE

    @property
    def actuator(self) -> ActuatorState:
        """Immutable copy of the current actuator state."""
        with self.lock:
            return self._state

    @property
    def is_on(self) -> bool:
        return self.actuator.is_on

    @property
    def manual_mode(self) -> bool:
        return self.actuator.manual_mode

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def start(self, reason: str = "command") -> bool:
        """Open the valve. Returns False if it was already open."""
        with self.lock:
            if self._state.is_on:
                return False
            moisture = _round1(self._moisture_probe())
            self._state = replace(
                self._state,
                is_on=True,
                episode_start=self._clock(),
                moisture_at_start=moisture,
            )
        logger.info("Watering started at %s%% (%s)", moisture, reason)
        return True

    def stop(self, reason: str = "command") -> Optional[WateringEvent]:
        """Close the valve and record the episode. None if already closed."""
        with self.lock:
            if not self._state.is_on:
                return None
            end = self._clock()
            start = self._state.episode_start
            event = WateringEvent(
                start=start,
                end=end,
                duration_seconds=int(round((end - start).total_seconds())),
                moisture_start=self._state.moisture_at_start,
                moisture_end=_round1(self._moisture_probe()),
            )
            self._state = replace(
                self._state, is_on=False, episode_start=None, moisture_at_start=None,
            )
            self.event_log.append(event, now=end)
        logger.info(
            "Watering stopped at %s%% after %ds (%s)",
            event.moisture_end, event.duration_seconds, reason,
        )
        return event

    def set_manual_mode(self, enabled: bool) -> None:
        """Hand the valve to the operator (True) or back to autonomous control.

        Never opens or closes the valve by itself.
        """
        with self.lock:
            if self._state.manual_mode == bool(enabled):
                return
            self._state = replace(self._state, manual_mode=bool(enabled))
        logger.info("Manual mode %s", "on" if enabled else "off")

    def start_manual(self) -> bool:
        with self.lock:
            self.set_manual_mode(True)
            return self.start(reason="manual")

    def stop_manual(self) -> Optional[WateringEvent]:
        with self.lock:
            self.set_manual_mode(False)
            return self.stop(reason="manual")

    def step(self, moisture: float, envelope) -> None:
        """Autonomous moisture control for one tick.

        Starts at or below ``envelope.min``, stops at or above
        ``envelope.optimal_min``. Does nothing in manual mode.
        """
        with self.lock:
            if self._state.manual_mode:
                return
            if not self._state.is_on and moisture <= envelope.min:
                self.start(reason="moisture below min")
            elif self._state.is_on and moisture >= envelope.optimal_min:
                self.stop(reason="optimal moisture reached")
