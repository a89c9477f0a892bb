"""Time-of-day watering schedules.

While enabled, the scheduler wakes every 60 seconds (counted from the
moment it was enabled, not aligned to :00) and fires every enabled
schedule whose day set contains today and whose "HH:MM" equals the
current local hour and minute. A fire opens the valve and arms a
one-shot timer that closes it after the schedule's duration.

Missed minutes are not caught up. Manual mode is ignored; schedules act
on the valve directly. A deferred stop always runs: if the valve was
closed in between it is a no-op, and if a different episode is running
by then, that episode is closed.

Disabling stops the periodic check only. Stops already armed still run.
"""

import logging
import threading
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Dict, FrozenSet, List, Optional

from config import SCHEDULER_INTERVAL, WEEKDAYS
from core.data_source import DataSource

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Schedule:
    id: str
    time: str                   # "HH:MM", local time
    days: FrozenSet[str]        # lowercase weekday names
    duration_seconds: float
    enabled: bool = True

    @classmethod
    def from_dict(cls, raw) -> "Schedule":
        """Build a Schedule from a client payload.

        Accepts ``duration`` or ``durationSeconds``. Raises ValueError
        when the payload cannot describe a schedule at all.
        """
        if not isinstance(raw, dict):
            raise ValueError(f"schedule must be a mapping, got {type(raw).__name__}")
        time_str = raw.get("time")
        if not isinstance(time_str, str):
            raise ValueError("schedule needs a 'time' string (HH:MM)")

        duration = raw.get("durationSeconds", raw.get("duration"))
        try:
            duration = float(duration)
        except (TypeError, ValueError):
            raise ValueError(f"invalid schedule duration: {duration!r}")
        if duration < 0:
            raise ValueError(f"schedule duration must not be negative: {duration}")

        days = raw.get("days") or []
        if isinstance(days, str):
            days = [days]
        days = frozenset(str(d).strip().lower() for d in days)
        unknown = days - set(WEEKDAYS)
        if unknown:
            logger.warning("Schedule has unknown day names: %s", ", ".join(sorted(unknown)))

        return cls(
            id=str(raw.get("id") or uuid.uuid4().hex[:8]),
            time=time_str.strip(),
            days=days,
            duration_seconds=duration,
            enabled=bool(raw.get("enabled", True)),
        )

    def to_dict(self) -> Dict:
        return {
            "id": self.id,
            "time": self.time,
            "days": [d for d in WEEKDAYS if d in self.days] + sorted(self.days - set(WEEKDAYS)),
            "durationSeconds": self.duration_seconds,
            "enabled": self.enabled,
        }

    def is_due(self, now: datetime) -> bool:
        return (
            self.enabled
            and WEEKDAYS[now.weekday()] in self.days
            and self.time == now.strftime("%H:%M")
        )


class Scheduler(DataSource):
    """Fires schedules against a WateringStateMachine."""

    def __init__(self, machine, bus=None, config: Optional[Dict] = None,
                 clock: Callable[[], datetime] = datetime.now,
                 timer_factory: Callable = threading.Timer):
        config = dict(config or {})
        config.setdefault("interval", config.get("check_interval", SCHEDULER_INTERVAL))
        # The enabling call does the first check itself.
        config["initial_delay"] = True
        super().__init__("schedules", bus, config)
        self.machine = machine
        self._clock = clock
        self._timer_factory = timer_factory
        self._lock = threading.Lock()
        self._schedules: Dict[str, Schedule] = {}
        self._timers: Dict[str, object] = {}
        self._last_fired: Dict[str, str] = {}  # id -> "YYYY-MM-DD HH:MM"
        self._enabled = False

    # ------------------------------------------------------------------
    # Schedule table
    # ------------------------------------------------------------------

    def add_schedule(self, schedule: Schedule) -> bool:
        """Insert or replace by id."""
        with self._lock:
            existed = schedule.id in self._schedules
            self._schedules[schedule.id] = schedule
        logger.info("Schedule %s: %s", "updated" if existed else "added", schedule.id)
        return True

    def delete_schedule(self, schedule_id: str) -> bool:
        with self._lock:
            removed = self._schedules.pop(schedule_id, None)
            self._last_fired.pop(schedule_id, None)
        if removed is None:
            logger.warning("Schedule not found: %s", schedule_id)
            return False
        logger.info("Schedule deleted: %s", schedule_id)
        return True

    def get_schedules(self) -> List[Schedule]:
        with self._lock:
            return list(self._schedules.values())

    @property
    def enabled(self) -> bool:
        return self._enabled

    def status(self) -> Dict:
        return {
            "enabled": self._enabled,
            "schedules": [s.to_dict() for s in self.get_schedules()],
        }

    # ------------------------------------------------------------------
    # Enable / disable
    # ------------------------------------------------------------------

    def set_enabled(self, enabled: bool) -> None:
        if enabled:
            if self._enabled:
                return
            self._enabled = True
            logger.info("Scheduler started")
            self.check()
            self.start()
        else:
            if not self._enabled:
                return
            self._enabled = False
            self.stop()
            logger.info("Scheduler stopped")

    def fetch(self):
        fired = self.check()
        if not fired:
            return None
        return {"fired": fired, **self.status()}

    def shutdown(self) -> None:
        """Stop checking and abandon any armed stops."""
        self._enabled = False
        self.stop()
        with self._lock:
            timers = list(self._timers.values())
            self._timers.clear()
        for timer in timers:
            timer.cancel()

    # ------------------------------------------------------------------
    # Firing
    # ------------------------------------------------------------------

    def check(self, now: Optional[datetime] = None) -> List[str]:
        """Fire every schedule due at ``now``. Returns the fired ids.

        A schedule fires at most once per matching minute, even if the
        scheduler is toggled and checks the same minute twice.
        """
        if not self._enabled:
            return []
        now = now or self._clock()
        minute = now.strftime("%Y-%m-%d %H:%M")
        fired = []
        for schedule in self.get_schedules():
            if not schedule.is_due(now):
                continue
            with self._lock:
                if self._last_fired.get(schedule.id) == minute:
                    continue
                self._last_fired[schedule.id] = minute
            logger.info("Schedule triggered: %s at %s", schedule.id, now.strftime("%H:%M"))
            self._trigger(schedule)
            fired.append(schedule.id)
        return fired

    def _trigger(self, schedule: Schedule) -> None:
        # Start and episode read as one step, so no tick can slip between them.
        with self.machine.lock:
            self.machine.start(reason=f"schedule {schedule.id}")
            episode = self.machine.actuator.episode_start
        self._arm_stop(schedule, episode)

    def _arm_stop(self, schedule: Schedule, episode: Optional[datetime]) -> None:
        """One-shot stop keyed by schedule id. Re-arming replaces the old one."""
        armed = {}

        def fire():
            self._deferred_stop(schedule.id, episode, armed.get("timer"))

        timer = self._timer_factory(schedule.duration_seconds, fire)
        timer.daemon = True
        armed["timer"] = timer
        with self._lock:
            previous = self._timers.pop(schedule.id, None)
            self._timers[schedule.id] = timer
        if previous is not None:
            previous.cancel()
        timer.start()

    def _deferred_stop(self, schedule_id: str, episode: Optional[datetime], timer) -> None:
        with self._lock:
            if self._timers.get(schedule_id) is timer:
                del self._timers[schedule_id]
        # The world may have moved on since the schedule fired.
        current = self.machine.actuator
        if not current.is_on:
            logger.info("Scheduled watering %s: valve already closed", schedule_id)
        elif current.episode_start != episode:
            logger.warning(
                "Scheduled watering %s: closing an episode it did not start", schedule_id,
            )
        self.machine.stop(reason=f"schedule {schedule_id} complete")
        logger.info("Scheduled watering completed: %s", schedule_id)

    def pending_stops(self) -> List[str]:
        with self._lock:
            return list(self._timers)
