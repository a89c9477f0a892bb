"""Day-bounded history of completed watering episodes.

Events are appended when the valve closes and never edited. After every
append, anything that started before local midnight of the current day
is dropped, so the log only ever describes "today".
"""

import logging
import threading
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, List, Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WateringEvent:
    start: datetime
    end: datetime
    duration_seconds: int
    moisture_start: Optional[float]
    moisture_end: Optional[float]

    def to_dict(self) -> Dict:
        return {
            "start": self.start.isoformat(),
            "end": self.end.isoformat(),
            "durationSeconds": self.duration_seconds,
            "moistureStart": self.moisture_start,
            "moistureEnd": self.moisture_end,
        }


class EventLog:

    def __init__(self):
        self._lock = threading.Lock()
        self._events: List[WateringEvent] = []

    def append(self, event: WateringEvent, now: Optional[datetime] = None) -> None:
        with self._lock:
            self._events.append(event)
            self._purge(now or datetime.now())

    def _purge(self, now: datetime) -> None:
        midnight = now.replace(hour=0, minute=0, second=0, microsecond=0)
        kept = [e for e in self._events if e.start >= midnight]
        dropped = len(self._events) - len(kept)
        if dropped:
            logger.debug("EventLog: dropped %d events from previous days", dropped)
        self._events = kept

    def events(self) -> List[WateringEvent]:
        with self._lock:
            return list(self._events)

    def to_list(self) -> List[Dict]:
        return [e.to_dict() for e in self.events()]

    def __len__(self) -> int:
        with self._lock:
            return len(self._events)
