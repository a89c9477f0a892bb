"""Periodic background worker for Irrigation Station.

A DataSource runs fetch() on a fixed period in its own thread and
publishes whatever it returns to the event bus. The control loop and
the scheduler are both DataSources.

Ticks never overlap: the next fetch() is only started after the
previous one returns. If a tick overruns its period the following one
starts immediately and the schedule re-anchors from there instead of
trying to catch up.
"""

import logging
import threading
import time
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)


class DataSource(ABC):
    """Base class for periodic workers.

    Subclasses implement fetch() which runs in a background thread.
    Data is published to the bus under self.topic.

    Config keys:
        interval       seconds between fetch() calls (default 5.0)
        initial_delay  wait one interval before the first fetch()
    """

    def __init__(self, source_id: str, bus, config: Optional[Dict] = None):
        config = config or {}
        self.source_id = source_id
        self.bus = bus
        self.config = config
        self.topic = source_id  # SSE event name
        self.interval = float(config.get("interval", 5.0))
        self.initial_delay = bool(config.get("initial_delay", False))
        self._stop: Optional[threading.Event] = None
        self._thread: Optional[threading.Thread] = None

    @property
    def running(self) -> bool:
        return (
            self._thread is not None
            and self._thread.is_alive()
            and self._stop is not None
            and not self._stop.is_set()
        )

    def start(self):
        """Start the background thread (no-op if already running)."""
        if self.running:
            return
        # Fresh event per run so a thread still winding down from an
        # earlier stop() can never be revived by this start().
        self._stop = threading.Event()
        self._thread = threading.Thread(
            target=self._run, args=(self._stop,), daemon=True, name=f"src-{self.source_id}"
        )
        self._thread.start()
        logger.info("DataSource %s started (%.1fs interval)", self.source_id, self.interval)

    def stop(self):
        """Signal the background thread to stop."""
        if self._stop is not None:
            self._stop.set()

    def join(self, timeout: Optional[float] = None):
        if self._thread is not None:
            self._thread.join(timeout)

    def _run(self, stop: threading.Event):
        next_at = time.monotonic()
        if self.initial_delay:
            next_at += self.interval
            if stop.wait(self.interval):
                return

        while not stop.is_set():
            try:
                data = self.fetch()
                if data is not None and self.bus is not None:
                    self.bus.publish(self.topic, data)
            except Exception as exc:
                logger.error("DataSource %s fetch error: %s", self.source_id, exc, exc_info=True)

            next_at += self.interval
            delay = next_at - time.monotonic()
            if delay < 0:
                next_at = time.monotonic()
                delay = 0
            if stop.wait(delay):
                break

    @abstractmethod
    def fetch(self) -> Optional[Any]:
        """Do one cycle of work. Runs in the background thread.

        Returns:
            Payload to publish, or None to skip this cycle.
        """
        ...

    def close(self):
        """Release resources. Override if needed."""
        self.stop()
