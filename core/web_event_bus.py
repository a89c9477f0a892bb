"""Broadcast bus between the control core and web clients.

The control loop, the scheduler and the command router publish from
whatever thread they run on. Every connected SSE client gets its own
bounded queue; a client that stops draining it is dropped rather than
allowed to slow the publishers down. Nothing per-client is kept
beyond that queue: every client sees the same stream.
"""

import logging
import threading
from queue import Queue, Empty, Full
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)

KEEPALIVE = "keepalive"


class WebEventBus:
    """Thread-safe fan-out of (topic, payload) pairs."""

    def __init__(self, client_queue_size: int = 100, keepalive_seconds: float = 30.0):
        self._latest: Dict[str, Any] = {}
        self._lock = threading.Lock()
        self._clients: List[Queue] = []
        self._queue_size = client_queue_size
        self._keepalive = keepalive_seconds

    def publish(self, topic: str, payload: Any):
        """Push data from any thread. Never blocks."""
        with self._lock:
            self._latest[topic] = payload
            clients = list(self._clients)

        dead = []
        for q in clients:
            try:
                q.put_nowait((topic, payload))
            except Full:
                dead.append(q)
        if dead:
            with self._lock:
                for q in dead:
                    if q in self._clients:
                        self._clients.remove(q)
            logger.warning("Dropped %d stalled stream client(s)", len(dead))

    def get_latest(self, topic: Optional[str] = None) -> Any:
        """Get latest payload for a topic, or all topics."""
        with self._lock:
            if topic:
                return self._latest.get(topic)
            return dict(self._latest)

    @property
    def client_count(self) -> int:
        with self._lock:
            return len(self._clients)

    def connect(self) -> Queue:
        q = Queue(maxsize=self._queue_size)
        with self._lock:
            self._clients.append(q)
        return q

    def disconnect(self, q: Queue):
        with self._lock:
            if q in self._clients:
                self._clients.remove(q)

    def sse_stream(self, initial: Optional[List] = None):
        """Generator for SSE clients. Yields (topic, payload) tuples.

        ``initial`` pairs are yielded first, so a new client gets the
        current state without waiting for the next broadcast.

        Usage in Flask:
            def stream():
                for topic, payload in bus.sse_stream():
                    yield f"event: {topic}\\ndata: {json.dumps(payload)}\\n\\n"
        """
        q = self.connect()
        try:
            for topic, payload in initial or []:
                yield topic, payload
            while True:
                try:
                    topic, payload = q.get(timeout=self._keepalive)
                    yield topic, payload
                except Empty:
                    yield KEEPALIVE, None
        finally:
            self.disconnect(q)
