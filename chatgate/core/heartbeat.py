"""
Keepalive for silent stretches of a stream.

Agent runs can go quiet for a long time while tools execute, and reverse
proxies drop idle connections well before that. The monitor ticks on its own
thread and sends a heartbeat whenever nothing has been sent for a while.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Callable

logger = logging.getLogger(__name__)

HEARTBEAT_EVENT = "heartbeat"
HEARTBEAT_DATA = "waiting"


class HeartbeatMonitor:
    """Periodic keepalive sender for one streaming call."""

    def __init__(
        self,
        send: Callable[[str, str], None],
        interval: float = 8.0,
        idle_threshold: float = 6.0,
        name: str = "stream",
        clock: Callable[[], float] = time.monotonic,
    ):
        self._send = send
        self.interval = interval
        self.idle_threshold = idle_threshold
        self.name = name
        self._clock = clock
        self._last_data_sent = clock()
        self._completed = threading.Event()
        self._stopped = threading.Event()
        self._thread: threading.Thread | None = None
        self.beats = 0

    def start(self) -> None:
        if self._thread is not None:
            return
        self._thread = threading.Thread(
            target=self._run, name=f"heartbeat-{self.name}", daemon=True
        )
        self._thread.start()

    def mark_data_sent(self) -> None:
        self._last_data_sent = self._clock()

    def mark_completed(self) -> None:
        """No more heartbeats after this, even if the thread ticks again."""
        self._completed.set()

    @property
    def completed(self) -> bool:
        return self._completed.is_set()

    def idle_for(self) -> float:
        return self._clock() - self._last_data_sent

    def tick(self) -> bool:
        """Send a heartbeat if the stream has been idle. Returns True if one was sent."""
        if self._completed.is_set():
            return False
        idle = self.idle_for()
        if idle < self.idle_threshold:
            return False
        try:
            self._send(HEARTBEAT_EVENT, HEARTBEAT_DATA)
        except Exception as e:
            logger.debug("Heartbeat for %s failed (client disconnected?): %s", self.name, e)
            return False
        self.mark_data_sent()
        self.beats += 1
        logger.debug("Heartbeat sent for %s (idle for %.1fs)", self.name, idle)
        return True

    def _run(self) -> None:
        while not self._stopped.wait(self.interval):
            if self._completed.is_set():
                break
            self.tick()

    def stop(self) -> None:
        """Cancel the timer thread. Safe to call more than once."""
        self._completed.set()
        self._stopped.set()
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=max(1.0, self.interval))
