"""
Outbound event stream for one client call.

The publisher is a thread-safe queue between the worker that produces
events and whatever drains them toward the client (the SSE response, or a
test). Once the stream has ended, for whatever reason, further sends raise
ClientDisconnectedError so the worker can stop instead of retrying.
"""

from __future__ import annotations

import logging
import queue
import threading
import time
from typing import Callable, Iterator

logger = logging.getLogger(__name__)

StreamEvent = tuple[str, str]

_SENTINEL = object()


class ClientDisconnectedError(Exception):
    """The client-visible stream is gone; nothing more can be delivered."""


class StreamPublisher:
    """
    Queue-backed event sink with completion, timeout and disconnect handling.

    Producers call ``send``/``complete``/``complete_with_error`` from any
    thread. A single consumer drains events with ``events`` or ``get``.
    """

    def __init__(self, timeout: float = 600.0, name: str = "stream"):
        self.timeout = timeout
        self.name = name
        self.error: BaseException | None = None
        self.timed_out = False
        self.disconnected = False
        self._queue: queue.Queue[StreamEvent | object] = queue.Queue()
        self._lock = threading.Lock()
        self._closed = False
        self._timeout_callbacks: list[Callable[[], None]] = []
        self._disconnect_callbacks: list[Callable[[], None]] = []

    @property
    def closed(self) -> bool:
        return self._closed

    def on_timeout(self, callback: Callable[[], None]) -> None:
        self._timeout_callbacks.append(callback)

    def on_disconnect(self, callback: Callable[[], None]) -> None:
        self._disconnect_callbacks.append(callback)

    def send(self, event: str, data: str) -> None:
        """Queue one event for the client."""
        with self._lock:
            if self._closed:
                raise ClientDisconnectedError(f"Stream {self.name} is closed")
            self._queue.put((event, data))

    def _close(self) -> bool:
        with self._lock:
            if self._closed:
                return False
            self._closed = True
            self._queue.put(_SENTINEL)
            return True

    def complete(self) -> None:
        """End the stream normally."""
        self._close()

    def complete_with_error(self, error: BaseException) -> None:
        """End the stream after a failure."""
        if self._close():
            self.error = error

    def time_out(self) -> None:
        """The overall call deadline passed. Ends the stream without error."""
        if self._close():
            self.timed_out = True
            logger.warning("Stream %s timed out after %.0fs", self.name, self.timeout)
            self._fire(self._timeout_callbacks)

    def disconnect(self) -> None:
        """The client went away. Pending and future sends are dropped."""
        if self._close():
            self.disconnected = True
            self._fire(self._disconnect_callbacks)

    def _fire(self, callbacks: list[Callable[[], None]]) -> None:
        for callback in callbacks:
            try:
                callback()
            except Exception:
                logger.exception("Stream %s callback failed", self.name)

    def get(self, timeout: float | None = None) -> StreamEvent | None:
        """
        Next event, or None once the stream has ended.

        Raises queue.Empty if nothing arrives within ``timeout``.
        """
        item = self._queue.get(timeout=timeout)
        if item is _SENTINEL:
            # Leave the sentinel for any later reader
            self._queue.put(_SENTINEL)
            return None
        return item  # type: ignore[return-value]

    def get_nowait(self) -> StreamEvent | None:
        """Like ``get`` but raises queue.Empty immediately when nothing is queued."""
        item = self._queue.get_nowait()
        if item is _SENTINEL:
            self._queue.put(_SENTINEL)
            return None
        return item  # type: ignore[return-value]

    def events(self, poll_interval: float = 0.05) -> Iterator[StreamEvent]:
        """
        Drain events synchronously until the stream ends.

        The overall timeout is enforced here: once it passes, the stream is
        timed out and iteration stops.
        """
        deadline = time.monotonic() + self.timeout
        while True:
            try:
                item = self.get(timeout=poll_interval)
            except queue.Empty:
                if time.monotonic() >= deadline:
                    self.time_out()
                    return
                continue
            if item is None:
                return
            yield item
