"""
Token batching for the client stream.

Sending every token as its own event makes some buffering proxies hold or
coalesce writes unpredictably, while waiting too long hurts latency. The
batcher emits a batch when enough tokens have accumulated, when the last
flush is old enough, or when a token ends a line.
"""

from __future__ import annotations

import time
from typing import Callable


class TokenBatcher:
    """Accumulates text tokens and decides when to flush them."""

    def __init__(
        self,
        batch_size: int = 10,
        max_delay: float = 0.1,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.batch_size = batch_size
        self.max_delay = max_delay
        self._clock = clock
        self.reset()

    def reset(self) -> None:
        """Forget all buffered text and counters."""
        self._buffer: list[str] = []
        self._pending = 0
        self.token_count = 0
        self.batch_count = 0
        self._last_flush = self._clock()

    @property
    def pending(self) -> str:
        return "".join(self._buffer)

    def add(self, token: str) -> str | None:
        """Buffer a token. Returns the batch to send if this token triggers a flush."""
        self._buffer.append(token)
        self._pending += 1
        self.token_count += 1

        now = self._clock()
        if (
            self._pending >= self.batch_size
            or now - self._last_flush > self.max_delay
            or "\n" in token
        ):
            return self._take(now)
        return None

    def flush(self) -> str | None:
        """Return whatever is buffered, or None when the buffer is empty."""
        if not self._buffer:
            return None
        return self._take(self._clock())

    def _take(self, now: float) -> str | None:
        batch = "".join(self._buffer)
        self._buffer.clear()
        self._pending = 0
        self._last_flush = now
        if not batch:
            return None
        self.batch_count += 1
        return batch
