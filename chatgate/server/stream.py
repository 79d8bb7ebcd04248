"""Bridge between a StreamPublisher and the HTTP response body."""

from __future__ import annotations

import asyncio
import logging
import queue
import time
from typing import AsyncGenerator

from chatgate.core.publisher import StreamPublisher
from chatgate.server.protocol.base import StreamEncoder

logger = logging.getLogger(__name__)


async def publisher_to_sse(
    publisher: StreamPublisher,
    encoder: StreamEncoder,
    poll_interval: float = 0.05,
) -> AsyncGenerator[bytes, None]:
    """
    Drain the publisher's queue (filled from worker threads), encode each
    event, and yield bytes asynchronously.

    The overall call timeout ends the stream without an error event. If the
    response is abandoned before the stream ended, the publisher is told the
    client disconnected so the worker stops.
    """
    deadline = time.monotonic() + publisher.timeout
    finished = False
    try:
        while True:
            try:
                item = publisher.get_nowait()
            except queue.Empty:
                if time.monotonic() >= deadline:
                    publisher.time_out()
                    finished = True
                    return
                await asyncio.sleep(poll_interval)
                continue

            if item is None:
                finished = True
                return

            kind, data = item
            yield encoder.event(kind, data)
    finally:
        if not finished:
            publisher.disconnect()
