"""
Server-side retries for cold-start exchanges.

On a freshly started environment the agent may still be downloading skills
and starting its tool connections, and its first invocations can end with no
visible output or an execution error. Those attempts are retried on the same
client connection instead of making the client reconnect. Only the first
exchange of a session is retried; a session that already produced output
has a fully initialised agent.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable

from chatgate.core.invoker import AgentExecutionError
from chatgate.core.publisher import ClientDisconnectedError

logger = logging.getLogger(__name__)

DEFAULT_MAX_RETRIES = 5
DEFAULT_DELAYS: tuple[float, ...] = (5.0, 8.0, 10.0, 15.0, 15.0)


class RetryState(Enum):
    """State of the cold-start retry state machine."""

    ATTEMPTING = "attempting"
    SUCCEEDED = "succeeded"
    EXHAUSTED = "exhausted"


def next_state(attempt: int, tokens: int, message_count: int, max_retries: int) -> RetryState:
    """
    Transition after attempt ``attempt`` (0-based) produced ``tokens`` tokens.

    - SUCCEEDED when output was produced or the session is past its first
      exchange (those are never retried).
    - ATTEMPTING while retries remain.
    - EXHAUSTED otherwise.
    """
    if tokens > 0 or message_count > 0:
        return RetryState.SUCCEEDED
    if attempt < max_retries:
        return RetryState.ATTEMPTING
    return RetryState.EXHAUSTED


@dataclass
class RetryResult:
    state: RetryState
    attempts: int
    tokens: int


class ColdStartRetryController:
    """Runs attempts until one produces output or the retry budget is spent."""

    def __init__(
        self,
        max_retries: int = DEFAULT_MAX_RETRIES,
        delays: tuple[float, ...] = DEFAULT_DELAYS,
        sleep: Callable[[float], None] = time.sleep,
        name: str = "session",
    ):
        if not delays:
            raise ValueError("delays must not be empty")
        self.max_retries = max_retries
        self.delays = delays
        self._sleep = sleep
        self.name = name

    def delay_for(self, attempt: int) -> float:
        """Backoff before attempt ``attempt`` (1-based retry index)."""
        return self.delays[min(attempt - 1, len(self.delays) - 1)]

    def _attempt(self, attempt_fn: Callable[[int], int], attempt: int) -> int:
        try:
            return attempt_fn(attempt)
        except ClientDisconnectedError:
            raise
        except AgentExecutionError as e:
            logger.warning(
                "Session %s agent execution failed on attempt %d - %s",
                self.name,
                attempt + 1,
                e,
            )
        except Exception as e:
            logger.warning(
                "Session %s unexpected error on attempt %d - %s",
                self.name,
                attempt + 1,
                e,
            )
        return 0

    def run(
        self,
        attempt_fn: Callable[[int], int],
        before_retry: Callable[[int], None] | None = None,
        message_count: int = 0,
    ) -> RetryResult:
        """
        Drive the state machine.

        Args:
            attempt_fn: Runs one attempt and returns the visible tokens produced.
            before_retry: Called with the retry index after the backoff sleep,
                before the next attempt (status message, credential refresh,
                counter reset).
            message_count: The session's message count when the call started.

        Raises:
            ClientDisconnectedError: the client went away during an attempt.
        """
        attempt = 0
        while True:
            if attempt > 0:
                delay = self.delay_for(attempt)
                logger.info(
                    "Session %s cold-start server-retry %d/%d after %.1fs",
                    self.name,
                    attempt,
                    self.max_retries,
                    delay,
                )
                self._sleep(delay)
                if before_retry is not None:
                    before_retry(attempt)

            tokens = self._attempt(attempt_fn, attempt)
            logger.info(
                "Session %s attempt %d produced %d tokens", self.name, attempt + 1, tokens
            )

            state = next_state(attempt, tokens, message_count, self.max_retries)
            if state is RetryState.ATTEMPTING:
                logger.warning(
                    "Session %s produced 0 tokens on attempt %d - will retry server-side",
                    self.name,
                    attempt + 1,
                )
                attempt += 1
                continue

            if state is RetryState.EXHAUSTED:
                logger.warning(
                    "Session %s produced 0 tokens after %d attempts - signalling client retry",
                    self.name,
                    attempt + 1,
                )
            return RetryResult(state=state, attempts=attempt + 1, tokens=tokens)
