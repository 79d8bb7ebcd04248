"""
Tests for the cold-start retry state machine.
"""

import pytest

from chatgate.core.invoker import AgentExecutionError
from chatgate.core.publisher import ClientDisconnectedError
from chatgate.core.retry import (
    DEFAULT_DELAYS,
    ColdStartRetryController,
    RetryState,
    next_state,
)


class TestNextState:
    def test_tokens_succeed(self):
        assert next_state(0, 3, 0, 5) is RetryState.SUCCEEDED

    def test_established_session_succeeds_without_tokens(self):
        assert next_state(0, 0, 2, 5) is RetryState.SUCCEEDED

    def test_cold_start_keeps_attempting(self):
        for attempt in range(5):
            assert next_state(attempt, 0, 0, 5) is RetryState.ATTEMPTING

    def test_cold_start_exhausts(self):
        assert next_state(5, 0, 0, 5) is RetryState.EXHAUSTED

    def test_zero_retries(self):
        assert next_state(0, 0, 0, 0) is RetryState.EXHAUSTED


@pytest.fixture
def sleeps():
    return []


def scripted(results):
    """An attempt function returning (or raising) the given results in order."""
    calls = []

    def attempt_fn(attempt):
        calls.append(attempt)
        result = results[len(calls) - 1]
        if isinstance(result, BaseException):
            raise result
        return result

    attempt_fn.calls = calls
    return attempt_fn


class TestColdStartRetryController:
    def test_first_attempt_succeeds(self, sleeps):
        controller = ColdStartRetryController(sleep=sleeps.append)
        attempt_fn = scripted([4])

        result = controller.run(attempt_fn)

        assert result.state is RetryState.SUCCEEDED
        assert result.attempts == 1
        assert result.tokens == 4
        assert sleeps == []

    def test_exhaustion_uses_backoff_schedule(self, sleeps):
        controller = ColdStartRetryController(sleep=sleeps.append)
        attempt_fn = scripted([0] * 6)
        retries = []

        result = controller.run(attempt_fn, before_retry=retries.append)

        assert result.state is RetryState.EXHAUSTED
        assert result.attempts == 6
        assert attempt_fn.calls == [0, 1, 2, 3, 4, 5]
        assert sleeps == list(DEFAULT_DELAYS)
        assert retries == [1, 2, 3, 4, 5]

    def test_delays_repeat_last_entry(self):
        controller = ColdStartRetryController(max_retries=8, delays=(1.0, 2.0))

        assert [controller.delay_for(a) for a in range(1, 5)] == [1.0, 2.0, 2.0, 2.0]

    def test_success_after_retries(self, sleeps):
        controller = ColdStartRetryController(sleep=sleeps.append)

        result = controller.run(scripted([0, 0, 7]))

        assert result.state is RetryState.SUCCEEDED
        assert result.attempts == 3
        assert sleeps == [5.0, 8.0]

    def test_execution_error_counts_as_empty(self, sleeps):
        controller = ColdStartRetryController(sleep=sleeps.append)

        result = controller.run(scripted([AgentExecutionError("exit 1"), ValueError("odd"), 2]))

        assert result.state is RetryState.SUCCEEDED
        assert result.attempts == 3

    def test_disconnect_propagates(self, sleeps):
        controller = ColdStartRetryController(sleep=sleeps.append)
        attempt_fn = scripted([0, ClientDisconnectedError("gone"), 5])

        with pytest.raises(ClientDisconnectedError):
            controller.run(attempt_fn)

        assert attempt_fn.calls == [0, 1]

    def test_established_session_never_retries(self, sleeps):
        controller = ColdStartRetryController(sleep=sleeps.append)
        attempt_fn = scripted([0])

        result = controller.run(attempt_fn, message_count=3)

        assert result.state is RetryState.SUCCEEDED
        assert result.tokens == 0
        assert sleeps == []

    def test_empty_delays_rejected(self):
        with pytest.raises(ValueError):
            ColdStartRetryController(delays=())
