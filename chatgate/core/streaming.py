"""
Per-call streaming worker.

One MessageStreamer runs on its own thread for each client-visible streaming
call. It owns every mutable counter of the call (batcher, attempt, current
agent process) and is the only writer to them; the heartbeat thread only
reads the last-send time.

Pipeline for each attempt:

    AgentInvoker -> events.translate -> TokenBatcher -> StreamPublisher
"""

from __future__ import annotations

import json
import logging
import threading
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Callable

from chatgate.core.batcher import TokenBatcher
from chatgate.core.events import translate
from chatgate.core.heartbeat import HeartbeatMonitor
from chatgate.core.invoker import AgentInvocation, AgentOptions
from chatgate.core.publisher import ClientDisconnectedError, StreamPublisher
from chatgate.core.retry import ColdStartRetryController, RetryState

if TYPE_CHECKING:
    from chatgate.core.gateway import ChatGateway

logger = logging.getLogger(__name__)

PROCESSING_MESSAGE = "Processing your request..."
RETRY_MESSAGE = "Empty response from agent - MCP servers may still be initializing"
UNEXPECTED_ERROR_MESSAGE = "An unexpected error occurred"


@dataclass
class StreamRequestContext:
    """Mutable state of one streaming call."""

    session_id: str
    message: str
    batcher: TokenBatcher
    resume: bool = False
    attempt: int = 0
    invocation: AgentInvocation | None = None
    started_at: float = field(default_factory=time.monotonic)

    @property
    def token_count(self) -> int:
        return self.batcher.token_count


class MessageStreamer:
    """Runs one message through the agent and publishes the results."""

    def __init__(
        self,
        gateway: "ChatGateway",
        session_id: str,
        message: str,
        publisher: StreamPublisher,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.gateway = gateway
        self.publisher = publisher
        config = gateway.config
        self.ctx = StreamRequestContext(
            session_id=session_id,
            message=message,
            batcher=TokenBatcher(config.batch_size, config.batch_max_delay, clock=clock),
        )
        self.heartbeat = HeartbeatMonitor(
            publisher.send,
            interval=config.heartbeat_interval,
            idle_threshold=config.heartbeat_idle_threshold,
            name=session_id,
        )
        self.options: AgentOptions | None = None
        self.result_state: RetryState | None = None

    def start(self) -> threading.Thread:
        thread = threading.Thread(
            target=self.run, name=f"stream-{self.ctx.session_id}", daemon=True
        )
        thread.start()
        return thread

    def _send(self, event: str, data: str) -> None:
        self.publisher.send(event, data)
        self.heartbeat.mark_data_sent()

    def _close_invocation(self) -> None:
        if self.ctx.invocation is not None:
            self.ctx.invocation.close()
            self.ctx.invocation = None

    def _send_tokens(self, batch: str | None) -> None:
        if batch:
            self._send("token", json.dumps(batch))

    def run_attempt(self, attempt: int) -> int:
        """One invoke/translate/batch/publish pass. Returns visible tokens produced."""
        ctx = self.ctx
        ctx.attempt = attempt
        self._close_invocation()

        ctx.invocation = self.gateway.invoker.invoke(
            ctx.session_id, ctx.message, ctx.resume, self.options
        )

        for raw in ctx.invocation:
            for kind, data in translate(raw):
                if kind in ("activity", "notification"):
                    self._send("activity", data.to_json())
                elif kind == "token":
                    self._send_tokens(ctx.batcher.add(data))
                elif kind == "complete":
                    self._send_tokens(ctx.batcher.flush())
                    logger.info(
                        "Session %s agent reported completion with %d total LLM tokens",
                        ctx.session_id,
                        data,
                    )

        self._send_tokens(ctx.batcher.flush())
        return ctx.token_count

    def before_retry(self, attempt: int) -> None:
        self._close_invocation()
        self._send("status", f"Initializing AI agent... (attempt {attempt + 1})")
        self.gateway.inject_credentials(self.ctx.session_id)
        self.ctx.batcher.reset()

    def _attempt(self, attempt: int) -> int:
        try:
            return self.run_attempt(attempt)
        except ClientDisconnectedError:
            raise
        except Exception:
            # Output of a failed attempt does not count toward success
            self.ctx.batcher.reset()
            raise

    def run(self) -> None:
        ctx = self.ctx
        publisher = self.publisher
        try:
            if not self.gateway.invoker.is_available():
                logger.error("Agent CLI is not available")
                publisher.send("error", "Agent CLI is not available")
                publisher.complete()
                return

            session = self.gateway.registry.get(ctx.session_id)
            if session is None:
                logger.error("Session %s is not active or does not exist", ctx.session_id)
                publisher.send("error", "Session not found or has expired")
                publisher.complete()
                return

            self.gateway.registry.touch(ctx.session_id)
            ctx.resume = not session.is_cold_start
            self._send("status", PROCESSING_MESSAGE)
            self.options = self.gateway.build_options(session)
            self.gateway.inject_credentials(ctx.session_id)
            self.heartbeat.start()

            controller = ColdStartRetryController(
                max_retries=self.gateway.config.max_cold_start_retries,
                delays=self.gateway.config.retry_delays,
                sleep=self.gateway.sleep,
                name=ctx.session_id,
            )
            result = controller.run(
                self._attempt,
                before_retry=self.before_retry,
                message_count=session.message_count,
            )
            self.result_state = result.state

            self.heartbeat.mark_completed()
            if result.state is RetryState.SUCCEEDED:
                if result.tokens > 0:
                    self.gateway.registry.increment_message_count(ctx.session_id)
                publisher.send("complete", str(result.tokens))
            else:
                publisher.send("retry", RETRY_MESSAGE)
            publisher.complete()
            logger.info(
                "Streaming message completed for session %s in %.1fs",
                ctx.session_id,
                time.monotonic() - ctx.started_at,
            )

        except ClientDisconnectedError:
            self.heartbeat.mark_completed()
            logger.info("Client disconnected from session %s, aborting", ctx.session_id)
            publisher.complete()
        except Exception as e:
            self.heartbeat.mark_completed()
            logger.exception("Unexpected error during message send to session %s", ctx.session_id)
            try:
                publisher.send("error", UNEXPECTED_ERROR_MESSAGE)
            except ClientDisconnectedError:
                logger.debug("Could not deliver error event to session %s", ctx.session_id)
            publisher.complete_with_error(e)
        finally:
            self.heartbeat.stop()
            self._close_invocation()
