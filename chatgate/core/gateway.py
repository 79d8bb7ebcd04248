"""
The chat gateway: sessions, streaming calls and their background tasks.

All process-wide state (session registry, sweep thread) lives on one
ChatGateway object with explicit ``start``/``shutdown``, so the core can be
built and torn down in isolation.
"""

from __future__ import annotations

import logging
import os
import threading
import time
from typing import Any, Callable

from chatgate.core.config import GatewayConfig
from chatgate.core.credentials import (
    CredentialInjector,
    TokenStore,
    find_config_path,
    list_mcp_servers,
    load_agent_config,
)
from chatgate.core.invoker import AgentInvoker, AgentOptions
from chatgate.core.prompting import DirectivePreprocessor, DocumentRetriever, MessagePreparer
from chatgate.core.publisher import StreamPublisher
from chatgate.core.session_registry import SessionRegistry
from chatgate.core.streaming import MessageStreamer
from chatgate.models.session import Session, SessionOptions

logger = logging.getLogger(__name__)


class AgentUnavailableError(Exception):
    """The agent CLI cannot be run on this host."""


def _env(name: str) -> str | None:
    value = os.environ.get(name)
    return value if value else None


def configured_provider() -> str:
    """Provider the agent will use by default, as far as the environment tells."""
    explicit = _env("GOOSE_PROVIDER__TYPE") or _env("GOOSE_PROVIDER")
    if explicit:
        return explicit
    for key, provider in (
        ("ANTHROPIC_API_KEY", "anthropic"),
        ("OPENAI_API_KEY", "openai"),
        ("GOOGLE_API_KEY", "google"),
        ("DATABRICKS_HOST", "databricks"),
        ("OLLAMA_HOST", "ollama"),
    ):
        if _env(key):
            return provider
    return "unknown"


def configured_model() -> str:
    return _env("GOOSE_PROVIDER__MODEL") or _env("GOOSE_MODEL") or "default"


class ChatGateway:
    """
    Front door for conversations with the agent.

    Inbound contract:
        create_session(options) -> session id
        stream_message(session_id, message, document_context) -> StreamPublisher
        get_status(session_id) -> bool
        close_session(session_id) -> bool
    """

    def __init__(
        self,
        config: GatewayConfig | None = None,
        *,
        invoker: AgentInvoker | None = None,
        injector: CredentialInjector | None = None,
        retriever: DocumentRetriever | None = None,
        registry: SessionRegistry | None = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.config = config or GatewayConfig()
        self.invoker = invoker or AgentInvoker(self.config.cli_path)
        self.injector = injector or CredentialInjector(
            TokenStore(self.config.token_store_dir), self.config.agent_config_path
        )
        self.preparer = MessagePreparer(
            directives=DirectivePreprocessor.from_file(self.config.directives_file),
            retriever=retriever,
            retrieval_limit=self.config.retrieval_limit,
        )
        self.registry = registry or SessionRegistry()
        self.sleep = sleep
        self.clock = clock
        self._stop = threading.Event()
        self._sweeper: threading.Thread | None = None

    # Lifecycle

    def start(self) -> None:
        """Start the periodic session sweep."""
        if self._sweeper is not None:
            return
        self._stop.clear()
        self._sweeper = threading.Thread(
            target=self._sweep_loop, name="session-cleanup", daemon=True
        )
        self._sweeper.start()
        logger.info("Chat gateway started (sweep every %.0fs)", self.config.sweep_interval)

    def shutdown(self) -> None:
        self._stop.set()
        if self._sweeper is not None:
            self._sweeper.join(timeout=5)
            self._sweeper = None
        logger.info("Chat gateway stopped")

    def _sweep_loop(self) -> None:
        while not self._stop.wait(self.config.sweep_interval):
            try:
                self.registry.sweep()
            except Exception:
                logger.exception("Session sweep failed")

    # Inbound contract

    def create_session(self, options: SessionOptions | None = None) -> str:
        if not self.invoker.is_available():
            logger.error("Agent CLI is not available")
            raise AgentUnavailableError("Agent CLI is not available")
        options = options or SessionOptions()
        if options.inactivity_timeout_minutes is None:
            options = options.model_copy(
                update={"inactivity_timeout_minutes": self.config.session_timeout_minutes}
            )
        return self.registry.create(options)

    def get_status(self, session_id: str) -> bool:
        return self.registry.is_active(session_id)

    def close_session(self, session_id: str) -> bool:
        removed = self.registry.remove(session_id)
        if removed:
            logger.info("Session %s closed successfully", session_id)
        return removed

    def open_stream(self, name: str = "stream") -> StreamPublisher:
        publisher = StreamPublisher(timeout=self.config.stream_timeout, name=name)
        publisher.on_timeout(
            lambda: logger.warning("SSE connection timed out for session %s", name)
        )
        publisher.on_disconnect(
            lambda: logger.info("Client disconnected from stream for session %s", name)
        )
        return publisher

    def stream_message(
        self,
        session_id: str,
        message: str,
        document_context: str | None = None,
    ) -> StreamPublisher:
        """Start streaming a reply on a worker thread and return its stream."""
        effective = self.preparer.prepare(message, document_context)
        logger.info("Streaming message to session %s: %d chars", session_id, len(effective))
        publisher = self.open_stream(session_id)
        streamer = MessageStreamer(self, session_id, effective, publisher, clock=self.clock)
        streamer.start()
        return publisher

    # Collaborators

    def inject_credentials(self, session_id: str) -> None:
        self.injector.inject(session_id)

    def build_options(self, session: Session) -> AgentOptions:
        """Execution options: session overrides, then the agent's own environment."""
        options = AgentOptions(timeout=self.config.agent_timeout)
        if session.provider:
            options.provider = session.provider
        if session.model:
            options.model = session.model

        api_key = _env("OPENAI_API_KEY")
        host = _env("OPENAI_HOST")
        if api_key and host:
            logger.debug("Forwarding OpenAI-compatible endpoint to agent: host=%s", host)
            options.api_key = api_key
            options.base_url = host
        return options

    def health(self) -> dict[str, Any]:
        available = self.invoker.is_available()
        version = (self.invoker.get_version() or "unknown") if available else "unavailable"
        return {
            "available": available,
            "version": version,
            "provider": configured_provider(),
            "model": configured_model(),
            "message": (
                "Agent CLI is ready"
                if available
                else "Agent CLI binary not found or not configured"
            ),
        }

    def describe_agent_config(self) -> dict[str, Any]:
        """Provider, model and MCP servers declared in the agent config."""
        path = find_config_path(self.config.agent_config_path)
        config = load_agent_config(path)
        return {
            "provider": config.get("GOOSE_PROVIDER"),
            "model": config.get("GOOSE_MODEL"),
            "mcp_servers": list_mcp_servers(config),
        }
