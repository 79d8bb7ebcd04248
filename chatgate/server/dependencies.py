"""FastAPI dependency injection for the chat gateway."""

from __future__ import annotations

import threading

from chatgate.core.config import GatewayConfig
from chatgate.core.gateway import ChatGateway

# Module-level singleton
_gateway: ChatGateway | None = None
_gateway_lock = threading.Lock()


def get_gateway() -> ChatGateway:
    """Get or create the global gateway."""
    global _gateway
    if _gateway is None:
        with _gateway_lock:
            if _gateway is None:
                _gateway = ChatGateway(GatewayConfig.from_env())
    return _gateway


def set_gateway(gateway: ChatGateway | None) -> None:
    """Install a preconfigured gateway (used by the CLI and tests)."""
    global _gateway
    with _gateway_lock:
        _gateway = gateway


def reset_gateway() -> None:
    """Stop and drop the global gateway (for testing)."""
    global _gateway
    with _gateway_lock:
        if _gateway is not None:
            _gateway.shutdown()
        _gateway = None
