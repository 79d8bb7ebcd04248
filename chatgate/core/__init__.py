"""Core module for chatgate."""

from chatgate.core.batcher import TokenBatcher
from chatgate.core.config import GatewayConfig
from chatgate.core.credentials import CredentialInjector, TokenStore
from chatgate.core.gateway import AgentUnavailableError, ChatGateway
from chatgate.core.heartbeat import HeartbeatMonitor
from chatgate.core.invoker import AgentExecutionError, AgentInvoker, AgentOptions
from chatgate.core.publisher import ClientDisconnectedError, StreamPublisher
from chatgate.core.retry import ColdStartRetryController, RetryState, next_state
from chatgate.core.session_registry import SessionRegistry

__all__ = [
    "AgentExecutionError",
    "AgentInvoker",
    "AgentOptions",
    "AgentUnavailableError",
    "ChatGateway",
    "ClientDisconnectedError",
    "ColdStartRetryController",
    "CredentialInjector",
    "GatewayConfig",
    "HeartbeatMonitor",
    "RetryState",
    "SessionRegistry",
    "StreamPublisher",
    "TokenBatcher",
    "TokenStore",
    "next_state",
]
