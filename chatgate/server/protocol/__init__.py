"""Client stream protocol encoders."""

from chatgate.server.protocol.base import StreamEncoder
from chatgate.server.protocol.sse import SSEEncoder

__all__ = ["StreamEncoder", "SSEEncoder", "get_encoder"]


def get_encoder(protocol: str = "sse") -> StreamEncoder:
    """
    Get the appropriate stream encoder.

    Args:
        protocol: "sse" for Server-Sent Events
    """
    return SSEEncoder()
