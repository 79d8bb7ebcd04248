"""Abstract base for client stream encoders."""

from __future__ import annotations

from abc import ABC, abstractmethod


class StreamEncoder(ABC):
    """Encodes gateway stream events into wire format bytes."""

    @abstractmethod
    def event(self, kind: str, data: str) -> bytes:
        """Encode one event."""
        ...

    @abstractmethod
    def content_type(self) -> str:
        """Return the Content-Type header value."""
        ...

    @abstractmethod
    def extra_headers(self) -> dict[str, str]:
        """Return protocol-specific headers."""
        ...
