"""
Fakes and builders shared by the test modules.
"""

from __future__ import annotations

import itertools
from typing import Any, Callable


def text_event(text: str) -> dict[str, Any]:
    return {"type": "message", "message": {"content": [{"type": "text", "text": text}]}}


def tool_request_event(name: str, arguments: dict | None = None, call_id: str = "tool1") -> dict:
    return {
        "type": "message",
        "message": {
            "content": [
                {
                    "type": "toolRequest",
                    "id": call_id,
                    "toolCall": {
                        "status": "success",
                        "value": {"name": name, "arguments": arguments or {}},
                    },
                }
            ]
        },
    }


def complete_event(total_tokens: int = 0) -> dict[str, Any]:
    return {"type": "complete", "total_tokens": total_tokens}


def ticking_clock(step: float = 1.0) -> Callable[[], float]:
    """A clock that advances ``step`` seconds on every call."""
    counter = itertools.count()
    return lambda: next(counter) * step


class FakeInvocation:
    """
    Scripted agent output.

    Script items are yielded as events, except exceptions (raised in place)
    and callables (called, nothing yielded).
    """

    def __init__(self, script: list[Any]):
        self.script = script
        self.closed = False

    def __iter__(self):
        for item in self.script:
            if isinstance(item, BaseException):
                raise item
            if callable(item):
                item()
                continue
            yield item

    def close(self) -> None:
        self.closed = True


class FakeInvoker:
    """
    Stand-in for AgentInvoker.

    ``attempts`` holds one entry per invoke call: a script list, or an
    exception raised by ``invoke`` itself. Once exhausted, invocations
    produce nothing.
    """

    def __init__(
        self,
        attempts: list[Any] | None = None,
        available: bool = True,
        version: str | None = "1.0.0",
    ):
        self.attempts = list(attempts or [])
        self.available = available
        self.version = version
        self.calls: list[tuple[str, str, bool, Any]] = []
        self.invocations: list[FakeInvocation] = []

    def is_available(self) -> bool:
        return self.available

    def get_version(self) -> str | None:
        return self.version

    def invoke(self, session_id, message, resume, options=None):
        self.calls.append((session_id, message, resume, options))
        script = self.attempts.pop(0) if self.attempts else []
        if isinstance(script, BaseException):
            raise script
        invocation = FakeInvocation(script)
        self.invocations.append(invocation)
        return invocation
