"""
Client-visible activity records for tool calls and agent notifications.
"""

import time
import uuid
from typing import Any, Literal

from pydantic import BaseModel, Field

ActivityType = Literal["tool_request", "tool_response", "notification"]
ActivityStatus = Literal["running", "completed", "error", "info"]


def _now_ms() -> int:
    return int(time.time() * 1000)


class ActivityRecord(BaseModel):
    """A tool invocation, tool result or notification forwarded to the client."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    type: ActivityType
    tool_name: str | None = Field(default=None, alias="toolName")
    extension_id: str | None = Field(default=None, alias="extensionId")
    status: ActivityStatus
    timestamp: int = Field(default_factory=_now_ms)
    arguments: Any = None
    message: str | None = None

    model_config = {"populate_by_name": True}

    def to_json(self) -> str:
        """Serialize in the wire shape, omitting absent optional fields."""
        return self.model_dump_json(by_alias=True, exclude_none=True)
