"""
Translation of raw agent events into gateway events.

The agent emits three kinds of JSON lines on stdout:

    {"type": "message", "message": {"content": [...]}}
    {"type": "notification", "extension_id": "...", "data": {...}}
    {"type": "complete", "total_tokens": 123}

``translate`` turns each line into zero or more ``(event_type, data)``
tuples:

    ("activity", ActivityRecord)      tool request or tool response
    ("token", str)                    a piece of response text
    ("notification", ActivityRecord)  extension log/progress message
    ("complete", int)                 agent finished; total LLM tokens
"""

from __future__ import annotations

import json
import logging
import uuid
from typing import Any

from chatgate.models.activity import ActivityRecord

logger = logging.getLogger(__name__)

TranslatedEvent = tuple[str, Any]

_TOOL_REQUEST_TYPES = ("toolRequest", "tool_request")
_TOOL_RESPONSE_TYPES = ("toolResponse", "tool_response")


def parse_tool_name(full_name: str) -> tuple[str, str]:
    """
    Split ``extension__tool`` or ``extension/tool`` into (extension_id, tool).

    ``__`` takes precedence over ``/``. Names without a delimiter have an
    empty extension id.
    """
    if "__" in full_name:
        delimiter = "__"
    elif "/" in full_name:
        delimiter = "/"
    else:
        return "", full_name
    extension_id, _, tool = full_name.partition(delimiter)
    return extension_id, tool


def _content_items(event: dict[str, Any]) -> list[dict[str, Any]]:
    message = event.get("message")
    if not isinstance(message, dict):
        return []
    content = message.get("content")
    if not isinstance(content, list):
        return []
    return [item for item in content if isinstance(item, dict)]


def extract_text(event: dict[str, Any]) -> str | None:
    """Text of the first non-empty text content item, if any."""
    for item in _content_items(event):
        if item.get("type") == "text":
            text = item.get("text")
            if isinstance(text, str) and text:
                return text
    return None


def _tool_request_activity(item: dict[str, Any]) -> ActivityRecord:
    tool_call = item.get("toolCall", item.get("tool_call"))
    tool_name = "unknown"
    arguments: Any = {}
    if isinstance(tool_call, dict):
        # Calls arrive either bare or wrapped: {"status": ..., "value": {...}}
        value = tool_call.get("value", tool_call)
        if isinstance(value, dict):
            tool_name = str(value.get("name", "unknown"))
            arguments = value.get("arguments", arguments)

    extension_id, short_name = parse_tool_name(tool_name)
    return ActivityRecord(
        id=str(item.get("id") or uuid.uuid4()),
        type="tool_request",
        tool_name=short_name,
        extension_id=extension_id,
        status="running",
        arguments=arguments,
    )


def _tool_response_activity(item: dict[str, Any]) -> ActivityRecord:
    is_error = bool(item.get("is_error", item.get("isError", False)))
    return ActivityRecord(
        id=str(item.get("id", "")),
        type="tool_response",
        status="error" if is_error else "completed",
    )


def extract_tool_activity(event: dict[str, Any]) -> ActivityRecord | None:
    """The first tool request or tool response in a message event, if any."""
    for item in _content_items(event):
        item_type = item.get("type")
        if item_type in _TOOL_REQUEST_TYPES:
            return _tool_request_activity(item)
        if item_type in _TOOL_RESPONSE_TYPES:
            return _tool_response_activity(item)
    return None


def notification_message(data: dict[str, Any]) -> str:
    """Human-readable text for notification data."""
    log = data.get("log")
    if isinstance(log, dict) and "message" in log:
        return str(log["message"])
    if "message" in data:
        return str(data["message"])
    progress = data.get("progress")
    if isinstance(progress, dict):
        try:
            value = float(progress.get("progress", 0) or 0)
        except (TypeError, ValueError):
            value = 0.0
        text = progress.get("message", "")
        return f"{value * 100:.0f}% {text}"
    return json.dumps(data)


def format_notification(event: dict[str, Any]) -> ActivityRecord | None:
    data = event.get("data")
    if not isinstance(data, dict):
        return None
    return ActivityRecord(
        type="notification",
        extension_id=str(event.get("extension_id", "")),
        status="info",
        message=notification_message(data),
    )


def translate(event: dict[str, Any]) -> list[TranslatedEvent]:
    """Classify one raw agent event."""
    event_type = event.get("type", "")
    translated: list[TranslatedEvent] = []

    if event_type == "message":
        activity = extract_tool_activity(event)
        if activity is not None:
            translated.append(("activity", activity))
        token = extract_text(event)
        if token is not None:
            translated.append(("token", token))

    elif event_type == "notification":
        activity = format_notification(event)
        if activity is not None:
            logger.debug(
                "Notification from %s: %s", activity.extension_id, activity.message
            )
            translated.append(("notification", activity))

    elif event_type == "complete":
        try:
            total_tokens = int(event.get("total_tokens") or 0)
        except (TypeError, ValueError):
            total_tokens = 0
        translated.append(("complete", total_tokens))

    return translated
