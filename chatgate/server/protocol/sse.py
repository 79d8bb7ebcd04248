"""Server-Sent Events encoder.

Wire format, one event per blank-line-terminated block:

    event: <kind>
    data: <payload>

Event kinds:
    status     plain text progress message
    token      JSON-encoded string with a batch of response text
    activity   JSON object describing a tool call or notification
    heartbeat  keepalive
    complete   terminal; total token count
    retry      terminal; client should re-issue the call
    error      terminal; failure description
"""

from chatgate.server.protocol.base import StreamEncoder


class SSEEncoder(StreamEncoder):
    """Encodes events as text/event-stream blocks."""

    def event(self, kind: str, data: str) -> bytes:
        # Each payload line needs its own data: field
        lines = data.splitlines() or [""]
        body = "".join(f"data:{line}\n" for line in lines)
        return f"event:{kind}\n{body}\n".encode()

    def content_type(self) -> str:
        return "text/event-stream"

    def extra_headers(self) -> dict[str, str]:
        return {
            "Cache-Control": "no-cache, no-store, must-revalidate",
            "X-Accel-Buffering": "no",
        }
