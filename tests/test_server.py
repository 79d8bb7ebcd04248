"""
Tests for the HTTP routes.
"""

import json
import threading
import time

import pytest
from fastapi.testclient import TestClient

from chatgate.core.prompting import DocumentRetriever
from chatgate.server.app import create_app
from chatgate.server.dependencies import reset_gateway, set_gateway
from helpers import complete_event, text_event


@pytest.fixture
def client_for(make_gateway):
    """Build a TestClient whose routes use a gateway with a scripted agent."""

    def _client(attempts=None, available=True, **config_overrides):
        gateway = make_gateway(attempts, available=available, **config_overrides)
        set_gateway(gateway)
        return TestClient(create_app()), gateway

    yield _client
    set_gateway(None)


@pytest.fixture(autouse=True)
def _reset_gateway():
    yield
    reset_gateway()


def parse_sse(body: str) -> list[tuple[str, str]]:
    events = []
    for block in body.strip().split("\n\n"):
        kind = None
        data = []
        for line in block.split("\n"):
            if line.startswith("event:"):
                kind = line[len("event:"):]
            elif line.startswith("data:"):
                data.append(line[len("data:"):])
        events.append((kind, "\n".join(data)))
    return events


class TestHealthRoutes:
    def test_service_health(self, client_for):
        client, _ = client_for()

        response = client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "ok", "service": "chatgate"}

    def test_agent_health(self, client_for):
        client, _ = client_for()

        data = client.get("/api/chat/health").json()

        assert data["available"] is True
        assert data["version"] == "1.0.0"
        assert data["message"] == "Agent CLI is ready"

    def test_agent_health_unavailable(self, client_for):
        client, _ = client_for(available=False)

        data = client.get("/api/chat/health").json()

        assert data["available"] is False
        assert data["message"] == "Agent CLI binary not found or not configured"


class TestSessionRoutes:
    def test_create_session(self, client_for):
        client, gateway = client_for()

        response = client.post("/api/chat/sessions")

        assert response.status_code == 201
        body = response.json()
        assert body["success"] is True
        assert body["sessionId"].startswith("chat-")
        assert gateway.get_status(body["sessionId"])

    def test_create_session_with_options(self, client_for):
        client, gateway = client_for()

        response = client.post(
            "/api/chat/sessions",
            json={"provider": "openai", "model": "gpt-4o", "sessionInactivityTimeoutMinutes": 5},
        )

        session = gateway.registry.get(response.json()["sessionId"])
        assert session.provider == "openai"
        assert session.inactivity_timeout.total_seconds() == 300

    def test_create_session_unavailable(self, client_for):
        client, _ = client_for(available=False)

        response = client.post("/api/chat/sessions")

        assert response.status_code == 503
        assert response.json()["success"] is False

    def test_status(self, client_for):
        client, gateway = client_for()
        session_id = gateway.create_session()

        assert client.get(f"/api/chat/sessions/{session_id}/status").json() == {
            "sessionId": session_id,
            "active": True,
        }
        assert client.get("/api/chat/sessions/chat-unknown/status").json()["active"] is False

    def test_close(self, client_for):
        client, gateway = client_for()
        session_id = gateway.create_session()

        response = client.delete(f"/api/chat/sessions/{session_id}")

        assert response.status_code == 200
        assert response.json() == {"success": True, "message": "Session closed successfully"}
        assert not gateway.get_status(session_id)
        # Unknown sessions close successfully too
        assert client.delete("/api/chat/sessions/chat-unknown").json()["success"] is True


class TestStreamRoutes:
    def test_get_stream(self, client_for):
        client, gateway = client_for([[text_event("Hi"), text_event(" there"), complete_event(9)]])
        session_id = gateway.create_session()

        response = client.get(
            f"/api/chat/sessions/{session_id}/stream", params={"message": "hello"}
        )

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/event-stream")
        assert response.headers["x-accel-buffering"] == "no"
        events = parse_sse(response.text)
        assert events[0] == ("status", "Processing your request...")
        assert [json.loads(d) for k, d in events if k == "token"] == ["Hi", " there"]
        assert events[-1] == ("complete", "2")
        assert gateway.invoker.calls[0][1] == "hello"

    def test_post_stream_with_document(self, client_for):
        client, gateway = client_for([[text_event("ok")]])
        session_id = gateway.create_session()

        response = client.post(
            f"/api/chat/sessions/{session_id}/stream",
            json={"message": "summarise", "documentContext": "Annual report"},
        )

        assert parse_sse(response.text)[-1] == ("complete", "1")
        assert "Annual report" in gateway.invoker.calls[0][1]

    def test_stream_unknown_session(self, client_for):
        client, _ = client_for()

        response = client.get(
            "/api/chat/sessions/chat-missing/stream", params={"message": "hello"}
        )

        assert parse_sse(response.text) == [("error", "Session not found or has expired")]

    def test_stream_requires_message(self, client_for):
        client, gateway = client_for()
        session_id = gateway.create_session()

        response = client.get(f"/api/chat/sessions/{session_id}/stream")

        assert response.status_code == 422


class TestConfigRoute:
    def test_config(self, client_for, temp_dir):
        config_file = temp_dir / "config.yaml"
        config_file.write_text(
            "GOOSE_PROVIDER: anthropic\n"
            "GOOSE_MODEL: claude\n"
            "extensions:\n"
            "  github:\n"
            "    type: streamable_http\n"
            "    uri: https://example.com/mcp\n"
        )
        client, _ = client_for(agent_config_path=config_file)

        data = client.get("/api/config").json()

        assert data["provider"] == "anthropic"
        assert data["model"] == "claude"
        assert data["mcpServers"] == [
            {
                "name": "github",
                "type": "streamable_http",
                "url": "https://example.com/mcp",
                "command": None,
                "args": [],
            }
        ]
        assert data["error"] is None

    def test_config_unreadable(self, client_for, temp_dir):
        config_file = temp_dir / "config.yaml"
        config_file.write_text("extensions: [unclosed\n")
        client, _ = client_for(agent_config_path=config_file)

        data = client.get("/api/config").json()

        assert data["error"].startswith("Failed to read agent configuration")
        assert data["mcpServers"] == []


class BlockingRetriever(DocumentRetriever):
    def __init__(self, entered, release):
        self.entered = entered
        self.release = release

    def is_available(self):
        return True

    def has_documents(self):
        return True

    def retrieve(self, query, limit):
        self.entered.set()
        self.release.wait(timeout=5)
        return []


class TestSlowWorkOffEventLoop:
    """Slow agent or retriever calls do not stall other requests."""

    def _assert_health_responsive(self, client, slow_request, entered, release):
        worker = threading.Thread(target=slow_request)
        worker.start()
        try:
            assert entered.wait(timeout=5)
            started = time.monotonic()
            assert client.get("/health").status_code == 200
            assert time.monotonic() - started < 2.0
        finally:
            release.set()
            worker.join(timeout=10)

    def test_slow_version_query(self, client_for):
        client, gateway = client_for()
        entered, release = threading.Event(), threading.Event()

        def slow_version():
            entered.set()
            release.wait(timeout=5)
            return "1.0.0"

        gateway.invoker.get_version = slow_version
        with client:
            self._assert_health_responsive(
                client, lambda: client.get("/api/chat/health"), entered, release
            )

    def test_slow_retrieval(self, client_for):
        client, gateway = client_for([[text_event("ok")]])
        entered, release = threading.Event(), threading.Event()
        gateway.preparer.retriever = BlockingRetriever(entered, release)
        session_id = gateway.create_session()
        responses = []

        def stream():
            responses.append(
                client.get(f"/api/chat/sessions/{session_id}/stream", params={"message": "hi"})
            )

        with client:
            self._assert_health_responsive(client, stream, entered, release)

        assert parse_sse(responses[0].text)[-1] == ("complete", "1")
