"""
Pytest fixtures for chatgate tests.
"""

import os
import tempfile
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from chatgate.core.config import GatewayConfig
from chatgate.core.gateway import ChatGateway
from helpers import FakeInvoker, ticking_clock


@pytest.fixture(autouse=True)
def _clean_env():
    """Prevent environment variable pollution between tests.

    The gateway reads provider settings (OPENAI_API_KEY, GOOSE_PROVIDER, ...)
    from the environment; tests that set them must not leak into others.
    """
    original_env = os.environ.copy()
    yield
    os.environ.clear()
    os.environ.update(original_env)


@pytest.fixture
def temp_dir():
    """Create a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def gateway_config(temp_dir):
    """Gateway config with short timeouts and no real files."""
    return GatewayConfig(
        agent_config_path=temp_dir / "missing-config.yaml",
        token_store_dir=temp_dir / "tokens",
        stream_timeout=10.0,
        heartbeat_interval=30.0,
        heartbeat_idle_threshold=30.0,
    )


@pytest.fixture
def sleeps():
    """Backoff delays requested by the retry controller."""
    return []


@pytest.fixture
def make_gateway(gateway_config, sleeps):
    """Build a ChatGateway around a FakeInvoker and a mock injector."""
    created = []

    def _make(attempts=None, available=True, clock=None, **config_overrides):
        for key, value in config_overrides.items():
            setattr(gateway_config, key, value)
        invoker = FakeInvoker(attempts, available=available)
        gateway = ChatGateway(
            gateway_config,
            invoker=invoker,
            injector=MagicMock(),
            sleep=sleeps.append,
            clock=clock or ticking_clock(),
        )
        created.append(gateway)
        return gateway

    yield _make
    for gateway in created:
        gateway.shutdown()
