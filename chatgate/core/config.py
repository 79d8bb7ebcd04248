"""
Gateway configuration.

Settings come from defaults, a plain dict (e.g. parsed YAML) or the process
environment. Environment variables use the ``CHATGATE_`` prefix, except for
the agent CLI and agent config locations which keep the names the agent's
own tooling uses.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

DEFAULT_RETRY_DELAYS: tuple[float, ...] = (5.0, 8.0, 10.0, 15.0, 15.0)


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    return default if raw is None or raw == "" else float(raw)


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    return default if raw is None or raw == "" else int(raw)


@dataclass
class GatewayConfig:
    """Configuration for the ChatGateway and its collaborators."""

    # Agent process
    cli_path: str = "goose"
    agent_config_path: Path | None = None
    agent_timeout: float = 600.0

    # Sessions
    session_timeout_minutes: int = 30
    sweep_interval: float = 60.0

    # Streaming
    stream_timeout: float = 600.0
    heartbeat_interval: float = 8.0
    heartbeat_idle_threshold: float = 6.0
    batch_size: int = 10
    batch_max_delay: float = 0.1

    # Cold-start retries
    max_cold_start_retries: int = 5
    retry_delays: tuple[float, ...] = DEFAULT_RETRY_DELAYS

    # Message pre-processing
    retrieval_limit: int = 5
    directives_file: Path | None = None

    # Credentials
    token_store_dir: Path = field(default_factory=lambda: Path(".chatgate") / "tokens")

    # HTTP
    cors_origins: list[str] = field(default_factory=lambda: ["*"])

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "GatewayConfig":
        """Create config from dictionary."""
        config = cls()

        if "cli_path" in data:
            config.cli_path = str(data["cli_path"])
        if data.get("agent_config_path"):
            config.agent_config_path = Path(data["agent_config_path"])
        if "agent_timeout" in data:
            config.agent_timeout = float(data["agent_timeout"])
        if "session_timeout_minutes" in data:
            config.session_timeout_minutes = int(data["session_timeout_minutes"])
        if "sweep_interval" in data:
            config.sweep_interval = float(data["sweep_interval"])
        if "stream_timeout" in data:
            config.stream_timeout = float(data["stream_timeout"])
        if "heartbeat_interval" in data:
            config.heartbeat_interval = float(data["heartbeat_interval"])
        if "heartbeat_idle_threshold" in data:
            config.heartbeat_idle_threshold = float(data["heartbeat_idle_threshold"])
        if "batch_size" in data:
            config.batch_size = int(data["batch_size"])
        if "batch_max_delay" in data:
            config.batch_max_delay = float(data["batch_max_delay"])
        if "max_cold_start_retries" in data:
            config.max_cold_start_retries = int(data["max_cold_start_retries"])
        if "retry_delays" in data:
            config.retry_delays = tuple(float(d) for d in data["retry_delays"])
        if "retrieval_limit" in data:
            config.retrieval_limit = int(data["retrieval_limit"])
        if data.get("directives_file"):
            config.directives_file = Path(data["directives_file"])
        if "token_store_dir" in data:
            config.token_store_dir = Path(data["token_store_dir"])
        if "cors_origins" in data:
            origins = data["cors_origins"]
            if isinstance(origins, str):
                origins = [o.strip() for o in origins.split(",") if o.strip()]
            config.cors_origins = list(origins)

        if not config.retry_delays:
            raise ValueError("retry_delays must contain at least one delay")
        return config

    @classmethod
    def from_env(cls) -> "GatewayConfig":
        """Create config from process environment with the defaults above."""
        defaults = cls()
        data: dict[str, Any] = {
            "cli_path": os.getenv("GOOSE_CLI_PATH", defaults.cli_path),
            "agent_config_path": os.getenv("GOOSE_CONFIG_PATH"),
            "agent_timeout": _env_float("CHATGATE_AGENT_TIMEOUT", defaults.agent_timeout),
            "session_timeout_minutes": _env_int(
                "CHATGATE_SESSION_TIMEOUT_MINUTES", defaults.session_timeout_minutes
            ),
            "sweep_interval": _env_float("CHATGATE_SWEEP_INTERVAL", defaults.sweep_interval),
            "stream_timeout": _env_float("CHATGATE_STREAM_TIMEOUT", defaults.stream_timeout),
            "heartbeat_interval": _env_float(
                "CHATGATE_HEARTBEAT_INTERVAL", defaults.heartbeat_interval
            ),
            "heartbeat_idle_threshold": _env_float(
                "CHATGATE_HEARTBEAT_IDLE_THRESHOLD", defaults.heartbeat_idle_threshold
            ),
            "batch_size": _env_int("CHATGATE_BATCH_SIZE", defaults.batch_size),
            "batch_max_delay": _env_float("CHATGATE_BATCH_MAX_DELAY", defaults.batch_max_delay),
            "max_cold_start_retries": _env_int(
                "CHATGATE_MAX_COLD_START_RETRIES", defaults.max_cold_start_retries
            ),
            "retrieval_limit": _env_int("CHATGATE_RETRIEVAL_LIMIT", defaults.retrieval_limit),
            "directives_file": os.getenv("CHATGATE_DIRECTIVES_FILE"),
            "token_store_dir": os.getenv(
                "CHATGATE_TOKEN_STORE_DIR", str(defaults.token_store_dir)
            ),
            "cors_origins": os.getenv("CHATGATE_CORS_ORIGINS", "*"),
        }
        raw_delays = os.getenv("CHATGATE_RETRY_DELAYS")
        if raw_delays:
            data["retry_delays"] = [d for d in raw_delays.split(",") if d.strip()]
        return cls.from_dict(data)
