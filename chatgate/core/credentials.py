"""
OAuth credentials for the agent's MCP server connections.

Access tokens obtained for a user session are kept encrypted on disk
(Fernet, AES-128-CBC). Before each agent invocation the injector writes an
``Authorization: Bearer`` header for every server that requires auth into
the agent's YAML configuration.

The gateway only reads the store. Tokens are written by the OAuth login flow
running outside this service, which shares ``token_store_dir`` and calls
``TokenStore.set_access_token`` / ``delete_access_token``.

Agent config layout (only the parts read or written here)::

    GOOSE_PROVIDER: openai
    GOOSE_MODEL: gpt-4o
    extensions:
      github:
        type: streamable_http
        uri: https://example.com/mcp
        requires_auth: true
        headers:
          Authorization: "Bearer <token>"
"""

from __future__ import annotations

import json
import logging
import os
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml
from cryptography.fernet import Fernet, InvalidToken

logger = logging.getLogger(__name__)

CF_CONFIG_PATH = Path("/home/vcap/app/.config/goose/config.yaml")

# One writer at a time for the shared agent config file
_config_lock = threading.Lock()


class TokenStore:
    """
    Encrypted per-session OAuth access tokens.

    Directory structure:
        .chatgate/tokens/.key              # Encryption key (600 permissions)
        .chatgate/tokens/<session_id>.enc  # {server_name: access_token}
    """

    def __init__(self, base_dir: Path | None = None):
        if base_dir is None:
            base_dir = Path(".chatgate/tokens")
        self.base_dir = base_dir
        self.base_dir.mkdir(parents=True, exist_ok=True)
        self._fernet = self._get_fernet()
        self._cache: dict[str, tuple[tuple[int, int], dict[str, str]]] = {}
        self._lock = threading.Lock()

    def _get_fernet(self) -> Fernet:
        """Get or create the encryption key."""
        key_file = self.base_dir / ".key"

        if key_file.exists():
            key = key_file.read_bytes()
        else:
            key = Fernet.generate_key()
            key_file.write_bytes(key)
            try:
                key_file.chmod(0o600)
            except OSError:
                pass  # Windows doesn't support chmod the same way

        return Fernet(key)

    def _path(self, session_id: str) -> Path:
        return self.base_dir / f"{session_id}.enc"

    def _load(self, session_id: str) -> dict[str, str]:
        path = self._path(session_id)
        try:
            stat = path.stat()
        except FileNotFoundError:
            self._cache.pop(session_id, None)
            return {}

        # Other processes write this directory; reload whenever the file changes
        stamp = (stat.st_mtime_ns, stat.st_size)
        cached = self._cache.get(session_id)
        if cached is not None and cached[0] == stamp:
            return cached[1]

        try:
            tokens = json.loads(self._fernet.decrypt(path.read_bytes()))
        except (InvalidToken, json.JSONDecodeError):
            logger.warning("Token file for session %s is unreadable, ignoring it", session_id)
            tokens = {}
        self._cache[session_id] = (stamp, tokens)
        return tokens

    def _save(self, session_id: str, tokens: dict[str, str]) -> None:
        path = self._path(session_id)
        path.write_bytes(self._fernet.encrypt(json.dumps(tokens).encode()))
        try:
            path.chmod(0o600)
        except OSError:
            pass
        stat = path.stat()
        self._cache[session_id] = ((stat.st_mtime_ns, stat.st_size), tokens)

    def get_access_token(self, server: str, session_id: str) -> str | None:
        with self._lock:
            return self._load(session_id).get(server)

    def set_access_token(self, server: str, session_id: str, token: str) -> None:
        with self._lock:
            tokens = dict(self._load(session_id))
            tokens[server] = token
            self._save(session_id, tokens)

    def delete_access_token(self, server: str, session_id: str) -> bool:
        with self._lock:
            tokens = dict(self._load(session_id))
            if server not in tokens:
                return False
            del tokens[server]
            self._save(session_id, tokens)
            return True

    def servers(self, session_id: str) -> list[str]:
        with self._lock:
            return list(self._load(session_id).keys())


@dataclass
class McpServerInfo:
    """An MCP server (agent extension) declared in the agent config."""

    name: str
    type: str | None = None
    url: str | None = None
    command: str | None = None
    args: list[str] = field(default_factory=list)
    requires_auth: bool = False

    @classmethod
    def from_config(cls, name: str, data: dict[str, Any]) -> "McpServerInfo":
        return cls(
            name=name,
            type=data.get("type"),
            url=data.get("uri") or data.get("url"),
            command=data.get("cmd") or data.get("command"),
            args=[str(a) for a in data.get("args") or []],
            requires_auth=bool(data.get("requires_auth", data.get("requiresAuth", False))),
        )


def find_config_path(explicit: Path | None = None) -> Path | None:
    """Locate the agent's config.yaml."""
    if explicit is not None:
        return explicit if explicit.exists() else None
    home = os.environ.get("HOME")
    if home:
        candidate = Path(home) / ".config" / "goose" / "config.yaml"
        if candidate.exists():
            return candidate
    if CF_CONFIG_PATH.exists():
        return CF_CONFIG_PATH
    return None


def load_agent_config(path: Path | None) -> dict[str, Any]:
    """Parse the agent config, returning an empty dict when it is missing."""
    if path is None or not path.exists():
        return {}
    with open(path) as f:
        data = yaml.safe_load(f)
    return data if isinstance(data, dict) else {}


def list_mcp_servers(config: dict[str, Any]) -> list[McpServerInfo]:
    extensions = config.get("extensions") or {}
    if not isinstance(extensions, dict):
        return []
    return [
        McpServerInfo.from_config(name, data)
        for name, data in extensions.items()
        if isinstance(data, dict)
    ]


def set_authorization_header(config: dict[str, Any], server: str, token: str) -> bool:
    """
    Set the bearer header for one server in a parsed config.

    Returns True if the config changed.
    """
    extensions = config.get("extensions")
    if not isinstance(extensions, dict) or not isinstance(extensions.get(server), dict):
        return False
    entry = extensions[server]
    headers = entry.get("headers")
    if not isinstance(headers, dict):
        headers = {}
        entry["headers"] = headers
    value = f"Bearer {token}"
    if headers.get("Authorization") == value:
        return False
    headers["Authorization"] = value
    return True


class CredentialInjector:
    """
    Writes per-session OAuth tokens into the agent config before execution.

    Idempotent: repeating an injection for the same session leaves the file
    unchanged. The last writer for a given server wins.
    """

    def __init__(self, token_store: TokenStore, config_path: Path | None = None):
        self.token_store = token_store
        self.config_path = config_path

    def inject(self, session_id: str) -> int:
        """
        Inject tokens for every auth-requiring server the session has a token for.

        Returns:
            Number of servers whose header changed
        """
        path = find_config_path(self.config_path)
        if path is None:
            logger.warning("Agent config file not found, cannot inject OAuth tokens")
            return 0

        with _config_lock:
            try:
                config = load_agent_config(path)
            except (OSError, yaml.YAMLError) as e:
                logger.error("Failed to read agent config %s: %s", path, e)
                return 0

            changed = 0
            for server in list_mcp_servers(config):
                if not server.requires_auth:
                    continue
                token = self.token_store.get_access_token(server.name, session_id)
                if token is None:
                    logger.debug(
                        "No OAuth token for server %s in session %s", server.name, session_id
                    )
                    continue
                if set_authorization_header(config, server.name, token):
                    logger.info(
                        "Injecting OAuth token for server %s in session %s",
                        server.name,
                        session_id,
                    )
                    changed += 1

            if changed:
                try:
                    with open(path, "w") as f:
                        yaml.safe_dump(config, f, sort_keys=False)
                except OSError as e:
                    logger.error("Failed to write agent config %s: %s", path, e)
                    return 0
                logger.info("Updated agent config with OAuth tokens for session %s", session_id)
            return changed
