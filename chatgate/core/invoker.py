"""
Agent invocation adapter.

Runs one agent CLI process per message and exposes its stdout as a lazy
sequence of parsed JSON events. The caller owns the returned invocation and
must close it, which terminates the process if it is still running.
"""

from __future__ import annotations

import collections
import json
import logging
import os
import shutil
import subprocess
import threading
from dataclasses import dataclass
from typing import Any, Iterator

logger = logging.getLogger(__name__)

RawAgentEvent = dict[str, Any]

# Seconds to wait for a terminated process before killing it
_TERMINATE_GRACE = 5.0
_STDERR_TAIL_LINES = 20


class AgentExecutionError(Exception):
    """The agent process could not be run or ended abnormally."""

    def __init__(self, message: str, exit_code: int | None = None, stderr: str = ""):
        self.exit_code = exit_code
        self.stderr = stderr
        super().__init__(message)


@dataclass
class AgentOptions:
    """Per-invocation execution options."""

    provider: str | None = None
    model: str | None = None
    timeout: float = 600.0
    api_key: str | None = None
    base_url: str | None = None

    def to_env(self) -> dict[str, str]:
        """Environment overrides for the agent process."""
        env: dict[str, str] = {}
        if self.api_key and self.base_url:
            env["OPENAI_API_KEY"] = self.api_key
            env["OPENAI_HOST"] = self.base_url
        return env


class AgentInvocation:
    """
    A running agent process and the events it emits.

    Iterating yields one RawAgentEvent per well-formed stdout line.
    Malformed lines are logged and skipped. When stdout ends, an abnormal
    exit or a timeout raises AgentExecutionError.
    """

    def __init__(self, process: subprocess.Popen, session_id: str, timeout: float):
        self.process = process
        self.session_id = session_id
        self.timeout = timeout
        self.timed_out = False
        self._closed = False
        self._stderr: collections.deque[str] = collections.deque(maxlen=_STDERR_TAIL_LINES)
        self._stderr_thread = threading.Thread(target=self._drain_stderr, daemon=True)
        self._stderr_thread.start()
        self._watchdog = threading.Timer(timeout, self._on_timeout)
        self._watchdog.daemon = True
        self._watchdog.start()

    def _drain_stderr(self) -> None:
        stream = self.process.stderr
        if stream is None:
            return
        for line in stream:
            self._stderr.append(line.rstrip("\n"))

    def _on_timeout(self) -> None:
        if self.process.poll() is None:
            logger.warning(
                "Agent process for session %s exceeded %.0fs, killing it",
                self.session_id,
                self.timeout,
            )
            self.timed_out = True
            self.process.kill()

    @property
    def stderr_tail(self) -> str:
        return "\n".join(self._stderr)

    def __iter__(self) -> Iterator[RawAgentEvent]:
        stdout = self.process.stdout
        if stdout is None:
            return
        for line in stdout:
            line = line.strip()
            if not line:
                continue
            try:
                event = json.loads(line)
            except json.JSONDecodeError:
                logger.warning(
                    "Failed to parse JSON event for session %s: %s", self.session_id, line
                )
                continue
            if not isinstance(event, dict):
                logger.warning(
                    "Ignoring non-object event for session %s: %s", self.session_id, line
                )
                continue
            yield event

        if self._closed:
            return
        exit_code = self.process.wait()
        self._watchdog.cancel()
        self._stderr_thread.join(timeout=1)
        if self.timed_out:
            raise AgentExecutionError(
                f"Agent timed out after {self.timeout:.0f}s",
                exit_code=exit_code,
                stderr=self.stderr_tail,
            )
        if exit_code != 0:
            detail = f": {self.stderr_tail}" if self.stderr_tail else ""
            raise AgentExecutionError(
                f"Agent exited with code {exit_code}{detail}",
                exit_code=exit_code,
                stderr=self.stderr_tail,
            )

    def close(self) -> None:
        """Terminate the process if it is still running. Safe to call twice."""
        if self._closed:
            return
        self._closed = True
        self._watchdog.cancel()
        if self.process.poll() is None:
            self.process.terminate()
            try:
                self.process.wait(timeout=_TERMINATE_GRACE)
            except subprocess.TimeoutExpired:
                self.process.kill()
                self.process.wait()
        for stream in (self.process.stdout, self.process.stderr):
            if stream is not None:
                stream.close()

    def __enter__(self) -> "AgentInvocation":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()


class AgentInvoker:
    """
    Spawns the agent CLI in streaming JSON mode.

    The command line is::

        <cli> run --name <session> [--resume] --text <message>
              --output-format stream-json [--provider P] [--model M]
    """

    def __init__(self, cli_path: str = "goose", extra_env: dict[str, str] | None = None):
        self.cli_path = cli_path
        self.extra_env = extra_env or {}

    def resolve_cli(self) -> str | None:
        """Absolute path of the agent CLI, or None when it cannot be found."""
        if os.path.sep in self.cli_path:
            if os.path.isfile(self.cli_path) and os.access(self.cli_path, os.X_OK):
                return self.cli_path
            return None
        return shutil.which(self.cli_path)

    def is_available(self) -> bool:
        return self.resolve_cli() is not None

    def get_version(self) -> str | None:
        """Return the agent's reported version, or None if it cannot be queried."""
        cli = self.resolve_cli()
        if cli is None:
            return None
        try:
            result = subprocess.run(
                [cli, "--version"],
                capture_output=True,
                text=True,
                encoding="utf-8",
                errors="replace",
                timeout=10,
            )
        except (OSError, subprocess.TimeoutExpired) as e:
            logger.warning("Could not query agent version: %s", e)
            return None
        if result.returncode != 0:
            return None
        return result.stdout.strip() or None

    def build_command(
        self, cli: str, session_id: str, message: str, resume: bool, options: AgentOptions
    ) -> list[str]:
        cmd = [cli, "run", "--name", session_id]
        if resume:
            cmd.append("--resume")
        cmd += ["--text", message, "--output-format", "stream-json"]
        if options.provider:
            cmd += ["--provider", options.provider]
        if options.model:
            cmd += ["--model", options.model]
        return cmd

    def invoke(
        self,
        session_id: str,
        message: str,
        resume: bool,
        options: AgentOptions | None = None,
    ) -> AgentInvocation:
        """Start one agent process for a message."""
        options = options or AgentOptions()
        cli = self.resolve_cli()
        if cli is None:
            raise AgentExecutionError(f"Agent CLI not found: {self.cli_path}")

        cmd = self.build_command(cli, session_id, message, resume, options)
        env = os.environ.copy()
        env.update(self.extra_env)
        env.update(options.to_env())

        logger.debug(
            "Starting agent for session %s (resume=%s, provider=%s, model=%s)",
            session_id,
            resume,
            options.provider,
            options.model,
        )
        try:
            process = subprocess.Popen(
                cmd,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                encoding="utf-8",
                errors="replace",
                bufsize=1,
                env=env,
            )
        except OSError as e:
            raise AgentExecutionError(f"Failed to start agent: {e}") from e

        return AgentInvocation(process, session_id, options.timeout)
