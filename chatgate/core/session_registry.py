"""
In-memory registry of conversation sessions.

The agent keeps the conversation itself; the registry only owns the session
metadata and its expiry. Every read and write goes through one lock so that
request workers and the periodic sweep can race freely.
"""

from __future__ import annotations

import logging
import threading
from datetime import UTC, datetime
from typing import Callable

from chatgate.models.session import Session, SessionOptions

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def _utcnow() -> datetime:
    return datetime.now(UTC)


class SessionRegistry:
    """
    Thread-safe mapping of session id -> Session.

    Sessions that fail the activity check read as absent from ``get`` even
    before ``sweep`` physically removes them.
    """

    def __init__(self, clock: Clock | None = None):
        self._clock = clock or _utcnow
        self._lock = threading.Lock()
        self._sessions: dict[str, Session] = {}

    def create(self, options: SessionOptions | None = None) -> str:
        """Register a new session and return its id."""
        options = options or SessionOptions()
        now = self._clock()
        session = Session(
            provider=options.provider,
            model=options.model,
            inactivity_timeout=options.inactivity_timeout(),
            created_at=now,
            last_activity=now,
        )
        with self._lock:
            self._sessions[session.session_id] = session
        logger.info(
            "Created conversation session: %s with provider: %s",
            session.session_id,
            options.provider,
        )
        return session.session_id

    def get(self, session_id: str) -> Session | None:
        """Return a snapshot of an active session, or None."""
        with self._lock:
            session = self._sessions.get(session_id)
            if session is None or not session.is_active(self._clock()):
                return None
            return session.model_copy()

    def is_active(self, session_id: str) -> bool:
        return self.get(session_id) is not None

    def touch(self, session_id: str) -> bool:
        """Record activity on a session. Returns False if it is not registered."""
        with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                return False
            session.last_activity = self._clock()
            return True

    def increment_message_count(self, session_id: str) -> int:
        """Count one exchange that produced visible output. Returns the new count."""
        with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                return 0
            session.message_count += 1
            return session.message_count

    def remove(self, session_id: str) -> bool:
        """Drop a session. Returns True when it existed."""
        with self._lock:
            return self._sessions.pop(session_id, None) is not None

    def sweep(self) -> list[str]:
        """Remove every session that is no longer active and return their ids."""
        now = self._clock()
        with self._lock:
            expired = [
                sid for sid, session in self._sessions.items() if not session.is_active(now)
            ]
            for sid in expired:
                del self._sessions[sid]
        for sid in expired:
            logger.info("Cleaning up expired session: %s", sid)
        return expired

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

    def __contains__(self, session_id: object) -> bool:
        with self._lock:
            return session_id in self._sessions
