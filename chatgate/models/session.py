"""
Session models for conversations held with the agent.

The agent CLI persists the actual conversation history under the session
name; these models only track the metadata the gateway needs to decide
whether a session is still usable and whether the next exchange resumes it.
"""

import uuid
from datetime import UTC, datetime, timedelta

from pydantic import BaseModel, Field

SESSION_PREFIX = "chat-"
DEFAULT_INACTIVITY_TIMEOUT = timedelta(minutes=30)


def _utcnow() -> datetime:
    """Get current UTC time."""
    return datetime.now(UTC)


def new_session_id() -> str:
    """Generate a session id such as ``chat-a1b2c3d4``."""
    return SESSION_PREFIX + uuid.uuid4().hex[:8]


class SessionOptions(BaseModel):
    """Client-supplied overrides for a new session."""

    provider: str | None = None
    model: str | None = None
    inactivity_timeout_minutes: int | None = Field(
        default=None,
        alias="sessionInactivityTimeoutMinutes",
        ge=0,
    )

    model_config = {"populate_by_name": True}

    def inactivity_timeout(self) -> timedelta:
        if self.inactivity_timeout_minutes is None:
            return DEFAULT_INACTIVITY_TIMEOUT
        return timedelta(minutes=self.inactivity_timeout_minutes)


class Session(BaseModel):
    """One ongoing conversation."""

    session_id: str = Field(default_factory=new_session_id)
    provider: str | None = None
    model: str | None = None
    inactivity_timeout: timedelta = DEFAULT_INACTIVITY_TIMEOUT
    created_at: datetime = Field(default_factory=_utcnow)
    last_activity: datetime = Field(default_factory=_utcnow)
    message_count: int = 0

    def is_active(self, now: datetime) -> bool:
        """A session is active while it has seen activity within its timeout."""
        return now - self.last_activity < self.inactivity_timeout

    @property
    def is_cold_start(self) -> bool:
        """True until an exchange has produced visible output."""
        return self.message_count == 0
