"""Data models for chatgate."""

from chatgate.models.activity import ActivityRecord
from chatgate.models.session import Session, SessionOptions

__all__ = [
    "ActivityRecord",
    "Session",
    "SessionOptions",
]
