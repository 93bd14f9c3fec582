"""SQLAlchemy models for the tax audit record store."""

from taxaudit.models.base import Base, UTCDateTime, utcnow
from taxaudit.models.client import Client
from taxaudit.models.task_entry import TaskEntry
from taxaudit.models.user import AppState, User

__all__ = [
    "Base",
    "UTCDateTime",
    "utcnow",
    "Client",
    "TaskEntry",
    "User",
    "AppState",
]
