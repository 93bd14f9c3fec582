"""Local record store, roster codec and cloud sync services."""

from taxaudit.records.errors import (
    AuthenticationError,
    DuplicateClientError,
    DuplicateEntryError,
    PermissionDeniedError,
    RecordError,
    RecordNotFoundError,
    ValidationFailedError,
    WorkflowGateError,
)
from taxaudit.records.store import RecordSnapshot, RecordStore
from taxaudit.records.sync import (
    BackupScheduler,
    PersistencePort,
    PersistenceReport,
    SyncService,
)

__all__ = [
    # Errors
    "AuthenticationError",
    "DuplicateClientError",
    "DuplicateEntryError",
    "PermissionDeniedError",
    "RecordError",
    "RecordNotFoundError",
    "ValidationFailedError",
    "WorkflowGateError",
    # Store
    "RecordSnapshot",
    "RecordStore",
    # Sync
    "BackupScheduler",
    "PersistencePort",
    "PersistenceReport",
    "SyncService",
]
