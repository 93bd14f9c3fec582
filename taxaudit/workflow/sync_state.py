"""Cloud sync state machine.

Guards the sync lifecycle so only one push/pull/backup runs at a time and a
failure is recorded instead of raised.
"""

from dataclasses import dataclass
from datetime import datetime

import structlog
from statemachine import State, StateMachine
from statemachine.exceptions import TransitionNotAllowed

logger = structlog.get_logger()


@dataclass
class SyncStatus:
    """Observable cloud sync state."""

    is_online: bool = True
    is_syncing: bool = False
    last_sync: datetime | None = None
    error: str | None = None


class SyncStateMachine(StateMachine):
    """Sync lifecycle.

    Transitions:
    - begin: idle/failed -> syncing
    - succeed: syncing -> idle
    - fail: syncing -> failed
    """

    idle = State(initial=True)
    syncing = State()
    failed = State()

    begin = idle.to(syncing) | failed.to(syncing)
    succeed = syncing.to(idle)
    fail = syncing.to(failed)

    def __init__(self, status: SyncStatus | None = None) -> None:
        self.status = status or SyncStatus()
        super().__init__()

    @property
    def is_busy(self) -> bool:
        return self.current_state == self.syncing

    def on_begin(self, operation: str = "sync") -> None:
        self.status.is_syncing = True
        self.status.error = None
        logger.info("sync_started", operation=operation)

    def on_succeed(self, synced_at: datetime | None = None) -> None:
        self.status.is_syncing = False
        if synced_at is not None:
            self.status.last_sync = synced_at
        logger.info("sync_succeeded", last_sync=self.status.last_sync)

    def on_fail(self, reason: str = "") -> None:
        self.status.is_syncing = False
        self.status.error = reason
        logger.warning("sync_failed", reason=reason)


__all__ = [
    "SyncStateMachine",
    "SyncStatus",
    "TransitionNotAllowed",
]
