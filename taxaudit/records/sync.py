"""Cloud sync, dual persistence and the periodic backup loop.

The local database and the cloud backup are two independent sinks. Nothing
here makes a write to both atomic: every operation reports which side
succeeded, and cloud failures are recorded on ``SyncStatus`` instead of
propagating to callers.

Usage in FastAPI:
    sync_service = SyncService(session_factory, adapter)
    scheduler = BackupScheduler(sync_service, interval_seconds=300)
    scheduler.start()
    ...
    await scheduler.stop()
"""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from taxaudit.core.sentry import capture_sync_failure
from taxaudit.integrations.cloud_backup import CloudBackupAdapter, FileResult
from taxaudit.records.store import STATE_LAST_SYNC, RecordSnapshot, RecordStore
from taxaudit.workflow.sync_state import SyncStateMachine, SyncStatus

logger = structlog.get_logger()

NOT_CONFIGURED = "Cloud backup is not configured"
OFFLINE = "Cloud backup is offline"
BUSY = "Cloud sync already in progress"


@dataclass
class PersistenceReport:
    """Which of the two sinks accepted a write.

    ``cloud_ok`` is None when the cloud sink was not attempted (not
    configured or offline).
    """

    local_ok: bool
    cloud_ok: bool | None = None
    local_error: str | None = None
    cloud_error: str | None = None
    cloud_files: list[FileResult] = field(default_factory=list)


class SyncService:
    """Push, pull, backup and restore against the cloud sink.

    Every public coroutine returns a plain success value and records the
    failure reason on ``status.error``.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        adapter: CloudBackupAdapter | None,
        *,
        default_admin_password: str | None = None,
    ) -> None:
        self.session_factory = session_factory
        self.adapter = adapter
        self.default_admin_password = default_admin_password
        self.machine = SyncStateMachine(SyncStatus(is_online=adapter is not None))
        self.last_push: list[FileResult] = []
        # Why the last attempt never started; status.error belongs to the running one.
        self.skip_reason: str | None = None

    @property
    def status(self) -> SyncStatus:
        return self.machine.status

    @property
    def enabled(self) -> bool:
        return self.adapter is not None

    def set_online(self, online: bool) -> SyncStatus:
        self.status.is_online = online and self.enabled
        logger.info("sync_online_changed", is_online=self.status.is_online)
        return self.status

    def _ready(self) -> bool:
        self.skip_reason = None
        if self.adapter is None:
            self.status.error = self.skip_reason = NOT_CONFIGURED
            return False
        if not self.status.is_online:
            self.status.error = self.skip_reason = OFFLINE
            return False
        if self.machine.is_busy:
            logger.info("sync_skipped_busy")
            self.skip_reason = BUSY
            return False
        return True

    def _record_failure(self, operation: str, exc: Exception) -> None:
        logger.exception("sync_operation_failed", operation=operation)
        capture_sync_failure(exc)
        self.machine.fail(reason=str(exc) or exc.__class__.__name__)

    async def sync_to_cloud(self) -> bool:
        """Push every collection file; True only when all of them were written."""
        self.last_push = []
        if not self._ready():
            return False
        self.machine.begin(operation="push")
        try:
            async with self.session_factory() as session:
                store = RecordStore(session)
                snapshot = await store.snapshot()
                results = await self.adapter.push(snapshot.as_collections())
                self.last_push = results
                failed = [result.name for result in results if not result.ok]
                if failed:
                    reason = f"Failed to save: {', '.join(failed)}"
                    logger.warning("sync_push_incomplete", failed=failed)
                    capture_sync_failure(RuntimeError(reason))
                    self.machine.fail(reason=reason)
                    return False

                synced_at = datetime.now(timezone.utc)
                await store.set_state(STATE_LAST_SYNC, synced_at.isoformat())
                await session.commit()
        except Exception as exc:
            self._record_failure("push", exc)
            return False

        self.machine.succeed(synced_at=synced_at)
        return True

    async def load_from_cloud(self) -> bool:
        """Replace local records with the cloud copy.

        A collection whose file is missing in the cloud keeps its local rows.
        """
        if not self._ready():
            return False
        self.machine.begin(operation="pull")
        try:
            pulled = await self.adapter.pull()
            if all(value is None for value in pulled.values()):
                self.machine.fail(reason="No data found in cloud backup")
                return False

            async with self.session_factory() as session:
                store = RecordStore(session)
                local = (await store.snapshot()).as_collections()
                merged = {
                    key: pulled[key] if pulled.get(key) is not None else local[key]
                    for key in local
                }
                await store.replace_all(RecordSnapshot.from_collections(merged))
                await store.ensure_default_admin(self.default_admin_password)
                await session.commit()
        except Exception as exc:
            self._record_failure("pull", exc)
            return False

        self.machine.succeed(synced_at=datetime.now(timezone.utc))
        return True

    async def create_backup(self) -> str | None:
        """Write a dated full backup; returns its name or None on failure."""
        if not self._ready():
            return None
        self.machine.begin(operation="backup")
        try:
            async with self.session_factory() as session:
                snapshot = await RecordStore(session).snapshot()
            name = await self.adapter.create_backup(snapshot.as_collections())
        except Exception as exc:
            self._record_failure("backup", exc)
            return None

        self.machine.succeed()
        return name

    async def list_backups(self) -> list[dict[str, Any]]:
        if self.adapter is None:
            self.status.error = NOT_CONFIGURED
            return []
        try:
            return await self.adapter.list_backups()
        except Exception as exc:
            logger.exception("sync_list_backups_failed")
            capture_sync_failure(exc)
            self.status.error = str(exc)
            return []

    async def restore_backup(self, name: str) -> bool:
        """Replace every local record with the named backup."""
        if not self._ready():
            return False
        self.machine.begin(operation="restore")
        try:
            payload = await self.adapter.restore_backup(name)
            async with self.session_factory() as session:
                store = RecordStore(session)
                await store.replace_all(RecordSnapshot.from_collections(payload))
                await store.ensure_default_admin(self.default_admin_password)
                await session.commit()
        except Exception as exc:
            self._record_failure("restore", exc)
            return False

        self.machine.succeed()
        logger.info("backup_restored", backup=name)
        return True


class PersistencePort:
    """Writes the local store, then the cloud sink, and reports both."""

    def __init__(self, sync_service: SyncService) -> None:
        self.sync_service = sync_service

    async def persist(self, session: AsyncSession) -> PersistenceReport:
        try:
            await session.commit()
        except SQLAlchemyError as exc:
            await session.rollback()
            logger.exception("local_persist_failed")
            return PersistenceReport(local_ok=False, local_error=str(exc))

        report = PersistenceReport(local_ok=True)
        service = self.sync_service
        if not service.enabled or not service.status.is_online:
            return report

        report.cloud_ok = await service.sync_to_cloud()
        report.cloud_files = list(service.last_push)
        if not report.cloud_ok:
            report.cloud_error = service.skip_reason or service.status.error
        return report


class BackupScheduler:
    """Background loop pushing to the cloud every ``interval_seconds``."""

    def __init__(self, sync_service: SyncService, interval_seconds: float = 300) -> None:
        self.sync_service = sync_service
        self.interval_seconds = interval_seconds
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._run(), name="cloud-backup-scheduler")
        logger.info("backup_scheduler_started", interval_seconds=self.interval_seconds)

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval_seconds)
            if self.sync_service.status.is_online:
                await self.sync_service.sync_to_cloud()

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("backup_scheduler_stopped")
