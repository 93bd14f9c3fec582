"""Cloud backup sink for the record collections.

Each collection is mirrored as one JSON file inside a backup folder on any
fsspec-reachable store. Files are written independently: a partial push is
reported per file and never rolled back.

Example:
    >>> adapter = CloudBackupAdapter("s3://firm-backups", folder="Tax Audit Data")
    >>> results = await adapter.push(snapshot)
    >>> [r.name for r in results if not r.ok]
    []
"""

import asyncio
import re
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

import orjson
import structlog

from taxaudit.integrations.storage import file_exists, list_files, read_file, write_file

logger = structlog.get_logger()

COLLECTION_FILES: dict[str, str] = {
    "taskEntries": "taskEntries.json",
    "clients": "clients.json",
    "users": "users.json",
}

BACKUP_PREFIX = "backup_"
_BACKUP_NAME = re.compile(r"^backup_[\w\-]+\.json$")


@dataclass(frozen=True)
class FileResult:
    """Outcome of writing one collection file."""

    name: str
    ok: bool
    error: str | None = None


class InvalidBackupNameError(ValueError):
    """Backup names are restricted to ``backup_<stamp>.json`` in the folder."""


def backup_file_name(moment: datetime | None = None) -> str:
    """``backup_<YYYY-MM-DD>.json``; one backup per day, later ones overwrite."""
    moment = moment or datetime.now(timezone.utc)
    return f"{BACKUP_PREFIX}{moment.date().isoformat()}.json"


def _encode(data: Any) -> bytes:
    return orjson.dumps(data, option=orjson.OPT_INDENT_2, default=str)


class CloudBackupAdapter:
    """JSON file store rooted at ``<base_url>/<folder>``."""

    def __init__(self, base_url: str, folder: str = "Tax Audit Data") -> None:
        self.base_url = base_url
        self.folder = folder.strip("/")

    def _path(self, name: str) -> str:
        return f"{self.folder}/{name}" if self.folder else name

    async def save_file(self, name: str, data: Any) -> str:
        """Serialize ``data`` as indented JSON under ``name``."""
        path = await write_file(self.base_url, self._path(name), _encode(data))
        logger.debug("cloud_file_saved", file=name, path=path)
        return path

    async def load_file(self, name: str) -> Any | None:
        """Parsed JSON content of ``name``, or None when it does not exist."""
        path = self._path(name)
        if not await asyncio.to_thread(file_exists, self.base_url, path):
            return None
        raw = await read_file(self.base_url, path)
        return orjson.loads(raw)

    async def _save_result(self, name: str, data: Any) -> FileResult:
        await self.save_file(name, data)
        return FileResult(name=name, ok=True)

    async def push(self, collections: Mapping[str, Any]) -> list[FileResult]:
        """Write every collection file concurrently.

        Failures are collected per file; successful writes are kept even
        when a sibling write fails.
        """
        names = [COLLECTION_FILES[key] for key in COLLECTION_FILES]
        outcomes = await asyncio.gather(
            *(
                self._save_result(COLLECTION_FILES[key], collections.get(key, []))
                for key in COLLECTION_FILES
            ),
            return_exceptions=True,
        )

        results: list[FileResult] = []
        for name, outcome in zip(names, outcomes):
            if isinstance(outcome, BaseException):
                logger.warning("cloud_file_failed", file=name, error=str(outcome))
                results.append(FileResult(name=name, ok=False, error=str(outcome)))
            else:
                results.append(outcome)
        return results

    async def pull(self) -> dict[str, Any]:
        """Load every collection file; missing files come back as None."""
        loaded = await asyncio.gather(
            *(self.load_file(name) for name in COLLECTION_FILES.values())
        )
        return dict(zip(COLLECTION_FILES, loaded))

    async def create_backup(
        self, collections: Mapping[str, Any], moment: datetime | None = None
    ) -> str:
        """Write a dated full backup and return its file name."""
        moment = moment or datetime.now(timezone.utc)
        name = backup_file_name(moment)
        payload = {"timestamp": moment.isoformat()}
        for key in COLLECTION_FILES:
            payload[key] = collections.get(key, [])
        await self.save_file(name, payload)
        logger.info("cloud_backup_created", file=name)
        return name

    async def list_backups(self) -> list[dict[str, Any]]:
        """Backup files in the folder, newest first."""
        files = await asyncio.to_thread(list_files, self.base_url, self.folder)
        backups = [item for item in files if item["name"].startswith(BACKUP_PREFIX)]
        backups.sort(key=lambda item: (item["mtime"], item["name"]), reverse=True)
        return backups

    async def restore_backup(self, name: str) -> dict[str, Any]:
        """Parsed backup payload.

        Raises:
            InvalidBackupNameError: ``name`` is not a backup file name.
            FileNotFoundError: The backup does not exist.
        """
        if not _BACKUP_NAME.match(name):
            raise InvalidBackupNameError(f"Invalid backup name: {name}")
        payload = await self.load_file(name)
        if payload is None:
            raise FileNotFoundError(name)
        return payload
