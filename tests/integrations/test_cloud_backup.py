"""Tests for the cloud backup adapter."""

from datetime import datetime, timezone
from unittest.mock import patch

import orjson
import pytest

from taxaudit.integrations.cloud_backup import (
    COLLECTION_FILES,
    CloudBackupAdapter,
    InvalidBackupNameError,
    backup_file_name,
)

COLLECTIONS = {
    "taskEntries": [{"client_name": "Acme", "task_type": "Ledger Scrutiny"}],
    "clients": [{"name": "Acme", "state": "Gujarat"}],
    "users": [{"username": "admin", "rights": "Top Level Rights"}],
}


@pytest.fixture
def adapter(tmp_path) -> CloudBackupAdapter:
    return CloudBackupAdapter(str(tmp_path), folder="Tax Audit Data")


def test_backup_file_name_is_dated() -> None:
    moment = datetime(2025, 9, 30, 18, 45, tzinfo=timezone.utc)
    assert backup_file_name(moment) == "backup_2025-09-30.json"


@pytest.mark.asyncio
async def test_push_writes_one_file_per_collection(adapter, tmp_path) -> None:
    results = await adapter.push(COLLECTIONS)

    assert [r.name for r in results] == list(COLLECTION_FILES.values())
    assert all(r.ok for r in results)
    written = (tmp_path / "Tax Audit Data" / "clients.json").read_bytes()
    assert orjson.loads(written) == COLLECTIONS["clients"]


@pytest.mark.asyncio
async def test_push_reports_partial_failure_without_rollback(adapter) -> None:
    original = adapter.save_file

    async def flaky_save(name, data):
        if name == "users.json":
            raise OSError("quota exceeded")
        return await original(name, data)

    with patch.object(adapter, "save_file", side_effect=flaky_save):
        results = await adapter.push(COLLECTIONS)

    outcome = {r.name: r for r in results}
    assert outcome["taskEntries.json"].ok
    assert outcome["clients.json"].ok
    assert not outcome["users.json"].ok
    assert outcome["users.json"].error == "quota exceeded"
    assert await adapter.load_file("clients.json") == COLLECTIONS["clients"]


@pytest.mark.asyncio
async def test_pull_returns_none_for_missing_files(adapter) -> None:
    await adapter.save_file("clients.json", COLLECTIONS["clients"])

    pulled = await adapter.pull()

    assert pulled == {"taskEntries": None, "clients": COLLECTIONS["clients"], "users": None}


@pytest.mark.asyncio
async def test_backup_create_list_restore(adapter) -> None:
    first = await adapter.create_backup(
        COLLECTIONS, datetime(2025, 6, 1, tzinfo=timezone.utc)
    )
    await adapter.save_file("clients.json", [])

    backups = await adapter.list_backups()
    payload = await adapter.restore_backup(first)

    assert first == "backup_2025-06-01.json"
    assert [b["name"] for b in backups] == [first]
    assert payload["timestamp"].startswith("2025-06-01")
    assert payload["clients"] == COLLECTIONS["clients"]
    assert set(payload) == {"timestamp", *COLLECTION_FILES}


@pytest.mark.asyncio
async def test_list_backups_newest_first(adapter) -> None:
    await adapter.create_backup(COLLECTIONS, datetime(2025, 6, 1, tzinfo=timezone.utc))
    await adapter.create_backup(COLLECTIONS, datetime(2025, 6, 3, tzinfo=timezone.utc))

    names = [b["name"] for b in await adapter.list_backups()]

    assert names == ["backup_2025-06-03.json", "backup_2025-06-01.json"]


@pytest.mark.asyncio
async def test_list_backups_without_folder(adapter) -> None:
    assert await adapter.list_backups() == []


@pytest.mark.asyncio
async def test_restore_rejects_paths_outside_the_folder(adapter) -> None:
    with pytest.raises(InvalidBackupNameError):
        await adapter.restore_backup("../users.json")


@pytest.mark.asyncio
async def test_restore_missing_backup(adapter) -> None:
    with pytest.raises(FileNotFoundError):
        await adapter.restore_backup("backup_1999-01-01.json")
