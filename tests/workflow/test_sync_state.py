"""Tests for the cloud sync state machine."""

from datetime import datetime, timezone

import pytest

from taxaudit.workflow.sync_state import SyncStateMachine, SyncStatus, TransitionNotAllowed


class TestSyncStateMachine:
    """Tests for SyncStateMachine transitions."""

    def test_starts_idle(self) -> None:
        sm = SyncStateMachine()
        assert sm.current_state == sm.idle
        assert sm.is_busy is False
        assert sm.status.is_syncing is False

    def test_begin_marks_syncing_and_clears_error(self) -> None:
        status = SyncStatus(error="previous failure")
        sm = SyncStateMachine(status)

        sm.begin(operation="push")

        assert sm.current_state == sm.syncing
        assert sm.is_busy is True
        assert status.is_syncing is True
        assert status.error is None

    def test_succeed_records_last_sync(self) -> None:
        sm = SyncStateMachine()
        synced_at = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)

        sm.begin()
        sm.succeed(synced_at=synced_at)

        assert sm.current_state == sm.idle
        assert sm.status.last_sync == synced_at
        assert sm.status.is_syncing is False

    def test_succeed_without_timestamp_keeps_last_sync(self) -> None:
        earlier = datetime(2025, 5, 1, tzinfo=timezone.utc)
        sm = SyncStateMachine(SyncStatus(last_sync=earlier))

        sm.begin(operation="backup")
        sm.succeed()

        assert sm.status.last_sync == earlier

    def test_fail_records_reason(self) -> None:
        sm = SyncStateMachine()

        sm.begin()
        sm.fail(reason="Failed to save: users.json")

        assert sm.current_state == sm.failed
        assert sm.status.error == "Failed to save: users.json"
        assert sm.status.is_syncing is False

    def test_retry_after_failure(self) -> None:
        sm = SyncStateMachine()
        sm.begin()
        sm.fail(reason="offline")

        sm.begin()

        assert sm.current_state == sm.syncing

    def test_cannot_begin_while_syncing(self) -> None:
        sm = SyncStateMachine()
        sm.begin()

        with pytest.raises(TransitionNotAllowed):
            sm.begin()

    def test_cannot_succeed_when_idle(self) -> None:
        sm = SyncStateMachine()

        with pytest.raises(TransitionNotAllowed):
            sm.succeed()
