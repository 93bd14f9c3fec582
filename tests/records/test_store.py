"""Tests for the async record store."""

import datetime as dt

import pytest

from taxaudit.records.errors import (
    AuthenticationError,
    DuplicateClientError,
    DuplicateEntryError,
    PermissionDeniedError,
    RecordNotFoundError,
    ValidationFailedError,
    WorkflowGateError,
)
from taxaudit.records.schemas import DisallowanceItem, ResubmissionItem
from taxaudit.records.store import STATE_CURRENT_USER, RecordSnapshot
from taxaudit.workflow.taxonomy import (
    REGULAR_TASKS,
    PreparationStatus,
    QueryResolution,
    RegistrationStatus,
    Rights,
    TaskType,
)

WORK_DATE = dt.date(2025, 6, 2)


def _fields(client_name: str, task_type: TaskType, **extra):
    values = {
        "client_name": client_name,
        "task_type": task_type,
        "date": WORK_DATE,
        "verified_by": "Monal",
        "queries_solved": QueryResolution.YES,
    }
    values.update(extra)
    return values


async def _add_client(store, name: str = "Acme Traders", **extra):
    values = {
        "name": name,
        "registration_status": RegistrationStatus.UNREGISTERED,
        "state": "Gujarat",
    }
    values.update(extra)
    return await store.add_client(values)


class TestEntries:
    """Tests for task entry operations."""

    @pytest.mark.asyncio
    async def test_add_entry_uses_master_spelling_and_touches_client(self, store) -> None:
        client = await _add_client(store)
        before = client.last_updated

        entry = await store.add_entry(_fields("acme traders", TaskType.LEDGER_SCRUTINY))

        assert entry.id is not None
        assert entry.client_name == "Acme Traders"
        assert entry.timestamp is not None
        assert client.last_updated >= before

    @pytest.mark.asyncio
    async def test_add_entry_defaults_verifier_to_current_user(self, store) -> None:
        entry = await store.add_entry(
            _fields("Acme", TaskType.AIS_CHECKING, verified_by=""),
            current_user="Sanket",
        )
        assert entry.verified_by == "Sanket"

    @pytest.mark.asyncio
    async def test_duplicate_task_is_rejected(self, store) -> None:
        await store.add_entry(_fields("Acme", TaskType.LEDGER_SCRUTINY))

        with pytest.raises(DuplicateEntryError) as exc_info:
            await store.add_entry(_fields("ACME", TaskType.LEDGER_SCRUTINY))

        assert "already been submitted for ACME" in str(exc_info.value)
        assert "02/06/2025 by Monal" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_level1_gate_enforced(self, store) -> None:
        for task_type in REGULAR_TASKS[:-1]:
            await store.add_entry(_fields("Acme", task_type))

        with pytest.raises(WorkflowGateError) as exc_info:
            await store.add_entry(_fields("Acme", TaskType.LEVEL1_APPROVAL))
        assert "Pending tasks: Data feeding in Software" in str(exc_info.value)

        await store.add_entry(_fields("Acme", REGULAR_TASKS[-1]))
        entry = await store.add_entry(_fields("Acme", TaskType.LEVEL1_APPROVAL))
        assert entry.task_type == TaskType.LEVEL1_APPROVAL

    @pytest.mark.asyncio
    async def test_non_ascii_client_name_matches_any_case(self, store) -> None:
        await _add_client(store, "Élan Traders")
        for task_type in REGULAR_TASKS:
            await store.add_entry(_fields("ÉLAN TRADERS", task_type))

        own = await store.list_entries("élan traders")
        assert len(own) == len(REGULAR_TASKS)
        assert {e.client_name for e in own} == {"Élan Traders"}

        with pytest.raises(DuplicateEntryError):
            await store.add_entry(_fields("élan traders", TaskType.LEDGER_SCRUTINY))

        entry = await store.add_entry(_fields("élan traders", TaskType.LEVEL1_APPROVAL))
        assert entry.client_name == "Élan Traders"

    @pytest.mark.asyncio
    async def test_get_missing_entry(self, store) -> None:
        with pytest.raises(RecordNotFoundError):
            await store.get_entry(404)

    @pytest.mark.asyncio
    async def test_update_entry_stamps_last_status_update(self, store) -> None:
        entry = await store.add_entry(_fields("Acme", TaskType.GST_VERIFICATION))
        assert entry.last_status_update is None

        updated = await store.update_entry(entry.id, verified_by="Mitt")

        assert updated.verified_by == "Mitt"
        assert updated.last_status_update is not None

    @pytest.mark.asyncio
    async def test_update_entry_rejects_unknown_fields(self, store) -> None:
        entry = await store.add_entry(_fields("Acme", TaskType.GST_VERIFICATION))
        with pytest.raises(ValueError):
            await store.update_entry(entry.id, colour="blue")

    @pytest.mark.asyncio
    async def test_query_status_keeps_solver_only_for_yes(self, store) -> None:
        entry = await store.add_entry(
            _fields("Acme", TaskType.AUDIT_QUERIES_STATUS_CHECKING, queries_solved=QueryResolution.NO)
        )

        solved = await store.update_query_status(entry.id, QueryResolution.YES, "CA Mitt Patel")
        assert solved.queries_solved_by == "CA Mitt Patel"
        assert solved.checked_by == "CA Mitt Patel"

        reopened = await store.update_query_status(entry.id, QueryResolution.PARTIAL, "Mitt")
        assert reopened.queries_solved_by is None

    @pytest.mark.asyncio
    async def test_pendency_lifecycle(self, store) -> None:
        entry = await store.add_entry(
            _fields(
                "Acme",
                TaskType.PREPARED_3CD,
                prepared_by="Monal",
                preparation_status=PreparationStatus.DONE,
            )
        )

        entry = await store.add_pendency(entry.id, "Stock statement")
        entry = await store.add_pendency(entry.id, "Loan confirmation")
        assert entry.preparation_status == PreparationStatus.PARTIAL
        assert entry.queries_solved == QueryResolution.PARTIAL

        entry = await store.close_pendency(entry.id, 0)
        assert entry.pendencies == ["Loan confirmation"]
        assert entry.preparation_status == PreparationStatus.PARTIAL

        entry = await store.close_pendency(entry.id, 0)
        assert entry.pendencies == []
        assert entry.preparation_status == PreparationStatus.DONE
        assert entry.queries_solved == QueryResolution.YES

    @pytest.mark.asyncio
    async def test_pendencies_are_capped(self, store) -> None:
        entry = await store.add_entry(_fields("Acme", TaskType.PREPARED_3CD))
        for n in range(10):
            await store.add_pendency(entry.id, f"Item {n}")

        with pytest.raises(ValidationFailedError):
            await store.add_pendency(entry.id, "One too many")

    @pytest.mark.asyncio
    async def test_close_unknown_pendency(self, store) -> None:
        entry = await store.add_entry(_fields("Acme", TaskType.PREPARED_3CD))
        with pytest.raises(RecordNotFoundError):
            await store.close_pendency(entry.id, 3)

    @pytest.mark.asyncio
    async def test_updated_by_is_capped_at_five(self, store) -> None:
        entry = await store.add_entry(_fields("Acme", TaskType.UDIN_NUMBER))
        for name in ("Mitt", "Monal", "Rushda", "Sanket", "Govind"):
            entry = await store.add_updated_by(entry.id, name, WORK_DATE)

        assert [item["name"] for item in entry.updated_by][-1] == "Govind"
        assert entry.updated_by[0]["date"] == "2025-06-02"
        with pytest.raises(ValidationFailedError):
            await store.add_updated_by(entry.id, "CA Mitt Patel")

    @pytest.mark.asyncio
    async def test_mark_completed_updates_every_entry_of_the_task(self, store) -> None:
        first = await store.add_entry(
            _fields(
                "Acme",
                TaskType.PREPARED_3CD,
                queries_solved=QueryResolution.PARTIAL,
                preparation_status=PreparationStatus.PARTIAL,
                pendencies=["Audit fee bill"],
            )
        )

        updated = await store.mark_completed("acme", TaskType.PREPARED_3CD)

        assert [e.id for e in updated] == [first.id]
        assert first.preparation_status == PreparationStatus.DONE
        assert first.queries_solved == QueryResolution.YES
        assert first.pendencies == []

    @pytest.mark.asyncio
    async def test_mark_completed_without_entries(self, store) -> None:
        with pytest.raises(RecordNotFoundError):
            await store.mark_completed("Acme", TaskType.UDIN_NUMBER)

    @pytest.mark.asyncio
    async def test_history_lists_are_replaced(self, store) -> None:
        entry = await store.add_entry(_fields("Acme", TaskType.COPY_TO_REHAN_SIR))

        entry = await store.replace_resubmissions(
            entry.id,
            [ResubmissionItem(status="Resubmission Required", resubmitted_by="Mitt")],
        )
        assert entry.resubmissions[0]["status"] == "Resubmission Required"
        assert entry.resubmissions[0]["id"]

        with pytest.raises(ValidationFailedError):
            await store.replace_disallowances(
                entry.id,
                [DisallowanceItem(section=str(n), disallowance="1") for n in range(11)],
            )

    @pytest.mark.asyncio
    async def test_update_udin_sets_signer_of_record(self, store) -> None:
        entry = await store.add_entry(_fields("Acme", TaskType.UDIN_NUMBER))
        entry = await store.update_udin(
            entry.id,
            udin_number="25000000ABCDEF0001",
            udin_prepared_under="Clause 44AB(b)- Gross receipts of profession exceeding specified limits",
            udin_generated_by="Mitt",
            audit_report_signed_by="CA Mitt Patel",
            audit_report_date=WORK_DATE,
        )
        assert entry.verified_by == "UDIN prepared by Mitt"
        assert entry.queries_solved == QueryResolution.YES


class TestClients:
    """Tests for client master operations."""

    @pytest.mark.asyncio
    async def test_duplicate_name_rejected_case_insensitively(self, store) -> None:
        await _add_client(store, "Acme")
        with pytest.raises(DuplicateClientError):
            await _add_client(store, "ACME")

    @pytest.mark.asyncio
    async def test_duplicate_non_ascii_name_rejected(self, store) -> None:
        client = await _add_client(store, "Élan Traders")

        assert (await store.find_client_by_name(" élan TRADERS ")).id == client.id
        with pytest.raises(DuplicateClientError):
            await _add_client(store, "ÉLAN TRADERS")

    @pytest.mark.asyncio
    async def test_rename_carries_entries(self, store) -> None:
        client = await _add_client(store, "Acme")
        await store.add_entry(_fields("Acme", TaskType.LEDGER_SCRUTINY))

        await store.update_client(client.id, {"name": "Acme Industries"})

        assert [e.client_name for e in await store.list_entries()] == ["Acme Industries"]
        assert await store.list_entries("Acme") == []

    @pytest.mark.asyncio
    async def test_rename_onto_another_client_rejected(self, store) -> None:
        await _add_client(store, "Acme")
        beta = await _add_client(store, "Beta")
        with pytest.raises(DuplicateClientError):
            await store.update_client(beta.id, {"name": "acme"})

    @pytest.mark.asyncio
    async def test_import_updates_name_match(self, store) -> None:
        await _add_client(store, "Beta")
        rows = [
            {
                "name": "BETA",
                "registration_status": RegistrationStatus.UNREGISTERED,
                "gstn": None,
                "pan": "ABCDE1234F",
                "state": "Goa",
            },
            {
                "name": "Newco",
                "registration_status": RegistrationStatus.UNREGISTERED,
                "gstn": None,
                "pan": None,
                "state": "Kerala",
            },
        ]

        created, updated = await store.import_clients(rows)

        assert (created, updated) == (1, 1)
        clients = {c.name: c for c in await store.list_clients()}
        assert set(clients) == {"BETA", "Newco"}
        assert clients["BETA"].state == "Goa"
        assert clients["BETA"].pan == "ABCDE1234F"

    @pytest.mark.asyncio
    async def test_import_falls_back_to_gstn_match(self, store) -> None:
        await _add_client(
            store,
            "Acme",
            registration_status=RegistrationStatus.REGISTERED,
            gstn="24ABCDE1234F1Z5",
        )
        rows = [
            {
                "name": "Acme Private Limited",
                "registration_status": RegistrationStatus.REGISTERED,
                "gstn": "24abcde1234f1z5",
                "pan": None,
                "state": "Gujarat",
            }
        ]

        assert await store.import_clients(rows) == (0, 1)
        assert [c.name for c in await store.list_clients()] == ["Acme Private Limited"]


class TestUsers:
    """Tests for user operations."""

    @pytest.mark.asyncio
    async def test_authenticate(self, store) -> None:
        await store.add_user("Monal", "secret1", Rights.STAGE_2, created_by="admin")

        user = await store.authenticate("monal", "secret1")
        assert user.last_login is not None
        assert user.password_hash != "secret1"

        with pytest.raises(AuthenticationError, match="Invalid username or password"):
            await store.authenticate("Monal", "wrong")
        with pytest.raises(AuthenticationError):
            await store.authenticate("nobody", "secret1")

    @pytest.mark.asyncio
    async def test_duplicate_username(self, store) -> None:
        await store.add_user("Monal", "secret1", Rights.STAGE_1)
        with pytest.raises(ValidationFailedError):
            await store.add_user("MONAL", "secret2", Rights.STAGE_1)

    @pytest.mark.asyncio
    async def test_change_password(self, store) -> None:
        user = await store.add_user("Monal", "secret1", Rights.STAGE_1)
        await store.change_password(user.id, "secret2")
        assert await store.authenticate("Monal", "secret2")

    @pytest.mark.asyncio
    async def test_admin_is_created_once_and_cannot_be_deleted(self, store) -> None:
        admin = await store.ensure_default_admin("admin123")
        again = await store.ensure_default_admin("other")
        assert again.id == admin.id
        assert admin.rights == Rights.TOP_LEVEL

        with pytest.raises(PermissionDeniedError):
            await store.delete_user(admin.id)

    @pytest.mark.asyncio
    async def test_delete_user(self, store) -> None:
        user = await store.add_user("Monal", "secret1", Rights.STAGE_1)
        await store.delete_user(user.id)
        assert await store.get_user_by_username("Monal") is None


class TestStateAndSnapshots:
    """Tests for app state and wholesale snapshot replacement."""

    @pytest.mark.asyncio
    async def test_app_state(self, store) -> None:
        assert await store.get_state(STATE_CURRENT_USER) is None
        await store.set_state(STATE_CURRENT_USER, "admin")
        await store.set_state(STATE_CURRENT_USER, "Monal")
        assert await store.get_state(STATE_CURRENT_USER) == "Monal"
        await store.clear_state(STATE_CURRENT_USER)
        assert await store.get_state(STATE_CURRENT_USER) is None

    @pytest.mark.asyncio
    async def test_snapshot_and_replace_all(self, store) -> None:
        await _add_client(store, "Acme")
        await store.add_entry(_fields("Acme", TaskType.LEDGER_SCRUTINY))
        await store.ensure_default_admin("admin123")
        snapshot = await store.snapshot()

        collections = snapshot.as_collections()
        assert set(collections) == {"taskEntries", "clients", "users"}
        assert collections["taskEntries"][0]["task_type"] == "Ledger Scrutiny"
        assert "password_hash" in collections["users"][0]

        await _add_client(store, "Beta")
        await store.replace_all(RecordSnapshot.from_collections(collections))

        assert [c.name for c in await store.list_clients()] == ["Acme"]
        assert len(await store.list_entries()) == 1
        assert await store.authenticate("admin", "admin123")

    @pytest.mark.asyncio
    async def test_replace_all_hashes_plaintext_passwords(self, store) -> None:
        snapshot = RecordSnapshot(
            users=[{"id": "u-1", "username": "Monal", "password": "secret1", "rights": "Stage 1 rights"}]
        )
        await store.replace_all(snapshot)

        user = await store.get_user_by_username("Monal")
        assert user is not None
        assert user.password_hash != "secret1"
        assert await store.authenticate("Monal", "secret1")

    @pytest.mark.asyncio
    async def test_malformed_snapshot_leaves_store_untouched(self, store) -> None:
        await _add_client(store, "Acme")
        bad = RecordSnapshot(clients=[{"name": "No state"}])

        with pytest.raises(ValueError):
            await store.replace_all(bad)

        assert [c.name for c in await store.list_clients()] == ["Acme"]
