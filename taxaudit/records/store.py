"""Async record store for task entries, clients, users and app state.

The store owns every write to the local database. Callers validate form
input first (``taxaudit.workflow.validation``); the store still enforces the
invariants that must hold regardless of the caller: one entry per
(client, task type) on add, the Level 1 gate, list size limits and the
undeletable ``admin`` account.

Example:
    >>> store = RecordStore(session)
    >>> entry = await store.add_entry(fields, current_user="Monal")
    >>> await store.add_pendency(entry.id, "Bank statement for March")
"""

import datetime as dt
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

import structlog
from pydantic import BaseModel
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from taxaudit.core.config import settings
from taxaudit.core.security import hash_password, verify_password
from taxaudit.models import AppState, Client, TaskEntry, User, utcnow
from taxaudit.records.errors import (
    AuthenticationError,
    DuplicateClientError,
    DuplicateEntryError,
    PermissionDeniedError,
    RecordNotFoundError,
    ValidationFailedError,
    WorkflowGateError,
)
from taxaudit.records.schemas import (
    ClientRecord,
    DisallowanceItem,
    RecheckItem,
    RepreparationItem,
    ResubmissionItem,
    TaskEntryRecord,
    UpdatedByItem,
    UserBackupRecord,
    dump_items,
)
from taxaudit.workflow.roles import ADMIN_USERNAME, is_admin
from taxaudit.workflow.status import entries_for_client, gated_availability, normalize_name
from taxaudit.workflow.taxonomy import (
    MAX_DISALLOWANCES,
    MAX_PENDENCIES,
    MAX_UPDATED_BY,
    PreparationStatus,
    QueryResolution,
    Rights,
    TaskType,
)

logger = structlog.get_logger()

STATE_CURRENT_USER = "currentUser"
STATE_CURRENT_RIGHTS = "currentUserRights"
STATE_LAST_SYNC = "lastGoogleDriveSync"


@dataclass
class RecordSnapshot:
    """JSON-safe copy of the three record collections."""

    task_entries: list[dict[str, Any]] = field(default_factory=list)
    clients: list[dict[str, Any]] = field(default_factory=list)
    users: list[dict[str, Any]] = field(default_factory=list)

    def as_collections(self) -> dict[str, list[dict[str, Any]]]:
        """Keyed by the backup collection names."""
        return {
            "taskEntries": self.task_entries,
            "clients": self.clients,
            "users": self.users,
        }

    @classmethod
    def from_collections(cls, data: Mapping[str, Any]) -> "RecordSnapshot":
        return cls(
            task_entries=list(data.get("taskEntries") or []),
            clients=list(data.get("clients") or []),
            users=list(data.get("users") or []),
        )


def _drop_foreign_id(raw: Mapping[str, Any]) -> dict[str, Any]:
    # Ids from other stores may be strings; let the database assign new ones.
    values = dict(raw)
    if not isinstance(values.get("id"), int):
        values.pop("id", None)
    return values


def _model_columns(record: BaseModel) -> dict[str, Any]:
    return {key: value for key, value in record.model_dump().items() if value is not None}


class RecordStore:
    """Repository over one AsyncSession.

    The session is not committed here; the request dependency (or caller)
    owns the transaction.
    """

    def __init__(
        self,
        session: AsyncSession,
        *,
        checking_partner: str | None = None,
    ) -> None:
        self.session = session
        self.checking_partner = checking_partner or settings.checking_partner

    # ------------------------------------------------------------------
    # Task entries
    # ------------------------------------------------------------------

    async def list_entries(self, client_name: str | None = None) -> list[TaskEntry]:
        """Entries in insertion order, optionally for one client.

        Names are matched in Python: SQLite's lower() folds ASCII only.
        """
        result = await self.session.execute(
            select(TaskEntry).order_by(TaskEntry.timestamp, TaskEntry.id)
        )
        entries = list(result.scalars().all())
        if client_name:
            return entries_for_client(entries, client_name)
        return entries

    async def get_entry(self, entry_id: int) -> TaskEntry:
        entry = await self.session.get(TaskEntry, entry_id)
        if entry is None:
            raise RecordNotFoundError("Task entry", entry_id)
        return entry

    async def add_entry(
        self, fields: Mapping[str, Any], *, current_user: str | None = None
    ) -> TaskEntry:
        """Insert a new entry.

        The client name is rewritten to the master list's spelling and the
        client's ``last_updated`` is bumped.

        Raises:
            DuplicateEntryError: The task type is already recorded for the client.
            WorkflowGateError: Level 1 approval while regular tasks are pending.
        """
        values = dict(fields)
        raw_name = str(values.get("client_name", "")).strip()
        master = await self.find_client_by_name(raw_name)
        client_name = master.name if master else raw_name
        task_type = TaskType(values["task_type"])

        existing = await self.list_entries(client_name)
        for entry in existing:
            if entry.task_type == task_type:
                raise DuplicateEntryError(
                    f"This task has already been submitted for {client_name}. "
                    f"Task was completed on {entry.date.strftime('%d/%m/%Y')} "
                    f"by {entry.verified_by}."
                )

        gate = gated_availability(client_name, task_type, existing)
        if not gate.available:
            raise WorkflowGateError(gate.message)

        values["client_name"] = client_name
        values["verified_by"] = values.get("verified_by") or current_user or "Unknown"
        values.setdefault("timestamp", utcnow())

        entry = TaskEntry(**values)
        self.session.add(entry)
        await self.session.flush()
        await self._touch_client(client_name)
        logger.info(
            "entry_added",
            entry_id=entry.id,
            client=client_name,
            task_type=task_type.value,
        )
        return entry

    async def update_entry(self, entry_id: int, **changes: Any) -> TaskEntry:
        """Apply a partial update and stamp ``last_status_update``."""
        entry = await self.get_entry(entry_id)
        for name, value in changes.items():
            if not hasattr(TaskEntry, name) or name in ("id", "timestamp"):
                raise ValueError(f"Unknown task entry field: {name}")
            setattr(entry, name, value)
        entry.last_status_update = utcnow()
        await self.session.flush()
        await self._touch_client(entry.client_name)
        logger.info("entry_updated", entry_id=entry_id, fields=sorted(changes))
        return entry

    async def update_query_status(
        self,
        entry_id: int,
        status: QueryResolution,
        solved_by: str | None = None,
    ) -> TaskEntry:
        """Change ``queries_solved``; the solver is only kept for ``Yes``."""
        entry = await self.get_entry(entry_id)
        changes: dict[str, Any] = {
            "queries_solved": status,
            "queries_solved_by": solved_by if status == QueryResolution.YES else None,
        }
        if solved_by and solved_by == self.checking_partner:
            changes["checked_by"] = self.checking_partner
        return await self.update_entry(entry.id, **changes)

    async def replace_disallowances(
        self, entry_id: int, items: list[DisallowanceItem]
    ) -> TaskEntry:
        if len(items) > MAX_DISALLOWANCES:
            raise ValidationFailedError(
                {"disallowances": f"At most {MAX_DISALLOWANCES} disallowances are allowed"}
            )
        return await self.update_entry(entry_id, disallowances=dump_items(items))

    async def replace_resubmissions(
        self, entry_id: int, items: list[ResubmissionItem]
    ) -> TaskEntry:
        return await self.update_entry(entry_id, resubmissions=dump_items(items))

    async def replace_repreparations(
        self, entry_id: int, items: list[RepreparationItem]
    ) -> TaskEntry:
        return await self.update_entry(entry_id, repreparations=dump_items(items))

    async def replace_recheck_history(
        self, entry_id: int, items: list[RecheckItem]
    ) -> TaskEntry:
        return await self.update_entry(entry_id, recheck_history=dump_items(items))

    async def add_updated_by(
        self, entry_id: int, name: str, on: dt.date | None = None
    ) -> TaskEntry:
        """Append a name to the entry's updater list (at most five)."""
        entry = await self.get_entry(entry_id)
        if not name.strip():
            raise ValidationFailedError({"name": "Name is required"})
        if len(entry.updated_by) >= MAX_UPDATED_BY:
            raise ValidationFailedError(
                {"name": f"At most {MAX_UPDATED_BY} names can be recorded"}
            )
        item = UpdatedByItem(name=name.strip(), date=on or dt.date.today())
        return await self.update_entry(
            entry_id, updated_by=[*entry.updated_by, *dump_items([item])]
        )

    async def add_pendency(self, entry_id: int, text: str) -> TaskEntry:
        """Record an open pendency; the entry drops back to Partial."""
        entry = await self.get_entry(entry_id)
        if not text.strip():
            raise ValidationFailedError({"pendency": "Pendency text is required"})
        if len(entry.pendencies) >= MAX_PENDENCIES:
            raise ValidationFailedError(
                {"pendency": f"At most {MAX_PENDENCIES} pendencies are allowed"}
            )
        return await self.update_entry(
            entry_id,
            pendencies=[*entry.pendencies, text.strip()],
            preparation_status=PreparationStatus.PARTIAL,
            queries_solved=QueryResolution.PARTIAL,
        )

    async def close_pendency(self, entry_id: int, index: int) -> TaskEntry:
        """Remove one pendency; closing the last one completes the entry."""
        entry = await self.get_entry(entry_id)
        if not 0 <= index < len(entry.pendencies):
            raise RecordNotFoundError("Pendency", index)
        remaining = [item for pos, item in enumerate(entry.pendencies) if pos != index]
        done = not remaining
        return await self.update_entry(
            entry_id,
            pendencies=remaining,
            preparation_status=PreparationStatus.DONE if done else PreparationStatus.PARTIAL,
            queries_solved=QueryResolution.YES if done else QueryResolution.PARTIAL,
        )

    async def mark_completed(self, client_name: str, task_type: TaskType) -> list[TaskEntry]:
        """Force every entry of one task type for a client to Done/Yes.

        Raises:
            RecordNotFoundError: The client has no entry of that type.
        """
        entries = [
            entry
            for entry in await self.list_entries(client_name)
            if entry.task_type == task_type
        ]
        if not entries:
            raise RecordNotFoundError("Task entry", f"{client_name}/{task_type.value}")
        updated = []
        for entry in entries:
            changes: dict[str, Any] = {
                "queries_solved": QueryResolution.YES,
                "pendencies": [],
            }
            if entry.preparation_status is not None or task_type == TaskType.PREPARED_3CD:
                changes["preparation_status"] = PreparationStatus.DONE
            updated.append(await self.update_entry(entry.id, **changes))
        return updated

    async def update_udin(
        self,
        entry_id: int,
        *,
        udin_number: str,
        udin_prepared_under: str,
        udin_generated_by: str,
        audit_report_signed_by: str,
        audit_report_date: dt.date,
    ) -> TaskEntry:
        """Replace the UDIN payload; the generator becomes the signer of record."""
        return await self.update_entry(
            entry_id,
            udin_number=udin_number,
            udin_prepared_under=udin_prepared_under,
            udin_generated_by=udin_generated_by,
            audit_report_signed_by=audit_report_signed_by,
            audit_report_date=audit_report_date,
            verified_by=f"UDIN prepared by {udin_generated_by}",
            queries_solved=QueryResolution.YES,
        )

    # ------------------------------------------------------------------
    # Clients
    # ------------------------------------------------------------------

    async def list_clients(self) -> list[Client]:
        result = await self.session.execute(select(Client).order_by(Client.name, Client.id))
        return list(result.scalars().all())

    async def get_client(self, client_id: int) -> Client:
        client = await self.session.get(Client, client_id)
        if client is None:
            raise RecordNotFoundError("Client", client_id)
        return client

    async def find_client_by_name(self, name: str) -> Client | None:
        key = normalize_name(name)
        if not key:
            return None
        return next(
            (client for client in await self.list_clients() if normalize_name(client.name) == key),
            None,
        )

    async def add_client(self, fields: Mapping[str, Any]) -> Client:
        """Insert a client.

        Raises:
            DuplicateClientError: A client with the same name (any case) exists.
        """
        name = str(fields["name"]).strip()
        if await self.find_client_by_name(name) is not None:
            raise DuplicateClientError("Client with this name already exists")
        client = Client(**{**fields, "name": name, "last_updated": utcnow()})
        self.session.add(client)
        await self.session.flush()
        logger.info("client_added", client_id=client.id, client=name)
        return client

    async def update_client(self, client_id: int, fields: Mapping[str, Any]) -> Client:
        """Update client fields; a rename carries the client's entries along."""
        client = await self.get_client(client_id)
        new_name = str(fields.get("name", client.name)).strip()
        if normalize_name(new_name) != normalize_name(client.name):
            other = await self.find_client_by_name(new_name)
            if other is not None and other.id != client.id:
                raise DuplicateClientError("Client with this name already exists")
            for entry in await self.list_entries(client.name):
                entry.client_name = new_name

        for name, value in fields.items():
            setattr(client, name, value)
        client.name = new_name
        client.last_updated = utcnow()
        await self.session.flush()
        logger.info("client_updated", client_id=client_id, fields=sorted(fields))
        return client

    async def import_clients(self, rows: Iterable[Mapping[str, Any]]) -> tuple[int, int]:
        """Upsert clients matched by name, else by GSTN.

        Returns:
            (created, updated) counts.
        """
        created = updated = 0
        clients = await self.list_clients()
        for row in rows:
            name = str(row["name"]).strip()
            gstn = (row.get("gstn") or "").upper()
            match = next(
                (c for c in clients if normalize_name(c.name) == normalize_name(name)),
                None,
            )
            if match is None and gstn:
                match = next(
                    (c for c in clients if c.gstn and c.gstn.upper() == gstn), None
                )

            if match is None:
                client = Client(**{**row, "name": name, "last_updated": utcnow()})
                self.session.add(client)
                clients.append(client)
                created += 1
            else:
                for key, value in row.items():
                    setattr(match, key, value)
                match.last_updated = utcnow()
                updated += 1

        await self.session.flush()
        logger.info("clients_imported", created=created, updated=updated)
        return created, updated

    async def _touch_client(self, client_name: str) -> None:
        client = await self.find_client_by_name(client_name)
        if client is not None:
            client.last_updated = utcnow()
            await self.session.flush()

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    async def list_users(self) -> list[User]:
        result = await self.session.execute(select(User).order_by(User.id))
        return list(result.scalars().all())

    async def get_user(self, user_id: int) -> User:
        user = await self.session.get(User, user_id)
        if user is None:
            raise RecordNotFoundError("User", user_id)
        return user

    async def get_user_by_username(self, username: str) -> User | None:
        key = username.strip().lower()
        return next(
            (user for user in await self.list_users() if user.username.lower() == key),
            None,
        )

    async def add_user(
        self,
        username: str,
        password: str,
        rights: Rights,
        *,
        created_by: str | None = None,
    ) -> User:
        if await self.get_user_by_username(username) is not None:
            raise ValidationFailedError({"username": "Username already exists"})
        user = User(
            username=username.strip(),
            password_hash=hash_password(password),
            rights=rights,
            created_by=created_by,
            created_at=utcnow(),
        )
        self.session.add(user)
        await self.session.flush()
        logger.info("user_added", user_id=user.id, rights=rights.value)
        return user

    async def update_user(self, user_id: int, *, rights: Rights | None = None) -> User:
        user = await self.get_user(user_id)
        if rights is not None:
            user.rights = rights
        await self.session.flush()
        return user

    async def change_password(self, user_id: int, new_password: str) -> User:
        user = await self.get_user(user_id)
        user.password_hash = hash_password(new_password)
        await self.session.flush()
        logger.info("user_password_changed", user_id=user_id)
        return user

    async def delete_user(self, user_id: int) -> None:
        """Delete a user.

        Raises:
            PermissionDeniedError: The target is the ``admin`` account.
        """
        user = await self.get_user(user_id)
        if is_admin(user.username):
            raise PermissionDeniedError("The admin user cannot be deleted")
        await self.session.delete(user)
        await self.session.flush()
        logger.info("user_deleted", user_id=user_id)

    async def authenticate(self, username: str, password: str) -> User:
        """Verify credentials and stamp ``last_login``.

        Raises:
            AuthenticationError: Unknown username or wrong password.
        """
        user = await self.get_user_by_username(username)
        if user is None or not verify_password(password, user.password_hash):
            logger.warning("login_failed")
            raise AuthenticationError()
        user.last_login = utcnow()
        await self.session.flush()
        return user

    async def ensure_default_admin(self, password: str | None = None) -> User:
        """Create the ``admin`` account with Top Level rights if it is missing."""
        existing = await self.get_user_by_username(ADMIN_USERNAME)
        if existing is not None:
            return existing
        user = User(
            username=ADMIN_USERNAME,
            password_hash=hash_password(password or settings.default_admin_password),
            rights=Rights.TOP_LEVEL,
            created_by="system",
            created_at=utcnow(),
        )
        self.session.add(user)
        await self.session.flush()
        logger.info("default_admin_created")
        return user

    # ------------------------------------------------------------------
    # App state
    # ------------------------------------------------------------------

    async def get_state(self, key: str) -> str | None:
        row = await self.session.get(AppState, key)
        return row.value if row is not None else None

    async def set_state(self, key: str, value: str | None) -> None:
        row = await self.session.get(AppState, key)
        if row is None:
            self.session.add(AppState(key=key, value=value, updated_at=utcnow()))
        else:
            row.value = value
        await self.session.flush()

    async def clear_state(self, key: str) -> None:
        await self.session.execute(delete(AppState).where(AppState.key == key))
        await self.session.flush()

    # ------------------------------------------------------------------
    # Snapshot / restore
    # ------------------------------------------------------------------

    async def snapshot(self) -> RecordSnapshot:
        """JSON-safe copy of every entry, client and user."""
        entries = await self.list_entries()
        clients = await self.list_clients()
        users = await self.list_users()
        return RecordSnapshot(
            task_entries=[
                TaskEntryRecord.model_validate(e).model_dump(mode="json") for e in entries
            ],
            clients=[
                ClientRecord.model_validate(c).model_dump(mode="json") for c in clients
            ],
            users=[
                UserBackupRecord.model_validate(u).model_dump(mode="json") for u in users
            ],
        )

    async def replace_all(self, snapshot: RecordSnapshot) -> None:
        """Replace every entry, client and user with the snapshot's contents.

        Records are parsed before anything is deleted, so a malformed
        snapshot leaves the store untouched.

        Raises:
            pydantic.ValidationError: A record does not parse.
        """
        entries = [
            TaskEntryRecord.model_validate(_drop_foreign_id(raw))
            for raw in snapshot.task_entries
        ]
        clients = [
            ClientRecord.model_validate(_drop_foreign_id(raw)) for raw in snapshot.clients
        ]
        users = []
        for raw in snapshot.users:
            values = _drop_foreign_id(raw)
            # Older exports carry plaintext passwords.
            if "password_hash" not in values and values.get("password"):
                values["password_hash"] = hash_password(str(values.pop("password")))
            users.append(UserBackupRecord.model_validate(values))

        await self.session.execute(delete(TaskEntry))
        await self.session.execute(delete(Client))
        await self.session.execute(delete(User))
        self.session.expunge_all()

        now = utcnow()
        for record in entries:
            columns = _model_columns(record)
            columns.setdefault("timestamp", now)
            self.session.add(TaskEntry(**columns))
        for record in clients:
            columns = _model_columns(record)
            columns.setdefault("last_updated", now)
            self.session.add(Client(**columns))
        for record in users:
            columns = _model_columns(record)
            columns.setdefault("created_at", now)
            self.session.add(User(**columns))

        await self.session.flush()
        logger.info(
            "records_replaced",
            task_entries=len(entries),
            clients=len(clients),
            users=len(users),
        )

