"""Task status derivation and workflow gating.

Pure functions over explicit record collections. Nothing here reads the
store or caches results: every status is recomputed from the entries passed
in, so removing or downgrading an entry takes effect on the next call.

Multiple entries per (client, task type) are possible (restores and
imports can carry them), so task status aggregates across all of them and
a single ``No`` anywhere dominates.

Example:
    >>> own = entries_for_client(all_entries, "Acme")
    >>> task_status(own, TaskType.GST_VERIFICATION)
    <Status.NOT_STARTED: 'Not Started'>
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol, TypeVar, assert_never

from taxaudit.workflow.taxonomy import (
    ALL_TASKS,
    REGULAR_TASKS,
    PreparationStatus,
    QueryResolution,
    Status,
    TaskType,
)

if TYPE_CHECKING:
    from datetime import datetime

    from taxaudit.models.task_entry import TaskEntry


class RosterClient(Protocol):
    """The client attributes the engine reads."""

    name: str
    state: str
    gstn: str | None


C = TypeVar("C", bound=RosterClient)


@dataclass(frozen=True)
class ClientStatus:
    """Aggregate completion of one client across all task types."""

    name: str
    total_tasks: int
    completed_tasks: int
    status: Status
    client_id: int | None = None

    @property
    def progress(self) -> int:
        """Completion percentage for progress bars (0-100)."""
        if self.total_tasks == 0:
            return 0
        return round(self.completed_tasks * 100 / self.total_tasks)


@dataclass(frozen=True)
class GateResult:
    """Availability of a task type plus the regular tasks blocking it."""

    available: bool
    pending: tuple[TaskType, ...] = ()

    @property
    def message(self) -> str | None:
        """Error text shown when the gate is closed."""
        if self.available:
            return None
        names = ", ".join(task.value for task in self.pending)
        return (
            "Level 1 approval requires all regular tasks to be completed first. "
            f"Pending tasks: {names}"
        )


def normalize_name(name: str) -> str:
    """Case-insensitive matching key for client names."""
    return name.strip().lower()


def entries_for_client(
    entries: Iterable[TaskEntry], client_name: str
) -> list[TaskEntry]:
    """Return the entries recorded against ``client_name``."""
    key = normalize_name(client_name)
    return [entry for entry in entries if normalize_name(entry.client_name) == key]


def entries_for_task(
    entries: Iterable[TaskEntry], task_type: TaskType
) -> list[TaskEntry]:
    """Return the entries of one task type."""
    return [entry for entry in entries if entry.task_type == task_type]


def group_by_client(entries: Iterable[TaskEntry]) -> dict[str, list[TaskEntry]]:
    """Bucket entries by normalized client name."""
    grouped: dict[str, list[TaskEntry]] = defaultdict(list)
    for entry in entries:
        grouped[normalize_name(entry.client_name)].append(entry)
    return grouped


def ordering_key(entry: TaskEntry) -> tuple[float, int]:
    """Recency key: epoch seconds of ``timestamp``, then insertion id."""
    stamp: datetime | None = entry.timestamp
    return (stamp.timestamp() if stamp is not None else 0.0, entry.id or 0)


def latest_entry(
    entries: Iterable[TaskEntry], task_type: TaskType
) -> TaskEntry | None:
    """Return the most recent entry of ``task_type``, if any."""
    matching = entries_for_task(entries, task_type)
    if not matching:
        return None
    return max(matching, key=ordering_key)


def _resolution_status(entries: Sequence[TaskEntry]) -> Status:
    resolutions = [entry.queries_solved for entry in entries]
    if QueryResolution.NO in resolutions:
        return Status.ISSUES_FOUND
    if QueryResolution.PARTIAL in resolutions:
        return Status.IN_PROGRESS
    if all(value == QueryResolution.YES for value in resolutions):
        return Status.COMPLETED
    return Status.IN_PROGRESS


def _preparation_status(entries: Sequence[TaskEntry]) -> Status:
    prepared = [entry for entry in entries if entry.preparation_status is not None]
    if not prepared:
        return _resolution_status(entries)
    latest = max(prepared, key=ordering_key)
    if latest.preparation_status == PreparationStatus.PARTIAL:
        return Status.IN_PROGRESS
    return Status.COMPLETED


def task_status(entries: Iterable[TaskEntry], task_type: TaskType) -> Status:
    """Derive the status of one task from a client's entries.

    Args:
        entries: Entries of a single client (any task types).
        task_type: Task to classify.

    Returns:
        Not Started when nothing is recorded; otherwise the aggregate over
        every matching entry.
    """
    matching = entries_for_task(entries, task_type)
    if not matching:
        return Status.NOT_STARTED

    match task_type:
        case TaskType.PREPARED_3CD:
            return _preparation_status(matching)
        case (
            TaskType.OPENING_BALANCE_VERIFICATION
            | TaskType.AUDIT_QUERIES_STATUS_CHECKING
            | TaskType.LEDGER_SCRUTINY
            | TaskType.CHECKING_26AS
            | TaskType.AIS_CHECKING
            | TaskType.GST_VERIFICATION
            | TaskType.DATA_FEEDING
            | TaskType.DISALLOWANCES_IN_3CD
            | TaskType.LEVEL1_APPROVAL
            | TaskType.COPY_TO_REHAN_SIR
            | TaskType.COMPUTATION_CHECKING
            | TaskType.FINAL_VERIFICATION
            | TaskType.UDIN_NUMBER
        ):
            return _resolution_status(matching)
        case _:
            assert_never(task_type)


def task_statuses(entries: Iterable[TaskEntry]) -> dict[TaskType, Status]:
    """Status of every task type for one client, in taxonomy order."""
    own = list(entries)
    return {task_type: task_status(own, task_type) for task_type in ALL_TASKS}


def is_fully_resolved(entries: Sequence[TaskEntry]) -> bool:
    """True when at least one entry exists and every one is ``Yes``."""
    return bool(entries) and all(
        entry.queries_solved == QueryResolution.YES for entry in entries
    )


def client_status(
    client_name: str,
    entries: Iterable[TaskEntry],
    *,
    client_id: int | None = None,
) -> ClientStatus:
    """Aggregate a client's progress across all fourteen task types.

    A task counts as completed only when every one of its entries is
    ``Yes``; this is stricter than ``task_status`` for mixed entries.

    Args:
        client_name: Client to summarize (matched case-insensitively).
        entries: All entries, or the client's entries already filtered.
        client_id: Optional id carried through for the roster view.

    Returns:
        ClientStatus with counts and the aggregate status.
    """
    own = entries_for_client(entries, client_name)
    total = len(ALL_TASKS)
    completed = sum(
        1 for task_type in ALL_TASKS if is_fully_resolved(entries_for_task(own, task_type))
    )
    has_issues = any(entry.queries_solved == QueryResolution.NO for entry in own)

    if completed == total:
        status = Status.COMPLETED
    elif has_issues:
        status = Status.ISSUES_FOUND
    elif completed > 0:
        status = Status.IN_PROGRESS
    else:
        status = Status.NOT_STARTED

    return ClientStatus(
        name=client_name,
        total_tasks=total,
        completed_tasks=completed,
        status=status,
        client_id=client_id,
    )


def gated_availability(
    client_name: str,
    task_type: TaskType,
    entries: Iterable[TaskEntry],
) -> GateResult:
    """Check whether ``task_type`` may be entered for a client.

    Only Level 1 approval is gated: it opens once the latest entry of every
    regular task is ``Yes``. All other task types are always available.
    """
    if task_type != TaskType.LEVEL1_APPROVAL:
        return GateResult(available=True)

    own = entries_for_client(entries, client_name)
    pending: list[TaskType] = []
    for regular in REGULAR_TASKS:
        latest = latest_entry(own, regular)
        if latest is None or latest.queries_solved != QueryResolution.YES:
            pending.append(regular)
    return GateResult(available=not pending, pending=tuple(pending))


def column_filter_predicate(
    client: RosterClient,
    task_type: TaskType,
    allowed_statuses: Iterable[Status],
    entries: Iterable[TaskEntry],
) -> bool:
    """True when the client's status in one matrix column is allowed."""
    own = entries_for_client(entries, client.name)
    return task_status(own, task_type) in set(allowed_statuses)


def passes_column_filters(
    client: RosterClient,
    column_filters: Mapping[TaskType, Iterable[Status]],
    entries: Iterable[TaskEntry],
) -> bool:
    """AND across every active column filter; empty filters are ignored."""
    own = entries_for_client(entries, client.name)
    for task_type, allowed in column_filters.items():
        allowed_set = set(allowed)
        if allowed_set and not column_filter_predicate(client, task_type, allowed_set, own):
            return False
    return True


def passes_master_filter(
    client: RosterClient,
    status: Status,
    entries: Iterable[TaskEntry],
) -> bool:
    """OR across columns: any task type of the client currently in ``status``."""
    own = entries_for_client(entries, client.name)
    return any(task_status(own, task_type) == status for task_type in ALL_TASKS)


def matches_search(client: RosterClient, search: str | None) -> bool:
    """Substring match on name, state or GSTN (case-insensitive)."""
    if not search:
        return True
    needle = search.strip().lower()
    haystacks = [client.name, client.state, client.gstn or ""]
    return any(needle in value.lower() for value in haystacks)


def filter_roster(
    clients: Iterable[C],
    entries: Iterable[TaskEntry],
    *,
    search: str | None = None,
    master_status: Status | None = None,
    column_filters: Mapping[TaskType, Iterable[Status]] | None = None,
) -> list[C]:
    """Apply search, then the master filter, then the column filters."""
    all_entries = list(entries)
    grouped = group_by_client(all_entries)
    active = {
        task_type: set(allowed)
        for task_type, allowed in (column_filters or {}).items()
        if allowed
    }

    result: list[C] = []
    for client in clients:
        if not matches_search(client, search):
            continue
        own = grouped.get(normalize_name(client.name), [])
        if master_status is not None and not passes_master_filter(
            client, master_status, own
        ):
            continue
        if active and not passes_column_filters(client, active, own):
            continue
        result.append(client)
    return result


def column_status_counts(
    clients: Iterable[RosterClient],
    entries: Iterable[TaskEntry],
    task_type: TaskType,
    *,
    search: str | None = None,
) -> dict[Status, int]:
    """Count search-matching clients per status in one matrix column."""
    grouped = group_by_client(entries)
    counts = {status: 0 for status in Status}
    for client in clients:
        if not matches_search(client, search):
            continue
        own = grouped.get(normalize_name(client.name), [])
        counts[task_status(own, task_type)] += 1
    return counts


def summarize_roster(statuses: Iterable[ClientStatus]) -> dict[Status, int]:
    """Number of clients in each aggregate status."""
    counts = {status: 0 for status in Status}
    for item in statuses:
        counts[item.status] += 1
    return counts


__all__ = [
    "ClientStatus",
    "GateResult",
    "RosterClient",
    "client_status",
    "column_filter_predicate",
    "column_status_counts",
    "entries_for_client",
    "entries_for_task",
    "filter_roster",
    "gated_availability",
    "group_by_client",
    "is_fully_resolved",
    "latest_entry",
    "matches_search",
    "normalize_name",
    "ordering_key",
    "passes_column_filters",
    "passes_master_filter",
    "summarize_roster",
    "task_status",
    "task_statuses",
]
