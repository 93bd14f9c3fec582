"""Task matrix endpoints: filtered roster with one status per task type.

Column filters are ANDed; the master status filter matches a client when
any one of its tasks is in that status.
"""

from datetime import date

from fastapi import APIRouter, Response
from pydantic import BaseModel, Field

from taxaudit.api.clients import csv_response
from taxaudit.api.deps import CurrentUser, Store
from taxaudit.records.roster import export_matrix_csv
from taxaudit.workflow.status import (
    column_status_counts,
    filter_roster,
    group_by_client,
    normalize_name,
    task_statuses,
)
from taxaudit.workflow.taxonomy import ALL_TASKS, Status, TaskType

router = APIRouter(prefix="/api/matrix", tags=["matrix"])


class MatrixFilter(BaseModel):
    """Search text, master status and per-column status filters."""

    search: str | None = None
    master_status: Status | None = None
    column_filters: dict[TaskType, list[Status]] = Field(default_factory=dict)


class MatrixRow(BaseModel):
    client_id: int
    name: str
    state: str
    gstn: str | None
    statuses: dict[TaskType, Status]


class MatrixResponse(BaseModel):
    columns: list[TaskType]
    rows: list[MatrixRow]
    total_clients: int
    column_counts: dict[TaskType, dict[Status, int]]


@router.post("", response_model=MatrixResponse)
async def task_matrix(payload: MatrixFilter, store: Store, user: CurrentUser) -> MatrixResponse:
    """Filter the roster and return every matching client's task statuses.

    Column counts cover all clients matching the search, before the status
    filters apply, so each filter menu shows what selecting it would yield.
    """
    clients = await store.list_clients()
    entries = await store.list_entries()
    grouped = group_by_client(entries)

    matching = filter_roster(
        clients,
        entries,
        search=payload.search,
        master_status=payload.master_status,
        column_filters=payload.column_filters,
    )
    rows = [
        MatrixRow(
            client_id=client.id,
            name=client.name,
            state=client.state,
            gstn=client.gstn,
            statuses=task_statuses(grouped.get(normalize_name(client.name), [])),
        )
        for client in matching
    ]
    counts = {
        task_type: column_status_counts(clients, entries, task_type, search=payload.search)
        for task_type in ALL_TASKS
    }
    return MatrixResponse(
        columns=list(ALL_TASKS),
        rows=rows,
        total_clients=len(clients),
        column_counts=counts,
    )


@router.post("/export")
async def export_matrix(payload: MatrixFilter, store: Store, user: CurrentUser) -> Response:
    clients = await store.list_clients()
    entries = await store.list_entries()
    matching = filter_roster(
        clients,
        entries,
        search=payload.search,
        master_status=payload.master_status,
        column_filters=payload.column_filters,
    )
    return csv_response(
        export_matrix_csv(matching, entries),
        f"task-matrix-filtered-{date.today().isoformat()}.csv",
    )
