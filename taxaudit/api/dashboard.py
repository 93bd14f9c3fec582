"""Client progress dashboard endpoints."""

from datetime import datetime
from typing import Literal

from fastapi import APIRouter, Query
from pydantic import BaseModel

from taxaudit.api.deps import CurrentUser, Store
from taxaudit.api.errors import http_error
from taxaudit.models import Client
from taxaudit.records.errors import RecordError
from taxaudit.records.schemas import ClientRecord, TaskEntryRecord
from taxaudit.workflow.status import (
    ClientStatus,
    client_status,
    entries_for_client,
    entries_for_task,
    gated_availability,
    group_by_client,
    matches_search,
    normalize_name,
    summarize_roster,
    task_status,
)
from taxaudit.workflow.taxonomy import ALL_TASKS, Status, TaskType, is_special_task

router = APIRouter(prefix="/api/dashboard", tags=["dashboard"])

SortKey = Literal["name", "progress", "status", "last_updated"]

# Attention-first ordering for the status sort.
_STATUS_RANK = {
    Status.ISSUES_FOUND: 0,
    Status.IN_PROGRESS: 1,
    Status.NOT_STARTED: 2,
    Status.COMPLETED: 3,
}


class ClientStatusResponse(BaseModel):
    """One roster row with aggregate progress."""

    client_id: int
    name: str
    state: str
    gstn: str | None
    total_tasks: int
    completed_tasks: int
    progress: int
    status: Status
    last_updated: datetime | None


class DashboardResponse(BaseModel):
    clients: list[ClientStatusResponse]
    summary: dict[Status, int]


class TaskDetail(BaseModel):
    task_type: TaskType
    special: bool
    status: Status
    available: bool
    entries: list[TaskEntryRecord]


class ClientDetailResponse(BaseModel):
    """Per-task breakdown for one client."""

    client: ClientRecord
    overview: ClientStatusResponse
    pending_for_level1: list[TaskType]
    tasks: list[TaskDetail]


def _status_row(client: Client, summary: ClientStatus) -> ClientStatusResponse:
    return ClientStatusResponse(
        client_id=client.id,
        name=client.name,
        state=client.state,
        gstn=client.gstn,
        total_tasks=summary.total_tasks,
        completed_tasks=summary.completed_tasks,
        progress=summary.progress,
        status=summary.status,
        last_updated=client.last_updated,
    )


@router.get("/clients", response_model=DashboardResponse)
async def list_client_statuses(
    store: Store,
    user: CurrentUser,
    search: str | None = Query(default=None),
    sort: SortKey = Query(default="name"),
    descending: bool = Query(default=False),
) -> DashboardResponse:
    """Aggregate status of every client, sortable by name, progress or status."""
    grouped = group_by_client(await store.list_entries())
    rows: list[ClientStatusResponse] = []
    summaries: list[ClientStatus] = []
    for client in await store.list_clients():
        if not matches_search(client, search):
            continue
        summary = client_status(
            client.name,
            grouped.get(normalize_name(client.name), []),
            client_id=client.id,
        )
        summaries.append(summary)
        rows.append(_status_row(client, summary))

    if sort == "progress":
        rows.sort(key=lambda row: (row.progress, row.name.lower()), reverse=descending)
    elif sort == "status":
        rows.sort(key=lambda row: (_STATUS_RANK[row.status], row.name.lower()), reverse=descending)
    elif sort == "last_updated":
        rows.sort(
            key=lambda row: (row.last_updated.timestamp() if row.last_updated else 0.0),
            reverse=descending,
        )
    else:
        rows.sort(key=lambda row: row.name.lower(), reverse=descending)

    return DashboardResponse(clients=rows, summary=summarize_roster(summaries))


@router.get("/clients/{client_id}", response_model=ClientDetailResponse)
async def client_detail(client_id: int, store: Store, user: CurrentUser) -> ClientDetailResponse:
    try:
        client = await store.get_client(client_id)
    except RecordError as exc:
        raise http_error(exc) from exc

    own = entries_for_client(await store.list_entries(client.name), client.name)
    summary = client_status(client.name, own, client_id=client.id)
    gate = gated_availability(client.name, TaskType.LEVEL1_APPROVAL, own)

    tasks = [
        TaskDetail(
            task_type=task_type,
            special=is_special_task(task_type),
            status=task_status(own, task_type),
            available=gated_availability(client.name, task_type, own).available,
            entries=[TaskEntryRecord.model_validate(e) for e in entries_for_task(own, task_type)],
        )
        for task_type in ALL_TASKS
    ]
    return ClientDetailResponse(
        client=ClientRecord.model_validate(client),
        overview=_status_row(client, summary),
        pending_for_level1=list(gate.pending),
        tasks=tasks,
    )
