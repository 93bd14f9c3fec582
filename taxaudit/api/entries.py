"""Task entry endpoints: submission, edits and per-task sub-workflows."""

import datetime as dt
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from pydantic import BaseModel, Field

from taxaudit.api.clients import csv_response
from taxaudit.api.deps import CurrentUser, Store, get_staff_members
from taxaudit.api.errors import http_error, validation_error
from taxaudit.core.logging import client_name_ctx, get_logger
from taxaudit.models import TaskEntry, User
from taxaudit.records.errors import RecordError
from taxaudit.records.roster import export_entries_csv
from taxaudit.records.schemas import (
    DisallowanceItem,
    RecheckItem,
    RepreparationItem,
    ResubmissionItem,
    TaskEntryRecord,
)
from taxaudit.workflow.roles import available_task_types, can_enter_task
from taxaudit.workflow.status import gated_availability
from taxaudit.workflow.taxonomy import (
    UDIN_PREPARED_UNDER_OPTIONS,
    PreparationStatus,
    QueryResolution,
    TaskType,
)
from taxaudit.workflow.validation import EntryDraft, build_entry_fields, validate_entry

logger = get_logger(__name__)

router = APIRouter(prefix="/api/entries", tags=["entries"])


class EntryUpdateRequest(BaseModel):
    """Partial update of an entry's signers and statuses."""

    verified_by: str | None = None
    date: dt.date | None = None
    queries_solved: QueryResolution | None = None
    queries_solved_by: str | None = None
    checked_by: str | None = None
    approved_by: str | None = None
    copy_given_by: str | None = None
    received_by: str | None = None
    prepared_by: str | None = None
    preparation_status: PreparationStatus | None = None


class QueryStatusRequest(BaseModel):
    status: QueryResolution
    solved_by: str | None = None


class PendencyRequest(BaseModel):
    text: str = Field(min_length=1)


class UpdatedByRequest(BaseModel):
    name: str = Field(min_length=1)
    date: dt.date | None = None


class UdinRequest(BaseModel):
    """Replacement UDIN payload; every field is mandatory."""

    udin_number: str = Field(min_length=1)
    udin_prepared_under: str = Field(min_length=1)
    udin_generated_by: str = Field(min_length=1)
    audit_report_signed_by: str = Field(min_length=1)
    audit_report_date: dt.date


class MarkCompletedRequest(BaseModel):
    client_name: str = Field(min_length=1)
    task_type: TaskType


class AvailableTaskTypesResponse(BaseModel):
    """Task types the current user may submit for a client right now."""

    task_types: list[TaskType]
    pending_for_level1: list[TaskType]


def _forbid_task(user: User, task_type: TaskType) -> None:
    if not can_enter_task(user.rights, task_type):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"{user.rights.value} cannot record '{task_type.value}'",
        )


async def _editable_entry(store: Store, entry_id: int, user: User) -> TaskEntry:
    try:
        entry = await store.get_entry(entry_id)
    except RecordError as exc:
        raise http_error(exc) from exc
    _forbid_task(user, entry.task_type)
    client_name_ctx.set(entry.client_name)
    return entry


def _record(entry: TaskEntry) -> TaskEntryRecord:
    return TaskEntryRecord.model_validate(entry)


@router.get("", response_model=list[TaskEntryRecord])
async def list_entries(
    store: Store,
    user: CurrentUser,
    client_name: str | None = Query(default=None),
    task_type: TaskType | None = Query(default=None),
) -> list[TaskEntryRecord]:
    entries = await store.list_entries(client_name)
    return [_record(e) for e in entries if task_type is None or e.task_type == task_type]


@router.get("/export")
async def export_entries(store: Store, user: CurrentUser) -> Response:
    content = export_entries_csv(await store.list_entries())
    return csv_response(content, f"tax-audit-entries-{dt.date.today().isoformat()}.csv")


@router.get("/available-task-types", response_model=AvailableTaskTypesResponse)
async def get_available_task_types(
    store: Store,
    user: CurrentUser,
    client_name: str | None = Query(default=None),
) -> AvailableTaskTypesResponse:
    """Role-permitted task types, with Level 1 removed while its gate is closed."""
    entries = await store.list_entries(client_name) if client_name else []
    pending: list[TaskType] = []
    if client_name:
        gate = gated_availability(client_name, TaskType.LEVEL1_APPROVAL, entries)
        pending = list(gate.pending)
    return AvailableTaskTypesResponse(
        task_types=available_task_types(user.rights, client_name, entries),
        pending_for_level1=pending,
    )


@router.post("", response_model=TaskEntryRecord, status_code=status.HTTP_201_CREATED)
async def create_entry(
    payload: EntryDraft,
    store: Store,
    user: CurrentUser,
    staff: Annotated[list[str], Depends(get_staff_members)],
) -> TaskEntryRecord:
    """Validate and record a task entry."""
    if payload.task_type is not None:
        _forbid_task(user, payload.task_type)
    client_name_ctx.set(payload.client_name.strip() or None)

    errors = validate_entry(payload, await store.list_entries(), staff)
    if errors:
        logger.info("entry_rejected", fields=sorted(errors))
        raise validation_error(errors)

    try:
        entry = await store.add_entry(
            build_entry_fields(payload, user.username),
            current_user=user.username,
        )
    except RecordError as exc:
        raise http_error(exc) from exc
    return _record(entry)


@router.post("/mark-completed", response_model=list[TaskEntryRecord])
async def mark_completed(
    payload: MarkCompletedRequest, store: Store, user: CurrentUser
) -> list[TaskEntryRecord]:
    """Force a client's task to Done/Yes and clear its pendencies."""
    _forbid_task(user, payload.task_type)
    try:
        entries = await store.mark_completed(payload.client_name, payload.task_type)
    except RecordError as exc:
        raise http_error(exc) from exc
    return [_record(e) for e in entries]


@router.get("/{entry_id}", response_model=TaskEntryRecord)
async def get_entry(entry_id: int, store: Store, user: CurrentUser) -> TaskEntryRecord:
    try:
        return _record(await store.get_entry(entry_id))
    except RecordError as exc:
        raise http_error(exc) from exc


@router.patch("/{entry_id}", response_model=TaskEntryRecord)
async def update_entry(
    entry_id: int, payload: EntryUpdateRequest, store: Store, user: CurrentUser
) -> TaskEntryRecord:
    await _editable_entry(store, entry_id, user)
    changes = payload.model_dump(exclude_unset=True)
    for required in ("verified_by", "date", "queries_solved"):
        if required in changes and changes[required] is None:
            raise validation_error({required: "This field cannot be cleared"})
    entry = await store.update_entry(entry_id, **changes)
    return _record(entry)


@router.patch("/{entry_id}/query-status", response_model=TaskEntryRecord)
async def update_query_status(
    entry_id: int, payload: QueryStatusRequest, store: Store, user: CurrentUser
) -> TaskEntryRecord:
    await _editable_entry(store, entry_id, user)
    if payload.status == QueryResolution.YES and not (payload.solved_by or "").strip():
        raise validation_error(
            {"queries_solved_by": "Please specify who solved the queries"}
        )
    entry = await store.update_query_status(entry_id, payload.status, payload.solved_by)
    return _record(entry)


@router.put("/{entry_id}/disallowances", response_model=TaskEntryRecord)
async def replace_disallowances(
    entry_id: int, items: list[DisallowanceItem], store: Store, user: CurrentUser
) -> TaskEntryRecord:
    await _editable_entry(store, entry_id, user)
    try:
        entry = await store.replace_disallowances(entry_id, items)
    except RecordError as exc:
        raise http_error(exc) from exc
    return _record(entry)


@router.put("/{entry_id}/resubmissions", response_model=TaskEntryRecord)
async def replace_resubmissions(
    entry_id: int, items: list[ResubmissionItem], store: Store, user: CurrentUser
) -> TaskEntryRecord:
    await _editable_entry(store, entry_id, user)
    return _record(await store.replace_resubmissions(entry_id, items))


@router.put("/{entry_id}/repreparations", response_model=TaskEntryRecord)
async def replace_repreparations(
    entry_id: int, items: list[RepreparationItem], store: Store, user: CurrentUser
) -> TaskEntryRecord:
    await _editable_entry(store, entry_id, user)
    return _record(await store.replace_repreparations(entry_id, items))


@router.put("/{entry_id}/recheck-history", response_model=TaskEntryRecord)
async def replace_recheck_history(
    entry_id: int, items: list[RecheckItem], store: Store, user: CurrentUser
) -> TaskEntryRecord:
    await _editable_entry(store, entry_id, user)
    return _record(await store.replace_recheck_history(entry_id, items))


@router.post("/{entry_id}/pendencies", response_model=TaskEntryRecord)
async def add_pendency(
    entry_id: int, payload: PendencyRequest, store: Store, user: CurrentUser
) -> TaskEntryRecord:
    await _editable_entry(store, entry_id, user)
    try:
        entry = await store.add_pendency(entry_id, payload.text)
    except RecordError as exc:
        raise http_error(exc) from exc
    return _record(entry)


@router.delete("/{entry_id}/pendencies/{index}", response_model=TaskEntryRecord)
async def close_pendency(
    entry_id: int, index: int, store: Store, user: CurrentUser
) -> TaskEntryRecord:
    await _editable_entry(store, entry_id, user)
    try:
        entry = await store.close_pendency(entry_id, index)
    except RecordError as exc:
        raise http_error(exc) from exc
    return _record(entry)


@router.post("/{entry_id}/updated-by", response_model=TaskEntryRecord)
async def add_updated_by(
    entry_id: int, payload: UpdatedByRequest, store: Store, user: CurrentUser
) -> TaskEntryRecord:
    await _editable_entry(store, entry_id, user)
    try:
        entry = await store.add_updated_by(entry_id, payload.name, payload.date)
    except RecordError as exc:
        raise http_error(exc) from exc
    return _record(entry)


@router.put("/{entry_id}/udin", response_model=TaskEntryRecord)
async def update_udin(
    entry_id: int, payload: UdinRequest, store: Store, user: CurrentUser
) -> TaskEntryRecord:
    await _editable_entry(store, entry_id, user)
    if payload.udin_prepared_under not in UDIN_PREPARED_UNDER_OPTIONS:
        raise validation_error(
            {"udin_prepared_under": "Please select a valid 44AB clause"}
        )
    entry = await store.update_udin(entry_id, **payload.model_dump())
    return _record(entry)
