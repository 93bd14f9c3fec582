"""Client master endpoints, including roster import and export."""

from datetime import date
from typing import Annotated

from fastapi import APIRouter, Depends, File, Query, Response, UploadFile, status
from pydantic import BaseModel

from taxaudit.api.deps import CurrentUser, Store, require_client_editor
from taxaudit.api.errors import http_error, validation_error
from taxaudit.models import User
from taxaudit.records.errors import RecordError
from taxaudit.records.roster import (
    RosterFormatError,
    client_import_template_csv,
    export_clients_csv,
    parse_roster,
    plan_import,
)
from taxaudit.records.schemas import ClientRecord
from taxaudit.workflow.status import matches_search
from taxaudit.workflow.taxonomy import RegistrationStatus
from taxaudit.workflow.validation import ClientDraft, normalize_client, validate_client

router = APIRouter(prefix="/api/clients", tags=["clients"])


class ClientUpdateRequest(BaseModel):
    """Partial client update; omitted fields keep their value."""

    name: str | None = None
    registration_status: RegistrationStatus | None = None
    gstn: str | None = None
    pan: str | None = None
    state: str | None = None


class ImportResponse(BaseModel):
    """Outcome of a roster import."""

    success: int
    errors: list[str]
    duplicates: list[str]
    created: int
    updated: int


def csv_response(content: str, filename: str) -> Response:
    return Response(
        content=content,
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.get("", response_model=list[ClientRecord])
async def list_clients(
    store: Store,
    user: CurrentUser,
    search: str | None = Query(default=None),
) -> list[ClientRecord]:
    """Client master, optionally filtered by name/state/GSTN substring."""
    clients = await store.list_clients()
    return [
        ClientRecord.model_validate(client)
        for client in clients
        if matches_search(client, search)
    ]


@router.post("", response_model=ClientRecord, status_code=status.HTTP_201_CREATED)
async def create_client(
    payload: ClientDraft,
    store: Store,
    user: Annotated[User, Depends(require_client_editor)],
) -> ClientRecord:
    errors = validate_client(payload, await store.list_clients())
    if errors:
        raise validation_error(errors)
    try:
        client = await store.add_client(normalize_client(payload))
    except RecordError as exc:
        raise http_error(exc) from exc
    return ClientRecord.model_validate(client)


@router.get("/export")
async def export_clients(store: Store, user: CurrentUser) -> Response:
    content = export_clients_csv(await store.list_clients())
    return csv_response(content, f"clients_export_{date.today().isoformat()}.csv")


@router.get("/template")
async def import_template(user: CurrentUser) -> Response:
    return csv_response(client_import_template_csv(), "client-import-template.csv")


@router.post("/import", response_model=ImportResponse)
async def import_clients(
    store: Store,
    user: Annotated[User, Depends(require_client_editor)],
    file: UploadFile = File(...),
) -> ImportResponse:
    """Import a CSV or XLSX roster.

    Valid rows are upserted (matched by name, then GSTN); invalid rows are
    reported and skipped.
    """
    data = await file.read()
    try:
        rows = parse_roster(data, file.filename or "")
        plan = plan_import(rows, await store.list_clients())
    except RosterFormatError as exc:
        raise validation_error({"file": str(exc)}) from exc

    created, updated = await store.import_clients(plan.clients)
    return ImportResponse(
        success=plan.success,
        errors=plan.errors,
        duplicates=plan.duplicates,
        created=created,
        updated=updated,
    )


@router.get("/{client_id}", response_model=ClientRecord)
async def get_client(client_id: int, store: Store, user: CurrentUser) -> ClientRecord:
    try:
        client = await store.get_client(client_id)
    except RecordError as exc:
        raise http_error(exc) from exc
    return ClientRecord.model_validate(client)


@router.patch("/{client_id}", response_model=ClientRecord)
async def update_client(
    client_id: int,
    payload: ClientUpdateRequest,
    store: Store,
    user: Annotated[User, Depends(require_client_editor)],
) -> ClientRecord:
    """Partially update a client; the merged record is validated as a whole."""
    try:
        client = await store.get_client(client_id)
    except RecordError as exc:
        raise http_error(exc) from exc

    current = ClientDraft(
        name=client.name,
        registration_status=client.registration_status,
        gstn=client.gstn or "",
        pan=client.pan or "",
        state=client.state,
    )
    updates = {
        key: value if value is not None else ""
        for key, value in payload.model_dump(exclude_unset=True).items()
    }
    if "registration_status" in updates and not updates["registration_status"]:
        updates.pop("registration_status")
    draft = current.model_copy(update=updates)

    errors = validate_client(draft, await store.list_clients(), editing_id=client_id)
    if errors:
        raise validation_error(errors)
    try:
        client = await store.update_client(client_id, normalize_client(draft))
    except RecordError as exc:
        raise http_error(exc) from exc
    return ClientRecord.model_validate(client)
