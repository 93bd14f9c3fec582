"""Cloud backup and sync endpoints.

Cloud failures never surface as HTTP errors: each operation answers 200
with ``ok`` false and the reason recorded on the sync status.
"""

from datetime import datetime
from typing import Annotated

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict
from sqlalchemy.ext.asyncio import AsyncSession

from taxaudit.api.deps import (
    CurrentUser,
    get_db,
    get_persistence_port,
    get_sync_service,
    require_user_manager,
)
from taxaudit.models import User
from taxaudit.records.sync import PersistencePort, SyncService

router = APIRouter(prefix="/api/sync", tags=["sync"])

SyncServiceDep = Annotated[SyncService, Depends(get_sync_service)]


class SyncStatusResponse(BaseModel):
    enabled: bool
    is_online: bool
    is_syncing: bool
    last_sync: datetime | None = None
    error: str | None = None


class SyncOperationResponse(BaseModel):
    ok: bool
    status: SyncStatusResponse


class FileResultResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    name: str
    ok: bool
    error: str | None = None


class PushResponse(BaseModel):
    """Outcome of the local commit and the cloud push, reported separately."""

    local_ok: bool
    cloud_ok: bool | None
    local_error: str | None = None
    cloud_error: str | None = None
    files: list[FileResultResponse]
    status: SyncStatusResponse


class BackupCreatedResponse(SyncOperationResponse):
    name: str | None = None


class BackupInfo(BaseModel):
    name: str
    size: int | None = None
    modified_at: datetime | None = None


class OnlineRequest(BaseModel):
    online: bool


def _status(service: SyncService) -> SyncStatusResponse:
    current = service.status
    return SyncStatusResponse(
        enabled=service.enabled,
        is_online=current.is_online,
        is_syncing=current.is_syncing,
        last_sync=current.last_sync,
        error=current.error,
    )


@router.get("/status", response_model=SyncStatusResponse)
async def sync_status(service: SyncServiceDep, user: CurrentUser) -> SyncStatusResponse:
    return _status(service)


@router.post("/online", response_model=SyncStatusResponse)
async def set_online(
    payload: OnlineRequest, service: SyncServiceDep, user: CurrentUser
) -> SyncStatusResponse:
    service.set_online(payload.online)
    return _status(service)


@router.post("/push", response_model=PushResponse)
async def push(
    db: Annotated[AsyncSession, Depends(get_db)],
    port: Annotated[PersistencePort, Depends(get_persistence_port)],
    user: CurrentUser,
) -> PushResponse:
    """Commit pending local work, then mirror every collection to the cloud."""
    report = await port.persist(db)
    return PushResponse(
        local_ok=report.local_ok,
        cloud_ok=report.cloud_ok,
        local_error=report.local_error,
        cloud_error=report.cloud_error,
        files=[FileResultResponse.model_validate(item) for item in report.cloud_files],
        status=_status(port.sync_service),
    )


@router.post("/pull", response_model=SyncOperationResponse)
async def pull(
    service: SyncServiceDep,
    user: Annotated[User, Depends(require_user_manager)],
) -> SyncOperationResponse:
    """Replace local records with the cloud copy."""
    ok = await service.load_from_cloud()
    return SyncOperationResponse(ok=ok, status=_status(service))


@router.get("/backups", response_model=list[BackupInfo])
async def list_backups(service: SyncServiceDep, user: CurrentUser) -> list[BackupInfo]:
    return [
        BackupInfo(name=item["name"], size=item.get("size"), modified_at=item.get("mtime"))
        for item in await service.list_backups()
    ]


@router.post("/backups", response_model=BackupCreatedResponse)
async def create_backup(service: SyncServiceDep, user: CurrentUser) -> BackupCreatedResponse:
    name = await service.create_backup()
    return BackupCreatedResponse(ok=name is not None, name=name, status=_status(service))


@router.post("/backups/{name}/restore", response_model=SyncOperationResponse)
async def restore_backup(
    name: str,
    service: SyncServiceDep,
    user: Annotated[User, Depends(require_user_manager)],
) -> SyncOperationResponse:
    """Replace every local record with the named backup."""
    ok = await service.restore_backup(name)
    return SyncOperationResponse(ok=ok, status=_status(service))
