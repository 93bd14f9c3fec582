"""Liveness of the local store and mode of the cloud sink."""

from datetime import datetime
from typing import Annotated, Literal

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from taxaudit.api.deps import get_db, get_sync_service
from taxaudit.core.logging import get_logger
from taxaudit.records.sync import SyncService

logger = get_logger(__name__)

router = APIRouter(prefix="/api", tags=["health"])

CloudMode = Literal["disabled", "online", "offline"]


class HealthResponse(BaseModel):
    status: Literal["ok", "degraded"]
    db: Literal["connected", "disconnected"]
    cloud_backup: CloudMode
    last_sync: datetime | None = None


def _cloud_mode(sync_service: SyncService) -> CloudMode:
    if not sync_service.enabled:
        return "disabled"
    return "online" if sync_service.status.is_online else "offline"


@router.get("/health", response_model=HealthResponse, response_model_exclude_none=True)
async def health_check(
    db: Annotated[AsyncSession, Depends(get_db)],
    sync_service: Annotated[SyncService, Depends(get_sync_service)],
) -> HealthResponse:
    """Overall status follows the database only; an offline cloud sink is
    reported but the app keeps working against the local store."""
    try:
        await db.execute(text("SELECT 1"))
    except SQLAlchemyError:
        logger.exception("database_health_check_failed")
        db_ok = False
    else:
        db_ok = True

    return HealthResponse(
        status="ok" if db_ok else "degraded",
        db="connected" if db_ok else "disconnected",
        cloud_backup=_cloud_mode(sync_service),
        last_sync=sync_service.status.last_sync,
    )
