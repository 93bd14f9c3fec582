"""FastAPI application entry point with lifespan management."""

from contextlib import asynccontextmanager
from collections.abc import AsyncIterator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from taxaudit.api import (
    auth_router,
    clients_router,
    dashboard_router,
    entries_router,
    health_router,
    matrix_router,
    sync_router,
    users_router,
)
from taxaudit.api.middleware import RequestContextMiddleware
from taxaudit.core.config import settings
from taxaudit.core.database import create_engine, create_session_factory, init_models
from taxaudit.core.logging import configure_logging, get_logger
from taxaudit.core.sentry import init_sentry
from taxaudit.integrations.cloud_backup import CloudBackupAdapter
from taxaudit.records.store import RecordStore
from taxaudit.records.sync import BackupScheduler, SyncService

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Manage application lifecycle resources.

    Startup:
        - Configure structured logging
        - Initialize Sentry error tracking
        - Create database engine, session factory and missing tables
        - Bootstrap the admin account
        - Start the periodic cloud backup when a backup URL is configured

    Shutdown:
        - Stop the backup loop
        - Dispose database engine
    """
    configure_logging()
    logger.info("Starting application", environment=settings.environment)

    init_sentry()

    app.state.db_engine = create_engine()
    app.state.async_session = create_session_factory(app.state.db_engine)
    await init_models(app.state.db_engine)
    logger.info("Database engine created")

    async with app.state.async_session() as session:
        await RecordStore(session).ensure_default_admin()
        await session.commit()

    adapter = (
        CloudBackupAdapter(settings.backup_url, settings.backup_folder)
        if settings.backup_url
        else None
    )
    app.state.sync_service = SyncService(
        app.state.async_session,
        adapter,
        default_admin_password=settings.default_admin_password,
    )
    scheduler = BackupScheduler(
        app.state.sync_service, interval_seconds=settings.backup_interval_seconds
    )
    if adapter is not None:
        scheduler.start()
    else:
        logger.info("Cloud backup disabled")

    yield

    logger.info("Shutting down application")

    await scheduler.stop()

    await app.state.db_engine.dispose()
    logger.info("Database engine disposed")


app = FastAPI(
    title="Tax Audit",
    description="Tax audit workflow tracker for a chartered accountancy practice",
    version="0.1.0",
    lifespan=lifespan,
)

# Add CORS middleware for frontend development
app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:5173", "http://127.0.0.1:5173"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Add request context middleware
app.add_middleware(RequestContextMiddleware)

app.include_router(health_router)
app.include_router(auth_router)
app.include_router(users_router)
app.include_router(clients_router)
app.include_router(entries_router)
app.include_router(dashboard_router)
app.include_router(matrix_router)
app.include_router(sync_router)
