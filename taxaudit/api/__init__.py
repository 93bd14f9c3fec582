"""API module exports."""

from taxaudit.api.auth import router as auth_router
from taxaudit.api.clients import router as clients_router
from taxaudit.api.dashboard import router as dashboard_router
from taxaudit.api.deps import get_current_user, get_db, get_store, get_sync_service
from taxaudit.api.entries import router as entries_router
from taxaudit.api.health import router as health_router
from taxaudit.api.matrix import router as matrix_router
from taxaudit.api.sync import router as sync_router
from taxaudit.api.users import router as users_router

__all__ = [
    "auth_router",
    "clients_router",
    "dashboard_router",
    "entries_router",
    "get_current_user",
    "get_db",
    "get_store",
    "get_sync_service",
    "health_router",
    "matrix_router",
    "sync_router",
    "users_router",
]
