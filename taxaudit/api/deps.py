"""FastAPI dependency injection for sessions, the record store and sync."""

from collections.abc import AsyncGenerator
from typing import Annotated

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from taxaudit.core.config import settings
from taxaudit.core.logging import username_ctx
from taxaudit.models import User
from taxaudit.records.store import STATE_CURRENT_USER, RecordStore
from taxaudit.records.sync import PersistencePort, SyncService
from taxaudit.workflow.roles import can_edit_clients, can_manage_users


async def get_db(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """Yield a database session from the app's session factory.

    Args:
        request: FastAPI request containing app state.

    Yields:
        AsyncSession for database operations with automatic commit/rollback.
    """
    async with request.app.state.async_session() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def get_store(db: Annotated[AsyncSession, Depends(get_db)]) -> RecordStore:
    return RecordStore(db)


def get_staff_members() -> list[str]:
    """Names accepted in verified-by and solved-by fields."""
    return settings.staff_members


async def get_current_user(
    store: Annotated[RecordStore, Depends(get_store)],
) -> User:
    """The logged-in user recorded in app state.

    Raises:
        HTTPException: 401 when nobody is logged in.
    """
    username = await store.get_state(STATE_CURRENT_USER)
    user = await store.get_user_by_username(username) if username else None
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not logged in",
        )
    username_ctx.set(user.username)
    return user


async def require_client_editor(
    user: Annotated[User, Depends(get_current_user)],
) -> User:
    if not can_edit_clients(user.rights):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Stage 1 users have view-only access to the client master",
        )
    return user


async def require_user_manager(
    user: Annotated[User, Depends(get_current_user)],
) -> User:
    if not can_manage_users(user.username, user.rights):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Access denied. Only Admin or users with Top Level Rights can add new users.",
        )
    return user


def get_sync_service(request: Request) -> SyncService:
    return request.app.state.sync_service


def get_persistence_port(
    sync_service: Annotated[SyncService, Depends(get_sync_service)],
) -> PersistencePort:
    return PersistencePort(sync_service)


CurrentUser = Annotated[User, Depends(get_current_user)]
Store = Annotated[RecordStore, Depends(get_store)]
