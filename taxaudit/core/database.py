"""Async engine and session factory for the local record store."""

from typing import Any

from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from taxaudit.core.config import settings

# Importing the package registers every table on Base.metadata.
from taxaudit.models import Base


def _tune_sqlite(dbapi_connection: Any, connection_record: Any) -> None:
    # The backup loop reads while requests write.
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.execute("PRAGMA busy_timeout=5000")
    cursor.close()


def create_engine(
    database_url: str | None = None,
    **engine_options: Any,
) -> AsyncEngine:
    """Create the async engine for the record store.

    Args:
        database_url: Database URL. Defaults to settings.database_url.
        **engine_options: Extra keyword arguments for create_async_engine.
    """
    url = database_url or settings.database_url
    options: dict[str, Any] = {"echo": settings.debug}
    if url.startswith("sqlite"):
        options["connect_args"] = {"check_same_thread": False}
    else:
        options.update(pool_pre_ping=True, pool_size=5, max_overflow=0)
    options.update(engine_options)

    engine = create_async_engine(url, **options)
    if engine.dialect.name == "sqlite":
        event.listen(engine.sync_engine, "connect", _tune_sqlite)
    return engine


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Sessions keep loaded rows usable after commit; flushes are explicit."""
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


async def init_models(engine: AsyncEngine) -> None:
    """Create any missing tables.

    Schema changes after the first release go through Alembic; this only
    bootstraps an empty local store.
    """
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
