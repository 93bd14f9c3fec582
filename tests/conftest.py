"""Pytest configuration and shared fixtures for tests."""

import os

# Minimum bcrypt work factor keeps password hashing fast under test.
os.environ.setdefault("PASSWORD_HASH_ROUNDS", "4")

import datetime as dt
from collections.abc import AsyncGenerator, Awaitable, Callable
from typing import Any

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from taxaudit.main import app
from taxaudit.models import Base, TaskEntry
from taxaudit.records.store import RecordStore
from taxaudit.records.sync import SyncService
from taxaudit.workflow.taxonomy import REGULAR_TASKS, QueryResolution, Rights, TaskType

STAFF = "Monal"
ADMIN_PASSWORD = "admin123"


@pytest.fixture(scope="session")
def anyio_backend() -> str:
    """Use asyncio backend for async tests.

    Returns:
        Backend name string.
    """
    return "asyncio"


@pytest_asyncio.fixture
async def session_factory() -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    """Create a sqlite-backed session factory and install it on the app."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    factory = async_sessionmaker(engine, expire_on_commit=False)
    app.state.async_session = factory
    app.state.sync_service = SyncService(factory, None)
    try:
        yield factory
    finally:
        await engine.dispose()


@pytest_asyncio.fixture
async def db_session(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def store(db_session: AsyncSession) -> RecordStore:
    return RecordStore(db_session, checking_partner="CA Mitt Patel")


@pytest_asyncio.fixture
async def api_client(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncClient, None]:
    """Unauthenticated API client; the admin account exists."""
    async with session_factory() as session:
        await RecordStore(session).ensure_default_admin(ADMIN_PASSWORD)
        await session.commit()

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as client:
        yield client


@pytest_asyncio.fixture
async def admin_client(api_client: AsyncClient) -> AsyncClient:
    """API client logged in as admin."""
    response = await api_client.post(
        "/api/auth/login",
        json={"username": "admin", "password": ADMIN_PASSWORD},
    )
    assert response.status_code == 200
    return api_client


@pytest_asyncio.fixture
async def login_as(
    api_client: AsyncClient,
    session_factory: async_sessionmaker[AsyncSession],
) -> Callable[..., Awaitable[AsyncClient]]:
    """Create a user if needed and make it the logged-in user."""

    async def login(
        username: str, rights: Rights, password: str = "secret1"
    ) -> AsyncClient:
        async with session_factory() as session:
            store = RecordStore(session)
            if await store.get_user_by_username(username) is None:
                await store.add_user(username, password, rights, created_by="admin")
            await session.commit()

        response = await api_client.post(
            "/api/auth/login",
            json={"username": username, "password": password},
        )
        assert response.status_code == 200
        return api_client

    return login


@pytest.fixture
def make_entry() -> Callable[..., TaskEntry]:
    """Build unsaved TaskEntry rows for the pure status functions.

    Each call gets a later timestamp and a higher id than the previous one
    unless given explicitly.
    """
    counter = {"n": 0}
    base = dt.datetime(2025, 6, 1, 9, 0, tzinfo=dt.timezone.utc)

    def factory(
        client_name: str,
        task_type: TaskType,
        queries_solved: QueryResolution = QueryResolution.YES,
        **fields: Any,
    ) -> TaskEntry:
        counter["n"] += 1
        values: dict[str, Any] = {
            "id": counter["n"],
            "client_name": client_name,
            "task_type": task_type,
            "verified_by": STAFF,
            "date": dt.date(2025, 6, 1),
            "queries_solved": queries_solved,
            "timestamp": base + dt.timedelta(minutes=counter["n"]),
            "pendencies": [],
        }
        values.update(fields)
        return TaskEntry(**values)

    return factory


@pytest.fixture
def completed_regulars(make_entry: Callable[..., TaskEntry]) -> Callable[..., list[TaskEntry]]:
    """All regular tasks answered Yes for a client, minus any skipped ones."""

    def factory(client_name: str, skip: tuple[TaskType, ...] = ()) -> list[TaskEntry]:
        return [
            make_entry(client_name, task_type)
            for task_type in REGULAR_TASKS
            if task_type not in skip
        ]

    return factory
