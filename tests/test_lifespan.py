"""Application startup and shutdown through the real lifespan."""

import pytest
from asgi_lifespan import LifespanManager
from httpx import ASGITransport, AsyncClient

from taxaudit.core.config import settings
from taxaudit.main import app


@pytest.fixture
def local_settings(tmp_path, monkeypatch):
    """Point the store and the cloud sink at temporary locations."""
    monkeypatch.setattr(settings, "database_url", f"sqlite+aiosqlite:///{tmp_path / 'audit.db'}")
    monkeypatch.setattr(settings, "backup_url", str(tmp_path / "cloud"))
    monkeypatch.setattr(settings, "backup_interval_seconds", 3600)
    monkeypatch.setattr(settings, "sentry_dsn", None)
    return tmp_path


@pytest.mark.asyncio
async def test_lifespan_bootstraps_admin_and_cloud(local_settings) -> None:
    async with LifespanManager(app) as manager:
        async with AsyncClient(
            transport=ASGITransport(app=manager.app),
            base_url="http://test",
        ) as client:
            health = await client.get("/api/health")
            login = await client.post(
                "/api/auth/login",
                json={"username": "admin", "password": settings.default_admin_password},
            )

    assert health.json() == {"status": "ok", "db": "connected", "cloud_backup": "online"}
    assert login.status_code == 200
    assert (local_settings / "audit.db").exists()


@pytest.mark.asyncio
async def test_lifespan_without_cloud(local_settings, monkeypatch) -> None:
    monkeypatch.setattr(settings, "backup_url", None)

    async with LifespanManager(app) as manager:
        async with AsyncClient(
            transport=ASGITransport(app=manager.app),
            base_url="http://test",
        ) as client:
            health = await client.get("/api/health")

    assert health.json()["cloud_backup"] == "disabled"
