"""Tests for user management endpoints."""

import pytest
from httpx import AsyncClient

from taxaudit.workflow.taxonomy import Rights


async def _create(client: AsyncClient, username: str, rights: str = "Stage 1 rights"):
    return await client.post(
        "/api/users",
        json={"username": username, "password": "secret1", "rights": rights},
    )


@pytest.mark.asyncio
async def test_admin_creates_and_lists_users(admin_client: AsyncClient) -> None:
    response = await _create(admin_client, "Monal", "Stage 2 rights")

    assert response.status_code == 201
    created = response.json()
    assert created["username"] == "Monal"
    assert created["rights"] == "Stage 2 rights"
    assert created["created_by"] == "admin"
    assert "password_hash" not in created

    listing = await admin_client.get("/api/users")
    assert [u["username"] for u in listing.json()] == ["admin", "Monal"]


@pytest.mark.asyncio
async def test_create_user_validation(admin_client: AsyncClient) -> None:
    response = await admin_client.post(
        "/api/users", json={"username": "ADMIN", "password": "123"}
    )

    assert response.status_code == 422
    errors = response.json()["detail"]["errors"]
    assert errors["username"] == "Username already exists"
    assert errors["password"] == "Password must be at least 6 characters"


@pytest.mark.asyncio
async def test_stage_users_cannot_add_users(login_as) -> None:
    client = await login_as("Rushda", Rights.STAGE_2)

    response = await _create(client, "Sanket")

    assert response.status_code == 403
    assert response.json()["detail"] == (
        "Access denied. Only Admin or users with Top Level Rights can add new users."
    )


@pytest.mark.asyncio
async def test_top_level_user_can_add_but_not_delete(login_as) -> None:
    client = await login_as("Mitt", Rights.TOP_LEVEL)

    created = await _create(client, "Sanket")
    assert created.status_code == 201

    response = await client.delete(f"/api/users/{created.json()['id']}")
    assert response.status_code == 403
    assert response.json()["detail"] == "Access denied. Only Admin can delete users."


@pytest.mark.asyncio
async def test_admin_deletes_users_but_not_itself(admin_client: AsyncClient) -> None:
    created = await _create(admin_client, "Govind")
    users = {u["username"]: u["id"] for u in (await admin_client.get("/api/users")).json()}

    deleted = await admin_client.delete(f"/api/users/{created.json()['id']}")
    protected = await admin_client.delete(f"/api/users/{users['admin']}")
    missing = await admin_client.delete("/api/users/9999")

    assert deleted.status_code == 204
    assert protected.status_code == 403
    assert protected.json()["detail"] == "Cannot delete the Admin user."
    assert missing.status_code == 404


@pytest.mark.asyncio
async def test_update_rights(admin_client: AsyncClient) -> None:
    created = await _create(admin_client, "Monal")

    response = await admin_client.patch(
        f"/api/users/{created.json()['id']}", json={"rights": "Top Level Rights"}
    )

    assert response.status_code == 200
    assert response.json()["rights"] == "Top Level Rights"


@pytest.mark.asyncio
async def test_change_own_password(login_as) -> None:
    client = await login_as("Monal", Rights.STAGE_1)
    me = (await client.get("/api/users")).json()
    monal_id = next(u["id"] for u in me if u["username"] == "Monal")

    wrong = await client.patch(
        f"/api/users/{monal_id}/password",
        json={
            "current_password": "not-it",
            "new_password": "secret2",
            "confirm_password": "secret2",
        },
    )
    assert wrong.status_code == 422
    assert wrong.json()["detail"]["errors"] == {
        "current_password": "Current password is incorrect"
    }

    ok = await client.patch(
        f"/api/users/{monal_id}/password",
        json={
            "current_password": "secret1",
            "new_password": "secret2",
            "confirm_password": "secret2",
        },
    )
    assert ok.status_code == 200

    relogin = await client.post(
        "/api/auth/login", json={"username": "Monal", "password": "secret2"}
    )
    assert relogin.status_code == 200


@pytest.mark.asyncio
async def test_cannot_change_someone_elses_password(login_as) -> None:
    client = await login_as("Monal", Rights.STAGE_1)
    users = (await client.get("/api/users")).json()
    admin_id = next(u["id"] for u in users if u["username"] == "admin")

    response = await client.patch(
        f"/api/users/{admin_id}/password",
        json={
            "current_password": "admin123",
            "new_password": "hijack1",
            "confirm_password": "hijack1",
        },
    )

    assert response.status_code == 403
