"""Login, logout and current-user endpoints.

The service is single-tenant: the logged-in user is kept in app state
(``currentUser``/``currentUserRights``), like the desktop client it backs.
"""

from datetime import datetime

from fastapi import APIRouter, Response, status
from pydantic import BaseModel, Field

from taxaudit.api.deps import CurrentUser, Store
from taxaudit.api.errors import http_error
from taxaudit.core.logging import get_logger
from taxaudit.models import User
from taxaudit.records.errors import AuthenticationError
from taxaudit.records.store import STATE_CURRENT_RIGHTS, STATE_CURRENT_USER
from taxaudit.workflow.roles import allowed_task_types, can_edit_clients, can_manage_users, is_admin
from taxaudit.workflow.taxonomy import Rights, TaskType

logger = get_logger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])


class LoginRequest(BaseModel):
    """Credentials for logging in."""

    username: str = Field(min_length=1, max_length=100)
    password: str = Field(min_length=1)


class SessionResponse(BaseModel):
    """Logged-in user and what they may do."""

    username: str
    rights: Rights
    last_login: datetime | None
    task_types: list[TaskType]
    can_edit_clients: bool
    can_manage_users: bool
    can_delete_users: bool


def _session_response(user: User) -> SessionResponse:
    return SessionResponse(
        username=user.username,
        rights=user.rights,
        last_login=user.last_login,
        task_types=allowed_task_types(user.rights),
        can_edit_clients=can_edit_clients(user.rights),
        can_manage_users=can_manage_users(user.username, user.rights),
        can_delete_users=is_admin(user.username),
    )


@router.post("/login", response_model=SessionResponse)
async def login(payload: LoginRequest, store: Store) -> SessionResponse:
    """Verify credentials and make the user current."""
    try:
        user = await store.authenticate(payload.username, payload.password)
    except AuthenticationError as exc:
        raise http_error(exc) from exc

    await store.set_state(STATE_CURRENT_USER, user.username)
    await store.set_state(STATE_CURRENT_RIGHTS, user.rights.value)
    logger.info("user_logged_in", user=user.username)
    return _session_response(user)


@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT)
async def logout(store: Store) -> Response:
    await store.clear_state(STATE_CURRENT_USER)
    await store.clear_state(STATE_CURRENT_RIGHTS)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/me", response_model=SessionResponse)
async def me(user: CurrentUser) -> SessionResponse:
    return _session_response(user)

