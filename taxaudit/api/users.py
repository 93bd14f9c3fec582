"""User management endpoints."""

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Response, status
from pydantic import BaseModel, Field

from taxaudit.api.deps import CurrentUser, Store, require_user_manager
from taxaudit.api.errors import http_error, validation_error
from taxaudit.core.security import verify_password
from taxaudit.models import User
from taxaudit.records.errors import RecordError
from taxaudit.records.schemas import UserRecord
from taxaudit.workflow.roles import can_delete_user, can_manage_users, is_admin
from taxaudit.workflow.taxonomy import Rights
from taxaudit.workflow.validation import validate_new_user, validate_password_change

router = APIRouter(prefix="/api/users", tags=["users"])


class UserCreateRequest(BaseModel):
    """Payload for adding a user."""

    username: str = Field(default="", max_length=100)
    password: str = ""
    rights: Rights = Rights.STAGE_1


class UserUpdateRequest(BaseModel):
    """Payload for changing a user's rights."""

    rights: Rights


class PasswordChangeRequest(BaseModel):
    """Payload for changing a password; the current one is always required."""

    current_password: str = ""
    new_password: str = ""
    confirm_password: str = ""


@router.get("", response_model=list[UserRecord])
async def list_users(store: Store, user: CurrentUser) -> list[UserRecord]:
    return [UserRecord.model_validate(u) for u in await store.list_users()]


@router.post("", response_model=UserRecord, status_code=status.HTTP_201_CREATED)
async def create_user(
    payload: UserCreateRequest,
    store: Store,
    actor: Annotated[User, Depends(require_user_manager)],
) -> UserRecord:
    """Add a user (admin or Top Level Rights only)."""
    existing = [u.username for u in await store.list_users()]
    errors = validate_new_user(payload.username, payload.password, existing)
    if errors:
        raise validation_error(errors)

    try:
        user = await store.add_user(
            payload.username,
            payload.password,
            payload.rights,
            created_by=actor.username,
        )
    except RecordError as exc:
        raise http_error(exc) from exc
    return UserRecord.model_validate(user)


@router.patch("/{user_id}", response_model=UserRecord)
async def update_user(
    user_id: int,
    payload: UserUpdateRequest,
    store: Store,
    actor: Annotated[User, Depends(require_user_manager)],
) -> UserRecord:
    try:
        user = await store.update_user(user_id, rights=payload.rights)
    except RecordError as exc:
        raise http_error(exc) from exc
    return UserRecord.model_validate(user)


@router.patch("/{user_id}/password", response_model=UserRecord)
async def change_password(
    user_id: int,
    payload: PasswordChangeRequest,
    store: Store,
    actor: CurrentUser,
) -> UserRecord:
    """Change a user's password.

    Users may change their own password; admin and Top Level users may
    change anyone's. The target's current password must match either way.
    """
    try:
        target = await store.get_user(user_id)
    except RecordError as exc:
        raise http_error(exc) from exc

    if target.id != actor.id and not can_manage_users(actor.username, actor.rights):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Access denied. You can only change your own password.",
        )

    errors = validate_password_change(
        payload.current_password,
        verify_password(payload.current_password, target.password_hash),
        payload.new_password,
        payload.confirm_password,
    )
    if errors:
        raise validation_error(errors)

    user = await store.change_password(user_id, payload.new_password)
    return UserRecord.model_validate(user)


@router.delete("/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_user(user_id: int, store: Store, actor: CurrentUser) -> Response:
    """Delete a user (admin only; the admin account itself is protected)."""
    if not is_admin(actor.username):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Access denied. Only Admin can delete users.",
        )
    try:
        target = await store.get_user(user_id)
        if not can_delete_user(actor.username, target.username):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Cannot delete the Admin user.",
            )
        await store.delete_user(user_id)
    except RecordError as exc:
        raise http_error(exc) from exc
    return Response(status_code=status.HTTP_204_NO_CONTENT)
