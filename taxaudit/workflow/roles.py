"""Role gating for task entry, client editing and user management.

Each role is an explicit named set; roles are never compared by rank.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import TYPE_CHECKING

from taxaudit.workflow.status import gated_availability
from taxaudit.workflow.taxonomy import ALL_TASKS, REGULAR_TASKS, Rights, TaskType

if TYPE_CHECKING:
    from taxaudit.models.task_entry import TaskEntry

ADMIN_USERNAME = "admin"

_ROLE_TASKS: dict[Rights, frozenset[TaskType]] = {
    Rights.STAGE_1: frozenset(REGULAR_TASKS),
    Rights.STAGE_2: frozenset(ALL_TASKS) - {TaskType.LEVEL1_APPROVAL},
    Rights.TOP_LEVEL: frozenset(ALL_TASKS),
}


def allowed_task_types(rights: Rights) -> list[TaskType]:
    """Task types a role may select, in taxonomy order."""
    permitted = _ROLE_TASKS[rights]
    return [task_type for task_type in ALL_TASKS if task_type in permitted]


def can_enter_task(rights: Rights, task_type: TaskType) -> bool:
    return task_type in _ROLE_TASKS[rights]


def available_task_types(
    rights: Rights,
    client_name: str | None,
    entries: Iterable[TaskEntry],
) -> list[TaskType]:
    """Role-permitted task types, minus Level 1 while its gate is closed.

    Without a client the workflow gate cannot be evaluated, so only the
    role filter applies.
    """
    permitted = allowed_task_types(rights)
    if not client_name or not client_name.strip():
        return permitted

    all_entries = list(entries)
    return [
        task_type
        for task_type in permitted
        if gated_availability(client_name, task_type, all_entries).available
    ]


def can_edit_clients(rights: Rights) -> bool:
    """Stage 1 users see the client master read-only."""
    return rights != Rights.STAGE_1


def is_admin(username: str | None) -> bool:
    return bool(username) and username.strip().lower() == ADMIN_USERNAME


def can_manage_users(username: str | None, rights: Rights | None) -> bool:
    """Admin or any Top Level user may add users and reset passwords."""
    return is_admin(username) or rights == Rights.TOP_LEVEL


def can_delete_user(actor: str | None, target: str) -> bool:
    """Only admin deletes users, and the admin account is never deletable."""
    return is_admin(actor) and not is_admin(target)
