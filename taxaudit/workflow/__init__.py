"""Task workflow rules: taxonomy, status derivation, role gates, validation."""

from taxaudit.workflow.roles import (
    allowed_task_types,
    available_task_types,
    can_delete_user,
    can_edit_clients,
    can_enter_task,
    can_manage_users,
    is_admin,
)
from taxaudit.workflow.status import (
    ClientStatus,
    GateResult,
    client_status,
    filter_roster,
    gated_availability,
    task_status,
    task_statuses,
)
from taxaudit.workflow.sync_state import SyncStateMachine, SyncStatus
from taxaudit.workflow.taxonomy import (
    ALL_TASKS,
    REGULAR_TASKS,
    SPECIAL_TASKS,
    PreparationStatus,
    QueryResolution,
    RegistrationStatus,
    Rights,
    Status,
    TaskType,
)
from taxaudit.workflow.validation import (
    ClientDraft,
    EntryDraft,
    validate_client,
    validate_entry,
)

__all__ = [
    # Taxonomy
    "ALL_TASKS",
    "REGULAR_TASKS",
    "SPECIAL_TASKS",
    "PreparationStatus",
    "QueryResolution",
    "RegistrationStatus",
    "Rights",
    "Status",
    "TaskType",
    # Status engine
    "ClientStatus",
    "GateResult",
    "client_status",
    "filter_roster",
    "gated_availability",
    "task_status",
    "task_statuses",
    # Roles
    "allowed_task_types",
    "available_task_types",
    "can_delete_user",
    "can_edit_clients",
    "can_enter_task",
    "can_manage_users",
    "is_admin",
    # Validation
    "ClientDraft",
    "EntryDraft",
    "validate_client",
    "validate_entry",
    # Sync
    "SyncStateMachine",
    "SyncStatus",
]
