"""Pydantic record models shared by the store snapshot, backups and the API."""

import datetime as dt
import uuid
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from taxaudit.workflow.taxonomy import (
    PreparationStatus,
    QueryResolution,
    RegistrationStatus,
    RepreparationStatus,
    ResubmissionStatus,
    Rights,
    TaskType,
)


def _history_id() -> str:
    return uuid.uuid4().hex


class DisallowanceItem(BaseModel):
    """One 3CD disallowance line."""

    section: str
    disallowance: str
    added_by: str | None = None
    updated_by: str | None = None
    timestamp: dt.datetime | None = None
    last_updated: dt.datetime | None = None


class ResubmissionItem(BaseModel):
    """One round of resubmitting the audit copy."""

    id: str = Field(default_factory=_history_id)
    status: ResubmissionStatus
    resubmitted_by: str | None = None
    received_by: str | None = None
    date: dt.date | None = None
    timestamp: dt.datetime | None = None


class RepreparationItem(BaseModel):
    """One round of re-preparing the 3CD report."""

    id: str = Field(default_factory=_history_id)
    status: RepreparationStatus
    reprepared_by: str | None = None
    date: dt.date | None = None
    timestamp: dt.datetime | None = None


class RecheckItem(BaseModel):
    """One recheck of the final verification."""

    id: str = Field(default_factory=_history_id)
    checked_by: str
    date: dt.date | None = None
    timestamp: dt.datetime | None = None


class UpdatedByItem(BaseModel):
    name: str
    date: dt.date


class TaskEntryRecord(BaseModel):
    """Task entry as exported, backed up and returned by the API."""

    model_config = ConfigDict(from_attributes=True)

    id: int | None = None
    client_name: str
    task_type: TaskType
    verified_by: str
    date: dt.date
    queries_solved: QueryResolution
    queries_solved_by: str | None = None
    checked_by: str | None = None
    approved_by: str | None = None
    copy_given_by: str | None = None
    received_by: str | None = None
    prepared_by: str | None = None
    preparation_status: PreparationStatus | None = None
    pendencies: list[str] = Field(default_factory=list)
    disallowances: list[dict[str, Any]] = Field(default_factory=list)
    resubmissions: list[dict[str, Any]] = Field(default_factory=list)
    repreparations: list[dict[str, Any]] = Field(default_factory=list)
    recheck_history: list[dict[str, Any]] = Field(default_factory=list)
    updated_by: list[dict[str, Any]] = Field(default_factory=list)
    udin_number: str | None = None
    udin_prepared_under: str | None = None
    udin_generated_by: str | None = None
    audit_report_signed_by: str | None = None
    audit_report_date: dt.date | None = None
    timestamp: dt.datetime | None = None
    last_status_update: dt.datetime | None = None


class ClientRecord(BaseModel):
    """Client master row."""

    model_config = ConfigDict(from_attributes=True)

    id: int | None = None
    name: str
    registration_status: RegistrationStatus = RegistrationStatus.UNREGISTERED
    gstn: str | None = None
    pan: str | None = None
    state: str
    last_updated: dt.datetime | None = None


class UserRecord(BaseModel):
    """Login principal without credentials."""

    model_config = ConfigDict(from_attributes=True)

    id: int | None = None
    username: str
    rights: Rights
    created_by: str | None = None
    created_at: dt.datetime | None = None
    last_login: dt.datetime | None = None


class UserBackupRecord(UserRecord):
    """Login principal including the password hash, for backups only."""

    password_hash: str


def dump_items(items: list[BaseModel]) -> list[dict[str, Any]]:
    """JSON-safe dicts for storing nested history lists."""
    return [item.model_dump(mode="json", exclude_none=True) for item in items]
