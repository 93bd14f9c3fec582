"""Form-level validation for task entries, clients and users.

Validators return a field-keyed error map; an empty map means the draft may
be submitted. They never raise on bad input.

Example:
    >>> errors = validate_entry(draft, existing_entries, staff_members)
    >>> if errors:
    ...     print(errors["task_type"])
"""

from __future__ import annotations

import datetime as dt
import re
from collections.abc import Iterable, Sequence
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, Field

from taxaudit.workflow.status import entries_for_client, gated_availability
from taxaudit.workflow.taxonomy import (
    INDIAN_STATES,
    MAX_DISALLOWANCES,
    MAX_PENDENCIES,
    REGULAR_TASKS,
    UDIN_PREPARED_UNDER_OPTIONS,
    PreparationStatus,
    QueryResolution,
    RegistrationStatus,
    TaskType,
)

if TYPE_CHECKING:
    from taxaudit.models.client import Client
    from taxaudit.models.task_entry import TaskEntry

GSTN_PATTERN = re.compile(r"^[0-9]{2}[A-Z]{5}[0-9]{4}[A-Z][1-9A-Z]Z[0-9A-Z]$")
PAN_PATTERN = re.compile(r"^[A-Z]{5}[0-9]{4}[A-Z]$")
MIN_PASSWORD_LENGTH = 6

ErrorMap = dict[str, str]

# Task types whose submission always records queries as solved.
_AUTO_RESOLVED = {
    TaskType.LEVEL1_APPROVAL,
    TaskType.COPY_TO_REHAN_SIR,
    TaskType.UDIN_NUMBER,
    TaskType.COMPUTATION_CHECKING,
    TaskType.FINAL_VERIFICATION,
    TaskType.DISALLOWANCES_IN_3CD,
}


class DisallowanceInput(BaseModel):
    """One section/amount row of the 3CD disallowance list."""

    section: str = ""
    disallowance: str = ""

    @property
    def is_complete(self) -> bool:
        return bool(self.section.strip() and self.disallowance.strip())


class EntryDraft(BaseModel):
    """Task entry form input before validation.

    Every field is optional so that missing values surface as field errors
    instead of schema rejections.
    """

    client_name: str = ""
    task_type: TaskType | None = None
    date: dt.date | None = None
    verified_by: str = ""
    queries_solved: QueryResolution | None = None
    queries_solved_by: str = ""
    approved_by: str = ""
    copy_given_by: str = ""
    received_by: str = ""
    prepared_by: str = ""
    preparation_status: PreparationStatus | None = None
    pendencies: list[str] = Field(default_factory=list)
    disallowances: list[DisallowanceInput] = Field(default_factory=list)
    udin_number: str = ""
    udin_prepared_under: str = ""
    udin_generated_by: str = ""
    udin_signed_by: str = ""
    audit_report_date: dt.date | None = None

    def open_pendencies(self) -> list[str]:
        return [item.strip() for item in self.pendencies if item.strip()]

    def complete_disallowances(self) -> list[DisallowanceInput]:
        return [item for item in self.disallowances if item.is_complete]


class ClientDraft(BaseModel):
    """Client master form input before validation."""

    name: str = ""
    registration_status: RegistrationStatus = RegistrationStatus.UNREGISTERED
    gstn: str = ""
    pan: str = ""
    state: str = ""


def is_valid_gstn(gstn: str) -> bool:
    """15-character GSTN: state code, PAN, entity digit, Z, checksum."""
    return bool(GSTN_PATTERN.match(gstn))


def is_valid_pan(pan: str) -> bool:
    """10-character PAN: five letters, four digits, one letter."""
    return bool(PAN_PATTERN.match(pan))


def _is_staff(name: str, staff_members: Sequence[str]) -> bool:
    return name.strip() in staff_members


def _format_date(value: dt.date) -> str:
    return value.strftime("%d/%m/%Y")


def validate_entry(
    draft: EntryDraft,
    existing_entries: Iterable[TaskEntry],
    staff_members: Sequence[str],
) -> ErrorMap:
    """Validate a task entry draft against the existing entries.

    Args:
        draft: Submitted form values.
        existing_entries: All recorded entries (every client).
        staff_members: Names accepted in verified-by/solved-by fields.

    Returns:
        Field-keyed error messages; empty when the draft is valid.
    """
    errors: ErrorMap = {}
    client_name = draft.client_name.strip()
    entries = list(existing_entries)

    if not client_name:
        errors["client_name"] = "Client name is required"

    task_type = draft.task_type
    if task_type is None:
        errors["task_type"] = "Task type is required"
    elif client_name:
        gate = gated_availability(client_name, task_type, entries)
        if not gate.available and gate.message:
            errors["task_type"] = gate.message

        # The duplicate message takes precedence over the gate message.
        for entry in entries_for_client(entries, client_name):
            if entry.task_type == task_type:
                errors["task_type"] = (
                    f"This task has already been submitted for {client_name}. "
                    f"Task was completed on {_format_date(entry.date)} "
                    f"by {entry.verified_by}."
                )
                break

    if draft.date is None:
        errors["date"] = "Date is required"

    if task_type is not None:
        errors.update(_validate_task_fields(draft, task_type, staff_members))

    return errors


def _validate_task_fields(
    draft: EntryDraft, task_type: TaskType, staff_members: Sequence[str]
) -> ErrorMap:
    errors: ErrorMap = {}

    if task_type == TaskType.LEVEL1_APPROVAL:
        if not draft.approved_by.strip():
            errors["approved_by"] = "Approved by is required"
    elif task_type == TaskType.COPY_TO_REHAN_SIR:
        if not draft.copy_given_by.strip():
            errors["copy_given_by"] = "Copy given by is required"
        if not draft.received_by.strip():
            errors["received_by"] = "Copy received by is required"
    elif task_type == TaskType.PREPARED_3CD:
        if not draft.prepared_by.strip():
            errors["prepared_by"] = "Prepared by is required"
        if draft.preparation_status is None:
            errors["preparation_status"] = "Preparation status is required"
        elif draft.preparation_status == PreparationStatus.PARTIAL:
            if not draft.open_pendencies():
                errors["pendencies"] = (
                    "At least one pendency is required when status is Partial"
                )
            elif len(draft.open_pendencies()) > MAX_PENDENCIES:
                errors["pendencies"] = f"At most {MAX_PENDENCIES} pendencies are allowed"
    elif task_type == TaskType.UDIN_NUMBER:
        if not draft.udin_number.strip():
            errors["udin_number"] = "UDIN Number is required"
        if not draft.udin_prepared_under.strip():
            errors["udin_prepared_under"] = "UDIN Prepared Under is required"
        elif draft.udin_prepared_under.strip() not in UDIN_PREPARED_UNDER_OPTIONS:
            errors["udin_prepared_under"] = "Please select a valid 44AB clause"
        if not draft.udin_generated_by.strip():
            errors["udin_generated_by"] = "UDIN Generated By is required"
        if not draft.udin_signed_by.strip():
            errors["udin_signed_by"] = "Audit Report Signed By is required"
        if draft.audit_report_date is None:
            errors["audit_report_date"] = "Date of Audit Report is required"
    elif task_type in (TaskType.COMPUTATION_CHECKING, TaskType.FINAL_VERIFICATION):
        if not draft.verified_by.strip():
            errors["verified_by"] = "Checked by is required"
    elif task_type == TaskType.DISALLOWANCES_IN_3CD:
        if not draft.verified_by.strip():
            errors["verified_by"] = "Verified by is required"
        complete = draft.complete_disallowances()
        if not complete:
            errors["disallowances"] = (
                "At least one complete disallowance entry is required"
            )
        elif len(complete) > MAX_DISALLOWANCES:
            errors["disallowances"] = (
                f"At most {MAX_DISALLOWANCES} disallowances are allowed"
            )
    elif task_type in REGULAR_TASKS:
        if not draft.verified_by.strip():
            errors["verified_by"] = "Verified by is required"
        elif not _is_staff(draft.verified_by, staff_members):
            errors["verified_by"] = "Please select a user from the database"
        if draft.queries_solved is None:
            errors["queries_solved"] = "Queries solved status is required"
        elif draft.queries_solved == QueryResolution.YES:
            if not draft.queries_solved_by.strip():
                errors["queries_solved_by"] = "Please specify who solved the queries"
            elif not _is_staff(draft.queries_solved_by, staff_members):
                errors["queries_solved_by"] = "Please select a user from the database"

    return errors


def build_entry_fields(draft: EntryDraft, current_user: str | None) -> dict[str, Any]:
    """Map a validated draft onto TaskEntry column values.

    Special task types record their signer as ``verified_by`` and derive
    ``queries_solved`` from the task's own payload.
    """
    if draft.task_type is None or draft.date is None:
        raise ValueError("Cannot build an entry from an unvalidated draft")

    fallback = current_user or "Unknown"
    task_type = draft.task_type
    fields: dict[str, Any] = {
        "client_name": draft.client_name.strip(),
        "task_type": task_type,
        "date": draft.date,
    }

    if task_type == TaskType.LEVEL1_APPROVAL:
        approver = draft.approved_by.strip()
        fields.update(
            verified_by=approver or fallback,
            approved_by=approver,
            queries_solved_by=approver,
            checked_by=approver,
        )
    elif task_type == TaskType.COPY_TO_REHAN_SIR:
        fields.update(
            verified_by=draft.copy_given_by.strip() or fallback,
            copy_given_by=draft.copy_given_by.strip(),
            received_by=draft.received_by.strip(),
        )
    elif task_type == TaskType.PREPARED_3CD:
        done = draft.preparation_status == PreparationStatus.DONE
        fields.update(
            verified_by=draft.prepared_by.strip() or fallback,
            prepared_by=draft.prepared_by.strip(),
            preparation_status=draft.preparation_status,
            pendencies=[] if done else draft.open_pendencies(),
            queries_solved=QueryResolution.YES if done else QueryResolution.PARTIAL,
        )
    elif task_type == TaskType.UDIN_NUMBER:
        fields.update(
            verified_by=draft.udin_generated_by.strip() or fallback,
            udin_number=draft.udin_number.strip(),
            udin_prepared_under=draft.udin_prepared_under.strip(),
            udin_generated_by=draft.udin_generated_by.strip(),
            audit_report_signed_by=draft.udin_signed_by.strip(),
            audit_report_date=draft.audit_report_date,
        )
    elif task_type == TaskType.DISALLOWANCES_IN_3CD:
        stamp = dt.datetime.now(dt.timezone.utc).isoformat()
        fields.update(
            verified_by=draft.verified_by.strip() or fallback,
            disallowances=[
                {
                    "section": item.section.strip(),
                    "disallowance": item.disallowance.strip(),
                    "added_by": fallback,
                    "timestamp": stamp,
                }
                for item in draft.complete_disallowances()
            ],
        )
    elif task_type in (TaskType.COMPUTATION_CHECKING, TaskType.FINAL_VERIFICATION):
        fields.update(verified_by=draft.verified_by.strip() or fallback)
    else:
        solved = draft.queries_solved
        fields.update(
            verified_by=draft.verified_by.strip() or fallback,
            queries_solved=solved,
            queries_solved_by=(
                draft.queries_solved_by.strip()
                if solved == QueryResolution.YES
                else None
            ),
        )

    if task_type in _AUTO_RESOLVED:
        fields["queries_solved"] = QueryResolution.YES
    return fields


def validate_client(
    draft: ClientDraft,
    existing_clients: Iterable[Client],
    *,
    editing_id: int | None = None,
) -> ErrorMap:
    """Validate client master input.

    Name uniqueness is checked case-insensitively against every client
    other than the one being edited.
    """
    errors: ErrorMap = {}
    name = draft.name.strip()

    if not name:
        errors["name"] = "Client name is required"
    else:
        for client in existing_clients:
            if client.id == editing_id:
                continue
            if client.name.strip().lower() == name.lower():
                errors["name"] = "Client with this name already exists"
                break

    if not draft.state:
        errors["state"] = "State is required"
    elif draft.state not in INDIAN_STATES:
        errors["state"] = f"Invalid state '{draft.state}'"

    if draft.registration_status == RegistrationStatus.REGISTERED:
        gstn = draft.gstn.strip().upper()
        if not gstn:
            errors["gstn"] = "GSTN is required for registered clients"
        elif not is_valid_gstn(gstn):
            errors["gstn"] = "Please enter a valid GSTN format (15 characters)"

    pan = draft.pan.strip().upper()
    if pan and not is_valid_pan(pan):
        errors["pan"] = "Please enter a valid PAN format (10 characters)"

    return errors


def normalize_client(draft: ClientDraft) -> dict[str, Any]:
    """Client column values: upper-cased ids, GSTN only when registered."""
    registered = draft.registration_status == RegistrationStatus.REGISTERED
    return {
        "name": draft.name.strip(),
        "registration_status": draft.registration_status,
        "gstn": draft.gstn.strip().upper() if registered else None,
        "pan": draft.pan.strip().upper() or None,
        "state": draft.state,
    }


def validate_new_user(
    username: str, password: str, existing_usernames: Iterable[str]
) -> ErrorMap:
    errors: ErrorMap = {}
    name = username.strip()
    if not name:
        errors["username"] = "Username is required"
    elif name.lower() in {existing.lower() for existing in existing_usernames}:
        errors["username"] = "Username already exists"

    if not password.strip():
        errors["password"] = "Password is required"
    elif len(password) < MIN_PASSWORD_LENGTH:
        errors["password"] = (
            f"Password must be at least {MIN_PASSWORD_LENGTH} characters"
        )
    return errors


def validate_password_change(
    current_password: str,
    current_matches: bool,
    new_password: str,
    confirm_password: str,
) -> ErrorMap:
    errors: ErrorMap = {}
    if not current_password.strip():
        errors["current_password"] = "Current password is required"
    elif not current_matches:
        errors["current_password"] = "Current password is incorrect"

    if not new_password.strip():
        errors["new_password"] = "New password is required"
    elif len(new_password) < MIN_PASSWORD_LENGTH:
        errors["new_password"] = (
            f"New password must be at least {MIN_PASSWORD_LENGTH} characters"
        )

    if new_password != confirm_password:
        errors["confirm_password"] = "Passwords do not match"
    return errors
