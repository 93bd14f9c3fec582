"""Client roster and task matrix CSV/XLSX export and import.

This module provides:
- export_clients_csv: Client master in the import column order
- export_matrix_csv: One row per client, one status column per task type
- export_entries_csv: Flat task entry log
- client_import_template_csv: Sample file for the import screen
- parse_roster: CSV or XLSX bytes into string rows
- plan_import: Validate rows against the roster without writing anything

Re-importing an exported roster is an update, never a duplicate insert:
rows matching an existing client by name or GSTN are reported as updates.
"""

from __future__ import annotations

import csv
import io
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from openpyxl import load_workbook

from taxaudit.workflow.status import group_by_client, normalize_name, task_status
from taxaudit.workflow.taxonomy import ALL_TASKS, INDIAN_STATES, RegistrationStatus
from taxaudit.workflow.validation import is_valid_gstn, is_valid_pan

if TYPE_CHECKING:
    from taxaudit.models.client import Client
    from taxaudit.models.task_entry import TaskEntry
    from taxaudit.workflow.status import RosterClient

CLIENT_COLUMNS: tuple[str, ...] = (
    "Client Name",
    "Registration Status",
    "GSTN",
    "PAN",
    "State",
)
MATRIX_COLUMNS: tuple[str, ...] = ("Client Name", "State", "GSTN")
ENTRY_COLUMNS: tuple[str, ...] = (
    "Client Name",
    "Task Type",
    "Verified By",
    "Date",
    "Queries Solved",
    "Queries Solved By",
    "Disallowances",
    "Timestamp",
)

_TEMPLATE_ROWS: tuple[tuple[str, ...], ...] = (
    ("ABC Enterprises", "Registered", "27ABCDE1234F1Z5", "ABCDE1234F", "Maharashtra"),
    ("XYZ Company", "Unregistered", "", "XYZAB5678C", "Gujarat"),
    ("Sample Corp Ltd", "Registered", "24XYZAB5678G1Z2", "SAMPL9876D", "Gujarat"),
)


class RosterFormatError(ValueError):
    """The uploaded file cannot be read as a roster."""


@dataclass
class ImportResult:
    """Outcome of validating an import file.

    Args:
        success: Number of rows accepted.
        errors: Row-level rejection messages.
        duplicates: Accepted rows that update an existing client.
        clients: Column values of every accepted row, ready to upsert.
    """

    success: int = 0
    errors: list[str] = field(default_factory=list)
    duplicates: list[str] = field(default_factory=list)
    clients: list[dict[str, Any]] = field(default_factory=list)


# =============================================================================
# Export
# =============================================================================


def _write_csv(header: Sequence[str], rows: Iterable[Sequence[Any]]) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(header)
    writer.writerows(rows)
    return buffer.getvalue()


def export_clients_csv(clients: Iterable[Client]) -> str:
    """Client master as CSV, in the same column order the import expects."""
    return _write_csv(
        CLIENT_COLUMNS,
        (
            (
                client.name,
                client.registration_status.value,
                client.gstn or "",
                client.pan or "",
                client.state,
            )
            for client in clients
        ),
    )


def export_matrix_csv(
    clients: Iterable[RosterClient], entries: Iterable[TaskEntry]
) -> str:
    """Task matrix: roster columns plus the derived status of every task."""
    grouped = group_by_client(entries)
    rows = []
    for client in clients:
        own = grouped.get(normalize_name(client.name), [])
        rows.append(
            [client.name, client.state, client.gstn or ""]
            + [task_status(own, task_type).value for task_type in ALL_TASKS]
        )
    return _write_csv(
        MATRIX_COLUMNS + tuple(task_type.value for task_type in ALL_TASKS), rows
    )


def export_entries_csv(entries: Iterable[TaskEntry]) -> str:
    """Flat log of every task entry."""
    rows = []
    for entry in entries:
        disallowances = "; ".join(
            f"{item.get('section', '')}: {item.get('disallowance', '')}"
            for item in entry.disallowances or []
        )
        rows.append(
            (
                entry.client_name,
                entry.task_type.value,
                entry.verified_by,
                entry.date.isoformat(),
                entry.queries_solved.value,
                entry.queries_solved_by or "",
                disallowances,
                entry.timestamp.isoformat() if entry.timestamp else "",
            )
        )
    return _write_csv(ENTRY_COLUMNS, rows)


def client_import_template_csv() -> str:
    return _write_csv(CLIENT_COLUMNS, _TEMPLATE_ROWS)


# =============================================================================
# Import
# =============================================================================


def _cell_text(value: object) -> str:
    if value is None:
        return ""
    return str(value).strip()


def _parse_csv(data: bytes) -> list[list[str]]:
    # utf-8-sig drops the BOM spreadsheet tools prepend to CSV exports.
    text = data.decode("utf-8-sig")
    reader = csv.reader(io.StringIO(text))
    return [
        [_cell_text(cell) for cell in row]
        for row in reader
        if any(cell.strip() for cell in row)
    ]


def _parse_xlsx(data: bytes) -> list[list[str]]:
    try:
        workbook = load_workbook(io.BytesIO(data), read_only=True, data_only=True)
    except Exception as exc:
        raise RosterFormatError(f"Could not read Excel file: {exc}") from exc

    try:
        sheet = workbook.active
        rows = []
        for row in sheet.iter_rows(values_only=True):
            cells = [_cell_text(value) for value in row]
            if any(cells):
                rows.append(cells)
        return rows
    finally:
        workbook.close()


def parse_roster(data: bytes, filename: str) -> list[list[str]]:
    """Read an uploaded roster into rows of trimmed strings.

    Raises:
        RosterFormatError: Unsupported extension or unreadable content.
    """
    name = filename.lower()
    if name.endswith(".csv"):
        try:
            return _parse_csv(data)
        except UnicodeDecodeError as exc:
            raise RosterFormatError("CSV file must be UTF-8 encoded") from exc
    if name.endswith((".xlsx", ".xlsm")):
        return _parse_xlsx(data)
    raise RosterFormatError("Please upload a CSV or Excel (.xlsx) file")


def _header_index(header: Sequence[str]) -> dict[str, int]:
    normalized = [cell.strip().lower() for cell in header]
    missing = [col.lower() for col in CLIENT_COLUMNS if col.lower() not in normalized]
    if missing:
        raise RosterFormatError(f"Missing required columns: {', '.join(missing)}")
    return {col.lower(): normalized.index(col.lower()) for col in CLIENT_COLUMNS}


def plan_import(
    rows: Sequence[Sequence[str]], existing_clients: Iterable[RosterClient]
) -> ImportResult:
    """Validate import rows against the current roster.

    Rows that fail validation, or repeat an earlier row of the same file, are
    rejected. Rows matching an existing client by name or GSTN are accepted
    and listed under ``duplicates`` as updates.

    Raises:
        RosterFormatError: No data rows, or required columns are missing.
    """
    if len(rows) < 2:
        raise RosterFormatError(
            "File must contain at least a header row and one data row"
        )

    index = _header_index(rows[0])
    existing = list(existing_clients)
    result = ImportResult()

    def cell(row: Sequence[str], column: str) -> str:
        pos = index[column]
        return row[pos].strip() if pos < len(row) else ""

    for offset, row in enumerate(rows[1:]):
        row_num = offset + 2
        name = cell(row, "client name")
        registration = cell(row, "registration status")
        gstn = cell(row, "gstn").upper()
        pan = cell(row, "pan").upper()
        state = cell(row, "state")

        if not name:
            result.errors.append(f"Row {row_num}: Client name is required")
            continue
        if registration not in (RegistrationStatus.REGISTERED, RegistrationStatus.UNREGISTERED):
            result.errors.append(
                f"Row {row_num}: Registration status must be 'Registered' or 'Unregistered'"
            )
            continue
        if state not in INDIAN_STATES:
            result.errors.append(f"Row {row_num}: Invalid state '{state}'")
            continue

        registered = registration == RegistrationStatus.REGISTERED
        if registered:
            if not gstn:
                result.errors.append(
                    f"Row {row_num}: GSTN is required for registered clients"
                )
                continue
            if not is_valid_gstn(gstn):
                result.errors.append(f"Row {row_num}: Invalid GSTN format '{gstn}'")
                continue
        if pan and not is_valid_pan(pan):
            result.errors.append(
                f"Row {row_num}: Invalid PAN format '{pan}' "
                "(should be 10 characters: 5 letters, 4 digits, 1 letter)"
            )
            continue

        key = normalize_name(name)
        by_name = any(normalize_name(c.name) == key for c in existing)
        by_gstn = bool(gstn) and any(
            c.gstn and c.gstn.upper() == gstn for c in existing
        )
        if by_name or by_gstn:
            how = "(by name)" if by_name else "(by GSTN)"
            result.duplicates.append(
                f"Row {row_num}: Client '{name}' {how} already exists - will be updated"
            )

        in_file = any(
            normalize_name(accepted["name"]) == key
            or (gstn and accepted["gstn"] and accepted["gstn"] == gstn)
            for accepted in result.clients
        )
        if in_file:
            result.errors.append(
                f"Row {row_num}: Duplicate client '{name}' in import file"
            )
            continue

        result.clients.append(
            {
                "name": name,
                "registration_status": RegistrationStatus(registration),
                "gstn": gstn if registered else None,
                "pan": pan or None,
                "state": state,
            }
        )
        result.success += 1

    return result
