"""Task entry SQLAlchemy model."""

import datetime as dt
from typing import Any

from sqlalchemy import JSON, Date, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from taxaudit.models.base import Base, utcnow, value_enum
from taxaudit.workflow.taxonomy import PreparationStatus, QueryResolution, TaskType


class TaskEntry(Base):
    """One recorded action against one (client, task type) pair.

    Entries reference clients by name, matched case-insensitively, rather
    than by foreign key. Payload columns are only meaningful for their own
    task type. The nested history lists are stored as JSON and must be
    replaced, not mutated in place, for changes to be flushed.
    """

    __tablename__ = "task_entries"

    id: Mapped[int] = mapped_column(primary_key=True)
    client_name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    task_type: Mapped[TaskType] = mapped_column(value_enum(TaskType), nullable=False)
    verified_by: Mapped[str] = mapped_column(String(255), nullable=False)
    date: Mapped[dt.date] = mapped_column(Date, nullable=False)
    queries_solved: Mapped[QueryResolution] = mapped_column(
        value_enum(QueryResolution), nullable=False
    )
    queries_solved_by: Mapped[str | None] = mapped_column(String(255))
    checked_by: Mapped[str | None] = mapped_column(String(255))
    approved_by: Mapped[str | None] = mapped_column(String(255))
    copy_given_by: Mapped[str | None] = mapped_column(String(255))
    received_by: Mapped[str | None] = mapped_column(String(255))
    prepared_by: Mapped[str | None] = mapped_column(String(255))
    preparation_status: Mapped[PreparationStatus | None] = mapped_column(
        value_enum(PreparationStatus)
    )

    pendencies: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)
    disallowances: Mapped[list[dict[str, Any]]] = mapped_column(
        JSON, default=list, nullable=False
    )
    resubmissions: Mapped[list[dict[str, Any]]] = mapped_column(
        JSON, default=list, nullable=False
    )
    repreparations: Mapped[list[dict[str, Any]]] = mapped_column(
        JSON, default=list, nullable=False
    )
    recheck_history: Mapped[list[dict[str, Any]]] = mapped_column(
        JSON, default=list, nullable=False
    )
    updated_by: Mapped[list[dict[str, Any]]] = mapped_column(
        JSON, default=list, nullable=False
    )

    # UDIN payload
    udin_number: Mapped[str | None] = mapped_column(String(64))
    udin_prepared_under: Mapped[str | None] = mapped_column(Text)
    udin_generated_by: Mapped[str | None] = mapped_column(String(255))
    audit_report_signed_by: Mapped[str | None] = mapped_column(String(255))
    audit_report_date: Mapped[dt.date | None] = mapped_column(Date)

    timestamp: Mapped[dt.datetime] = mapped_column(default=utcnow, nullable=False)
    last_status_update: Mapped[dt.datetime | None] = mapped_column()
