"""create_record_store

Revision ID: 3f1a9c2d7b40
Revises:
Create Date: 2026-10-19 09:12:44.120318

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3f1a9c2d7b40'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create clients, task entries, users and app state tables."""
    op.create_table(
        "clients",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("registration_status", sa.String(64), nullable=False),
        sa.Column("gstn", sa.String(15), nullable=True),
        sa.Column("pan", sa.String(10), nullable=True),
        sa.Column("state", sa.String(100), nullable=False),
        sa.Column("last_updated", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_clients_name", "clients", ["name"])

    op.create_table(
        "task_entries",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("client_name", sa.String(255), nullable=False),
        sa.Column("task_type", sa.String(64), nullable=False),
        sa.Column("verified_by", sa.String(255), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("queries_solved", sa.String(64), nullable=False),
        sa.Column("queries_solved_by", sa.String(255), nullable=True),
        sa.Column("checked_by", sa.String(255), nullable=True),
        sa.Column("approved_by", sa.String(255), nullable=True),
        sa.Column("copy_given_by", sa.String(255), nullable=True),
        sa.Column("received_by", sa.String(255), nullable=True),
        sa.Column("prepared_by", sa.String(255), nullable=True),
        sa.Column("preparation_status", sa.String(64), nullable=True),
        sa.Column("pendencies", sa.JSON(), nullable=False),
        sa.Column("disallowances", sa.JSON(), nullable=False),
        sa.Column("resubmissions", sa.JSON(), nullable=False),
        sa.Column("repreparations", sa.JSON(), nullable=False),
        sa.Column("recheck_history", sa.JSON(), nullable=False),
        sa.Column("updated_by", sa.JSON(), nullable=False),
        sa.Column("udin_number", sa.String(64), nullable=True),
        sa.Column("udin_prepared_under", sa.Text(), nullable=True),
        sa.Column("udin_generated_by", sa.String(255), nullable=True),
        sa.Column("audit_report_signed_by", sa.String(255), nullable=True),
        sa.Column("audit_report_date", sa.Date(), nullable=True),
        sa.Column("timestamp", sa.DateTime(timezone=True), nullable=False),
        sa.Column("last_status_update", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_task_entries_client_name", "task_entries", ["client_name"])

    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("username", sa.String(100), nullable=False, unique=True),
        sa.Column("password_hash", sa.String(100), nullable=False),
        sa.Column("rights", sa.String(64), nullable=False),
        sa.Column("created_by", sa.String(100), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("last_login", sa.DateTime(timezone=True), nullable=True),
    )

    op.create_table(
        "app_state",
        sa.Column("key", sa.String(100), primary_key=True),
        sa.Column("value", sa.Text(), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    )


def downgrade() -> None:
    """Drop every record store table."""
    op.drop_table("app_state")
    op.drop_table("users")
    op.drop_index("ix_task_entries_client_name", table_name="task_entries")
    op.drop_table("task_entries")
    op.drop_index("ix_clients_name", table_name="clients")
    op.drop_table("clients")
