"""Application configuration using Pydantic Settings."""

import json
from collections.abc import Iterable
from pathlib import Path
from typing import Annotated

from pydantic import field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


DEFAULT_STAFF_MEMBERS = [
    "Mitt",
    "Monal",
    "Rushda",
    "Sanket",
    "Govind",
    "CA Mitt Patel",
    "CA Amin G. Shaikh",
    "CA G M Shaikh",
    "CA Chahana P Vora",
]


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Database
    database_url: str = "sqlite+aiosqlite:///./taxaudit.db"
    """Local record store URL (SQLite via aiosqlite by default)."""

    # Error Tracking
    sentry_dsn: str | None = None
    """Sentry DSN for error tracking. Optional."""

    # Environment
    environment: str = "development"
    """Current environment (development, staging, production)."""

    debug: bool = False
    """Enable debug mode."""

    log_format: str | None = None
    """Logging format override (json or console). Defaults by environment."""

    # Cloud backup
    backup_url: str | None = None
    """fsspec URL of the cloud backup root (file://, s3://, gs://, or local).

    Cloud sync is disabled when unset.
    """

    backup_folder: str = "Tax Audit Data"
    """Folder under ``backup_url`` holding the synced files and snapshots."""

    backup_interval_seconds: int = 300
    """Interval between automatic cloud pushes while online."""

    # Accounts
    default_admin_password: str = "admin123"
    """Password assigned to the bootstrap ``admin`` account on first start."""

    password_hash_rounds: int = 12
    """bcrypt work factor for stored password hashes."""

    # NoDecode keeps pydantic-settings from forcing JSON parsing so the
    # variable can be a JSON array or a comma-separated string.
    staff_members: Annotated[list[str], NoDecode] = DEFAULT_STAFF_MEMBERS
    """Staff names accepted in verified-by and solved-by fields."""

    checking_partner: str = "CA Mitt Patel"
    """Reviewer whose query sign-off also records them as the entry's checker."""

    @field_validator("staff_members", mode="before")
    @classmethod
    def parse_staff_members(cls, value: object) -> list[str]:
        """Parse staff members from JSON array, CSV, or list."""
        if isinstance(value, str):
            text = value.strip()
            if not text:
                return DEFAULT_STAFF_MEMBERS.copy()

            try:
                decoded = json.loads(text)
            except json.JSONDecodeError:
                decoded = None

            if isinstance(decoded, list):
                return _normalize_names(decoded)
            if isinstance(decoded, str):
                text = decoded
            elif decoded is not None:
                raise ValueError(
                    "STAFF_MEMBERS must be a JSON array or comma-separated string."
                )

            # Fallback: comma-separated values
            parsed = [item.strip() for item in text.split(",")]
            return _normalize_names(parsed)

        if isinstance(value, (list, tuple, set)):
            return _normalize_names(value)

        raise ValueError("STAFF_MEMBERS must be a string, list, tuple, or set.")

    @field_validator("backup_interval_seconds")
    @classmethod
    def check_backup_interval(cls, value: int) -> int:
        """Reject non-positive sync intervals."""
        if value <= 0:
            raise ValueError("BACKUP_INTERVAL_SECONDS must be positive.")
        return value


def _normalize_names(values: Iterable[object]) -> list[str]:
    """Strip and dedupe names while preserving declaration order."""
    normalized: list[str] = []
    seen: set[str] = set()
    for raw_item in values:
        item = str(raw_item).strip().strip("'").strip('"')
        if not item or item.lower() in seen:
            continue
        normalized.append(item)
        seen.add(item.lower())

    if not normalized:
        return DEFAULT_STAFF_MEMBERS.copy()
    return normalized


try:
    settings = Settings()
except Exception as exc:
    env_file = Path(".env")
    root_error = str(exc)
    suggestions = [
        "Check DATABASE_URL and BACKUP_URL.",
        "Allowed values for STAFF_MEMBERS are:",
        '  1) ["Mitt","Monal","CA Mitt Patel"]',
        "  2) Mitt,Monal,CA Mitt Patel",
    ]

    raise RuntimeError(
        "Failed to initialize application settings. "
        f"Check environment variables in {env_file.resolve() if env_file.exists() else '.env'}.\n"
        + f"Error: {root_error}\n"
        + "\n".join(suggestions)
    ) from exc
