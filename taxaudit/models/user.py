"""Login principal and app-state SQLAlchemy models."""

from datetime import datetime

from sqlalchemy import String, Text
from sqlalchemy.orm import Mapped, mapped_column

from taxaudit.models.base import Base, utcnow, value_enum
from taxaudit.workflow.taxonomy import Rights


class User(Base):
    """Represents a login principal.

    Passwords are stored as bcrypt hashes only.
    """

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(primary_key=True)
    username: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    password_hash: Mapped[str] = mapped_column(String(100), nullable=False)
    rights: Mapped[Rights] = mapped_column(
        value_enum(Rights), default=Rights.STAGE_1, nullable=False
    )
    created_by: Mapped[str | None] = mapped_column(String(100))
    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)
    last_login: Mapped[datetime | None] = mapped_column()


class AppState(Base):
    """Scalar key/value settings (current user, rights, last sync)."""

    __tablename__ = "app_state"

    key: Mapped[str] = mapped_column(String(100), primary_key=True)
    value: Mapped[str | None] = mapped_column(Text)
    updated_at: Mapped[datetime] = mapped_column(
        default=utcnow, onupdate=utcnow, nullable=False
    )
