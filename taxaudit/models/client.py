"""Client master SQLAlchemy model."""

from datetime import datetime

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from taxaudit.models.base import Base, utcnow, value_enum
from taxaudit.workflow.taxonomy import RegistrationStatus


class Client(Base):
    """Represents an audited entity on the client master list.

    Names are unique case-insensitively by convention; the store checks it
    on create, the schema does not.
    """

    __tablename__ = "clients"

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    registration_status: Mapped[RegistrationStatus] = mapped_column(
        value_enum(RegistrationStatus),
        default=RegistrationStatus.UNREGISTERED,
        nullable=False,
    )
    gstn: Mapped[str | None] = mapped_column(String(15))
    pan: Mapped[str | None] = mapped_column(String(10))
    state: Mapped[str] = mapped_column(String(100), nullable=False)
    last_updated: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)
