"""Procedure catalog (read-only for this service)."""

from sqlalchemy import Boolean, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from clinic_ops.db.base import Base, TimestampMixin


class ProcedureCatalog(Base, TimestampMixin):
    """A billable/clinical procedure definition.

    ``is_surgical`` marks procedures that need an appointment-scoped
    surgery consent before an appointment using them may start.
    """

    __tablename__ = "procedure_catalog"

    code: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    default_duration_minutes: Mapped[int | None] = mapped_column(
        Integer,
        nullable=True,
    )
    is_surgical: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    def __repr__(self) -> str:
        return f"<ProcedureCatalog {self.code}>"
