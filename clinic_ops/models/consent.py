"""Signed consent records read by the consent gate."""

from datetime import datetime
from enum import Enum

from sqlalchemy import Boolean, DateTime, ForeignKey, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from clinic_ops.db.base import Base, TimestampMixin, enum_column
from clinic_ops.utils.time import ensure_utc


class ConsentType(str, Enum):
    """Kinds of signed consent."""

    MINOR_CARE = "MINOR_CARE"
    SURGERY = "SURGERY"


class Consent(Base, TimestampMixin):
    """A signed authorisation.

    Minor-care consent is patient-scoped. Surgery consent is always scoped to
    one appointment through ``appointment_id``. Revocation clears ``is_active``.
    """

    __tablename__ = "consents"

    patient_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("patients.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    # Person who signed on the patient's behalf (the patient themself if adult)
    responsible_person_id: Mapped[str | None] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("persons.id", ondelete="RESTRICT"),
        nullable=True,
    )
    appointment_id: Mapped[str | None] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("appointments.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
    )
    consent_type: Mapped[ConsentType] = mapped_column(
        enum_column(ConsentType, "consent_type"),
        nullable=False,
    )
    signed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )
    valid_until: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    def covers(self, moment: datetime) -> bool:
        """Return True if the consent is active and not expired at ``moment``."""
        return self.is_active and ensure_utc(self.valid_until) >= ensure_utc(moment)

    def __repr__(self) -> str:
        return f"<Consent {self.consent_type} active={self.is_active}>"
