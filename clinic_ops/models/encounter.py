"""Clinical encounter records.

An encounter is the clinical documentation opened when an appointment starts.
Its primary key is the appointment id, so there is at most one per appointment.
"""

from datetime import datetime
from enum import Enum

from sqlalchemy import DateTime, ForeignKey, String, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from clinic_ops.db.base import Base, BaseNoId, TimestampMixin, enum_column


class EncounterStatus(str, Enum):
    """Documentation status of an encounter."""

    DRAFT = "DRAFT"
    FINAL = "FINAL"


class Encounter(BaseNoId, TimestampMixin):
    """Clinical encounter for one appointment (1:1)."""

    __tablename__ = "encounters"

    appointment_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("appointments.id", ondelete="CASCADE"),
        primary_key=True,
    )
    patient_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("patients.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    status: Mapped[EncounterStatus] = mapped_column(
        enum_column(EncounterStatus, "encounter_status"),
        default=EncounterStatus.DRAFT,
        nullable=False,
    )
    performed_by: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        nullable=False,
    )
    created_by: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        nullable=False,
    )
    started_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )
    finalized_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    def __repr__(self) -> str:
        return f"<Encounter {self.appointment_id[:8]}... {self.status}>"


class EncounterProcedure(Base, TimestampMixin):
    """A procedure performed during an encounter.

    ``treatment_step_id`` links the work to a treatment-plan step when the
    procedure advances a plan.
    """

    __tablename__ = "encounter_procedures"

    encounter_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("encounters.appointment_id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    procedure_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("procedure_catalog.id", ondelete="RESTRICT"),
        nullable=False,
    )
    treatment_step_id: Mapped[str | None] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("treatment_steps.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    tooth_number: Mapped[str | None] = mapped_column(String(10), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    def __repr__(self) -> str:
        return f"<EncounterProcedure {self.procedure_id[:8]}...>"
