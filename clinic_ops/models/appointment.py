"""Appointment lifecycle models.

Appointments are created by the scheduling UI and then mutated only through
the transition service. Status history rows are append-only.
"""

from datetime import datetime
from enum import Enum

from sqlalchemy import DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from clinic_ops.db.base import Base, TimestampMixin, enum_column


class AppointmentStatus(str, Enum):
    """Lifecycle states of an appointment."""

    SCHEDULED = "SCHEDULED"
    CONFIRMED = "CONFIRMED"
    CHECKED_IN = "CHECKED_IN"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"
    NO_SHOW = "NO_SHOW"


class AppointmentAction(str, Enum):
    """Actions a caller may request against an appointment."""

    CONFIRM = "CONFIRM"
    CHECKIN = "CHECKIN"
    START = "START"
    COMPLETE = "COMPLETE"
    CANCEL = "CANCEL"
    NO_SHOW = "NO_SHOW"


class AppointmentType(str, Enum):
    """Clinical type of an appointment."""

    CONSULTATION = "CONSULTATION"
    CHECKUP = "CHECKUP"
    CLEANING = "CLEANING"
    FILLING = "FILLING"
    ENDODONTICS = "ENDODONTICS"
    EXTRACTION = "EXTRACTION"
    ORTHODONTICS = "ORTHODONTICS"
    EMERGENCY = "EMERGENCY"

    @property
    def is_surgical(self) -> bool:
        return self in SURGICAL_APPOINTMENT_TYPES


# Types that always need an appointment-scoped surgery consent
SURGICAL_APPOINTMENT_TYPES: frozenset[AppointmentType] = frozenset(
    {AppointmentType.EXTRACTION}
)


class CancelReason(str, Enum):
    """Why an appointment was cancelled."""

    PATIENT_REQUEST = "PATIENT_REQUEST"
    PROFESSIONAL_UNAVAILABLE = "PROFESSIONAL_UNAVAILABLE"
    CLINIC_CLOSURE = "CLINIC_CLOSURE"
    RESCHEDULED = "RESCHEDULED"
    OTHER = "OTHER"


class Appointment(Base, TimestampMixin):
    """A scheduled patient-professional interaction.

    Never hard-deleted: cancellation is a terminal status. Each action of the
    state machine stamps its own timestamp column.
    """

    __tablename__ = "appointments"

    patient_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("patients.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    # Professional and room records are owned by the staff/facilities modules
    professional_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        nullable=False,
        index=True,
    )
    room_id: Mapped[str | None] = mapped_column(
        UUID(as_uuid=False),
        nullable=True,
    )

    scheduled_start: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        index=True,
    )
    scheduled_end: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )
    duration_minutes: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
    )
    appointment_type: Mapped[AppointmentType] = mapped_column(
        enum_column(AppointmentType, "appointment_type"),
        default=AppointmentType.CONSULTATION,
        nullable=False,
    )
    reason: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
    )
    notes: Mapped[str | None] = mapped_column(
        Text,
        nullable=True,
    )

    status: Mapped[AppointmentStatus] = mapped_column(
        enum_column(AppointmentStatus, "appointment_status"),
        default=AppointmentStatus.SCHEDULED,
        nullable=False,
        index=True,
    )

    # Per-action timestamps
    checked_in_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    started_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    completed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    cancelled_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    cancel_reason: Mapped[CancelReason | None] = mapped_column(
        enum_column(CancelReason, "cancel_reason"),
        nullable=True,
    )
    cancelled_by: Mapped[str | None] = mapped_column(
        UUID(as_uuid=False),
        nullable=True,
    )
    created_by: Mapped[str | None] = mapped_column(
        UUID(as_uuid=False),
        nullable=True,
    )

    def __repr__(self) -> str:
        return f"<Appointment {self.id[:8]}... {self.status}>"


class AppointmentStatusHistory(Base, TimestampMixin):
    """Append-only record of one status transition."""

    __tablename__ = "appointment_status_history"

    appointment_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("appointments.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    previous_status: Mapped[AppointmentStatus | None] = mapped_column(
        enum_column(AppointmentStatus, "appointment_status"),
        nullable=True,
    )
    new_status: Mapped[AppointmentStatus] = mapped_column(
        enum_column(AppointmentStatus, "appointment_status"),
        nullable=False,
    )
    action: Mapped[AppointmentAction] = mapped_column(
        enum_column(AppointmentAction, "appointment_action"),
        nullable=False,
    )
    note: Mapped[str | None] = mapped_column(
        Text,
        nullable=True,
    )
    changed_by: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        nullable=False,
    )
    changed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )

    def __repr__(self) -> str:
        return (
            f"<AppointmentStatusHistory {self.previous_status} -> {self.new_status}>"
        )
