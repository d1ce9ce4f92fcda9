"""Treatment plans and their ordered steps."""

from datetime import datetime
from enum import Enum

from sqlalchemy import Boolean, CheckConstraint, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from clinic_ops.db.base import Base, TimestampMixin, enum_column


class TreatmentPlanStatus(str, Enum):
    """Status of a treatment plan."""

    DRAFT = "DRAFT"
    ACTIVE = "ACTIVE"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class TreatmentStepStatus(str, Enum):
    """Status of a single plan step."""

    PENDING = "PENDING"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"
    DEFERRED = "DEFERRED"


# Steps in these states no longer count towards plan progress
INACTIVE_STEP_STATUSES: frozenset[TreatmentStepStatus] = frozenset(
    {TreatmentStepStatus.CANCELLED, TreatmentStepStatus.DEFERRED}
)


class TreatmentPlan(Base, TimestampMixin):
    """Ordered set of planned procedures for a patient."""

    __tablename__ = "treatment_plans"

    patient_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("patients.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    title: Mapped[str | None] = mapped_column(String(200), nullable=True)
    status: Mapped[TreatmentPlanStatus] = mapped_column(
        enum_column(TreatmentPlanStatus, "treatment_plan_status"),
        default=TreatmentPlanStatus.DRAFT,
        nullable=False,
        index=True,
    )
    created_by: Mapped[str | None] = mapped_column(
        UUID(as_uuid=False),
        nullable=True,
    )

    def __repr__(self) -> str:
        return f"<TreatmentPlan {self.id[:8]}... {self.status}>"


class TreatmentStep(Base, TimestampMixin):
    """One planned procedure within a plan.

    Multi-session steps keep ``current_session`` as a 1-based pointer to the
    next session to perform, bounded by ``total_sessions``.
    """

    __tablename__ = "treatment_steps"
    __table_args__ = (
        CheckConstraint(
            "current_session >= 1",
            name="current_session_positive",
        ),
    )

    plan_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("treatment_plans.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    order: Mapped[int] = mapped_column(
        "step_order",
        Integer,
        nullable=False,
    )
    procedure_id: Mapped[str | None] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("procedure_catalog.id", ondelete="SET NULL"),
        nullable=True,
    )
    service_type: Mapped[str | None] = mapped_column(String(100), nullable=True)
    tooth_number: Mapped[str | None] = mapped_column(String(10), nullable=True)
    estimated_duration_minutes: Mapped[int | None] = mapped_column(
        Integer,
        nullable=True,
    )
    status: Mapped[TreatmentStepStatus] = mapped_column(
        enum_column(TreatmentStepStatus, "treatment_step_status"),
        default=TreatmentStepStatus.PENDING,
        nullable=False,
    )

    requires_multiple_sessions: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        nullable=False,
    )
    total_sessions: Mapped[int | None] = mapped_column(Integer, nullable=True)
    current_session: Mapped[int] = mapped_column(
        Integer,
        default=1,
        nullable=False,
    )

    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    @property
    def is_multi_session(self) -> bool:
        return bool(
            self.requires_multiple_sessions
            and self.total_sessions is not None
            and self.total_sessions >= 2
        )

    def __repr__(self) -> str:
        return f"<TreatmentStep #{self.order} {self.status}>"
