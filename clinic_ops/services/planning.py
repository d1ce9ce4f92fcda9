"""Read-only planning views derived from treatment plan state.

``active_plans_context`` pre-fills a new appointment from the patient's open
plan steps; ``follow_up_context`` recommends what to book after an appointment
completes. Neither view writes.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta

from clinic_ops.core.errors import BusinessValidationError, NotFoundError
from clinic_ops.models import (
    INACTIVE_STEP_STATUSES,
    AppointmentStatus,
    AppointmentType,
    TreatmentPlan,
    TreatmentStep,
    TreatmentStepStatus,
)
from clinic_ops.services.treatment_sessions import procedure_name
from clinic_ops.store.base import ClinicStore
from clinic_ops.utils.time import ensure_utc

logger = logging.getLogger(__name__)

FOLLOW_UP_OFFSET = timedelta(days=7)
DEFAULT_RECOMMENDED_DURATION_MINUTES = 60

# First match wins; checked against the lower-cased procedure name and service type
TYPE_KEYWORDS: tuple[tuple[tuple[str, ...], AppointmentType], ...] = (
    (("endodon", "root canal"), AppointmentType.ENDODONTICS),
    (("extraction",), AppointmentType.EXTRACTION),
    (("cleaning", "prophylaxis"), AppointmentType.CLEANING),
    (("orthodon",), AppointmentType.ORTHODONTICS),
    (("control", "check"), AppointmentType.CHECKUP),
)

_OPEN_STATUSES = (TreatmentStepStatus.PENDING, TreatmentStepStatus.IN_PROGRESS)


@dataclass(frozen=True)
class SessionDescriptor:
    """The next session to perform on one step."""

    plan_id: str
    step_id: str
    step_order: int
    procedure_name: str
    status: TreatmentStepStatus
    current_session: int
    total_sessions: int
    next_session: int
    is_multi_session: bool
    estimated_duration_minutes: int | None = None
    service_type: str | None = None


@dataclass
class PlanSessions:
    plan_id: str
    title: str | None
    created_at: datetime
    sessions: list[SessionDescriptor] = field(default_factory=list)
    recommended_type: AppointmentType | None = None
    recommended_duration_minutes: int | None = None
    recommended_motive: str | None = None


@dataclass
class ActivePlansContext:
    patient_id: str
    plans: list[PlanSessions] = field(default_factory=list)
    recommended_type: AppointmentType | None = None
    recommended_duration_minutes: int | None = None
    recommended_motive: str | None = None

    @property
    def has_active_plans(self) -> bool:
        return bool(self.plans)


@dataclass
class FollowUpContext:
    appointment_id: str
    patient_id: str
    completion_date: datetime
    recommended_follow_up_date: datetime
    plan_id: str | None = None
    plan_title: str | None = None
    has_pending_sessions: bool = False
    next_sessions: list[SessionDescriptor] = field(default_factory=list)

    @property
    def has_active_plan(self) -> bool:
        return self.plan_id is not None

    @property
    def is_multi_session_follow_up(self) -> bool:
        return bool(self.next_sessions)


def infer_appointment_type(name: str, service_type: str | None = None) -> AppointmentType:
    """Guess the appointment type from a procedure name or the step's service type."""
    lowered = f"{name} {service_type or ''}".lower()
    for keywords, appointment_type in TYPE_KEYWORDS:
        if any(keyword in lowered for keyword in keywords):
            return appointment_type
    return AppointmentType.CONSULTATION


def session_motive(descriptor: SessionDescriptor) -> str:
    return (
        f"Session {descriptor.next_session} of {descriptor.total_sessions} "
        f"– {descriptor.procedure_name}"
    )


def _recommend(summary: PlanSessions) -> None:
    """Pre-fill values for a plan, taken from its first pending session."""
    first = summary.sessions[0]
    summary.recommended_type = infer_appointment_type(first.procedure_name, first.service_type)
    summary.recommended_duration_minutes = (
        first.estimated_duration_minutes or DEFAULT_RECOMMENDED_DURATION_MINUTES
    )
    summary.recommended_motive = session_motive(first)


def is_plan_fully_completed(steps: list[TreatmentStep]) -> bool:
    """True when every step that still counts is COMPLETED.

    Empty plans and plans whose steps are all cancelled or deferred count as
    completed.
    """
    counted = [s for s in steps if s.status not in INACTIVE_STEP_STATUSES]
    return all(s.status == TreatmentStepStatus.COMPLETED for s in counted)


def _multi_session_descriptor(
    plan: TreatmentPlan,
    step: TreatmentStep,
    name: str,
) -> SessionDescriptor | None:
    current = step.current_session or 1
    total = step.total_sessions
    if current < 1 or current > total:
        logger.warning(
            f"Skipping step {step.id}: current session {current} outside 1..{total}",
            extra={"entity_id": step.id},
        )
        return None
    return SessionDescriptor(
        plan_id=plan.id,
        step_id=step.id,
        step_order=step.order,
        procedure_name=name,
        status=step.status,
        current_session=current,
        total_sessions=total,
        next_session=min(current, total),
        is_multi_session=True,
        estimated_duration_minutes=step.estimated_duration_minutes,
        service_type=step.service_type,
    )


class PlanningService:
    """Builds the planning views from store reads only."""

    def __init__(self, store: ClinicStore) -> None:
        self.store = store

    async def _catalog_for(self, steps: list[TreatmentStep]):
        return await self.store.get_procedures(s.procedure_id for s in steps if s.procedure_id)

    async def active_plans_context(self, patient_id: str) -> ActivePlansContext:
        """Collect the next session of every open step in the patient's active plans.

        Raises:
            NotFoundError: Patient does not exist
        """
        if await self.store.get_patient(patient_id) is None:
            raise NotFoundError("Patient not found", {"patient_id": patient_id})

        context = ActivePlansContext(patient_id=patient_id)

        for plan in await self.store.list_active_plans(patient_id):
            steps = await self.store.list_plan_steps(plan.id)
            if is_plan_fully_completed(steps):
                continue

            catalog = await self._catalog_for(steps)
            summary = PlanSessions(plan_id=plan.id, title=plan.title, created_at=plan.created_at)

            for step in steps:
                if step.status not in _OPEN_STATUSES:
                    continue
                name = procedure_name(step, catalog)
                if step.is_multi_session:
                    descriptor = _multi_session_descriptor(plan, step, name)
                    if descriptor is not None:
                        summary.sessions.append(descriptor)
                else:
                    summary.sessions.append(
                        SessionDescriptor(
                            plan_id=plan.id,
                            step_id=step.id,
                            step_order=step.order,
                            procedure_name=name,
                            status=step.status,
                            current_session=1,
                            total_sessions=1,
                            next_session=1,
                            is_multi_session=False,
                            estimated_duration_minutes=step.estimated_duration_minutes,
                            service_type=step.service_type,
                        )
                    )

            if summary.sessions:
                _recommend(summary)
                context.plans.append(summary)

        if context.plans:
            first = context.plans[0]
            context.recommended_type = first.recommended_type
            context.recommended_duration_minutes = first.recommended_duration_minutes
            context.recommended_motive = first.recommended_motive

        return context

    async def follow_up_context(self, appointment_id: str) -> FollowUpContext:
        """Recommend a follow-up after a completed appointment.

        The recommended date is always the completion date plus seven days.

        Raises:
            NotFoundError: Appointment does not exist
            BusinessValidationError: Appointment is not COMPLETED
        """
        appointment = await self.store.get_appointment(appointment_id)
        if appointment is None:
            raise NotFoundError("Appointment not found", {"appointment_id": appointment_id})
        if appointment.status != AppointmentStatus.COMPLETED:
            raise BusinessValidationError(
                "Follow-up context is only available for completed appointments",
                {"appointment_id": appointment_id, "status": appointment.status.value},
            )

        completion = ensure_utc(appointment.completed_at or appointment.scheduled_start)
        context = FollowUpContext(
            appointment_id=appointment_id,
            patient_id=appointment.patient_id,
            completion_date=completion,
            recommended_follow_up_date=completion + FOLLOW_UP_OFFSET,
        )

        plans = await self.store.list_active_plans(appointment.patient_id)
        if not plans:
            return context
        plan = plans[0]
        context.plan_id = plan.id
        context.plan_title = plan.title

        steps = await self.store.list_plan_steps(plan.id)
        if is_plan_fully_completed(steps):
            return context

        linked_step_ids = {
            p.treatment_step_id
            for p in await self.store.list_encounter_procedures(appointment_id)
            if p.treatment_step_id
        }
        catalog = await self._catalog_for(steps)

        for step in steps:
            if not step.is_multi_session:
                continue
            if step.status == TreatmentStepStatus.COMPLETED or step.status in INACTIVE_STEP_STATUSES:
                continue
            if (step.current_session or 1) < step.total_sessions:
                context.has_pending_sessions = True
            if step.status != TreatmentStepStatus.IN_PROGRESS and step.id not in linked_step_ids:
                continue
            descriptor = _multi_session_descriptor(plan, step, procedure_name(step, catalog))
            if descriptor is not None:
                context.next_sessions.append(descriptor)

        return context
