"""Treatment step session tracking.

Multi-session steps advance ``current_session`` one completion at a time.
The caller passes the counter it last saw; a mismatch means another client
completed the session first and the call is rejected. The check is repeated on
the locked row inside the transaction.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone

from clinic_ops.core.errors import (
    AlreadyCompleteError,
    BusinessValidationError,
    ConcurrentModificationError,
    ForbiddenError,
    NotFoundError,
)
from clinic_ops.models import (
    Appointment,
    AppointmentStatus,
    AppointmentType,
    ProcedureCatalog,
    TreatmentStep,
    TreatmentStepStatus,
)
from clinic_ops.services.audit import AuditContext, BestEffortAuditor
from clinic_ops.store.base import ClinicStore
from clinic_ops.utils.time import utc_now

logger = logging.getLogger(__name__)

ENTITY_TYPE = "treatment_step"

# Follow-up appointment length when neither caller nor step gives one
DEFAULT_FOLLOW_UP_DURATION_MINUTES = 30


def procedure_name(step: TreatmentStep, catalog: dict[str, ProcedureCatalog]) -> str:
    """Display name of a step: catalog name, service type, or its position."""
    if step.procedure_id and step.procedure_id in catalog:
        return catalog[step.procedure_id].name
    if step.service_type:
        return step.service_type
    return f"Step {step.order}"


@dataclass(frozen=True)
class NextSessionData:
    """Where and when to book the follow-up session."""

    date: date
    time: str  # "HH:MM"
    professional_id: str
    duration_minutes: int | None = None
    room_id: str | None = None

    def start(self) -> datetime:
        try:
            hours, minutes = (int(part) for part in self.time.split(":"))
            start_time = time(hours, minutes)
        except ValueError as e:
            raise BusinessValidationError(
                "Next session time must be HH:MM", {"time": self.time}
            ) from e
        return datetime.combine(self.date, start_time, tzinfo=timezone.utc)


@dataclass
class SessionCompletionResult:
    step: TreatmentStep
    message: str
    previous_session: int
    is_last_session: bool
    appointment_id: str | None = None


class StepSessionTracker:
    """Completes sessions of treatment steps and books follow-ups."""

    def __init__(self, store: ClinicStore) -> None:
        self.store = store
        self.auditor = BestEffortAuditor(store)

    async def _load_owned_step(self, step_id: str, patient_id: str) -> TreatmentStep:
        step = await self.store.get_step(step_id)
        if step is None:
            raise NotFoundError("Treatment step not found", {"step_id": step_id})

        plan = await self.store.get_plan(step.plan_id)
        if plan is None or plan.patient_id != patient_id:
            raise ForbiddenError(
                "Treatment step does not belong to this patient",
                {"step_id": step_id, "patient_id": patient_id},
            )
        return step

    @staticmethod
    def _check_completable(step: TreatmentStep, expected_current_session: int) -> None:
        details = {
            "step_id": step.id,
            "current_session": step.current_session,
            "total_sessions": step.total_sessions,
        }
        if step.status == TreatmentStepStatus.COMPLETED:
            raise AlreadyCompleteError("All sessions of this step are complete", details)
        if step.status != TreatmentStepStatus.IN_PROGRESS:
            raise BusinessValidationError(
                "Only in-progress steps can complete a session",
                {**details, "status": step.status.value},
            )
        if expected_current_session != step.current_session:
            raise ConcurrentModificationError(
                "The session was already completed by another request; reload the step",
                {**details, "expected_current_session": expected_current_session},
            )
        if step.current_session >= step.total_sessions:
            raise AlreadyCompleteError("All sessions of this step are complete", details)

    async def complete_session(
        self,
        step_id: str,
        patient_id: str,
        expected_current_session: int,
        context: AuditContext,
        session_notes: str | None = None,
        schedule_next: bool = False,
        next_session: NextSessionData | None = None,
    ) -> SessionCompletionResult:
        """Complete the current session of a multi-session step.

        Args:
            step_id: Step to advance
            patient_id: Patient the step's plan must belong to
            expected_current_session: Counter value the caller last saw
            context: Acting staff member and request metadata
            session_notes: Notes appended as a numbered block
            schedule_next: Book a follow-up appointment unless this was the last session
            next_session: Date, time and professional for the follow-up

        Returns:
            SessionCompletionResult with the updated step

        Raises:
            NotFoundError: Step does not exist
            ForbiddenError: Step belongs to another patient
            BusinessValidationError: Step is not multi-session or not in progress
            ConcurrentModificationError: Counter changed since the caller read it
            AlreadyCompleteError: Every session is already complete
        """
        step = await self._load_owned_step(step_id, patient_id)

        if not step.requires_multiple_sessions or step.total_sessions is None:
            raise BusinessValidationError(
                "Step does not require multiple sessions",
                {"step_id": step_id},
            )
        self._check_completable(step, expected_current_session)

        if (
            schedule_next
            and next_session is None
            and step.current_session + 1 < step.total_sessions
        ):
            raise BusinessValidationError(
                "Next session data is required to schedule the follow-up",
                {"step_id": step_id},
            )

        catalog = await self.store.get_procedures(
            [step.procedure_id] if step.procedure_id else []
        )
        name = procedure_name(step, catalog)
        now = utc_now()
        new_appointment: Appointment | None = None

        async with self.store.transaction():
            locked = await self.store.lock_step(step_id)
            if locked is None:
                raise NotFoundError("Treatment step not found", {"step_id": step_id})
            self._check_completable(locked, expected_current_session)

            previous = locked.current_session
            total = locked.total_sessions
            new_session = previous + 1
            is_last = new_session >= total

            locked.current_session = new_session
            if is_last:
                locked.status = TreatmentStepStatus.COMPLETED
                locked.completed_at = now

            if session_notes:
                header = f"--- Session {previous} of {total} ({now:%Y-%m-%d %H:%M} UTC) ---"
                block = f"{header}\n{session_notes}"
                locked.notes = f"{locked.notes}\n\n{block}" if locked.notes else block

            if schedule_next and not is_last:
                new_appointment = self._follow_up_appointment(
                    locked, patient_id, next_session, new_session, name, context
                )
                self.store.add(new_appointment)

            step = locked

        if is_last:
            message = f"Session {previous} of {total} completed. The procedure is finished."
        else:
            remaining = total - new_session
            message = (
                f"Session {previous} of {total} completed. "
                f"{remaining} session(s) remaining."
            )

        logger.info(
            f"Step {step_id} session {previous}/{total} completed",
            extra={"action": "STEP_SESSION_COMPLETED", "entity_id": step_id},
        )

        await self.auditor.record(
            context,
            action="STEP_SESSION_COMPLETED",
            entity_type=ENTITY_TYPE,
            entity_id=step_id,
            action_category="treatment",
            metadata={
                "previous_session": previous,
                "new_session": new_session,
                "total_sessions": total,
                "is_last_session": is_last,
                "new_status": step.status.value,
                "appointment_created": new_appointment is not None,
                "appointment_id": new_appointment.id if new_appointment else None,
                "summary": (session_notes or "")[:200] or None,
            },
            description=message,
        )

        return SessionCompletionResult(
            step=step,
            message=message,
            previous_session=previous,
            is_last_session=is_last,
            appointment_id=new_appointment.id if new_appointment else None,
        )

    @staticmethod
    def _follow_up_appointment(
        step: TreatmentStep,
        patient_id: str,
        data: NextSessionData,
        session_number: int,
        name: str,
        context: AuditContext,
    ) -> Appointment:
        start = data.start()
        duration = (
            data.duration_minutes
            or step.estimated_duration_minutes
            or DEFAULT_FOLLOW_UP_DURATION_MINUTES
        )
        return Appointment(
            patient_id=patient_id,
            professional_id=data.professional_id,
            room_id=data.room_id,
            scheduled_start=start,
            scheduled_end=start + timedelta(minutes=duration),
            duration_minutes=duration,
            appointment_type=AppointmentType.CONSULTATION,
            status=AppointmentStatus.SCHEDULED,
            reason=f"Session {session_number}/{step.total_sessions} – {name}",
            created_by=context.actor_id,
        )

    async def start_step(
        self,
        step_id: str,
        patient_id: str,
        context: AuditContext,
    ) -> TreatmentStep:
        """Move a PENDING step to IN_PROGRESS.

        Multi-session steps restart their counter at session 1.
        """
        step = await self._load_owned_step(step_id, patient_id)
        if step.status != TreatmentStepStatus.PENDING:
            raise BusinessValidationError(
                "Only pending steps can be started",
                {"step_id": step_id, "status": step.status.value},
            )

        async with self.store.transaction():
            locked = await self.store.lock_step(step_id)
            if locked is None or locked.status != TreatmentStepStatus.PENDING:
                raise ConcurrentModificationError(
                    "The step changed while it was being started; reload the step",
                    {"step_id": step_id},
                )
            locked.status = TreatmentStepStatus.IN_PROGRESS
            if locked.requires_multiple_sessions:
                locked.current_session = 1
            step = locked

        await self.auditor.record(
            context,
            action="STEP_STARTED",
            entity_type=ENTITY_TYPE,
            entity_id=step_id,
            action_category="treatment",
            metadata={
                "requires_multiple_sessions": step.requires_multiple_sessions,
                "total_sessions": step.total_sessions,
            },
        )
        return step

    async def complete_step(
        self,
        step_id: str,
        patient_id: str,
        context: AuditContext,
    ) -> TreatmentStep:
        """Complete a single-session step in one go."""
        step = await self._load_owned_step(step_id, patient_id)
        if step.is_multi_session:
            raise BusinessValidationError(
                "Multi-session steps are completed one session at a time",
                {"step_id": step_id, "total_sessions": step.total_sessions},
            )
        if step.status == TreatmentStepStatus.COMPLETED:
            raise AlreadyCompleteError("Step is already completed", {"step_id": step_id})
        if step.status not in (TreatmentStepStatus.PENDING, TreatmentStepStatus.IN_PROGRESS):
            raise BusinessValidationError(
                "Only pending or in-progress steps can be completed",
                {"step_id": step_id, "status": step.status.value},
            )

        previous_status = step.status
        async with self.store.transaction():
            locked = await self.store.lock_step(step_id)
            if locked is None or locked.status != previous_status:
                raise ConcurrentModificationError(
                    "The step changed while it was being completed; reload the step",
                    {"step_id": step_id},
                )
            locked.status = TreatmentStepStatus.COMPLETED
            locked.completed_at = utc_now()
            step = locked

        await self.auditor.record(
            context,
            action="STEP_COMPLETED",
            entity_type=ENTITY_TYPE,
            entity_id=step_id,
            action_category="treatment",
            metadata={"previous_status": previous_status.value},
        )
        return step
