"""Tests for multi-session treatment step tracking."""

from datetime import date, datetime, timezone

import pytest

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
    TreatmentStepStatus,
)
from clinic_ops.services.audit import AuditContext
from clinic_ops.services.treatment_sessions import (
    DEFAULT_FOLLOW_UP_DURATION_MINUTES,
    NextSessionData,
    StepSessionTracker,
    procedure_name,
)

from tests.factories import PROFESSIONAL_ID, ClinicFactory, new_uuid


@pytest.fixture
def tracker(store) -> StepSessionTracker:
    return StepSessionTracker(store)


def next_session_data(**overrides) -> NextSessionData:
    values = {
        "date": date(2025, 7, 1),
        "time": "09:30",
        "professional_id": PROFESSIONAL_ID,
    }
    values.update(overrides)
    return NextSessionData(**values)


class TestSessionCounter:
    """Tests for the session counter law."""

    async def test_three_session_step(
        self,
        tracker: StepSessionTracker,
        factory: ClinicFactory,
        audit_context: AuditContext,
    ) -> None:
        """Test 1 -> 2 -> 3 (COMPLETED), then AlreadyComplete."""
        patient = factory.patient()
        plan = factory.plan(patient)
        step = factory.step(plan, total_sessions=3)

        first = await tracker.complete_session(step.id, patient.id, 1, audit_context)
        assert first.step.current_session == 2
        assert first.step.status == TreatmentStepStatus.IN_PROGRESS
        assert first.step.completed_at is None
        assert first.is_last_session is False
        assert first.message == "Session 1 of 3 completed. 1 session(s) remaining."

        second = await tracker.complete_session(step.id, patient.id, 2, audit_context)
        assert second.step.current_session == 3
        assert second.step.status == TreatmentStepStatus.COMPLETED
        assert second.step.completed_at is not None
        assert second.is_last_session is True
        assert second.message == "Session 2 of 3 completed. The procedure is finished."

        with pytest.raises(AlreadyCompleteError):
            await tracker.complete_session(step.id, patient.id, 3, audit_context)

    async def test_stale_counter_is_rejected(
        self,
        tracker: StepSessionTracker,
        factory: ClinicFactory,
        audit_context: AuditContext,
    ) -> None:
        """Test that a second client completing the same session loses."""
        patient = factory.patient()
        plan = factory.plan(patient)
        step = factory.step(plan, total_sessions=4)

        await tracker.complete_session(step.id, patient.id, 1, audit_context)

        with pytest.raises(ConcurrentModificationError) as exc_info:
            await tracker.complete_session(
                step.id, patient.id, 1, audit_context, session_notes="duplicate"
            )

        assert exc_info.value.details["expected_current_session"] == 1
        assert exc_info.value.details["current_session"] == 2
        assert step.current_session == 2
        assert "duplicate" not in (step.notes or "")

    async def test_counter_at_total_is_already_complete(
        self,
        tracker: StepSessionTracker,
        factory: ClinicFactory,
        audit_context: AuditContext,
    ) -> None:
        patient = factory.patient()
        plan = factory.plan(patient)
        step = factory.step(plan, total_sessions=2, current_session=2)

        with pytest.raises(AlreadyCompleteError):
            await tracker.complete_session(step.id, patient.id, 2, audit_context)


class TestSessionPreconditions:
    """Tests for ownership and state checks."""

    async def test_unknown_step(
        self, tracker: StepSessionTracker, audit_context: AuditContext
    ) -> None:
        with pytest.raises(NotFoundError):
            await tracker.complete_session(new_uuid(), new_uuid(), 1, audit_context)

    async def test_step_of_another_patient_is_forbidden(
        self,
        tracker: StepSessionTracker,
        factory: ClinicFactory,
        audit_context: AuditContext,
    ) -> None:
        """Test that a step can only be advanced for its own patient."""
        owner = factory.patient()
        intruder = factory.patient()
        step = factory.step(factory.plan(owner))

        with pytest.raises(ForbiddenError):
            await tracker.complete_session(step.id, intruder.id, 1, audit_context)

        assert step.current_session == 1

    async def test_single_session_step_is_rejected(
        self,
        tracker: StepSessionTracker,
        factory: ClinicFactory,
        audit_context: AuditContext,
    ) -> None:
        patient = factory.patient()
        step = factory.step(factory.plan(patient), total_sessions=None)

        with pytest.raises(BusinessValidationError):
            await tracker.complete_session(step.id, patient.id, 1, audit_context)

    async def test_pending_step_is_rejected(
        self,
        tracker: StepSessionTracker,
        factory: ClinicFactory,
        audit_context: AuditContext,
    ) -> None:
        """Test that sessions can only be completed on in-progress steps."""
        patient = factory.patient()
        step = factory.step(factory.plan(patient), status=TreatmentStepStatus.PENDING)

        with pytest.raises(BusinessValidationError):
            await tracker.complete_session(step.id, patient.id, 1, audit_context)

    async def test_schedule_next_requires_data(
        self,
        tracker: StepSessionTracker,
        factory: ClinicFactory,
        audit_context: AuditContext,
    ) -> None:
        patient = factory.patient()
        step = factory.step(factory.plan(patient))

        with pytest.raises(BusinessValidationError):
            await tracker.complete_session(
                step.id, patient.id, 1, audit_context, schedule_next=True
            )

        assert step.current_session == 1

    async def test_final_session_needs_no_follow_up_data(
        self,
        tracker: StepSessionTracker,
        factory: ClinicFactory,
        audit_context: AuditContext,
    ) -> None:
        """Test that the last session completes even when asked to schedule."""
        patient = factory.patient()
        step = factory.step(factory.plan(patient), total_sessions=3, current_session=2)

        result = await tracker.complete_session(
            step.id, patient.id, 2, audit_context, schedule_next=True
        )

        assert result.is_last_session is True
        assert result.appointment_id is None
        assert result.step.status == TreatmentStepStatus.COMPLETED


class TestSessionNotes:
    """Tests for the append-only session note blocks."""

    async def test_notes_are_appended_per_session(
        self,
        tracker: StepSessionTracker,
        factory: ClinicFactory,
        audit_context: AuditContext,
    ) -> None:
        patient = factory.patient()
        step = factory.step(factory.plan(patient), notes="Plan agreed with patient")

        await tracker.complete_session(
            step.id, patient.id, 1, audit_context, session_notes="Canal opened"
        )
        await tracker.complete_session(
            step.id, patient.id, 2, audit_context, session_notes="Canal sealed"
        )

        blocks = step.notes.split("\n\n")
        assert blocks[0] == "Plan agreed with patient"
        assert blocks[1].startswith("--- Session 1 of 3 (")
        assert blocks[1].endswith("UTC) ---\nCanal opened")
        assert blocks[2].startswith("--- Session 2 of 3 (")
        assert blocks[2].endswith("Canal sealed")

    async def test_no_notes_leaves_notes_untouched(
        self,
        tracker: StepSessionTracker,
        factory: ClinicFactory,
        audit_context: AuditContext,
    ) -> None:
        patient = factory.patient()
        step = factory.step(factory.plan(patient))

        await tracker.complete_session(step.id, patient.id, 1, audit_context)

        assert step.notes is None


class TestFollowUpBooking:
    """Tests for booking the next session's appointment."""

    async def test_follow_up_appointment_is_created(
        self,
        tracker: StepSessionTracker,
        store,
        factory: ClinicFactory,
        audit_context: AuditContext,
    ) -> None:
        patient = factory.patient()
        procedure = factory.procedure("Root canal treatment")
        step = factory.step(
            factory.plan(patient), procedure=procedure, estimated_duration_minutes=90
        )

        result = await tracker.complete_session(
            step.id,
            patient.id,
            1,
            audit_context,
            schedule_next=True,
            next_session=next_session_data(),
        )

        assert result.appointment_id is not None
        appointment = await store.get_appointment(result.appointment_id)
        assert isinstance(appointment, Appointment)
        assert appointment.status == AppointmentStatus.SCHEDULED
        assert appointment.appointment_type == AppointmentType.CONSULTATION
        assert appointment.patient_id == patient.id
        assert appointment.professional_id == PROFESSIONAL_ID
        assert appointment.scheduled_start == datetime(2025, 7, 1, 9, 30, tzinfo=timezone.utc)
        assert appointment.duration_minutes == 90
        assert appointment.reason == "Session 2/3 – Root canal treatment"
        assert appointment.created_by == audit_context.actor_id

    async def test_caller_duration_wins(
        self,
        tracker: StepSessionTracker,
        store,
        factory: ClinicFactory,
        audit_context: AuditContext,
    ) -> None:
        patient = factory.patient()
        step = factory.step(factory.plan(patient), estimated_duration_minutes=90)

        result = await tracker.complete_session(
            step.id,
            patient.id,
            1,
            audit_context,
            schedule_next=True,
            next_session=next_session_data(duration_minutes=45),
        )

        appointment = await store.get_appointment(result.appointment_id)
        assert appointment.duration_minutes == 45

    async def test_fallback_duration(
        self,
        tracker: StepSessionTracker,
        store,
        factory: ClinicFactory,
        audit_context: AuditContext,
    ) -> None:
        patient = factory.patient()
        step = factory.step(factory.plan(patient))

        result = await tracker.complete_session(
            step.id,
            patient.id,
            1,
            audit_context,
            schedule_next=True,
            next_session=next_session_data(),
        )

        appointment = await store.get_appointment(result.appointment_id)
        assert appointment.duration_minutes == DEFAULT_FOLLOW_UP_DURATION_MINUTES

    async def test_no_follow_up_after_last_session(
        self,
        tracker: StepSessionTracker,
        factory: ClinicFactory,
        audit_context: AuditContext,
    ) -> None:
        """Test that completing the final session books nothing."""
        patient = factory.patient()
        step = factory.step(factory.plan(patient), total_sessions=2)

        result = await tracker.complete_session(
            step.id,
            patient.id,
            1,
            audit_context,
            schedule_next=True,
            next_session=next_session_data(),
        )

        assert result.is_last_session is True
        assert result.appointment_id is None

    async def test_bad_time_rolls_back_completion(
        self,
        tracker: StepSessionTracker,
        factory: ClinicFactory,
        audit_context: AuditContext,
    ) -> None:
        """Test that a failed booking leaves the counter and notes unchanged."""
        patient = factory.patient()
        step = factory.step(factory.plan(patient))

        with pytest.raises(BusinessValidationError):
            await tracker.complete_session(
                step.id,
                patient.id,
                1,
                audit_context,
                session_notes="Should not persist",
                schedule_next=True,
                next_session=next_session_data(time="25:99"),
            )

        assert step.current_session == 1
        assert step.notes is None

    async def test_completion_is_audited(
        self,
        tracker: StepSessionTracker,
        store,
        factory: ClinicFactory,
        audit_context: AuditContext,
    ) -> None:
        patient = factory.patient()
        step = factory.step(factory.plan(patient))

        result = await tracker.complete_session(
            step.id,
            patient.id,
            1,
            audit_context,
            session_notes="Temporary filling placed",
            schedule_next=True,
            next_session=next_session_data(),
        )

        events = await store.list_audit_events(entity_id=step.id)
        assert [e.action for e in events] == ["STEP_SESSION_COMPLETED"]
        metadata = events[0].event_metadata
        assert metadata["previous_session"] == 1
        assert metadata["new_session"] == 2
        assert metadata["new_status"] == "IN_PROGRESS"
        assert metadata["appointment_created"] is True
        assert metadata["appointment_id"] == result.appointment_id
        assert metadata["summary"] == "Temporary filling placed"


class TestStepLifecycle:
    """Tests for starting and completing whole steps."""

    async def test_start_pending_step(
        self,
        tracker: StepSessionTracker,
        store,
        factory: ClinicFactory,
        audit_context: AuditContext,
    ) -> None:
        patient = factory.patient()
        step = factory.step(
            factory.plan(patient), status=TreatmentStepStatus.PENDING, current_session=2
        )

        started = await tracker.start_step(step.id, patient.id, audit_context)

        assert started.status == TreatmentStepStatus.IN_PROGRESS
        assert started.current_session == 1
        events = await store.list_audit_events(entity_id=step.id)
        assert events[0].action == "STEP_STARTED"

    async def test_start_non_pending_step_is_rejected(
        self,
        tracker: StepSessionTracker,
        factory: ClinicFactory,
        audit_context: AuditContext,
    ) -> None:
        patient = factory.patient()
        step = factory.step(factory.plan(patient))

        with pytest.raises(BusinessValidationError):
            await tracker.start_step(step.id, patient.id, audit_context)

    async def test_complete_single_session_step(
        self,
        tracker: StepSessionTracker,
        factory: ClinicFactory,
        audit_context: AuditContext,
    ) -> None:
        patient = factory.patient()
        step = factory.step(
            factory.plan(patient), total_sessions=None, status=TreatmentStepStatus.PENDING
        )

        completed = await tracker.complete_step(step.id, patient.id, audit_context)

        assert completed.status == TreatmentStepStatus.COMPLETED
        assert completed.completed_at is not None

        with pytest.raises(AlreadyCompleteError):
            await tracker.complete_step(step.id, patient.id, audit_context)

    async def test_complete_step_rejects_multi_session(
        self,
        tracker: StepSessionTracker,
        factory: ClinicFactory,
        audit_context: AuditContext,
    ) -> None:
        """Test that multi-session steps must go session by session."""
        patient = factory.patient()
        step = factory.step(factory.plan(patient), total_sessions=3)

        with pytest.raises(BusinessValidationError):
            await tracker.complete_step(step.id, patient.id, audit_context)


class TestProcedureName:
    """Tests for step display names."""

    def test_catalog_name_first(self, factory: ClinicFactory) -> None:
        patient = factory.patient()
        procedure = factory.procedure("Crown")
        step = factory.step(factory.plan(patient), procedure=procedure, service_type="Other")

        assert procedure_name(step, {procedure.id: procedure}) == "Crown"

    def test_service_type_then_order(self, factory: ClinicFactory) -> None:
        patient = factory.patient()
        plan = factory.plan(patient)

        named = factory.step(plan, order=1, service_type="Whitening")
        unnamed = factory.step(plan, order=2)

        assert procedure_name(named, {}) == "Whitening"
        assert procedure_name(unnamed, {}) == "Step 2"
