"""Tests for the appointment transition service."""

import pytest

from clinic_ops.core.errors import BusinessValidationError, InvalidTransitionError, NotFoundError
from clinic_ops.models import (
    AppointmentAction,
    AppointmentStatus,
    AppointmentStatusHistory,
    CancelReason,
    Encounter,
)
from clinic_ops.services.appointments import AppointmentTransitionService
from clinic_ops.services.audit import AuditContext
from clinic_ops.services.transitions import TRANSITIONS

from tests.factories import ClinicFactory, new_uuid


@pytest.fixture
def service(store) -> AppointmentTransitionService:
    return AppointmentTransitionService(store)


class TestTransitionService:
    """Tests for applying lifecycle actions."""

    @pytest.mark.parametrize(
        "edge",
        list(TRANSITIONS.items()),
        ids=lambda e: f"{e[0][0].value}-{e[0][1].value}",
    )
    async def test_every_edge_applies(
        self,
        service: AppointmentTransitionService,
        factory: ClinicFactory,
        audit_context: AuditContext,
        edge,
    ) -> None:
        """Test that each declared edge moves the appointment to its target."""
        (source, action), target = edge
        patient = factory.patient(age=30)
        appointment = factory.appointment(patient, status=source)
        cancel_reason = CancelReason.PATIENT_REQUEST if action == AppointmentAction.CANCEL else None

        result = await service.transition(
            appointment.id, action, audit_context, cancel_reason=cancel_reason
        )

        assert result.appointment.status == target
        assert result.previous_status == source
        assert result.action == action

    @pytest.mark.parametrize(
        "status",
        [AppointmentStatus.COMPLETED, AppointmentStatus.CANCELLED, AppointmentStatus.NO_SHOW],
    )
    async def test_terminal_states_reject_everything(
        self,
        service: AppointmentTransitionService,
        factory: ClinicFactory,
        audit_context: AuditContext,
        status: AppointmentStatus,
    ) -> None:
        """Test that no action leaves a terminal state."""
        patient = factory.patient()
        appointment = factory.appointment(patient, status=status)

        with pytest.raises(InvalidTransitionError) as exc_info:
            await service.transition(appointment.id, AppointmentAction.CONFIRM, audit_context)

        assert exc_info.value.details["current_status"] == status.value
        assert exc_info.value.details["allowed_actions"] == []
        assert appointment.status == status

    async def test_invalid_transition_lists_allowed_actions(
        self,
        service: AppointmentTransitionService,
        factory: ClinicFactory,
        audit_context: AuditContext,
    ) -> None:
        """Test that the error tells the caller what is allowed instead."""
        patient = factory.patient()
        appointment = factory.appointment(patient, status=AppointmentStatus.SCHEDULED)

        with pytest.raises(InvalidTransitionError) as exc_info:
            await service.transition(appointment.id, AppointmentAction.COMPLETE, audit_context)

        assert exc_info.value.code == "INVALID_TRANSITION"
        assert exc_info.value.details["allowed_actions"] == [
            "CONFIRM",
            "CHECKIN",
            "CANCEL",
            "NO_SHOW",
        ]

    async def test_unknown_appointment(
        self,
        service: AppointmentTransitionService,
        audit_context: AuditContext,
    ) -> None:
        """Test that a missing appointment raises NotFoundError."""
        with pytest.raises(NotFoundError):
            await service.transition(new_uuid(), AppointmentAction.CONFIRM, audit_context)

    async def test_cancel_requires_reason(
        self,
        service: AppointmentTransitionService,
        factory: ClinicFactory,
        audit_context: AuditContext,
    ) -> None:
        """Test that CANCEL without a reason is rejected."""
        patient = factory.patient()
        appointment = factory.appointment(patient)

        with pytest.raises(BusinessValidationError):
            await service.transition(appointment.id, AppointmentAction.CANCEL, audit_context)

        assert appointment.status == AppointmentStatus.SCHEDULED

    async def test_reason_rejected_for_other_actions(
        self,
        service: AppointmentTransitionService,
        factory: ClinicFactory,
        audit_context: AuditContext,
    ) -> None:
        """Test that a cancel reason on a non-cancel action is rejected."""
        patient = factory.patient()
        appointment = factory.appointment(patient)

        with pytest.raises(BusinessValidationError):
            await service.transition(
                appointment.id,
                AppointmentAction.CONFIRM,
                audit_context,
                cancel_reason=CancelReason.OTHER,
            )

    async def test_cancel_stamps_reason_and_actor(
        self,
        service: AppointmentTransitionService,
        factory: ClinicFactory,
        audit_context: AuditContext,
    ) -> None:
        """Test that cancellation records who cancelled and why."""
        patient = factory.patient()
        appointment = factory.appointment(patient, status=AppointmentStatus.CONFIRMED)

        result = await service.transition(
            appointment.id,
            AppointmentAction.CANCEL,
            audit_context,
            cancel_reason=CancelReason.CLINIC_CLOSURE,
        )

        assert result.appointment.cancel_reason == CancelReason.CLINIC_CLOSURE
        assert result.appointment.cancelled_by == audit_context.actor_id
        assert result.appointment.cancelled_at is not None
        assert result.allowed_actions == []


class TestTransitionSideEffects:
    """Tests for timestamps, history, encounters and audit."""

    async def test_full_lifecycle_stamps_timestamps(
        self,
        service: AppointmentTransitionService,
        factory: ClinicFactory,
        audit_context: AuditContext,
    ) -> None:
        """Test that each action stamps its own timestamp."""
        patient = factory.patient(age=40)
        appointment = factory.appointment(patient)

        await service.transition(appointment.id, AppointmentAction.CONFIRM, audit_context)
        await service.transition(appointment.id, AppointmentAction.CHECKIN, audit_context)
        assert appointment.checked_in_at is not None
        assert appointment.started_at is None

        await service.transition(appointment.id, AppointmentAction.START, audit_context)
        assert appointment.started_at is not None

        await service.transition(appointment.id, AppointmentAction.COMPLETE, audit_context)
        assert appointment.completed_at is not None
        assert appointment.status == AppointmentStatus.COMPLETED

    async def test_history_rows_are_appended(
        self,
        service: AppointmentTransitionService,
        factory: ClinicFactory,
        audit_context: AuditContext,
    ) -> None:
        """Test that every transition appends one history row."""
        patient = factory.patient()
        appointment = factory.appointment(patient)

        await service.transition(
            appointment.id, AppointmentAction.CONFIRM, audit_context, notes="Phoned"
        )
        await service.transition(appointment.id, AppointmentAction.CHECKIN, audit_context)

        history = await service.history(appointment.id)

        assert [(h.previous_status, h.new_status) for h in history] == [
            (AppointmentStatus.SCHEDULED, AppointmentStatus.CONFIRMED),
            (AppointmentStatus.CONFIRMED, AppointmentStatus.CHECKED_IN),
        ]
        assert history[0].note == "Phoned"
        assert all(h.changed_by == audit_context.actor_id for h in history)

    async def test_history_of_unknown_appointment(
        self,
        service: AppointmentTransitionService,
    ) -> None:
        with pytest.raises(NotFoundError):
            await service.history(new_uuid())

    async def test_start_creates_encounter(
        self,
        service: AppointmentTransitionService,
        store,
        factory: ClinicFactory,
        audit_context: AuditContext,
    ) -> None:
        """Test that START opens a draft encounter for the appointment."""
        patient = factory.patient(age=30)
        appointment = factory.appointment(patient, status=AppointmentStatus.CHECKED_IN)

        result = await service.transition(appointment.id, AppointmentAction.START, audit_context)

        assert result.encounter_created is True
        encounter = await store.get_encounter(appointment.id)
        assert isinstance(encounter, Encounter)
        assert encounter.patient_id == patient.id
        assert encounter.performed_by == appointment.professional_id

    async def test_start_keeps_existing_encounter(
        self,
        service: AppointmentTransitionService,
        store,
        factory: ClinicFactory,
        audit_context: AuditContext,
    ) -> None:
        """Test that START does not create a second encounter."""
        patient = factory.patient(age=30)
        appointment = factory.appointment(patient, status=AppointmentStatus.CHECKED_IN)
        existing = factory.encounter(appointment)

        result = await service.transition(appointment.id, AppointmentAction.START, audit_context)

        assert result.encounter_created is False
        assert await store.get_encounter(appointment.id) is existing

    async def test_transition_is_audited(
        self,
        service: AppointmentTransitionService,
        store,
        factory: ClinicFactory,
        audit_context: AuditContext,
    ) -> None:
        """Test that a successful transition writes an audit event."""
        patient = factory.patient()
        appointment = factory.appointment(patient)

        await service.transition(appointment.id, AppointmentAction.CONFIRM, audit_context)

        events = await store.list_audit_events(entity_id=appointment.id)
        assert [e.action for e in events] == ["TRANSITION_CONFIRM"]
        assert events[0].event_metadata["from"] == "SCHEDULED"
        assert events[0].event_metadata["to"] == "CONFIRMED"
        assert events[0].actor_id == audit_context.actor_id

    async def test_rejected_transition_writes_nothing(
        self,
        service: AppointmentTransitionService,
        store,
        factory: ClinicFactory,
        audit_context: AuditContext,
    ) -> None:
        """Test that an invalid transition leaves no history or audit trail."""
        patient = factory.patient()
        appointment = factory.appointment(patient)

        with pytest.raises(InvalidTransitionError):
            await service.transition(appointment.id, AppointmentAction.COMPLETE, audit_context)

        assert await store.list_status_history(appointment.id) == []
        assert await store.list_audit_events(entity_id=appointment.id) == []

    async def test_failed_transaction_rolls_back(
        self,
        service: AppointmentTransitionService,
        store,
        factory: ClinicFactory,
        audit_context: AuditContext,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        """Test that a failure inside the unit of work leaves no partial state."""
        patient = factory.patient()
        appointment = factory.appointment(patient)

        original_add = store.add

        def failing_add(obj):
            if isinstance(obj, AppointmentStatusHistory):
                raise RuntimeError("disk full")
            original_add(obj)

        monkeypatch.setattr(store, "add", failing_add)

        with pytest.raises(RuntimeError):
            await service.transition(appointment.id, AppointmentAction.CONFIRM, audit_context)

        assert appointment.status == AppointmentStatus.SCHEDULED
        assert await store.list_status_history(appointment.id) == []
