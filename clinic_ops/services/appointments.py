"""Appointment lifecycle service.

Applies state machine transitions. START runs the consent gate first, and
every mutation happens in one store transaction: status, the action's
timestamp, a history row and (for START) the encounter. Audit entries are
written afterwards through ``BestEffortAuditor``.
"""

import logging
from dataclasses import dataclass, field

from clinic_ops.core.errors import BusinessValidationError, InvalidTransitionError, NotFoundError
from clinic_ops.models import (
    Appointment,
    AppointmentAction,
    AppointmentStatus,
    AppointmentStatusHistory,
    CancelReason,
    Encounter,
    EncounterStatus,
)
from clinic_ops.services.audit import AuditContext, BestEffortAuditor
from clinic_ops.services.consent_gate import ConsentBlocked, ConsentGate
from clinic_ops.services.transitions import allowed_actions, next_status
from clinic_ops.store.base import ClinicStore
from clinic_ops.utils.time import utc_now

logger = logging.getLogger(__name__)

ENTITY_TYPE = "appointment"


@dataclass
class TransitionResult:
    """Outcome of a successful transition."""

    appointment: Appointment
    previous_status: AppointmentStatus
    action: AppointmentAction
    encounter_created: bool = False
    allowed_actions: list[AppointmentAction] = field(default_factory=list)


class AppointmentTransitionService:
    """Validates and applies appointment lifecycle transitions."""

    def __init__(self, store: ClinicStore) -> None:
        self.store = store
        self.gate = ConsentGate(store)
        self.auditor = BestEffortAuditor(store)

    async def transition(
        self,
        appointment_id: str,
        action: AppointmentAction,
        context: AuditContext,
        notes: str | None = None,
        cancel_reason: CancelReason | None = None,
    ) -> TransitionResult:
        """Apply ``action`` to an appointment.

        Args:
            appointment_id: Appointment to transition
            action: Requested lifecycle action
            context: Acting staff member and request metadata
            notes: Optional note stored on the history row
            cancel_reason: Required for CANCEL, rejected otherwise

        Returns:
            TransitionResult with the updated appointment

        Raises:
            NotFoundError: Appointment does not exist
            BusinessValidationError: Cancel reason missing or misplaced
            ConsentGateError: START blocked by the consent gate
            InvalidTransitionError: No edge for the current status and action
        """
        appointment = await self.store.get_appointment(appointment_id)
        if appointment is None:
            raise NotFoundError(
                "Appointment not found", {"appointment_id": appointment_id}
            )

        if action == AppointmentAction.CANCEL and cancel_reason is None:
            raise BusinessValidationError(
                "A cancel reason is required to cancel an appointment",
                {"appointment_id": appointment_id, "action": action.value},
            )
        if action != AppointmentAction.CANCEL and cancel_reason is not None:
            raise BusinessValidationError(
                "A cancel reason is only accepted for CANCEL",
                {"appointment_id": appointment_id, "action": action.value},
            )

        if action == AppointmentAction.START:
            await self._check_consent(appointment, context)

        current = appointment.status
        if next_status(current, action) is None:
            raise self._invalid(appointment_id, current, action)

        now = utc_now()
        encounter_created = False

        async with self.store.transaction():
            locked = await self.store.lock_appointment(appointment_id)
            if locked is None:
                raise NotFoundError(
                    "Appointment not found", {"appointment_id": appointment_id}
                )
            # Re-read under lock; a concurrent transition may have moved it
            current = locked.status
            target = next_status(current, action)
            if target is None:
                raise self._invalid(appointment_id, current, action)

            locked.status = target
            if action == AppointmentAction.CHECKIN:
                locked.checked_in_at = now
            elif action == AppointmentAction.START:
                locked.started_at = now
            elif action == AppointmentAction.COMPLETE:
                locked.completed_at = now
            elif action == AppointmentAction.CANCEL:
                locked.cancelled_at = now
                locked.cancel_reason = cancel_reason
                locked.cancelled_by = context.actor_id

            self.store.add(
                AppointmentStatusHistory(
                    appointment_id=appointment_id,
                    previous_status=current,
                    new_status=target,
                    action=action,
                    note=notes,
                    changed_by=context.actor_id,
                    changed_at=now,
                )
            )

            if action == AppointmentAction.START:
                existing = await self.store.get_encounter(appointment_id)
                if existing is None:
                    self.store.add(
                        Encounter(
                            appointment_id=appointment_id,
                            patient_id=locked.patient_id,
                            status=EncounterStatus.DRAFT,
                            performed_by=locked.professional_id,
                            created_by=context.actor_id,
                            started_at=now,
                        )
                    )
                    encounter_created = True

            appointment = locked

        logger.info(
            f"Appointment {appointment_id} {current.value} -> {target.value}",
            extra={"action": action.value, "entity_id": appointment_id},
        )

        await self.auditor.record(
            context,
            action=f"TRANSITION_{action.value}",
            entity_type=ENTITY_TYPE,
            entity_id=appointment_id,
            action_category="appointment",
            metadata={
                "from": current.value,
                "to": target.value,
                "notes": notes,
                "cancel_reason": cancel_reason.value if cancel_reason else None,
                "encounter_created": encounter_created,
            },
        )

        return TransitionResult(
            appointment=appointment,
            previous_status=current,
            action=action,
            encounter_created=encounter_created,
            allowed_actions=allowed_actions(target),
        )

    async def _check_consent(
        self,
        appointment: Appointment,
        context: AuditContext,
    ) -> None:
        """Run the consent gate, auditing the decision either way."""
        decision = await self.gate.evaluate(appointment)

        if isinstance(decision, ConsentBlocked):
            logger.warning(
                f"START blocked for appointment {appointment.id}: {decision.reason.value}",
                extra={"action": "TRANSITION_START_BLOCKED", "entity_id": appointment.id},
            )
            await self.auditor.record(
                context,
                action="TRANSITION_START_BLOCKED",
                entity_type=ENTITY_TYPE,
                entity_id=appointment.id,
                action_category="consent",
                metadata={
                    "reason": decision.reason.value,
                    "message": decision.message,
                    "details": decision.details,
                },
                description=decision.message,
            )
            raise decision.to_error()

        await self.auditor.record(
            context,
            action="CONSENT_VERIFIED",
            entity_type=ENTITY_TYPE,
            entity_id=appointment.id,
            action_category="consent",
            metadata=decision.audit_metadata(),
        )

    @staticmethod
    def _invalid(
        appointment_id: str,
        current: AppointmentStatus,
        action: AppointmentAction,
    ) -> InvalidTransitionError:
        return InvalidTransitionError(
            f"Cannot {action.value} an appointment in status {current.value}",
            {
                "appointment_id": appointment_id,
                "current_status": current.value,
                "action": action.value,
                "allowed_actions": [a.value for a in allowed_actions(current)],
            },
        )

    async def history(self, appointment_id: str) -> list[AppointmentStatusHistory]:
        """Return the appointment's status history, oldest first.

        Raises:
            NotFoundError: Appointment does not exist
        """
        appointment = await self.store.get_appointment(appointment_id)
        if appointment is None:
            raise NotFoundError(
                "Appointment not found", {"appointment_id": appointment_id}
            )
        return await self.store.list_status_history(appointment_id)
