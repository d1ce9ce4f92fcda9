"""Appointment lifecycle endpoints."""

from typing import Annotated

from fastapi import APIRouter, Depends, status

from clinic_ops.api.deps import Actor, AuditCtx, Store, require_permissions
from clinic_ops.core.errors import ForbiddenError
from clinic_ops.models.appointment import AppointmentAction
from clinic_ops.schemas.appointment import (
    AppointmentRead,
    StatusHistoryRead,
    TransitionRequest,
    TransitionResponse,
)
from clinic_ops.schemas.common import ErrorResponse
from clinic_ops.schemas.planning import FollowUpContextRead
from clinic_ops.services.appointments import AppointmentTransitionService
from clinic_ops.services.planning import PlanningService
from clinic_ops.services.rbac import Permission, RBACService

router = APIRouter()

CLINICAL_ACTIONS = frozenset({AppointmentAction.START, AppointmentAction.COMPLETE})


@router.post(
    "/{appointment_id}/transition",
    response_model=TransitionResponse,
    status_code=status.HTTP_200_OK,
    summary="Apply a lifecycle transition",
    description="Confirm, check in, start, complete, cancel or mark no-show",
    responses={
        403: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
        422: {"model": ErrorResponse},
    },
)
async def transition_appointment(
    appointment_id: str,
    request: TransitionRequest,
    store: Store,
    context: AuditCtx,
    actor: Annotated[Actor, Depends(require_permissions(Permission.APPOINTMENTS_TRANSITION))],
) -> TransitionResponse:
    """Apply a state machine action to an appointment.

    START runs the consent gate first; a block returns 422 with the gate's
    code and details.
    """
    if request.action in CLINICAL_ACTIONS and not RBACService.has_permission(
        actor.role, Permission.APPOINTMENTS_CLINICAL_TRANSITION
    ):
        raise ForbiddenError(
            f"Role {actor.role.value} may not {request.action.value} appointments",
            {"action": request.action.value, "role": actor.role.value},
        )

    service = AppointmentTransitionService(store)
    result = await service.transition(
        appointment_id,
        request.action,
        context,
        notes=request.notes,
        cancel_reason=request.cancel_reason,
    )

    return TransitionResponse(
        appointment=AppointmentRead.model_validate(result.appointment),
        previous_status=result.previous_status,
        action=result.action,
        encounter_created=result.encounter_created,
        allowed_actions=result.allowed_actions,
    )


@router.get(
    "/{appointment_id}/history",
    response_model=list[StatusHistoryRead],
    status_code=status.HTTP_200_OK,
    summary="Appointment status history",
    dependencies=[Depends(require_permissions(Permission.PLANNING_READ))],
)
async def get_appointment_history(
    appointment_id: str,
    store: Store,
) -> list[StatusHistoryRead]:
    """Return the append-only status history, oldest first."""
    service = AppointmentTransitionService(store)
    rows = await service.history(appointment_id)
    return [StatusHistoryRead.model_validate(row) for row in rows]


@router.get(
    "/{appointment_id}/follow-up-context",
    response_model=FollowUpContextRead,
    status_code=status.HTTP_200_OK,
    summary="Follow-up recommendation",
    description="Pending sessions and recommended follow-up date after completion",
    dependencies=[Depends(require_permissions(Permission.PLANNING_READ))],
)
async def get_follow_up_context(
    appointment_id: str,
    store: Store,
) -> FollowUpContextRead:
    service = PlanningService(store)
    context = await service.follow_up_context(appointment_id)
    return FollowUpContextRead.model_validate(context)
