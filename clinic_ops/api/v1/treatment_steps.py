"""Treatment step session endpoints."""

from fastapi import APIRouter, Depends, status

from clinic_ops.api.deps import AuditCtx, Store, require_permissions
from clinic_ops.schemas.common import ErrorResponse
from clinic_ops.schemas.treatment import (
    CompleteSessionRequest,
    CompleteSessionResponse,
    StepPatientRequest,
    TreatmentStepRead,
)
from clinic_ops.services.rbac import Permission
from clinic_ops.services.treatment_sessions import NextSessionData, StepSessionTracker

router = APIRouter()

_ERRORS = {
    403: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
    409: {"model": ErrorResponse},
    422: {"model": ErrorResponse},
}


@router.put(
    "/{step_id}/complete-session",
    response_model=CompleteSessionResponse,
    status_code=status.HTTP_200_OK,
    summary="Complete the current session of a multi-session step",
    responses=_ERRORS,
    dependencies=[Depends(require_permissions(Permission.TREATMENT_SESSIONS_WRITE))],
)
async def complete_session(
    step_id: str,
    request: CompleteSessionRequest,
    store: Store,
    context: AuditCtx,
) -> CompleteSessionResponse:
    """Advance the step's session counter.

    ``expectedCurrentSession`` must match the stored counter; otherwise the
    session was completed concurrently and 409 is returned.
    """
    next_session = None
    if request.next_session_data is not None:
        data = request.next_session_data
        next_session = NextSessionData(
            date=data.date,
            time=data.time,
            professional_id=data.professional_id,
            duration_minutes=data.duration_minutes,
            room_id=data.room_id,
        )

    tracker = StepSessionTracker(store)
    result = await tracker.complete_session(
        step_id,
        patient_id=request.patient_id,
        expected_current_session=request.expected_current_session,
        context=context,
        session_notes=request.session_notes,
        schedule_next=request.schedule_next_session,
        next_session=next_session,
    )

    return CompleteSessionResponse(
        step=TreatmentStepRead.model_validate(result.step),
        appointment_id=result.appointment_id,
        message=result.message,
    )


@router.put(
    "/{step_id}/start",
    response_model=TreatmentStepRead,
    status_code=status.HTTP_200_OK,
    summary="Start a pending step",
    responses=_ERRORS,
    dependencies=[Depends(require_permissions(Permission.TREATMENT_SESSIONS_WRITE))],
)
async def start_step(
    step_id: str,
    request: StepPatientRequest,
    store: Store,
    context: AuditCtx,
) -> TreatmentStepRead:
    tracker = StepSessionTracker(store)
    step = await tracker.start_step(step_id, request.patient_id, context)
    return TreatmentStepRead.model_validate(step)


@router.put(
    "/{step_id}/complete",
    response_model=TreatmentStepRead,
    status_code=status.HTTP_200_OK,
    summary="Complete a single-session step",
    responses=_ERRORS,
    dependencies=[Depends(require_permissions(Permission.TREATMENT_SESSIONS_WRITE))],
)
async def complete_step(
    step_id: str,
    request: StepPatientRequest,
    store: Store,
    context: AuditCtx,
) -> TreatmentStepRead:
    tracker = StepSessionTracker(store)
    step = await tracker.complete_step(step_id, request.patient_id, context)
    return TreatmentStepRead.model_validate(step)
