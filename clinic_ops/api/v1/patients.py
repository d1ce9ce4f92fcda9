"""Patient-scoped planning endpoints."""

from datetime import date

from fastapi import APIRouter, Depends, Query, status

from clinic_ops.api.deps import Store, require_permissions
from clinic_ops.schemas.planning import ActivePlansContextRead, SurgeryConsentStatusRead
from clinic_ops.services.consent_gate import ConsentGate
from clinic_ops.services.planning import PlanningService
from clinic_ops.services.rbac import Permission

router = APIRouter()


@router.get(
    "/{patient_id}/active-plans-context",
    response_model=ActivePlansContextRead,
    status_code=status.HTTP_200_OK,
    summary="Active treatment plans context",
    description="Next pending sessions and recommended fields for a new appointment",
    dependencies=[Depends(require_permissions(Permission.PLANNING_READ))],
)
async def get_active_plans_context(
    patient_id: str,
    store: Store,
) -> ActivePlansContextRead:
    service = PlanningService(store)
    context = await service.active_plans_context(patient_id)
    return ActivePlansContextRead.model_validate(context)


@router.get(
    "/{patient_id}/surgery-consent-status",
    response_model=list[SurgeryConsentStatusRead],
    status_code=status.HTTP_200_OK,
    summary="Surgery consent readiness for a day",
    description="Per appointment on the date: whether surgery consent is required and present",
    dependencies=[Depends(require_permissions(Permission.PLANNING_READ))],
)
async def get_surgery_consent_status(
    patient_id: str,
    store: Store,
    on: date = Query(..., alias="date", description="Day to check (YYYY-MM-DD)"),
) -> list[SurgeryConsentStatusRead]:
    """Report surgery-consent readiness without auditing or raising gate errors."""
    gate = ConsentGate(store)
    statuses = await gate.surgery_consent_status(patient_id, on)
    return [SurgeryConsentStatusRead.model_validate(s) for s in statuses]
