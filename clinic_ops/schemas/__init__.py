"""Pydantic schemas for request/response validation."""

from clinic_ops.schemas.appointment import (
    AppointmentRead,
    StatusHistoryRead,
    TransitionRequest,
    TransitionResponse,
)
from clinic_ops.schemas.audit_event import AuditEventFilter, AuditEventRead
from clinic_ops.schemas.common import ErrorResponse
from clinic_ops.schemas.planning import (
    ActivePlansContextRead,
    FollowUpContextRead,
    SurgeryConsentStatusRead,
)
from clinic_ops.schemas.treatment import (
    CompleteSessionRequest,
    CompleteSessionResponse,
    StepPatientRequest,
    TreatmentStepRead,
)

__all__ = [
    "ActivePlansContextRead",
    "AppointmentRead",
    "AuditEventFilter",
    "AuditEventRead",
    "CompleteSessionRequest",
    "CompleteSessionResponse",
    "ErrorResponse",
    "FollowUpContextRead",
    "StatusHistoryRead",
    "StepPatientRequest",
    "SurgeryConsentStatusRead",
    "TransitionRequest",
    "TransitionResponse",
    "TreatmentStepRead",
]
