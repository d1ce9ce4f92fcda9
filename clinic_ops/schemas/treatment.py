"""Pydantic schemas for treatment step session tracking."""

import datetime as dt

from pydantic import BaseModel, Field

from clinic_ops.models.treatment import TreatmentStepStatus
from clinic_ops.schemas.common import CAMEL_CONFIG


class NextSessionDataIn(BaseModel):
    """Where and when to book the follow-up session."""

    date: dt.date
    time: str = Field(..., pattern=r"^([01]\d|2[0-3]):[0-5]\d$", examples=["09:30"])
    professional_id: str
    duration_minutes: int | None = Field(None, ge=5, le=480)
    room_id: str | None = None

    model_config = CAMEL_CONFIG


class CompleteSessionRequest(BaseModel):
    """Body of ``PUT /treatment-steps/{id}/complete-session``."""

    patient_id: str
    expected_current_session: int = Field(..., ge=1)
    session_notes: str | None = Field(None, max_length=5000)
    schedule_next_session: bool = False
    next_session_data: NextSessionDataIn | None = None

    model_config = CAMEL_CONFIG


class StepPatientRequest(BaseModel):
    """Body of the step start/complete endpoints."""

    patient_id: str

    model_config = CAMEL_CONFIG


class TreatmentStepRead(BaseModel):
    """Schema for reading a treatment step."""

    id: str
    plan_id: str
    order: int
    procedure_id: str | None
    service_type: str | None
    tooth_number: str | None
    status: TreatmentStepStatus
    requires_multiple_sessions: bool
    total_sessions: int | None
    current_session: int
    estimated_duration_minutes: int | None
    notes: str | None
    completed_at: dt.datetime | None

    model_config = CAMEL_CONFIG


class CompleteSessionResponse(BaseModel):
    step: TreatmentStepRead
    appointment_id: str | None = None
    message: str

    model_config = CAMEL_CONFIG
