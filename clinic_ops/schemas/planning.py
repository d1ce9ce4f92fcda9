"""Pydantic schemas for the read-only planning views."""

from datetime import datetime

from pydantic import BaseModel

from clinic_ops.models.appointment import AppointmentType
from clinic_ops.models.treatment import TreatmentStepStatus
from clinic_ops.schemas.common import CAMEL_CONFIG
from clinic_ops.services.consent_gate import ConsentBlockReason


class SessionDescriptorRead(BaseModel):
    plan_id: str
    step_id: str
    step_order: int
    procedure_name: str
    status: TreatmentStepStatus
    current_session: int
    total_sessions: int
    next_session: int
    is_multi_session: bool
    estimated_duration_minutes: int | None

    model_config = CAMEL_CONFIG


class PlanSessionsRead(BaseModel):
    plan_id: str
    title: str | None
    created_at: datetime
    sessions: list[SessionDescriptorRead]
    recommended_type: AppointmentType | None
    recommended_duration_minutes: int | None
    recommended_motive: str | None

    model_config = CAMEL_CONFIG


class ActivePlansContextRead(BaseModel):
    """What to pre-fill when booking a new appointment."""

    patient_id: str
    has_active_plans: bool
    plans: list[PlanSessionsRead]
    recommended_type: AppointmentType | None
    recommended_duration_minutes: int | None
    recommended_motive: str | None

    model_config = CAMEL_CONFIG


class FollowUpContextRead(BaseModel):
    """What to recommend after completing an appointment."""

    appointment_id: str
    patient_id: str
    has_active_plan: bool
    plan_id: str | None
    plan_title: str | None
    has_pending_sessions: bool
    is_multi_session_follow_up: bool
    next_sessions: list[SessionDescriptorRead]
    completion_date: datetime
    recommended_follow_up_date: datetime

    model_config = CAMEL_CONFIG


class SurgeryConsentStatusRead(BaseModel):
    appointment_id: str
    scheduled_start: datetime
    is_surgical: bool
    has_consent: bool
    consent_id: str | None
    responsible_person_id: str | None
    blocked_reason: ConsentBlockReason | None

    model_config = CAMEL_CONFIG
