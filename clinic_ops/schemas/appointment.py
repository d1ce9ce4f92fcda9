"""Pydantic schemas for appointment transitions."""

from datetime import datetime

from pydantic import BaseModel, Field

from clinic_ops.models.appointment import (
    AppointmentAction,
    AppointmentStatus,
    AppointmentType,
    CancelReason,
)
from clinic_ops.schemas.common import CAMEL_CONFIG


class TransitionRequest(BaseModel):
    """Body of ``POST /appointments/{id}/transition``."""

    action: AppointmentAction
    notes: str | None = Field(None, max_length=2000)
    cancel_reason: CancelReason | None = Field(
        None,
        description="Required for CANCEL, rejected for every other action",
    )

    model_config = CAMEL_CONFIG


class AppointmentRead(BaseModel):
    """Schema for reading appointment state."""

    id: str
    patient_id: str
    professional_id: str
    room_id: str | None
    scheduled_start: datetime
    scheduled_end: datetime
    duration_minutes: int
    appointment_type: AppointmentType
    reason: str | None
    status: AppointmentStatus
    checked_in_at: datetime | None
    started_at: datetime | None
    completed_at: datetime | None
    cancelled_at: datetime | None
    cancel_reason: CancelReason | None
    cancelled_by: str | None

    model_config = CAMEL_CONFIG


class TransitionResponse(BaseModel):
    """Result of a successful transition."""

    appointment: AppointmentRead
    previous_status: AppointmentStatus
    action: AppointmentAction
    encounter_created: bool
    allowed_actions: list[AppointmentAction]

    model_config = CAMEL_CONFIG


class StatusHistoryRead(BaseModel):
    """One row of an appointment's status history."""

    id: str
    previous_status: AppointmentStatus | None
    new_status: AppointmentStatus
    action: AppointmentAction
    note: str | None
    changed_by: str
    changed_at: datetime

    model_config = CAMEL_CONFIG
