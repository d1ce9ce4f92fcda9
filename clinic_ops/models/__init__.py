"""SQLAlchemy models."""

from clinic_ops.models.appointment import (
    SURGICAL_APPOINTMENT_TYPES,
    Appointment,
    AppointmentAction,
    AppointmentStatus,
    AppointmentStatusHistory,
    AppointmentType,
    CancelReason,
)
from clinic_ops.models.audit_event import AuditEvent
from clinic_ops.models.catalog import ProcedureCatalog
from clinic_ops.models.consent import Consent, ConsentType
from clinic_ops.models.encounter import Encounter, EncounterProcedure, EncounterStatus
from clinic_ops.models.patient import Patient, Person, ResponsibleParty, ResponsibleRelation
from clinic_ops.models.treatment import (
    INACTIVE_STEP_STATUSES,
    TreatmentPlan,
    TreatmentPlanStatus,
    TreatmentStep,
    TreatmentStepStatus,
)

__all__ = [
    "Appointment",
    "AppointmentAction",
    "AppointmentStatus",
    "AppointmentStatusHistory",
    "AppointmentType",
    "AuditEvent",
    "CancelReason",
    "Consent",
    "ConsentType",
    "Encounter",
    "EncounterProcedure",
    "EncounterStatus",
    "INACTIVE_STEP_STATUSES",
    "Patient",
    "Person",
    "ProcedureCatalog",
    "ResponsibleParty",
    "ResponsibleRelation",
    "SURGICAL_APPOINTMENT_TYPES",
    "TreatmentPlan",
    "TreatmentPlanStatus",
    "TreatmentStep",
    "TreatmentStepStatus",
]
