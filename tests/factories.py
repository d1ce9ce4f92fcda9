"""Record factories and token helpers shared by the tests."""

from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from uuid import uuid4

from clinic_ops.core.security import create_access_token
from clinic_ops.models import (
    Appointment,
    AppointmentStatus,
    AppointmentType,
    Consent,
    ConsentType,
    Encounter,
    EncounterProcedure,
    EncounterStatus,
    Patient,
    Person,
    ProcedureCatalog,
    ResponsibleParty,
    ResponsibleRelation,
    TreatmentPlan,
    TreatmentPlanStatus,
    TreatmentStep,
    TreatmentStepStatus,
)
from clinic_ops.services.rbac import StaffRole
from clinic_ops.store.base import ClinicStore


# Appointments in the tests start at a fixed instant so ages are deterministic
APPOINTMENT_START = datetime(2025, 6, 15, 10, 0, tzinfo=timezone.utc)

PROFESSIONAL_ID = "9a7c1f52-3f0e-4c55-9d7a-0e4a6c1b2d30"


def new_uuid() -> str:
    return str(uuid4())


def birth_date_for_age(age: int, on: datetime = APPOINTMENT_START) -> date:
    """Birth date that makes the patient exactly ``age`` on ``on``."""
    return date(on.year - age, on.month, on.day)


@dataclass
class ClinicFactory:
    """Seeds clinic records into a store (no transaction needed)."""

    store: ClinicStore

    def person(
        self,
        first_name: str = "Test",
        last_name: str = "Person",
        birth_date: date | None = None,
    ) -> Person:
        person = Person(
            id=new_uuid(),
            first_name=first_name,
            last_name=last_name,
            birth_date=birth_date,
        )
        self.store.add(person)
        return person

    def patient(
        self,
        age: int | None = 30,
        first_name: str = "Test",
        last_name: str = "Patient",
    ) -> Patient:
        person = self.person(
            first_name,
            last_name,
            birth_date_for_age(age) if age is not None else None,
        )
        patient = Patient(id=new_uuid(), person_id=person.id, is_active=True)
        self.store.add(patient)
        return patient

    def responsible(
        self,
        patient: Patient,
        has_legal_authority: bool = True,
        is_primary: bool = True,
        relation: ResponsibleRelation = ResponsibleRelation.MOTHER,
        valid_until: datetime | None = None,
        first_name: str = "Maria",
        last_name: str = "Guardian",
    ) -> ResponsibleParty:
        person = self.person(first_name, last_name, birth_date_for_age(45))
        link = ResponsibleParty(
            id=new_uuid(),
            patient_id=patient.id,
            person_id=person.id,
            relation=relation,
            has_legal_authority=has_legal_authority,
            is_primary=is_primary,
            valid_from=APPOINTMENT_START - timedelta(days=365),
            valid_until=valid_until,
        )
        self.store.add(link)
        return link

    def appointment(
        self,
        patient: Patient,
        status: AppointmentStatus = AppointmentStatus.SCHEDULED,
        appointment_type: AppointmentType = AppointmentType.CONSULTATION,
        start: datetime = APPOINTMENT_START,
        duration_minutes: int = 30,
        completed_at: datetime | None = None,
    ) -> Appointment:
        appointment = Appointment(
            id=new_uuid(),
            patient_id=patient.id,
            professional_id=PROFESSIONAL_ID,
            scheduled_start=start,
            scheduled_end=start + timedelta(minutes=duration_minutes),
            duration_minutes=duration_minutes,
            appointment_type=appointment_type,
            status=status,
            completed_at=completed_at,
        )
        self.store.add(appointment)
        return appointment

    def minor_consent(
        self,
        patient: Patient,
        link: ResponsibleParty,
        valid_until: datetime = APPOINTMENT_START + timedelta(days=180),
        is_active: bool = True,
    ) -> Consent:
        consent = Consent(
            id=new_uuid(),
            patient_id=patient.id,
            responsible_person_id=link.person_id,
            consent_type=ConsentType.MINOR_CARE,
            signed_at=APPOINTMENT_START - timedelta(days=10),
            valid_until=valid_until,
            is_active=is_active,
        )
        self.store.add(consent)
        return consent

    def surgery_consent(
        self,
        patient: Patient,
        responsible_person_id: str,
        appointment: Appointment,
        is_active: bool = True,
    ) -> Consent:
        consent = Consent(
            id=new_uuid(),
            patient_id=patient.id,
            responsible_person_id=responsible_person_id,
            appointment_id=appointment.id,
            consent_type=ConsentType.SURGERY,
            signed_at=APPOINTMENT_START - timedelta(days=1),
            valid_until=APPOINTMENT_START + timedelta(days=1),
            is_active=is_active,
        )
        self.store.add(consent)
        return consent

    def procedure(
        self,
        name: str = "Composite filling",
        is_surgical: bool = False,
        is_active: bool = True,
        code: str | None = None,
    ) -> ProcedureCatalog:
        procedure = ProcedureCatalog(
            id=new_uuid(),
            code=code or f"P-{uuid4().hex[:8]}",
            name=name,
            is_surgical=is_surgical,
            is_active=is_active,
        )
        self.store.add(procedure)
        return procedure

    def encounter(
        self,
        appointment: Appointment,
        procedures: list[ProcedureCatalog] = (),
        step: TreatmentStep | None = None,
    ) -> Encounter:
        encounter = Encounter(
            appointment_id=appointment.id,
            patient_id=appointment.patient_id,
            status=EncounterStatus.DRAFT,
            performed_by=PROFESSIONAL_ID,
            created_by=PROFESSIONAL_ID,
            started_at=appointment.scheduled_start,
        )
        self.store.add(encounter)
        for procedure in procedures:
            self.store.add(
                EncounterProcedure(
                    id=new_uuid(),
                    encounter_id=appointment.id,
                    procedure_id=procedure.id,
                    treatment_step_id=step.id if step else None,
                )
            )
        return encounter

    def plan(
        self,
        patient: Patient,
        title: str = "Treatment plan",
        status: TreatmentPlanStatus = TreatmentPlanStatus.ACTIVE,
        created_at: datetime | None = None,
    ) -> TreatmentPlan:
        plan = TreatmentPlan(
            id=new_uuid(),
            patient_id=patient.id,
            title=title,
            status=status,
            created_at=created_at or datetime.now(timezone.utc),
        )
        self.store.add(plan)
        return plan

    def step(
        self,
        plan: TreatmentPlan,
        order: int = 1,
        status: TreatmentStepStatus = TreatmentStepStatus.IN_PROGRESS,
        total_sessions: int | None = 3,
        current_session: int = 1,
        procedure: ProcedureCatalog | None = None,
        service_type: str | None = None,
        estimated_duration_minutes: int | None = None,
        notes: str | None = None,
    ) -> TreatmentStep:
        step = TreatmentStep(
            id=new_uuid(),
            plan_id=plan.id,
            order=order,
            procedure_id=procedure.id if procedure else None,
            service_type=service_type,
            status=status,
            requires_multiple_sessions=total_sessions is not None,
            total_sessions=total_sessions,
            current_session=current_session,
            estimated_duration_minutes=estimated_duration_minutes,
            notes=notes,
        )
        self.store.add(step)
        return step


def create_test_token(role: StaffRole, actor_id: str | None = None) -> str:
    """Create a bearer token as the auth service would."""
    return create_access_token(
        subject=actor_id or new_uuid(),
        additional_claims={
            "role": role.value,
            "email": f"{role.value}@clinic.local",
        },
    )


def auth_headers_for(role: StaffRole) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_test_token(role)}"}

