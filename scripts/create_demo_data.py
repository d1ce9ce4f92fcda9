"""Create demo clinic data (procedure catalog, patients, appointments, treatment plans)."""

import asyncio
from datetime import date, datetime, timedelta, timezone
from uuid import uuid4

from sqlalchemy import select

from clinic_ops.db.session import AsyncSessionLocal
from clinic_ops.models import (
    Appointment,
    AppointmentStatus,
    AppointmentType,
    Consent,
    ConsentType,
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

DEMO_PROFESSIONAL_ID = "00000000-0000-4000-8000-000000000001"


def _person(first_name: str, last_name: str, birth_date: date) -> Person:
    return Person(
        id=str(uuid4()),
        first_name=first_name,
        last_name=last_name,
        birth_date=birth_date,
    )


def _appointment(
    patient: Patient,
    start: datetime,
    appointment_type: AppointmentType,
    duration_minutes: int = 30,
) -> Appointment:
    return Appointment(
        id=str(uuid4()),
        patient_id=patient.id,
        professional_id=DEMO_PROFESSIONAL_ID,
        scheduled_start=start,
        scheduled_end=start + timedelta(minutes=duration_minutes),
        duration_minutes=duration_minutes,
        appointment_type=appointment_type,
        status=AppointmentStatus.SCHEDULED,
    )


async def create_demo_data():
    """Create a procedure catalog, an adult and a minor patient with plans."""
    async with AsyncSessionLocal() as session:
        # Check if the catalog already exists
        result = await session.execute(select(ProcedureCatalog).limit(1))
        if result.scalar_one_or_none():
            print("Demo data already exists, skipping...")
            return

        procedures = {
            "ENDO": ProcedureCatalog(
                id=str(uuid4()),
                code="ENDO",
                name="Root canal treatment",
                default_duration_minutes=90,
            ),
            "EXT": ProcedureCatalog(
                id=str(uuid4()),
                code="EXT",
                name="Tooth extraction",
                default_duration_minutes=45,
                is_surgical=True,
            ),
            "CLEAN": ProcedureCatalog(
                id=str(uuid4()),
                code="CLEAN",
                name="Dental cleaning",
                default_duration_minutes=30,
            ),
        }
        for procedure in procedures.values():
            session.add(procedure)
        print(f"Created {len(procedures)} catalog procedures")

        today = datetime.now(timezone.utc).replace(hour=9, minute=0, second=0, microsecond=0)

        # Adult with a three-session root canal
        adult_person = _person("Laura", "Gomez", date(1985, 3, 12))
        adult = Patient(id=str(uuid4()), person_id=adult_person.id, is_active=True)
        session.add_all([adult_person, adult])

        plan = TreatmentPlan(
            id=str(uuid4()),
            patient_id=adult.id,
            title="Upper right molar",
            status=TreatmentPlanStatus.ACTIVE,
        )
        session.add(plan)
        session.add_all(
            [
                TreatmentStep(
                    id=str(uuid4()),
                    plan_id=plan.id,
                    order=1,
                    procedure_id=procedures["ENDO"].id,
                    tooth_number="16",
                    estimated_duration_minutes=90,
                    status=TreatmentStepStatus.IN_PROGRESS,
                    requires_multiple_sessions=True,
                    total_sessions=3,
                    current_session=1,
                ),
                TreatmentStep(
                    id=str(uuid4()),
                    plan_id=plan.id,
                    order=2,
                    procedure_id=procedures["CLEAN"].id,
                    status=TreatmentStepStatus.PENDING,
                    requires_multiple_sessions=False,
                    current_session=1,
                ),
            ]
        )
        adult_visit = _appointment(adult, today, AppointmentType.ENDODONTICS, 90)
        session.add(adult_visit)
        print(f"Created adult patient {adult.id} with appointment {adult_visit.id}")

        # Minor with a guardian, care consent and a surgical appointment
        minor_person = _person("Tomas", "Gomez", date(today.year - 12, 5, 20))
        minor = Patient(id=str(uuid4()), person_id=minor_person.id, is_active=True)
        guardian = _person("Laura", "Gomez", date(1985, 3, 12))
        session.add_all([minor_person, minor, guardian])

        session.add(
            ResponsibleParty(
                id=str(uuid4()),
                patient_id=minor.id,
                person_id=guardian.id,
                relation=ResponsibleRelation.MOTHER,
                has_legal_authority=True,
                is_primary=True,
                valid_from=today - timedelta(days=365),
            )
        )
        session.add(
            Consent(
                id=str(uuid4()),
                patient_id=minor.id,
                responsible_person_id=guardian.id,
                consent_type=ConsentType.MINOR_CARE,
                signed_at=today - timedelta(days=30),
                valid_until=today + timedelta(days=335),
                is_active=True,
            )
        )
        minor_visit = _appointment(
            minor, today + timedelta(hours=2), AppointmentType.EXTRACTION, 45
        )
        session.add(minor_visit)
        print(f"Created minor patient {minor.id} with surgical appointment {minor_visit.id}")
        print("Surgery consent is intentionally missing; START will be blocked until it is signed")

        await session.commit()
        print("\nDemo data created successfully!")


if __name__ == "__main__":
    asyncio.run(create_demo_data())
