"""SQLAlchemy implementation of the clinic store."""

from collections.abc import AsyncIterator, Iterable
from contextlib import asynccontextmanager
from datetime import date, datetime, time, timedelta, timezone

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from clinic_ops.models import (
    Appointment,
    AppointmentStatusHistory,
    AuditEvent,
    Consent,
    ConsentType,
    Encounter,
    EncounterProcedure,
    Patient,
    Person,
    ProcedureCatalog,
    ResponsibleParty,
    TreatmentPlan,
    TreatmentPlanStatus,
    TreatmentStep,
)
from clinic_ops.store.base import ClinicStore


class SqlClinicStore(ClinicStore):
    """Clinic store backed by an ``AsyncSession``."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[None]:
        try:
            yield
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise

    def add(self, obj: object) -> None:
        self.session.add(obj)

    async def get_patient(self, patient_id: str) -> Patient | None:
        return await self.session.get(Patient, patient_id)

    async def get_person(self, person_id: str) -> Person | None:
        return await self.session.get(Person, person_id)

    async def list_responsible_parties(self, patient_id: str) -> list[ResponsibleParty]:
        result = await self.session.execute(
            select(ResponsibleParty)
            .where(ResponsibleParty.patient_id == patient_id)
            .order_by(ResponsibleParty.is_primary.desc(), ResponsibleParty.valid_from)
        )
        return list(result.scalars().all())

    async def find_minor_care_consent(
        self,
        patient_id: str,
        at: datetime,
    ) -> Consent | None:
        result = await self.session.execute(
            select(Consent)
            .where(Consent.patient_id == patient_id)
            .where(Consent.consent_type == ConsentType.MINOR_CARE)
            .where(Consent.is_active.is_(True))
            .where(Consent.responsible_person_id.is_not(None))
            .where(Consent.valid_until >= at)
            .order_by(Consent.valid_until.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def find_surgery_consent(
        self,
        patient_id: str,
        responsible_person_id: str,
        appointment_id: str,
    ) -> Consent | None:
        result = await self.session.execute(
            select(Consent)
            .where(Consent.patient_id == patient_id)
            .where(Consent.responsible_person_id == responsible_person_id)
            .where(Consent.consent_type == ConsentType.SURGERY)
            .where(Consent.appointment_id == appointment_id)
            .where(Consent.is_active.is_(True))
            .order_by(Consent.valid_until.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def get_appointment(self, appointment_id: str) -> Appointment | None:
        return await self.session.get(Appointment, appointment_id)

    async def lock_appointment(self, appointment_id: str) -> Appointment | None:
        result = await self.session.execute(
            select(Appointment)
            .where(Appointment.id == appointment_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def list_patient_appointments_on(
        self,
        patient_id: str,
        day: date,
    ) -> list[Appointment]:
        day_start = datetime.combine(day, time.min, tzinfo=timezone.utc)
        result = await self.session.execute(
            select(Appointment)
            .where(Appointment.patient_id == patient_id)
            .where(Appointment.scheduled_start >= day_start)
            .where(Appointment.scheduled_start < day_start + timedelta(days=1))
            .order_by(Appointment.scheduled_start)
        )
        return list(result.scalars().all())

    async def list_status_history(
        self,
        appointment_id: str,
    ) -> list[AppointmentStatusHistory]:
        result = await self.session.execute(
            select(AppointmentStatusHistory)
            .where(AppointmentStatusHistory.appointment_id == appointment_id)
            .order_by(AppointmentStatusHistory.changed_at)
        )
        return list(result.scalars().all())

    async def get_encounter(self, appointment_id: str) -> Encounter | None:
        return await self.session.get(Encounter, appointment_id)

    async def list_encounter_procedures(
        self,
        appointment_id: str,
    ) -> list[EncounterProcedure]:
        result = await self.session.execute(
            select(EncounterProcedure).where(
                EncounterProcedure.encounter_id == appointment_id
            )
        )
        return list(result.scalars().all())

    async def get_procedures(
        self,
        procedure_ids: Iterable[str],
    ) -> dict[str, ProcedureCatalog]:
        ids = set(procedure_ids)
        if not ids:
            return {}
        result = await self.session.execute(
            select(ProcedureCatalog).where(ProcedureCatalog.id.in_(ids))
        )
        return {p.id: p for p in result.scalars().all()}

    async def get_step(self, step_id: str) -> TreatmentStep | None:
        return await self.session.get(TreatmentStep, step_id)

    async def lock_step(self, step_id: str) -> TreatmentStep | None:
        result = await self.session.execute(
            select(TreatmentStep)
            .where(TreatmentStep.id == step_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def get_plan(self, plan_id: str) -> TreatmentPlan | None:
        return await self.session.get(TreatmentPlan, plan_id)

    async def list_active_plans(self, patient_id: str) -> list[TreatmentPlan]:
        result = await self.session.execute(
            select(TreatmentPlan)
            .where(TreatmentPlan.patient_id == patient_id)
            .where(TreatmentPlan.status == TreatmentPlanStatus.ACTIVE)
            .order_by(TreatmentPlan.created_at.desc())
        )
        return list(result.scalars().all())

    async def list_plan_steps(self, plan_id: str) -> list[TreatmentStep]:
        result = await self.session.execute(
            select(TreatmentStep)
            .where(TreatmentStep.plan_id == plan_id)
            .order_by(TreatmentStep.order)
        )
        return list(result.scalars().all())

    async def add_audit_event(self, event: AuditEvent) -> None:
        async with AsyncSession(self.session.bind, expire_on_commit=False) as audit_session:
            audit_session.add(event)
            await audit_session.commit()

    async def list_audit_events(
        self,
        *,
        entity_id: str | None = None,
        entity_type: str | None = None,
        actor_id: str | None = None,
        action: str | None = None,
        action_category: str | None = None,
        limit: int = 100,
        offset: int = 0,
    ) -> list[AuditEvent]:
        query = select(AuditEvent).order_by(AuditEvent.created_at.desc())

        if entity_id:
            query = query.where(AuditEvent.entity_id == entity_id)
        if entity_type:
            query = query.where(AuditEvent.entity_type == entity_type)
        if actor_id:
            query = query.where(AuditEvent.actor_id == actor_id)
        if action:
            query = query.where(AuditEvent.action == action)
        if action_category:
            query = query.where(AuditEvent.action_category == action_category)

        query = query.offset(offset).limit(limit)

        result = await self.session.execute(query)
        return list(result.scalars().all())
