"""Persistence interface used by the appointment, consent and treatment services.

Services receive a ``ClinicStore`` instead of a raw session so the consent gate
and session tracker can run against ``InMemoryClinicStore`` in unit tests.
"""

from abc import ABC, abstractmethod
from collections.abc import Iterable
from contextlib import AbstractAsyncContextManager
from datetime import date, datetime

from clinic_ops.models import (
    Appointment,
    AppointmentStatusHistory,
    AuditEvent,
    Consent,
    Encounter,
    EncounterProcedure,
    Patient,
    Person,
    ProcedureCatalog,
    ResponsibleParty,
    TreatmentPlan,
    TreatmentStep,
)


class ClinicStore(ABC):
    """Abstract store for the clinic core entities."""

    # Unit of work

    @abstractmethod
    def transaction(self) -> AbstractAsyncContextManager[None]:
        """Open a unit of work.

        Everything added or mutated inside the block is committed when it
        exits normally and discarded when it raises.
        """

    @abstractmethod
    def add(self, obj: object) -> None:
        """Stage a new entity for insertion in the current transaction."""

    # Patients and responsible parties

    @abstractmethod
    async def get_patient(self, patient_id: str) -> Patient | None:
        ...

    @abstractmethod
    async def get_person(self, person_id: str) -> Person | None:
        ...

    @abstractmethod
    async def list_responsible_parties(self, patient_id: str) -> list[ResponsibleParty]:
        ...

    # Consents

    @abstractmethod
    async def find_minor_care_consent(
        self,
        patient_id: str,
        at: datetime,
    ) -> Consent | None:
        """Return the active minor-care consent valid at ``at`` expiring latest."""

    @abstractmethod
    async def find_surgery_consent(
        self,
        patient_id: str,
        responsible_person_id: str,
        appointment_id: str,
    ) -> Consent | None:
        """Return the active surgery consent signed by ``responsible_person_id``
        for exactly ``appointment_id``."""

    # Appointments

    @abstractmethod
    async def get_appointment(self, appointment_id: str) -> Appointment | None:
        ...

    @abstractmethod
    async def lock_appointment(self, appointment_id: str) -> Appointment | None:
        """Reload an appointment inside the current transaction, locking its row."""

    @abstractmethod
    async def list_patient_appointments_on(
        self,
        patient_id: str,
        day: date,
    ) -> list[Appointment]:
        ...

    @abstractmethod
    async def list_status_history(
        self,
        appointment_id: str,
    ) -> list[AppointmentStatusHistory]:
        """Return history rows oldest first."""

    # Encounters and procedures

    @abstractmethod
    async def get_encounter(self, appointment_id: str) -> Encounter | None:
        ...

    @abstractmethod
    async def list_encounter_procedures(
        self,
        appointment_id: str,
    ) -> list[EncounterProcedure]:
        ...

    @abstractmethod
    async def get_procedures(
        self,
        procedure_ids: Iterable[str],
    ) -> dict[str, ProcedureCatalog]:
        ...

    # Treatment plans

    @abstractmethod
    async def get_step(self, step_id: str) -> TreatmentStep | None:
        ...

    @abstractmethod
    async def lock_step(self, step_id: str) -> TreatmentStep | None:
        """Reload a step inside the current transaction, locking its row."""

    @abstractmethod
    async def get_plan(self, plan_id: str) -> TreatmentPlan | None:
        ...

    @abstractmethod
    async def list_active_plans(self, patient_id: str) -> list[TreatmentPlan]:
        """Return the patient's ACTIVE plans, newest first."""

    @abstractmethod
    async def list_plan_steps(self, plan_id: str) -> list[TreatmentStep]:
        """Return a plan's steps ordered by their order index."""

    # Audit

    @abstractmethod
    async def add_audit_event(self, event: AuditEvent) -> None:
        """Persist ``event`` in its own unit of work.

        Independent of any open transaction, so a failed audit write never
        disturbs the caller's session state.
        """

    @abstractmethod
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
        """Return matching audit events, newest first."""

