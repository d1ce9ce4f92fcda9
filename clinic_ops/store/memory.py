"""In-memory clinic store for unit tests and local experiments.

Holds transient ORM instances in dictionaries. A transaction stages inserts
and snapshots column state so a failing block leaves no trace.
"""

from collections.abc import AsyncIterator, Iterable
from contextlib import asynccontextmanager
from datetime import date, datetime
from typing import Any

from sqlalchemy import inspect as sa_inspect

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
from clinic_ops.utils.time import ensure_utc


def _column_keys(obj: object) -> list[str]:
    return [attr.key for attr in sa_inspect(type(obj)).column_attrs]


def _apply_defaults(obj: object) -> None:
    """Fill unset columns from their Python-side defaults, as a flush would."""
    for attr in sa_inspect(type(obj)).column_attrs:
        column = attr.columns[0]
        if getattr(obj, attr.key) is not None or column.default is None:
            continue
        default = column.default
        if default.is_callable:
            setattr(obj, attr.key, default.arg(None))
        elif default.is_scalar:
            setattr(obj, attr.key, default.arg)


def _primary_key(obj: object) -> Any:
    mapper = sa_inspect(type(obj))
    return getattr(obj, mapper.get_property_by_column(mapper.primary_key[0]).key)


class InMemoryClinicStore(ClinicStore):
    """Dictionary-backed ``ClinicStore``.

    ``add`` outside a transaction inserts immediately, which keeps test
    seeding short.
    """

    def __init__(self) -> None:
        self._tables: dict[type, dict[Any, object]] = {}
        self._staged: list[object] | None = None
        self._seq = 0
        self._order: dict[int, int] = {}

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[None]:
        if self._staged is not None:
            # Nested blocks join the outer unit of work
            yield
            return

        self._staged = []
        snapshot = [
            (obj, {key: getattr(obj, key) for key in _column_keys(obj)})
            for table in self._tables.values()
            for obj in table.values()
        ]
        try:
            yield
        except BaseException:
            for obj, state in snapshot:
                for key, value in state.items():
                    setattr(obj, key, value)
            self._staged = None
            raise
        staged, self._staged = self._staged, None
        for obj in staged:
            self._insert(obj)

    def add(self, obj: object) -> None:
        _apply_defaults(obj)
        if self._staged is None:
            self._insert(obj)
        else:
            self._staged.append(obj)

    def _insert(self, obj: object) -> None:
        table = self._tables.setdefault(type(obj), {})
        key = _primary_key(obj)
        if key in table and table[key] is not obj:
            raise ValueError(f"Duplicate primary key for {type(obj).__name__}: {key}")
        table[key] = obj
        self._seq += 1
        self._order[id(obj)] = self._seq

    def _get(self, model: type, key: Any) -> Any:
        found = self._tables.get(model, {}).get(key)
        if found is None and self._staged:
            for obj in self._staged:
                if type(obj) is model and _primary_key(obj) == key:
                    return obj
        return found

    def _rows(self, model: type) -> list[Any]:
        rows = list(self._tables.get(model, {}).values())
        if self._staged:
            rows.extend(obj for obj in self._staged if type(obj) is model)
        return rows

    def _seq_of(self, obj: object) -> int:
        return self._order.get(id(obj), self._seq + 1)

    async def get_patient(self, patient_id: str) -> Patient | None:
        return self._get(Patient, patient_id)

    async def get_person(self, person_id: str) -> Person | None:
        return self._get(Person, person_id)

    async def list_responsible_parties(self, patient_id: str) -> list[ResponsibleParty]:
        links = [r for r in self._rows(ResponsibleParty) if r.patient_id == patient_id]
        return sorted(links, key=lambda r: (not r.is_primary, ensure_utc(r.valid_from)))

    async def find_minor_care_consent(
        self,
        patient_id: str,
        at: datetime,
    ) -> Consent | None:
        candidates = [
            c
            for c in self._rows(Consent)
            if c.patient_id == patient_id
            and c.consent_type == ConsentType.MINOR_CARE
            and c.responsible_person_id is not None
            and c.covers(at)
        ]
        if not candidates:
            return None
        return max(candidates, key=lambda c: ensure_utc(c.valid_until))

    async def find_surgery_consent(
        self,
        patient_id: str,
        responsible_person_id: str,
        appointment_id: str,
    ) -> Consent | None:
        candidates = [
            c
            for c in self._rows(Consent)
            if c.patient_id == patient_id
            and c.responsible_person_id == responsible_person_id
            and c.consent_type == ConsentType.SURGERY
            and c.appointment_id == appointment_id
            and c.is_active
        ]
        if not candidates:
            return None
        return max(candidates, key=lambda c: ensure_utc(c.valid_until))

    async def get_appointment(self, appointment_id: str) -> Appointment | None:
        return self._get(Appointment, appointment_id)

    async def lock_appointment(self, appointment_id: str) -> Appointment | None:
        return self._get(Appointment, appointment_id)

    async def list_patient_appointments_on(
        self,
        patient_id: str,
        day: date,
    ) -> list[Appointment]:
        found = [
            a
            for a in self._rows(Appointment)
            if a.patient_id == patient_id and ensure_utc(a.scheduled_start).date() == day
        ]
        return sorted(found, key=lambda a: ensure_utc(a.scheduled_start))

    async def list_status_history(
        self,
        appointment_id: str,
    ) -> list[AppointmentStatusHistory]:
        rows = [
            h for h in self._rows(AppointmentStatusHistory) if h.appointment_id == appointment_id
        ]
        return sorted(rows, key=lambda h: (ensure_utc(h.changed_at), self._seq_of(h)))

    async def get_encounter(self, appointment_id: str) -> Encounter | None:
        return self._get(Encounter, appointment_id)

    async def list_encounter_procedures(
        self,
        appointment_id: str,
    ) -> list[EncounterProcedure]:
        return [
            p for p in self._rows(EncounterProcedure) if p.encounter_id == appointment_id
        ]

    async def get_procedures(
        self,
        procedure_ids: Iterable[str],
    ) -> dict[str, ProcedureCatalog]:
        found = {}
        for procedure_id in set(procedure_ids):
            procedure = self._get(ProcedureCatalog, procedure_id)
            if procedure is not None:
                found[procedure_id] = procedure
        return found

    async def get_step(self, step_id: str) -> TreatmentStep | None:
        return self._get(TreatmentStep, step_id)

    async def lock_step(self, step_id: str) -> TreatmentStep | None:
        return self._get(TreatmentStep, step_id)

    async def get_plan(self, plan_id: str) -> TreatmentPlan | None:
        return self._get(TreatmentPlan, plan_id)

    async def list_active_plans(self, patient_id: str) -> list[TreatmentPlan]:
        plans = [
            p
            for p in self._rows(TreatmentPlan)
            if p.patient_id == patient_id and p.status == TreatmentPlanStatus.ACTIVE
        ]
        return sorted(
            plans,
            key=lambda p: (ensure_utc(p.created_at), self._seq_of(p)),
            reverse=True,
        )

    async def list_plan_steps(self, plan_id: str) -> list[TreatmentStep]:
        steps = [s for s in self._rows(TreatmentStep) if s.plan_id == plan_id]
        return sorted(steps, key=lambda s: s.order)

    async def add_audit_event(self, event: AuditEvent) -> None:
        _apply_defaults(event)
        self._insert(event)

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
        events = [
            e
            for e in self._rows(AuditEvent)
            if (not entity_id or e.entity_id == entity_id)
            and (not entity_type or e.entity_type == entity_type)
            and (not actor_id or e.actor_id == actor_id)
            and (not action or e.action == action)
            and (not action_category or e.action_category == action_category)
        ]
        events.sort(key=lambda e: (ensure_utc(e.created_at), self._seq_of(e)), reverse=True)
        return events[offset : offset + limit]
