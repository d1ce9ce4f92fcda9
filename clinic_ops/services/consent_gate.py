"""Consent gate guarding the START transition.

The gate is a pure decision over records read through the store: it returns a
``ConsentGranted`` or ``ConsentBlocked`` value and never writes. Callers decide
what to audit and raise ``ConsentBlocked.to_error()`` to stop the transition.

Rules:
- Age is computed from the patient's birth date at the appointment start.
- Minors (under 18) need a responsible-party link valid at the start and an
  active minor-care consent valid at the start.
- Surgical appointments (surgical type, or an active surgical catalog
  procedure on the encounter) need an active surgery consent signed by the
  legally responsible party and scoped to this exact appointment.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any

from fastapi import status

from clinic_ops.core.errors import ClinicError, NotFoundError
from clinic_ops.models import Appointment, Consent, ResponsibleParty
from clinic_ops.store.base import ClinicStore
from clinic_ops.utils.time import age_on, ensure_utc

logger = logging.getLogger(__name__)

AGE_OF_MAJORITY = 18


class ConsentBlockReason(str, Enum):
    """Why the gate refused to let an appointment start."""

    MISSING_BIRTH_DATE = "MISSING_BIRTH_DATE"
    NO_RESPONSIBLE_LINKED = "NO_RESPONSIBLE_LINKED"
    CONSENT_REQUIRED_FOR_MINOR = "CONSENT_REQUIRED_FOR_MINOR"
    NO_SURGICAL_RESPONSIBLE_PARTY = "NO_SURGICAL_RESPONSIBLE_PARTY"
    MISSING_SURGERY_CONSENT = "MISSING_SURGERY_CONSENT"


class ConsentGateError(ClinicError):
    """Base class for consent gate refusals."""

    code = "CONSENT_GATE_BLOCKED"
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY


class MissingBirthDateError(ConsentGateError):
    """Patient has no birth date; needs a manual data fix."""

    code = ConsentBlockReason.MISSING_BIRTH_DATE.value


class NoResponsibleLinkedError(ConsentGateError):
    code = ConsentBlockReason.NO_RESPONSIBLE_LINKED.value


class ConsentRequiredForMinorError(ConsentGateError):
    code = ConsentBlockReason.CONSENT_REQUIRED_FOR_MINOR.value


class NoSurgicalResponsiblePartyError(ConsentGateError):
    code = ConsentBlockReason.NO_SURGICAL_RESPONSIBLE_PARTY.value


class MissingSurgeryConsentError(ConsentGateError):
    code = ConsentBlockReason.MISSING_SURGERY_CONSENT.value


_ERROR_BY_REASON: dict[ConsentBlockReason, type[ConsentGateError]] = {
    ConsentBlockReason.MISSING_BIRTH_DATE: MissingBirthDateError,
    ConsentBlockReason.NO_RESPONSIBLE_LINKED: NoResponsibleLinkedError,
    ConsentBlockReason.CONSENT_REQUIRED_FOR_MINOR: ConsentRequiredForMinorError,
    ConsentBlockReason.NO_SURGICAL_RESPONSIBLE_PARTY: NoSurgicalResponsiblePartyError,
    ConsentBlockReason.MISSING_SURGERY_CONSENT: MissingSurgeryConsentError,
}

if set(_ERROR_BY_REASON) != set(ConsentBlockReason):
    raise RuntimeError("Every consent block reason needs an error class")


@dataclass(frozen=True)
class ConsentGranted:
    """The appointment may start."""

    patient_id: str
    age: int
    is_minor: bool
    is_surgical: bool
    responsible_name: str
    minor_consent_id: str | None = None
    surgery_consent_id: str | None = None

    @property
    def consent_id(self) -> str | None:
        """The consent that decided the outcome, surgery consent first."""
        return self.surgery_consent_id or self.minor_consent_id

    def audit_metadata(self) -> dict[str, Any]:
        return {
            "consent_id": self.consent_id,
            "minor_consent_id": self.minor_consent_id,
            "surgery_consent_id": self.surgery_consent_id,
            "responsible_name": self.responsible_name,
            "age": self.age,
            "is_minor": self.is_minor,
            "is_surgical": self.is_surgical,
        }


@dataclass(frozen=True)
class ConsentBlocked:
    """The appointment may not start."""

    reason: ConsentBlockReason
    message: str
    details: dict[str, Any] = field(default_factory=dict)

    def to_error(self) -> ConsentGateError:
        return _ERROR_BY_REASON[self.reason](self.message, dict(self.details))


ConsentDecision = ConsentGranted | ConsentBlocked


@dataclass(frozen=True)
class SurgeryConsentStatus:
    """Surgery-consent readiness of one appointment."""

    appointment_id: str
    scheduled_start: datetime
    is_surgical: bool
    has_consent: bool
    consent_id: str | None = None
    responsible_person_id: str | None = None
    blocked_reason: ConsentBlockReason | None = None


class ConsentGate:
    """Decides whether an appointment satisfies its consent prerequisites."""

    def __init__(self, store: ClinicStore) -> None:
        self.store = store

    async def evaluate(self, appointment: Appointment) -> ConsentDecision:
        """Run every consent rule for ``appointment`` at its scheduled start.

        Raises:
            NotFoundError: If the appointment's patient record is missing
        """
        patient_id = appointment.patient_id
        start = ensure_utc(appointment.scheduled_start)
        base_details: dict[str, Any] = {
            "patient_id": patient_id,
            "appointment_id": appointment.id,
        }

        patient = await self.store.get_patient(patient_id)
        person = await self.store.get_person(patient.person_id) if patient else None
        if person is None:
            raise NotFoundError("Patient not found", {"patient_id": patient_id})

        if person.birth_date is None:
            return ConsentBlocked(
                ConsentBlockReason.MISSING_BIRTH_DATE,
                "Patient birth date is not recorded; it must be completed "
                "before the appointment can start",
                base_details,
            )

        age = age_on(person.birth_date, start)
        is_minor = age < AGE_OF_MAJORITY
        details = {**base_details, "age": age}
        responsible_name = person.full_name
        minor_consent: Consent | None = None

        links: list[ResponsibleParty] = []
        if is_minor:
            links = [
                link
                for link in await self.store.list_responsible_parties(patient_id)
                if link.is_valid_at(start)
            ]
            if not links:
                return ConsentBlocked(
                    ConsentBlockReason.NO_RESPONSIBLE_LINKED,
                    "Minor patient has no responsible party linked",
                    details,
                )

            minor_consent = await self.store.find_minor_care_consent(patient_id, start)
            if minor_consent is None:
                return ConsentBlocked(
                    ConsentBlockReason.CONSENT_REQUIRED_FOR_MINOR,
                    "An active minor-care consent signed by a responsible party "
                    "is required for this appointment",
                    {**details, "responsible_count": len(links)},
                )
            signer = await self.store.get_person(minor_consent.responsible_person_id)
            if signer is not None:
                responsible_name = signer.full_name

        is_surgical = await self.is_surgical(appointment)
        surgery_consent: Consent | None = None
        if is_surgical:
            responsible_person_id = self._surgical_responsible(
                person.id, is_minor, links, start
            )
            if responsible_person_id is None:
                return ConsentBlocked(
                    ConsentBlockReason.NO_SURGICAL_RESPONSIBLE_PARTY,
                    "Minor patient has no responsible party with legal "
                    "authority to consent to surgery",
                    details,
                )

            surgery_consent = await self.store.find_surgery_consent(
                patient_id, responsible_person_id, appointment.id
            )
            if surgery_consent is None:
                return ConsentBlocked(
                    ConsentBlockReason.MISSING_SURGERY_CONSENT,
                    "Surgical procedure requires a signed surgery consent for "
                    "this appointment",
                    {
                        **details,
                        "responsible_person_id": responsible_person_id,
                        "appointment_type": appointment.appointment_type.value,
                    },
                )
            signer = await self.store.get_person(responsible_person_id)
            if signer is not None:
                responsible_name = signer.full_name

        return ConsentGranted(
            patient_id=patient_id,
            age=age,
            is_minor=is_minor,
            is_surgical=is_surgical,
            responsible_name=responsible_name,
            minor_consent_id=minor_consent.id if minor_consent else None,
            surgery_consent_id=surgery_consent.id if surgery_consent else None,
        )

    async def is_surgical(self, appointment: Appointment) -> bool:
        """Return True if the appointment type or an encounter procedure is surgical.

        Only procedures already linked to an existing encounter are visible.
        """
        if appointment.appointment_type.is_surgical:
            return True

        procedures = await self.store.list_encounter_procedures(appointment.id)
        if not procedures:
            return False
        catalog = await self.store.get_procedures(p.procedure_id for p in procedures)
        return any(entry.is_surgical and entry.is_active for entry in catalog.values())

    @staticmethod
    def _surgical_responsible(
        patient_person_id: str,
        is_minor: bool,
        links: list[ResponsibleParty],
        at: datetime,
    ) -> str | None:
        """Return the person id allowed to sign surgery consent."""
        if not is_minor:
            return patient_person_id
        for link in links:
            if link.has_legal_authority and link.is_valid_at(at):
                return link.person_id
        return None

    async def surgery_consent_status(
        self,
        patient_id: str,
        day: date,
    ) -> list[SurgeryConsentStatus]:
        """Report surgery-consent readiness for the patient's appointments on ``day``.

        Read-only and never raises gate errors; a block is reported in
        ``blocked_reason`` instead.
        """
        patient = await self.store.get_patient(patient_id)
        person = await self.store.get_person(patient.person_id) if patient else None
        if person is None:
            raise NotFoundError("Patient not found", {"patient_id": patient_id})

        statuses = []
        for appointment in await self.store.list_patient_appointments_on(patient_id, day):
            start = ensure_utc(appointment.scheduled_start)
            if not await self.is_surgical(appointment):
                statuses.append(
                    SurgeryConsentStatus(
                        appointment_id=appointment.id,
                        scheduled_start=start,
                        is_surgical=False,
                        has_consent=False,
                    )
                )
                continue

            if person.birth_date is None:
                statuses.append(
                    SurgeryConsentStatus(
                        appointment_id=appointment.id,
                        scheduled_start=start,
                        is_surgical=True,
                        has_consent=False,
                        blocked_reason=ConsentBlockReason.MISSING_BIRTH_DATE,
                    )
                )
                continue

            is_minor = age_on(person.birth_date, start) < AGE_OF_MAJORITY
            links = (
                await self.store.list_responsible_parties(patient_id) if is_minor else []
            )
            responsible_person_id = self._surgical_responsible(
                person.id, is_minor, links, start
            )
            if responsible_person_id is None:
                statuses.append(
                    SurgeryConsentStatus(
                        appointment_id=appointment.id,
                        scheduled_start=start,
                        is_surgical=True,
                        has_consent=False,
                        blocked_reason=ConsentBlockReason.NO_SURGICAL_RESPONSIBLE_PARTY,
                    )
                )
                continue

            consent = await self.store.find_surgery_consent(
                patient_id, responsible_person_id, appointment.id
            )
            statuses.append(
                SurgeryConsentStatus(
                    appointment_id=appointment.id,
                    scheduled_start=start,
                    is_surgical=True,
                    has_consent=consent is not None,
                    consent_id=consent.id if consent else None,
                    responsible_person_id=responsible_person_id,
                    blocked_reason=(
                        None if consent else ConsentBlockReason.MISSING_SURGERY_CONSENT
                    ),
                )
            )

        logger.debug(
            "Surgery consent status computed",
            extra={"entity_id": patient_id},
        )
        return statuses
