"""Patient identity and responsible-party links.

Demographic CRUD belongs to the patient-records module; the appointment core
only reads birth dates and responsible-party links from these tables.
"""

from datetime import date, datetime
from enum import Enum

from sqlalchemy import Boolean, Date, DateTime, ForeignKey, String
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from clinic_ops.db.base import Base, TimestampMixin, enum_column
from clinic_ops.utils.time import ensure_utc


class ResponsibleRelation(str, Enum):
    """Relation of a responsible adult to the patient."""

    MOTHER = "MOTHER"
    FATHER = "FATHER"
    LEGAL_GUARDIAN = "LEGAL_GUARDIAN"
    GRANDPARENT = "GRANDPARENT"
    SIBLING = "SIBLING"
    OTHER = "OTHER"


class Person(Base, TimestampMixin):
    """A natural person: a patient or an adult responsible for one."""

    __tablename__ = "persons"

    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)
    birth_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    document_number: Mapped[str | None] = mapped_column(String(50), nullable=True)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    def __repr__(self) -> str:
        return f"<Person {self.full_name}>"


class Patient(Base, TimestampMixin):
    """Patient record linked to its Person."""

    __tablename__ = "patients"

    person_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("persons.id", ondelete="RESTRICT"),
        unique=True,
        nullable=False,
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    def __repr__(self) -> str:
        return f"<Patient {self.id[:8]}...>"


class ResponsibleParty(Base, TimestampMixin):
    """Time-bounded link between a patient and a responsible adult.

    A link is relevant on a given date while ``valid_until`` is null or not
    before that date. ``has_legal_authority`` marks who may authorise surgery.
    """

    __tablename__ = "responsible_parties"

    patient_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("patients.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    person_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("persons.id", ondelete="RESTRICT"),
        nullable=False,
    )
    relation: Mapped[ResponsibleRelation] = mapped_column(
        enum_column(ResponsibleRelation, "responsible_relation"),
        nullable=False,
    )
    has_legal_authority: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        nullable=False,
    )
    is_primary: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    valid_from: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )
    valid_until: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    def is_valid_at(self, moment: datetime) -> bool:
        """Return True if the link is still in force at ``moment``."""
        if self.valid_until is None:
            return True
        return ensure_utc(self.valid_until) >= ensure_utc(moment)

    def __repr__(self) -> str:
        return f"<ResponsibleParty {self.relation} legal={self.has_legal_authority}>"
