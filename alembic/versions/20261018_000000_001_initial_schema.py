"""Initial clinic core schema.

Revision ID: 001
Revises:
Create Date: 2026-10-18 00:00:00.000000

"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    ]


def upgrade() -> None:
    """Create the clinic core tables."""

    # Persons (patients and responsible adults)
    op.create_table(
        "persons",
        sa.Column("id", postgresql.UUID(as_uuid=False), nullable=False),
        sa.Column("first_name", sa.String(100), nullable=False),
        sa.Column("last_name", sa.String(100), nullable=False),
        sa.Column("birth_date", sa.Date(), nullable=True),
        sa.Column("document_number", sa.String(50), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name="pk_persons"),
    )

    op.create_table(
        "patients",
        sa.Column("id", postgresql.UUID(as_uuid=False), nullable=False),
        sa.Column("person_id", postgresql.UUID(as_uuid=False), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, default=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(
            ["person_id"],
            ["persons.id"],
            name="fk_patients_person_id_persons",
            ondelete="RESTRICT",
        ),
        sa.PrimaryKeyConstraint("id", name="pk_patients"),
        sa.UniqueConstraint("person_id", name="uq_patients_person_id"),
    )

    op.create_table(
        "responsible_parties",
        sa.Column("id", postgresql.UUID(as_uuid=False), nullable=False),
        sa.Column("patient_id", postgresql.UUID(as_uuid=False), nullable=False),
        sa.Column("person_id", postgresql.UUID(as_uuid=False), nullable=False),
        sa.Column("relation", sa.String(20), nullable=False),
        sa.Column("has_legal_authority", sa.Boolean(), nullable=False, default=False),
        sa.Column("is_primary", sa.Boolean(), nullable=False, default=False),
        sa.Column("valid_from", sa.DateTime(timezone=True), nullable=False),
        sa.Column("valid_until", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(
            ["patient_id"],
            ["patients.id"],
            name="fk_responsible_parties_patient_id_patients",
            ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ["person_id"],
            ["persons.id"],
            name="fk_responsible_parties_person_id_persons",
            ondelete="RESTRICT",
        ),
        sa.PrimaryKeyConstraint("id", name="pk_responsible_parties"),
    )
    op.create_index(
        "ix_responsible_parties_patient_id", "responsible_parties", ["patient_id"]
    )

    # Procedure catalog
    op.create_table(
        "procedure_catalog",
        sa.Column("id", postgresql.UUID(as_uuid=False), nullable=False),
        sa.Column("code", sa.String(50), nullable=False),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("default_duration_minutes", sa.Integer(), nullable=True),
        sa.Column("is_surgical", sa.Boolean(), nullable=False, default=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, default=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name="pk_procedure_catalog"),
        sa.UniqueConstraint("code", name="uq_procedure_catalog_code"),
    )

    # Appointments
    op.create_table(
        "appointments",
        sa.Column("id", postgresql.UUID(as_uuid=False), nullable=False),
        sa.Column("patient_id", postgresql.UUID(as_uuid=False), nullable=False),
        sa.Column("professional_id", postgresql.UUID(as_uuid=False), nullable=False),
        sa.Column("room_id", postgresql.UUID(as_uuid=False), nullable=True),
        sa.Column("scheduled_start", sa.DateTime(timezone=True), nullable=False),
        sa.Column("scheduled_end", sa.DateTime(timezone=True), nullable=False),
        sa.Column("duration_minutes", sa.Integer(), nullable=False),
        sa.Column("appointment_type", sa.String(20), nullable=False),
        sa.Column("reason", sa.String(255), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("checked_in_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancel_reason", sa.String(30), nullable=True),
        sa.Column("cancelled_by", postgresql.UUID(as_uuid=False), nullable=True),
        sa.Column("created_by", postgresql.UUID(as_uuid=False), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(
            ["patient_id"],
            ["patients.id"],
            name="fk_appointments_patient_id_patients",
            ondelete="RESTRICT",
        ),
        sa.PrimaryKeyConstraint("id", name="pk_appointments"),
    )
    op.create_index("ix_appointments_patient_id", "appointments", ["patient_id"])
    op.create_index("ix_appointments_professional_id", "appointments", ["professional_id"])
    op.create_index("ix_appointments_scheduled_start", "appointments", ["scheduled_start"])
    op.create_index("ix_appointments_status", "appointments", ["status"])

    op.create_table(
        "appointment_status_history",
        sa.Column("id", postgresql.UUID(as_uuid=False), nullable=False),
        sa.Column("appointment_id", postgresql.UUID(as_uuid=False), nullable=False),
        sa.Column("previous_status", sa.String(20), nullable=True),
        sa.Column("new_status", sa.String(20), nullable=False),
        sa.Column("action", sa.String(20), nullable=False),
        sa.Column("note", sa.Text(), nullable=True),
        sa.Column("changed_by", postgresql.UUID(as_uuid=False), nullable=False),
        sa.Column("changed_at", sa.DateTime(timezone=True), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(
            ["appointment_id"],
            ["appointments.id"],
            name="fk_appointment_status_history_appointment_id_appointments",
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("id", name="pk_appointment_status_history"),
    )
    op.create_index(
        "ix_appointment_status_history_appointment_id",
        "appointment_status_history",
        ["appointment_id"],
    )

    # Encounters (1:1 with appointments, keyed by appointment id)
    op.create_table(
        "encounters",
        sa.Column("appointment_id", postgresql.UUID(as_uuid=False), nullable=False),
        sa.Column("patient_id", postgresql.UUID(as_uuid=False), nullable=False),
        sa.Column("status", sa.String(10), nullable=False),
        sa.Column("performed_by", postgresql.UUID(as_uuid=False), nullable=False),
        sa.Column("created_by", postgresql.UUID(as_uuid=False), nullable=False),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("finalized_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(
            ["appointment_id"],
            ["appointments.id"],
            name="fk_encounters_appointment_id_appointments",
            ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ["patient_id"],
            ["patients.id"],
            name="fk_encounters_patient_id_patients",
            ondelete="RESTRICT",
        ),
        sa.PrimaryKeyConstraint("appointment_id", name="pk_encounters"),
    )
    op.create_index("ix_encounters_patient_id", "encounters", ["patient_id"])

    # Treatment plans and steps
    op.create_table(
        "treatment_plans",
        sa.Column("id", postgresql.UUID(as_uuid=False), nullable=False),
        sa.Column("patient_id", postgresql.UUID(as_uuid=False), nullable=False),
        sa.Column("title", sa.String(200), nullable=True),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("created_by", postgresql.UUID(as_uuid=False), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(
            ["patient_id"],
            ["patients.id"],
            name="fk_treatment_plans_patient_id_patients",
            ondelete="RESTRICT",
        ),
        sa.PrimaryKeyConstraint("id", name="pk_treatment_plans"),
    )
    op.create_index("ix_treatment_plans_patient_id", "treatment_plans", ["patient_id"])
    op.create_index("ix_treatment_plans_status", "treatment_plans", ["status"])

    op.create_table(
        "treatment_steps",
        sa.Column("id", postgresql.UUID(as_uuid=False), nullable=False),
        sa.Column("plan_id", postgresql.UUID(as_uuid=False), nullable=False),
        sa.Column("step_order", sa.Integer(), nullable=False),
        sa.Column("procedure_id", postgresql.UUID(as_uuid=False), nullable=True),
        sa.Column("service_type", sa.String(100), nullable=True),
        sa.Column("tooth_number", sa.String(10), nullable=True),
        sa.Column("estimated_duration_minutes", sa.Integer(), nullable=True),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("requires_multiple_sessions", sa.Boolean(), nullable=False, default=False),
        sa.Column("total_sessions", sa.Integer(), nullable=True),
        sa.Column("current_session", sa.Integer(), nullable=False, default=1),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.CheckConstraint(
            "current_session >= 1",
            name="ck_treatment_steps_current_session_positive",
        ),
        sa.ForeignKeyConstraint(
            ["plan_id"],
            ["treatment_plans.id"],
            name="fk_treatment_steps_plan_id_treatment_plans",
            ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ["procedure_id"],
            ["procedure_catalog.id"],
            name="fk_treatment_steps_procedure_id_procedure_catalog",
            ondelete="SET NULL",
        ),
        sa.PrimaryKeyConstraint("id", name="pk_treatment_steps"),
    )
    op.create_index("ix_treatment_steps_plan_id", "treatment_steps", ["plan_id"])

    op.create_table(
        "encounter_procedures",
        sa.Column("id", postgresql.UUID(as_uuid=False), nullable=False),
        sa.Column("encounter_id", postgresql.UUID(as_uuid=False), nullable=False),
        sa.Column("procedure_id", postgresql.UUID(as_uuid=False), nullable=False),
        sa.Column("treatment_step_id", postgresql.UUID(as_uuid=False), nullable=True),
        sa.Column("tooth_number", sa.String(10), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(
            ["encounter_id"],
            ["encounters.appointment_id"],
            name="fk_encounter_procedures_encounter_id_encounters",
            ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ["procedure_id"],
            ["procedure_catalog.id"],
            name="fk_encounter_procedures_procedure_id_procedure_catalog",
            ondelete="RESTRICT",
        ),
        sa.ForeignKeyConstraint(
            ["treatment_step_id"],
            ["treatment_steps.id"],
            name="fk_encounter_procedures_treatment_step_id_treatment_steps",
            ondelete="SET NULL",
        ),
        sa.PrimaryKeyConstraint("id", name="pk_encounter_procedures"),
    )
    op.create_index(
        "ix_encounter_procedures_encounter_id", "encounter_procedures", ["encounter_id"]
    )
    op.create_index(
        "ix_encounter_procedures_treatment_step_id",
        "encounter_procedures",
        ["treatment_step_id"],
    )

    # Consents
    op.create_table(
        "consents",
        sa.Column("id", postgresql.UUID(as_uuid=False), nullable=False),
        sa.Column("patient_id", postgresql.UUID(as_uuid=False), nullable=False),
        sa.Column("responsible_person_id", postgresql.UUID(as_uuid=False), nullable=True),
        sa.Column("appointment_id", postgresql.UUID(as_uuid=False), nullable=True),
        sa.Column("consent_type", sa.String(20), nullable=False),
        sa.Column("signed_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("valid_until", sa.DateTime(timezone=True), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, default=True),
        sa.Column("notes", sa.Text(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(
            ["patient_id"],
            ["patients.id"],
            name="fk_consents_patient_id_patients",
            ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ["responsible_person_id"],
            ["persons.id"],
            name="fk_consents_responsible_person_id_persons",
            ondelete="RESTRICT",
        ),
        sa.ForeignKeyConstraint(
            ["appointment_id"],
            ["appointments.id"],
            name="fk_consents_appointment_id_appointments",
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("id", name="pk_consents"),
    )
    op.create_index("ix_consents_patient_id", "consents", ["patient_id"])
    op.create_index("ix_consents_appointment_id", "consents", ["appointment_id"])

    # Audit events (append-only)
    op.create_table(
        "audit_events",
        sa.Column("id", postgresql.UUID(as_uuid=False), nullable=False),
        sa.Column("actor_id", postgresql.UUID(as_uuid=False), nullable=True),
        sa.Column("actor_role", sa.String(50), nullable=True),
        sa.Column("action", sa.String(100), nullable=False),
        sa.Column("action_category", sa.String(50), nullable=True),
        sa.Column("entity_type", sa.String(100), nullable=False),
        sa.Column("entity_id", postgresql.UUID(as_uuid=False), nullable=True),
        sa.Column("metadata", postgresql.JSON(), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("ip_address", sa.String(45), nullable=True),
        sa.Column("user_agent", sa.String(500), nullable=True),
        sa.Column("request_id", sa.String(64), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name="pk_audit_events"),
    )
    op.create_index("ix_audit_events_entity_id", "audit_events", ["entity_id"])
    op.create_index("ix_audit_events_action", "audit_events", ["action"])
    op.create_index("ix_audit_events_created_at", "audit_events", ["created_at"])
    op.create_index("ix_audit_events_actor_id", "audit_events", ["actor_id"])


def downgrade() -> None:
    """Drop all tables."""
    op.drop_table("audit_events")
    op.drop_table("consents")
    op.drop_table("encounter_procedures")
    op.drop_table("treatment_steps")
    op.drop_table("treatment_plans")
    op.drop_table("encounters")
    op.drop_table("appointment_status_history")
    op.drop_table("appointments")
    op.drop_table("procedure_catalog")
    op.drop_table("responsible_parties")
    op.drop_table("patients")
    op.drop_table("persons")
