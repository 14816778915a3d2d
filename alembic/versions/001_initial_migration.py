"""Initial migration - create session accounting tables.

Revision ID: 001
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""

from typing import Sequence, Union

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _uuid_pk() -> sa.Column:
    return sa.Column(
        "id", postgresql.UUID(), server_default=sa.text("gen_random_uuid()"), nullable=False
    )


def _timestamp(name: str) -> sa.Column:
    return sa.Column(
        name,
        postgresql.TIMESTAMP(timezone=True),
        server_default=sa.text("NOW()"),
        nullable=False,
    )


def upgrade() -> None:
    """Upgrade database schema."""
    # Enable pgcrypto extension
    op.execute('CREATE EXTENSION IF NOT EXISTS "pgcrypto"')

    # Doctors with their work calendar
    op.create_table(
        "doctors",
        _uuid_pk(),
        sa.Column("full_name", sa.Text(), nullable=False),
        sa.Column("specialty", sa.String(length=200), nullable=True),
        sa.Column("work_start_time", sa.Time(), nullable=True),
        sa.Column("work_end_time", sa.Time(), nullable=True),
        sa.Column("appointment_duration_minutes", sa.Integer(), nullable=True),
        sa.Column("work_days", postgresql.JSON(), nullable=True),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        sa.CheckConstraint(
            "appointment_duration_minutes IS NULL OR appointment_duration_minutes > 0",
            name="doctors_appointment_duration_check",
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_doctors_specialty", "doctors", ["specialty"])

    # Appointments
    op.create_table(
        "appointments",
        _uuid_pk(),
        sa.Column("patient_id", postgresql.UUID(), nullable=False),
        sa.Column("doctor_id", postgresql.UUID(), nullable=True),
        sa.Column("appointment_date", sa.Date(), nullable=False),
        sa.Column("appointment_time", sa.Time(), nullable=False),
        sa.Column("duration_minutes", sa.Integer(), server_default=sa.text("30"), nullable=False),
        sa.Column("status", sa.Text(), server_default="scheduled", nullable=False),
        sa.Column("reason", sa.Text(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("pardoned_by", postgresql.UUID(), nullable=True),
        sa.Column("pardoned_at", postgresql.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("pardon_reason", sa.Text(), nullable=True),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        sa.CheckConstraint(
            "status IN ('scheduled', 'confirmed', 'in_progress', 'completed', 'no_show', "
            "'no_show_rescheduled', 'no_show_session_lost', 'cancelled')",
            name="appointments_status_check",
        ),
        sa.CheckConstraint("duration_minutes > 0", name="appointments_duration_check"),
        sa.ForeignKeyConstraint(["doctor_id"], ["doctors.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_appointments_patient_id", "appointments", ["patient_id"])
    op.create_index(
        "idx_appointments_doctor_date", "appointments", ["doctor_id", "appointment_date"]
    )

    # Medical orders with their session budget
    op.create_table(
        "medical_orders",
        _uuid_pk(),
        sa.Column("patient_id", postgresql.UUID(), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("total_sessions", sa.Integer(), nullable=False),
        sa.Column("sessions_used", sa.Integer(), server_default=sa.text("0"), nullable=False),
        sa.Column("completed", sa.Boolean(), server_default=sa.text("false"), nullable=False),
        sa.Column("completed_at", postgresql.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("order_date", sa.Date(), nullable=False),
        sa.Column("doctor_name", sa.Text(), nullable=True),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        sa.CheckConstraint("total_sessions > 0", name="medical_orders_total_sessions_check"),
        sa.CheckConstraint(
            "sessions_used >= 0 AND sessions_used <= total_sessions",
            name="medical_orders_sessions_used_check",
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_medical_orders_patient_id", "medical_orders", ["patient_id"])

    # At most one order per appointment
    op.create_table(
        "appointment_order_assignments",
        sa.Column("appointment_id", postgresql.UUID(), nullable=False),
        sa.Column("medical_order_id", postgresql.UUID(), nullable=False),
        sa.Column("assigned_by", postgresql.UUID(), nullable=True),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        sa.ForeignKeyConstraint(["appointment_id"], ["appointments.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["medical_order_id"], ["medical_orders.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("appointment_id"),
    )
    op.create_index(
        "ix_appointment_order_assignments_medical_order_id",
        "appointment_order_assignments",
        ["medical_order_id"],
    )

    # Audit trails
    op.create_table(
        "appointment_status_reversions",
        _uuid_pk(),
        sa.Column("appointment_id", postgresql.UUID(), nullable=False),
        sa.Column("previous_status", sa.Text(), nullable=False),
        sa.Column("new_status", sa.Text(), nullable=False),
        sa.Column("reason", sa.Text(), nullable=False),
        sa.Column("reverted_by", postgresql.UUID(), nullable=True),
        _timestamp("created_at"),
        sa.ForeignKeyConstraint(["appointment_id"], ["appointments.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_appointment_status_reversions_appointment_id",
        "appointment_status_reversions",
        ["appointment_id"],
    )

    op.create_table(
        "patient_noshow_resets",
        _uuid_pk(),
        sa.Column("patient_id", postgresql.UUID(), nullable=False),
        sa.Column("reset_by", postgresql.UUID(), nullable=True),
        sa.Column("reason", sa.Text(), nullable=False),
        sa.Column("appointments_affected", sa.Integer(), nullable=False),
        _timestamp("created_at"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_patient_noshow_resets_patient_id", "patient_noshow_resets", ["patient_id"])


def downgrade() -> None:
    """Downgrade database schema."""
    op.drop_index("ix_patient_noshow_resets_patient_id", table_name="patient_noshow_resets")
    op.drop_table("patient_noshow_resets")

    op.drop_index(
        "ix_appointment_status_reversions_appointment_id",
        table_name="appointment_status_reversions",
    )
    op.drop_table("appointment_status_reversions")

    op.drop_index(
        "ix_appointment_order_assignments_medical_order_id",
        table_name="appointment_order_assignments",
    )
    op.drop_table("appointment_order_assignments")

    op.drop_index("ix_medical_orders_patient_id", table_name="medical_orders")
    op.drop_table("medical_orders")

    op.drop_index("idx_appointments_doctor_date", table_name="appointments")
    op.drop_index("ix_appointments_patient_id", table_name="appointments")
    op.drop_table("appointments")

    op.drop_index("ix_doctors_specialty", table_name="doctors")
    op.drop_table("doctors")
