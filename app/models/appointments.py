"""Appointments table model using SQLAlchemy Core."""

from uuid import uuid4

from sqlalchemy import (
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Table,
    Text,
    Time,
    Uuid,
    func,
    text,
)

from app.models.base import metadata

appointments = Table(
    "appointments",
    metadata,
    Column("id", Uuid, primary_key=True, default=uuid4),
    # Ownership / references
    Column("patient_id", Uuid, nullable=False, index=True),
    Column("doctor_id", Uuid, ForeignKey("doctors.id", ondelete="SET NULL"), nullable=True),
    # Scheduling
    Column("appointment_date", Date, nullable=False),
    Column("appointment_time", Time, nullable=False),
    Column("duration_minutes", Integer, nullable=False, server_default=text("30")),
    # Status management
    Column("status", Text, nullable=False, server_default="scheduled"),
    Column("reason", Text, nullable=True),
    Column("notes", Text, nullable=True),
    # No-show pardon (excluded from penalty counts and session consumption)
    Column("pardoned_by", Uuid, nullable=True),
    Column("pardoned_at", DateTime(timezone=True), nullable=True),
    Column("pardon_reason", Text, nullable=True),
    # Audit fields
    Column("created_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
    Column("updated_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
    CheckConstraint(
        "status IN ('scheduled', 'confirmed', 'in_progress', 'completed', 'no_show', "
        "'no_show_rescheduled', 'no_show_session_lost', 'cancelled')",
        name="appointments_status_check",
    ),
    CheckConstraint("duration_minutes > 0", name="appointments_duration_check"),
    Index("idx_appointments_doctor_date", "doctor_id", "appointment_date"),
)
