"""Medical orders and appointment-order assignments using SQLAlchemy Core."""

from uuid import uuid4

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    Table,
    Text,
    Uuid,
    func,
    text,
)

from app.models.base import metadata

medical_orders = Table(
    "medical_orders",
    metadata,
    Column("id", Uuid, primary_key=True, default=uuid4),
    Column("patient_id", Uuid, nullable=False, index=True),
    Column("description", Text, nullable=False),
    # Session accounting (maintained by the order ledger)
    Column("total_sessions", Integer, nullable=False),
    Column("sessions_used", Integer, nullable=False, server_default=text("0")),
    Column("completed", Boolean, nullable=False, server_default=text("false")),
    Column("completed_at", DateTime(timezone=True), nullable=True),
    # Prescription details
    Column("order_date", Date, nullable=False),
    Column("doctor_name", Text, nullable=True),
    # Audit fields
    Column("created_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
    Column("updated_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
    CheckConstraint("total_sessions > 0", name="medical_orders_total_sessions_check"),
    CheckConstraint(
        "sessions_used >= 0 AND sessions_used <= total_sessions",
        name="medical_orders_sessions_used_check",
    ),
)

# One row per appointment: re-assigning replaces the order link
appointment_order_assignments = Table(
    "appointment_order_assignments",
    metadata,
    Column(
        "appointment_id",
        Uuid,
        ForeignKey("appointments.id", ondelete="CASCADE"),
        primary_key=True,
    ),
    Column(
        "medical_order_id",
        Uuid,
        ForeignKey("medical_orders.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    ),
    Column("assigned_by", Uuid, nullable=True),
    Column("created_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
    Column("updated_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
)
