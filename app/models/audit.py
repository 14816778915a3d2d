"""Audit trail tables for status reversions and no-show resets."""

from uuid import uuid4

from sqlalchemy import Column, DateTime, ForeignKey, Integer, Table, Text, Uuid, func

from app.models.base import metadata

appointment_status_reversions = Table(
    "appointment_status_reversions",
    metadata,
    Column("id", Uuid, primary_key=True, default=uuid4),
    Column(
        "appointment_id",
        Uuid,
        ForeignKey("appointments.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    ),
    Column("previous_status", Text, nullable=False),
    Column("new_status", Text, nullable=False),
    Column("reason", Text, nullable=False),
    Column("reverted_by", Uuid, nullable=True),
    Column("created_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
)

patient_noshow_resets = Table(
    "patient_noshow_resets",
    metadata,
    Column("id", Uuid, primary_key=True, default=uuid4),
    Column("patient_id", Uuid, nullable=False, index=True),
    Column("reset_by", Uuid, nullable=True),
    Column("reason", Text, nullable=False),
    Column("appointments_affected", Integer, nullable=False),
    Column("created_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
)
