"""Doctor work profile table using SQLAlchemy Core."""

from uuid import uuid4

from sqlalchemy import (
    JSON,
    CheckConstraint,
    Column,
    DateTime,
    Integer,
    String,
    Table,
    Text,
    Time,
    Uuid,
    func,
)

from app.models.base import metadata

doctors = Table(
    "doctors",
    metadata,
    Column("id", Uuid, primary_key=True, default=uuid4),
    Column("full_name", Text, nullable=False),
    Column("specialty", String(200), nullable=True, index=True),
    # Work calendar (nullable columns fall back to configured defaults)
    Column("work_start_time", Time, nullable=True),
    Column("work_end_time", Time, nullable=True),
    Column("appointment_duration_minutes", Integer, nullable=True),
    Column("work_days", JSON, nullable=True),
    # Metadata
    Column("created_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
    Column("updated_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
    CheckConstraint(
        "appointment_duration_minutes IS NULL OR appointment_duration_minutes > 0",
        name="doctors_appointment_duration_check",
    ),
)
