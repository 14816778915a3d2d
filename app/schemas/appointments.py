"""Appointment schemas for request/response validation."""

from datetime import date, datetime, time
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, Field, field_validator


class AppointmentStatus(str, Enum):
    """Appointment status enumeration."""

    SCHEDULED = "scheduled"
    CONFIRMED = "confirmed"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    NO_SHOW = "no_show"
    NO_SHOW_RESCHEDULED = "no_show_rescheduled"
    NO_SHOW_SESSION_LOST = "no_show_session_lost"
    CANCELLED = "cancelled"


# Statuses that can only be left through a reversal
TERMINAL_STATUSES = frozenset(
    {
        AppointmentStatus.COMPLETED,
        AppointmentStatus.NO_SHOW,
        AppointmentStatus.NO_SHOW_RESCHEDULED,
        AppointmentStatus.NO_SHOW_SESSION_LOST,
        AppointmentStatus.CANCELLED,
    }
)

REVERTIBLE_STATUSES = frozenset(
    {
        AppointmentStatus.COMPLETED,
        AppointmentStatus.NO_SHOW,
        AppointmentStatus.NO_SHOW_SESSION_LOST,
        AppointmentStatus.CANCELLED,
    }
)

NO_SHOW_STATUSES = frozenset(
    {
        AppointmentStatus.NO_SHOW,
        AppointmentStatus.NO_SHOW_RESCHEDULED,
        AppointmentStatus.NO_SHOW_SESSION_LOST,
    }
)


def consumes_session(status: str, pardoned: bool = False) -> bool:
    """Whether an appointment in this status counts against its order's cap."""
    if status == AppointmentStatus.COMPLETED.value:
        return True
    return status == AppointmentStatus.NO_SHOW_SESSION_LOST.value and not pardoned


class AppointmentBase(BaseModel):
    """Base appointment schema with common fields."""

    doctor_id: UUID | None = None
    appointment_date: date
    appointment_time: time
    duration_minutes: int = Field(default=30, gt=0, le=480)
    reason: str | None = Field(None, max_length=500)
    notes: str | None = Field(None, max_length=1000)


class AppointmentCreate(AppointmentBase):
    """Schema for creating a new appointment."""

    patient_id: UUID


class AppointmentStatusUpdate(BaseModel):
    """Schema for updating appointment status."""

    status: AppointmentStatus
    notes: str | None = Field(None, max_length=1000)


class AppointmentRevertRequest(BaseModel):
    """Schema for reverting a terminal appointment status."""

    reason: str = Field(..., max_length=1000)


class AppointmentResponse(AppointmentBase):
    """Schema for appointment response."""

    id: UUID
    patient_id: UUID
    status: AppointmentStatus
    pardoned_by: UUID | None = None
    pardoned_at: datetime | None = None
    pardon_reason: str | None = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class AppointmentListResponse(BaseModel):
    """Schema for paginated appointment list response."""

    total: int
    page: int
    page_size: int
    items: list[AppointmentResponse]


class AppointmentFilters(BaseModel):
    """Schema for appointment filtering."""

    status: AppointmentStatus | None = None
    doctor_id: UUID | None = None
    patient_id: UUID | None = None
    from_date: date | None = None
    to_date: date | None = None
    page: int = Field(default=1, ge=1)
    page_size: int = Field(default=20, ge=1, le=100)


class StatusReversionResponse(BaseModel):
    """Audit entry written when a terminal status is reverted."""

    id: UUID
    appointment_id: UUID
    previous_status: AppointmentStatus
    new_status: AppointmentStatus
    reason: str
    reverted_by: UUID | None = None
    created_at: datetime

    model_config = {"from_attributes": True}


class RevertResult(BaseModel):
    """Outcome of a status reversal."""

    appointment: AppointmentResponse
    reversion: StatusReversionResponse
    session_restored: bool
    medical_order_id: UUID | None = None


class NoShowCountResponse(BaseModel):
    """Count of non-pardoned no-shows for a patient."""

    patient_id: UUID
    no_show_count: int


class NoShowResetRequest(BaseModel):
    """Schema for pardoning a patient's no-shows."""

    reason: str | None = Field(None, max_length=1000)

    @field_validator("reason")
    @classmethod
    def strip_reason(cls, v: str | None) -> str | None:
        """Treat a blank reason as absent."""
        if v is None:
            return None
        v = v.strip()
        return v or None


class NoShowResetResponse(BaseModel):
    """Audit entry for a no-show reset."""

    id: UUID
    patient_id: UUID
    reset_by: UUID | None = None
    reason: str
    appointments_affected: int
    created_at: datetime

    model_config = {"from_attributes": True}
