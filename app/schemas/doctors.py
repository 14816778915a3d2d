"""Doctor and work profile schemas."""

from datetime import datetime, time
from uuid import UUID

from pydantic import BaseModel, Field, field_validator, model_validator

WEEKDAYS = (
    "monday",
    "tuesday",
    "wednesday",
    "thursday",
    "friday",
    "saturday",
    "sunday",
)


class WorkProfileBase(BaseModel):
    """Working calendar fields of a doctor."""

    work_start_time: time | None = None
    work_end_time: time | None = None
    appointment_duration_minutes: int | None = None
    work_days: list[str] | None = None


class WorkProfileInput(WorkProfileBase):
    """Validated working calendar accepted from clients."""

    appointment_duration_minutes: int | None = Field(None, gt=0, le=480)

    @field_validator("work_days")
    @classmethod
    def validate_work_days(cls, v: list[str] | None) -> list[str] | None:
        """Normalize weekday names and reject unknown ones."""
        if v is None:
            return v
        normalized = []
        for day in v:
            name = day.strip().lower()
            if name not in WEEKDAYS:
                raise ValueError(f"Unknown weekday: {day}")
            if name not in normalized:
                normalized.append(name)
        return normalized

    @model_validator(mode="after")
    def validate_window(self) -> "WorkProfileInput":
        """Validate the working window is not empty."""
        if self.work_start_time is not None and self.work_end_time is not None:
            if self.work_start_time >= self.work_end_time:
                raise ValueError("work_end_time must be after work_start_time")
        return self


class DoctorCreate(WorkProfileInput):
    """Schema for creating a doctor."""

    full_name: str = Field(..., min_length=1, max_length=200)
    specialty: str | None = Field(None, max_length=200)


class WorkProfileUpdate(WorkProfileInput):
    """Schema for updating a doctor's work calendar."""


class DoctorResponse(WorkProfileBase):
    """Schema for doctor response."""

    id: UUID
    full_name: str
    specialty: str | None = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class DoctorWorkProfile(BaseModel):
    """Resolved work calendar used to derive schedule slots."""

    doctor_id: UUID
    full_name: str
    specialty: str | None = None
    work_start_time: time
    work_end_time: time
    appointment_duration_minutes: int
    work_days: list[str]
