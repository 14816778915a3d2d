"""Medical order and assignment schemas."""

from datetime import date, datetime, time
from uuid import UUID

from pydantic import BaseModel, Field

from app.schemas.appointments import AppointmentStatus


class MedicalOrderCreate(BaseModel):
    """Schema for registering a medical order."""

    patient_id: UUID
    description: str = Field(..., min_length=1, max_length=500)
    total_sessions: int = Field(..., gt=0, le=365)
    order_date: date
    doctor_name: str | None = Field(None, max_length=200)


class MedicalOrderResponse(BaseModel):
    """Schema for medical order response."""

    id: UUID
    patient_id: UUID
    description: str
    total_sessions: int
    sessions_used: int
    completed: bool
    completed_at: datetime | None = None
    order_date: date
    doctor_name: str | None = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class OrderSessionInfo(BaseModel):
    """Session usage of a medical order."""

    order_id: UUID
    total_sessions: int
    sessions_used: int
    active_assignments: int
    sessions_remaining: int


class OrderRecalcResult(BaseModel):
    """Counts of one order after a ledger recompute."""

    order_id: UUID
    total_sessions: int
    previous_sessions_used: int
    sessions_used: int
    completed: bool
    changed: bool


class OrderRecalcFailure(BaseModel):
    """An order that could not be recomputed."""

    order_id: UUID
    error: str


class RecalcResult(BaseModel):
    """Outcome of a patient-level ledger recompute."""

    patient_id: UUID
    orders: list[OrderRecalcResult] = Field(default_factory=list)
    failures: list[OrderRecalcFailure] = Field(default_factory=list)

    @property
    def is_partial(self) -> bool:
        """Whether some orders could not be recomputed."""
        return bool(self.failures)


class AssignmentRequest(BaseModel):
    """Schema for binding an appointment to a medical order."""

    medical_order_id: UUID


class AssignmentResponse(BaseModel):
    """Binding of an appointment to a medical order."""

    appointment_id: UUID
    medical_order_id: UUID
    assigned_by: UUID | None = None
    description: str
    total_sessions: int
    sessions_used: int
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class AssignmentResult(BaseModel):
    """Outcome of an assign/reassign/remove operation."""

    appointment_id: UUID
    medical_order_id: UUID | None = None
    previous_order_id: UUID | None = None
    recalc: RecalcResult


class CompletedAppointmentResponse(BaseModel):
    """Completed appointment with its current order binding."""

    id: UUID
    appointment_date: date
    appointment_time: time
    doctor_id: UUID | None = None
    status: AppointmentStatus
    medical_order_id: UUID | None = None
    order_description: str | None = None

    model_config = {"from_attributes": True}
