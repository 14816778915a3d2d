"""Weekly schedule grid schemas."""

from datetime import date, time
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, Field

from app.schemas.appointments import AppointmentStatus
from app.schemas.doctors import DoctorWorkProfile


class SlotStatus(str, Enum):
    """Occupancy of a schedule slot."""

    FREE = "free"
    OCCUPIED = "occupied"
    NON_WORKING = "non-working"


class SlotAppointment(BaseModel):
    """Appointment shown inside a slot."""

    id: UUID
    patient_id: UUID
    appointment_date: date
    appointment_time: time
    status: AppointmentStatus
    reason: str | None = None
    duration_minutes: int


class TimeSlot(BaseModel):
    """A fixed-duration interval of a day."""

    time: str
    status: SlotStatus
    appointments: list[SlotAppointment] = Field(default_factory=list)

    @property
    def is_multi_booked(self) -> bool:
        """Whether more than one appointment shares this slot."""
        return len(self.appointments) > 1


class DaySchedule(BaseModel):
    """Slots of one calendar day."""

    date: date
    day_name: str
    is_working_day: bool
    slots: list[TimeSlot]
    # Appointments that fall outside the generated grid
    unplaced_appointments: list[SlotAppointment] = Field(default_factory=list)


class WeeklySchedule(BaseModel):
    """Monday-to-Sunday grid for one doctor."""

    doctor: DoctorWorkProfile
    week_start: date
    week_end: date
    time_slots: list[str]
    days: dict[str, DaySchedule]
