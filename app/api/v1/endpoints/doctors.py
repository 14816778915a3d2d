"""Doctor endpoints."""

from datetime import date
from uuid import UUID

from fastapi import APIRouter, Query, status

from app.core.exceptions import NotFoundException, ValidationException
from app.dependencies import DatabaseSession, DoctorServiceDep
from app.schemas.doctors import DoctorCreate, DoctorResponse, WorkProfileUpdate
from app.schemas.schedules import WeeklySchedule
from app.services.schedule_service import DoctorScheduleService
from app.services.slot_grid import LAST_GRID_DATE

router = APIRouter()


@router.post(
    "/",
    response_model=DoctorResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create doctor",
)
async def create_doctor(
    doctor_data: DoctorCreate,
    db: DatabaseSession,
    doctor_service: DoctorServiceDep,
):
    """
    Create a doctor with an optional work calendar.

    - **full_name**: Display name
    - **specialty**: Specialty name
    - **work_start_time / work_end_time**: Working window (defaults 08:00-17:00)
    - **appointment_duration_minutes**: Slot length (default 30)
    - **work_days**: Lowercase weekday names (default monday-friday)
    """
    return await doctor_service.create_doctor(db, doctor_data)


@router.get("/{doctor_id}", response_model=DoctorResponse)
async def get_doctor(
    doctor_id: UUID,
    db: DatabaseSession,
    doctor_service: DoctorServiceDep,
):
    """Get doctor by ID."""
    doctor = await doctor_service.get_doctor_by_id(db, doctor_id)
    if not doctor:
        raise NotFoundException("Doctor not found")
    return doctor


@router.put("/{doctor_id}/work-profile", response_model=DoctorResponse)
async def update_work_profile(
    doctor_id: UUID,
    profile_data: WorkProfileUpdate,
    db: DatabaseSession,
    doctor_service: DoctorServiceDep,
):
    """Update the work calendar of a doctor. Only provided fields change."""
    doctor = await doctor_service.update_work_profile(db, doctor_id, profile_data)
    if not doctor:
        raise NotFoundException("Doctor not found")
    return doctor


@router.get("/{doctor_id}/weekly-schedule", response_model=WeeklySchedule)
async def get_weekly_schedule(
    doctor_id: UUID,
    db: DatabaseSession,
    doctor_service: DoctorServiceDep,
    week_of: date | None = Query(None, description="Any date inside the requested week"),
):
    """
    Get the Monday-to-Sunday slot grid of a doctor.

    Each day lists free, occupied and non-working slots. Appointments that do
    not align with a slot are reported under unplaced_appointments.
    """
    anchor = week_of or date.today()
    if anchor > LAST_GRID_DATE:
        raise ValidationException(
            "week_of is outside the supported calendar range",
            details={"week_of": anchor.isoformat(), "max": LAST_GRID_DATE.isoformat()},
        )

    service = DoctorScheduleService(db, doctor_service)
    return await service.get_weekly_schedule(doctor_id, anchor)
