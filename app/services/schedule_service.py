"""Doctor weekly schedule service."""

from datetime import date
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.appointments import appointments
from app.schemas.schedules import SlotAppointment, WeeklySchedule
from app.services.doctor_service import DoctorService
from app.services.slot_grid import build_week_schedule, week_bounds


class DoctorScheduleService:
    """Read-only service deriving a doctor's weekly slot grid."""

    def __init__(self, db: AsyncSession, doctor_service: DoctorService):
        """Initialize service with database session and doctor service."""
        self.db = db
        self.doctors = doctor_service

    async def list_week_appointments(
        self,
        doctor_id: UUID,
        date_from: date,
        date_to: date,
    ) -> list[SlotAppointment]:
        """List a doctor's appointments between two dates, inclusive."""
        stmt = (
            select(
                appointments.c.id,
                appointments.c.patient_id,
                appointments.c.appointment_date,
                appointments.c.appointment_time,
                appointments.c.status,
                appointments.c.reason,
                appointments.c.duration_minutes,
            )
            .where(
                appointments.c.doctor_id == doctor_id,
                appointments.c.appointment_date >= date_from,
                appointments.c.appointment_date <= date_to,
            )
            .order_by(appointments.c.appointment_date, appointments.c.appointment_time)
        )
        rows = (await self.db.execute(stmt)).fetchall()
        return [SlotAppointment.model_validate(dict(row._mapping)) for row in rows]

    async def get_weekly_schedule(self, doctor_id: UUID, anchor: date) -> WeeklySchedule:
        """
        Build the weekly grid of a doctor for the week containing anchor.

        Args:
            doctor_id: Doctor ID
            anchor: Any date inside the requested week

        Returns:
            Weekly slot grid

        Raises:
            NotFoundException: If doctor not found
        """
        profile = await self.doctors.get_work_profile(self.db, doctor_id)
        week_start, week_end = week_bounds(anchor)
        week_appointments = await self.list_week_appointments(doctor_id, week_start, week_end)
        return build_week_schedule(profile, week_appointments, anchor)
