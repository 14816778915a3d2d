"""Doctor service for business logic."""

from datetime import UTC, datetime, time
from uuid import UUID

import structlog
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.core.exceptions import NotFoundException, ValidationException
from app.core.redis_client import CacheManager
from app.models.doctors import doctors
from app.schemas.doctors import (
    WEEKDAYS,
    DoctorCreate,
    DoctorResponse,
    DoctorWorkProfile,
    WorkProfileUpdate,
)

logger = structlog.get_logger()

DEFAULT_WORK_DAYS = list(WEEKDAYS[:5])


class DoctorService:
    """Service for doctor operations."""

    def __init__(self, cache_manager: CacheManager | None = None):
        """Initialize service with optional cache manager."""
        self.cache = cache_manager

    @staticmethod
    def _get_doctor_cache_key(doctor_id: UUID) -> str:
        """Generate cache key for doctor."""
        return f"doctor:{doctor_id}"

    async def create_doctor(self, db: AsyncSession, doctor_data: DoctorCreate) -> dict:
        """Create a new doctor with an optional work calendar."""
        query = (
            doctors.insert()
            .values(
                full_name=doctor_data.full_name,
                specialty=doctor_data.specialty,
                work_start_time=doctor_data.work_start_time,
                work_end_time=doctor_data.work_end_time,
                appointment_duration_minutes=doctor_data.appointment_duration_minutes,
                work_days=doctor_data.work_days,
            )
            .returning(doctors)
        )

        result = await db.execute(query)
        doctor = result.mappings().first()

        if not doctor:
            raise ValueError("Failed to create doctor")

        await db.commit()

        logger.info("doctor_created", doctor_id=str(doctor["id"]))
        return dict(doctor)

    async def get_doctor_by_id(self, db: AsyncSession, doctor_id: UUID) -> dict | None:
        """Get doctor by ID with caching."""
        if self.cache:
            cached = self.cache.get_json(self._get_doctor_cache_key(doctor_id))
            if cached:
                return cached

        query = select(doctors).where(doctors.c.id == doctor_id)
        result = await db.execute(query)
        doctor = result.mappings().first()

        if not doctor:
            return None

        doctor_dict = dict(doctor)

        if self.cache:
            self.cache.set_json(
                self._get_doctor_cache_key(doctor_id),
                doctor_dict,
                ttl=settings.doctor_cache_ttl,
            )

        return doctor_dict

    async def get_work_profile(self, db: AsyncSession, doctor_id: UUID) -> DoctorWorkProfile:
        """
        Resolve the work calendar of a doctor, applying defaults.

        Args:
            db: Database session
            doctor_id: Doctor ID

        Returns:
            Work calendar with every field populated

        Raises:
            NotFoundException: If doctor not found
        """
        doctor = await self.get_doctor_by_id(db, doctor_id)
        if not doctor:
            raise NotFoundException("Doctor not found")

        data = DoctorResponse.model_validate(doctor)

        return DoctorWorkProfile(
            doctor_id=data.id,
            full_name=data.full_name,
            specialty=data.specialty,
            work_start_time=data.work_start_time
            or time.fromisoformat(settings.default_work_start_time),
            work_end_time=data.work_end_time or time.fromisoformat(settings.default_work_end_time),
            appointment_duration_minutes=data.appointment_duration_minutes
            or settings.default_appointment_duration,
            work_days=data.work_days if data.work_days is not None else DEFAULT_WORK_DAYS,
        )

    async def update_work_profile(
        self,
        db: AsyncSession,
        doctor_id: UUID,
        profile_data: WorkProfileUpdate,
    ) -> dict | None:
        """Update the work calendar of a doctor."""
        existing = await self.get_doctor_by_id(db, doctor_id)
        if not existing:
            return None

        update_values = profile_data.model_dump(exclude_unset=True)
        if not update_values:
            return existing

        current = DoctorResponse.model_validate(existing)
        # Unset bounds fall back to the defaults the schedule will use
        start = update_values.get("work_start_time", current.work_start_time) or time.fromisoformat(
            settings.default_work_start_time
        )
        end = update_values.get("work_end_time", current.work_end_time) or time.fromisoformat(
            settings.default_work_end_time
        )
        if start >= end:
            raise ValidationException("work_end_time must be after work_start_time")

        update_values["updated_at"] = datetime.now(UTC)

        query = (
            update(doctors)
            .where(doctors.c.id == doctor_id)
            .values(**update_values)
            .returning(doctors)
        )

        result = await db.execute(query)
        updated_doctor = result.mappings().first()

        await db.commit()

        # Invalidate cache
        if self.cache:
            self.cache.delete(self._get_doctor_cache_key(doctor_id))

        logger.info(
            "doctor_work_profile_updated",
            doctor_id=str(doctor_id),
            fields=sorted(update_values),
        )
        return dict(updated_doctor) if updated_doctor else None
