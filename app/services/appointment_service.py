"""Appointment service for business logic."""

from datetime import UTC, datetime
from uuid import UUID

import structlog
from sqlalchemy import and_, func, insert, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import BadRequestException, ConflictException, NotFoundException
from app.models.appointments import appointments
from app.models.audit import patient_noshow_resets
from app.models.medical_orders import medical_orders
from app.schemas.appointments import (
    NO_SHOW_STATUSES,
    TERMINAL_STATUSES,
    AppointmentCreate,
    AppointmentFilters,
    AppointmentListResponse,
    AppointmentResponse,
    AppointmentStatus,
    AppointmentStatusUpdate,
    NoShowCountResponse,
    NoShowResetResponse,
    consumes_session,
)
from app.services.assignment_service import AssignmentService
from app.services.order_ledger import OrderLedgerService

logger = structlog.get_logger()

DEFAULT_RESET_REASON = "No-show counter reset"


class AppointmentService:
    """Service for managing appointments and their status workflow."""

    def __init__(self, db: AsyncSession):
        """Initialize service with database session."""
        self.db = db
        self.assignments = AssignmentService(db)
        self.ledger = OrderLedgerService(db)

    async def create_appointment(self, data: AppointmentCreate) -> AppointmentResponse:
        """
        Create a new appointment.

        Args:
            data: Appointment creation data

        Returns:
            Created appointment
        """
        values = {
            "patient_id": data.patient_id,
            "doctor_id": data.doctor_id,
            "appointment_date": data.appointment_date,
            "appointment_time": data.appointment_time,
            "duration_minutes": data.duration_minutes,
            "reason": data.reason,
            "notes": data.notes,
            "status": AppointmentStatus.SCHEDULED.value,
        }

        stmt = insert(appointments).values(**values).returning(appointments)
        result = await self.db.execute(stmt)
        row = result.fetchone()
        await self.db.commit()

        logger.info(
            "appointment_created",
            appointment_id=str(row.id),
            patient_id=str(data.patient_id),
            doctor_id=str(data.doctor_id) if data.doctor_id else None,
        )
        return AppointmentResponse.model_validate(dict(row._mapping))

    async def get_appointment(self, appointment_id: UUID) -> AppointmentResponse:
        """
        Get appointment by ID.

        Raises:
            NotFoundException: If appointment not found
        """
        stmt = select(appointments).where(appointments.c.id == appointment_id)
        row = (await self.db.execute(stmt)).fetchone()

        if not row:
            raise NotFoundException("Appointment not found")

        return AppointmentResponse.model_validate(dict(row._mapping))

    async def list_appointments(self, filters: AppointmentFilters) -> AppointmentListResponse:
        """
        List appointments with filtering and pagination.

        Args:
            filters: Filter and pagination parameters

        Returns:
            Paginated list of appointments
        """
        conditions = []

        if filters.status:
            conditions.append(appointments.c.status == filters.status.value)

        if filters.doctor_id:
            conditions.append(appointments.c.doctor_id == filters.doctor_id)

        if filters.patient_id:
            conditions.append(appointments.c.patient_id == filters.patient_id)

        if filters.from_date:
            conditions.append(appointments.c.appointment_date >= filters.from_date)

        if filters.to_date:
            conditions.append(appointments.c.appointment_date <= filters.to_date)

        where_clause = and_(*conditions) if conditions else True

        count_stmt = select(func.count()).select_from(appointments).where(where_clause)
        total = (await self.db.execute(count_stmt)).scalar() or 0

        offset = (filters.page - 1) * filters.page_size

        stmt = (
            select(appointments)
            .where(where_clause)
            .order_by(appointments.c.appointment_date, appointments.c.appointment_time)
            .limit(filters.page_size)
            .offset(offset)
        )
        rows = (await self.db.execute(stmt)).fetchall()

        items = [AppointmentResponse.model_validate(dict(row._mapping)) for row in rows]

        return AppointmentListResponse(
            total=total,
            page=filters.page,
            page_size=filters.page_size,
            items=items,
        )

    async def update_appointment_status(
        self,
        appointment_id: UUID,
        data: AppointmentStatusUpdate,
        actor_id: UUID | None = None,
    ) -> AppointmentResponse:
        """
        Move an appointment forward in its workflow.

        A terminal status can only be left through a reversal. When the new
        status consumes a session and the appointment has no binding, it is
        bound to the patient's oldest open order with sessions left.

        Args:
            appointment_id: Appointment ID
            data: Status update data
            actor_id: User performing the change

        Returns:
            Updated appointment

        Raises:
            NotFoundException: If appointment not found
            ConflictException: If the appointment is already in a terminal status
        """
        current = await self.get_appointment(appointment_id)
        old_status = current.status

        if old_status == data.status:
            return current

        if old_status in TERMINAL_STATUSES:
            raise ConflictException(
                f"Appointment is already {old_status.value}; revert it before changing status",
                details={"status": old_status.value},
            )

        try:
            update_values = {
                "status": data.status.value,
                "updated_at": datetime.now(UTC),
            }
            if data.notes:
                update_values["notes"] = data.notes

            stmt = (
                update(appointments)
                .where(appointments.c.id == appointment_id)
                .values(**update_values)
                .returning(appointments)
            )
            row = (await self.db.execute(stmt)).fetchone()

            order_id = await self.assignments.get_bound_order_id(appointment_id)
            if order_id is None and consumes_session(data.status.value):
                order_id = await self._fallback_order_id(current.patient_id)
                if order_id is not None:
                    await self.assignments.upsert_binding(appointment_id, order_id, actor_id)

            if order_id is not None:
                await self.ledger.recalc_sessions_for_patient(
                    current.patient_id,
                    include_order_ids=[order_id],
                )

            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        logger.info(
            "appointment_status_updated",
            appointment_id=str(appointment_id),
            old_status=old_status.value,
            new_status=data.status.value,
            order_id=str(order_id) if order_id else None,
        )
        return AppointmentResponse.model_validate(dict(row._mapping))

    async def count_no_shows(self, patient_id: UUID) -> NoShowCountResponse:
        """Count a patient's no-shows that have not been pardoned."""
        stmt = (
            select(func.count())
            .select_from(appointments)
            .where(self._pending_no_show_clause(patient_id))
        )
        total = (await self.db.execute(stmt)).scalar() or 0
        return NoShowCountResponse(patient_id=patient_id, no_show_count=total)

    async def reset_no_shows(
        self,
        patient_id: UUID,
        actor_id: UUID | None = None,
        reason: str | None = None,
    ) -> NoShowResetResponse:
        """
        Pardon every pending no-show of a patient.

        Pardoned session-lost no-shows stop consuming their order's session,
        so the patient's ledger is recomputed in the same transaction.

        Raises:
            BadRequestException: If no acting user is given (pardoned_by marks
                the pardon) or the patient has no pending no-shows
        """
        if actor_id is None:
            raise BadRequestException("An acting user is required to pardon no-shows")

        reason_text = reason or DEFAULT_RESET_REASON

        try:
            id_stmt = select(appointments.c.id).where(self._pending_no_show_clause(patient_id))
            appointment_ids = list((await self.db.execute(id_stmt)).scalars().all())

            if not appointment_ids:
                raise BadRequestException("Patient has no pending no-shows to pardon")

            now = datetime.now(UTC)
            await self.db.execute(
                update(appointments)
                .where(appointments.c.id.in_(appointment_ids))
                .values(
                    pardoned_by=actor_id,
                    pardoned_at=now,
                    pardon_reason=reason_text,
                    updated_at=now,
                )
            )

            reset_row = (
                await self.db.execute(
                    insert(patient_noshow_resets)
                    .values(
                        patient_id=patient_id,
                        reset_by=actor_id,
                        reason=reason_text,
                        appointments_affected=len(appointment_ids),
                    )
                    .returning(patient_noshow_resets)
                )
            ).fetchone()

            bound_orders = await self.assignments.get_bound_order_ids(appointment_ids)
            await self.ledger.recalc_sessions_for_patient(patient_id, include_order_ids=bound_orders)

            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        logger.info(
            "patient_no_shows_reset",
            patient_id=str(patient_id),
            appointments_affected=len(appointment_ids),
        )
        return NoShowResetResponse.model_validate(dict(reset_row._mapping))

    async def _fallback_order_id(self, patient_id: UUID) -> UUID | None:
        """Oldest open order of the patient that still has sessions left."""
        stmt = (
            select(medical_orders.c.id)
            .where(
                medical_orders.c.patient_id == patient_id,
                medical_orders.c.completed.is_(False),
                medical_orders.c.sessions_used < medical_orders.c.total_sessions,
            )
            .order_by(medical_orders.c.order_date, medical_orders.c.created_at)
            .limit(1)
        )
        return (await self.db.execute(stmt)).scalar_one_or_none()

    @staticmethod
    def _pending_no_show_clause(patient_id: UUID):
        """Condition for a patient's non-pardoned no-shows."""
        return and_(
            appointments.c.patient_id == patient_id,
            appointments.c.status.in_([status.value for status in NO_SHOW_STATUSES]),
            appointments.c.pardoned_by.is_(None),
        )
