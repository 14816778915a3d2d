"""Assignment coordinator: binds appointments to medical orders."""

from collections.abc import Sequence
from datetime import UTC, datetime
from uuid import UUID

import structlog
from sqlalchemy import delete, insert, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.engine import Row
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import BadRequestException, ConflictException, NotFoundException
from app.models.appointments import appointments
from app.models.medical_orders import appointment_order_assignments, medical_orders
from app.schemas.appointments import AppointmentStatus
from app.schemas.medical_orders import (
    AssignmentResponse,
    AssignmentResult,
    CompletedAppointmentResponse,
    MedicalOrderResponse,
)
from app.services.medical_order_service import MedicalOrderService
from app.services.order_ledger import OrderLedgerService

logger = structlog.get_logger()


class AssignmentService:
    """Service for binding appointments to medical orders.

    Every mutation upserts or deletes the binding and recomputes the
    patient's ledger in the same transaction; on failure nothing is applied.
    """

    def __init__(self, db: AsyncSession):
        """Initialize service with database session."""
        self.db = db
        self.ledger = OrderLedgerService(db)

    async def assign(
        self,
        appointment_id: UUID,
        order_id: UUID,
        actor_id: UUID | None = None,
    ) -> AssignmentResult:
        """
        Bind an appointment to a medical order, replacing any previous binding.

        Re-issuing the same pair is safe: the binding is upserted and the
        ledger is recomputed from scratch, so no session is counted twice.

        Args:
            appointment_id: Appointment to bind
            order_id: Medical order that will account for the session
            actor_id: User performing the assignment

        Returns:
            New binding, previous order and ledger recompute outcome

        Raises:
            NotFoundException: If the appointment or order does not exist
            BadRequestException: If they belong to different patients
            ConflictException: If the order is already completed
        """
        try:
            appointment = await self._get_appointment_row(appointment_id)
            order = await self._get_order_row(order_id)

            if order.patient_id != appointment.patient_id:
                raise BadRequestException(
                    "Medical order belongs to a different patient",
                    details={"appointment_id": str(appointment_id), "order_id": str(order_id)},
                )

            previous_order_id = await self.get_bound_order_id(appointment_id)

            if order.completed and previous_order_id != order_id:
                raise ConflictException(
                    "Medical order is already completed",
                    details={"order_id": str(order_id)},
                )

            await self.upsert_binding(appointment_id, order_id, actor_id)
            recalc = await self.ledger.recalc_sessions_for_patient(
                appointment.patient_id,
                include_order_ids=[previous_order_id, order_id],
            )
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        logger.info(
            "appointment_assigned",
            appointment_id=str(appointment_id),
            order_id=str(order_id),
            previous_order_id=str(previous_order_id) if previous_order_id else None,
            partial=recalc.is_partial,
        )

        return AssignmentResult(
            appointment_id=appointment_id,
            medical_order_id=order_id,
            previous_order_id=previous_order_id,
            recalc=recalc,
        )

    async def reassign(
        self,
        appointment_id: UUID,
        new_order_id: UUID,
        actor_id: UUID | None = None,
    ) -> AssignmentResult:
        """Move an appointment to another order; both orders are recomputed."""
        return await self.assign(appointment_id, new_order_id, actor_id)

    async def remove(self, appointment_id: UUID) -> AssignmentResult:
        """
        Delete the binding of an appointment and free its session.

        Removing a binding that does not exist is a no-op so retries are safe.

        Raises:
            NotFoundException: If the appointment does not exist
        """
        try:
            appointment = await self._get_appointment_row(appointment_id)
            previous_order_id = await self.get_bound_order_id(appointment_id)

            if previous_order_id is not None:
                await self.db.execute(
                    delete(appointment_order_assignments).where(
                        appointment_order_assignments.c.appointment_id == appointment_id
                    )
                )

            recalc = await self.ledger.recalc_sessions_for_patient(
                appointment.patient_id,
                include_order_ids=[previous_order_id],
            )
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        logger.info(
            "appointment_assignment_removed",
            appointment_id=str(appointment_id),
            previous_order_id=str(previous_order_id) if previous_order_id else None,
        )

        return AssignmentResult(
            appointment_id=appointment_id,
            medical_order_id=None,
            previous_order_id=previous_order_id,
            recalc=recalc,
        )

    async def get_assignment(self, appointment_id: UUID) -> AssignmentResponse | None:
        """Get the binding of an appointment, or None when it has none."""
        stmt = (
            select(
                appointment_order_assignments,
                medical_orders.c.description,
                medical_orders.c.total_sessions,
                medical_orders.c.sessions_used,
            )
            .join(
                medical_orders,
                appointment_order_assignments.c.medical_order_id == medical_orders.c.id,
            )
            .where(appointment_order_assignments.c.appointment_id == appointment_id)
        )
        row = (await self.db.execute(stmt)).fetchone()

        if not row:
            return None

        return AssignmentResponse.model_validate(dict(row._mapping))

    async def list_unassigned_orders(self, patient_id: UUID) -> list[MedicalOrderResponse]:
        """
        List a patient's open orders, oldest first.

        The first entry is the order that accounts for sessions of
        appointments that carry no explicit binding.
        """
        return await MedicalOrderService(self.db).list_open_orders(patient_id)

    async def list_completed_appointments(
        self,
        patient_id: UUID,
    ) -> list[CompletedAppointmentResponse]:
        """List a patient's completed appointments with their current binding."""
        stmt = (
            select(
                appointments.c.id,
                appointments.c.appointment_date,
                appointments.c.appointment_time,
                appointments.c.doctor_id,
                appointments.c.status,
                appointment_order_assignments.c.medical_order_id,
                medical_orders.c.description.label("order_description"),
            )
            .select_from(
                appointments.outerjoin(
                    appointment_order_assignments,
                    appointment_order_assignments.c.appointment_id == appointments.c.id,
                ).outerjoin(
                    medical_orders,
                    appointment_order_assignments.c.medical_order_id == medical_orders.c.id,
                )
            )
            .where(
                appointments.c.patient_id == patient_id,
                appointments.c.status == AppointmentStatus.COMPLETED.value,
            )
            .order_by(appointments.c.appointment_date.desc(), appointments.c.appointment_time.desc())
        )
        rows = (await self.db.execute(stmt)).fetchall()
        return [CompletedAppointmentResponse.model_validate(dict(row._mapping)) for row in rows]

    async def get_bound_order_id(self, appointment_id: UUID) -> UUID | None:
        """Get the order an appointment is bound to, if any."""
        stmt = select(appointment_order_assignments.c.medical_order_id).where(
            appointment_order_assignments.c.appointment_id == appointment_id
        )
        return (await self.db.execute(stmt)).scalar_one_or_none()

    async def get_bound_order_ids(self, appointment_ids: Sequence[UUID]) -> set[UUID]:
        """Get the orders a set of appointments is bound to."""
        if not appointment_ids:
            return set()
        stmt = select(appointment_order_assignments.c.medical_order_id).where(
            appointment_order_assignments.c.appointment_id.in_(appointment_ids)
        )
        return set((await self.db.execute(stmt)).scalars().all())

    async def upsert_binding(
        self,
        appointment_id: UUID,
        order_id: UUID,
        actor_id: UUID | None = None,
    ) -> None:
        """
        Insert or replace the binding row keyed by appointment.

        Does not commit and does not recompute the ledger.
        """
        now = datetime.now(UTC)
        values = {
            "appointment_id": appointment_id,
            "medical_order_id": order_id,
            "assigned_by": actor_id,
            "created_at": now,
            "updated_at": now,
        }

        dialect = self.db.get_bind().dialect.name
        if dialect in ("postgresql", "sqlite"):
            dialect_insert = pg_insert if dialect == "postgresql" else sqlite_insert
            stmt = dialect_insert(appointment_order_assignments).values(**values)
            stmt = stmt.on_conflict_do_update(
                index_elements=[appointment_order_assignments.c.appointment_id],
                set_={
                    "medical_order_id": stmt.excluded.medical_order_id,
                    "assigned_by": stmt.excluded.assigned_by,
                    "updated_at": stmt.excluded.updated_at,
                },
            )
            await self.db.execute(stmt)
            return

        # Backends without ON CONFLICT support
        existing = await self.get_bound_order_id(appointment_id)
        if existing is None:
            await self.db.execute(insert(appointment_order_assignments).values(**values))
        else:
            await self.db.execute(
                update(appointment_order_assignments)
                .where(appointment_order_assignments.c.appointment_id == appointment_id)
                .values(medical_order_id=order_id, assigned_by=actor_id, updated_at=now)
            )

    async def _get_appointment_row(self, appointment_id: UUID) -> Row:
        """Get appointment row or raise NotFoundException."""
        stmt = select(appointments.c.id, appointments.c.patient_id).where(
            appointments.c.id == appointment_id
        )
        row = (await self.db.execute(stmt)).fetchone()
        if not row:
            raise NotFoundException("Appointment not found")
        return row

    async def _get_order_row(self, order_id: UUID) -> Row:
        """Get medical order row or raise NotFoundException."""
        stmt = select(
            medical_orders.c.id,
            medical_orders.c.patient_id,
            medical_orders.c.completed,
        ).where(medical_orders.c.id == order_id)
        row = (await self.db.execute(stmt)).fetchone()
        if not row:
            raise NotFoundException("Medical order not found")
        return row
