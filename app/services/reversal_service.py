"""Status reversal handler for terminal appointment statuses."""

from datetime import UTC, datetime
from uuid import UUID

import structlog
from sqlalchemy import insert, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import ConflictException, NotFoundException, ValidationException
from app.models.appointments import appointments
from app.models.audit import appointment_status_reversions
from app.schemas.appointments import (
    REVERTIBLE_STATUSES,
    AppointmentResponse,
    AppointmentStatus,
    RevertResult,
    StatusReversionResponse,
    consumes_session,
)
from app.services.assignment_service import AssignmentService
from app.services.order_ledger import OrderLedgerService

logger = structlog.get_logger()


class StatusReversalService:
    """Service for undoing completed, no-show and cancelled statuses."""

    def __init__(self, db: AsyncSession):
        """Initialize service with database session."""
        self.db = db
        self.assignments = AssignmentService(db)
        self.ledger = OrderLedgerService(db)

    async def revert(
        self,
        appointment_id: UUID,
        reason: str | None,
        actor_id: UUID | None = None,
    ) -> RevertResult:
        """
        Return an appointment to scheduled and undo its session consumption.

        If the reverted status consumed a session, the bound order is
        recomputed: the session is restored and the order reopens if it was
        completed. Clinical records written while completed are left for
        manual review. Status change, audit entry and ledger update are
        committed together or not at all.

        Args:
            appointment_id: Appointment to revert
            reason: Mandatory justification
            actor_id: User performing the reversal

        Returns:
            Updated appointment, audit entry and whether a session was restored

        Raises:
            ValidationException: If the reason is empty
            NotFoundException: If the appointment does not exist
            ConflictException: If the current status cannot be reverted
        """
        reason_text = (reason or "").strip()
        if not reason_text:
            raise ValidationException("A reason is required to revert an appointment status")

        try:
            stmt = select(appointments).where(appointments.c.id == appointment_id)
            current = (await self.db.execute(stmt)).fetchone()

            if not current:
                raise NotFoundException("Appointment not found")

            previous_status = AppointmentStatus(current.status)
            if previous_status not in REVERTIBLE_STATUSES:
                raise ConflictException(
                    f"Appointments in status '{previous_status.value}' cannot be reverted",
                    details={"status": previous_status.value},
                )

            row = (
                await self.db.execute(
                    update(appointments)
                    .where(appointments.c.id == appointment_id)
                    .values(
                        status=AppointmentStatus.SCHEDULED.value,
                        # A pardon covers one no-show; the reverted one is gone
                        pardoned_by=None,
                        pardoned_at=None,
                        pardon_reason=None,
                        updated_at=datetime.now(UTC),
                    )
                    .returning(appointments)
                )
            ).fetchone()

            reversion = (
                await self.db.execute(
                    insert(appointment_status_reversions)
                    .values(
                        appointment_id=appointment_id,
                        previous_status=previous_status.value,
                        new_status=AppointmentStatus.SCHEDULED.value,
                        reason=reason_text,
                        reverted_by=actor_id,
                    )
                    .returning(appointment_status_reversions)
                )
            ).fetchone()

            order_id = await self.assignments.get_bound_order_id(appointment_id)
            session_restored = False

            if order_id is not None and consumes_session(
                previous_status.value, pardoned=current.pardoned_by is not None
            ):
                recalc = await self.ledger.recalc_sessions_for_patient(
                    current.patient_id,
                    include_order_ids=[order_id],
                )
                session_restored = any(
                    order.order_id == order_id
                    and order.sessions_used < order.previous_sessions_used
                    for order in recalc.orders
                )

            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        logger.info(
            "appointment_status_reverted",
            appointment_id=str(appointment_id),
            previous_status=previous_status.value,
            order_id=str(order_id) if order_id else None,
            session_restored=session_restored,
        )
        if previous_status == AppointmentStatus.COMPLETED:
            logger.info(
                "clinical_history_review_required",
                appointment_id=str(appointment_id),
            )

        return RevertResult(
            appointment=AppointmentResponse.model_validate(dict(row._mapping)),
            reversion=StatusReversionResponse.model_validate(dict(reversion._mapping)),
            session_restored=session_restored,
            medical_order_id=order_id,
        )

    async def list_reversions(self, appointment_id: UUID) -> list[StatusReversionResponse]:
        """List the reversion audit trail of an appointment, newest first."""
        stmt = (
            select(appointment_status_reversions)
            .where(appointment_status_reversions.c.appointment_id == appointment_id)
            .order_by(appointment_status_reversions.c.created_at.desc())
        )
        rows = (await self.db.execute(stmt)).fetchall()
        return [StatusReversionResponse.model_validate(dict(row._mapping)) for row in rows]
