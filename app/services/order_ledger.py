"""Order ledger: session accounting for medical orders.

Counts are always derived by re-scanning the current assignments, never by
incrementing or decrementing stored values. Two recomputes that interleave or
repeat converge on the same numbers, which is what keeps concurrent
assign/remove/revert calls for the same patient consistent without locks.
"""

from collections.abc import Iterable
from datetime import UTC, datetime
from uuid import UUID

import structlog
from sqlalchemy import and_, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import NotFoundException
from app.models.appointments import appointments
from app.models.medical_orders import appointment_order_assignments, medical_orders
from app.schemas.appointments import AppointmentStatus
from app.schemas.medical_orders import (
    OrderRecalcFailure,
    OrderRecalcResult,
    OrderSessionInfo,
    RecalcResult,
)

logger = structlog.get_logger()


def consuming_clause():
    """SQL condition matching appointments that consume a session."""
    return or_(
        appointments.c.status == AppointmentStatus.COMPLETED.value,
        and_(
            appointments.c.status == AppointmentStatus.NO_SHOW_SESSION_LOST.value,
            appointments.c.pardoned_by.is_(None),
        ),
    )


def reserving_clause():
    """SQL condition matching assigned appointments that hold a session."""
    return or_(
        appointments.c.status.in_(
            [
                AppointmentStatus.SCHEDULED.value,
                AppointmentStatus.CONFIRMED.value,
                AppointmentStatus.IN_PROGRESS.value,
            ]
        ),
        consuming_clause(),
    )


def compute_order_counts(total_sessions: int, consumed: int) -> tuple[int, bool]:
    """
    Derive the stored counts of an order from its consumed sessions.

    Args:
        total_sessions: Session cap of the order
        consumed: Number of session-consuming assignments

    Returns:
        Tuple of (sessions_used, completed)

    Raises:
        ValueError: If the order has no valid cap
    """
    if total_sessions < 1:
        raise ValueError(f"Invalid total_sessions: {total_sessions}")
    sessions_used = min(max(consumed, 0), total_sessions)
    return sessions_used, sessions_used == total_sessions


class OrderLedgerService:
    """Recomputes and reports session usage of medical orders.

    Methods never commit; the caller owns the transaction so the ledger
    update lands atomically with the write that triggered it.
    """

    def __init__(self, db: AsyncSession):
        """Initialize service with database session."""
        self.db = db

    async def recalc_sessions_for_patient(
        self,
        patient_id: UUID,
        include_order_ids: Iterable[UUID | None] = (),
    ) -> RecalcResult:
        """
        Recompute sessions_used and completed for a patient's orders.

        Every open order of the patient is recomputed, plus any order named in
        include_order_ids even if it is already completed (an order freed by a
        reassignment or a reversal must be able to reopen).

        Args:
            patient_id: Patient whose orders are recomputed
            include_order_ids: Extra orders to recompute

        Returns:
            Per-order results and the orders that could not be recomputed
        """
        included = {order_id for order_id in include_order_ids if order_id is not None}

        scope = medical_orders.c.completed.is_(False)
        if included:
            scope = or_(scope, medical_orders.c.id.in_(included))

        stmt = (
            select(medical_orders)
            .where(and_(medical_orders.c.patient_id == patient_id, scope))
            .order_by(medical_orders.c.order_date, medical_orders.c.created_at)
        )
        rows = (await self.db.execute(stmt)).mappings().all()

        result = RecalcResult(patient_id=patient_id)

        found = {row["id"] for row in rows}
        for missing_id in sorted(included - found, key=str):
            logger.warning(
                "order_recalc_skipped",
                patient_id=str(patient_id),
                order_id=str(missing_id),
                reason="not_found",
            )
            result.failures.append(
                OrderRecalcFailure(
                    order_id=missing_id,
                    error="Medical order not found for patient",
                )
            )

        if not rows:
            return result

        consumed_by_order = await self._count_by_order(found, consuming_clause())
        now = datetime.now(UTC)

        for row in rows:
            consumed = consumed_by_order.get(row["id"], 0)
            try:
                sessions_used, completed = compute_order_counts(row["total_sessions"], consumed)
            except ValueError as e:
                logger.warning(
                    "order_recalc_skipped",
                    patient_id=str(patient_id),
                    order_id=str(row["id"]),
                    reason=str(e),
                )
                result.failures.append(OrderRecalcFailure(order_id=row["id"], error=str(e)))
                continue

            if consumed > row["total_sessions"]:
                logger.warning(
                    "order_over_assigned",
                    order_id=str(row["id"]),
                    total_sessions=row["total_sessions"],
                    consumed=consumed,
                )

            changed = sessions_used != row["sessions_used"] or completed != row["completed"]
            if changed:
                values: dict = {
                    "sessions_used": sessions_used,
                    "completed": completed,
                    "updated_at": now,
                }
                if completed and not row["completed"]:
                    values["completed_at"] = now
                elif not completed:
                    values["completed_at"] = None

                await self.db.execute(
                    update(medical_orders)
                    .where(medical_orders.c.id == row["id"])
                    .values(**values)
                )

            result.orders.append(
                OrderRecalcResult(
                    order_id=row["id"],
                    total_sessions=row["total_sessions"],
                    previous_sessions_used=row["sessions_used"],
                    sessions_used=sessions_used,
                    completed=completed,
                    changed=changed,
                )
            )

        logger.info(
            "order_sessions_recalculated",
            patient_id=str(patient_id),
            orders=len(result.orders),
            changed=sum(1 for order in result.orders if order.changed),
            failures=len(result.failures),
        )
        return result

    async def get_active_assignment_count(self, order_id: UUID) -> int:
        """Count assignments currently holding one of the order's sessions."""
        counts = await self._count_by_order({order_id}, reserving_clause())
        return counts.get(order_id, 0)

    async def get_session_info(self, order_id: UUID) -> OrderSessionInfo:
        """
        Get session usage of a medical order.

        Args:
            order_id: Medical order ID

        Returns:
            Totals, consumed sessions and sessions still available

        Raises:
            NotFoundException: If the order does not exist
        """
        stmt = select(
            medical_orders.c.total_sessions,
            medical_orders.c.sessions_used,
        ).where(medical_orders.c.id == order_id)
        row = (await self.db.execute(stmt)).fetchone()

        if not row:
            raise NotFoundException("Medical order not found")

        active = await self.get_active_assignment_count(order_id)

        return OrderSessionInfo(
            order_id=order_id,
            total_sessions=row.total_sessions,
            sessions_used=row.sessions_used,
            active_assignments=active,
            sessions_remaining=max(0, row.total_sessions - active),
        )

    async def _count_by_order(self, order_ids: set[UUID], condition) -> dict[UUID, int]:
        """Count assignments per order whose appointment matches condition."""
        if not order_ids:
            return {}

        stmt = (
            select(
                appointment_order_assignments.c.medical_order_id,
                func.count().label("total"),
            )
            .select_from(
                appointment_order_assignments.join(
                    appointments,
                    appointment_order_assignments.c.appointment_id == appointments.c.id,
                )
            )
            .where(
                and_(
                    appointment_order_assignments.c.medical_order_id.in_(order_ids),
                    condition,
                )
            )
            .group_by(appointment_order_assignments.c.medical_order_id)
        )
        result = await self.db.execute(stmt)
        return {row.medical_order_id: row.total for row in result.fetchall()}
