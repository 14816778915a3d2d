"""Medical order service for business logic."""

from uuid import UUID

import structlog
from sqlalchemy import insert, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import NotFoundException
from app.models.medical_orders import medical_orders
from app.schemas.medical_orders import MedicalOrderCreate, MedicalOrderResponse

logger = structlog.get_logger()


class MedicalOrderService:
    """Service for registering and reading medical orders."""

    def __init__(self, db: AsyncSession):
        """Initialize service with database session."""
        self.db = db

    async def create_order(self, data: MedicalOrderCreate) -> MedicalOrderResponse:
        """
        Register a medical order with an unused session budget.

        Args:
            data: Order creation data

        Returns:
            Created order
        """
        stmt = (
            insert(medical_orders)
            .values(
                patient_id=data.patient_id,
                description=data.description,
                total_sessions=data.total_sessions,
                sessions_used=0,
                completed=False,
                order_date=data.order_date,
                doctor_name=data.doctor_name,
            )
            .returning(medical_orders)
        )
        result = await self.db.execute(stmt)
        row = result.fetchone()
        await self.db.commit()

        logger.info(
            "medical_order_created",
            order_id=str(row.id),
            patient_id=str(data.patient_id),
            total_sessions=data.total_sessions,
        )
        return MedicalOrderResponse.model_validate(dict(row._mapping))

    async def get_order(self, order_id: UUID) -> MedicalOrderResponse:
        """
        Get medical order by ID.

        Raises:
            NotFoundException: If order not found
        """
        stmt = select(medical_orders).where(medical_orders.c.id == order_id)
        row = (await self.db.execute(stmt)).fetchone()

        if not row:
            raise NotFoundException("Medical order not found")

        return MedicalOrderResponse.model_validate(dict(row._mapping))

    async def list_open_orders(self, patient_id: UUID) -> list[MedicalOrderResponse]:
        """List a patient's non-completed orders, oldest first."""
        stmt = (
            select(medical_orders)
            .where(
                medical_orders.c.patient_id == patient_id,
                medical_orders.c.completed.is_(False),
            )
            .order_by(medical_orders.c.order_date, medical_orders.c.created_at)
        )
        rows = (await self.db.execute(stmt)).fetchall()
        return [MedicalOrderResponse.model_validate(dict(row._mapping)) for row in rows]
