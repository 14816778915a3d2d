"""Medical order endpoints."""

from uuid import UUID

from fastapi import APIRouter, status

from app.dependencies import DatabaseSession
from app.schemas.medical_orders import MedicalOrderCreate, MedicalOrderResponse, OrderSessionInfo
from app.services.medical_order_service import MedicalOrderService
from app.services.order_ledger import OrderLedgerService

router = APIRouter()


@router.post(
    "/",
    response_model=MedicalOrderResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Register medical order",
)
async def create_medical_order(
    data: MedicalOrderCreate,
    db: DatabaseSession,
) -> MedicalOrderResponse:
    """
    Register a medical order with its session budget.

    Args:
        data: Order creation data
        db: Database session

    Returns:
        Created order with no sessions used
    """
    service = MedicalOrderService(db)
    return await service.create_order(data)


@router.get(
    "/{order_id}",
    response_model=MedicalOrderResponse,
    status_code=status.HTTP_200_OK,
    summary="Get medical order by ID",
)
async def get_medical_order(
    order_id: UUID,
    db: DatabaseSession,
) -> MedicalOrderResponse:
    """Get a specific medical order by ID."""
    service = MedicalOrderService(db)
    return await service.get_order(order_id)


@router.get(
    "/{order_id}/sessions",
    response_model=OrderSessionInfo,
    status_code=status.HTTP_200_OK,
    summary="Get session usage of a medical order",
)
async def get_order_session_info(
    order_id: UUID,
    db: DatabaseSession,
) -> OrderSessionInfo:
    """
    Get total, used and remaining sessions of a medical order.

    Remaining sessions are the total minus the assignments still holding a
    session, never below zero.
    """
    ledger = OrderLedgerService(db)
    return await ledger.get_session_info(order_id)
