"""Patient-scoped session accounting endpoints."""

from uuid import UUID

from fastapi import APIRouter, status

from app.dependencies import ActorId, DatabaseSession
from app.schemas.appointments import NoShowCountResponse, NoShowResetRequest, NoShowResetResponse
from app.schemas.medical_orders import (
    CompletedAppointmentResponse,
    MedicalOrderResponse,
    RecalcResult,
)
from app.services.appointment_service import AppointmentService
from app.services.assignment_service import AssignmentService
from app.services.order_ledger import OrderLedgerService

router = APIRouter()


@router.get(
    "/{patient_id}/open-orders",
    response_model=list[MedicalOrderResponse],
    status_code=status.HTTP_200_OK,
    summary="List open medical orders",
)
async def list_open_orders(
    patient_id: UUID,
    db: DatabaseSession,
) -> list[MedicalOrderResponse]:
    """List the patient's non-completed orders, oldest first."""
    service = AssignmentService(db)
    return await service.list_unassigned_orders(patient_id)


@router.get(
    "/{patient_id}/completed-appointments",
    response_model=list[CompletedAppointmentResponse],
    status_code=status.HTTP_200_OK,
    summary="List completed appointments",
)
async def list_completed_appointments(
    patient_id: UUID,
    db: DatabaseSession,
) -> list[CompletedAppointmentResponse]:
    """List the patient's completed appointments with their order binding."""
    service = AssignmentService(db)
    return await service.list_completed_appointments(patient_id)


@router.post(
    "/{patient_id}/recalculate-sessions",
    response_model=RecalcResult,
    status_code=status.HTTP_200_OK,
    summary="Recalculate order sessions",
)
async def recalculate_sessions(
    patient_id: UUID,
    db: DatabaseSession,
) -> RecalcResult:
    """
    Recompute session usage of the patient's open orders from scratch.

    Safe to repeat: the result only depends on the current assignments.
    """
    ledger = OrderLedgerService(db)
    try:
        result = await ledger.recalc_sessions_for_patient(patient_id)
        await db.commit()
    except Exception:
        await db.rollback()
        raise
    return result


@router.get(
    "/{patient_id}/no-shows",
    response_model=NoShowCountResponse,
    status_code=status.HTTP_200_OK,
    summary="Count pending no-shows",
)
async def count_no_shows(
    patient_id: UUID,
    db: DatabaseSession,
) -> NoShowCountResponse:
    """Count the patient's no-shows that have not been pardoned."""
    service = AppointmentService(db)
    return await service.count_no_shows(patient_id)


@router.post(
    "/{patient_id}/no-shows/reset",
    response_model=NoShowResetResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Pardon pending no-shows",
)
async def reset_no_shows(
    patient_id: UUID,
    data: NoShowResetRequest,
    db: DatabaseSession,
    actor_id: ActorId,
) -> NoShowResetResponse:
    """
    Pardon every pending no-show of the patient.

    Requires the X-Actor-Id header. Pardoned no-shows stop counting toward
    the no-show total and release any session they consumed.
    """
    service = AppointmentService(db)
    return await service.reset_no_shows(patient_id, actor_id, data.reason)
