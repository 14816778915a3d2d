"""Appointment endpoints."""

from datetime import date
from uuid import UUID

from fastapi import APIRouter, Query, status

from app.core.exceptions import NotFoundException
from app.dependencies import ActorId, DatabaseSession
from app.schemas.appointments import (
    AppointmentCreate,
    AppointmentFilters,
    AppointmentListResponse,
    AppointmentResponse,
    AppointmentRevertRequest,
    AppointmentStatus,
    AppointmentStatusUpdate,
    RevertResult,
    StatusReversionResponse,
)
from app.schemas.medical_orders import AssignmentRequest, AssignmentResponse, AssignmentResult
from app.services.appointment_service import AppointmentService
from app.services.assignment_service import AssignmentService
from app.services.reversal_service import StatusReversalService

router = APIRouter()


@router.post(
    "/",
    response_model=AppointmentResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create new appointment",
)
async def create_appointment(
    data: AppointmentCreate,
    db: DatabaseSession,
) -> AppointmentResponse:
    """
    Create a new scheduled appointment.

    Args:
        data: Appointment creation data
        db: Database session

    Returns:
        Created appointment
    """
    service = AppointmentService(db)
    return await service.create_appointment(data)


@router.get(
    "/",
    response_model=AppointmentListResponse,
    status_code=status.HTTP_200_OK,
    summary="List appointments",
)
async def list_appointments(
    db: DatabaseSession,
    status_filter: AppointmentStatus | None = Query(None, alias="status"),
    doctor_id: UUID | None = Query(None),
    patient_id: UUID | None = Query(None),
    from_date: date | None = Query(None),
    to_date: date | None = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
) -> AppointmentListResponse:
    """List appointments filtered by doctor, patient, status and date range."""
    filters = AppointmentFilters(
        status=status_filter,
        doctor_id=doctor_id,
        patient_id=patient_id,
        from_date=from_date,
        to_date=to_date,
        page=page,
        page_size=page_size,
    )

    service = AppointmentService(db)
    return await service.list_appointments(filters)


@router.get(
    "/{appointment_id}",
    response_model=AppointmentResponse,
    status_code=status.HTTP_200_OK,
    summary="Get appointment by ID",
)
async def get_appointment(
    appointment_id: UUID,
    db: DatabaseSession,
) -> AppointmentResponse:
    """Get a specific appointment by ID."""
    service = AppointmentService(db)
    return await service.get_appointment(appointment_id)


@router.patch(
    "/{appointment_id}/status",
    response_model=AppointmentResponse,
    status_code=status.HTTP_200_OK,
    summary="Update appointment status",
)
async def update_appointment_status(
    appointment_id: UUID,
    data: AppointmentStatusUpdate,
    db: DatabaseSession,
    actor_id: ActorId,
) -> AppointmentResponse:
    """
    Move an appointment forward (confirm, complete, mark no-show, cancel).

    Args:
        appointment_id: Appointment ID
        data: Status update data
        db: Database session
        actor_id: Acting user

    Returns:
        Updated appointment

    Raises:
        HTTPException: If appointment not found or already terminal
    """
    service = AppointmentService(db)
    return await service.update_appointment_status(appointment_id, data, actor_id)


@router.post(
    "/{appointment_id}/revert",
    response_model=RevertResult,
    status_code=status.HTTP_200_OK,
    summary="Revert a terminal appointment status",
)
async def revert_appointment_status(
    appointment_id: UUID,
    data: AppointmentRevertRequest,
    db: DatabaseSession,
    actor_id: ActorId,
) -> RevertResult:
    """
    Return a completed, no-show or cancelled appointment to scheduled.

    A non-empty reason is mandatory. A session consumed by the reverted
    status is restored to the bound medical order.
    """
    service = StatusReversalService(db)
    return await service.revert(appointment_id, data.reason, actor_id)


@router.get(
    "/{appointment_id}/reversions",
    response_model=list[StatusReversionResponse],
    status_code=status.HTTP_200_OK,
    summary="List status reversions",
)
async def list_status_reversions(
    appointment_id: UUID,
    db: DatabaseSession,
) -> list[StatusReversionResponse]:
    """List the reversion audit trail of an appointment."""
    service = StatusReversalService(db)
    return await service.list_reversions(appointment_id)


@router.get(
    "/{appointment_id}/assignment",
    response_model=AssignmentResponse,
    status_code=status.HTTP_200_OK,
    summary="Get medical order assignment",
)
async def get_assignment(
    appointment_id: UUID,
    db: DatabaseSession,
) -> AssignmentResponse:
    """
    Get the medical order an appointment is bound to.

    Raises:
        HTTPException: If the appointment has no assignment
    """
    service = AssignmentService(db)
    assignment = await service.get_assignment(appointment_id)
    if assignment is None:
        raise NotFoundException("Appointment has no medical order assignment")
    return assignment


@router.put(
    "/{appointment_id}/assignment",
    response_model=AssignmentResult,
    status_code=status.HTTP_200_OK,
    summary="Assign or reassign appointment to a medical order",
)
async def assign_appointment(
    appointment_id: UUID,
    data: AssignmentRequest,
    db: DatabaseSession,
    actor_id: ActorId,
) -> AssignmentResult:
    """
    Bind an appointment to a medical order, replacing any previous binding.

    Both the previous and the new order are recomputed.
    """
    service = AssignmentService(db)
    return await service.reassign(appointment_id, data.medical_order_id, actor_id)


@router.delete(
    "/{appointment_id}/assignment",
    response_model=AssignmentResult,
    status_code=status.HTTP_200_OK,
    summary="Remove medical order assignment",
)
async def remove_assignment(
    appointment_id: UUID,
    db: DatabaseSession,
) -> AssignmentResult:
    """Unbind an appointment from its medical order and free its session."""
    service = AssignmentService(db)
    return await service.remove(appointment_id)
