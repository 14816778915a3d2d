"""Tests for reverting terminal appointment statuses."""

from uuid import uuid4

import pytest
from httpx import AsyncClient
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import ConflictException, NotFoundException, ValidationException
from app.models import appointment_status_reversions, medical_orders
from app.schemas.appointments import AppointmentStatus, AppointmentStatusUpdate
from app.services.appointment_service import AppointmentService
from app.services.assignment_service import AssignmentService
from app.services.reversal_service import StatusReversalService


async def _order_state(db: AsyncSession, order_id) -> tuple[int, bool]:
    result = await db.execute(
        select(medical_orders.c.sessions_used, medical_orders.c.completed).where(
            medical_orders.c.id == order_id
        )
    )
    row = result.one()
    return row.sessions_used, row.completed


async def _reversion_count(db: AsyncSession) -> int:
    result = await db.execute(select(func.count()).select_from(appointment_status_reversions))
    return result.scalar_one()


@pytest.mark.asyncio
async def test_revert_completed_restores_session_and_reopens_order(
    db_session: AsyncSession, patient_id, make_order, make_appointment
):
    order_id = await make_order(patient_id, total_sessions=1)
    appointment_id = await make_appointment(patient_id, status="completed")
    await AssignmentService(db_session).assign(appointment_id, order_id)
    assert await _order_state(db_session, order_id) == (1, True)

    actor_id = uuid4()
    result = await StatusReversalService(db_session).revert(
        appointment_id, "Marked complete by mistake", actor_id
    )

    assert result.appointment.status == AppointmentStatus.SCHEDULED
    assert result.session_restored is True
    assert result.medical_order_id == order_id
    assert result.reversion.previous_status == AppointmentStatus.COMPLETED
    assert result.reversion.new_status == AppointmentStatus.SCHEDULED
    assert result.reversion.reverted_by == actor_id
    assert await _order_state(db_session, order_id) == (0, False)


@pytest.mark.asyncio
async def test_revert_session_lost_no_show_restores_session(
    db_session: AsyncSession, patient_id, make_order, make_appointment
):
    order_id = await make_order(patient_id, total_sessions=3)
    appointment_id = await make_appointment(patient_id, status="no_show_session_lost")
    await AssignmentService(db_session).assign(appointment_id, order_id)
    assert await _order_state(db_session, order_id) == (1, False)

    result = await StatusReversalService(db_session).revert(appointment_id, "Patient did attend")

    assert result.session_restored is True
    assert await _order_state(db_session, order_id) == (0, False)


@pytest.mark.asyncio
async def test_revert_cancelled_touches_no_session(
    db_session: AsyncSession, patient_id, make_order, make_appointment
):
    order_id = await make_order(patient_id, total_sessions=3)
    appointment_id = await make_appointment(patient_id, status="cancelled")
    await AssignmentService(db_session).assign(appointment_id, order_id)

    result = await StatusReversalService(db_session).revert(appointment_id, "Cancelled by mistake")

    assert result.session_restored is False
    assert result.appointment.status == AppointmentStatus.SCHEDULED
    assert await _order_state(db_session, order_id) == (0, False)


@pytest.mark.asyncio
async def test_revert_unbound_completed_appointment(
    db_session: AsyncSession, patient_id, make_appointment
):
    appointment_id = await make_appointment(patient_id, status="completed")

    result = await StatusReversalService(db_session).revert(appointment_id, "Wrong patient")

    assert result.session_restored is False
    assert result.medical_order_id is None
    assert await _reversion_count(db_session) == 1


@pytest.mark.asyncio
@pytest.mark.parametrize("reason", ["", "   ", None])
async def test_revert_requires_reason(
    db_session: AsyncSession, patient_id, make_order, make_appointment, reason
):
    order_id = await make_order(patient_id, total_sessions=1)
    appointment_id = await make_appointment(patient_id, status="completed")
    await AssignmentService(db_session).assign(appointment_id, order_id)

    with pytest.raises(ValidationException):
        await StatusReversalService(db_session).revert(appointment_id, reason)

    assert await _reversion_count(db_session) == 0
    appointment = await AppointmentService(db_session).get_appointment(appointment_id)
    assert appointment.status == AppointmentStatus.COMPLETED
    assert await _order_state(db_session, order_id) == (1, True)


@pytest.mark.asyncio
async def test_revert_clears_pardon_so_next_no_show_counts(
    db_session: AsyncSession, patient_id, make_order, make_appointment
):
    order_id = await make_order(patient_id, total_sessions=3)
    appointment_id = await make_appointment(patient_id, status="no_show_session_lost")
    await AssignmentService(db_session).assign(appointment_id, order_id)
    appointment_service = AppointmentService(db_session)

    await appointment_service.reset_no_shows(patient_id, actor_id=uuid4())
    assert await _order_state(db_session, order_id) == (0, False)

    result = await StatusReversalService(db_session).revert(appointment_id, "Rebooked")
    assert result.appointment.pardoned_by is None
    assert result.appointment.pardon_reason is None

    await appointment_service.update_appointment_status(
        appointment_id,
        AppointmentStatusUpdate(status=AppointmentStatus.NO_SHOW_SESSION_LOST),
    )

    assert await _order_state(db_session, order_id) == (1, False)
    no_shows = await appointment_service.count_no_shows(patient_id)
    assert no_shows.no_show_count == 1


@pytest.mark.asyncio
@pytest.mark.parametrize("status", ["scheduled", "confirmed", "in_progress", "no_show_rescheduled"])
async def test_revert_rejects_non_revertible_status(
    db_session: AsyncSession, patient_id, make_appointment, status
):
    appointment_id = await make_appointment(patient_id, status=status)

    with pytest.raises(ConflictException):
        await StatusReversalService(db_session).revert(appointment_id, "Undo")

    assert await _reversion_count(db_session) == 0


@pytest.mark.asyncio
async def test_revert_missing_appointment(db_session: AsyncSession):
    with pytest.raises(NotFoundException):
        await StatusReversalService(db_session).revert(uuid4(), "Undo")


@pytest.mark.asyncio
async def test_revert_endpoint_and_history(
    client: AsyncClient, actor_headers: dict, patient_id, make_appointment
):
    appointment_id = await make_appointment(patient_id, status="no_show")

    response = await client.post(
        f"/api/v1/appointments/{appointment_id}/revert",
        json={"reason": "Patient arrived late but was seen"},
        headers=actor_headers,
    )
    assert response.status_code == 200
    data = response.json()
    assert data["appointment"]["status"] == "scheduled"
    assert data["reversion"]["previous_status"] == "no_show"
    assert data["reversion"]["reverted_by"] == actor_headers["X-Actor-Id"]

    response = await client.get(f"/api/v1/appointments/{appointment_id}/reversions")
    assert response.status_code == 200
    history = response.json()
    assert len(history) == 1
    assert history[0]["reason"] == "Patient arrived late but was seen"

    # Already scheduled again, nothing left to revert
    response = await client.post(
        f"/api/v1/appointments/{appointment_id}/revert",
        json={"reason": "Again"},
    )
    assert response.status_code == 409


@pytest.mark.asyncio
async def test_revert_endpoint_rejects_blank_reason(
    client: AsyncClient, patient_id, make_appointment
):
    appointment_id = await make_appointment(patient_id, status="completed")

    response = await client.post(
        f"/api/v1/appointments/{appointment_id}/revert",
        json={"reason": "  "},
    )
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_revert_reopens_full_order(
    db_session: AsyncSession, patient_id, make_order, make_appointment
):
    order_id = await make_order(patient_id, total_sessions=2)
    service = AssignmentService(db_session)
    await service.assign(await make_appointment(patient_id, status="completed"), order_id)
    lost_id = await make_appointment(patient_id, status="no_show_session_lost")
    await service.assign(lost_id, order_id)
    assert await _order_state(db_session, order_id) == (2, True)

    result = await StatusReversalService(db_session).revert(lost_id, "Excused absence")

    assert result.appointment.status == AppointmentStatus.SCHEDULED
    assert await _order_state(db_session, order_id) == (1, False)
