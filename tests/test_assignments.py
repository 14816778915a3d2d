"""Tests for binding appointments to medical orders."""

from uuid import uuid4

import pytest
from httpx import AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import BadRequestException, ConflictException, NotFoundException
from app.models import appointment_order_assignments, medical_orders
from app.services.assignment_service import AssignmentService


async def _sessions_used(db: AsyncSession, order_id) -> tuple[int, bool]:
    result = await db.execute(
        select(medical_orders.c.sessions_used, medical_orders.c.completed).where(
            medical_orders.c.id == order_id
        )
    )
    row = result.one()
    return row.sessions_used, row.completed


@pytest.mark.asyncio
async def test_assign_counts_completed_appointment(
    db_session: AsyncSession, patient_id, make_order, make_appointment
):
    order_id = await make_order(patient_id, total_sessions=3)
    appointment_id = await make_appointment(patient_id, status="completed")
    actor_id = uuid4()

    result = await AssignmentService(db_session).assign(appointment_id, order_id, actor_id)

    assert result.medical_order_id == order_id
    assert result.previous_order_id is None
    assert await _sessions_used(db_session, order_id) == (1, False)

    assignment = await AssignmentService(db_session).get_assignment(appointment_id)
    assert assignment is not None
    assert assignment.assigned_by == actor_id
    assert assignment.total_sessions == 3


@pytest.mark.asyncio
async def test_assign_same_pair_twice_counts_once(
    db_session: AsyncSession, patient_id, make_order, make_appointment
):
    order_id = await make_order(patient_id, total_sessions=3)
    appointment_id = await make_appointment(patient_id, status="completed")
    service = AssignmentService(db_session)

    await service.assign(appointment_id, order_id)
    await service.assign(appointment_id, order_id)

    assert await _sessions_used(db_session, order_id) == (1, False)
    rows = (await db_session.execute(select(appointment_order_assignments))).fetchall()
    assert len(rows) == 1


@pytest.mark.asyncio
async def test_reassign_recomputes_both_orders(
    db_session: AsyncSession, patient_id, make_order, make_appointment
):
    """Moving the only session off a full order reopens it."""
    first_order = await make_order(patient_id, total_sessions=1)
    second_order = await make_order(patient_id, total_sessions=2)
    appointment_id = await make_appointment(patient_id, status="completed")
    service = AssignmentService(db_session)

    await service.assign(appointment_id, first_order)
    assert await _sessions_used(db_session, first_order) == (1, True)

    result = await service.reassign(appointment_id, second_order)

    assert result.previous_order_id == first_order
    assert await _sessions_used(db_session, first_order) == (0, False)
    assert await _sessions_used(db_session, second_order) == (1, False)


@pytest.mark.asyncio
async def test_reassign_to_same_completed_order_is_allowed(
    db_session: AsyncSession, patient_id, make_order, make_appointment
):
    order_id = await make_order(patient_id, total_sessions=1)
    appointment_id = await make_appointment(patient_id, status="completed")
    service = AssignmentService(db_session)

    await service.assign(appointment_id, order_id)
    await service.assign(appointment_id, order_id)

    assert await _sessions_used(db_session, order_id) == (1, True)


@pytest.mark.asyncio
async def test_assign_to_completed_order_is_rejected(
    db_session: AsyncSession, patient_id, make_order, make_appointment
):
    order_id = await make_order(patient_id, total_sessions=1, sessions_used=1, completed=True)
    appointment_id = await make_appointment(patient_id, status="completed")

    with pytest.raises(ConflictException):
        await AssignmentService(db_session).assign(appointment_id, order_id)

    assert await AssignmentService(db_session).get_bound_order_id(appointment_id) is None


@pytest.mark.asyncio
async def test_assign_rejects_order_of_other_patient(
    db_session: AsyncSession, patient_id, make_order, make_appointment
):
    order_id = await make_order(uuid4())
    appointment_id = await make_appointment(patient_id)

    with pytest.raises(BadRequestException):
        await AssignmentService(db_session).assign(appointment_id, order_id)


@pytest.mark.asyncio
async def test_assign_missing_records(
    db_session: AsyncSession, patient_id, make_order, make_appointment
):
    order_id = await make_order(patient_id)
    appointment_id = await make_appointment(patient_id)
    service = AssignmentService(db_session)

    with pytest.raises(NotFoundException):
        await service.assign(uuid4(), order_id)
    with pytest.raises(NotFoundException):
        await service.assign(appointment_id, uuid4())


@pytest.mark.asyncio
async def test_remove_frees_session_and_is_repeatable(
    db_session: AsyncSession, patient_id, make_order, make_appointment
):
    order_id = await make_order(patient_id, total_sessions=1)
    appointment_id = await make_appointment(patient_id, status="completed")
    service = AssignmentService(db_session)
    await service.assign(appointment_id, order_id)

    result = await service.remove(appointment_id)
    assert result.previous_order_id == order_id
    assert result.medical_order_id is None
    assert await _sessions_used(db_session, order_id) == (0, False)

    again = await service.remove(appointment_id)
    assert again.previous_order_id is None
    assert await service.get_assignment(appointment_id) is None


@pytest.mark.asyncio
async def test_remove_missing_appointment(db_session: AsyncSession):
    with pytest.raises(NotFoundException):
        await AssignmentService(db_session).remove(uuid4())


@pytest.mark.asyncio
async def test_assignment_endpoints(
    client: AsyncClient, actor_headers: dict, patient_id, make_order, make_appointment
):
    order_id = await make_order(patient_id, total_sessions=2)
    appointment_id = await make_appointment(patient_id, status="completed")

    response = await client.get(f"/api/v1/appointments/{appointment_id}/assignment")
    assert response.status_code == 404

    response = await client.put(
        f"/api/v1/appointments/{appointment_id}/assignment",
        json={"medical_order_id": str(order_id)},
        headers=actor_headers,
    )
    assert response.status_code == 200
    data = response.json()
    assert data["medical_order_id"] == str(order_id)
    assert data["recalc"]["orders"][0]["sessions_used"] == 1

    response = await client.get(f"/api/v1/appointments/{appointment_id}/assignment")
    assert response.status_code == 200
    assert response.json()["assigned_by"] == actor_headers["X-Actor-Id"]

    response = await client.delete(f"/api/v1/appointments/{appointment_id}/assignment")
    assert response.status_code == 200
    assert response.json()["previous_order_id"] == str(order_id)

    response = await client.get(f"/api/v1/medical-orders/{order_id}/sessions")
    assert response.status_code == 200
    assert response.json()["sessions_used"] == 0
    assert response.json()["sessions_remaining"] == 2


@pytest.mark.asyncio
async def test_invalid_actor_header_is_rejected(
    client: AsyncClient, patient_id, make_order, make_appointment
):
    order_id = await make_order(patient_id)
    appointment_id = await make_appointment(patient_id)

    response = await client.put(
        f"/api/v1/appointments/{appointment_id}/assignment",
        json={"medical_order_id": str(order_id)},
        headers={"X-Actor-Id": "not-a-uuid"},
    )
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_medical_order_endpoints(client: AsyncClient, patient_id):
    response = await client.post(
        "/api/v1/medical-orders/",
        json={
            "patient_id": str(patient_id),
            "description": "Speech therapy",
            "total_sessions": 10,
            "order_date": "2026-02-01",
            "doctor_name": "Dr. Ortega",
        },
    )
    assert response.status_code == 201
    order = response.json()
    assert order["sessions_used"] == 0
    assert order["completed"] is False

    response = await client.get(f"/api/v1/medical-orders/{order['id']}")
    assert response.status_code == 200
    assert response.json()["description"] == "Speech therapy"

    response = await client.get(f"/api/v1/medical-orders/{uuid4()}")
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_create_medical_order_rejects_zero_sessions(client: AsyncClient, patient_id):
    response = await client.post(
        "/api/v1/medical-orders/",
        json={
            "patient_id": str(patient_id),
            "description": "Physiotherapy",
            "total_sessions": 0,
            "order_date": "2026-02-01",
        },
    )
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_open_orders_listed_oldest_first(
    client: AsyncClient, patient_id, make_order
):
    from datetime import date

    newer = await make_order(patient_id, order_date=date(2026, 5, 1))
    older = await make_order(patient_id, order_date=date(2026, 1, 1))
    await make_order(patient_id, completed=True, sessions_used=3)

    response = await client.get(f"/api/v1/patients/{patient_id}/open-orders")
    assert response.status_code == 200
    assert [order["id"] for order in response.json()] == [str(older), str(newer)]


@pytest.mark.asyncio
async def test_completed_appointments_and_recalculate_endpoint(
    client: AsyncClient, db_session: AsyncSession, patient_id, make_order, make_appointment
):
    order_id = await make_order(patient_id, total_sessions=2)
    bound = await make_appointment(patient_id, status="completed")
    unbound = await make_appointment(patient_id, status="completed")
    await make_appointment(patient_id, status="scheduled")
    await AssignmentService(db_session).upsert_binding(bound, order_id)
    await db_session.commit()

    response = await client.get(f"/api/v1/patients/{patient_id}/completed-appointments")
    assert response.status_code == 200
    by_id = {item["id"]: item for item in response.json()}
    assert set(by_id) == {str(bound), str(unbound)}
    assert by_id[str(bound)]["medical_order_id"] == str(order_id)
    assert by_id[str(unbound)]["medical_order_id"] is None

    response = await client.post(f"/api/v1/patients/{patient_id}/recalculate-sessions")
    assert response.status_code == 200
    assert response.json()["orders"][0]["sessions_used"] == 1
    assert response.json()["failures"] == []


@pytest.mark.asyncio
async def test_reassign_moves_one_session_between_orders(
    db_session: AsyncSession, patient_id, make_order, make_appointment
):
    order_a = await make_order(patient_id, total_sessions=5)
    order_b = await make_order(patient_id, total_sessions=5)
    service = AssignmentService(db_session)
    counted = []
    for _ in range(3):
        appointment_id = await make_appointment(patient_id, status="completed")
        await service.assign(appointment_id, order_a)
        counted.append(appointment_id)
    assert await _sessions_used(db_session, order_a) == (3, False)

    await service.reassign(counted[0], order_b)

    assert await _sessions_used(db_session, order_a) == (2, False)
    assert await _sessions_used(db_session, order_b) == (1, False)
    assignment = await service.get_assignment(counted[0])
    assert assignment.medical_order_id == order_b
