"""
Tests for payment completion and its race with hold expiry.
"""

import pytest
from httpx import AsyncClient
from sqlalchemy import select

from quickshow.core.errors import ValidationFailure
from quickshow.models.booking import Booking
from quickshow.models.scheduled_task import ScheduledTask
from quickshow.services import booking_service, expiry_service, inventory_service, payment_service, reservation_service
from quickshow.services.interfaces import PaymentCompletion


async def _reserve(session_factory, services, user_id: str, show_id: int, seats: list[str]) -> Booking:
    async with session_factory() as db:
        return await reservation_service.reserve(
            db, services, user_id=user_id, show_id=show_id, selected_seats=seats,
        )


@pytest.mark.asyncio
async def test_complete_payment(session_factory, services, test_user, test_show):
    booking = await _reserve(session_factory, services, test_user.id, test_show.id, ["A1"])

    async with session_factory() as db:
        assert await payment_service.complete_payment(db, booking.id) == payment_service.PAID

    async with session_factory() as db:
        paid = await booking_service.get_booking(db, booking.id)
        assert paid.is_paid is True
        assert paid.payment_link == ""

        tasks = (await db.execute(
            select(ScheduledTask).where(ScheduledTask.name == payment_service.CONFIRMATION_TASK)
        )).scalars().all()
    assert [task.payload for task in tasks] == [{"booking_id": booking.id}]


@pytest.mark.asyncio
async def test_duplicate_payment_is_already_paid(session_factory, services, test_user, test_show):
    booking = await _reserve(session_factory, services, test_user.id, test_show.id, ["A1"])

    async with session_factory() as db:
        await payment_service.complete_payment(db, booking.id)
    async with session_factory() as db:
        assert await payment_service.complete_payment(db, booking.id) == payment_service.ALREADY_PAID

    # Only one confirmation queued
    async with session_factory() as db:
        tasks = (await db.execute(
            select(ScheduledTask).where(ScheduledTask.name == payment_service.CONFIRMATION_TASK)
        )).scalars().all()
    assert len(tasks) == 1


@pytest.mark.asyncio
async def test_payment_after_release_is_late(session_factory, services, gateway, test_user, test_show):
    booking = await _reserve(session_factory, services, test_user.id, test_show.id, ["A1"])

    async with session_factory() as db:
        assert await expiry_service.release_unpaid_booking(db, services, booking.id) == expiry_service.RELEASED
    assert gateway.expired == [f"cs_test_{booking.id}"]

    async with session_factory() as db:
        assert await payment_service.complete_payment(db, booking.id) == payment_service.LATE

    async with session_factory() as db:
        assert await booking_service.get_booking(db, booking.id) is None
        assert await inventory_service.list_occupied_seats(db, test_show.id) == []


@pytest.mark.asyncio
async def test_paid_booking_is_never_released(session_factory, services, gateway, test_user, test_show):
    """A booking paid inside the hold window keeps its seats when the release task fires."""
    booking = await _reserve(session_factory, services, test_user.id, test_show.id, ["A1"])

    async with session_factory() as db:
        await payment_service.complete_payment(db, booking.id)

    async with session_factory() as db:
        assert await expiry_service.release_unpaid_booking(db, services, booking.id) == expiry_service.PAID
    async with session_factory() as db:
        assert await expiry_service.release_unpaid_booking(db, services, booking.id) == expiry_service.PAID

    async with session_factory() as db:
        assert await inventory_service.list_occupied_seats(db, test_show.id) == ["A1"]
        assert (await booking_service.get_booking(db, booking.id)).is_paid is True
    assert gateway.expired == []


@pytest.mark.asyncio
async def test_release_loses_race_to_payment(monkeypatch, session_factory, services, test_user, test_show):
    """Payment committing between the release's read and its delete wins."""
    booking = await _reserve(session_factory, services, test_user.id, test_show.id, ["A1"])

    real_delete = booking_service.delete_if_unpaid

    async def pay_first(db, booking_id):
        async with session_factory() as other:
            await payment_service.complete_payment(other, booking_id)
        return await real_delete(db, booking_id)

    monkeypatch.setattr(booking_service, "delete_if_unpaid", pay_first)

    async with session_factory() as db:
        assert await expiry_service.release_unpaid_booking(db, services, booking.id) == expiry_service.PAID

    async with session_factory() as db:
        assert await inventory_service.list_occupied_seats(db, test_show.id) == ["A1"]


def test_parse_booking_id():
    assert payment_service.parse_booking_id("42") == 42
    with pytest.raises(ValidationFailure):
        payment_service.parse_booking_id("not-a-number")
    with pytest.raises(ValidationFailure):
        payment_service.parse_booking_id(None)


@pytest.mark.asyncio
async def test_payment_webhook(client: AsyncClient, auth_headers, test_show, gateway, session_factory):
    reservation = await client.post(
        "/api/v1/bookings/",
        json={"showId": test_show.id, "selectedSeats": ["B1"]},
        headers=auth_headers,
    )
    assert reservation.status_code == 200
    booking_id = gateway.requests[0].booking_id

    gateway.completion = PaymentCompletion(booking_id=str(booking_id), event_id="evt_1")
    response = await client.post(
        "/api/v1/payments/webhook",
        content=b"{}",
        headers={"stripe-signature": "valid"},
    )
    assert response.status_code == 200
    assert response.json() == {"received": True, "outcome": "paid"}

    duplicate = await client.post(
        "/api/v1/payments/webhook",
        content=b"{}",
        headers={"stripe-signature": "valid"},
    )
    assert duplicate.json() == {"received": True, "outcome": "already_paid"}

    bookings = await client.get("/api/v1/bookings/", headers=auth_headers)
    assert bookings.json()[0]["is_paid"] is True


@pytest.mark.asyncio
async def test_payment_webhook_ignores_other_events(client: AsyncClient, gateway):
    gateway.completion = None
    response = await client.post(
        "/api/v1/payments/webhook",
        content=b"{}",
        headers={"stripe-signature": "valid"},
    )
    assert response.status_code == 200
    assert response.json() == {"received": True}


@pytest.mark.asyncio
async def test_payment_webhook_bad_signature(client: AsyncClient):
    response = await client.post(
        "/api/v1/payments/webhook",
        content=b"{}",
        headers={"stripe-signature": "forged"},
    )
    assert response.status_code == 422
    assert response.json() == {"success": False, "message": "Invalid webhook signature"}
