"""
Tests for show scheduling.
"""

from datetime import datetime, timedelta, timezone

import pytest
from httpx import AsyncClient

from quickshow.services.notification_service import NEW_SHOW_TASK
from quickshow.workers.task_worker import TaskWorker


def _show_payload(**overrides) -> dict:
    payload = {
        "movie_id": "tt1160419",
        "movie_title": "Dune",
        "show_datetime": (datetime.now(timezone.utc) + timedelta(days=2)).isoformat(),
        "show_price": "12.50",
    }
    payload.update(overrides)
    return payload


@pytest.mark.asyncio
async def test_create_show(client: AsyncClient, admin_headers):
    response = await client.post("/api/v1/shows/", json=_show_payload(), headers=admin_headers)
    assert response.status_code == 201
    data = response.json()
    assert data["movie_id"] == "tt1160419"
    assert data["seat_rows"] == "ABCDEFGHIJ"
    assert data["seats_per_row"] == 9

    seats = await client.get(f"/api/v1/bookings/seats/{data['id']}")
    assert seats.json()["occupiedSeats"] == []


@pytest.mark.asyncio
async def test_create_show_announces_to_users(
    client: AsyncClient, admin_headers, session_factory, services, email_sender, test_user, other_user
):
    response = await client.post("/api/v1/shows/", json=_show_payload(), headers=admin_headers)
    assert response.status_code == 201

    worker = TaskWorker(session_factory, services)
    assert await worker.run_once() == 1

    assert sorted(message["to"] for message in email_sender.sent) == ["user_1@example.com", "user_2@example.com"]
    assert all("Dune" in message["subject"] for message in email_sender.sent)


@pytest.mark.asyncio
async def test_create_show_requires_admin(client: AsyncClient, auth_headers):
    response = await client.post("/api/v1/shows/", json=_show_payload(), headers=auth_headers)
    assert response.status_code == 403
    assert response.json() == {"success": False, "message": "Admin access required"}


@pytest.mark.asyncio
async def test_create_show_in_past(client: AsyncClient, admin_headers):
    past = (datetime.now(timezone.utc) - timedelta(hours=1)).isoformat()
    response = await client.post("/api/v1/shows/", json=_show_payload(show_datetime=past), headers=admin_headers)
    assert response.status_code == 422
    assert response.json()["message"] == "Show time must be in the future"


@pytest.mark.asyncio
async def test_create_show_invalid_price(client: AsyncClient, admin_headers):
    response = await client.post("/api/v1/shows/", json=_show_payload(show_price="-1"), headers=admin_headers)
    assert response.status_code == 422
    assert response.json()["success"] is False


def test_new_show_task_name():
    assert NEW_SHOW_TASK == "send-new-show-notification"
