"""
Tests for show reminders, new-show announcements and message rendering.
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from conftest import add_show, add_user
from quickshow.services import notification_service
from quickshow.services.notification_service import ReminderMessage


@pytest.mark.asyncio
async def test_reminders_for_shows_in_window(db_session, services, email_sender):
    """Eight shows start inside the window; only the occupied ones produce reminders."""
    now = datetime(2026, 5, 1, 6, 0, tzinfo=timezone.utc)
    start = now + timedelta(hours=8)

    for user_id in ["u1", "u2", "u3", "u4", "u5"]:
        await add_user(db_session, user_id, name=user_id.upper())

    occupants = {
        0: {"A1": "u1", "A2": "u1", "B1": "u2"},
        3: {"C1": "u3"},
        6: {"D1": "u4", "D2": "u4"},
    }
    for index in range(8):
        await add_show(
            db_session,
            show_datetime=start - timedelta(minutes=index),
            movie_id=f"movie_{index}",
            title=f"Movie {index}",
            occupied_seats=occupants.get(index),
        )
    # Occupied but outside the window on either side
    await add_show(db_session, show_datetime=start + timedelta(minutes=1), movie_id="late", occupied_seats={"E1": "u5"})
    await add_show(db_session, show_datetime=start - timedelta(minutes=11), movie_id="early", occupied_seats={"E2": "u5"})

    result = await notification_service.send_show_reminders(db_session, services, now)

    assert result == {"sent": 4, "failed": 0, "message": "Sent 4 reminders and failed to send 0 reminders"}
    recipients = sorted(message["to"] for message in email_sender.sent)
    assert recipients == ["u1@example.com", "u2@example.com", "u3@example.com", "u4@example.com"]

    u1_message = next(m for m in email_sender.sent if m["to"] == "u1@example.com")
    assert u1_message["subject"] == 'Reminder: Your Show "Movie 0" starts soon!'
    assert "A1, A2" in u1_message["body"]
    assert "B1" not in u1_message["body"]


@pytest.mark.asyncio
async def test_reminder_failures_are_counted(db_session, services, email_sender):
    now = datetime(2026, 5, 1, 6, 0, tzinfo=timezone.utc)
    await add_user(db_session, "u1")
    await add_user(db_session, "u2")
    await add_show(
        db_session,
        show_datetime=now + timedelta(hours=8),
        occupied_seats={"A1": "u1", "A2": "u2"},
    )

    email_sender.failing.add("u2@example.com")
    result = await notification_service.send_show_reminders(db_session, services, now)

    assert result["sent"] == 1
    assert result["failed"] == 1
    assert result["message"] == "Sent 1 reminders and failed to send 1 reminders"


@pytest.mark.asyncio
async def test_no_reminders_outside_window(db_session, services, email_sender):
    now = datetime(2026, 5, 1, 6, 0, tzinfo=timezone.utc)
    await add_user(db_session, "u1")
    await add_show(db_session, show_datetime=now + timedelta(hours=2), occupied_seats={"A1": "u1"})

    result = await notification_service.send_show_reminders(db_session, services, now)

    assert result == {"sent": 0, "failed": 0, "message": "No reminders to send"}
    assert email_sender.sent == []


@pytest.mark.asyncio
async def test_new_show_notification(db_session, services, email_sender):
    for user_id in ["u1", "u2", "u3"]:
        await add_user(db_session, user_id)
    email_sender.failing.add("u2@example.com")

    result = await notification_service.send_new_show_notification(db_session, services, "Dune")

    assert result == {"sent": 2, "failed": 1, "message": "Notification sent"}
    assert {message["to"] for message in email_sender.sent} == {"u1@example.com", "u3@example.com"}
    assert email_sender.sent[0]["subject"] == '\U0001F3AC New Show Added : "Dune"'


@pytest.mark.asyncio
async def test_confirmation_for_missing_booking(db_session, services, email_sender):
    result = await notification_service.send_booking_confirmation(db_session, services, 12345)
    assert result == {"sent": 0, "failed": 0}
    assert email_sender.sent == []


def test_render_confirmation_uses_display_timezone():
    when = datetime(2026, 5, 1, 14, 30, tzinfo=timezone.utc)
    body = notification_service.render_confirmation(
        "Ada", "Dune", when, ["A1", "A2"], Decimal("20.00"), "usd", "Asia/Kolkata",
    )
    # 14:30 UTC is 20:00 in India
    assert "05/01/2026" in body
    assert "8:00 PM" in body
    assert "20.00 USD" in body


def test_render_escapes_user_content():
    message = ReminderMessage(
        email="x@example.com",
        name="<script>",
        movie_title="Tom & Jerry",
        show_datetime=datetime(2026, 5, 1, tzinfo=timezone.utc),
        seats=["A1"],
    )
    body = notification_service.render_reminder(message, "UTC")
    assert "<script>" not in body
    assert "Tom &amp; Jerry" in body
