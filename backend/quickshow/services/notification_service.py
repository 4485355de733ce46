"""
Customer notifications: booking confirmation, new-show announcement and
show reminders. All three run from the task worker, never from a request.

A failed send for one recipient never stops delivery to the others; each
job reports how many messages went out and how many failed.
"""

import asyncio
from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime, timedelta
from html import escape
from zoneinfo import ZoneInfo

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from quickshow.models.show import Show
from quickshow.models.user import User
from quickshow.core.errors import UpstreamFailure
from quickshow.core.logging import get_logger
from quickshow.core.metrics import record_notification
from quickshow.db.base import as_utc
from quickshow.services import booking_service
from quickshow.services.container import Services

logger = get_logger(__name__)

NEW_SHOW_TASK = "send-new-show-notification"
REMINDER_TASK = "send-show-reminders"

_LAYOUT = """
<div style="font-family: sans-serif; max-width: 600px; margin: 0 auto; padding: 20px; border: 1px solid #ddd; border-radius: 8px;">
    <h1 style="color: #22c55e;">{heading}</h1>
    <h2 style="color: #22c55e;">Hi {name}</h2>
    <p>{intro}</p>
    <div style="margin: 20px 0; padding: 15px; background-color: #f9f9f9; border-radius: 6px;">
        <h3 style="margin-top: 0;">{title}</h3>
        {details}
    </div>
    <p>{outro}</p>
    <p>Best regards,<br>QuickShow Team</p>
</div>
"""


@dataclass
class ReminderMessage:
    email: str
    name: str
    movie_title: str
    show_datetime: datetime
    seats: list[str]


def _format_when(value: datetime, tz_name: str) -> tuple[str, str]:
    local = as_utc(value).astimezone(ZoneInfo(tz_name))
    return local.strftime("%m/%d/%Y"), local.strftime("%I:%M %p").lstrip("0")


def render_confirmation(name: str, title: str, when: datetime, seats: list[str], amount, currency: str, tz_name: str) -> str:
    date, clock = _format_when(when, tz_name)
    details = (
        f"<p><strong>Date:</strong> {date}</p>"
        f"<p><strong>Time:</strong> {clock}</p>"
        f"<p><strong>Seats:</strong> {escape(', '.join(seats))}</p>"
        f"<p><strong>Total Amount:</strong> {amount} {escape(currency.upper())}</p>"
    )
    return _LAYOUT.format(
        heading="Booking Confirmed!",
        name=escape(name),
        intro="Thank you for booking your tickets with QuickShow. Here are your details:",
        title=escape(title),
        details=details,
        outro="We look forward to seeing you at the cinema!",
    )


def render_reminder(message: ReminderMessage, tz_name: str) -> str:
    date, clock = _format_when(message.show_datetime, tz_name)
    details = (
        f"<p><strong>Date:</strong> {date}</p>"
        f"<p><strong>Time:</strong> {clock}</p>"
        f"<p><strong>Seats:</strong> {escape(', '.join(message.seats))}</p>"
    )
    return _LAYOUT.format(
        heading=f"Reminder: Your Show \"{escape(message.movie_title)}\" starts soon!",
        name=escape(message.name),
        intro="Here are your show details:",
        title=escape(message.movie_title),
        details=details,
        outro="Don't miss out to watch your favorite movie!",
    )


def render_new_show(name: str, movie_title: str) -> str:
    return _LAYOUT.format(
        heading="New Show Added!",
        name=escape(name),
        intro="A new show has been added to QuickShow:",
        title=escape(movie_title),
        details="<p>Check out the latest shows and book your tickets now!</p>",
        outro="",
    )


async def send_booking_confirmation(db: AsyncSession, services: Services, booking_id: int) -> dict:
    """
    Email the booking owner. A send failure propagates so the task worker
    can retry the job.
    """
    booking = await booking_service.get_booking_details(db, booking_id)
    if booking is None or booking.user is None or booking.show is None:
        logger.warning("confirmation_skipped", booking_id=booking_id, reason="booking_missing")
        return {"sent": 0, "failed": 0}

    settings = services.settings
    title = booking.show.movie.title if booking.show.movie else f"Show {booking.show_id}"
    body = render_confirmation(
        booking.user.name,
        title,
        booking.show.show_datetime,
        list(booking.booked_seats or []),
        booking.amount,
        settings.CURRENCY,
        settings.DISPLAY_TIMEZONE,
    )
    try:
        await services.email_sender.send(
            to=booking.user.email,
            subject=f"Payment Confirmation : \"{title}\" booked!",
            body=body,
        )
    except UpstreamFailure:
        record_notification("confirmation", sent=0, failed=1)
        raise

    record_notification("confirmation", sent=1)
    logger.info("confirmation_sent", booking_id=booking_id, user_id=booking.user_id)
    return {"sent": 1, "failed": 0}


async def send_new_show_notification(db: AsyncSession, services: Services, movie_title: str) -> dict:
    """Announce a new show to every user, one message at a time."""
    result = await db.execute(select(User).order_by(User.created_at.asc()))
    users = list(result.scalars().all())

    sent = failed = 0
    for user in users:
        try:
            await services.email_sender.send(
                to=user.email,
                subject=f"\U0001F3AC New Show Added : \"{movie_title}\"",
                body=render_new_show(user.name, movie_title),
            )
            sent += 1
        except UpstreamFailure as e:
            failed += 1
            logger.warning("new_show_notification_failed", user_id=user.id, error=e.message)

    record_notification("new_show", sent=sent, failed=failed)
    logger.info("new_show_notifications_sent", movie_title=movie_title, sent=sent, failed=failed)
    return {"sent": sent, "failed": failed, "message": "Notification sent"}


async def collect_reminders(db: AsyncSession, services: Services, now: datetime) -> list[ReminderMessage]:
    settings = services.settings
    window_end = now + timedelta(hours=settings.REMINDER_LEAD_HOURS)
    window_start = window_end - timedelta(minutes=settings.REMINDER_WINDOW_MINUTES)

    result = await db.execute(
        select(Show)
        .where(Show.show_datetime >= window_start, Show.show_datetime <= window_end)
        .order_by(Show.show_datetime.asc())
    )
    shows = list(result.scalars().all())

    messages = []
    for show in shows:
        occupied = show.occupied_seats or {}
        if show.movie is None or not occupied:
            continue

        seats_by_user = defaultdict(list)
        for seat, holder in occupied.items():
            seats_by_user[holder].append(seat)

        users = await db.execute(select(User).where(User.id.in_(list(seats_by_user))))
        for user in users.scalars():
            messages.append(ReminderMessage(
                email=user.email,
                name=user.name,
                movie_title=show.movie.title,
                show_datetime=show.show_datetime,
                seats=sorted(seats_by_user[user.id]),
            ))
    return messages


async def send_show_reminders(db: AsyncSession, services: Services, now: datetime) -> dict:
    """Remind holders of shows starting in about REMINDER_LEAD_HOURS hours."""
    messages = await collect_reminders(db, services, now)
    if not messages:
        return {"sent": 0, "failed": 0, "message": "No reminders to send"}

    tz_name = services.settings.DISPLAY_TIMEZONE
    results = await asyncio.gather(
        *(
            services.email_sender.send(
                to=message.email,
                subject=f"Reminder: Your Show \"{message.movie_title}\" starts soon!",
                body=render_reminder(message, tz_name),
            )
            for message in messages
        ),
        return_exceptions=True,
    )

    failed = 0
    for message, outcome in zip(messages, results):
        if isinstance(outcome, Exception):
            failed += 1
            logger.warning("reminder_failed", to=message.email, error=str(outcome))
    sent = len(results) - failed

    record_notification("reminder", sent=sent, failed=failed)
    logger.info("reminders_sent", sent=sent, failed=failed)
    return {
        "sent": sent,
        "failed": failed,
        "message": f"Sent {sent} reminders and failed to send {failed} reminders",
    }
