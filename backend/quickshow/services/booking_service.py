"""
Booking ledger.

State transitions are single conditional statements on the booking row:

  mark_paid:        UPDATE bookings SET is_paid = true  WHERE id = :id AND is_paid = false
  delete_if_unpaid: DELETE FROM bookings                WHERE id = :id AND is_paid = false

Payment completion and hold expiry can run at the same moment for the same
booking. Whichever statement commits first wins; the other affects zero rows
and its caller decides what that means.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import joinedload

from quickshow.models.booking import Booking
from quickshow.models.show import Show
from quickshow.core.logging import get_logger

logger = get_logger(__name__)


async def create_booking(
    db: AsyncSession,
    user_id: str,
    show: Show,
    seats: list[str],
    created_at: datetime,
) -> Booking:
    """Add an unpaid booking to the session. Does not commit."""
    booking = Booking(
        user_id=user_id,
        show_id=show.id,
        booked_seats=list(seats),
        amount=Decimal(str(show.show_price)) * len(seats),
        is_paid=False,
        created_at=created_at,
        updated_at=created_at,
    )
    db.add(booking)
    await db.flush()
    return booking


async def get_booking(db: AsyncSession, booking_id: int) -> Optional[Booking]:
    result = await db.execute(
        select(Booking)
        .where(Booking.id == booking_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def get_booking_details(db: AsyncSession, booking_id: int) -> Optional[Booking]:
    """Booking with its user, show and movie loaded, for rendering messages."""
    result = await db.execute(
        select(Booking)
        .where(Booking.id == booking_id)
        .options(
            joinedload(Booking.user),
            joinedload(Booking.show).joinedload(Show.movie),
        )
    )
    return result.scalar_one_or_none()


async def attach_checkout_session(db: AsyncSession, booking: Booking, url: str, session_id: str) -> None:
    booking.payment_link = url
    booking.checkout_session_id = session_id
    await db.flush()


async def mark_paid(db: AsyncSession, booking_id: int) -> bool:
    """Flip unpaid -> paid. Returns False if the booking is gone or already paid."""
    result = await db.execute(
        update(Booking)
        .where(Booking.id == booking_id, Booking.is_paid.is_(False))
        .values(is_paid=True, payment_link="")
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


async def delete_if_unpaid(db: AsyncSession, booking_id: int) -> bool:
    """Delete an unpaid booking. Returns False if it was paid or already deleted."""
    result = await db.execute(
        delete(Booking)
        .where(Booking.id == booking_id, Booking.is_paid.is_(False))
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


async def get_user_bookings(db: AsyncSession, user_id: str) -> list[Booking]:
    """Get all bookings for a user."""
    result = await db.execute(
        select(Booking)
        .where(Booking.user_id == user_id)
        .order_by(Booking.created_at.desc())
    )
    return list(result.scalars().all())
