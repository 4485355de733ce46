"""
Hold expiry: release seats of bookings that were never paid.

Runs from the `release-unpaid-booking` task BOOKING_HOLD_MINUTES after the
reservation, and synchronously when checkout creation fails.

Order of operations inside one transaction:
  1. DELETE the booking WHERE is_paid = false
  2. only if that removed the row, free the booking's seats

A payment that commits before step 1 makes the delete a no-op and the seats
stay held. A payment that arrives after the commit finds no booking and is
reported as late by the payment service.
"""

from sqlalchemy.ext.asyncio import AsyncSession

from quickshow.core.errors import UpstreamFailure
from quickshow.core.logging import get_logger
from quickshow.core.metrics import record_hold_released
from quickshow.services import booking_service, inventory_service
from quickshow.services.container import Services

logger = get_logger(__name__)

RELEASE_TASK = "release-unpaid-booking"

RELEASED = "released"
PAID = "paid"
MISSING = "missing"


async def release_unpaid_booking(
    db: AsyncSession,
    services: Services,
    booking_id: int,
    reason: str = "expired",
) -> str:
    """
    Release the hold of an unpaid booking and delete it. Commits.

    Returns "released", "paid" (kept) or "missing" (already released).
    """
    booking = await booking_service.get_booking(db, booking_id)
    if booking is None:
        logger.info("hold_release_skipped", booking_id=booking_id, reason="booking_missing")
        return MISSING

    if booking.is_paid:
        logger.info("hold_release_skipped", booking_id=booking_id, reason="booking_paid")
        return PAID

    show_id = booking.show_id
    user_id = booking.user_id
    seats = list(booking.booked_seats or [])
    session_id = booking.checkout_session_id

    if not await booking_service.delete_if_unpaid(db, booking_id):
        # Paid (or released) between our read and the delete
        await db.rollback()
        logger.info("hold_release_lost_race", booking_id=booking_id)
        current = await booking_service.get_booking(db, booking_id)
        return PAID if current is not None else MISSING

    released = await inventory_service.release_seats(
        db,
        show_id,
        seats,
        holder=user_id,
        max_attempts=services.settings.MAX_CLAIM_ATTEMPTS,
    )
    await db.commit()
    await services.cache.invalidate_show(show_id)

    record_hold_released(reason)
    logger.info(
        "hold_released",
        booking_id=booking_id,
        show_id=show_id,
        seats=released,
        reason=reason,
    )

    if session_id:
        try:
            await services.payment_gateway.expire_checkout_session(session_id)
        except UpstreamFailure as e:
            # The session times out on its own; a payment through it is reported as late
            logger.warning("checkout_expire_failed", booking_id=booking_id, session_id=session_id, error=e.message)

    return RELEASED
