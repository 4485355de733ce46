"""
Seat reservation: validate, claim, record, start checkout.

Flow for one request:
  1. Validate the selection (non-empty, no duplicates, within the layout)
  2. Claim loop (see inventory_service for the optimistic lock):
       read show -> seats free? -> insert booking -> conditional seat-map update
       -> schedule expiry task -> commit
     A version conflict rolls everything back and retries from the read.
  3. Create the checkout session. If that fails for any reason, release the hold
     right away instead of waiting for the expiry task.
  4. Store the redirect URL on the booking and hand it back.
"""

import time
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from quickshow.models.booking import Booking
from quickshow.models.user import User
from quickshow.core.errors import Conflict, NotFound, ValidationFailure
from quickshow.core.logging import get_logger
from quickshow.core.metrics import claim_retries, record_reservation_attempt, reservation_latency
from quickshow.db.base import utcnow
from quickshow.services import booking_service, expiry_service, inventory_service, task_queue
from quickshow.services.container import Services
from quickshow.services.interfaces import CheckoutRequest

logger = get_logger(__name__)


def validate_selection(selected_seats: list[str], max_seats: int) -> list[str]:
    seats = [seat.strip().upper() for seat in selected_seats]
    if not seats:
        raise ValidationFailure("Select at least one seat")
    if any(not seat for seat in seats):
        raise ValidationFailure("Seat identifiers must not be blank")
    if len(set(seats)) != len(seats):
        raise ValidationFailure("Duplicate seats in selection")
    if len(seats) > max_seats:
        raise ValidationFailure(f"At most {max_seats} seats can be booked at once")
    return seats


def _attempt_status(error: Exception) -> str:
    if isinstance(error, ValidationFailure):
        return "invalid"
    if isinstance(error, NotFound):
        return "not_found"
    if isinstance(error, Conflict):
        return "conflict"
    return "error"


def to_minor_units(amount: Decimal) -> int:
    return int((Decimal(amount) * 100).to_integral_value())


async def _claim_and_record(
    db: AsyncSession,
    services: Services,
    show_id: int,
    user_id: str,
    seats: list[str],
    now: datetime,
) -> Booking:
    settings = services.settings

    for attempt in range(1, settings.MAX_CLAIM_ATTEMPTS + 1):
        show = await inventory_service.get_show(db, show_id)
        booking = await booking_service.create_booking(db, user_id, show, seats, created_at=now)

        if not await inventory_service.claim_seats(db, show, seats, holder=user_id):
            claim_retries.inc()
            logger.info("seat_claim_retry", show_id=show_id, attempt=attempt, reason="version_conflict")
            await db.rollback()
            continue

        await task_queue.schedule_task(
            db,
            expiry_service.RELEASE_TASK,
            {"booking_id": booking.id},
            run_at=now + timedelta(minutes=settings.BOOKING_HOLD_MINUTES),
        )
        await db.commit()

        logger.info(
            "reservation_created",
            booking_id=booking.id,
            user_id=user_id,
            show_id=show_id,
            seats=seats,
            amount=str(booking.amount),
            attempt=attempt,
        )
        return booking

    raise Conflict("Booking failed due to high demand. Please try again.")


async def reserve(
    db: AsyncSession,
    services: Services,
    *,
    user_id: str,
    show_id: int,
    selected_seats: list[str],
    origin: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Booking:
    """
    Reserve seats and open a checkout session.
    Returns the booking with `payment_link` set to the checkout redirect URL.
    """
    start = time.perf_counter()
    settings = services.settings
    now = now or utcnow()
    try:
        seats = validate_selection(selected_seats, settings.MAX_SEATS_PER_BOOKING)

        show = await inventory_service.get_show(db, show_id)
        outside = [seat for seat in seats if not show.has_seat(seat)]
        if outside:
            raise ValidationFailure(f"Seats not in this show's layout: {', '.join(outside)}")
        title = show.movie.title if show.movie else f"Show {show_id}"

        if await db.get(User, user_id) is None:
            raise NotFound(f"User {user_id} not found")

        booking = await _claim_and_record(db, services, show_id, user_id, seats, now)
        await services.cache.invalidate_show(show_id)

        base_url = (origin or settings.FRONTEND_URL).rstrip("/")
        try:
            session = await services.payment_gateway.create_checkout_session(CheckoutRequest(
                booking_id=booking.id,
                title=title,
                amount_minor=to_minor_units(booking.amount),
                success_url=f"{base_url}/loading/my-bookings",
                cancel_url=f"{base_url}/my-bookings",
                expires_at=now + timedelta(minutes=settings.CHECKOUT_SESSION_MINUTES),
            ))
        except Exception as e:
            logger.error("checkout_failed_releasing_hold", booking_id=booking.id, show_id=show_id, error=str(e))
            await expiry_service.release_unpaid_booking(db, services, booking.id, reason="gateway_failure")
            raise

        await booking_service.attach_checkout_session(db, booking, session.url, session.id)
        await db.commit()
    except Exception as e:
        await db.rollback()
        record_reservation_attempt(_attempt_status(e))
        raise
    finally:
        reservation_latency.observe(time.perf_counter() - start)

    record_reservation_attempt("success")
    return booking


async def list_occupied_seats(db: AsyncSession, services: Services, show_id: int) -> list[str]:
    """Occupied seat ids for a show, served from cache when possible."""
    cached = await services.cache.get_occupied_seats(show_id)
    if cached is not None:
        return cached

    seats = await inventory_service.list_occupied_seats(db, show_id)
    await services.cache.set_occupied_seats(show_id, seats)
    return seats
