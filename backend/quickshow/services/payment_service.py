"""
Payment completion: the unpaid -> paid transition driven by the gateway webhook.

Outcomes:
  paid          booking flipped to paid, confirmation email queued
  already_paid  duplicate delivery, nothing to do
  late          booking was already released by the expiry worker; the
                customer paid for seats they no longer hold, so this is logged
                at error level and counted for follow-up (refund)
"""

from datetime import datetime
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from quickshow.core.errors import ValidationFailure
from quickshow.core.logging import get_logger
from quickshow.core.metrics import record_payment_outcome
from quickshow.db.base import utcnow
from quickshow.services import booking_service, task_queue

logger = get_logger(__name__)

CONFIRMATION_TASK = "send-booking-confirmation"

PAID = "paid"
ALREADY_PAID = "already_paid"
LATE = "late"


def parse_booking_id(raw) -> int:
    try:
        return int(raw)
    except (TypeError, ValueError):
        raise ValidationFailure(f"Invalid booking id: {raw!r}")


async def complete_payment(
    db: AsyncSession,
    booking_id: int,
    now: Optional[datetime] = None,
    gateway_event_id: Optional[str] = None,
) -> str:
    """Mark a booking paid and queue its confirmation. Commits."""
    now = now or utcnow()

    if await booking_service.mark_paid(db, booking_id):
        await task_queue.schedule_task(db, CONFIRMATION_TASK, {"booking_id": booking_id}, run_at=now)
        await db.commit()
        record_payment_outcome(PAID)
        logger.info("payment_completed", booking_id=booking_id, gateway_event_id=gateway_event_id)
        return PAID

    await db.rollback()
    booking = await booking_service.get_booking(db, booking_id)
    if booking is None:
        record_payment_outcome(LATE)
        logger.error(
            "payment_late",
            booking_id=booking_id,
            gateway_event_id=gateway_event_id,
            reason="booking_released_before_payment",
        )
        return LATE

    record_payment_outcome(ALREADY_PAID)
    logger.warning("payment_duplicate", booking_id=booking_id, gateway_event_id=gateway_event_id)
    return ALREADY_PAID
