"""
Payment gateway webhook.
"""

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from quickshow.api.dependencies import get_services
from quickshow.db.session import get_db
from quickshow.services import payment_service
from quickshow.services.container import Services
from quickshow.core.logging import get_logger

logger = get_logger(__name__)
router = APIRouter(prefix="/payments", tags=["Payments"])


@router.post("/webhook")
async def payment_webhook(
    request: Request,
    db: AsyncSession = Depends(get_db),
    services: Services = Depends(get_services),
):
    """
    Checkout completion signal.

    A late payment (hold already released) is acknowledged with 200 so the
    gateway stops retrying; it is reported through logs and metrics instead.
    """
    payload = await request.body()
    completion = services.payment_gateway.parse_completion(
        payload, request.headers.get("stripe-signature")
    )
    if completion is None:
        return {"received": True}

    booking_id = payment_service.parse_booking_id(completion.booking_id)
    outcome = await payment_service.complete_payment(db, booking_id, gateway_event_id=completion.event_id)
    return {"received": True, "outcome": outcome}
