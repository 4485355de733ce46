"""
Stripe Checkout adapter.

The Stripe SDK is synchronous, so calls run in a worker thread to keep the
event loop free while the HTTP round-trip is in flight.
"""

import asyncio
from typing import Optional

import stripe

from quickshow.core.errors import UpstreamFailure, ValidationFailure
from quickshow.core.logging import get_logger
from quickshow.services.interfaces.payment_gateway import (
    PaymentGateway,
    CheckoutRequest,
    CheckoutSession,
    PaymentCompletion,
)

logger = get_logger(__name__)

COMPLETION_EVENTS = {"checkout.session.completed", "checkout.session.async_payment_succeeded"}


class StripeGateway(PaymentGateway):

    def __init__(self, api_key: str, webhook_secret: str, currency: str = "usd"):
        self._client = stripe.StripeClient(api_key) if api_key else None
        self._webhook_secret = webhook_secret
        self._currency = currency

    def _require_client(self) -> stripe.StripeClient:
        if self._client is None:
            raise UpstreamFailure("Payment gateway is not configured")
        return self._client

    async def create_checkout_session(self, request: CheckoutRequest) -> CheckoutSession:
        client = self._require_client()
        params = {
            "mode": "payment",
            "success_url": request.success_url,
            "cancel_url": request.cancel_url,
            "line_items": [{
                "price_data": {
                    "currency": self._currency,
                    "product_data": {"name": request.title},
                    "unit_amount": request.amount_minor,
                },
                "quantity": 1,
            }],
            "metadata": {"bookingId": str(request.booking_id)},
            "expires_at": int(request.expires_at.timestamp()),
        }
        try:
            session = await asyncio.to_thread(client.checkout.sessions.create, params=params)
        except stripe.StripeError as e:
            logger.error("checkout_session_failed", booking_id=request.booking_id, error=str(e))
            raise UpstreamFailure(f"Payment gateway error: {e.user_message or e}") from e

        logger.info("checkout_session_created", booking_id=request.booking_id, session_id=session.id)
        return CheckoutSession(id=session.id, url=session.url)

    async def expire_checkout_session(self, session_id: str) -> None:
        client = self._require_client()
        try:
            await asyncio.to_thread(client.checkout.sessions.expire, session_id)
        except stripe.StripeError as e:
            raise UpstreamFailure(f"Payment gateway error: {e.user_message or e}") from e
        logger.info("checkout_session_expired", session_id=session_id)

    def parse_completion(self, payload: bytes, signature: Optional[str]) -> Optional[PaymentCompletion]:
        if not signature:
            raise ValidationFailure("Missing webhook signature")
        try:
            event = stripe.Webhook.construct_event(payload, signature, self._webhook_secret)
        except ValueError as e:
            raise ValidationFailure("Invalid webhook payload") from e
        except stripe.SignatureVerificationError as e:
            raise ValidationFailure("Invalid webhook signature") from e

        if event["type"] not in COMPLETION_EVENTS:
            return None

        session = event["data"]["object"]
        # Delayed methods (bank debits) complete later via async_payment_succeeded
        if session.get("payment_status") not in ("paid", "no_payment_required"):
            return None

        booking_id = (session.get("metadata") or {}).get("bookingId")
        if not booking_id:
            logger.warning("webhook_without_booking", event_id=event["id"])
            return None
        return PaymentCompletion(booking_id=booking_id, event_id=event["id"])
