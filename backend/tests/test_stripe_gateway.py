"""
Tests for Stripe webhook verification and parsing, signed the way Stripe signs them.
"""

import hashlib
import hmac
import json
import time

import pytest

from quickshow.core.errors import UpstreamFailure, ValidationFailure
from quickshow.infrastructure.stripe_gateway import StripeGateway

WEBHOOK_SECRET = "whsec_test_secret"


def _signed(event: dict) -> tuple[bytes, str]:
    payload = json.dumps(event).encode()
    timestamp = int(time.time())
    signature = hmac.new(
        WEBHOOK_SECRET.encode(), f"{timestamp}.{payload.decode()}".encode(), hashlib.sha256
    ).hexdigest()
    return payload, f"t={timestamp},v1={signature}"


def _event(event_type: str, payment_status: str = "paid", metadata=None) -> dict:
    return {
        "id": "evt_123",
        "object": "event",
        "type": event_type,
        "data": {
            "object": {
                "id": "cs_test_1",
                "object": "checkout.session",
                "payment_status": payment_status,
                "metadata": {"bookingId": "42"} if metadata is None else metadata,
            }
        },
    }


@pytest.fixture
def gateway() -> StripeGateway:
    return StripeGateway(api_key="sk_test_dummy", webhook_secret=WEBHOOK_SECRET)


def test_completed_session(gateway):
    payload, signature = _signed(_event("checkout.session.completed"))
    completion = gateway.parse_completion(payload, signature)
    assert completion.booking_id == "42"
    assert completion.event_id == "evt_123"


def test_async_payment_succeeded(gateway):
    payload, signature = _signed(_event("checkout.session.async_payment_succeeded"))
    assert gateway.parse_completion(payload, signature).booking_id == "42"


def test_unpaid_completion_ignored(gateway):
    """Delayed payment methods complete the session before the money arrives."""
    payload, signature = _signed(_event("checkout.session.completed", payment_status="unpaid"))
    assert gateway.parse_completion(payload, signature) is None


def test_other_events_ignored(gateway):
    payload, signature = _signed(_event("payment_intent.created"))
    assert gateway.parse_completion(payload, signature) is None


def test_missing_booking_metadata_ignored(gateway):
    payload, signature = _signed(_event("checkout.session.completed", metadata={}))
    assert gateway.parse_completion(payload, signature) is None


def test_bad_signature(gateway):
    payload, _ = _signed(_event("checkout.session.completed"))
    with pytest.raises(ValidationFailure):
        gateway.parse_completion(payload, f"t={int(time.time())},v1=deadbeef")
    with pytest.raises(ValidationFailure):
        gateway.parse_completion(payload, None)


@pytest.mark.asyncio
async def test_unconfigured_gateway_fails_upstream():
    gateway = StripeGateway(api_key="", webhook_secret=WEBHOOK_SECRET)
    with pytest.raises(UpstreamFailure):
        await gateway.expire_checkout_session("cs_test_1")
