"""
Payment gateway interface.
Allows swapping the hosted checkout provider without touching reservation logic.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Optional


@dataclass(frozen=True)
class CheckoutRequest:
    booking_id: int
    title: str
    amount_minor: int
    success_url: str
    cancel_url: str
    expires_at: datetime


@dataclass(frozen=True)
class CheckoutSession:
    id: str
    url: str


@dataclass(frozen=True)
class PaymentCompletion:
    booking_id: str
    event_id: Optional[str] = None


class PaymentGateway(ABC):
    """
    Interface for hosted checkout providers.

    Implementations:
    - StripeGateway: Stripe Checkout sessions + signed webhooks
    """

    @abstractmethod
    async def create_checkout_session(self, request: CheckoutRequest) -> CheckoutSession:
        """
        Create a time-limited checkout session.

        Raises:
            UpstreamFailure: provider rejected the call or was unreachable
        """
        pass

    @abstractmethod
    async def expire_checkout_session(self, session_id: str) -> None:
        """Close a session so it can no longer collect payment."""
        pass

    @abstractmethod
    def parse_completion(self, payload: bytes, signature: Optional[str]) -> Optional[PaymentCompletion]:
        """
        Verify and decode a webhook delivery.

        Returns:
            PaymentCompletion for a completed payment, None for events this
            service does not act on

        Raises:
            ValidationFailure: signature or payload is invalid
        """
        pass
