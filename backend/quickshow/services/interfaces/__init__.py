"""
Service interfaces for dependency inversion.
Allows swapping implementations without changing business logic.
"""

from .payment_gateway import PaymentGateway, CheckoutRequest, CheckoutSession, PaymentCompletion
from .email_sender import EmailSender

__all__ = ['PaymentGateway', 'CheckoutRequest', 'CheckoutSession', 'PaymentCompletion', 'EmailSender']
