"""
Infrastructure layer - external system integrations.
Keeps business logic clean from implementation details.
"""

from .stripe_gateway import StripeGateway
from .smtp_sender import SmtpEmailSender, LoggingEmailSender

__all__ = ['StripeGateway', 'SmtpEmailSender', 'LoggingEmailSender']
