"""
Provider factory.
Configures which gateway, sender and cache implementations the process uses.
"""

from quickshow.core.config import Settings
from quickshow.core.logging import get_logger
from quickshow.infrastructure import StripeGateway, SmtpEmailSender, LoggingEmailSender
from quickshow.services.cache_service import CacheService
from quickshow.services.container import Services
from quickshow.services.interfaces import EmailSender

logger = get_logger(__name__)


def get_email_sender(settings: Settings) -> EmailSender:
    """
    SMTP when a relay is configured, otherwise log-only delivery so local
    runs never need mail credentials.
    """
    if settings.SMTP_HOST:
        return SmtpEmailSender(
            hostname=settings.SMTP_HOST,
            port=settings.SMTP_PORT,
            sender=settings.SENDER_EMAIL,
            username=settings.SMTP_USER,
            password=settings.SMTP_PASSWORD,
            start_tls=settings.SMTP_START_TLS,
        )
    logger.warning("smtp_not_configured", message="Emails will be logged, not sent")
    return LoggingEmailSender()


async def build_services(settings: Settings) -> Services:
    if not settings.STRIPE_SECRET_KEY:
        logger.warning("stripe_not_configured", message="Checkout calls will fail")

    return Services(
        settings=settings,
        payment_gateway=StripeGateway(
            api_key=settings.STRIPE_SECRET_KEY,
            webhook_secret=settings.STRIPE_WEBHOOK_SECRET,
            currency=settings.CURRENCY,
        ),
        email_sender=get_email_sender(settings),
        cache=await CacheService.connect(settings),
    )
