"""
Email delivery over SMTP via aiosmtplib.
"""

from email.message import EmailMessage

import aiosmtplib

from quickshow.core.errors import UpstreamFailure
from quickshow.core.logging import get_logger
from quickshow.services.interfaces.email_sender import EmailSender

logger = get_logger(__name__)


class SmtpEmailSender(EmailSender):

    def __init__(
        self,
        hostname: str,
        port: int,
        sender: str,
        username: str = "",
        password: str = "",
        start_tls: bool = True,
    ):
        self.hostname = hostname
        self.port = port
        self.sender = sender
        self.username = username or None
        self.password = password or None
        self.start_tls = start_tls

    async def send(self, to: str, subject: str, body: str) -> None:
        message = EmailMessage()
        message["From"] = self.sender
        message["To"] = to
        message["Subject"] = subject
        message.set_content("This message needs an HTML capable mail client.")
        message.add_alternative(body, subtype="html")

        try:
            await aiosmtplib.send(
                message,
                hostname=self.hostname,
                port=self.port,
                start_tls=self.start_tls,
                username=self.username,
                password=self.password,
            )
        except (aiosmtplib.SMTPException, OSError) as e:
            logger.error("email_send_failed", to=to, subject=subject, error=str(e))
            raise UpstreamFailure(f"Failed to send email to {to}") from e

        logger.info("email_sent", to=to, subject=subject)


class LoggingEmailSender(EmailSender):
    """Used when no SMTP relay is configured (local development)."""

    async def send(self, to: str, subject: str, body: str) -> None:
        logger.info("email_suppressed", to=to, subject=subject, body_length=len(body))
