"""
Notification sender interface.
"""

from abc import ABC, abstractmethod


class EmailSender(ABC):
    """
    Fire-and-forget message delivery.

    Implementations:
    - SmtpEmailSender: delivers through an SMTP relay
    - LoggingEmailSender: logs instead of sending (no relay configured)
    """

    @abstractmethod
    async def send(self, to: str, subject: str, body: str) -> None:
        """
        Deliver one message.

        Raises:
            UpstreamFailure: the message was not accepted for delivery
        """
        pass
