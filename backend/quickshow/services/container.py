"""
Service handles shared by request handlers and the task worker.

Built once at process start (see `provider_factory.build_services`) and
handed to every component that talks to the outside world.
"""

from dataclasses import dataclass

from quickshow.core.config import Settings
from quickshow.services.cache_service import CacheService
from quickshow.services.interfaces import EmailSender, PaymentGateway


@dataclass
class Services:
    settings: Settings
    payment_gateway: PaymentGateway
    email_sender: EmailSender
    cache: CacheService

    async def close(self) -> None:
        await self.cache.close()
