"""
Pytest fixtures for test database, client, and service fakes.

Each test gets a fresh SQLite file database (aiosqlite) so that several
sessions can see each other's commits, the way separate requests and the
task worker do against Postgres. Set TEST_DATABASE_URL to run against a
real server instead.
"""

import os

os.environ.setdefault("ADMIN_USER_IDS", '["admin_1"]')
os.environ.setdefault("IDENTITY_WEBHOOK_SECRET", "test-webhook-secret")
os.environ.setdefault("TASK_WORKER_ENABLED", "false")
os.environ.setdefault("REDIS_ENABLED", "false")

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import AsyncGenerator, Optional

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from quickshow.main import app
from quickshow.api.dependencies import get_services
from quickshow.core.config import get_settings
from quickshow.core.errors import UpstreamFailure, ValidationFailure
from quickshow.core.security import create_access_token
from quickshow.db.base import Base
from quickshow.db.session import get_db
from quickshow.models.movie import Movie
from quickshow.models.show import Show
from quickshow.models.user import User
from quickshow.services.cache_service import CacheService
from quickshow.services.container import Services
from quickshow.services.interfaces import (
    CheckoutRequest,
    CheckoutSession,
    EmailSender,
    PaymentCompletion,
    PaymentGateway,
)


class FakeGateway(PaymentGateway):
    """Records checkout calls; `fail` makes session creation raise."""

    def __init__(self):
        self.fail = False
        self.requests: list[CheckoutRequest] = []
        self.expired: list[str] = []
        self.completion: Optional[PaymentCompletion] = None

    async def create_checkout_session(self, request: CheckoutRequest) -> CheckoutSession:
        if self.fail:
            raise UpstreamFailure("Payment provider unavailable")
        self.requests.append(request)
        session_id = f"cs_test_{request.booking_id}"
        return CheckoutSession(id=session_id, url=f"https://checkout.test/{session_id}")

    async def expire_checkout_session(self, session_id: str) -> None:
        self.expired.append(session_id)

    def parse_completion(self, payload: bytes, signature: Optional[str]) -> Optional[PaymentCompletion]:
        if signature != "valid":
            raise ValidationFailure("Invalid webhook signature")
        return self.completion


class FakeEmailSender(EmailSender):
    """Collects messages instead of sending them. Addresses in `failing` raise."""

    def __init__(self):
        self.sent: list[dict] = []
        self.failing: set[str] = set()

    async def send(self, to: str, subject: str, body: str) -> None:
        if to in self.failing:
            raise UpstreamFailure(f"Mail relay rejected {to}")
        self.sent.append({"to": to, "subject": subject, "body": body})


@pytest.fixture
def database_url(tmp_path) -> str:
    return os.environ.get("TEST_DATABASE_URL") or f"sqlite+aiosqlite:///{tmp_path / 'quickshow_test.db'}"


@pytest_asyncio.fixture(scope="function")
async def session_factory(database_url: str) -> AsyncGenerator[async_sessionmaker, None]:
    """Create tables, yield a session factory, then drop tables for isolation."""
    engine = create_async_engine(database_url, echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def db_session(session_factory: async_sessionmaker) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def email_sender() -> FakeEmailSender:
    return FakeEmailSender()


@pytest.fixture
def services(gateway: FakeGateway, email_sender: FakeEmailSender) -> Services:
    settings = get_settings()
    return Services(
        settings=settings,
        payment_gateway=gateway,
        email_sender=email_sender,
        cache=CacheService(None, settings.REDIS_CACHE_TTL),
    )


@pytest_asyncio.fixture(scope="function")
async def client(session_factory: async_sessionmaker, services: Services) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client with a session per request and the fake service handles."""

    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_services] = lambda: services

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


async def add_user(db: AsyncSession, user_id: str, name: str = "Test User") -> User:
    user = User(id=user_id, name=name, email=f"{user_id}@example.com")
    db.add(user)
    await db.commit()
    return user


async def add_show(
    db: AsyncSession,
    show_datetime: Optional[datetime] = None,
    price: str = "10.00",
    movie_id: str = "movie_1",
    title: str = "Test Movie",
    occupied_seats: Optional[dict] = None,
) -> Show:
    if await db.get(Movie, movie_id) is None:
        db.add(Movie(id=movie_id, title=title))
    show = Show(
        movie_id=movie_id,
        show_datetime=show_datetime or datetime.now(timezone.utc) + timedelta(days=1),
        show_price=Decimal(price),
        occupied_seats=occupied_seats or {},
        version=1,
    )
    db.add(show)
    await db.commit()
    return show


@pytest_asyncio.fixture
async def test_user(db_session: AsyncSession) -> User:
    return await add_user(db_session, "user_1", "Ada Lovelace")


@pytest_asyncio.fixture
async def other_user(db_session: AsyncSession) -> User:
    return await add_user(db_session, "user_2", "Alan Turing")


@pytest_asyncio.fixture
async def test_show(db_session: AsyncSession) -> Show:
    """A show tomorrow at 10.00 per seat with an empty seat map."""
    return await add_show(db_session)


def auth_headers_for(user_id: str) -> dict:
    return {"Authorization": f"Bearer {create_access_token(data={'sub': user_id})}"}


@pytest.fixture
def auth_headers(test_user: User) -> dict:
    """Authorization headers with Bearer token."""
    return auth_headers_for(test_user.id)


@pytest.fixture
def admin_headers() -> dict:
    return auth_headers_for("admin_1")
