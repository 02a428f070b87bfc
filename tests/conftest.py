"""Shared fixtures: a throwaway SQLite database, seeded marketplace and engine."""

import os

os.environ.setdefault("DATABASE_URL_OVERRIDE", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("NOTIFICATION_DISPATCH_MODE", "inline")

from dataclasses import dataclass  # noqa: E402
from datetime import date, timedelta  # noqa: E402
from decimal import Decimal  # noqa: E402
from typing import Any  # noqa: E402

import pytest  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy import select  # noqa: E402
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine  # noqa: E402

from app.api.deps import get_booking_service  # noqa: E402
from app.core.security import create_access_token  # noqa: E402
from app.database import Base, get_db  # noqa: E402
from app.main import app  # noqa: E402
from app.models import Service, ServiceProvider, User  # noqa: E402
from app.schemas.booking import BookingCreate  # noqa: E402
from app.services.booking_service import BookingService  # noqa: E402
from app.services.notification_service import NotificationService  # noqa: E402
from app.services.statistics_service import StatisticsService  # noqa: E402


class RecordingNotifier(NotificationService):
    """Captures notifications instead of sending them."""

    def __init__(self) -> None:
        super().__init__()
        self.sent: list[tuple[str, str, dict[str, Any]]] = []

    async def notify(self, channel_ref, message, metadata=None) -> None:
        self.sent.append((channel_ref, message, metadata or {}))

    @property
    def events(self) -> list[str]:
        return [metadata.get("event") for _, _, metadata in self.sent]


@dataclass
class Marketplace:
    customer: User
    other_customer: User
    provider_user: User
    provider: ServiceProvider
    service: Service
    other_provider_user: User
    other_provider: ServiceProvider
    admin: User
    inactive_service: Service
    unapproved_provider: ServiceProvider
    unapproved_service: Service
    suspended_service: Service


@pytest.fixture
async def db_engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'bookings.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return async_sessionmaker(db_engine, expire_on_commit=False, autoflush=False)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def statistics(session_factory):
    return StatisticsService(session_factory)


@pytest.fixture
def booking_engine(statistics, notifier):
    return BookingService(statistics=statistics, notifier=notifier)


def _user(email: str, name: str, role: str) -> User:
    return User(email=email, name=name, role=role, phone="+15550100")


@pytest.fixture
async def market(session_factory) -> Marketplace:
    async with session_factory() as session:
        customer = _user("carla@example.com", "Carla Customer", "customer")
        other_customer = _user("oscar@example.com", "Oscar Other", "customer")
        provider_user = _user("pat@example.com", "Pat Plumber", "provider")
        other_provider_user = _user("eli@example.com", "Eli Electric", "provider")
        unapproved_user = _user("nina@example.com", "Nina New", "provider")
        admin = _user("admin@example.com", "Ada Admin", "admin")
        session.add_all(
            [customer, other_customer, provider_user, other_provider_user, unapproved_user, admin]
        )
        await session.flush()

        provider = ServiceProvider(
            user_id=provider_user.id, business_name="Pat's Plumbing", is_approved=True, is_active=True
        )
        other_provider = ServiceProvider(
            user_id=other_provider_user.id, business_name="Eli Electric", is_approved=True, is_active=True
        )
        unapproved_provider = ServiceProvider(
            user_id=unapproved_user.id, business_name="Nina Cleans", is_approved=False, is_active=True
        )
        session.add_all([provider, other_provider, unapproved_provider])
        await session.flush()

        service = Service(provider_id=provider.id, name="Leak repair", price=Decimal("80.00"))
        inactive_service = Service(
            provider_id=provider.id, name="Boiler install", price=Decimal("900.00"), is_active=False
        )
        unapproved_service = Service(
            provider_id=unapproved_provider.id, name="Deep clean", price=Decimal("120.00")
        )
        session.add_all([service, inactive_service, unapproved_service])
        await session.flush()

        suspended_user = _user("sam@example.com", "Sam Suspended", "provider")
        session.add(suspended_user)
        await session.flush()
        suspended_provider = ServiceProvider(
            user_id=suspended_user.id, business_name="Sam's Gardens", is_approved=True, is_active=False
        )
        session.add(suspended_provider)
        await session.flush()
        suspended_service = Service(
            provider_id=suspended_provider.id, name="Lawn mowing", price=Decimal("40.00")
        )
        session.add(suspended_service)
        await session.commit()

    return Marketplace(
        customer=customer,
        other_customer=other_customer,
        provider_user=provider_user,
        provider=provider,
        service=service,
        other_provider_user=other_provider_user,
        other_provider=other_provider,
        admin=admin,
        inactive_service=inactive_service,
        unapproved_provider=unapproved_provider,
        unapproved_service=unapproved_service,
        suspended_service=suspended_service,
    )


def booking_request(service_id, **overrides) -> BookingCreate:
    data = {
        "service_id": service_id,
        "scheduled_date": date.today() + timedelta(days=3),
        "scheduled_time": "10:30",
        "customer_name": "Carla Customer",
        "customer_phone": "+15550100",
        "customer_address": "12 Elm Street",
        "notes": "Kitchen sink",
    }
    data.update(overrides)
    return BookingCreate(**data)


async def provider_counters(session_factory, provider_id) -> tuple[int, int]:
    """Read counters through a fresh session so nothing stale is returned."""
    async with session_factory() as session:
        result = await session.execute(
            select(ServiceProvider.total_bookings, ServiceProvider.completed_bookings).where(
                ServiceProvider.id == provider_id
            )
        )
        total, completed = result.one()
        return total, completed


@pytest.fixture
async def client(session_factory, booking_engine):
    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_booking_service] = lambda: booking_engine
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


def auth_headers(user: User) -> dict[str, str]:
    token = create_access_token({"sub": str(user.id), "role": user.role})
    return {"Authorization": f"Bearer {token}"}
