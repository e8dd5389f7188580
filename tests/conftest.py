"""
Pytest fixtures for test database, clock, seeded venue data and client.

Each test gets its own SQLite file so concurrent-session tests see real
cross-connection behavior. Time is a FrozenClock moved by the test.
"""

import os

os.environ.setdefault("REDIS_ENABLED", "false")
os.environ.setdefault("WORKERS_ENABLED", "false")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./boxoffice_test.db")

from datetime import datetime, timezone
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from boxoffice.main import app
from boxoffice.core.clock import FrozenClock, get_clock
from boxoffice.db.base import Base
from boxoffice.db.session import build_engine, build_session_factory, get_db, get_session_factory
from boxoffice.domain.state_machine import SeatStatus
from boxoffice.models.event_session import EventSession
from boxoffice.models.promo_code import PromoCode
from boxoffice.models.seat import SeatTicket
from boxoffice.schemas.order import CustomerInfo
from boxoffice.schemas.session import SessionCreate
from boxoffice.schemas.venue import HallCreate, PriceSchemeCreate
from boxoffice.services.booking_service import BookingService, wait_for_notifications
from boxoffice.services.cache_service import wait_for_invalidations
from boxoffice.services.interfaces.notifier import OrderNotifier, OrderPaidEvent
from boxoffice.services.notifier_factory import get_notifier
from boxoffice.services.session_service import create_session
from boxoffice.services.venue_service import create_hall, create_price_scheme

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)

HALL_LAYOUT = {
    "seats": [
        {"seat_id": "A-1", "row": 1, "place": 1, "section": "Parterre"},
        {"seat_id": "A-2", "row": 1, "place": 2, "section": "Parterre"},
        {"seat_id": "A-3", "row": 1, "place": 3, "section": "Parterre"},
        {"seat_id": "B-1", "row": 2, "place": 1, "section": "Parterre"},
    ],
    "zones": [
        {"zone_key": "dancefloor", "name": "Dance floor", "capacity": 3},
    ],
}

PRICES = {"A-1": "1000", "A-2": "1000", "A-3": "1500", "B-1": "800", "dancefloor": "500"}

# 19:00 in Moscow (UTC+3) is 16:00 UTC; sales lock at 15:50 UTC
SESSION_START_LOCAL = datetime(2026, 3, 2, 19, 0)
LOCK_TIME_UTC = datetime(2026, 3, 2, 15, 50, tzinfo=timezone.utc)


class RecordingNotifier(OrderNotifier):
    """Keeps every paid-order event for assertions."""

    def __init__(self):
        self.events: list[OrderPaidEvent] = []

    async def order_paid(self, event: OrderPaidEvent) -> None:
        self.events.append(event)


@pytest_asyncio.fixture(scope="function")
async def engine(tmp_path):
    test_engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'boxoffice.db'}")
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield test_engine
    await wait_for_invalidations()
    await test_engine.dispose()


@pytest.fixture
def session_factory(engine) -> async_sessionmaker[AsyncSession]:
    return build_session_factory(engine)


@pytest_asyncio.fixture(scope="function")
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock(NOW)


@pytest_asyncio.fixture
async def notifier() -> AsyncGenerator[RecordingNotifier, None]:
    recorder = RecordingNotifier()
    yield recorder
    await wait_for_notifications()


@pytest.fixture
def customer() -> CustomerInfo:
    return CustomerInfo(name="Ivan Petrov", phone="+79001234567", email="ivan@example.com")


@pytest_asyncio.fixture
async def hall(db_session: AsyncSession):
    hall = await create_hall(db_session, HallCreate(
        name="Main Hall",
        timezone="Europe/Moscow",
        currency="RUB",
        layout=HALL_LAYOUT,
    ))
    await db_session.commit()
    db_session.expunge(hall)
    return hall


@pytest_asyncio.fixture
async def price_scheme(db_session: AsyncSession, hall):
    scheme = await create_price_scheme(db_session, PriceSchemeCreate(
        hall_id=hall.id,
        name="Standard",
        currency="RUB",
        prices=PRICES,
    ))
    await db_session.commit()
    db_session.expunge(scheme)
    return scheme


@pytest_asyncio.fixture
async def event_session(db_session: AsyncSession, hall, price_scheme, clock) -> EventSession:
    """A session with 4 numbered seats and a 3-place zone: 7 seat rows."""
    session = await create_session(db_session, SessionCreate(
        hall_id=hall.id,
        price_scheme_id=price_scheme.id,
        event_id=42,
        event_name="Evening Concert",
        starts_at=SESSION_START_LOCAL,
    ), clock)
    await db_session.commit()
    db_session.expunge(session)
    return session


@pytest.fixture
def booking_service(db_session, clock, notifier) -> BookingService:
    return BookingService(db_session, clock, notifier=notifier)


@pytest_asyncio.fixture
async def promo_code(db_session: AsyncSession) -> PromoCode:
    promo = PromoCode(
        code="SPRING10",
        discount_type="percentage",
        discount_value=10,
        min_order_amount=0,
        usage_limit=2,
        usage_count=0,
        applicable_event_ids=[],
    )
    db_session.add(promo)
    await db_session.commit()
    await db_session.refresh(promo)
    db_session.expunge(promo)
    return promo


@pytest_asyncio.fixture(scope="function")
async def client(db_session, session_factory, clock, notifier) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client wired to the test database, clock and notifier."""

    async def override_get_db():
        try:
            yield db_session
            await db_session.commit()
        except Exception:
            await db_session.rollback()
            raise

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    app.dependency_overrides[get_clock] = lambda: clock
    app.dependency_overrides[get_notifier] = lambda: notifier

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


async def seat_statuses(db: AsyncSession, session_id: int) -> dict[str, SeatStatus]:
    result = await db.execute(
        select(SeatTicket)
        .where(SeatTicket.session_id == session_id)
        .execution_options(populate_existing=True)
    )
    return {seat.seat_id: SeatStatus(seat.status) for seat in result.scalars().all()}


async def assert_counters_consistent(db: AsyncSession, session_id: int) -> EventSession:
    """Session counters equal the seat rows they summarize."""
    result = await db.execute(
        select(EventSession)
        .where(EventSession.id == session_id)
        .execution_options(populate_existing=True)
    )
    session = result.scalar_one()
    statuses = list((await seat_statuses(db, session_id)).values())

    assert session.total_seats == len(statuses)
    assert session.available_seats == statuses.count(SeatStatus.AVAILABLE)
    assert session.reserved_seats == statuses.count(SeatStatus.RESERVED)
    assert session.sold_seats == statuses.count(SeatStatus.SOLD)
    assert session.locked_seats == statuses.count(SeatStatus.LOCKED)
    assert (
        session.available_seats + session.reserved_seats + session.sold_seats + session.locked_seats
        == session.total_seats
    )
    return session
