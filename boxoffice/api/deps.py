"""
Shared FastAPI dependencies.

Every collaborator a route needs is resolved here so tests can swap the
clock, the database and the notifier through app.dependency_overrides.
"""

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from boxoffice.core.clock import Clock, get_clock
from boxoffice.db.session import get_db, get_session_factory
from boxoffice.services.booking_service import BookingService
from boxoffice.services.interfaces.notifier import OrderNotifier
from boxoffice.services.notifier_factory import get_notifier
from boxoffice.workers.expiration_sweeper import ExpirationSweeper
from boxoffice.workers.lock_scheduler import LockScheduler


def get_booking_service(
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
    notifier: OrderNotifier = Depends(get_notifier),
) -> BookingService:
    return BookingService(db, clock, notifier=notifier)


def get_expiration_sweeper(
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
    clock: Clock = Depends(get_clock),
    notifier: OrderNotifier = Depends(get_notifier),
) -> ExpirationSweeper:
    return ExpirationSweeper(session_factory, clock, notifier)


def get_lock_scheduler(
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
    clock: Clock = Depends(get_clock),
) -> LockScheduler:
    return LockScheduler(session_factory, clock)
