"""
Lock scheduler: closes sales shortly before a session starts.

A session's start is stored as hall-local wall-clock time and converted
with the hall's IANA timezone. Once now >= start - LOCK_WINDOW_MINUTES,
every available or reserved seat becomes locked and the session is
claimed by a conditional write on locked_at in the same transaction. A
run that loses the claim rolls its seat writes back, so overlapping runs
and manual triggers are safe.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from boxoffice.core.clock import Clock
from boxoffice.core.config import get_settings
from boxoffice.core.exceptions import SessionNotFound
from boxoffice.core.logging import get_logger
from boxoffice.core.metrics import lock_runs, sessions_locked
from boxoffice.domain.state_machine import SessionStatus
from boxoffice.models.event_session import EventSession
from boxoffice.services.cache_service import schedule_seat_map_invalidation
from boxoffice.services.inventory_service import SeatInventory
from boxoffice.services.venue_service import VenueDirectory, get_venue_directory
from boxoffice.workers.base import PeriodicWorker

logger = get_logger(__name__)


@dataclass
class SessionLockResult:
    session_id: int
    locked: bool
    seats_locked: int
    lock_time: datetime


@dataclass
class LockRunResult:
    sessions_locked: int = 0
    seats_locked: int = 0
    failures: int = 0


class LockScheduler(PeriodicWorker):
    name = "lock_scheduler"

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        clock: Clock,
        interval_seconds: float | None = None,
        lock_window_minutes: int | None = None,
        venues: Optional[VenueDirectory] = None,
    ):
        settings = get_settings()
        super().__init__(interval_seconds or settings.LOCK_SCHEDULER_INTERVAL_SECONDS, clock)
        self.session_factory = session_factory
        self.lock_window = timedelta(
            minutes=lock_window_minutes if lock_window_minutes is not None else settings.LOCK_WINDOW_MINUTES
        )
        self.venues = venues or get_venue_directory()

    async def _open_sessions(self) -> list[int]:
        async with self.session_factory() as db:
            result = await db.execute(
                select(EventSession.id)
                .where(
                    EventSession.is_active.is_(True),
                    EventSession.is_archived.is_(False),
                    EventSession.status.in_([SessionStatus.SCHEDULED, SessionStatus.ACTIVE]),
                    EventSession.locked_at.is_(None),
                )
                .order_by(EventSession.starts_at)
            )
            return list(result.scalars().all())

    async def run_once(self) -> LockRunResult:
        """Lock every open session that has reached its lock time."""
        outcome = LockRunResult()
        try:
            candidates = await self._open_sessions()
        except Exception:
            lock_runs.labels(result="error").inc()
            raise

        for session_id in candidates:
            try:
                result = await self.lock_session(session_id)
            except Exception:
                outcome.failures += 1
                logger.exception("session_lock_failed", session_id=session_id)
                continue
            if result.locked:
                outcome.sessions_locked += 1
                outcome.seats_locked += result.seats_locked

        lock_runs.labels(result="ok").inc()
        if outcome.sessions_locked or outcome.failures:
            logger.info(
                "lock_run_completed",
                candidates=len(candidates),
                sessions_locked=outcome.sessions_locked,
                seats_locked=outcome.seats_locked,
                failures=outcome.failures,
            )
        return outcome

    async def lock_session(self, session_id: int) -> SessionLockResult:
        """
        Lock one session if its lock time has come.

        Before the lock time this is a no-op that reports when the lock
        will happen. A session that is already locked reports locked with
        no seats changed.
        """
        now = self.clock.now()
        async with self.session_factory() as db:
            result = await db.execute(select(EventSession).where(EventSession.id == session_id))
            session = result.scalar_one_or_none()
            if not session:
                raise SessionNotFound(session_id)

            start = self.venues.session_start_utc(session, session.hall)
            lock_time = start - self.lock_window

            if now < lock_time:
                logger.debug("session_lock_not_due", session_id=session_id, lock_time=lock_time.isoformat())
                return SessionLockResult(session_id, locked=False, seats_locked=0, lock_time=lock_time)
            if session.locked_at is not None:
                return SessionLockResult(session_id, locked=True, seats_locked=0, lock_time=lock_time)

            try:
                # Seats before the session row, the same order bookings take
                seats = await SeatInventory(db, session_id, self.clock).lock()
                claim = await db.execute(
                    update(EventSession)
                    .where(EventSession.id == session_id, EventSession.locked_at.is_(None))
                    .values(locked_at=now)
                    .execution_options(synchronize_session=False)
                )
                if claim.rowcount == 0:
                    await db.rollback()
                    return SessionLockResult(session_id, locked=True, seats_locked=0, lock_time=lock_time)
                await db.commit()
            except Exception:
                await db.rollback()
                raise

        sessions_locked.inc()
        logger.info(
            "session_locked",
            session_id=session_id,
            seats_locked=seats,
            start=start.isoformat(),
            lock_time=lock_time.isoformat(),
        )
        schedule_seat_map_invalidation(session_id)
        return SessionLockResult(session_id, locked=True, seats_locked=seats, lock_time=lock_time)
