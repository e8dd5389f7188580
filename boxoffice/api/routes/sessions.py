"""
Session endpoints: scheduling, seat maps, archive and pre-start locking.
"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from boxoffice.api.deps import get_lock_scheduler
from boxoffice.core.clock import Clock, get_clock
from boxoffice.db.session import get_db
from boxoffice.schemas.session import (
    LockRunResponse,
    SeatMapResponse,
    SessionCreate,
    SessionLockResponse,
    SessionResponse,
)
from boxoffice.services.session_service import create_session, get_seat_map, get_session, set_archived
from boxoffice.workers.lock_scheduler import LockScheduler

router = APIRouter(prefix="/sessions", tags=["Sessions"])


@router.post("/", response_model=SessionResponse, status_code=status.HTTP_201_CREATED)
async def create_session_endpoint(
    session_data: SessionCreate,
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    """Schedule a session; its seats are built from the hall layout and price scheme."""
    return await create_session(db, session_data, clock)


@router.post("/lock-tickets", response_model=LockRunResponse)
async def lock_due_sessions(scheduler: LockScheduler = Depends(get_lock_scheduler)):
    """Lock every session that has reached its lock time."""
    outcome = await scheduler.run_once()
    return LockRunResponse(
        sessions_locked=outcome.sessions_locked,
        seats_locked=outcome.seats_locked,
        failures=outcome.failures,
    )


@router.get("/{session_id}", response_model=SessionResponse)
async def get_session_endpoint(
    session_id: int,
    db: AsyncSession = Depends(get_db),
):
    return await get_session(db, session_id)


@router.get("/{session_id}/seats", response_model=SeatMapResponse)
async def get_seat_map_endpoint(
    session_id: int,
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    """
    Seat map with per-seat status and zone availability.
    Cached in Redis for a few seconds; invalidated by every booking change.
    """
    return await get_seat_map(db, session_id, clock)


@router.post("/{session_id}/lock-tickets", response_model=SessionLockResponse)
async def lock_session_endpoint(
    session_id: int,
    scheduler: LockScheduler = Depends(get_lock_scheduler),
):
    """Lock one session now. Before its lock time this changes nothing."""
    result = await scheduler.lock_session(session_id)
    return SessionLockResponse(
        session_id=result.session_id,
        locked=result.locked,
        seats_locked=result.seats_locked,
        lock_time=result.lock_time,
    )


@router.patch("/{session_id}/archive", response_model=SessionResponse)
async def archive_session(session_id: int, db: AsyncSession = Depends(get_db)):
    return await set_archived(db, session_id, True)


@router.patch("/{session_id}/unarchive", response_model=SessionResponse)
async def unarchive_session(session_id: int, db: AsyncSession = Depends(get_db)):
    return await set_archived(db, session_id, False)
