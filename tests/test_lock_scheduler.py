"""
Tests for the pre-show lock of ticket sales.
"""

import asyncio
from datetime import timedelta

import pytest

from boxoffice.core.exceptions import SeatUnavailable, SessionNotFound
from boxoffice.domain.state_machine import OrderMode, OrderStatus, SeatStatus
from boxoffice.schemas.order import OrderCreate
from boxoffice.services.session_service import get_session, set_archived
from boxoffice.workers.lock_scheduler import LockScheduler

from conftest import LOCK_TIME_UTC, assert_counters_consistent, seat_statuses


@pytest.fixture
def scheduler(session_factory, clock) -> LockScheduler:
    return LockScheduler(session_factory, clock, interval_seconds=0.01)


@pytest.mark.asyncio
async def test_lock_time_uses_hall_timezone(scheduler, event_session):
    """19:00 in Moscow starts at 16:00 UTC; sales close ten minutes earlier."""
    result = await scheduler.lock_session(event_session.id)

    assert not result.locked
    assert result.seats_locked == 0
    assert result.lock_time == LOCK_TIME_UTC


@pytest.mark.asyncio
async def test_one_second_before_lock_time_is_a_noop(db_session, scheduler, event_session, clock):
    clock.set(LOCK_TIME_UTC - timedelta(seconds=1))

    outcome = await scheduler.run_once()

    assert outcome.sessions_locked == 0
    statuses = await seat_statuses(db_session, event_session.id)
    assert set(statuses.values()) == {SeatStatus.AVAILABLE}


@pytest.mark.asyncio
async def test_locks_at_lock_time(db_session, scheduler, event_session, clock):
    clock.set(LOCK_TIME_UTC)

    outcome = await scheduler.run_once()

    assert outcome.sessions_locked == 1
    assert outcome.seats_locked == 7
    statuses = await seat_statuses(db_session, event_session.id)
    assert set(statuses.values()) == {SeatStatus.LOCKED}

    session = await assert_counters_consistent(db_session, event_session.id)
    assert session.locked_seats == 7
    assert session.locked_at is not None


@pytest.mark.asyncio
async def test_lock_keeps_sold_and_takes_reserved(db_session, booking_service, scheduler, event_session, clock, customer):
    clock.set(LOCK_TIME_UTC - timedelta(minutes=5))
    sold = await booking_service.create_order(
        OrderCreate(session_id=event_session.id, seat_ids=["A-1"], mode=OrderMode.PAID, customer=customer)
    )
    held = await booking_service.create_order(
        OrderCreate(session_id=event_session.id, seat_ids=["A-2"], mode=OrderMode.PENDING, customer=customer)
    )
    assert sold.status == OrderStatus.PAID

    clock.set(LOCK_TIME_UTC)
    result = await scheduler.lock_session(event_session.id)
    assert result.locked
    assert result.seats_locked == 6

    statuses = await seat_statuses(db_session, event_session.id)
    assert statuses["A-1"] == SeatStatus.SOLD
    assert statuses["A-2"] == SeatStatus.LOCKED

    # The hold on A-2 is still within its window but can no longer be paid
    with pytest.raises(SeatUnavailable):
        await booking_service.pay_order(held.id)
    statuses = await seat_statuses(db_session, event_session.id)
    assert statuses["A-2"] == SeatStatus.LOCKED
    assert (await booking_service.get_order(held.id)).status == OrderStatus.PENDING


@pytest.mark.asyncio
async def test_locked_session_refuses_new_orders(booking_service, scheduler, event_session, clock):
    clock.set(LOCK_TIME_UTC + timedelta(minutes=1))
    await scheduler.run_once()

    with pytest.raises(SeatUnavailable):
        await booking_service.create_order(OrderCreate(session_id=event_session.id, seat_ids=["B-1"]))


@pytest.mark.asyncio
async def test_second_run_locks_nothing(scheduler, event_session, clock):
    clock.set(LOCK_TIME_UTC)
    assert (await scheduler.run_once()).sessions_locked == 1

    clock.advance(minutes=5)
    assert (await scheduler.run_once()).sessions_locked == 0

    again = await scheduler.lock_session(event_session.id)
    assert again.locked
    assert again.seats_locked == 0


@pytest.mark.asyncio
async def test_archived_sessions_are_skipped(db_session, scheduler, event_session, clock):
    await set_archived(db_session, event_session.id, True)
    clock.set(LOCK_TIME_UTC)

    outcome = await scheduler.run_once()

    assert outcome.sessions_locked == 0
    session = await get_session(db_session, event_session.id)
    assert session.locked_at is None


@pytest.mark.asyncio
async def test_lock_unknown_session(scheduler):
    with pytest.raises(SessionNotFound):
        await scheduler.lock_session(999)


@pytest.mark.asyncio
async def test_custom_lock_window(session_factory, event_session, clock):
    scheduler = LockScheduler(session_factory, clock, lock_window_minutes=0)
    clock.set(LOCK_TIME_UTC)
    assert not (await scheduler.lock_session(event_session.id)).locked

    clock.set(LOCK_TIME_UTC + timedelta(minutes=10))
    assert (await scheduler.lock_session(event_session.id)).locked


@pytest.mark.asyncio
async def test_scheduler_loop_start_and_stop(db_session, scheduler, event_session, clock):
    clock.set(LOCK_TIME_UTC)

    task = scheduler.start()
    assert scheduler.start() is task
    for _ in range(100):
        if (await get_session(db_session, event_session.id)).locked_at is not None:
            break
        await asyncio.sleep(0.01)

    await asyncio.wait_for(scheduler.stop(), timeout=1)
    assert not scheduler.running
    session = await get_session(db_session, event_session.id)
    assert session.locked_at is not None
