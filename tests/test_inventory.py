"""
Tests for seat inventory transitions and aggregate recomputation.
"""

from datetime import timedelta
from decimal import Decimal
from unittest.mock import AsyncMock

import pytest
from sqlalchemy import event
from sqlalchemy.dialects import postgresql

from boxoffice.core.exceptions import (
    ReservationConflict,
    ReservationExpired,
    SeatNotFound,
    SeatUnavailable,
)
from boxoffice.domain.state_machine import SeatStatus
from boxoffice.services.inventory_service import SeatInventory, session_row_lock

from conftest import assert_counters_consistent, seat_statuses

HOLD = timedelta(minutes=15)


@pytest.fixture
def inventory(db_session, event_session, clock) -> SeatInventory:
    return SeatInventory(db_session, event_session.id, clock)


@pytest.mark.asyncio
async def test_built_inventory_matches_layout(db_session, inventory, event_session):
    """Numbered seats plus one slot row per zone place, all priced from the scheme."""
    session = await assert_counters_consistent(db_session, event_session.id)
    assert session.total_seats == 7
    assert session.available_seats == 7
    assert session.total_revenue == 0

    seats = {seat.seat_id: seat for seat in await inventory.seats()}
    assert seats["A-3"].price == Decimal("1500")
    assert seats["A-3"].currency == "RUB"

    zones = await inventory.zones()
    assert [zone.zone_key for zone in zones] == ["dancefloor"]
    slots = [seat for seat in seats.values() if seat.zone_id == zones[0].id]
    assert sorted(slot.slot_index for slot in slots) == [1, 2, 3]
    assert all(slot.price == Decimal("500") for slot in slots)


@pytest.mark.asyncio
async def test_reserve_holds_seats_until_deadline(db_session, inventory, event_session, clock, customer):
    reserved_until = await inventory.reserve(["A-1", "A-2"], order_id=9001, ttl=HOLD, customer=customer)
    await db_session.commit()

    assert reserved_until == clock.now() + HOLD
    seats = {seat.seat_id: seat for seat in await inventory.seats(["A-1", "A-2"])}
    assert seats["A-1"].status == SeatStatus.RESERVED
    assert seats["A-1"].order_id == 9001
    assert seats["A-1"].customer_email == "ivan@example.com"
    session = await assert_counters_consistent(db_session, event_session.id)
    assert session.reserved_seats == 2


@pytest.mark.asyncio
async def test_reserve_unknown_seat(inventory):
    with pytest.raises(SeatNotFound) as exc:
        await inventory.reserve(["A-1", "Z-99"], order_id=9001, ttl=HOLD)
    assert exc.value.seat_ids == ["Z-99"]


@pytest.mark.asyncio
async def test_reserved_seat_has_single_holder(db_session, inventory):
    await inventory.reserve(["A-1"], order_id=9001, ttl=HOLD)
    await db_session.commit()

    with pytest.raises(SeatUnavailable) as exc:
        await inventory.reserve(["A-1"], order_id=9002, ttl=HOLD)
    assert exc.value.seat_ids == ["A-1"]

    seats = await inventory.seats(["A-1"])
    assert seats[0].order_id == 9001


@pytest.mark.asyncio
async def test_batch_failing_on_first_seat_leaves_second_untouched(db_session, inventory, event_session):
    await inventory.reserve(["A-1"], order_id=9001, ttl=HOLD)
    await db_session.commit()

    with pytest.raises(SeatUnavailable):
        await inventory.reserve(["A-1", "A-2"], order_id=9002, ttl=HOLD)
    await db_session.rollback()

    statuses = await seat_statuses(db_session, event_session.id)
    assert statuses["A-2"] == SeatStatus.AVAILABLE
    await assert_counters_consistent(db_session, event_session.id)


@pytest.mark.asyncio
async def test_lost_write_raises_conflict(db_session, session_factory, inventory, event_session, clock, monkeypatch):
    """A seat taken between validation and write fails the whole batch."""
    stale = await inventory._load(["A-1", "A-2"])

    async with session_factory() as other:
        await SeatInventory(other, event_session.id, clock).reserve(["A-1"], order_id=9001, ttl=HOLD)
        await other.commit()

    monkeypatch.setattr(inventory, "_load", AsyncMock(return_value=stale))
    with pytest.raises(ReservationConflict):
        await inventory.reserve(["A-1", "A-2"], order_id=9002, ttl=HOLD)
    await db_session.rollback()

    statuses = await seat_statuses(db_session, event_session.id)
    assert statuses["A-1"] == SeatStatus.RESERVED
    assert statuses["A-2"] == SeatStatus.AVAILABLE


@pytest.mark.asyncio
async def test_sell_reserved_seats(db_session, inventory, event_session):
    await inventory.reserve(["A-1", "A-3"], order_id=9001, ttl=HOLD)
    sold = await inventory.sell(["A-1", "A-3"], order_id=9001)
    await db_session.commit()

    assert sold == 2
    seats = {seat.seat_id: seat for seat in await inventory.seats(["A-1", "A-3"])}
    assert seats["A-1"].status == SeatStatus.SOLD
    assert seats["A-1"].reserved_until is None
    assert seats["A-1"].sold_at is not None

    session = await assert_counters_consistent(db_session, event_session.id)
    assert session.sold_seats == 2
    assert session.total_revenue == Decimal("2500")


@pytest.mark.asyncio
async def test_sell_after_deadline_fails_without_sweep(db_session, inventory, event_session, clock):
    await inventory.reserve(["A-1"], order_id=9001, ttl=HOLD)
    await db_session.commit()

    clock.advance(minutes=15)
    with pytest.raises(ReservationExpired):
        await inventory.sell(["A-1"], order_id=9001)

    statuses = await seat_statuses(db_session, event_session.id)
    assert statuses["A-1"] == SeatStatus.RESERVED


@pytest.mark.asyncio
async def test_sell_requires_owning_order(db_session, inventory):
    await inventory.reserve(["A-1"], order_id=9001, ttl=HOLD)
    await db_session.commit()

    with pytest.raises(SeatUnavailable):
        await inventory.sell(["A-1"], order_id=9002)
    with pytest.raises(SeatUnavailable):
        await inventory.sell(["A-2"], order_id=9001)


@pytest.mark.asyncio
async def test_release_twice_is_a_noop(db_session, inventory, event_session):
    await inventory.reserve(["A-1", "A-2"], order_id=9001, ttl=HOLD)
    await db_session.commit()

    assert await inventory.release(["A-1", "A-2"], order_id=9001) == 2
    await db_session.commit()
    assert await inventory.release(["A-1", "A-2"], order_id=9001) == 0
    await db_session.commit()

    seats = await inventory.seats(["A-1"])
    assert seats[0].status == SeatStatus.AVAILABLE
    assert seats[0].order_id is None
    assert seats[0].customer_name is None
    await assert_counters_consistent(db_session, event_session.id)


@pytest.mark.asyncio
async def test_release_scoped_to_owner(db_session, inventory, event_session):
    await inventory.reserve(["A-1"], order_id=9001, ttl=HOLD)
    await inventory.reserve(["A-2"], order_id=9002, ttl=HOLD)
    await db_session.commit()

    assert await inventory.release(order_id=9001) == 1
    await db_session.commit()

    statuses = await seat_statuses(db_session, event_session.id)
    assert statuses["A-1"] == SeatStatus.AVAILABLE
    assert statuses["A-2"] == SeatStatus.RESERVED


@pytest.mark.asyncio
async def test_release_never_touches_sold_seats(db_session, inventory, event_session):
    await inventory.reserve(["A-1"], order_id=9001, ttl=HOLD)
    await inventory.sell(["A-1"], order_id=9001)
    await db_session.commit()

    assert await inventory.release(["A-1"]) == 0
    statuses = await seat_statuses(db_session, event_session.id)
    assert statuses["A-1"] == SeatStatus.SOLD


@pytest.mark.asyncio
async def test_lock_takes_available_and_reserved_only(db_session, inventory, event_session):
    await inventory.reserve(["A-1"], order_id=9001, ttl=HOLD)
    await inventory.reserve(["A-2"], order_id=9002, ttl=HOLD)
    await inventory.sell(["A-2"], order_id=9002)
    await db_session.commit()

    locked = await inventory.lock()
    await db_session.commit()

    assert locked == 6
    statuses = await seat_statuses(db_session, event_session.id)
    assert statuses["A-2"] == SeatStatus.SOLD
    assert statuses["A-1"] == SeatStatus.LOCKED
    session = await assert_counters_consistent(db_session, event_session.id)
    assert session.locked_seats == 6

    with pytest.raises(SeatUnavailable):
        await inventory.reserve(["A-3"], order_id=9003, ttl=HOLD)


@pytest.mark.asyncio
async def test_extend_moves_deadline(db_session, inventory, clock):
    await inventory.reserve(["A-1"], order_id=9001, ttl=HOLD)
    new_deadline = clock.now() + timedelta(minutes=30)
    assert await inventory.extend(9001, new_deadline) == 1
    await db_session.commit()

    clock.advance(minutes=20)
    assert await inventory.sell(["A-1"], order_id=9001) == 1


@pytest.mark.asyncio
async def test_resolve_zone_units_in_slot_order(inventory):
    seats = await inventory.resolve(["A-1"], {"dancefloor": 2})
    assert [seat.seat_id for seat in seats] == ["A-1", "dancefloor#1", "dancefloor#2"]


@pytest.mark.asyncio
async def test_resolve_zone_key_as_seat_id_is_one_unit(inventory):
    seats = await inventory.resolve(["dancefloor"])
    assert [seat.slot_index for seat in seats] == [1]


@pytest.mark.asyncio
async def test_resolve_skips_taken_slots(db_session, inventory):
    await inventory.reserve(["dancefloor#1"], order_id=9001, ttl=HOLD)
    await db_session.commit()

    seats = await inventory.resolve([], {"dancefloor": 2})
    assert [seat.slot_index for seat in seats] == [2, 3]

    with pytest.raises(SeatUnavailable):
        await inventory.resolve([], {"dancefloor": 3})


@pytest.mark.asyncio
async def test_resolve_unknown_zone(inventory):
    with pytest.raises(SeatNotFound):
        await inventory.resolve([], {"balcony": 1})


@pytest.mark.asyncio
async def test_count_by_status(db_session, inventory):
    await inventory.reserve(["A-1", "B-1"], order_id=9001, ttl=HOLD)
    await db_session.commit()

    counts = await inventory.count_by_status()
    assert counts[SeatStatus.RESERVED] == 2
    assert counts[SeatStatus.AVAILABLE] == 5
    assert counts[SeatStatus.SOLD] == 0


def test_session_row_lock_is_for_update():
    sql = str(session_row_lock(42).compile(dialect=postgresql.dialect()))
    assert "FROM event_sessions" in sql
    assert sql.rstrip().endswith("FOR UPDATE")


@pytest.mark.asyncio
async def test_recompute_locks_session_row_before_counting(engine, inventory):
    statements = []

    def capture(conn, cursor, statement, parameters, context, executemany):
        statements.append(" ".join(statement.split()))

    event.listen(engine.sync_engine, "before_cursor_execute", capture)
    try:
        await inventory.recompute_aggregates()
    finally:
        event.remove(engine.sync_engine, "before_cursor_execute", capture)

    row_lock = [i for i, sql in enumerate(statements) if sql.startswith("SELECT event_sessions.id FROM event_sessions")]
    recompute = [i for i, sql in enumerate(statements) if sql.startswith("UPDATE event_sessions SET")]
    assert len(row_lock) == 1
    assert len(recompute) == 1
    assert row_lock[0] < recompute[0]
