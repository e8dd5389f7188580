"""
Seat inventory of one event session.

CONCURRENCY STRATEGY: Seat-granular Conditional Writes
======================================================

Problem:
  Two customers click the same seat at the same moment. Both read it as
  available, both write "reserved", and the seat ends up in two orders.

Solution:
  Every status change is a single UPDATE whose WHERE clause restates the
  status the caller validated (and, for an owner's operations, the owner):

    UPDATE seat_tickets SET status = 'reserved', order_id = :order, ...
    WHERE session_id = :session AND seat_id IN (:ids) AND status = 'available'

  If the statement touches fewer rows than requested, another transaction
  got there first. We raise ReservationConflict and the caller rolls back
  its whole transaction, so a batch is never partially reserved.

  This approach:
  - No row locks held across the read-validate-write sequence
  - Two seats of the same session never contend with each other
  - The seat row itself is the single source of truth for ownership

Aggregates:
  The counters on the session row are recomputed from the seat rows in one
  statement after every mutation. They are never incremented, so they
  cannot drift from the seats they describe. The recompute locks the
  session row first, so writers of one session count in commit order.

Lock order:
  Seat rows first, then the session row. Every writer of a session
  (bookings, the sweeper, the lock scheduler) follows it.
"""

from datetime import datetime, timedelta
from typing import Iterable, Optional

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from boxoffice.core.clock import Clock, ensure_utc
from boxoffice.core.exceptions import (
    ReservationConflict,
    ReservationExpired,
    SeatNotFound,
    SeatUnavailable,
)
from boxoffice.core.logging import get_logger
from boxoffice.core.metrics import record_seat_transition
from boxoffice.domain.state_machine import SeatStateMachine, SeatStatus
from boxoffice.models.event_session import EventSession
from boxoffice.models.seat import SeatTicket, Zone
from boxoffice.models.venue import Hall
from boxoffice.services.interfaces.pricing import PriceLookup

logger = get_logger(__name__)

# Conditional writes report their own row counts; the identity map is
# refreshed explicitly with populate_existing on the next read.
_NO_SYNC = {"synchronize_session": False}


def _unique(seat_ids: Iterable[str]) -> list[str]:
    return list(dict.fromkeys(seat_ids))


def _customer_columns(customer) -> dict:
    if customer is None:
        return {}
    return {
        "customer_name": customer.name,
        "customer_phone": customer.phone,
        "customer_email": customer.email,
    }


def session_row_lock(session_id: int):
    """SELECT ... FOR UPDATE on the session row; a no-op clause on SQLite."""
    return select(EventSession.id).where(EventSession.id == session_id).with_for_update()


class SeatInventory:
    """Seat rows of one session, mutated only through conditional writes."""

    def __init__(self, db: AsyncSession, session_id: int, clock: Clock):
        self.db = db
        self.session_id = session_id
        self.clock = clock

    # Reads

    async def seats(self, seat_ids: Optional[Iterable[str]] = None) -> list[SeatTicket]:
        query = (
            select(SeatTicket)
            .where(SeatTicket.session_id == self.session_id)
            .order_by(SeatTicket.id)
            .execution_options(populate_existing=True)
        )
        if seat_ids is not None:
            query = query.where(SeatTicket.seat_id.in_(list(seat_ids)))
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def zones(self) -> list[Zone]:
        result = await self.db.execute(
            select(Zone)
            .where(Zone.session_id == self.session_id)
            .order_by(Zone.id)
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    async def count_by_status(self) -> dict[SeatStatus, int]:
        result = await self.db.execute(
            select(SeatTicket.status, func.count(SeatTicket.id))
            .where(SeatTicket.session_id == self.session_id)
            .group_by(SeatTicket.status)
        )
        counts = {status: 0 for status in SeatStatus}
        for status, count in result.all():
            counts[SeatStatus(status)] = count
        return counts

    async def _load(self, seat_ids: list[str]) -> list[SeatTicket]:
        """Load the named seats in request order, or raise SeatNotFound."""
        found = {seat.seat_id: seat for seat in await self.seats(seat_ids)}
        missing = [seat_id for seat_id in seat_ids if seat_id not in found]
        if missing:
            raise SeatNotFound(self.session_id, missing)
        return [found[seat_id] for seat_id in seat_ids]

    async def resolve(
        self,
        seat_ids: Iterable[str],
        zone_units: Optional[dict[str, int]] = None,
    ) -> list[SeatTicket]:
        """
        Map a booking request onto concrete seat rows.

        Plain seat ids name their row directly. A zone is booked by units:
        that many available slots are picked in slot order. A seat id that
        names a zone without a units entry books one unit of it.
        """
        seat_ids = _unique(seat_ids)
        units = dict(zone_units or {})

        zones_by_key = {zone.zone_key: zone for zone in await self.zones()}
        plain_ids = []
        for seat_id in seat_ids:
            if seat_id in zones_by_key:
                units.setdefault(seat_id, 1)
            else:
                plain_ids.append(seat_id)

        unknown_zones = [key for key in units if key not in zones_by_key]
        if unknown_zones:
            raise SeatNotFound(self.session_id, unknown_zones)

        picked = await self._load(plain_ids) if plain_ids else []
        taken = {seat.id for seat in picked}

        for zone_key, count in units.items():
            zone = zones_by_key[zone_key]
            query = (
                select(SeatTicket)
                .where(
                    SeatTicket.zone_id == zone.id,
                    SeatTicket.status == SeatStatus.AVAILABLE,
                )
                .order_by(SeatTicket.slot_index)
                .execution_options(populate_existing=True)
            )
            if taken:
                query = query.where(SeatTicket.id.not_in(taken))
            slots = list((await self.db.execute(query.limit(count))).scalars().all())
            if len(slots) < count:
                logger.warning(
                    "zone_capacity_exhausted",
                    session_id=self.session_id,
                    zone_key=zone_key,
                    requested=count,
                    free=len(slots),
                )
                raise SeatUnavailable(self.session_id, [zone_key], reason="not enough free places")
            picked.extend(slots)
            taken.update(slot.id for slot in slots)

        return picked

    # Mutations

    async def reserve(
        self,
        seat_ids: Iterable[str],
        order_id: int,
        ttl: timedelta,
        customer=None,
    ) -> datetime:
        """
        Hold every seat for an order until now + ttl. All-or-nothing.

        Raises:
            SeatNotFound: an id does not exist in this session
            SeatUnavailable: a seat is not available at validation time
            ReservationConflict: a seat was taken between validation and write
        """
        seat_ids = _unique(seat_ids)
        seats = await self._load(seat_ids)
        unavailable = [
            seat.seat_id for seat in seats
            if not SeatStateMachine.can_transition(SeatStatus(seat.status), SeatStatus.RESERVED)
        ]
        if unavailable:
            raise SeatUnavailable(self.session_id, unavailable)

        reserved_until = self.clock.now() + ttl
        result = await self.db.execute(
            update(SeatTicket)
            .where(
                SeatTicket.session_id == self.session_id,
                SeatTicket.seat_id.in_(seat_ids),
                SeatTicket.status == SeatStatus.AVAILABLE,
            )
            .values(
                status=SeatStatus.RESERVED,
                order_id=order_id,
                reserved_until=reserved_until,
                **_customer_columns(customer),
            )
            .execution_options(**_NO_SYNC)
        )

        if result.rowcount != len(seat_ids):
            logger.info(
                "seat_reservation_conflict",
                session_id=self.session_id,
                order_id=order_id,
                requested=len(seat_ids),
                written=result.rowcount,
            )
            raise ReservationConflict(self.session_id, seat_ids, reason="taken concurrently")

        record_seat_transition("reserve", len(seat_ids))
        await self.recompute_aggregates()
        logger.info(
            "seats_reserved",
            session_id=self.session_id,
            order_id=order_id,
            seats=len(seat_ids),
            reserved_until=reserved_until.isoformat(),
        )
        return reserved_until

    async def sell(self, seat_ids: Iterable[str], order_id: int) -> int:
        """
        Turn an order's live holds into sales.

        Raises:
            SeatUnavailable: a seat is not reserved by this order
            ReservationExpired: a hold deadline has passed, swept or not
            ReservationConflict: a seat changed between validation and write
        """
        seat_ids = _unique(seat_ids)
        seats = await self._load(seat_ids)
        now = self.clock.now()

        not_held = [
            seat.seat_id for seat in seats
            if seat.status != SeatStatus.RESERVED or seat.order_id != order_id
        ]
        if not_held:
            raise SeatUnavailable(self.session_id, not_held, reason="not reserved by this order")

        expired = [
            seat.seat_id for seat in seats
            if seat.reserved_until is None or ensure_utc(seat.reserved_until) <= now
        ]
        if expired:
            raise ReservationExpired(
                f"Reservation expired for seats: {', '.join(expired)}",
                details={"session_id": self.session_id, "seat_ids": expired},
            )

        result = await self.db.execute(
            update(SeatTicket)
            .where(
                SeatTicket.session_id == self.session_id,
                SeatTicket.seat_id.in_(seat_ids),
                SeatTicket.status == SeatStatus.RESERVED,
                SeatTicket.order_id == order_id,
                SeatTicket.reserved_until > now,
            )
            .values(status=SeatStatus.SOLD, reserved_until=None, sold_at=now)
            .execution_options(**_NO_SYNC)
        )
        if result.rowcount != len(seat_ids):
            raise ReservationConflict(self.session_id, seat_ids, reason="changed concurrently")

        record_seat_transition("sell", len(seat_ids))
        await self.recompute_aggregates()
        logger.info("seats_sold", session_id=self.session_id, order_id=order_id, seats=len(seat_ids))
        return len(seat_ids)

    async def release(
        self,
        seat_ids: Optional[Iterable[str]] = None,
        order_id: Optional[int] = None,
    ) -> int:
        """
        Return reserved seats to available. Seats that are not reserved, or
        no longer held by `order_id` when one is given, are left alone.
        With no seat ids, every seat held by `order_id` is released.
        """
        if seat_ids is None and order_id is None:
            raise ValueError("release needs seat ids, an order id, or both")

        conditions = [
            SeatTicket.session_id == self.session_id,
            SeatTicket.status == SeatStatus.RESERVED,
        ]
        if seat_ids is not None:
            conditions.append(SeatTicket.seat_id.in_(_unique(seat_ids)))
        if order_id is not None:
            conditions.append(SeatTicket.order_id == order_id)

        result = await self.db.execute(
            update(SeatTicket)
            .where(*conditions)
            .values(
                status=SeatStatus.AVAILABLE,
                order_id=None,
                reserved_until=None,
                customer_name=None,
                customer_phone=None,
                customer_email=None,
            )
            .execution_options(**_NO_SYNC)
        )
        released = result.rowcount
        record_seat_transition("release", released)
        await self.recompute_aggregates()
        if released:
            logger.info("seats_released", session_id=self.session_id, order_id=order_id, seats=released)
        return released

    async def lock(self, seat_ids: Optional[Iterable[str]] = None) -> int:
        """Lock available and reserved seats; all of the session's when no ids given."""
        lockable = SeatStateMachine.sources_of(SeatStatus.LOCKED)
        conditions = [
            SeatTicket.session_id == self.session_id,
            SeatTicket.status.in_(list(lockable)),
        ]
        if seat_ids is not None:
            conditions.append(SeatTicket.seat_id.in_(_unique(seat_ids)))

        result = await self.db.execute(
            update(SeatTicket)
            .where(*conditions)
            .values(status=SeatStatus.LOCKED, reserved_until=None)
            .execution_options(**_NO_SYNC)
        )
        locked = result.rowcount
        record_seat_transition("lock", locked)
        await self.recompute_aggregates()
        logger.info("seats_locked", session_id=self.session_id, seats=locked)
        return locked

    async def extend(self, order_id: int, reserved_until: datetime, customer=None) -> int:
        """Move the hold deadline of seats still reserved by an order."""
        result = await self.db.execute(
            update(SeatTicket)
            .where(
                SeatTicket.session_id == self.session_id,
                SeatTicket.order_id == order_id,
                SeatTicket.status == SeatStatus.RESERVED,
            )
            .values(reserved_until=reserved_until, **_customer_columns(customer))
            .execution_options(**_NO_SYNC)
        )
        return result.rowcount

    async def recompute_aggregates(self) -> None:
        """
        Rewrite the session counters from the seat rows in one statement.

        The session row is locked by a statement of its own first. Under
        READ COMMITTED each statement takes a fresh snapshot, so the count
        subqueries below start after any concurrent writer of this session
        has committed and include its seats.
        """
        await self.db.execute(session_row_lock(self.session_id))

        def count_of(status: SeatStatus):
            return (
                select(func.count(SeatTicket.id))
                .where(SeatTicket.session_id == self.session_id, SeatTicket.status == status)
                .scalar_subquery()
            )

        total = (
            select(func.count(SeatTicket.id))
            .where(SeatTicket.session_id == self.session_id)
            .scalar_subquery()
        )
        revenue = (
            select(func.coalesce(func.sum(SeatTicket.price), 0))
            .where(SeatTicket.session_id == self.session_id, SeatTicket.status == SeatStatus.SOLD)
            .scalar_subquery()
        )

        await self.db.execute(
            update(EventSession)
            .where(EventSession.id == self.session_id)
            .values(
                total_seats=total,
                available_seats=count_of(SeatStatus.AVAILABLE),
                reserved_seats=count_of(SeatStatus.RESERVED),
                sold_seats=count_of(SeatStatus.SOLD),
                locked_seats=count_of(SeatStatus.LOCKED),
                total_revenue=revenue,
                aggregates_updated_at=self.clock.now(),
            )
            .execution_options(**_NO_SYNC)
        )


async def build_inventory(
    db: AsyncSession,
    session: EventSession,
    hall: Hall,
    prices: PriceLookup,
    clock: Clock,
) -> SeatInventory:
    """
    Create the seat rows of a new session from its hall's layout.

    Every layout seat becomes one row. Every layout zone becomes a Zone
    with `capacity` slot rows numbered from 1.
    """
    layout = hall.layout or {}

    for seat in layout.get("seats", []):
        price = prices.price(seat["seat_id"])
        db.add(SeatTicket(
            session_id=session.id,
            seat_id=seat["seat_id"],
            row=seat.get("row", 0),
            place=seat.get("place", 0),
            section=seat.get("section"),
            x=seat.get("x", 0),
            y=seat.get("y", 0),
            width=seat.get("width", 0),
            height=seat.get("height", 0),
            price=price.value,
            currency=price.currency,
            status=SeatStatus.AVAILABLE,
        ))

    for entry in layout.get("zones", []):
        price = prices.price(entry["zone_key"])
        zone = Zone(
            session_id=session.id,
            zone_key=entry["zone_key"],
            name=entry.get("name") or entry["zone_key"],
            section=entry.get("section"),
            capacity=entry["capacity"],
            x=entry.get("x", 0),
            y=entry.get("y", 0),
            width=entry.get("width", 0),
            height=entry.get("height", 0),
            price=price.value,
            currency=price.currency,
        )
        db.add(zone)
        await db.flush()
        for slot_index in range(1, zone.capacity + 1):
            db.add(SeatTicket(
                session_id=session.id,
                seat_id=f"{zone.zone_key}#{slot_index}",
                zone_id=zone.id,
                slot_index=slot_index,
                section=zone.section,
                x=zone.x,
                y=zone.y,
                width=zone.width,
                height=zone.height,
                price=price.value,
                currency=price.currency,
                status=SeatStatus.AVAILABLE,
            ))

    await db.flush()
    inventory = SeatInventory(db, session.id, clock)
    await inventory.recompute_aggregates()

    logger.info(
        "inventory_built",
        session_id=session.id,
        seats=len(layout.get("seats", [])),
        zones=len(layout.get("zones", [])),
    )
    return inventory
