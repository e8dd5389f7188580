"""
Session service: scheduling sessions, building their inventory, seat maps.
"""

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from boxoffice.core.clock import Clock
from boxoffice.core.exceptions import BookingValidationError, SessionNotFound
from boxoffice.core.logging import get_logger
from boxoffice.domain.state_machine import SeatStatus
from boxoffice.models.event_session import EventSession
from boxoffice.schemas.session import SeatMapResponse, SeatResponse, SessionCreate, SessionResponse, ZoneResponse
from boxoffice.services.cache_service import (
    get_cached_seat_map,
    schedule_seat_map_invalidation,
    set_cached_seat_map,
)
from boxoffice.services.inventory_service import SeatInventory, build_inventory
from boxoffice.services.pricing_service import PriceSchemeLookup
from boxoffice.services.venue_service import get_hall, get_price_scheme, get_venue_directory

logger = get_logger(__name__)


async def create_session(db: AsyncSession, session_data: SessionCreate, clock: Clock) -> EventSession:
    """Schedule a session and build its seat inventory from the hall layout."""
    hall = await get_hall(db, session_data.hall_id)
    scheme = await get_price_scheme(db, session_data.price_scheme_id)
    if scheme.hall_id != hall.id:
        raise BookingValidationError(
            f"Price scheme {scheme.id} belongs to hall {scheme.hall_id}, not {hall.id}",
            details={"hall_id": hall.id, "price_scheme_id": scheme.id},
        )

    starts_at = session_data.starts_at
    if starts_at.tzinfo is not None:
        starts_at = get_venue_directory().to_wall_clock(hall, starts_at)

    session = EventSession(
        hall_id=hall.id,
        price_scheme_id=scheme.id,
        event_id=session_data.event_id,
        event_name=session_data.event_name,
        starts_at=starts_at,
        status=session_data.status,
    )
    db.add(session)
    await db.flush()

    await build_inventory(db, session, hall, PriceSchemeLookup(scheme), clock)
    await db.refresh(session)

    logger.info(
        "session_created",
        session_id=session.id,
        hall_id=hall.id,
        starts_at=session.starts_at.isoformat(),
        seats=session.total_seats,
    )
    return session


async def get_session(db: AsyncSession, session_id: int) -> EventSession:
    result = await db.execute(
        select(EventSession)
        .where(EventSession.id == session_id)
        .execution_options(populate_existing=True)
    )
    session = result.scalar_one_or_none()
    if not session:
        raise SessionNotFound(session_id)
    return session


async def set_archived(db: AsyncSession, session_id: int, archived: bool) -> EventSession:
    """Archive or unarchive a session. Archived sessions are not locked or sold."""
    result = await db.execute(
        update(EventSession)
        .where(EventSession.id == session_id)
        .values(is_archived=archived)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        await db.rollback()
        raise SessionNotFound(session_id)
    await db.commit()

    logger.info("session_archive_changed", session_id=session_id, archived=archived)
    schedule_seat_map_invalidation(session_id)
    return await get_session(db, session_id)


async def get_seat_map(db: AsyncSession, session_id: int, clock: Clock) -> SeatMapResponse:
    """
    Seat map of a session: every seat, zone availability and counters.
    Served from Redis when cached.
    """
    cached = await get_cached_seat_map(session_id)
    if cached:
        return SeatMapResponse(**{**cached, "cached": True})

    session = await get_session(db, session_id)
    inventory = SeatInventory(db, session_id, clock)
    seats = await inventory.seats()
    zones = await inventory.zones()

    free_slots: dict[int, int] = {}
    for seat in seats:
        if seat.zone_id is not None and seat.status == SeatStatus.AVAILABLE:
            free_slots[seat.zone_id] = free_slots.get(seat.zone_id, 0) + 1

    seat_map = SeatMapResponse(
        session=SessionResponse.model_validate(session),
        seats=[SeatResponse.model_validate(seat) for seat in seats],
        zones=[
            ZoneResponse(
                id=zone.id,
                zone_key=zone.zone_key,
                name=zone.name,
                section=zone.section,
                capacity=zone.capacity,
                available=free_slots.get(zone.id, 0),
                x=zone.x,
                y=zone.y,
                width=zone.width,
                height=zone.height,
                price=zone.price,
                currency=zone.currency,
            )
            for zone in zones
        ],
    )
    await set_cached_seat_map(session_id, seat_map.model_dump(mode="json", exclude={"cached"}))
    return seat_map
