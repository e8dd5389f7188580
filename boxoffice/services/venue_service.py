"""
Venue service: halls, price schemes and hall-local time.

Session start times are stored as the hall's wall-clock time. Converting
them goes through the IANA timezone database, so daylight saving changes
and historical offsets are handled by zoneinfo rather than by hand.
"""

from datetime import datetime, timezone
from functools import lru_cache
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from boxoffice.core.clock import ensure_utc
from boxoffice.core.exceptions import BookingValidationError, HallNotFound, PriceSchemeNotFound
from boxoffice.core.logging import get_logger
from boxoffice.models.event_session import EventSession
from boxoffice.models.venue import Hall, PriceScheme
from boxoffice.schemas.venue import HallCreate, PriceSchemeCreate

logger = get_logger(__name__)


@lru_cache(maxsize=128)
def _zone(name: str) -> ZoneInfo:
    return ZoneInfo(name)


class VenueDirectory:
    """Timezone lookups for halls."""

    def timezone_for(self, hall: Hall) -> ZoneInfo:
        try:
            return _zone(hall.timezone or "UTC")
        except (ZoneInfoNotFoundError, ValueError):
            logger.error("hall_timezone_unknown", hall_id=hall.id, timezone=hall.timezone)
            raise BookingValidationError(
                f"Hall {hall.id} has an unknown timezone {hall.timezone!r}",
                details={"hall_id": hall.id, "timezone": hall.timezone},
            )

    def timezone_offset_minutes(self, hall: Hall, at: datetime) -> int:
        """UTC offset of the hall at an instant, east positive."""
        local = ensure_utc(at).astimezone(self.timezone_for(hall))
        return int(local.utcoffset().total_seconds() // 60)

    def to_utc(self, hall: Hall, wall_clock: datetime) -> datetime:
        """Hall-local wall-clock time to a UTC instant."""
        if wall_clock.tzinfo is not None:
            return ensure_utc(wall_clock)
        return wall_clock.replace(tzinfo=self.timezone_for(hall)).astimezone(timezone.utc)

    def to_wall_clock(self, hall: Hall, instant: datetime) -> datetime:
        """UTC instant to naive hall-local wall-clock time."""
        return ensure_utc(instant).astimezone(self.timezone_for(hall)).replace(tzinfo=None)

    def session_start_utc(self, session: EventSession, hall: Hall) -> datetime:
        return self.to_utc(hall, session.starts_at)


_directory = VenueDirectory()


def get_venue_directory() -> VenueDirectory:
    return _directory


async def create_hall(db: AsyncSession, hall_data: HallCreate) -> Hall:
    """Register a hall with its pre-extracted layout."""
    hall = Hall(
        name=hall_data.name,
        timezone=hall_data.timezone,
        currency=hall_data.currency.upper(),
        layout=hall_data.layout.model_dump(),
    )
    db.add(hall)
    await db.flush()
    await db.refresh(hall)

    logger.info(
        "hall_created",
        hall_id=hall.id,
        timezone=hall.timezone,
        seats=len(hall_data.layout.seats),
        zones=len(hall_data.layout.zones),
    )
    return hall


async def get_hall(db: AsyncSession, hall_id: int) -> Hall:
    result = await db.execute(select(Hall).where(Hall.id == hall_id))
    hall = result.scalar_one_or_none()
    if not hall:
        raise HallNotFound(hall_id)
    return hall


async def create_price_scheme(db: AsyncSession, scheme_data: PriceSchemeCreate) -> PriceScheme:
    """Attach a price table to a hall."""
    await get_hall(db, scheme_data.hall_id)

    scheme = PriceScheme(
        hall_id=scheme_data.hall_id,
        name=scheme_data.name,
        currency=scheme_data.currency.upper(),
        prices={key: str(value) for key, value in scheme_data.prices.items()},
    )
    db.add(scheme)
    await db.flush()
    await db.refresh(scheme)

    logger.info("price_scheme_created", price_scheme_id=scheme.id, hall_id=scheme.hall_id)
    return scheme


async def get_price_scheme(db: AsyncSession, price_scheme_id: int) -> PriceScheme:
    result = await db.execute(select(PriceScheme).where(PriceScheme.id == price_scheme_id))
    scheme = result.scalar_one_or_none()
    if not scheme:
        raise PriceSchemeNotFound(price_scheme_id)
    return scheme
