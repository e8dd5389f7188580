"""
Tests for hall-local time conversion.
"""

from datetime import datetime, timezone

import pytest

from boxoffice.core.exceptions import BookingValidationError
from boxoffice.models.venue import Hall
from boxoffice.services.venue_service import VenueDirectory


@pytest.fixture
def venues() -> VenueDirectory:
    return VenueDirectory()


def hall_in(tz: str) -> Hall:
    return Hall(id=1, name="Test", timezone=tz, currency="RUB", layout={})


def test_moscow_offset_is_east_positive(venues):
    at = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)
    assert venues.timezone_offset_minutes(hall_in("Europe/Moscow"), at) == 180


def test_offset_follows_daylight_saving(venues):
    new_york = hall_in("America/New_York")
    assert venues.timezone_offset_minutes(new_york, datetime(2026, 1, 15, tzinfo=timezone.utc)) == -300
    assert venues.timezone_offset_minutes(new_york, datetime(2026, 7, 15, tzinfo=timezone.utc)) == -240


def test_wall_clock_to_utc(venues):
    moscow = hall_in("Europe/Moscow")
    assert venues.to_utc(moscow, datetime(2026, 3, 2, 19, 0)) == datetime(2026, 3, 2, 16, 0, tzinfo=timezone.utc)

    new_york = hall_in("America/New_York")
    assert venues.to_utc(new_york, datetime(2026, 7, 4, 20, 0)) == datetime(2026, 7, 5, 0, 0, tzinfo=timezone.utc)


def test_aware_value_is_only_normalized(venues):
    instant = datetime(2026, 3, 2, 16, 0, tzinfo=timezone.utc)
    assert venues.to_utc(hall_in("Asia/Tokyo"), instant) == instant


def test_utc_to_wall_clock(venues):
    instant = datetime(2026, 3, 2, 16, 0, tzinfo=timezone.utc)
    assert venues.to_wall_clock(hall_in("Asia/Tokyo"), instant) == datetime(2026, 3, 3, 1, 0)


def test_missing_timezone_defaults_to_utc(venues):
    wall_clock = datetime(2026, 3, 2, 19, 0)
    assert venues.to_utc(hall_in(None), wall_clock) == wall_clock.replace(tzinfo=timezone.utc)


def test_unknown_timezone_raises(venues):
    with pytest.raises(BookingValidationError):
        venues.timezone_for(hall_in("Mars/Olympus"))
