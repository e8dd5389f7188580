"""
Pydantic schemas for event sessions and their seat maps.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field

from boxoffice.domain.state_machine import SeatStatus, SessionStatus


class SessionCreate(BaseModel):
    hall_id: int
    price_scheme_id: int
    event_id: Optional[int] = None
    event_name: str = Field(..., min_length=1, max_length=255)
    # Wall-clock start in the hall's timezone. Aware values are converted.
    starts_at: datetime
    status: SessionStatus = SessionStatus.SCHEDULED


class SessionResponse(BaseModel):
    id: int
    hall_id: int
    price_scheme_id: int
    event_id: Optional[int]
    event_name: str
    starts_at: datetime
    status: SessionStatus
    is_active: bool
    is_archived: bool
    locked_at: Optional[datetime]
    total_seats: int
    available_seats: int
    reserved_seats: int
    sold_seats: int
    locked_seats: int
    total_revenue: Decimal

    model_config = {"from_attributes": True}


class SeatResponse(BaseModel):
    seat_id: str
    zone_id: Optional[int]
    slot_index: Optional[int]
    row: int
    place: int
    section: Optional[str]
    x: float
    y: float
    width: float
    height: float
    price: Decimal
    currency: str
    status: SeatStatus
    reserved_until: Optional[datetime]
    order_id: Optional[int]

    model_config = {"from_attributes": True}


class ZoneResponse(BaseModel):
    id: int
    zone_key: str
    name: str
    section: Optional[str]
    capacity: int
    available: int
    x: float
    y: float
    width: float
    height: float
    price: Decimal
    currency: str


class SeatMapResponse(BaseModel):
    session: SessionResponse
    seats: list[SeatResponse]
    zones: list[ZoneResponse]
    cached: bool = False


class SessionLockResponse(BaseModel):
    session_id: int
    locked: bool
    seats_locked: int
    lock_time: datetime


class LockRunResponse(BaseModel):
    sessions_locked: int
    seats_locked: int
    failures: int
