"""
Pydantic schemas for halls and price schemes.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, Field, field_validator, model_validator


class LayoutSeat(BaseModel):
    seat_id: str = Field(..., min_length=1, max_length=100)
    row: int = 0
    place: int = 0
    section: Optional[str] = Field(None, max_length=255)
    x: float = 0
    y: float = 0
    width: float = 0
    height: float = 0


class LayoutZone(BaseModel):
    zone_key: str = Field(..., min_length=1, max_length=90)
    name: Optional[str] = Field(None, max_length=255)
    capacity: int = Field(..., gt=0, le=100000)
    section: Optional[str] = Field(None, max_length=255)
    x: float = 0
    y: float = 0
    width: float = 0
    height: float = 0


class HallLayout(BaseModel):
    seats: list[LayoutSeat] = Field(default_factory=list)
    zones: list[LayoutZone] = Field(default_factory=list)

    @model_validator(mode="after")
    def check_unique_ids(self) -> "HallLayout":
        ids = [seat.seat_id for seat in self.seats] + [zone.zone_key for zone in self.zones]
        duplicates = sorted({key for key in ids if ids.count(key) > 1})
        if duplicates:
            raise ValueError(f"Duplicate seat ids or zone keys: {', '.join(duplicates)}")
        return self


class HallCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    timezone: str = Field(default="UTC", max_length=64)
    currency: str = Field(default="RUB", min_length=3, max_length=3)
    layout: HallLayout = Field(default_factory=HallLayout)

    @field_validator("timezone")
    @classmethod
    def check_timezone(cls, value: str) -> str:
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError):
            raise ValueError(f"Unknown IANA timezone: {value}")
        return value


class HallResponse(BaseModel):
    id: int
    name: str
    timezone: str
    currency: str
    layout: HallLayout
    created_at: datetime

    model_config = {"from_attributes": True}


class PriceSchemeCreate(BaseModel):
    hall_id: int
    name: str = Field(..., min_length=1, max_length=255)
    currency: str = Field(default="RUB", min_length=3, max_length=3)
    prices: dict[str, Decimal] = Field(default_factory=dict)

    @field_validator("prices")
    @classmethod
    def check_prices(cls, value: dict[str, Decimal]) -> dict[str, Decimal]:
        negative = [key for key, price in value.items() if price < 0]
        if negative:
            raise ValueError(f"Negative prices for: {', '.join(negative)}")
        return value


class PriceSchemeResponse(BaseModel):
    id: int
    hall_id: int
    name: str
    currency: str
    prices: dict[str, Decimal]
    created_at: datetime

    model_config = {"from_attributes": True}
