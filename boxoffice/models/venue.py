"""
Venue reference data: halls with their pre-extracted seat layout, and the
price schemes that assign a price to every seat or zone of a hall.

The layout JSON is produced by the floor-plan tooling and consumed only when a
session's seat inventory is built:
  {"seats": [{"seat_id", "row", "place", "section", "x", "y", "width", "height"}],
   "zones": [{"zone_key", "name", "capacity", "section", "x", "y", "width", "height"}]}
"""

from sqlalchemy import Column, Integer, String, ForeignKey, JSON

from boxoffice.db.base import Base, TimestampMixin


class Hall(Base, TimestampMixin):
    __tablename__ = "halls"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    # IANA zone name; session start times are wall-clock times in this zone
    timezone = Column(String(64), nullable=False, default="UTC")
    currency = Column(String(3), nullable=False, default="RUB")
    layout = Column(JSON, nullable=False, default=dict)

    def __repr__(self) -> str:
        return f"<Hall(id={self.id}, name={self.name}, tz={self.timezone})>"


class PriceScheme(Base, TimestampMixin):
    __tablename__ = "price_schemes"

    id = Column(Integer, primary_key=True, index=True)
    hall_id = Column(Integer, ForeignKey("halls.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    currency = Column(String(3), nullable=False, default="RUB")
    # {"<seat_id or zone_key>": "1500.00"}
    prices = Column(JSON, nullable=False, default=dict)

    def __repr__(self) -> str:
        return f"<PriceScheme(id={self.id}, hall={self.hall_id}, name={self.name})>"
