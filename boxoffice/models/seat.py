"""
Seat inventory rows.

Key design decisions:
- One row per bookable unit, unique on (session_id, seat_id). Status changes
  are single-statement conditional UPDATEs on these rows.
- A grouped-capacity zone is a Zone row owning `capacity` slot seats through
  zone_id/slot_index. The zone itself is only a display record and is not
  counted in the session aggregates.
- order_id is a plain column, not a foreign key: orders reference seats through
  their line items and a seat only remembers its current holder.
"""

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from boxoffice.db.base import Base, TimestampMixin
from boxoffice.domain.state_machine import SeatStatus
from boxoffice.models.types import status_enum


class Zone(Base, TimestampMixin):
    __tablename__ = "zones"

    id = Column(Integer, primary_key=True, index=True)
    session_id = Column(Integer, ForeignKey("event_sessions.id"), nullable=False, index=True)
    zone_key = Column(String(100), nullable=False)
    name = Column(String(255), nullable=False)
    section = Column(String(255), nullable=True)
    capacity = Column(Integer, nullable=False)
    x = Column(Float, nullable=False, default=0)
    y = Column(Float, nullable=False, default=0)
    width = Column(Float, nullable=False, default=0)
    height = Column(Float, nullable=False, default=0)
    price = Column(Numeric(10, 2), nullable=False, default=0)
    currency = Column(String(3), nullable=False)

    slots = relationship(
        "SeatTicket",
        back_populates="zone",
        order_by="SeatTicket.slot_index",
        lazy="selectin",
    )

    __table_args__ = (
        UniqueConstraint("session_id", "zone_key", name="uq_zone_session_key"),
        CheckConstraint("capacity > 0", name="check_zone_capacity_positive"),
    )

    def __repr__(self) -> str:
        return f"<Zone(id={self.id}, key={self.zone_key}, capacity={self.capacity})>"


class SeatTicket(Base, TimestampMixin):
    __tablename__ = "seat_tickets"

    id = Column(Integer, primary_key=True, index=True)
    session_id = Column(Integer, ForeignKey("event_sessions.id"), nullable=False)
    seat_id = Column(String(100), nullable=False)
    zone_id = Column(Integer, ForeignKey("zones.id"), nullable=True, index=True)
    slot_index = Column(Integer, nullable=True)

    row = Column(Integer, nullable=False, default=0)
    place = Column(Integer, nullable=False, default=0)
    section = Column(String(255), nullable=True)
    x = Column(Float, nullable=False, default=0)
    y = Column(Float, nullable=False, default=0)
    width = Column(Float, nullable=False, default=0)
    height = Column(Float, nullable=False, default=0)

    price = Column(Numeric(10, 2), nullable=False, default=0)
    currency = Column(String(3), nullable=False)

    status = Column(
        status_enum(SeatStatus, "seat_status"),
        nullable=False,
        default=SeatStatus.AVAILABLE,
    )
    reserved_until = Column(DateTime(timezone=True), nullable=True)
    order_id = Column(Integer, nullable=True, index=True)
    sold_at = Column(DateTime(timezone=True), nullable=True)

    # Customer snapshot taken at reservation time
    customer_name = Column(String(255), nullable=True)
    customer_phone = Column(String(50), nullable=True)
    customer_email = Column(String(255), nullable=True)

    zone = relationship("Zone", back_populates="slots")

    __table_args__ = (
        UniqueConstraint("session_id", "seat_id", name="uq_seat_session_seat"),
        CheckConstraint("price >= 0", name="check_seat_price_non_negative"),
        CheckConstraint(
            "status NOT IN ('reserved', 'sold') OR order_id IS NOT NULL",
            name="check_seat_held_has_order",
        ),
        Index("ix_seat_tickets_session_status", "session_id", "status"),
    )

    @property
    def is_zone_slot(self) -> bool:
        return self.zone_id is not None

    def __repr__(self) -> str:
        return f"<SeatTicket(id={self.id}, seat={self.seat_id}, status={self.status})>"
