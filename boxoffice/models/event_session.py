"""
Event session: the header row of one seat inventory.

Key design decisions:
- Seats live in their own table keyed by (session_id, seat_id), so every
  status change is a conditional write on a single seat row.
- The status counters and revenue are denormalized here for reads, but they
  are always recomputed from the seat rows, never incremented.
- `starts_at` is the wall-clock start in the hall's timezone; the lock
  scheduler converts it with the timezone database.
- `locked_at` is claimed with a conditional write so one lock run wins.
"""

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
)
from sqlalchemy.orm import relationship

from boxoffice.db.base import Base, TimestampMixin
from boxoffice.domain.state_machine import SessionStatus
from boxoffice.models.types import status_enum


class EventSession(Base, TimestampMixin):
    __tablename__ = "event_sessions"

    id = Column(Integer, primary_key=True, index=True)
    hall_id = Column(Integer, ForeignKey("halls.id"), nullable=False, index=True)
    price_scheme_id = Column(Integer, ForeignKey("price_schemes.id"), nullable=False)
    event_id = Column(Integer, nullable=True, index=True)
    event_name = Column(String(255), nullable=False)
    starts_at = Column(DateTime(timezone=False), nullable=False)
    status = Column(
        status_enum(SessionStatus, "session_status"),
        nullable=False,
        default=SessionStatus.SCHEDULED,
    )
    is_active = Column(Boolean, nullable=False, default=True)
    is_archived = Column(Boolean, nullable=False, default=False)
    locked_at = Column(DateTime(timezone=True), nullable=True)

    # Aggregates recomputed from seat_tickets after every mutation
    total_seats = Column(Integer, nullable=False, default=0)
    available_seats = Column(Integer, nullable=False, default=0)
    reserved_seats = Column(Integer, nullable=False, default=0)
    sold_seats = Column(Integer, nullable=False, default=0)
    locked_seats = Column(Integer, nullable=False, default=0)
    total_revenue = Column(Numeric(12, 2), nullable=False, default=0)
    aggregates_updated_at = Column(DateTime(timezone=True), nullable=True)

    hall = relationship("Hall", lazy="selectin")

    __table_args__ = (
        CheckConstraint("available_seats >= 0", name="check_session_available_non_negative"),
        CheckConstraint("reserved_seats >= 0", name="check_session_reserved_non_negative"),
        CheckConstraint("sold_seats >= 0", name="check_session_sold_non_negative"),
        CheckConstraint("locked_seats >= 0", name="check_session_locked_non_negative"),
        CheckConstraint(
            "available_seats + reserved_seats + sold_seats + locked_seats = total_seats",
            name="check_session_counters_sum",
        ),
        # Lock scheduler scan: open sessions not yet locked
        Index("ix_event_sessions_lock_scan", "is_active", "is_archived", "locked_at"),
    )

    def __repr__(self) -> str:
        return (
            f"<EventSession(id={self.id}, starts_at={self.starts_at}, "
            f"available={self.available_seats}/{self.total_seats})>"
        )
