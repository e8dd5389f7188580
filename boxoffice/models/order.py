"""
Orders and their line items.

Key design decisions:
- Line items snapshot the seat's price and placement at order time, so
  later price scheme edits never change what a customer owes.
- Customer fields are nullable: anonymous temporary holds have none until
  the order is upgraded to pending.
- Index on (status, expires_at) serves the expiration sweep scan.
"""

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    JSON,
    Numeric,
    String,
)
from sqlalchemy.orm import relationship

from boxoffice.db.base import Base, TimestampMixin
from boxoffice.domain.state_machine import OrderStatus
from boxoffice.models.types import status_enum


class Order(Base, TimestampMixin):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True)
    order_number = Column(String(32), nullable=False, unique=True)
    session_id = Column(Integer, ForeignKey("event_sessions.id"), nullable=False, index=True)

    customer_name = Column(String(255), nullable=True)
    customer_phone = Column(String(50), nullable=True)
    customer_email = Column(String(255), nullable=True)

    subtotal = Column(Numeric(12, 2), nullable=False)
    discount = Column(Numeric(12, 2), nullable=False, default=0)
    total = Column(Numeric(12, 2), nullable=False)
    currency = Column(String(3), nullable=False)
    promo_code = Column(String(20), nullable=True)
    promo_code_id = Column(Integer, ForeignKey("promo_codes.id"), nullable=True)

    status = Column(
        status_enum(OrderStatus, "order_status"),
        nullable=False,
        default=OrderStatus.TEMPORARY,
    )
    payment_method = Column(String(20), nullable=False, default="cash")
    is_invitation = Column(Boolean, nullable=False, default=False)
    notes = Column(String(500), nullable=True)
    widget_id = Column(String(100), nullable=True)
    attribution = Column(JSON, nullable=True)

    expires_at = Column(DateTime(timezone=True), nullable=False)
    paid_at = Column(DateTime(timezone=True), nullable=True)

    line_items = relationship(
        "OrderLineItem",
        back_populates="order",
        order_by="OrderLineItem.id",
        lazy="selectin",
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        CheckConstraint("subtotal >= 0", name="check_order_subtotal_non_negative"),
        CheckConstraint("discount >= 0", name="check_order_discount_non_negative"),
        CheckConstraint("total >= 0", name="check_order_total_non_negative"),
        Index("ix_orders_status_expires_at", "status", "expires_at"),
    )

    def __repr__(self) -> str:
        return f"<Order(id={self.id}, number={self.order_number}, status={self.status})>"


class OrderLineItem(Base):
    __tablename__ = "order_line_items"

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(Integer, ForeignKey("orders.id"), nullable=False, index=True)
    seat_ticket_id = Column(Integer, ForeignKey("seat_tickets.id"), nullable=False)
    seat_id = Column(String(100), nullable=False)
    zone_id = Column(Integer, ForeignKey("zones.id"), nullable=True)
    row = Column(Integer, nullable=False, default=0)
    place = Column(Integer, nullable=False, default=0)
    section = Column(String(255), nullable=True)
    price_snapshot = Column(Numeric(10, 2), nullable=False)
    currency = Column(String(3), nullable=False)

    order = relationship("Order", back_populates="line_items")

    __table_args__ = (
        CheckConstraint("price_snapshot >= 0", name="check_line_item_price_non_negative"),
    )
