"""
Promo codes. Only the fields the discount computation needs.

usage_count is bumped with a conditional UPDATE at redemption time so a
limited code cannot be over-redeemed by concurrent orders.
"""

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Integer,
    JSON,
    Numeric,
    String,
)

from boxoffice.db.base import Base, TimestampMixin


class PromoCode(Base, TimestampMixin):
    __tablename__ = "promo_codes"

    id = Column(Integer, primary_key=True, index=True)
    code = Column(String(20), nullable=False, unique=True, index=True)
    discount_type = Column(String(20), nullable=False, default="percentage")
    discount_value = Column(Numeric(10, 2), nullable=False)
    max_discount_amount = Column(Numeric(10, 2), nullable=True)
    min_order_amount = Column(Numeric(10, 2), nullable=False, default=0)
    usage_limit = Column(Integer, nullable=True)  # None = unlimited
    usage_count = Column(Integer, nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True)
    valid_from = Column(DateTime(timezone=True), nullable=True)
    valid_until = Column(DateTime(timezone=True), nullable=True)
    applicable_event_ids = Column(JSON, nullable=False, default=list)  # empty = all events

    __table_args__ = (
        CheckConstraint("discount_type IN ('percentage', 'fixed')", name="check_promo_discount_type"),
        CheckConstraint("discount_value > 0", name="check_promo_discount_positive"),
        CheckConstraint("usage_count >= 0", name="check_promo_usage_non_negative"),
    )

    def __repr__(self) -> str:
        return f"<PromoCode(code={self.code}, {self.discount_type}={self.discount_value})>"
