"""Initial schema: halls, price schemes, sessions, zones, seats, promo codes, orders.

Revision ID: 001
Revises: None
Create Date: 2026-10-19
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    ]


def _geometry() -> list:
    return [
        sa.Column("x", sa.Float(), nullable=False, server_default=sa.text("0")),
        sa.Column("y", sa.Float(), nullable=False, server_default=sa.text("0")),
        sa.Column("width", sa.Float(), nullable=False, server_default=sa.text("0")),
        sa.Column("height", sa.Float(), nullable=False, server_default=sa.text("0")),
    ]


def upgrade() -> None:
    # Halls with their pre-extracted layout
    op.create_table(
        "halls",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("timezone", sa.String(64), nullable=False, server_default="UTC"),
        sa.Column("currency", sa.String(3), nullable=False, server_default="RUB"),
        sa.Column("layout", sa.JSON(), nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_halls_id", "halls", ["id"])

    op.create_table(
        "price_schemes",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("hall_id", sa.Integer(), sa.ForeignKey("halls.id"), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("currency", sa.String(3), nullable=False, server_default="RUB"),
        sa.Column("prices", sa.JSON(), nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_price_schemes_id", "price_schemes", ["id"])
    op.create_index("ix_price_schemes_hall_id", "price_schemes", ["hall_id"])

    # Sessions: header row of one seat inventory, counters denormalized
    op.create_table(
        "event_sessions",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("hall_id", sa.Integer(), sa.ForeignKey("halls.id"), nullable=False),
        sa.Column("price_scheme_id", sa.Integer(), sa.ForeignKey("price_schemes.id"), nullable=False),
        sa.Column("event_id", sa.Integer(), nullable=True),
        sa.Column("event_name", sa.String(255), nullable=False),
        sa.Column("starts_at", sa.DateTime(timezone=False), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="scheduled"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("is_archived", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("locked_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("total_seats", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("available_seats", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("reserved_seats", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("sold_seats", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("locked_seats", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("total_revenue", sa.Numeric(12, 2), nullable=False, server_default=sa.text("0")),
        sa.Column("aggregates_updated_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.CheckConstraint(
            "status IN ('scheduled', 'active', 'completed', 'cancelled')",
            name="session_status",
        ),
        sa.CheckConstraint("available_seats >= 0", name="check_session_available_non_negative"),
        sa.CheckConstraint("reserved_seats >= 0", name="check_session_reserved_non_negative"),
        sa.CheckConstraint("sold_seats >= 0", name="check_session_sold_non_negative"),
        sa.CheckConstraint("locked_seats >= 0", name="check_session_locked_non_negative"),
        # The counters always describe every seat row of the session
        sa.CheckConstraint(
            "available_seats + reserved_seats + sold_seats + locked_seats = total_seats",
            name="check_session_counters_sum",
        ),
    )
    op.create_index("ix_event_sessions_id", "event_sessions", ["id"])
    op.create_index("ix_event_sessions_hall_id", "event_sessions", ["hall_id"])
    op.create_index("ix_event_sessions_event_id", "event_sessions", ["event_id"])
    # Lock scheduler scan: active, not archived, not yet locked
    op.create_index("ix_event_sessions_lock_scan", "event_sessions", ["is_active", "is_archived", "locked_at"])

    op.create_table(
        "zones",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("session_id", sa.Integer(), sa.ForeignKey("event_sessions.id"), nullable=False),
        sa.Column("zone_key", sa.String(100), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("section", sa.String(255), nullable=True),
        sa.Column("capacity", sa.Integer(), nullable=False),
        *_geometry(),
        sa.Column("price", sa.Numeric(10, 2), nullable=False, server_default=sa.text("0")),
        sa.Column("currency", sa.String(3), nullable=False),
        *_timestamps(),
        sa.UniqueConstraint("session_id", "zone_key", name="uq_zone_session_key"),
        sa.CheckConstraint("capacity > 0", name="check_zone_capacity_positive"),
    )
    op.create_index("ix_zones_id", "zones", ["id"])
    op.create_index("ix_zones_session_id", "zones", ["session_id"])

    # Seats: one row per bookable unit, the unit of every conditional write
    op.create_table(
        "seat_tickets",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("session_id", sa.Integer(), sa.ForeignKey("event_sessions.id"), nullable=False),
        sa.Column("seat_id", sa.String(100), nullable=False),
        sa.Column("zone_id", sa.Integer(), sa.ForeignKey("zones.id"), nullable=True),
        sa.Column("slot_index", sa.Integer(), nullable=True),
        sa.Column("row", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("place", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("section", sa.String(255), nullable=True),
        *_geometry(),
        sa.Column("price", sa.Numeric(10, 2), nullable=False, server_default=sa.text("0")),
        sa.Column("currency", sa.String(3), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="available"),
        sa.Column("reserved_until", sa.DateTime(timezone=True), nullable=True),
        sa.Column("order_id", sa.Integer(), nullable=True),
        sa.Column("sold_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("customer_name", sa.String(255), nullable=True),
        sa.Column("customer_phone", sa.String(50), nullable=True),
        sa.Column("customer_email", sa.String(255), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("session_id", "seat_id", name="uq_seat_session_seat"),
        sa.CheckConstraint("status IN ('available', 'reserved', 'sold', 'locked')", name="seat_status"),
        sa.CheckConstraint("price >= 0", name="check_seat_price_non_negative"),
        sa.CheckConstraint(
            "status NOT IN ('reserved', 'sold') OR order_id IS NOT NULL",
            name="check_seat_held_has_order",
        ),
    )
    op.create_index("ix_seat_tickets_id", "seat_tickets", ["id"])
    op.create_index("ix_seat_tickets_zone_id", "seat_tickets", ["zone_id"])
    op.create_index("ix_seat_tickets_order_id", "seat_tickets", ["order_id"])
    # Aggregate recomputation and zone slot picking filter by session and status
    op.create_index("ix_seat_tickets_session_status", "seat_tickets", ["session_id", "status"])

    op.create_table(
        "promo_codes",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("code", sa.String(20), nullable=False),
        sa.Column("discount_type", sa.String(20), nullable=False, server_default="percentage"),
        sa.Column("discount_value", sa.Numeric(10, 2), nullable=False),
        sa.Column("max_discount_amount", sa.Numeric(10, 2), nullable=True),
        sa.Column("min_order_amount", sa.Numeric(10, 2), nullable=False, server_default=sa.text("0")),
        sa.Column("usage_limit", sa.Integer(), nullable=True),
        sa.Column("usage_count", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("valid_from", sa.DateTime(timezone=True), nullable=True),
        sa.Column("valid_until", sa.DateTime(timezone=True), nullable=True),
        sa.Column("applicable_event_ids", sa.JSON(), nullable=False),
        *_timestamps(),
        sa.CheckConstraint("discount_type IN ('percentage', 'fixed')", name="check_promo_discount_type"),
        sa.CheckConstraint("discount_value > 0", name="check_promo_discount_positive"),
        sa.CheckConstraint("usage_count >= 0", name="check_promo_usage_non_negative"),
    )
    op.create_index("ix_promo_codes_id", "promo_codes", ["id"])
    op.create_index("ix_promo_codes_code", "promo_codes", ["code"], unique=True)

    op.create_table(
        "orders",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("order_number", sa.String(32), nullable=False, unique=True),
        sa.Column("session_id", sa.Integer(), sa.ForeignKey("event_sessions.id"), nullable=False),
        sa.Column("customer_name", sa.String(255), nullable=True),
        sa.Column("customer_phone", sa.String(50), nullable=True),
        sa.Column("customer_email", sa.String(255), nullable=True),
        sa.Column("subtotal", sa.Numeric(12, 2), nullable=False),
        sa.Column("discount", sa.Numeric(12, 2), nullable=False, server_default=sa.text("0")),
        sa.Column("total", sa.Numeric(12, 2), nullable=False),
        sa.Column("currency", sa.String(3), nullable=False),
        sa.Column("promo_code", sa.String(20), nullable=True),
        sa.Column("promo_code_id", sa.Integer(), sa.ForeignKey("promo_codes.id"), nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="temporary"),
        sa.Column("payment_method", sa.String(20), nullable=False, server_default="cash"),
        sa.Column("is_invitation", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("notes", sa.String(500), nullable=True),
        sa.Column("widget_id", sa.String(100), nullable=True),
        sa.Column("attribution", sa.JSON(), nullable=True),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("paid_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.CheckConstraint(
            "status IN ('temporary', 'pending', 'paid', 'cancelled', 'expired')",
            name="order_status",
        ),
        sa.CheckConstraint("subtotal >= 0", name="check_order_subtotal_non_negative"),
        sa.CheckConstraint("discount >= 0", name="check_order_discount_non_negative"),
        sa.CheckConstraint("total >= 0", name="check_order_total_non_negative"),
    )
    op.create_index("ix_orders_id", "orders", ["id"])
    op.create_index("ix_orders_session_id", "orders", ["session_id"])
    # Expiration sweep scan: holding statuses past their deadline
    op.create_index("ix_orders_status_expires_at", "orders", ["status", "expires_at"])

    op.create_table(
        "order_line_items",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("order_id", sa.Integer(), sa.ForeignKey("orders.id"), nullable=False),
        sa.Column("seat_ticket_id", sa.Integer(), sa.ForeignKey("seat_tickets.id"), nullable=False),
        sa.Column("seat_id", sa.String(100), nullable=False),
        sa.Column("zone_id", sa.Integer(), sa.ForeignKey("zones.id"), nullable=True),
        sa.Column("row", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("place", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("section", sa.String(255), nullable=True),
        sa.Column("price_snapshot", sa.Numeric(10, 2), nullable=False),
        sa.Column("currency", sa.String(3), nullable=False),
        sa.CheckConstraint("price_snapshot >= 0", name="check_line_item_price_non_negative"),
    )
    op.create_index("ix_order_line_items_id", "order_line_items", ["id"])
    op.create_index("ix_order_line_items_order_id", "order_line_items", ["order_id"])


def downgrade() -> None:
    op.drop_table("order_line_items")
    op.drop_table("orders")
    op.drop_table("promo_codes")
    op.drop_table("seat_tickets")
    op.drop_table("zones")
    op.drop_table("event_sessions")
    op.drop_table("price_schemes")
    op.drop_table("halls")
