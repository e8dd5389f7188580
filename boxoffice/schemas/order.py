"""
Pydantic schemas for order-related request/response validation.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, EmailStr, Field, model_validator

from boxoffice.domain.state_machine import OrderMode, OrderStatus


class CustomerInfo(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    phone: str = Field(..., min_length=3, max_length=50)
    email: EmailStr


class OrderCreate(BaseModel):
    session_id: int
    seat_ids: list[str] = Field(default_factory=list)
    zone_units: dict[str, int] = Field(default_factory=dict)
    customer: Optional[CustomerInfo] = None
    promo_code: Optional[str] = Field(None, max_length=20)
    mode: OrderMode = OrderMode.TEMPORARY
    payment_method: str = Field(default="cash", max_length=20)
    is_invitation: bool = False
    notes: Optional[str] = Field(None, max_length=500)
    widget_id: Optional[str] = Field(None, max_length=100)
    attribution: Optional[dict[str, str]] = None

    @model_validator(mode="after")
    def check_request(self) -> "OrderCreate":
        if not self.seat_ids and not self.zone_units:
            raise ValueError("An order needs at least one seat or zone unit")
        if any(units <= 0 for units in self.zone_units.values()):
            raise ValueError("Zone units must be positive")
        # Invitations are issued directly as paid orders
        if self.is_invitation:
            self.mode = OrderMode.PAID
        if self.mode != OrderMode.TEMPORARY and self.customer is None:
            raise ValueError(f"Customer details are required for {self.mode.value} orders")
        return self


class OrderLineItemResponse(BaseModel):
    seat_id: str
    zone_id: Optional[int]
    row: int
    place: int
    section: Optional[str]
    price_snapshot: Decimal
    currency: str

    model_config = {"from_attributes": True}


class OrderResponse(BaseModel):
    id: int
    order_number: str
    session_id: int
    customer_name: Optional[str]
    customer_phone: Optional[str]
    customer_email: Optional[str]
    line_items: list[OrderLineItemResponse]
    subtotal: Decimal
    discount: Decimal
    total: Decimal
    currency: str
    promo_code: Optional[str]
    status: OrderStatus
    payment_method: str
    is_invitation: bool
    notes: Optional[str]
    widget_id: Optional[str]
    attribution: Optional[dict[str, str]]
    expires_at: datetime
    paid_at: Optional[datetime]
    created_at: datetime

    model_config = {"from_attributes": True}


class OrderListResponse(BaseModel):
    orders: list[OrderResponse]
    total: int
    page: int
    page_size: int


class OrderUpgrade(BaseModel):
    customer: CustomerInfo


class OrderPay(BaseModel):
    payment_method: str = Field(default="card", max_length=20)


class OrderStatusUpdate(BaseModel):
    status: OrderStatus


class OrderStatusResponse(BaseModel):
    id: int
    status: OrderStatus
    expires_at: datetime

    model_config = {"from_attributes": True}


class CleanupResponse(BaseModel):
    count: int
