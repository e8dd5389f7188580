"""
Order endpoints: create, upgrade, pay, status changes.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from boxoffice.api.deps import get_booking_service, get_expiration_sweeper
from boxoffice.core.logging import get_logger
from boxoffice.domain.state_machine import OrderStatus
from boxoffice.schemas.order import (
    CleanupResponse,
    OrderCreate,
    OrderListResponse,
    OrderPay,
    OrderResponse,
    OrderStatusResponse,
    OrderStatusUpdate,
    OrderUpgrade,
)
from boxoffice.services.booking_service import BookingService
from boxoffice.workers.expiration_sweeper import ExpirationSweeper

logger = get_logger(__name__)
router = APIRouter(prefix="/orders", tags=["Orders"])


@router.post("/", response_model=OrderResponse, status_code=status.HTTP_201_CREATED)
async def create_order(
    order_data: OrderCreate,
    service: BookingService = Depends(get_booking_service),
):
    """
    Create an order and hold its seats.

    Seats are reserved with conditional writes; if another order takes one
    of them first, the whole request fails with 409 and nothing is held.
    """
    return await service.create_order(order_data)


@router.get("/", response_model=OrderListResponse)
async def list_orders(
    status_filter: Optional[OrderStatus] = Query(None, alias="status"),
    session_id: Optional[int] = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    service: BookingService = Depends(get_booking_service),
):
    orders, total = await service.list_orders(status_filter, session_id, page, page_size)
    return OrderListResponse(
        orders=[OrderResponse.model_validate(order) for order in orders],
        total=total,
        page=page,
        page_size=page_size,
    )


@router.post("/cleanup-expired", response_model=CleanupResponse)
async def cleanup_expired(sweeper: ExpirationSweeper = Depends(get_expiration_sweeper)):
    """Run one expiration sweep now instead of waiting for the worker."""
    count = await sweeper.run_once()
    return CleanupResponse(count=count)


@router.get("/{order_id}", response_model=OrderResponse)
async def get_order(
    order_id: int,
    service: BookingService = Depends(get_booking_service),
):
    return await service.get_order(order_id)


@router.post("/{order_id}/upgrade", response_model=OrderStatusResponse)
async def upgrade_order(
    order_id: int,
    upgrade: OrderUpgrade,
    service: BookingService = Depends(get_booking_service),
):
    """Attach customer details to a temporary hold; opens the payment window."""
    return await service.upgrade_to_pending(order_id, upgrade.customer)


@router.post("/{order_id}/pay", response_model=OrderStatusResponse)
async def pay_order(
    order_id: int,
    payment: OrderPay,
    service: BookingService = Depends(get_booking_service),
):
    """Confirm payment of a pending order. Fails once the payment window closed."""
    return await service.pay_order(order_id, payment.payment_method)


@router.patch("/{order_id}/status", response_model=OrderStatusResponse)
async def update_order_status(
    order_id: int,
    update: OrderStatusUpdate,
    service: BookingService = Depends(get_booking_service),
):
    return await service.update_order_status(order_id, update.status)
