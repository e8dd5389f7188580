"""
Booking service: the order lifecycle on top of the seat inventory.

CONCURRENCY STRATEGY: Conditional Writes with Retry
===================================================

Problem:
  A customer pays at 12:14:59.9 while the expiration sweep runs at
  12:15:00. If both act on what they read a moment earlier, the order ends
  up both paid and expired, and its seats both sold and released.

Solution:
  Every order status change is a conditional UPDATE that restates the
  status and deadline it depends on:

    UPDATE orders SET status = 'paid' ...
    WHERE id = :id AND status = 'pending' AND expires_at > :now

  and the seat writes that follow are conditional on the same order still
  owning the seats (see inventory_service). Whichever side writes first
  wins; the other sees rowcount == 0 and backs off.

  Within one transaction the write order is always
  orders -> seats -> session aggregates -> promo codes, so two booking
  transactions never wait on each other in opposite directions.

Retries:
  A ReservationConflict on create means a seat changed between our read
  and our write. The transaction is rolled back and the request replayed
  up to MAX_RETRY_ATTEMPTS times. Zone units are re-picked on each attempt;
  a plainly named seat that was taken fails the replay's validation with
  SeatUnavailable.

Side effects:
  The "order paid" notification and seat map cache invalidation run only
  after commit. Their failure is logged and never touches booking state.
"""

import asyncio
import secrets
import string
import time
from datetime import timedelta
from decimal import Decimal
from typing import Optional

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from boxoffice.core.clock import Clock, ensure_utc
from boxoffice.core.config import Settings, get_settings
from boxoffice.core.exceptions import (
    BookingValidationError,
    BoxOfficeError,
    InvalidStatusTransition,
    OrderNotFound,
    ReservationConflict,
    ReservationExpired,
    SeatUnavailable,
    SessionNotFound,
)
from boxoffice.core.logging import get_logger
from boxoffice.core.metrics import (
    booking_latency,
    booking_retries,
    record_booking_attempt,
    record_order_transition,
)
from boxoffice.domain.state_machine import OrderMode, OrderStateMachine, OrderStatus, SessionStatus
from boxoffice.models.event_session import EventSession
from boxoffice.models.order import Order, OrderLineItem
from boxoffice.schemas.order import CustomerInfo, OrderCreate
from boxoffice.services.cache_service import schedule_seat_map_invalidation
from boxoffice.services.interfaces.notifier import OrderNotifier, OrderPaidEvent
from boxoffice.services.interfaces.promo import PromoCodeValidator, PromoContext, PromoDiscount
from boxoffice.services.inventory_service import SeatInventory
from boxoffice.services.notifier_factory import get_notifier
from boxoffice.services.promo_service import DatabasePromoCodeValidator

logger = get_logger(__name__)

MAX_RETRY_ATTEMPTS = 3

_ORDER_NUMBER_ALPHABET = string.digits + string.ascii_uppercase

# Notification tasks still in flight, kept referenced until they finish
_notification_tasks: set[asyncio.Task] = set()


def _base36(value: int) -> str:
    digits = []
    while value:
        value, remainder = divmod(value, 36)
        digits.append(_ORDER_NUMBER_ALPHABET[remainder])
    return "".join(reversed(digits)) or "0"


def generate_order_number(clock: Clock) -> str:
    """Millisecond timestamp and four random characters, base 36."""
    millis = int(clock.now().timestamp() * 1000)
    suffix = "".join(secrets.choice(_ORDER_NUMBER_ALPHABET) for _ in range(4))
    return f"{_base36(millis)}{suffix}"


async def wait_for_notifications() -> None:
    """Wait until every dispatched notification has finished."""
    while _notification_tasks:
        await asyncio.gather(*list(_notification_tasks), return_exceptions=True)


class BookingService:
    """Order operations for one database session."""

    def __init__(
        self,
        db: AsyncSession,
        clock: Clock,
        promo_validator: Optional[PromoCodeValidator] = None,
        notifier: Optional[OrderNotifier] = None,
        settings: Optional[Settings] = None,
    ):
        self.db = db
        self.clock = clock
        self.promo_validator = promo_validator or DatabasePromoCodeValidator(db)
        self.notifier = notifier or get_notifier()
        self.settings = settings or get_settings()

    def inventory(self, session_id: int) -> SeatInventory:
        return SeatInventory(self.db, session_id, self.clock)

    # Reads

    async def get_order(self, order_id: int) -> Order:
        result = await self.db.execute(
            select(Order)
            .where(Order.id == order_id)
            .execution_options(populate_existing=True)
        )
        order = result.scalar_one_or_none()
        if not order:
            raise OrderNotFound(order_id)
        return order

    async def list_orders(
        self,
        status: Optional[OrderStatus] = None,
        session_id: Optional[int] = None,
        page: int = 1,
        page_size: int = 20,
    ) -> tuple[list[Order], int]:
        """List orders newest first, using ix_orders_status_expires_at when filtering by status."""
        query = select(Order)
        if status is not None:
            query = query.where(Order.status == status)
        if session_id is not None:
            query = query.where(Order.session_id == session_id)

        count_query = select(func.count()).select_from(query.subquery())
        total = (await self.db.execute(count_query)).scalar()

        orders_query = (
            query
            .order_by(Order.id.desc())
            .offset((page - 1) * page_size)
            .limit(page_size)
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(orders_query)
        return list(result.scalars().all()), total

    async def _get_bookable_session(self, session_id: int) -> EventSession:
        result = await self.db.execute(
            select(EventSession)
            .where(EventSession.id == session_id)
            .execution_options(populate_existing=True)
        )
        session = result.scalar_one_or_none()
        if not session:
            raise SessionNotFound(session_id)
        if (
            not session.is_active
            or session.is_archived
            or session.status not in (SessionStatus.SCHEDULED, SessionStatus.ACTIVE)
        ):
            raise BookingValidationError(
                f"Session {session_id} is not on sale",
                details={"session_id": session_id},
            )
        return session

    # Create

    async def create_order(self, request: OrderCreate) -> Order:
        """
        Create an order and reserve its seats atomically.
        Retries up to MAX_RETRY_ATTEMPTS on concurrent seat conflicts.
        """
        started = time.perf_counter()

        for attempt in range(1, MAX_RETRY_ATTEMPTS + 1):
            try:
                order_id = await self._create_order_once(request)
                await self.db.commit()
            except ReservationConflict as e:
                await self.db.rollback()
                booking_retries.inc()
                logger.info(
                    "booking_retry",
                    session_id=request.session_id,
                    attempt=attempt,
                    seat_ids=e.seat_ids,
                    reason="seat_conflict",
                )
                if attempt == MAX_RETRY_ATTEMPTS:
                    record_booking_attempt("conflict")
                    raise
                continue
            except SeatUnavailable:
                await self.db.rollback()
                record_booking_attempt("conflict")
                raise
            except BoxOfficeError:
                await self.db.rollback()
                record_booking_attempt("rejected")
                raise
            except Exception:
                await self.db.rollback()
                record_booking_attempt("error")
                logger.exception("booking_failed", session_id=request.session_id)
                raise

            booking_latency.observe(time.perf_counter() - started)
            record_booking_attempt("success")
            order = await self.get_order(order_id)
            record_order_transition(OrderStatus(order.status).value)
            logger.info(
                "order_created",
                order_id=order.id,
                order_number=order.order_number,
                session_id=order.session_id,
                status=OrderStatus(order.status).value,
                seats=len(order.line_items),
                total=str(order.total),
                attempt=attempt,
            )
            schedule_seat_map_invalidation(order.session_id)
            if order.status == OrderStatus.PAID:
                self._dispatch_paid(order)
            return order

        # Should not reach here, but just in case
        raise BookingValidationError("Booking failed unexpectedly")

    async def _create_order_once(self, request: OrderCreate) -> int:
        now = self.clock.now()
        session = await self._get_bookable_session(request.session_id)
        inventory = self.inventory(session.id)

        seats = await inventory.resolve(request.seat_ids, request.zone_units)
        if len(seats) > self.settings.MAX_SEATS_PER_ORDER:
            raise BookingValidationError(
                f"At most {self.settings.MAX_SEATS_PER_ORDER} seats per order",
                details={"requested": len(seats)},
            )

        subtotal = sum((Decimal(seat.price) for seat in seats), Decimal("0"))
        currency = seats[0].currency if seats else self.settings.DEFAULT_CURRENCY

        promo: Optional[PromoDiscount] = None
        if request.promo_code and request.promo_code.strip():
            promo = await self.promo_validator.validate(
                request.promo_code,
                subtotal,
                PromoContext(session_id=session.id, event_id=session.event_id, now=now),
            )
        discount = promo.discount if promo else Decimal("0")
        total = max(Decimal("0"), subtotal - discount)

        status = OrderStateMachine.INITIAL[request.mode]
        hold_minutes = (
            self.settings.TEMPORARY_HOLD_MINUTES
            if request.mode == OrderMode.TEMPORARY
            else self.settings.PAYMENT_WINDOW_MINUTES
        )
        expires_at = now + timedelta(minutes=hold_minutes)
        customer: Optional[CustomerInfo] = request.customer

        order = Order(
            order_number=generate_order_number(self.clock),
            session_id=session.id,
            customer_name=customer.name if customer else None,
            customer_phone=customer.phone if customer else None,
            customer_email=customer.email.lower() if customer else None,
            subtotal=subtotal,
            discount=discount,
            total=total,
            currency=currency,
            promo_code=promo.code if promo else None,
            promo_code_id=promo.promo_code_id if promo else None,
            status=status,
            payment_method=request.payment_method,
            is_invitation=request.is_invitation,
            notes=request.notes.strip() if request.notes else None,
            widget_id=request.widget_id,
            attribution=request.attribution,
            expires_at=expires_at,
            paid_at=now if status == OrderStatus.PAID else None,
            line_items=[
                OrderLineItem(
                    seat_ticket_id=seat.id,
                    seat_id=seat.seat_id,
                    zone_id=seat.zone_id,
                    row=seat.row,
                    place=seat.place,
                    section=seat.section,
                    price_snapshot=seat.price,
                    currency=seat.currency,
                )
                for seat in seats
            ],
        )
        self.db.add(order)
        await self.db.flush()

        seat_ids = [seat.seat_id for seat in seats]
        await inventory.reserve(seat_ids, order.id, expires_at - now, customer)
        if status == OrderStatus.PAID:
            await inventory.sell(seat_ids, order.id)
        if promo:
            await self.promo_validator.redeem(promo)

        return order.id

    # Transitions

    async def upgrade_to_pending(self, order_id: int, customer: CustomerInfo) -> Order:
        """Attach customer details to a temporary hold and open the payment window."""
        now = self.clock.now()
        order = await self.get_order(order_id)
        OrderStateMachine.validate_transition(OrderStatus(order.status), OrderStatus.PENDING)
        if ensure_utc(order.expires_at) <= now:
            raise ReservationExpired(
                f"Order {order_id} hold expired",
                details={"order_id": order_id},
            )

        session_id = order.session_id
        expires_at = now + timedelta(minutes=self.settings.PAYMENT_WINDOW_MINUTES)
        try:
            result = await self.db.execute(
                update(Order)
                .where(
                    Order.id == order_id,
                    Order.status == OrderStatus.TEMPORARY,
                    Order.expires_at > now,
                )
                .values(
                    status=OrderStatus.PENDING,
                    customer_name=customer.name,
                    customer_phone=customer.phone,
                    customer_email=customer.email.lower(),
                    expires_at=expires_at,
                )
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                raise await self._lost_race(order_id, OrderStatus.PENDING)

            held = await self.inventory(session_id).extend(order_id, expires_at, customer)
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        record_order_transition(OrderStatus.PENDING.value)
        logger.info("order_upgraded", order_id=order_id, seats_held=held, expires_at=expires_at.isoformat())
        schedule_seat_map_invalidation(session_id)
        return await self.get_order(order_id)

    async def pay_order(self, order_id: int, payment_method: str = "card") -> Order:
        """
        Mark a pending order paid and sell its seats.

        Raises:
            InvalidStatusTransition: the order is not pending
            ReservationExpired: the payment window has closed
        """
        now = self.clock.now()
        order = await self.get_order(order_id)
        OrderStateMachine.validate_transition(OrderStatus(order.status), OrderStatus.PAID)
        if ensure_utc(order.expires_at) <= now:
            raise ReservationExpired(
                f"Order {order_id} payment window closed",
                details={"order_id": order_id, "expires_at": ensure_utc(order.expires_at).isoformat()},
            )

        session_id = order.session_id
        seat_ids = [item.seat_id for item in order.line_items]
        try:
            result = await self.db.execute(
                update(Order)
                .where(
                    Order.id == order_id,
                    Order.status == OrderStatus.PENDING,
                    Order.expires_at > now,
                )
                .values(status=OrderStatus.PAID, paid_at=now, payment_method=payment_method)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                raise await self._lost_race(order_id, OrderStatus.PAID)

            await self.inventory(session_id).sell(seat_ids, order_id)
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            logger.warning("payment_rejected", order_id=order_id)
            raise

        record_order_transition(OrderStatus.PAID.value)
        logger.info("order_paid", order_id=order_id, seats=len(seat_ids), payment_method=payment_method)
        schedule_seat_map_invalidation(session_id)

        order = await self.get_order(order_id)
        self._dispatch_paid(order)
        return order

    async def update_order_status(self, order_id: int, target: OrderStatus) -> Order:
        """
        Move an order to `target`.

        cancelled/expired release the order's seats, paid goes through
        pay_order, the current status is a no-op, anything else is rejected.
        """
        order = await self.get_order(order_id)
        current = OrderStatus(order.status)

        if target == current:
            return order
        if target == OrderStatus.PAID:
            return await self.pay_order(order_id, order.payment_method)
        if target not in (OrderStatus.CANCELLED, OrderStatus.EXPIRED):
            raise InvalidStatusTransition(from_status=current.value, to_status=target.value)

        OrderStateMachine.validate_transition(current, target)
        session_id = order.session_id
        try:
            result = await self.db.execute(
                update(Order)
                .where(Order.id == order_id, Order.status == current)
                .values(status=target)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                raise await self._lost_race(order_id, target)

            released = await self.inventory(session_id).release(order_id=order_id)
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        record_order_transition(target.value)
        logger.info("order_status_updated", order_id=order_id, status=target.value, seats_released=released)
        schedule_seat_map_invalidation(session_id)
        return await self.get_order(order_id)

    async def expire_if_due(self, order_id: int, session_id: int) -> bool:
        """
        Expire one lapsed hold and release its seats in a single transaction.
        Returns False when the order was paid, cancelled or already expired
        before the write.
        """
        now = self.clock.now()
        result = await self.db.execute(
            update(Order)
            .where(
                Order.id == order_id,
                Order.status.in_(list(OrderStateMachine.HOLDING)),
                Order.expires_at < now,
            )
            .values(status=OrderStatus.EXPIRED)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            await self.db.rollback()
            return False

        released = await self.inventory(session_id).release(order_id=order_id)
        await self.db.commit()

        record_order_transition(OrderStatus.EXPIRED.value)
        logger.info("order_expired", order_id=order_id, session_id=session_id, seats_released=released)
        schedule_seat_map_invalidation(session_id)
        return True

    async def _lost_race(self, order_id: int, target: OrderStatus) -> BoxOfficeError:
        """Explain why a conditional order write touched nothing."""
        await self.db.rollback()
        order = await self.get_order(order_id)
        current = OrderStatus(order.status)
        if current in OrderStateMachine.HOLDING and OrderStateMachine.can_transition(current, target):
            return ReservationExpired(
                f"Order {order_id} expired",
                details={"order_id": order_id},
            )
        return InvalidStatusTransition(from_status=current.value, to_status=target.value)

    # Notifications

    def _dispatch_paid(self, order: Order) -> None:
        event = OrderPaidEvent(
            order_id=order.id,
            order_number=order.order_number,
            session_id=order.session_id,
            total=Decimal(order.total),
            currency=order.currency,
            seat_ids=tuple(item.seat_id for item in order.line_items),
            paid_at=ensure_utc(order.paid_at) or self.clock.now(),
            is_invitation=order.is_invitation,
            widget_id=order.widget_id,
        )
        task = asyncio.create_task(self._notify_paid(event))
        _notification_tasks.add(task)
        task.add_done_callback(_notification_tasks.discard)

    async def _notify_paid(self, event: OrderPaidEvent) -> None:
        try:
            await self.notifier.order_paid(event)
        except Exception:
            logger.exception("order_paid_notification_failed", order_id=event.order_id)
