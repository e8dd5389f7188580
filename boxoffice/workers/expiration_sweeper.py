"""
Expiration sweeper: expires unpaid holds and frees their seats.

Every pass selects orders still temporary or pending whose deadline has
passed and expires each one in its own transaction. The expiry itself is
a conditional write that re-checks status and deadline, so an order paid
between the scan and the write is left alone, and the seat release only
touches seats the order still owns. Running the sweep twice, or in two
processes at once, expires each order exactly once.

This is the reconciliation pass. The authoritative expiry check is the
deadline comparison inside sell(), which refuses a lapsed hold whether or
not the sweep has reached it yet.
"""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from boxoffice.core.clock import Clock
from boxoffice.core.config import get_settings
from boxoffice.core.logging import get_logger
from boxoffice.core.metrics import last_sweep_timestamp, sweep_expired_orders, sweep_item_failures, sweep_runs
from boxoffice.domain.state_machine import OrderStateMachine
from boxoffice.models.order import Order
from boxoffice.services.booking_service import BookingService
from boxoffice.services.interfaces.notifier import OrderNotifier
from boxoffice.workers.base import PeriodicWorker

logger = get_logger(__name__)


class ExpirationSweeper(PeriodicWorker):
    name = "expiration_sweeper"

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        clock: Clock,
        notifier: OrderNotifier,
        interval_seconds: float | None = None,
        batch_size: int | None = None,
    ):
        settings = get_settings()
        super().__init__(interval_seconds or settings.EXPIRY_SWEEP_INTERVAL_SECONDS, clock)
        self.session_factory = session_factory
        self.notifier = notifier
        self.batch_size = batch_size or settings.SWEEP_BATCH_SIZE

    async def _due_orders(self) -> list[tuple[int, int]]:
        async with self.session_factory() as db:
            result = await db.execute(
                select(Order.id, Order.session_id)
                .where(
                    Order.status.in_(list(OrderStateMachine.HOLDING)),
                    Order.expires_at < self.clock.now(),
                )
                .order_by(Order.expires_at)
                .limit(self.batch_size)
            )
            return [(order_id, session_id) for order_id, session_id in result.all()]

    async def run_once(self) -> int:
        """Expire every lapsed hold found. Returns how many orders were expired."""
        try:
            due = await self._due_orders()
        except Exception:
            sweep_runs.labels(result="error").inc()
            raise

        expired = 0
        for order_id, session_id in due:
            async with self.session_factory() as db:
                service = BookingService(db, self.clock, notifier=self.notifier)
                try:
                    if await service.expire_if_due(order_id, session_id):
                        expired += 1
                except Exception:
                    await db.rollback()
                    sweep_item_failures.inc()
                    logger.exception("sweep_order_failed", order_id=order_id, session_id=session_id)

        sweep_runs.labels(result="ok").inc()
        sweep_expired_orders.inc(expired)
        last_sweep_timestamp.set(self.clock.now().timestamp())
        if due:
            logger.info("sweep_completed", candidates=len(due), expired=expired)
        return expired
