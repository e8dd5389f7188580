"""
Logging notifier - no transport.
Used when Redis is disabled and in tests.
"""

from boxoffice.core.logging import get_logger
from boxoffice.services.interfaces.notifier import OrderNotifier, OrderPaidEvent

logger = get_logger(__name__)


class LoggingOrderNotifier(OrderNotifier):
    """
    Records paid orders in the log.

    Use when:
    - Local development
    - No downstream consumers are deployed
    """

    async def order_paid(self, event: OrderPaidEvent) -> None:
        logger.info("order_paid_notification", **event.to_dict())
