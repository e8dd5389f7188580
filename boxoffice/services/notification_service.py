"""
Redis pub/sub notifier for paid orders.
Implements OrderNotifier on top of the shared Redis client.

Delivery is fire-and-forget:
  The order and its seats are already committed when this runs. A Redis
  outage loses the notification (logged and counted) but never touches
  booking state. Downstream consumers (ticket rendering, attribution)
  can reconcile from the orders table.
"""

import json

from boxoffice.core.config import get_settings
from boxoffice.core.logging import get_logger
from boxoffice.core.metrics import redis_connection_errors
from boxoffice.infrastructure.redis_client import get_redis
from boxoffice.services.interfaces.notifier import OrderNotifier, OrderPaidEvent

logger = get_logger(__name__)


class RedisOrderNotifier(OrderNotifier):
    """
    Publishes paid orders on a Redis channel.

    Use when:
    - Ticket rendering or attribution services are deployed
    - Redis is available (falls back to logging otherwise)
    """

    def __init__(self, channel: str | None = None):
        self.channel = channel or get_settings().ORDER_NOTIFICATION_CHANNEL

    async def order_paid(self, event: OrderPaidEvent) -> None:
        client = await get_redis()
        payload = event.to_dict()
        if not client:
            logger.warning("order_paid_not_published", reason="redis_unavailable", **payload)
            return

        try:
            receivers = await client.publish(self.channel, json.dumps(payload))
            logger.info(
                "order_paid_published",
                order_id=event.order_id,
                channel=self.channel,
                receivers=receivers,
            )
        except Exception as e:
            redis_connection_errors.inc()
            logger.error("order_paid_publish_failed", order_id=event.order_id, error=str(e))
