"""
Order notification interface.
Consumers (ticket PDF generation, attribution) are triggered after an order
is paid and its seats are sold. Delivery is best effort.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, asdict
from datetime import datetime
from decimal import Decimal
from typing import Optional


@dataclass(frozen=True)
class OrderPaidEvent:
    order_id: int
    order_number: str
    session_id: int
    total: Decimal
    currency: str
    seat_ids: tuple[str, ...]
    paid_at: datetime
    is_invitation: bool = False
    widget_id: Optional[str] = None

    def to_dict(self) -> dict:
        data = asdict(self)
        data["total"] = str(self.total)
        data["seat_ids"] = list(self.seat_ids)
        data["paid_at"] = self.paid_at.isoformat()
        return data


class OrderNotifier(ABC):
    """
    Interface for post-commit order notifications.

    Implementations:
    - LoggingOrderNotifier: writes the event to the log only
    - RedisOrderNotifier: publishes the event on a Redis channel
    """

    @abstractmethod
    async def order_paid(self, event: OrderPaidEvent) -> None:
        """
        Announce a paid order.

        Args:
            event: Snapshot of the committed order
        """
        pass
