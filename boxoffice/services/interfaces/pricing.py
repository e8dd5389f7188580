"""
Price lookup collaborator interface.
Price scheme rules live outside the inventory; it only asks for a number.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import Decimal


@dataclass(frozen=True)
class Price:
    value: Decimal
    currency: str


class PriceLookup(ABC):
    """
    Interface for seat pricing.

    Implementations:
    - PriceSchemeLookup: reads a PriceScheme's per-seat price table
    """

    @abstractmethod
    def price(self, seat_id: str) -> Price:
        """
        Price for one seat or zone of a hall.

        Args:
            seat_id: Layout seat id, or zone key for grouped-capacity zones

        Returns:
            Price with value and currency
        """
        pass
