"""
Promo code collaborator interface.
The booking flow needs exactly two things from it: a discount for a
subtotal, and a redemption once the order is committed to.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Optional


@dataclass(frozen=True)
class PromoContext:
    session_id: int
    event_id: Optional[int]
    now: datetime


@dataclass(frozen=True)
class PromoDiscount:
    code: str
    discount: Decimal
    promo_code_id: Optional[int] = None


class PromoCodeValidator(ABC):
    """
    Interface for promo code validation.

    Implementations:
    - DatabasePromoCodeValidator: promo_codes table with usage limits
    """

    @abstractmethod
    async def validate(self, code: str, subtotal: Decimal, context: PromoContext) -> PromoDiscount:
        """
        Validate a code against an order subtotal.

        Args:
            code: Code as typed by the customer
            subtotal: Sum of seat prices before discount
            context: Session/event the order is for, and the current time

        Returns:
            PromoDiscount with the discount amount (never above subtotal)

        Raises:
            PromoCodeInvalid: unknown, inactive, exhausted or not applicable
        """
        pass

    @abstractmethod
    async def redeem(self, discount: PromoDiscount) -> None:
        """
        Count one use of a validated code inside the order's transaction.

        Raises:
            PromoCodeInvalid: the code ran out of uses since validation
        """
        pass
