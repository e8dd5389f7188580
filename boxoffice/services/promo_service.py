"""
Promo code validation and redemption against the promo_codes table.

Redemption uses the same conditional write as seat booking:

  UPDATE promo_codes SET usage_count = usage_count + 1
  WHERE id = :id AND is_active AND (usage_limit IS NULL OR usage_count < usage_limit)

so the last use of a limited code goes to exactly one order.
"""

from decimal import ROUND_HALF_UP, Decimal

from sqlalchemy import or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from boxoffice.core.clock import ensure_utc
from boxoffice.core.exceptions import PromoCodeInvalid
from boxoffice.core.logging import get_logger
from boxoffice.models.promo_code import PromoCode
from boxoffice.services.interfaces.promo import PromoCodeValidator, PromoContext, PromoDiscount

logger = get_logger(__name__)

CENT = Decimal("0.01")


def compute_discount(promo: PromoCode, subtotal: Decimal) -> Decimal:
    """Discount for a subtotal, rounded to cents and never above the subtotal."""
    value = Decimal(promo.discount_value)
    if promo.discount_type == "percentage":
        discount = (subtotal * value / Decimal(100)).quantize(CENT, rounding=ROUND_HALF_UP)
        if promo.max_discount_amount is not None:
            discount = min(discount, Decimal(promo.max_discount_amount))
    else:
        discount = value
    return min(discount, subtotal)


class DatabasePromoCodeValidator(PromoCodeValidator):
    """Validates codes in the caller's database session."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def validate(self, code: str, subtotal: Decimal, context: PromoContext) -> PromoDiscount:
        normalized = code.strip().upper()
        result = await self.db.execute(select(PromoCode).where(PromoCode.code == normalized))
        promo = result.scalar_one_or_none()

        if promo is None:
            raise PromoCodeInvalid(normalized, "unknown code")
        if not promo.is_active:
            raise PromoCodeInvalid(normalized, "inactive")
        if promo.valid_from is not None and context.now < ensure_utc(promo.valid_from):
            raise PromoCodeInvalid(normalized, "not yet valid")
        if promo.valid_until is not None and context.now > ensure_utc(promo.valid_until):
            raise PromoCodeInvalid(normalized, "expired")
        if promo.usage_limit is not None and promo.usage_count >= promo.usage_limit:
            raise PromoCodeInvalid(normalized, "usage limit reached")
        if subtotal < Decimal(promo.min_order_amount or 0):
            raise PromoCodeInvalid(normalized, f"minimum order amount is {promo.min_order_amount}")
        if promo.applicable_event_ids and context.event_id not in promo.applicable_event_ids:
            raise PromoCodeInvalid(normalized, "not valid for this event")

        discount = compute_discount(promo, subtotal)
        logger.info("promo_code_validated", code=normalized, subtotal=str(subtotal), discount=str(discount))
        return PromoDiscount(code=normalized, discount=discount, promo_code_id=promo.id)

    async def redeem(self, discount: PromoDiscount) -> None:
        result = await self.db.execute(
            update(PromoCode)
            .where(
                PromoCode.id == discount.promo_code_id,
                PromoCode.is_active.is_(True),
                or_(
                    PromoCode.usage_limit.is_(None),
                    PromoCode.usage_count < PromoCode.usage_limit,
                ),
            )
            .values(usage_count=PromoCode.usage_count + 1)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise PromoCodeInvalid(discount.code, "usage limit reached")
        logger.info("promo_code_redeemed", code=discount.code)
