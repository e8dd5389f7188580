"""
Collaborator interfaces for dependency inversion.
Allows swapping implementations without changing booking logic.
"""

from .pricing import Price, PriceLookup
from .promo import PromoCodeValidator, PromoContext, PromoDiscount
from .notifier import OrderNotifier, OrderPaidEvent
from .logging_notifier import LoggingOrderNotifier

__all__ = [
    'Price', 'PriceLookup',
    'PromoCodeValidator', 'PromoContext', 'PromoDiscount',
    'OrderNotifier', 'OrderPaidEvent', 'LoggingOrderNotifier',
]
