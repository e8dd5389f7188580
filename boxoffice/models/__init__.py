from boxoffice.models.venue import Hall, PriceScheme
from boxoffice.models.event_session import EventSession
from boxoffice.models.seat import SeatTicket, Zone
from boxoffice.models.order import Order, OrderLineItem
from boxoffice.models.promo_code import PromoCode

__all__ = [
    "Hall",
    "PriceScheme",
    "EventSession",
    "SeatTicket",
    "Zone",
    "Order",
    "OrderLineItem",
    "PromoCode",
]
