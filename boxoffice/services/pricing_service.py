"""
Price lookup backed by a hall's price scheme.
"""

from decimal import Decimal

from boxoffice.core.logging import get_logger
from boxoffice.models.venue import PriceScheme
from boxoffice.services.interfaces.pricing import Price, PriceLookup

logger = get_logger(__name__)


class PriceSchemeLookup(PriceLookup):
    """
    Reads the flat {seat_id or zone_key: price} table of a PriceScheme.

    Seats the scheme does not mention are priced at zero in the scheme's
    currency, so a partially priced hall can still go on sale.
    """

    def __init__(self, scheme: PriceScheme):
        self.scheme = scheme
        self._prices = {key: Decimal(str(value)) for key, value in (scheme.prices or {}).items()}

    def price(self, seat_id: str) -> Price:
        value = self._prices.get(seat_id)
        if value is None:
            logger.debug("seat_unpriced", price_scheme_id=self.scheme.id, seat_id=seat_id)
            value = Decimal("0")
        return Price(value=value, currency=self.scheme.currency)
