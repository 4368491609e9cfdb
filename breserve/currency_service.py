"""Cache-first currency conversion."""

import math
from dataclasses import dataclass

from breserve.currency_client import CurrencyConverter, ExchangeResult
from breserve.exchange_cache import ExchangeCache
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="currency_service")


@dataclass
class ConversionOutcome:
    """A conversion result and whether it was served from the cache."""
    result: ExchangeResult
    cached: bool


class CurrencyService:
    """Serve conversions from the exchange cache, falling back to the upstream API.

    The upstream converter is only called on a cache miss, and every
    successful upstream answer is written back to the cache.
    """

    def __init__(self, cache: ExchangeCache, converter: CurrencyConverter) -> None:
        self.cache = cache
        self.converter = converter

    def convert(self, from_currency: str, to_currency: str, amount: float) -> ConversionOutcome:
        """Convert `amount`; upstream errors propagate and leave the cache untouched."""
        if isinstance(amount, bool) or not math.isfinite(amount) or amount <= 0:
            raise ValueError(f"amount must be a positive number, got {amount!r}")
        from_currency = from_currency.strip().upper()
        to_currency = to_currency.strip().upper()

        hit = self.cache.get(from_currency, to_currency, amount)
        if hit is not None:
            return ConversionOutcome(
                result=ExchangeResult(
                    from_currency=from_currency,
                    to_currency=to_currency,
                    amount=amount,
                    converted=hit.converted,
                    rate=hit.rate,
                ),
                cached=True,
            )

        logger.debug("Cache miss for %s->%s %s; calling upstream", from_currency, to_currency, amount)
        result = self.converter.convert(from_currency, to_currency, amount)
        self.cache.set(from_currency, to_currency, amount, result.rate, result.converted)
        return ConversionOutcome(result=result, cached=False)
