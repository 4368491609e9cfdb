import unittest

from breserve.currency_client import ExchangeResult
from breserve.currency_service import CurrencyService
from breserve.errors import CurrencyConversionError
from breserve.exchange_cache import ExchangeCache
from breserve.kv_store import InMemoryKeyValueStore

T0 = 1_767_225_600_000
MINUTE_MS = 60 * 1000


class FakeClock:
    def __init__(self, now=T0):
        self.now = now

    def __call__(self):
        return self.now


class FakeConverter:
    def __init__(self, rates):
        self.rates = list(rates)
        self.calls = []

    def convert(self, from_currency, to_currency, amount):
        self.calls.append((from_currency, to_currency, amount))
        rate = self.rates.pop(0)
        if isinstance(rate, Exception):
            raise rate
        return ExchangeResult(
            from_currency=from_currency,
            to_currency=to_currency,
            amount=amount,
            converted=round(amount * rate, 2),
            rate=rate,
        )


class TestCurrencyService(unittest.TestCase):
    def setUp(self):
        self.clock = FakeClock()
        self.cache = ExchangeCache(InMemoryKeyValueStore(), clock=self.clock)

    def test_cache_hit_expiry_and_refresh(self):
        converter = FakeConverter([0.001524, 0.001531])
        service = CurrencyService(self.cache, converter)

        first = service.convert("XOF", "EUR", 1000)
        self.assertFalse(first.cached)
        self.assertEqual(first.result.converted, 1.52)
        self.assertEqual(len(converter.calls), 1)

        self.clock.now += 30 * MINUTE_MS
        second = service.convert("XOF", "EUR", 1000)
        self.assertTrue(second.cached)
        self.assertEqual(second.result.converted, first.result.converted)
        self.assertEqual(second.result.rate, first.result.rate)
        self.assertEqual(len(converter.calls), 1)

        self.clock.now += 31 * MINUTE_MS
        third = service.convert("XOF", "EUR", 1000)
        self.assertFalse(third.cached)
        self.assertEqual(len(converter.calls), 2)
        self.assertEqual(third.result.rate, 0.001531)

    def test_currency_codes_are_normalized(self):
        converter = FakeConverter([0.001524])
        service = CurrencyService(self.cache, converter)
        service.convert("xof", " eur", 1000)
        self.assertTrue(service.convert("XOF", "EUR", 1000).cached)
        self.assertEqual(converter.calls, [("XOF", "EUR", 1000)])

    def test_upstream_failure_propagates_and_is_not_cached(self):
        converter = FakeConverter([CurrencyConversionError("down"), 0.001524])
        service = CurrencyService(self.cache, converter)
        with self.assertRaises(CurrencyConversionError):
            service.convert("XOF", "EUR", 1000)
        self.assertEqual(self.cache.stats().total_entries, 0)
        self.assertFalse(service.convert("XOF", "EUR", 1000).cached)

    def test_rejects_non_positive_amounts(self):
        service = CurrencyService(self.cache, FakeConverter([]))
        for amount in (0, -5, float("nan"), float("inf")):
            with self.assertRaises(ValueError):
                service.convert("XOF", "EUR", amount)


if __name__ == "__main__":
    unittest.main()
