import tempfile
import types
import unittest
from unittest.mock import patch

import redis

from breserve import factory
from breserve.bookings_client import BookingsApiClient
from breserve.currency_client import EdgeFunctionCurrencyClient, ExchangeRateApiClient
from breserve.exchange_cache import ExchangeCache
from breserve.kv_store import FileKeyValueStore, InMemoryKeyValueStore, RedisKeyValueStore
from breserve.offline_store import OfflineStore


class DummySettings:
    def __init__(self, **kwargs):
        self.exchange_cache_backend = "memory"
        self.exchange_cache_dir = ".breserve/local_storage"
        self.exchange_cache_redis_url = None
        self.currency_source = "edge_function"
        self.currency_function_url = "http://fn.local/currency-exchange"
        self.exchangerate_api_url = "https://rates.local/v4/latest"
        self.supabase_url = "https://project.supabase.co"
        self.supabase_anon_key = "anon"
        self.offline_database_url = "sqlite://"
        self.http_timeout_seconds = 5.0
        self.http_max_retries = 2
        self.http_retry_initial_delay = 0.1
        for k, v in kwargs.items():
            setattr(self, k, v)


class TestKeyValueStoreFactory(unittest.TestCase):
    def test_memory_backend(self):
        self.assertIsInstance(factory.build_key_value_store(DummySettings()), InMemoryKeyValueStore)

    def test_file_backend(self):
        with tempfile.TemporaryDirectory() as tmp:
            store = factory.build_key_value_store(DummySettings(exchange_cache_backend="file", exchange_cache_dir=tmp))
            self.assertIsInstance(store, FileKeyValueStore)

    def test_unknown_backend_raises(self):
        with self.assertRaises(ValueError):
            factory.build_key_value_store(DummySettings(exchange_cache_backend="indexeddb"))

    def test_redis_requires_url(self):
        with self.assertRaises(ValueError):
            factory.build_key_value_store(DummySettings(exchange_cache_backend="redis"))

    def test_redis_backend_when_reachable(self):
        client = types.SimpleNamespace(ping=lambda: True)
        settings = DummySettings(exchange_cache_backend="redis", exchange_cache_redis_url="redis://:pw@cache:6379/0")
        with patch.object(redis.Redis, "from_url", return_value=client):
            store = factory.build_key_value_store(settings)
        self.assertIsInstance(store, RedisKeyValueStore)
        self.assertIs(store.client, client)

    def test_redis_unreachable_falls_back_to_memory(self):
        def failing_ping():
            raise redis.exceptions.ConnectionError("refused")

        client = types.SimpleNamespace(ping=failing_ping)
        settings = DummySettings(exchange_cache_backend="redis", exchange_cache_redis_url="redis://cache:6379/0")
        with patch.object(redis.Redis, "from_url", return_value=client):
            store = factory.build_key_value_store(settings)
        self.assertIsInstance(store, InMemoryKeyValueStore)

    def test_exchange_cache_wraps_store(self):
        cache = factory.build_exchange_cache(DummySettings())
        self.assertIsInstance(cache, ExchangeCache)
        self.assertIsInstance(cache.store, InMemoryKeyValueStore)


class TestClientFactories(unittest.TestCase):
    def test_edge_function_converter(self):
        converter = factory.build_currency_converter(DummySettings())
        self.assertIsInstance(converter, EdgeFunctionCurrencyClient)
        self.assertEqual(converter.api_key, "anon")
        self.assertEqual(converter.max_retries, 2)

    def test_exchangerate_api_converter(self):
        converter = factory.build_currency_converter(DummySettings(currency_source="exchangerate_api"))
        self.assertIsInstance(converter, ExchangeRateApiClient)
        self.assertEqual(converter.base_url, "https://rates.local/v4/latest")

    def test_unknown_currency_source(self):
        with self.assertRaises(ValueError):
            factory.build_currency_converter(DummySettings(currency_source="tripadvisor"))

    def test_offline_store_and_synchronizer(self):
        settings = DummySettings()
        store = factory.build_offline_store(settings)
        self.addCleanup(store.close)
        self.assertIsInstance(store, OfflineStore)
        sync = factory.build_synchronizer(settings)
        self.addCleanup(sync.store.close)
        self.assertIsInstance(sync.remote, BookingsApiClient)
        self.assertEqual(sync.remote.url, "https://project.supabase.co/rest/v1/bookings")

    def test_offline_store_requires_url(self):
        with self.assertRaises(ValueError):
            factory.build_offline_store(DummySettings(offline_database_url=""))


if __name__ == "__main__":
    unittest.main()
