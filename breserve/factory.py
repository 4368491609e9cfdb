"""Factory helpers for wiring the cache, the offline store and the API clients at startup."""

from __future__ import annotations

from breserve import config
from breserve.bookings_client import BookingsApiClient
from breserve.currency_client import CurrencyConverter, EdgeFunctionCurrencyClient, ExchangeRateApiClient
from breserve.currency_service import CurrencyService
from breserve.exchange_cache import ExchangeCache
from breserve.kv_store import FileKeyValueStore, InMemoryKeyValueStore, KeyValueStore, RedisKeyValueStore
from breserve.offline_store import OfflineStore
from breserve.sync import BookingSynchronizer
from utils.logging_utils import get_tagged_logger, mask_url

logger = get_tagged_logger(__name__, tag="factory")

DEFAULT_CACHE_BACKEND = "file"
DEFAULT_CURRENCY_SOURCE = "edge_function"


def build_key_value_store(settings: config.Settings | None = None) -> KeyValueStore:
    """Instantiate the configured backing store for the exchange cache."""
    settings = settings or config.settings
    backend = (settings.exchange_cache_backend or DEFAULT_CACHE_BACKEND).lower()

    if backend == "memory":
        logger.info("Using in-memory exchange cache store")
        return InMemoryKeyValueStore()

    if backend == "file":
        logger.info("Using file exchange cache store", extra={"directory": settings.exchange_cache_dir})
        return FileKeyValueStore(settings.exchange_cache_dir)

    if backend == "redis":
        redis_url = settings.exchange_cache_redis_url
        if not redis_url:
            raise ValueError("exchange_cache_redis_url must be set for the Redis cache backend")
        import redis

        try:
            client = redis.Redis.from_url(redis_url)
            client.ping()
            logger.info("Using Redis exchange cache store", extra={"redis_url": mask_url(redis_url)})
            return RedisKeyValueStore(client)
        except redis.exceptions.RedisError as exc:
            logger.warning(
                "Falling back to InMemoryKeyValueStore (Redis unavailable)",
                extra={"error": str(exc)},
            )
            return InMemoryKeyValueStore()

    raise ValueError(f"Unknown exchange cache backend '{backend}'")


def build_exchange_cache(settings: config.Settings | None = None) -> ExchangeCache:
    return ExchangeCache(build_key_value_store(settings))


def build_currency_converter(settings: config.Settings | None = None) -> CurrencyConverter:
    """Instantiate the configured upstream conversion client."""
    settings = settings or config.settings
    source = (settings.currency_source or DEFAULT_CURRENCY_SOURCE).lower()
    http = {
        "timeout": settings.http_timeout_seconds,
        "max_retries": settings.http_max_retries,
        "retry_initial_delay": settings.http_retry_initial_delay,
    }

    if source == "edge_function":
        logger.info("Using currency-exchange edge function", extra={"url": settings.currency_function_url})
        return EdgeFunctionCurrencyClient(
            settings.currency_function_url, api_key=settings.supabase_anon_key, **http
        )

    if source == "exchangerate_api":
        logger.info("Using ExchangeRate-API", extra={"url": settings.exchangerate_api_url})
        return ExchangeRateApiClient(settings.exchangerate_api_url, **http)

    raise ValueError(f"Unknown currency source '{source}'")


def build_currency_service(settings: config.Settings | None = None) -> CurrencyService:
    return CurrencyService(build_exchange_cache(settings), build_currency_converter(settings))


def build_offline_store(settings: config.Settings | None = None) -> OfflineStore:
    """Create (but do not open) the offline store for the configured database."""
    settings = settings or config.settings
    if not settings.offline_database_url:
        raise ValueError("offline_database_url must be set for the offline store")
    return OfflineStore.from_url(settings.offline_database_url)


def build_bookings_client(settings: config.Settings | None = None) -> BookingsApiClient:
    settings = settings or config.settings
    return BookingsApiClient(
        settings.supabase_url,
        settings.supabase_anon_key,
        timeout=settings.http_timeout_seconds,
        max_retries=settings.http_max_retries,
        retry_initial_delay=settings.http_retry_initial_delay,
    )


def build_synchronizer(settings: config.Settings | None = None) -> BookingSynchronizer:
    return BookingSynchronizer(build_offline_store(settings), build_bookings_client(settings))
