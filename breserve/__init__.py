"""Client-side caching and offline synchronization for B-Reserve bookings."""

from .exchange_cache import CacheStats, CachedRate, ExchangeCache
from .offline_store import (
    Booking,
    OfflineBooking,
    OfflineStore,
    StorageStats,
    SyncAction,
    SyncQueueItem,
    is_data_stale,
)

__all__ = [
    "CacheStats",
    "CachedRate",
    "ExchangeCache",
    "Booking",
    "OfflineBooking",
    "OfflineStore",
    "StorageStats",
    "SyncAction",
    "SyncQueueItem",
    "is_data_stale",
]
