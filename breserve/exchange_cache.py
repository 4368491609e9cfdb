"""Currency-conversion cache with a one-hour TTL.

The whole cache is a single JSON mapping stored under one key of a
`KeyValueStore`:

    {"EUR_XOF_1000": {"rate": 655.957, "converted": 655957.0, "timestamp": 1767225600000}}

An entry is valid while `now - timestamp < CACHE_TTL_MS`. Expired entries are
removed opportunistically whenever a new entry is written; nothing sweeps the
cache in the background. Caching is best-effort: read failures look like
misses and write failures are logged, never raised.
"""

from __future__ import annotations

import json
import time
from dataclasses import dataclass
from typing import Any, Callable, Optional

from pydantic import BaseModel, ValidationError

from breserve.kv_store.base import KeyValueStore
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="exchange_cache")

CACHE_KEY = "currency_exchange_cache"
CACHE_TTL_MS = 60 * 60 * 1000

Clock = Callable[[], int]


def _now_ms() -> int:
    """Return the current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


def _format_amount(amount: float) -> str:
    """Render an amount the way it appears in cache keys ("1000", "1000.5")."""
    if isinstance(amount, float) and amount.is_integer():
        return str(int(amount))
    return str(amount)


def cache_key(from_currency: str, to_currency: str, amount: float) -> str:
    """Build the exact lookup key for a conversion; amounts are never rounded."""
    return f"{from_currency}_{to_currency}_{_format_amount(amount)}"


class CachedRate(BaseModel):
    """One cached conversion result."""
    rate: float
    converted: float
    timestamp: int  # epoch ms at write time


@dataclass(frozen=True)
class CacheStats:
    """Entry counts partitioned by the TTL predicate."""
    total_entries: int = 0
    valid_entries: int = 0
    expired_entries: int = 0


class ExchangeCache:
    """TTL-keyed cache of (from, to, amount) conversions over a key-value store."""

    def __init__(self, store: KeyValueStore, clock: Optional[Clock] = None) -> None:
        """Bind to a backing store; `clock` returns epoch ms and defaults to wall time."""
        self.store = store
        self.clock = clock or _now_ms

    @staticmethod
    def _is_valid(entry: CachedRate, now: int) -> bool:
        """Return True if the entry is younger than the TTL."""
        return (now - entry.timestamp) < CACHE_TTL_MS

    @staticmethod
    def _parse_entry(raw: Any) -> Optional[CachedRate]:
        """Validate one stored entry, returning None if it is malformed."""
        try:
            return CachedRate.model_validate(raw)
        except ValidationError:
            return None

    def _load(self) -> dict[str, Any]:
        """Read and decode the cache blob; raises on store or decode failure."""
        raw = self.store.get_item(CACHE_KEY)
        if not raw:
            return {}
        data = json.loads(raw)
        if not isinstance(data, dict):
            raise ValueError(f"Currency cache blob is a {type(data).__name__}, expected an object")
        return data

    def get(self, from_currency: str, to_currency: str, amount: float) -> Optional[CachedRate]:
        """Return the cached conversion, or None if absent, expired or unreadable."""
        key = cache_key(from_currency, to_currency, amount)
        try:
            cache = self._load()
        except Exception as exc:
            logger.error("Error reading currency cache: %s", exc)
            return None

        entry = self._parse_entry(cache.get(key))
        if entry is None:
            return None
        if not self._is_valid(entry, self.clock()):
            logger.debug("Cached currency conversion expired: %s", key)
            return None
        logger.debug("Using cached currency conversion: %s", key)
        return entry

    def set(
        self,
        from_currency: str,
        to_currency: str,
        amount: float,
        rate: float,
        converted: float,
    ) -> None:
        """Write a fresh entry, sweep expired ones, and persist. Never raises."""
        key = cache_key(from_currency, to_currency, amount)
        try:
            try:
                cache = self._load()
            except (ValueError, TypeError) as exc:
                logger.warning("Discarding unreadable currency cache: %s", exc)
                cache = {}

            now = self.clock()
            cache[key] = CachedRate(rate=rate, converted=converted, timestamp=now).model_dump()
            self._sweep(cache, now)

            self.store.set_item(CACHE_KEY, json.dumps(cache))
            logger.debug("Cached currency conversion: %s", key)
        except Exception as exc:
            logger.error("Error storing currency cache: %s", exc)

    def _sweep(self, cache: dict[str, Any], now: int) -> int:
        """Drop expired or malformed entries in place; return how many were removed."""
        stale = []
        for key, raw in cache.items():
            entry = self._parse_entry(raw)
            if entry is None or not self._is_valid(entry, now):
                stale.append(key)
        for key in stale:
            del cache[key]
        if stale:
            logger.info("Cleaned %d expired cache entries", len(stale))
        return len(stale)

    def clear(self) -> None:
        """Remove the whole cache blob. Clearing an empty cache is a no-op."""
        try:
            self.store.remove_item(CACHE_KEY)
            logger.info("Currency cache cleared")
        except Exception as exc:
            logger.error("Error clearing currency cache: %s", exc)

    def stats(self) -> CacheStats:
        """Count entries by validity; a corrupt blob reports all zeros."""
        try:
            cache = self._load()
        except Exception as exc:
            logger.error("Error getting cache stats: %s", exc)
            return CacheStats()

        now = self.clock()
        valid = 0
        for raw in cache.values():
            entry = self._parse_entry(raw)
            if entry is not None and self._is_valid(entry, now):
                valid += 1
        return CacheStats(
            total_entries=len(cache),
            valid_entries=valid,
            expired_entries=len(cache) - valid,
        )
