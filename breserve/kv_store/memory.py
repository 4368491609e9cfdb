"""In-memory key-value store, intended for development and tests."""

import threading
from typing import Optional

from breserve.errors import StorageQuotaExceeded
from breserve.kv_store.base import KeyValueStore

from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="kv_store/in_memory_kv_store")


class InMemoryKeyValueStore(KeyValueStore):
    """Thread-safe dict-backed store with an optional byte quota."""

    def __init__(self, quota_bytes: int | None = None) -> None:
        """Initialize an empty store; `quota_bytes` caps the total UTF-8 size of values."""
        logger.debug("Initializing InMemoryKeyValueStore")
        self.quota_bytes = quota_bytes
        self._items: dict[str, str] = {}
        self._lock = threading.Lock()

    def _size_with(self, key: str, value: str) -> int:
        """Return the total stored size if `key` were set to `value`."""
        size = len(value.encode("utf-8"))
        for existing_key, existing in self._items.items():
            if existing_key != key:
                size += len(existing.encode("utf-8"))
        return size

    def get_item(self, key: str) -> Optional[str]:
        with self._lock:
            return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        """Store a value, raising StorageQuotaExceeded when over quota."""
        with self._lock:
            if self.quota_bytes is not None and self._size_with(key, value) > self.quota_bytes:
                raise StorageQuotaExceeded(
                    f"Writing {key!r} would exceed the {self.quota_bytes}-byte quota"
                )
            self._items[key] = value

    def remove_item(self, key: str) -> None:
        with self._lock:
            self._items.pop(key, None)
