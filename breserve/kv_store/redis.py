"""Redis-backed key-value store."""

from typing import Optional

from breserve.kv_store.base import KeyValueStore
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="kv_store/redis_kv_store")


class RedisKeyValueStore(KeyValueStore):
    """Stores each key under a prefix in Redis. Values are UTF-8 strings."""

    def __init__(self, client, prefix: str = "breserve:") -> None:
        """Initialize with a Redis client and a key prefix."""
        logger.debug("Initializing RedisKeyValueStore")
        self.client = client
        self.prefix = prefix

    def _key(self, key: str) -> str:
        """Return the Redis key for a logical key."""
        return f"{self.prefix}{key}"

    def get_item(self, key: str) -> Optional[str]:
        raw = self.client.get(self._key(key))
        if raw is None:
            return None
        if isinstance(raw, bytes):
            return raw.decode("utf-8")
        return raw

    def set_item(self, key: str, value: str) -> None:
        self.client.set(self._key(key), value.encode("utf-8"))

    def remove_item(self, key: str) -> None:
        self.client.delete(self._key(key))
