"""Key-value storage backends for the exchange cache."""

from .base import KeyValueStore
from .file import FileKeyValueStore
from .memory import InMemoryKeyValueStore
from .redis import RedisKeyValueStore

__all__ = [
    "KeyValueStore",
    "FileKeyValueStore",
    "InMemoryKeyValueStore",
    "RedisKeyValueStore",
]
