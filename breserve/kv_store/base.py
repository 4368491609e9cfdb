"""Shared protocol for key-value storage backends."""

from typing import Optional, Protocol


class KeyValueStore(Protocol):
    """String-to-string storage with local-storage semantics.

    Values are opaque to the store. Backends may raise on any operation;
    callers decide whether a failure matters.
    """

    def get_item(self, key: str) -> Optional[str]:
        """Return the stored value, or None if the key is absent."""

    def set_item(self, key: str, value: str) -> None:
        """Store `value` under `key`, replacing any previous value."""

    def remove_item(self, key: str) -> None:
        """Delete `key`; a missing key is not an error."""
