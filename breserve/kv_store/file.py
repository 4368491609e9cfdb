"""File-backed key-value store: one file per key under a directory."""

import os
import tempfile
from pathlib import Path
from typing import Optional
from urllib.parse import quote

from breserve.kv_store.base import KeyValueStore
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="kv_store/file_kv_store")


class FileKeyValueStore(KeyValueStore):
    """Persistent store for a single device, comparable to browser local storage.

    Writes land in a temporary file that is renamed over the target, so a
    reader sees either the old value or the new one, never a partial write.
    """

    SUFFIX = ".json"

    def __init__(self, directory: str | os.PathLike) -> None:
        """Bind to `directory`, creating it if needed."""
        self.directory = Path(directory)
        self.directory.mkdir(parents=True, exist_ok=True)
        logger.debug("Initializing FileKeyValueStore", extra={"directory": str(self.directory)})

    def _path(self, key: str) -> Path:
        """Return the file holding `key` (key is percent-encoded into a safe name)."""
        return self.directory / f"{quote(key, safe='')}{self.SUFFIX}"

    def get_item(self, key: str) -> Optional[str]:
        try:
            return self._path(key).read_text(encoding="utf-8")
        except FileNotFoundError:
            return None

    def set_item(self, key: str, value: str) -> None:
        target = self._path(key)
        fd, tmp_name = tempfile.mkstemp(dir=self.directory, prefix=".tmp-", suffix=self.SUFFIX)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(value)
                fh.flush()
                os.fsync(fh.fileno())
            os.replace(tmp_name, target)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    def remove_item(self, key: str) -> None:
        self._path(key).unlink(missing_ok=True)
