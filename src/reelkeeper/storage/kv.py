"""Key-value persistence backends.

Every value is JSON text stored under one of a few fixed, namespaced keys.
"""

import os
import re
import tempfile
import threading
from abc import ABC, abstractmethod
from typing import Optional

from reelkeeper.errors import PersistenceError
from reelkeeper.utils.logging import get_logger

logger = get_logger(__name__)

REELS_KEY = "@saved_reels"
CATEGORIES_KEY = "@custom_categories"
SETTINGS_KEY = "@app_settings"
API_KEY_KEY = "@reel_classifier_gemini_api_key"


class KeyValueStore(ABC):
    """Minimal string key-value store."""

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        """Return the stored value, or None if the key is absent.

        Raises:
            PersistenceError: If the backend cannot be read
        """
        raise NotImplementedError

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        """Store a value, replacing any previous one.

        Raises:
            PersistenceError: If the backend rejects the write
        """
        raise NotImplementedError

    @abstractmethod
    def delete(self, key: str) -> None:
        """Remove a key; absent keys are ignored.

        Raises:
            PersistenceError: If the backend rejects the write
        """
        raise NotImplementedError

    def close(self) -> None:
        """Release backend resources."""


class MemoryKeyValueStore(KeyValueStore):
    """In-process store, used by tests and dry runs."""

    def __init__(self, initial: Optional[dict[str, str]] = None):
        self._data: dict[str, str] = dict(initial or {})
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        with self._lock:
            self._data[key] = value

    def delete(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)


class JsonFileKeyValueStore(KeyValueStore):
    """One file per key under a data directory.

    Writes go to a temporary file that is renamed over the target, so a failed
    write never leaves a truncated value behind.
    """

    def __init__(self, base_dir: str):
        """Initialize store.

        Args:
            base_dir: Directory holding the value files (created on first write)
        """
        self.base_dir = os.path.expanduser(base_dir)

    def get(self, key: str) -> Optional[str]:
        path = self._path(key)
        if not os.path.exists(path):
            return None
        try:
            with open(path, "r", encoding="utf-8") as handle:
                return handle.read()
        except (OSError, UnicodeDecodeError) as e:
            logger.error(f"Failed to read {path}: {e}")
            raise PersistenceError(f"Cannot read {key}: {e}") from e

    def set(self, key: str, value: str) -> None:
        path = self._path(key)
        try:
            os.makedirs(self.base_dir, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(dir=self.base_dir, suffix=".tmp")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as handle:
                    handle.write(value)
                os.replace(tmp_path, path)
            except OSError:
                if os.path.exists(tmp_path):
                    os.unlink(tmp_path)
                raise
        except OSError as e:
            logger.error(f"Failed to write {path}: {e}")
            raise PersistenceError(f"Cannot write {key}: {e}") from e

    def delete(self, key: str) -> None:
        path = self._path(key)
        try:
            if os.path.exists(path):
                os.unlink(path)
        except OSError as e:
            logger.error(f"Failed to delete {path}: {e}")
            raise PersistenceError(f"Cannot delete {key}: {e}") from e

    def _path(self, key: str) -> str:
        name = re.sub(r"[^A-Za-z0-9_.-]", "_", key.lstrip("@"))
        return os.path.join(self.base_dir, f"{name}.json")
