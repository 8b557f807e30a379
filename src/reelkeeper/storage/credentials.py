"""Storage for the classifier API key."""

from typing import Optional

from reelkeeper.errors import InvalidCredentialError, PersistenceError
from reelkeeper.storage.kv import API_KEY_KEY, KeyValueStore
from reelkeeper.utils.logging import get_logger

logger = get_logger(__name__)


class CredentialStore:
    """Holds the Gemini API key."""

    def __init__(self, kv: KeyValueStore):
        self.kv = kv

    def set(self, key: str) -> None:
        """Persist the API key.

        Args:
            key: Raw API key

        Raises:
            InvalidCredentialError: If the key is empty
            PersistenceError: If the write fails
        """
        key = (key or "").strip()
        if not key:
            raise InvalidCredentialError("API key must not be empty")
        self.kv.set(API_KEY_KEY, key)
        logger.info("Stored API key")

    def get(self) -> Optional[str]:
        """Stored API key, or None if absent or unreadable."""
        try:
            value = self.kv.get(API_KEY_KEY)
        except PersistenceError as e:
            logger.error(f"Failed to read API key: {e}")
            return None
        return value or None

    def has(self) -> bool:
        return self.get() is not None

    def clear(self) -> None:
        self.kv.delete(API_KEY_KEY)
        logger.info("Removed API key")

    def masked(self) -> Optional[str]:
        """API key with everything but the first and last four characters hidden."""
        key = self.get()
        if key is None:
            return None
        if len(key) <= 8:
            return "*" * len(key)
        return f"{key[:4]}{'*' * (len(key) - 8)}{key[-4:]}"
