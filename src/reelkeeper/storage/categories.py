"""Built-in and user-defined reel categories."""

import json
import threading
from typing import Optional

from reelkeeper.errors import DuplicateCategoryError, InvalidCategoryError, PersistenceError
from reelkeeper.metrics import PERSISTENCE_ERRORS
from reelkeeper.storage.kv import CATEGORIES_KEY, KeyValueStore
from reelkeeper.utils.logging import get_logger

logger = get_logger(__name__)

BUILTIN_CATEGORIES = (
    "Motivational",
    "Gym",
    "AI/ML",
    "Entertainment",
    "Communication",
    "Ideas",
    "Coding",
    "UI/UX",
    "Job",
    "Internships",
    "Love",
    "Poetry",
    "Songs",
    "News",
    "Sports",
    "Food",
    "Travel",
    "Fashion",
)


class CategoryRegistry:
    """Source of truth for which category names exist.

    Names are compared case-insensitively, so "gym" collides with "Gym". The
    spelling a custom category was created with is preserved.
    """

    def __init__(self, kv: KeyValueStore):
        """Initialize registry and load custom categories.

        Args:
            kv: Key-value backend
        """
        self.kv = kv
        self._lock = threading.Lock()
        self._custom: tuple[str, ...] = self._load()

    def _load(self) -> tuple[str, ...]:
        try:
            raw = self.kv.get(CATEGORIES_KEY)
        except PersistenceError as e:
            logger.error(f"Failed to load custom categories: {e}")
            return ()
        if not raw:
            return ()
        try:
            names = json.loads(raw)
        except json.JSONDecodeError as e:
            logger.error(f"Stored custom categories are not valid JSON: {e}")
            return ()
        if not isinstance(names, list):
            logger.error("Stored custom categories are not a list")
            return ()

        custom: list[str] = []
        for name in names:
            if not isinstance(name, str) or not name.strip():
                continue
            name = name.strip()
            if self._find(name, tuple(custom)) is None:
                custom.append(name)
        return tuple(custom)

    def _persist(self, custom: tuple[str, ...]) -> None:
        try:
            self.kv.set(CATEGORIES_KEY, json.dumps(list(custom), ensure_ascii=False))
        except PersistenceError:
            PERSISTENCE_ERRORS.labels(key=CATEGORIES_KEY).inc()
            raise

    def _find(self, name: str, custom: Optional[tuple[str, ...]] = None) -> Optional[str]:
        """Return the stored spelling of name, or None if unknown."""
        if custom is None:
            custom = self._custom
        folded = name.strip().casefold()
        for existing in (*BUILTIN_CATEGORIES, *custom):
            if existing.casefold() == folded:
                return existing
        return None

    def builtins(self) -> list[str]:
        return list(BUILTIN_CATEGORIES)

    def custom(self) -> list[str]:
        return list(self._custom)

    def list_all(self) -> list[str]:
        """Built-in and custom categories, sorted lexicographically."""
        return sorted((*BUILTIN_CATEGORIES, *self._custom))

    def contains(self, name: str) -> bool:
        return self._find(name) is not None

    def is_builtin(self, name: str) -> bool:
        return name.strip() in BUILTIN_CATEGORIES

    def add(self, name: str) -> str:
        """Add a custom category.

        Args:
            name: Category name, trimmed before use

        Returns:
            The stored name

        Raises:
            InvalidCategoryError: If the name is empty
            DuplicateCategoryError: If the name already exists
            PersistenceError: If the write fails (registry unchanged)
        """
        name = name.strip()
        if not name:
            raise InvalidCategoryError("Category name must not be empty")
        with self._lock:
            if self._find(name) is not None:
                raise DuplicateCategoryError(name)
            updated = self._custom + (name,)
            self._persist(updated)
            self._custom = updated
        logger.info(f"Added custom category {name}")
        return name

    def ensure(self, name: str) -> str:
        """Return the existing spelling of name, adding it first if unknown.

        Raises:
            InvalidCategoryError: If the name is empty
            PersistenceError: If the write fails (registry unchanged)
        """
        existing = self._find(name)
        if existing is not None:
            return existing
        try:
            return self.add(name)
        except DuplicateCategoryError:
            # Added concurrently between the lookup and the add
            return self._find(name) or name.strip()

    def remove(self, name: str) -> None:
        """Remove a custom category.

        Built-in and unknown names are ignored. Reels already tagged with the
        category keep it.

        Raises:
            PersistenceError: If the write fails (registry unchanged)
        """
        folded = name.strip().casefold()
        with self._lock:
            updated = tuple(c for c in self._custom if c.casefold() != folded)
            if len(updated) == len(self._custom):
                return
            self._persist(updated)
            self._custom = updated
        logger.info(f"Removed custom category {name.strip()}")
