"""Persisted, newest-first collection of saved reels."""

import json
import threading
from collections import Counter
from typing import Iterator, Optional

from reelkeeper.errors import PersistenceError
from reelkeeper.metrics import PERSISTENCE_ERRORS
from reelkeeper.migrations import migrate_records
from reelkeeper.models.reel import Reel
from reelkeeper.storage.kv import REELS_KEY, KeyValueStore
from reelkeeper.utils.logging import get_logger

logger = get_logger(__name__)

ALL_CATEGORIES = "All"


class ReelQuery:
    """Filtered view over a ReelStore.

    Iterating recomputes the filter against the store's current contents, so the
    view can be iterated any number of times and always reflects the latest state.
    """

    def __init__(self, store: "ReelStore", search: Optional[str], category: Optional[str]):
        self._store = store
        self.search = (search or "").strip()
        self.category = category

    def __iter__(self) -> Iterator[Reel]:
        reels = self._store.all()
        if self.search:
            needle = self.search.lower()
            return (
                reel
                for reel in reels
                if needle in reel.caption.lower() or needle in reel.category.lower()
            )
        if self.category and self.category != ALL_CATEGORIES:
            return (reel for reel in reels if reel.category == self.category)
        return iter(reels)

    def __len__(self) -> int:
        return sum(1 for _ in self)


class ReelStore:
    """Ordered reel collection mirrored in memory and persisted as one JSON array."""

    def __init__(self, kv: KeyValueStore):
        """Initialize store and load persisted reels.

        Args:
            kv: Key-value backend
        """
        self.kv = kv
        self._lock = threading.Lock()
        self._reels: tuple[Reel, ...] = self._load()

    def _load(self) -> tuple[Reel, ...]:
        """Read persisted reels, degrading to an empty collection on failure."""
        try:
            raw = self.kv.get(REELS_KEY)
        except PersistenceError as e:
            logger.error(f"Failed to load reels, starting empty: {e}")
            return ()
        if not raw:
            return ()

        try:
            records = json.loads(raw)
        except json.JSONDecodeError as e:
            logger.error(f"Stored reels are not valid JSON, starting empty: {e}")
            return ()
        if not isinstance(records, list):
            logger.error("Stored reels are not a list, starting empty")
            return ()

        records = [record for record in records if isinstance(record, dict)]
        changed = migrate_records(records)

        reels = []
        for record in records:
            try:
                reels.append(Reel.from_dict(record))
            except ValueError as e:
                logger.warning(f"Skipping invalid reel record: {e}")
        loaded = tuple(reels)

        if changed:
            try:
                self._persist(loaded)
            except PersistenceError:
                logger.warning("Could not write migrated reels back, will retry next load")

        logger.info(f"Loaded {len(loaded)} reels")
        return loaded

    def _persist(self, reels: tuple[Reel, ...]) -> None:
        payload = json.dumps([reel.to_dict() for reel in reels], ensure_ascii=False)
        try:
            self.kv.set(REELS_KEY, payload)
        except PersistenceError:
            PERSISTENCE_ERRORS.labels(key=REELS_KEY).inc()
            raise

    def all(self) -> list[Reel]:
        """All reels, newest first."""
        return list(self._reels)

    def get(self, reel_id: str) -> Optional[Reel]:
        for reel in self._reels:
            if reel.id == reel_id:
                return reel
        return None

    def ids(self) -> list[str]:
        return [reel.id for reel in self._reels]

    def insert(self, reel: Reel) -> list[Reel]:
        """Prepend a reel and persist the whole collection.

        Memory is only updated after the write succeeds.

        Args:
            reel: Reel to insert

        Returns:
            Updated collection, newest first

        Raises:
            PersistenceError: If the write fails (collection unchanged)
            ValueError: If a reel with the same id already exists
        """
        with self._lock:
            if any(existing.id == reel.id for existing in self._reels):
                raise ValueError(f"Reel id {reel.id} already exists")
            updated = (reel,) + self._reels
            self._persist(updated)
            self._reels = updated
        logger.info(f"Saved reel {reel.id} as {reel.category}")
        return list(updated)

    def delete(self, reel_id: str) -> list[Reel]:
        """Remove a reel by id; absent ids are a no-op.

        Args:
            reel_id: Id of the reel to remove

        Returns:
            Updated collection, newest first

        Raises:
            PersistenceError: If the write fails (collection unchanged)
        """
        with self._lock:
            updated = tuple(reel for reel in self._reels if reel.id != reel_id)
            if len(updated) == len(self._reels):
                logger.debug(f"Reel {reel_id} not found, nothing to delete")
                return list(self._reels)
            self._persist(updated)
            self._reels = updated
        logger.info(f"Deleted reel {reel_id}")
        return list(updated)

    def query(self, search: Optional[str] = None, category: Optional[str] = None) -> ReelQuery:
        """Filtered view of the collection.

        A non-empty search matches caption or category case-insensitively and takes
        precedence over the category filter. Otherwise a category other than "All"
        matches exactly. With neither, the view holds every reel.
        """
        return ReelQuery(self, search, category)

    def counts_by_category(self) -> dict[str, int]:
        return dict(Counter(reel.category for reel in self._reels))

    def __len__(self) -> int:
        return len(self._reels)
