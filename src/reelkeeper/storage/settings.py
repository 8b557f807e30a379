"""Persisted user preferences."""

import json

from reelkeeper.errors import PersistenceError
from reelkeeper.models.reel import Settings
from reelkeeper.storage.kv import SETTINGS_KEY, KeyValueStore
from reelkeeper.utils.logging import get_logger

logger = get_logger(__name__)


class SettingsStore:
    """Loads and saves the Settings record."""

    def __init__(self, kv: KeyValueStore):
        self.kv = kv
        self.settings = self._load()

    def _load(self) -> Settings:
        try:
            raw = self.kv.get(SETTINGS_KEY)
        except PersistenceError as e:
            logger.error(f"Failed to load settings, using defaults: {e}")
            return Settings()
        if not raw:
            return Settings()
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            logger.error(f"Stored settings are not valid JSON, using defaults: {e}")
            return Settings()
        if not isinstance(data, dict):
            return Settings()
        return Settings.from_dict(data)

    @property
    def auto_classify(self) -> bool:
        return self.settings.auto_classify

    def set_auto_classify(self, enabled: bool) -> Settings:
        """Persist the auto-classify preference.

        Raises:
            PersistenceError: If the write fails (settings unchanged)
        """
        updated = Settings(auto_classify=enabled)
        self.kv.set(SETTINGS_KEY, json.dumps(updated.to_dict()))
        self.settings = updated
        logger.info(f"Auto-classify {'enabled' if enabled else 'disabled'}")
        return updated
