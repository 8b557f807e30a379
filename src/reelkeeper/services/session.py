"""Session context built from persisted state at startup."""

from typing import Optional

import psycopg2

from reelkeeper.config import AppConfig
from reelkeeper.services.classifier import ReelClassifier
from reelkeeper.storage.categories import CategoryRegistry
from reelkeeper.storage.credentials import CredentialStore
from reelkeeper.storage.kv import JsonFileKeyValueStore, KeyValueStore
from reelkeeper.storage.postgres import PostgresKeyValueStore
from reelkeeper.storage.reels import ReelStore
from reelkeeper.storage.settings import SettingsStore
from reelkeeper.utils.ids import ReelIdGenerator
from reelkeeper.utils.logging import get_logger

logger = get_logger(__name__)


def build_kv_store(config: AppConfig) -> KeyValueStore:
    """Create the configured key-value backend.

    Args:
        config: Application config

    Returns:
        KeyValueStore
    """
    if config.storage == "postgres":
        assert config.postgres is not None, "Postgres backend needs Postgres settings"
        pg_conn = psycopg2.connect(
            host=config.postgres.host,
            port=config.postgres.port,
            dbname=config.postgres.dbname,
            user=config.postgres.user,
            password=config.postgres.password,
        )
        store = PostgresKeyValueStore(pg_conn)
        store.ensure_schema()
        logger.info(f"Using Postgres storage at {config.postgres.host}")
        return store

    logger.info(f"Using JSON file storage in {config.data_dir}")
    return JsonFileKeyValueStore(config.data_dir)


class Session:
    """Everything one user session works with.

    Owns the in-memory mirrors of the registry, the reel store, the credential and
    the settings, all loaded from the same key-value backend.
    """

    def __init__(self, kv: KeyValueStore, classifier: Optional[ReelClassifier] = None):
        """Load persisted state.

        Args:
            kv: Key-value backend
            classifier: Classifier to use; one with default models is built if omitted
        """
        self.kv = kv
        self.credentials = CredentialStore(kv)
        self.settings = SettingsStore(kv)
        self.categories = CategoryRegistry(kv)
        self.reels = ReelStore(kv)
        self.classifier = classifier or ReelClassifier(self.credentials)
        self.ids = ReelIdGenerator()
        self.ids.seed(self.reels.ids())
        logger.info(
            f"Session ready: {len(self.reels)} reels, "
            f"{len(self.categories.custom())} custom categories"
        )

    @classmethod
    def from_config(cls, config: AppConfig) -> "Session":
        kv = build_kv_store(config)
        credentials = CredentialStore(kv)
        classifier = ReelClassifier(
            credentials,
            primary_model=config.primary_model,
            secondary_model=config.secondary_model,
            base_url=config.gemini_base_url,
            timeout=config.classifier_timeout,
        )
        return cls(kv, classifier)

    def close(self) -> None:
        """Close the classifier client and the storage backend."""
        for component, name in ((self.classifier, "classifier"), (self.kv, "storage")):
            try:
                component.close()
            except Exception:
                logger.error(f"Error closing {name}, continuing...", exc_info=True)
