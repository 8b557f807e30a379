"""Storage layer for Reelkeeper."""

from reelkeeper.storage.categories import BUILTIN_CATEGORIES, CategoryRegistry
from reelkeeper.storage.credentials import CredentialStore
from reelkeeper.storage.kv import JsonFileKeyValueStore, KeyValueStore, MemoryKeyValueStore
from reelkeeper.storage.reels import ReelStore
from reelkeeper.storage.settings import SettingsStore

__all__ = [
    "BUILTIN_CATEGORIES",
    "CategoryRegistry",
    "CredentialStore",
    "JsonFileKeyValueStore",
    "KeyValueStore",
    "MemoryKeyValueStore",
    "ReelStore",
    "SettingsStore",
]
