"""Generation history: result cache, collections and their persistence backends."""

from meshforge.services.history.collections import HistoryCollections
from meshforge.services.history.kv_store import (
    COLLECTIONS_KEY,
    HISTORY_KEY,
    InMemoryKeyValueStore,
    KeyValueStore,
    SqlKeyValueStore,
    kv_store_from_settings,
)
from meshforge.services.history.result_store import ResultStore

__all__ = [
    "COLLECTIONS_KEY",
    "HISTORY_KEY",
    "HistoryCollections",
    "InMemoryKeyValueStore",
    "KeyValueStore",
    "ResultStore",
    "SqlKeyValueStore",
    "kv_store_from_settings",
]
