"""
Storage Services Package

Provides the abstract key/value interface and concrete implementations.
The JSON file store is the real backend; the in-memory store is for tests
and throwaway sessions.
"""

from meubolso.services.storage.interface import (
    CollectionKey,
    InvalidBackupError,
    KeyValueStore,
    MissingSettingsError,
    StorageError,
    StoreResult,
    generate_id,
)
from meubolso.services.storage.json_file import JsonFileStore
from meubolso.services.storage.memory import InMemoryStore

__all__ = [
    # Interface
    "CollectionKey",
    "KeyValueStore",
    "StoreResult",
    "generate_id",
    # Exceptions
    "InvalidBackupError",
    "MissingSettingsError",
    "StorageError",
    # Implementations
    "InMemoryStore",
    "JsonFileStore",
]
