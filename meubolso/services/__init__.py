"""Services package."""

from meubolso.services.storage import (
    CollectionKey,
    InMemoryStore,
    InvalidBackupError,
    JsonFileStore,
    KeyValueStore,
    MissingSettingsError,
    StorageError,
    StoreResult,
    generate_id,
)

__all__ = [
    "CollectionKey",
    "InMemoryStore",
    "InvalidBackupError",
    "JsonFileStore",
    "KeyValueStore",
    "MissingSettingsError",
    "StorageError",
    "StoreResult",
    "generate_id",
]
