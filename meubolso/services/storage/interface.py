"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract key/value interface for storage.
This allows us to:
1. Keep data in a JSON file on disk for real use
2. Use in-memory storage for testing
3. Keep the domain layer unaware of where bytes end up

The interface is intentionally tiny: read a key, write keys, remove keys.
Values are plain JSON-compatible Python data (dicts, lists, scalars).

Primitives never raise for I/O or decoding problems. They report the
outcome in a StoreResult, and the domain layer decides what a failure
means (usually: log it and fall back to a default).
"""

import time
from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Iterable, Optional
from uuid import uuid4

from pydantic import BaseModel


class CollectionKey(str, Enum):
    """One reserved key per collection kind."""
    SETTINGS = "settings"
    TRANSACTIONS = "transactions"
    CATEGORIES = "categories"
    CREDIT_CARDS = "credit_cards"
    CARD_PURCHASES = "card_purchases"
    CARD_BILLS = "card_bills"
    INVESTMENTS = "investments"
    INVESTMENT_MOVEMENTS = "investment_movements"
    ALERTS = "alerts"

    def storage_key(self, prefix: str) -> str:
        """Namespaced key as it appears in the store (e.g. 'meubolso_alerts')."""
        return f"{prefix}{self.value}"


class StoreResult(BaseModel):
    """
    Outcome of a store primitive.

    For reads, `value` is None when the key is absent.
    """

    success: bool
    value: Any = None
    error_message: Optional[str] = None

    @classmethod
    def ok(cls, value: Any = None) -> "StoreResult":
        return cls(success=True, value=value)

    @classmethod
    def failed(cls, error_message: str) -> "StoreResult":
        return cls(success=False, error_message=error_message)


class KeyValueStore(ABC):
    """
    Abstract interface for the persistent key/value store.

    Any storage implementation (JSON file, memory, ...) must implement
    these methods. All of them are synchronous.
    """

    @abstractmethod
    def read(self, key: str) -> StoreResult:
        """
        Read and decode the value stored under a key.

        Returns:
            ok(value) if present, ok(None) if absent,
            failed(...) if the stored value cannot be decoded
        """
        pass

    @abstractmethod
    def write_many(self, values: dict[str, Any]) -> StoreResult:
        """
        Encode and persist several keys in one write.

        Either every key is persisted or none is.
        """
        pass

    @abstractmethod
    def remove_many(self, keys: Iterable[str]) -> StoreResult:
        """Remove keys. Absent keys are ignored."""
        pass

    def write(self, key: str, value: Any) -> StoreResult:
        """Encode and persist one key, overwriting any prior value."""
        return self.write_many({key: value})

    def remove(self, key: str) -> StoreResult:
        return self.remove_many([key])


def generate_id() -> str:
    """
    Create a new record id.

    Current time in milliseconds plus 48 random bits, e.g.
    '1718035200000-3f9a1c0b7d2e'.
    """
    return f"{int(time.time() * 1000)}-{uuid4().hex[:12]}"


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class MissingSettingsError(StorageError):
    """No settings exist, so there is nothing meaningful to export."""
    pass


class InvalidBackupError(StorageError):
    """A backup document is structurally invalid."""
    pass

