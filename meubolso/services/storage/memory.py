"""
In-Memory Storage Implementation

Keeps every key as an encoded JSON string in a dict, so values go through
the same encode/decode path as on disk. Used by the test-suite and for
throwaway sessions.
"""

import json
from typing import Any, Iterable, Optional

from meubolso.services.storage.interface import KeyValueStore, StoreResult


class InMemoryStore(KeyValueStore):
    """
    Dict-backed key/value store.

    `fail_writes` makes every write and remove report failure, which lets
    tests exercise the write-failure path without a real disk.
    """

    def __init__(self, initial: Optional[dict[str, Any]] = None):
        self._data: dict[str, str] = {}
        self.fail_writes = False
        if initial:
            self.write_many(initial)

    def read(self, key: str) -> StoreResult:
        raw = self._data.get(key)
        if raw is None:
            return StoreResult.ok(None)
        try:
            return StoreResult.ok(json.loads(raw))
        except json.JSONDecodeError as e:
            return StoreResult.failed(f"Cannot decode value for {key}: {e}")

    def write_many(self, values: dict[str, Any]) -> StoreResult:
        if self.fail_writes:
            return StoreResult.failed("Simulated write failure")
        try:
            encoded = {key: json.dumps(value) for key, value in values.items()}
        except (TypeError, ValueError) as e:
            return StoreResult.failed(f"Cannot encode value: {e}")
        self._data.update(encoded)
        return StoreResult.ok()

    def remove_many(self, keys: Iterable[str]) -> StoreResult:
        if self.fail_writes:
            return StoreResult.failed("Simulated write failure")
        for key in keys:
            self._data.pop(key, None)
        return StoreResult.ok()

    def set_raw(self, key: str, raw: str) -> None:
        """Store text as-is, bypassing encoding (e.g. to plant corrupt data)."""
        self._data[key] = raw

    def keys(self) -> list[str]:
        return list(self._data)
