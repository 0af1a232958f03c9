"""
JSON File Storage Implementation

DESIGN DECISION: All keys live in one JSON document on disk, the same way
a browser keeps an origin's localStorage:

    {"meubolso_settings": "{...}", "meubolso_transactions": "[...]", ...}

Each value is itself an encoded JSON string, so one corrupt value only
affects its own key.

TRADEOFFS:
- Every write rewrites the whole file (fine for thousands of records)
- No locking: two processes writing at once can clobber each other
- Writes go to a temp file that replaces the original, so a batch of keys
  lands together or not at all

Keys not owned by this application are carried over untouched on every
write.
"""

import json
import os
import tempfile
from pathlib import Path
from typing import Any, Iterable, Optional

import structlog
from tenacity import (
    Retrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from meubolso.config import get_settings
from meubolso.services.storage.interface import KeyValueStore, StoreResult


logger = structlog.get_logger(__name__)


class CorruptDocumentError(ValueError):
    """The data file exists but is not a JSON object."""
    pass


class JsonFileStore(KeyValueStore):
    """
    File-backed key/value store.

    Transient OSErrors on write (locked file, full disk that frees up) are
    retried with exponential backoff before the write is reported failed.
    """

    def __init__(
        self,
        path: Optional[Path] = None,
        retry_attempts: Optional[int] = None,
        retry_wait_seconds: Optional[float] = None,
    ):
        settings = get_settings().storage
        self.path = Path(path) if path is not None else settings.data_file
        attempts = retry_attempts if retry_attempts is not None else settings.write_retry_attempts
        wait = retry_wait_seconds if retry_wait_seconds is not None else settings.write_retry_wait_seconds

        self._retrying = Retrying(
            stop=stop_after_attempt(attempts),
            wait=wait_exponential(multiplier=wait, max=wait * 8),
            retry=retry_if_exception_type(OSError),
            reraise=True,
        )

    # -------------------------------------------------------------------------
    # Document handling
    # -------------------------------------------------------------------------

    def _load_document(self) -> dict[str, str]:
        """Read the whole document. Missing file means empty store."""
        try:
            text = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return {}
        except UnicodeDecodeError as e:
            raise CorruptDocumentError(f"Data file {self.path} is not valid UTF-8: {e}") from e

        if not text.strip():
            return {}

        try:
            document = json.loads(text)
        except json.JSONDecodeError as e:
            raise CorruptDocumentError(f"Data file {self.path} is not valid JSON: {e}")
        if not isinstance(document, dict):
            raise CorruptDocumentError(f"Data file {self.path} is not a JSON object")
        return document

    def _flush(self, document: dict[str, str]) -> None:
        """Write the document atomically (temp file + replace)."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            dir=self.path.parent,
            prefix=f".{self.path.name}.",
            suffix=".tmp",
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(document, handle, ensure_ascii=False)
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(tmp_name, self.path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    def _load_for_write(self) -> dict[str, str]:
        """
        Load the document before modifying it.

        A corrupt document is moved aside so writes can continue.
        """
        try:
            return self._load_document()
        except CorruptDocumentError as e:
            backup = self.path.with_name(self.path.name + ".corrupt")
            os.replace(self.path, backup)
            logger.warning(
                "data_file_quarantined",
                path=str(self.path),
                moved_to=str(backup),
                error=str(e),
            )
            return {}

    def _commit(self, change) -> StoreResult:
        try:
            document = self._load_for_write()
            change(document)
            self._retrying(self._flush, document)
        except OSError as e:
            return StoreResult.failed(f"Failed to write {self.path}: {e}")
        return StoreResult.ok()

    # -------------------------------------------------------------------------
    # KeyValueStore
    # -------------------------------------------------------------------------

    def read(self, key: str) -> StoreResult:
        try:
            document = self._load_document()
        except (CorruptDocumentError, OSError) as e:
            return StoreResult.failed(str(e))

        raw = document.get(key)
        if raw is None:
            return StoreResult.ok(None)
        if not isinstance(raw, str):
            return StoreResult.failed(f"Value for {key} is not an encoded string")
        try:
            return StoreResult.ok(json.loads(raw))
        except json.JSONDecodeError as e:
            return StoreResult.failed(f"Cannot decode value for {key}: {e}")

    def write_many(self, values: dict[str, Any]) -> StoreResult:
        try:
            encoded = {
                key: json.dumps(value, ensure_ascii=False)
                for key, value in values.items()
            }
        except (TypeError, ValueError) as e:
            return StoreResult.failed(f"Cannot encode value: {e}")

        return self._commit(lambda document: document.update(encoded))

    def remove_many(self, keys: Iterable[str]) -> StoreResult:
        keys = list(keys)

        def drop(document: dict[str, str]) -> None:
            for key in keys:
                document.pop(key, None)

        return self._commit(drop)
