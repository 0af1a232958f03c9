"""
Backup File Format

A backup is one JSON document with camelCase keys:

    {"version": "1.0.0", "exportedAt": "...", "settings": {...},
     "categories": [...], "transactions": [...], "creditCards": [...],
     "cardPurchases": [...], "cardBills": [...], "investments": [...],
     "investmentMovements": [...], "alerts": [...]}

IMPORTANT: Restoring replaces everything, so a file is rejected before
anything is touched unless it has at least `version`, `settings` and
`transactions`. Collections missing from an otherwise valid file are
restored as empty.
"""

import json
from datetime import date
from typing import Optional

from pydantic import ValidationError

from meubolso.models.finance import BackupData
from meubolso.services.storage import InvalidBackupError


REQUIRED_FIELDS = ("version", "settings", "transactions")


def backup_filename(on: Optional[date] = None, prefix: str = "meubolso-backup") -> str:
    """File name for a backup made on a given day, e.g. 'meubolso-backup-2024-06-10.json'."""
    on = on or date.today()
    return f"{prefix}-{on.isoformat()}.json"


def dump_backup(data: BackupData) -> str:
    """Serialize a snapshot the way backup files are written."""
    return json.dumps(data.to_storage(), ensure_ascii=False, indent=2)


def parse_backup(text: str) -> BackupData:
    """
    Parse and validate a backup document.

    Raises:
        InvalidBackupError: if the text is not JSON, lacks a required
            top-level field, or does not match the backup schema
    """
    try:
        document = json.loads(text)
    except json.JSONDecodeError as e:
        raise InvalidBackupError(f"Backup is not valid JSON: {e}") from e

    if not isinstance(document, dict):
        raise InvalidBackupError("Backup must be a JSON object")

    missing = [field for field in REQUIRED_FIELDS if document.get(field) in (None, "")]
    if missing:
        raise InvalidBackupError(f"Backup is missing required fields: {', '.join(missing)}")

    # Older exports may lack exportedAt; it is informational only
    settings = document["settings"]
    if "exportedAt" not in document and isinstance(settings, dict):
        document["exportedAt"] = settings.get("updatedAt")

    try:
        return BackupData.model_validate(document)
    except ValidationError as e:
        raise InvalidBackupError(f"Backup does not match the expected format: {e}") from e
