"""
Audit Models for Meu Bolso

Every mutation of the local store is described by an audit event.
This provides:
1. Traceability of what changed and when
2. Debugging information when a write silently failed
3. A record of backups, restores and resets

DESIGN DECISION: Audit events go to the structured log only. They are
never written into the user's data store.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

from meubolso.models.finance import utc_now


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Collection CRUD
    ENTITY_CREATED = "entity_created"
    ENTITY_UPDATED = "entity_updated"
    ENTITY_DELETED = "entity_deleted"
    DELETE_REFUSED = "delete_refused"
    CATEGORIES_SEEDED = "categories_seeded"

    # Cross-entity
    MOVEMENT_POSTED = "movement_posted"
    MOVEMENT_ORPHANED = "movement_orphaned"

    # Settings
    SETTINGS_CREATED = "settings_created"
    SETTINGS_UPDATED = "settings_updated"
    PIN_REJECTED = "pin_rejected"

    # Backup
    BACKUP_EXPORTED = "backup_exported"
    BACKUP_IMPORTED = "backup_imported"
    DATA_RESET = "data_reset"

    # Store failures
    STORE_READ_FAILED = "store_read_failed"
    RECORD_INVALID = "record_invalid"
    STORE_WRITE_FAILED = "store_write_failed"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class AuditEvent(BaseModel):
    """
    A single audit event.

    Every store mutation creates one of these.
    """

    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=utc_now,
        description="When the event occurred (UTC)"
    )

    event_type: AuditEventType
    severity: AuditSeverity = AuditSeverity.INFO

    # Context - which collection / record is this about?
    collection: Optional[str] = Field(
        default=None,
        description="Collection name (e.g. 'transactions')"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="Id of the record this event relates to"
    )

    description: str = Field(..., max_length=500)
    details: dict[str, Any] = Field(default_factory=dict)
    error_message: Optional[str] = None

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "collection": self.collection,
            "entity_id": self.entity_id,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
        }


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.entity_created("transactions", tx.id)
        event = AuditEventBuilder.store_write_failed(["meubolso_alerts"], "disk full")
    """

    @staticmethod
    def entity_created(collection: str, entity_id: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ENTITY_CREATED,
            collection=collection,
            entity_id=entity_id,
            description=f"Created {collection} record",
        )

    @staticmethod
    def entity_updated(
        collection: str,
        entity_id: str,
        fields: list[str],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ENTITY_UPDATED,
            collection=collection,
            entity_id=entity_id,
            description=f"Updated {collection} record",
            details={"fields": fields},
        )

    @staticmethod
    def entity_deleted(collection: str, entity_id: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ENTITY_DELETED,
            collection=collection,
            entity_id=entity_id,
            description=f"Deleted {collection} record",
        )

    @staticmethod
    def delete_refused(collection: str, entity_id: str, reason: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DELETE_REFUSED,
            severity=AuditSeverity.WARNING,
            collection=collection,
            entity_id=entity_id,
            description=f"Refused to delete {collection} record: {reason}",
        )

    @staticmethod
    def categories_seeded(count: int) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CATEGORIES_SEEDED,
            collection="categories",
            description=f"Seeded {count} default categories",
            details={"count": count},
        )

    @staticmethod
    def movement_posted(
        movement_id: str,
        investment_id: str,
        movement_type: str,
        amount: str,
        new_balance: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.MOVEMENT_POSTED,
            collection="investment_movements",
            entity_id=movement_id,
            description=f"Posted {movement_type} of {amount}",
            details={
                "investment_id": investment_id,
                "movement_type": movement_type,
                "amount": amount,
                "new_balance": new_balance,
            },
        )

    @staticmethod
    def movement_orphaned(movement_id: str, investment_id: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.MOVEMENT_ORPHANED,
            severity=AuditSeverity.WARNING,
            collection="investment_movements",
            entity_id=movement_id,
            description="Movement recorded for an unknown investment",
            details={"investment_id": investment_id},
        )

    @staticmethod
    def settings_changed(created: bool, fields: list[str]) -> AuditEvent:
        return AuditEvent(
            event_type=(
                AuditEventType.SETTINGS_CREATED if created
                else AuditEventType.SETTINGS_UPDATED
            ),
            collection="settings",
            description="Settings created" if created else "Settings updated",
            # Never log values here: the PIN lives in settings
            details={"fields": fields},
        )

    @staticmethod
    def pin_rejected() -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PIN_REJECTED,
            severity=AuditSeverity.WARNING,
            collection="settings",
            description="Wrong PIN entered",
        )

    @staticmethod
    def data_reset(keys: list[str]) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DATA_RESET,
            severity=AuditSeverity.WARNING,
            description="All data removed",
            details={"keys": keys},
        )

    @staticmethod
    def backup_exported(version: str, counts: dict[str, int]) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BACKUP_EXPORTED,
            description=f"Backup exported (format {version})",
            details={"version": version, "counts": counts},
        )

    @staticmethod
    def backup_imported(version: str, counts: dict[str, int]) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BACKUP_IMPORTED,
            severity=AuditSeverity.WARNING,
            description=f"Backup imported (format {version}), all data replaced",
            details={"version": version, "counts": counts},
        )

    @staticmethod
    def store_read_failed(key: str, error_message: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STORE_READ_FAILED,
            severity=AuditSeverity.WARNING,
            collection=key,
            description="Stored value unreadable, using default",
            error_message=error_message,
        )

    @staticmethod
    def record_invalid(key: str, entity_id: Optional[str], error_message: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECORD_INVALID,
            severity=AuditSeverity.WARNING,
            collection=key,
            entity_id=entity_id,
            description="Stored record does not match its schema, kept as-is",
            error_message=error_message,
        )

    @staticmethod
    def store_write_failed(keys: list[str], error_message: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STORE_WRITE_FAILED,
            severity=AuditSeverity.ERROR,
            collection=",".join(keys),
            description="Could not persist data",
            details={"keys": keys},
            error_message=error_message,
        )
