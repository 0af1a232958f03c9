"""
Finance Tracker Service

This module ties the store, the collections and the audit log together
into the single object the UI talks to.

DESIGN DECISION: There is no global store. A FinanceTracker is built
once at start-up around a KeyValueStore and passed to whoever needs it.
Tests build one around an InMemoryStore.

The tracker adds the operations that span more than one collection:
1. Settings / PIN access
2. Investment movement posting (movement + balance in one write)
3. Backup export / import and full reset
"""

import hmac
from datetime import datetime
from decimal import Decimal
from pathlib import Path
from typing import Any, Optional, Union

from pydantic import ValidationError
from pydantic.alias_generators import to_camel

from meubolso.audit import AuditLogger
from meubolso.backup import backup_filename, dump_backup, parse_backup
from meubolso.config import get_settings
from meubolso.models.audit import AuditEventBuilder
from meubolso.models.finance import (
    Alert,
    BackupData,
    Investment,
    InvestmentMovement,
    InvestmentMovementCreate,
    MonthSummary,
    MovementType,
    Transaction,
    UserSettings,
    utc_now,
)
from meubolso.repository import (
    AlertCollection,
    CardBillCollection,
    CardPurchaseCollection,
    CategoryCollection,
    CreditCardCollection,
    InvestmentCollection,
    InvestmentMovementCollection,
    TransactionCollection,
)
from meubolso.services.storage import (
    CollectionKey,
    JsonFileStore,
    KeyValueStore,
    MissingSettingsError,
    StoreResult,
)


class FinanceTracker:
    """
    The persistence service for one user's data.

    Collections are exposed as attributes (`tracker.transactions.add(...)`);
    cross-collection operations are methods on the tracker itself.
    """

    def __init__(
        self,
        store: KeyValueStore,
        key_prefix: Optional[str] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._store = store
        self._key_prefix = key_prefix or get_settings().storage.key_prefix
        self._app_settings = get_settings().app
        self._audit = audit_logger or AuditLogger()

        collection_args = (store, self._key_prefix, self._audit)
        self.categories = CategoryCollection(*collection_args)
        self.transactions = TransactionCollection(*collection_args)
        self.credit_cards = CreditCardCollection(*collection_args)
        self.card_purchases = CardPurchaseCollection(*collection_args)
        self.card_bills = CardBillCollection(*collection_args)
        self.investments = InvestmentCollection(*collection_args)
        self.investment_movements = InvestmentMovementCollection(*collection_args)
        self.alerts = AlertCollection(*collection_args)

        self._settings_key = CollectionKey.SETTINGS.storage_key(self._key_prefix)
        self.last_write: StoreResult = StoreResult.ok()

    def initialize(self) -> None:
        """
        Bootstrap step, run once at application start.

        Seeds the default categories when none exist yet.
        """
        self.categories.seed_defaults()

    def _write_many(self, values: dict[str, Any]) -> StoreResult:
        result = self._store.write_many(values)
        self.last_write = result
        if not result.success:
            self._audit.log(
                AuditEventBuilder.store_write_failed(sorted(values), result.error_message or "")
            )
        return result

    # -------------------------------------------------------------------------
    # Settings & PIN access
    # -------------------------------------------------------------------------

    def get_settings(self) -> Optional[UserSettings]:
        """Stored settings, or None before first-access setup."""
        result = self._store.read(self._settings_key)
        if not result.success:
            self._audit.log(
                AuditEventBuilder.store_read_failed(self._settings_key, result.error_message or "")
            )
            return None
        if result.value is None:
            return None

        try:
            return UserSettings.model_validate(result.value)
        except ValidationError as e:
            self._audit.log(AuditEventBuilder.store_read_failed(self._settings_key, str(e)))
            return None

    def is_first_access(self) -> bool:
        return self.get_settings() is None

    def save_settings(self, settings: UserSettings) -> StoreResult:
        return self._write_many({self._settings_key: settings.to_storage()})

    def initialize_settings(self, pin: str) -> UserSettings:
        """
        First-access setup: create settings with the chosen PIN.

        Raises:
            ValidationError: if the PIN is not a valid numeric PIN
        """
        settings = UserSettings(
            pin=pin,
            currency=self._app_settings.default_currency,
            language=self._app_settings.default_language,
        )
        self.save_settings(settings)
        self._audit.log(AuditEventBuilder.settings_changed(True, sorted(UserSettings.model_fields)))
        return settings

    def update_settings(self, updates: dict[str, Any]) -> Optional[UserSettings]:
        """
        Merge updates into the settings. None if there are no settings.

        Keys may be field names or camelCase aliases; timestamps are
        managed here and cannot be overwritten.
        """
        current = self.get_settings()
        if current is None:
            return None

        changes = _settings_changes(updates)
        settings = UserSettings.model_validate({
            **current.model_dump(),
            **changes,
            "updated_at": utc_now(),
        })
        self.save_settings(settings)
        self._audit.log(AuditEventBuilder.settings_changed(False, sorted(changes)))
        return settings

    def verify_pin(self, pin: str) -> bool:
        """Check a PIN against the stored one (constant-time)."""
        settings = self.get_settings()
        if settings is None:
            return False
        if hmac.compare_digest(settings.pin.encode(), pin.encode()):
            return True

        self._audit.log(AuditEventBuilder.pin_rejected())
        return False

    def record_backup(self, at: Optional[datetime] = None) -> Optional[UserSettings]:
        """Remember when the last backup file was made."""
        current = self.get_settings()
        if current is None:
            return None
        settings = current.model_copy(update={"last_backup": at or utc_now()})
        self.save_settings(settings)
        return settings

    # -------------------------------------------------------------------------
    # Transactions
    # -------------------------------------------------------------------------

    def get_transactions_by_month(self, year: int, month: int) -> list[Transaction]:
        return self.transactions.get_by_month(year, month)

    def month_summary(self, year: int, month: int) -> MonthSummary:
        return self.transactions.month_summary(year, month)

    # -------------------------------------------------------------------------
    # Investments
    # -------------------------------------------------------------------------

    def post_movement(
        self,
        investment_id: str,
        movement_type: Union[MovementType, str],
        amount: Union[Decimal, int, float, str],
        date: str,
        description: Optional[str] = None,
    ) -> InvestmentMovement:
        """
        Record a deposit or withdrawal and update the investment balance.

        Both collections are written in a single store write. If the
        investment does not exist the movement is still recorded, with no
        balance effect. Withdrawing more than the balance is not blocked
        here; that is the caller's policy.

        Raises:
            ValidationError: if the movement fields are invalid
        """
        movement = self.investment_movements.build(
            InvestmentMovementCreate(
                investment_id=investment_id,
                type=movement_type,
                amount=amount,
                date=date,
                description=description,
            )
        )

        # Entries that fail validation are written back untouched
        movements = self.investment_movements.entries()
        movements.append(movement)
        values = {
            self.investment_movements.storage_key: self.investment_movements.payload(movements),
        }

        investments = self.investments.entries()
        new_balance = None
        for index, investment in enumerate(investments):
            if isinstance(investment, Investment) and investment.id == investment_id:
                new_balance = investment.current_balance + movement.signed_amount
                investments[index] = investment.model_copy(
                    update={"current_balance": new_balance, "updated_at": utc_now()}
                )
                values[self.investments.storage_key] = self.investments.payload(investments)
                break

        self._write_many(values)

        if new_balance is None:
            self._audit.log(AuditEventBuilder.movement_orphaned(movement.id, investment_id))
        else:
            self._audit.log(AuditEventBuilder.movement_posted(
                movement_id=movement.id,
                investment_id=investment_id,
                movement_type=movement.type.value,
                amount=str(movement.amount),
                new_balance=str(new_balance),
            ))
        return movement

    def get_movements_by_investment(self, investment_id: str) -> list[InvestmentMovement]:
        return self.investment_movements.get_by_investment(investment_id)

    # -------------------------------------------------------------------------
    # Alerts
    # -------------------------------------------------------------------------

    def mark_alert_read(self, alert_id: str) -> Optional[Alert]:
        return self.alerts.mark_read(alert_id)

    def count_unread_alerts(self) -> int:
        return self.alerts.count_unread()

    # -------------------------------------------------------------------------
    # Backup & restore
    # -------------------------------------------------------------------------

    def export_snapshot(self) -> BackupData:
        """
        Snapshot every collection.

        Raises:
            MissingSettingsError: if there are no settings (nothing to back up)
        """
        settings = self.get_settings()
        if settings is None:
            raise MissingSettingsError("No settings found")

        data = BackupData(
            version=self._app_settings.backup_format_version,
            exported_at=utc_now(),
            settings=settings,
            categories=self.categories.get_all(),
            transactions=self.transactions.get_all(),
            credit_cards=self.credit_cards.get_all(),
            card_purchases=self.card_purchases.get_all(),
            card_bills=self.card_bills.get_all(),
            investments=self.investments.get_all(),
            investment_movements=self.investment_movements.get_all(),
            alerts=self.alerts.get_all(),
        )
        self._audit.log(AuditEventBuilder.backup_exported(data.version, _counts(data)))
        return data

    def import_snapshot(self, data: BackupData) -> StoreResult:
        """
        Replace ALL stored data with the snapshot.

        No merge and no consistency checks. Settings get a fresh
        updated_at. Everything is persisted in one write.
        """
        settings = data.settings.model_copy(update={"updated_at": utc_now()})
        result = self._write_many({
            self._settings_key: settings.to_storage(),
            self.categories.storage_key: self.categories.payload(data.categories),
            self.transactions.storage_key: self.transactions.payload(data.transactions),
            self.credit_cards.storage_key: self.credit_cards.payload(data.credit_cards),
            self.card_purchases.storage_key: self.card_purchases.payload(data.card_purchases),
            self.card_bills.storage_key: self.card_bills.payload(data.card_bills),
            self.investments.storage_key: self.investments.payload(data.investments),
            self.investment_movements.storage_key: self.investment_movements.payload(
                data.investment_movements
            ),
            self.alerts.storage_key: self.alerts.payload(data.alerts),
        })
        self._audit.log(AuditEventBuilder.backup_imported(data.version, _counts(data)))
        return result

    def reset_all(self) -> StoreResult:
        """
        Remove every collection key, back to the state before first run.

        Default categories come back on the next `initialize()`.
        """
        keys = [key.storage_key(self._key_prefix) for key in CollectionKey]
        result = self._store.remove_many(keys)
        self.last_write = result
        if not result.success:
            self._audit.log(
                AuditEventBuilder.store_write_failed(keys, result.error_message or "")
            )
        self._audit.log(AuditEventBuilder.data_reset(keys))
        return result

    def export_to_file(self, directory: Path) -> Path:
        """
        Write a backup file into `directory` and record the backup date.

        Raises:
            MissingSettingsError: if there are no settings
            OSError: if the file cannot be written
        """
        data = self.export_snapshot()
        directory = Path(directory)
        directory.mkdir(parents=True, exist_ok=True)
        path = directory / backup_filename(
            data.exported_at.astimezone().date(),
            prefix=self._app_settings.backup_filename_prefix,
        )
        path.write_text(dump_backup(data), encoding="utf-8")
        self.record_backup(data.exported_at)
        return path

    def import_from_file(self, path: Path) -> BackupData:
        """
        Validate a backup file and restore it.

        Raises:
            InvalidBackupError: if the file is not a valid backup
            OSError: if the file cannot be read
        """
        data = parse_backup(Path(path).read_text(encoding="utf-8"))
        self.import_snapshot(data)
        return data


def _settings_changes(updates: dict[str, Any]) -> dict[str, Any]:
    """Updates keyed by settings field name (aliases allowed, timestamps dropped)."""
    changes = {}
    for key, value in updates.items():
        for name in UserSettings.model_fields:
            if key in (name, to_camel(name)) and name not in ("created_at", "updated_at"):
                changes[name] = value
    return changes


def _counts(data: BackupData) -> dict[str, int]:
    return {
        "categories": len(data.categories),
        "transactions": len(data.transactions),
        "credit_cards": len(data.credit_cards),
        "card_purchases": len(data.card_purchases),
        "card_bills": len(data.card_bills),
        "investments": len(data.investments),
        "investment_movements": len(data.investment_movements),
        "alerts": len(data.alerts),
    }


def create_tracker(
    store: Optional[KeyValueStore] = None,
    audit_logger: Optional[AuditLogger] = None,
) -> FinanceTracker:
    """
    Build and bootstrap the tracker.

    Uses the configured JSON data file unless a store is given.
    """
    tracker = FinanceTracker(store or JsonFileStore(), audit_logger=audit_logger)
    tracker.initialize()
    return tracker
