"""
Typed Collections over the Key/Value Store

Each entity kind lives under one key as an ordered JSON list. A Collection
knows its key and its model, and implements list-based CRUD on top of the
store primitives.

DESIGN DECISION: Every mutation is one full read-modify-write of the list.
No append-only tricks, no caching. At personal-finance volumes (thousands
of records) this is simple and fast enough.

FAIL-OPEN READS: a value that cannot be read or decoded is logged and
treated as an empty collection. This is an explicit policy in `entries`,
not an accident of a catch-all.

INVALID RECORDS: validation is per record. A stored record that does not
fit the model is left out of `get_all` and logged, but it is kept as-is
(a raw dict) and written back untouched by every mutation, so one odd
record never costs the rest of the list.

WRITE FAILURES: logged as audit errors. The mutating call still returns
its result; `last_write` holds the StoreResult for callers that want to
warn the user.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any, ClassVar, Generic, Optional, TypeVar, Union

from pydantic import ValidationError
from pydantic.alias_generators import to_camel

from meubolso.audit import AuditLogger
from meubolso.models.audit import AuditEventBuilder
from meubolso.models.finance import (
    DEFAULT_CATEGORIES,
    Alert,
    AlertCreate,
    CardBill,
    CardBillCreate,
    CardPurchase,
    CardPurchaseCreate,
    Category,
    CategoryCreate,
    CreditCard,
    CreditCardCreate,
    FinanceModel,
    Investment,
    InvestmentCreate,
    InvestmentMovement,
    InvestmentMovementCreate,
    MonthSummary,
    Transaction,
    TransactionCreate,
    TransactionType,
    utc_now,
)
from meubolso.services.storage import (
    CollectionKey,
    KeyValueStore,
    StoreResult,
    generate_id,
)


E = TypeVar("E", bound=FinanceModel)

# Fields owned by the store, never taken from caller updates
PROTECTED_FIELDS = frozenset({"id", "created_at"})


def entry_id(entry: Any) -> Optional[str]:
    """Id of a stored entry, whether it validated or was kept raw."""
    if isinstance(entry, FinanceModel):
        return entry.id
    if isinstance(entry, dict) and entry.get("id") is not None:
        return str(entry["id"])
    return None


class Collection(Generic[E]):
    """
    CRUD over one collection key.

    Subclasses set `key`, `model` and `create_model`.
    """

    key: ClassVar[CollectionKey]
    model: ClassVar[type[FinanceModel]]
    create_model: ClassVar[type[FinanceModel]]

    def __init__(
        self,
        store: KeyValueStore,
        key_prefix: str,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._store = store
        self.storage_key = self.key.storage_key(key_prefix)
        self._audit = audit_logger or AuditLogger()
        self._field_names = {
            **{to_camel(name): name for name in self.model.model_fields},
            **{name: name for name in self.model.model_fields},
        }
        self.last_write: StoreResult = StoreResult.ok()

    @property
    def has_updated_at(self) -> bool:
        return "updated_at" in self.model.model_fields

    @property
    def name(self) -> str:
        return self.key.value

    # -------------------------------------------------------------------------
    # Raw list access
    # -------------------------------------------------------------------------

    def entries(self) -> list[Any]:
        """
        Every stored record, in insertion order.

        Records that validate come back as models, the others unchanged
        (usually dicts). Never-written and unreadable values yield [].
        """
        result = self._store.read(self.storage_key)
        if not result.success:
            self._audit.log(
                AuditEventBuilder.store_read_failed(self.storage_key, result.error_message or "")
            )
            return []
        if result.value is None:
            return []
        if not isinstance(result.value, list):
            self._audit.log(
                AuditEventBuilder.store_read_failed(self.storage_key, "Stored value is not a list")
            )
            return []

        entries = []
        for raw in result.value:
            try:
                entries.append(self.model.model_validate(raw))
            except ValidationError as e:
                self._audit.log(
                    AuditEventBuilder.record_invalid(self.storage_key, entry_id(raw), str(e))
                )
                entries.append(raw)
        return entries

    def get_all(self) -> list[E]:
        """The valid records of the collection, in insertion order."""
        return [entry for entry in self.entries() if isinstance(entry, self.model)]

    def payload(self, entries: list[Any]) -> list[Any]:
        """The JSON-ready list as it is stored. Raw entries pass through."""
        return [
            entry.to_storage() if isinstance(entry, FinanceModel) else entry
            for entry in entries
        ]

    def replace_all(self, entries: list[Any]) -> StoreResult:
        """Overwrite the collection with `entries`."""
        result = self._store.write(self.storage_key, self.payload(entries))
        self.record_write(result, [self.storage_key])
        return result

    def record_write(self, result: StoreResult, keys: list[str]) -> None:
        self.last_write = result
        if not result.success:
            self._audit.log(
                AuditEventBuilder.store_write_failed(keys, result.error_message or "")
            )

    # -------------------------------------------------------------------------
    # CRUD
    # -------------------------------------------------------------------------

    def get(self, entity_id: str) -> Optional[E]:
        for item in self.get_all():
            if item.id == entity_id:
                return item
        return None

    def build(self, data: Union[FinanceModel, dict[str, Any]]) -> E:
        """
        Turn caller input into a full entity (id + timestamps), unsaved.

        Raises:
            ValidationError: if `data` does not fit the create model
        """
        if isinstance(data, dict):
            data = self.create_model.model_validate(data)

        now = utc_now()
        fields = data.model_dump()
        fields["id"] = generate_id()
        fields["created_at"] = now
        if self.has_updated_at:
            fields["updated_at"] = now
        return self.model.model_validate(fields)

    def add(self, data: Union[FinanceModel, dict[str, Any]]) -> E:
        """Create, append and persist a new entity."""
        entity = self.build(data)
        entries = self.entries()
        entries.append(entity)
        self.replace_all(entries)
        self._audit.log(AuditEventBuilder.entity_created(self.name, entity.id))
        return entity

    def merge(self, current: E, updates: dict[str, Any]) -> E:
        """
        Apply partial updates to an entity (unsaved).

        Keys may be snake_case field names or camelCase aliases. Unknown
        keys are ignored, and so are `id` and `created_at`.
        """
        normalized = {}
        for key, value in updates.items():
            name = self._field_names.get(key)
            if name is None or name in PROTECTED_FIELDS:
                continue
            normalized[name] = value

        merged = {**current.model_dump(), **normalized}
        if self.has_updated_at:
            merged["updated_at"] = utc_now()
        return self.model.model_validate(merged)

    def update(self, entity_id: str, updates: dict[str, Any]) -> Optional[E]:
        """
        Merge `updates` into the entity with this id and persist.

        Returns:
            The updated entity, or None if no valid entity has that id

        Raises:
            ValidationError: if the merged record is invalid
        """
        entries = self.entries()
        for index, entry in enumerate(entries):
            if isinstance(entry, self.model) and entry.id == entity_id:
                entries[index] = self.merge(entry, updates)
                self.replace_all(entries)
                self._audit.log(
                    AuditEventBuilder.entity_updated(self.name, entity_id, sorted(updates))
                )
                return entries[index]
        return None

    def delete(self, entity_id: str) -> bool:
        """
        Remove the record with this id. Returns whether one was removed.

        Records that failed validation can be deleted too.
        """
        entries = self.entries()
        remaining = [entry for entry in entries if entry_id(entry) != entity_id]
        if len(remaining) == len(entries):
            return False

        self.replace_all(remaining)
        self._audit.log(AuditEventBuilder.entity_deleted(self.name, entity_id))
        return True


# =============================================================================
# CATEGORIES
# =============================================================================

class CategoryCollection(Collection[Category]):
    """
    Categories, with protected seed data.

    DESIGN DECISION: Seeding is an explicit step (`seed_defaults`) run at
    bootstrap. Reading the collection never writes to it.
    """

    key = CollectionKey.CATEGORIES
    model = Category
    create_model = CategoryCreate

    def seed_defaults(self) -> list[Category]:
        """
        Populate the default categories if the collection is empty.

        Idempotent: once anything is stored, returns the valid categories
        unchanged.
        """
        entries = self.entries()
        if entries:
            return [entry for entry in entries if isinstance(entry, Category)]

        seeded = [self.build(category) for category in DEFAULT_CATEGORIES]
        self.replace_all(seeded)
        self._audit.log(AuditEventBuilder.categories_seeded(len(seeded)))
        return seeded

    def delete(self, entity_id: str) -> bool:
        """Delete a user category. Default categories are never removed."""
        for entry in self.entries():
            if entry_id(entry) == entity_id and _is_default(entry):
                self._audit.log(
                    AuditEventBuilder.delete_refused(self.name, entity_id, "default category")
                )
                return False
        return super().delete(entity_id)


def _is_default(entry: Any) -> bool:
    if isinstance(entry, Category):
        return entry.is_default
    return isinstance(entry, dict) and bool(entry.get("isDefault"))


# =============================================================================
# TRANSACTIONS
# =============================================================================

class TransactionCollection(Collection[Transaction]):
    key = CollectionKey.TRANSACTIONS
    model = Transaction
    create_model = TransactionCreate

    def get_by_month(self, year: int, month: int) -> list[Transaction]:
        """
        Transactions dated in a calendar month (month is 1-12).

        The date is read in local time: a value with an offset is moved
        to the local zone first, a value without one is local already.
        """
        matches = []
        for transaction in self.get_all():
            local = transaction.local_date
            if local.year == year and local.month == month:
                matches.append(transaction)
        return matches

    def month_summary(self, year: int, month: int) -> MonthSummary:
        """Income and expense totals for one month."""
        transactions = self.get_by_month(year, month)
        income = sum(
            (t.amount for t in transactions if t.type == TransactionType.INCOME),
            Decimal("0"),
        )
        expense = sum(
            (t.amount for t in transactions if t.type == TransactionType.EXPENSE),
            Decimal("0"),
        )
        return MonthSummary(
            month=month,
            year=year,
            total_income=income,
            total_expense=expense,
            transaction_count=len(transactions),
        )


# =============================================================================
# CREDIT CARDS
# =============================================================================

class CreditCardCollection(Collection[CreditCard]):
    key = CollectionKey.CREDIT_CARDS
    model = CreditCard
    create_model = CreditCardCreate


class CardPurchaseCollection(Collection[CardPurchase]):
    key = CollectionKey.CARD_PURCHASES
    model = CardPurchase
    create_model = CardPurchaseCreate

    def get_by_card(self, card_id: str) -> list[CardPurchase]:
        return [p for p in self.get_all() if p.card_id == card_id]

    def total_by_card(self, card_id: str) -> Decimal:
        """Sum of purchase amounts on a card (its used limit)."""
        return sum((p.amount for p in self.get_by_card(card_id)), Decimal("0"))


class CardBillCollection(Collection[CardBill]):
    key = CollectionKey.CARD_BILLS
    model = CardBill
    create_model = CardBillCreate

    def get_by_card(self, card_id: str) -> list[CardBill]:
        return [b for b in self.get_all() if b.card_id == card_id]

    def mark_paid(
        self,
        bill_id: str,
        paid_at: Optional[datetime] = None,
    ) -> Optional[CardBill]:
        return self.update(bill_id, {"is_paid": True, "paid_at": paid_at or utc_now()})


# =============================================================================
# INVESTMENTS
# =============================================================================

class InvestmentCollection(Collection[Investment]):
    key = CollectionKey.INVESTMENTS
    model = Investment
    create_model = InvestmentCreate

    def total_balance(self) -> Decimal:
        return sum((i.current_balance for i in self.get_all()), Decimal("0"))


class InvestmentMovementCollection(Collection[InvestmentMovement]):
    key = CollectionKey.INVESTMENT_MOVEMENTS
    model = InvestmentMovement
    create_model = InvestmentMovementCreate

    def get_by_investment(self, investment_id: str) -> list[InvestmentMovement]:
        """Movements of one investment, in the order they were posted."""
        return [m for m in self.get_all() if m.investment_id == investment_id]


# =============================================================================
# ALERTS
# =============================================================================

class AlertCollection(Collection[Alert]):
    key = CollectionKey.ALERTS
    model = Alert
    create_model = AlertCreate

    def mark_read(self, alert_id: str) -> Optional[Alert]:
        """
        Flag one alert as read.

        Idempotent: an alert that is already read is returned without a
        write. Returns None for an unknown id.
        """
        alert = self.get(alert_id)
        if alert is None or alert.is_read:
            return alert
        return self.update(alert_id, {"is_read": True})

    def mark_all_read(self) -> int:
        """Flag every alert as read. Returns how many changed."""
        entries = self.entries()
        changed = 0
        for index, entry in enumerate(entries):
            if isinstance(entry, Alert) and not entry.is_read:
                entries[index] = entry.model_copy(update={"is_read": True})
                changed += 1
        if changed:
            self.replace_all(entries)
        return changed

    def count_unread(self) -> int:
        return sum(1 for a in self.get_all() if not a.is_read)

    def clear(self) -> StoreResult:
        """Drop every alert."""
        return self.replace_all([])
