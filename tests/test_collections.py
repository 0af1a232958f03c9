"""Tests for per-collection CRUD against an in-memory store."""

import pytest
from datetime import datetime, timezone
from decimal import Decimal

from meubolso.models.audit import AuditEventType
from meubolso.models.finance import (
    AlertCreate,
    AlertType,
    CardBillCreate,
    CardPurchaseCreate,
    CategoryCreate,
    CategoryType,
    CreditCardCreate,
    InvestmentCreate,
    TransactionCreate,
    TransactionType,
)
from meubolso.repository import CategoryCollection, TransactionCollection


def make_transaction(**overrides) -> TransactionCreate:
    fields = {
        "type": TransactionType.EXPENSE,
        "amount": Decimal("89.90"),
        "description": "Farmácia",
        "category_id": "cat-saude",
        "date": "2024-03-10",
    }
    fields.update(overrides)
    return TransactionCreate(**fields)


def make_alert(**overrides) -> AlertCreate:
    fields = {
        "type": AlertType.BILL_DUE,
        "title": "Fatura vence amanhã",
        "message": "Nubank: R$ 1.234,56",
    }
    fields.update(overrides)
    return AlertCreate(**fields)


class TestCrudRoundTrip:
    """add followed by get_all, for every collection."""

    def test_transaction_round_trip(self, tracker):
        """Test input fields are preserved and id/timestamps populated."""
        data = make_transaction(is_recurring=True, recurrence_type="monthly")
        created = tracker.transactions.add(data)

        stored = tracker.transactions.get_all()
        assert stored == [created]
        assert created.id
        assert created.created_at == created.updated_at
        assert created.model_dump(include=set(TransactionCreate.model_fields)) == data.model_dump()

    def test_add_accepts_plain_dict(self, tracker):
        """Test camelCase dict input, as a UI would send it."""
        card = tracker.credit_cards.add({
            "name": "Nubank",
            "limit": 5000,
            "closingDay": 3,
            "dueDay": 10,
            "color": "262 83% 58%",
            "lastFourDigits": "1234",
        })
        assert tracker.credit_cards.get(card.id).last_four_digits == "1234"
        assert card.limit == Decimal("5000")

    @pytest.mark.parametrize("collection_name, data", [
        ("categories", CategoryCreate(name="Pets", icon="Dog", type=CategoryType.EXPENSE, color="30 80% 50%")),
        ("credit_cards", CreditCardCreate(name="Inter", limit=Decimal("3000"), closing_day=25, due_day=5, color="25 95% 53%")),
        ("card_purchases", CardPurchaseCreate(
            card_id="card-1", amount=Decimal("100"), description="TV", category_id="cat-1",
            date="2024-03-01", installments=10, current_installment=1, total_amount=Decimal("1000"),
        )),
        ("card_bills", CardBillCreate(
            card_id="card-1", month=3, year=2024, total_amount=Decimal("100"),
            due_date="2024-04-10", closing_date="2024-04-03", purchases=["p-1"],
        )),
        ("investments", InvestmentCreate(name="Reserva", type="CDB", current_balance=Decimal("100"), yield_percentage=Decimal("12.5"))),
        ("alerts", make_alert()),
    ])
    def test_every_collection_round_trips(self, tracker, collection_name, data):
        """Test add then get_all preserves input fields for each kind."""
        collection = getattr(tracker, collection_name)
        before = len(collection.get_all())

        created = collection.add(data)
        stored = collection.get_all()

        assert len(stored) == before + 1
        assert stored[-1] == created
        assert created.model_dump(include=set(type(data).model_fields)) == data.model_dump()

    def test_insertion_order_is_preserved(self, tracker):
        first = tracker.transactions.add(make_transaction(description="a"))
        second = tracker.transactions.add(make_transaction(description="b"))
        third = tracker.transactions.add(make_transaction(description="c"))
        assert [t.id for t in tracker.transactions.get_all()] == [first.id, second.id, third.id]

    def test_never_written_collection_is_empty(self, tracker, store):
        assert tracker.transactions.get_all() == []
        assert "meubolso_transactions" not in store.keys()

    def test_invalid_input_raises(self, tracker):
        """Test bad create data is rejected before anything is stored."""
        with pytest.raises(ValueError):
            tracker.transactions.add({"type": "expense", "amount": -1})
        assert tracker.transactions.get_all() == []


class TestUpdate:
    """Tests for partial updates."""

    def test_update_changes_only_target_fields(self, tracker):
        """Test only description and updated_at change."""
        created = tracker.transactions.add(make_transaction())
        updated = tracker.transactions.update(created.id, {"description": "x"})

        assert updated.description == "x"
        assert updated.updated_at >= created.updated_at
        unchanged = set(type(created).model_fields) - {"description", "updated_at"}
        assert updated.model_dump(include=unchanged) == created.model_dump(include=unchanged)
        assert tracker.transactions.get(created.id) == updated

    def test_update_accepts_camel_case_keys(self, tracker):
        created = tracker.transactions.add(make_transaction())
        updated = tracker.transactions.update(created.id, {"categoryId": "cat-other"})
        assert updated.category_id == "cat-other"

    def test_update_cannot_change_identity(self, tracker):
        """Test id and created_at are owned by the store."""
        created = tracker.transactions.add(make_transaction())
        updated = tracker.transactions.update(created.id, {
            "id": "hijack",
            "createdAt": "2000-01-01T00:00:00Z",
        })
        assert updated.id == created.id
        assert updated.created_at == created.created_at

    def test_update_unknown_id_returns_none(self, tracker):
        tracker.transactions.add(make_transaction())
        assert tracker.transactions.update("nope", {"description": "x"}) is None

    def test_update_without_updated_at_field(self, tracker):
        """Test entities with only created_at can be updated."""
        purchase = tracker.card_purchases.add(CardPurchaseCreate(
            card_id="card-1", amount=Decimal("50"), description="Uber",
            category_id="cat-1", date="2024-03-01", total_amount=Decimal("50"),
        ))
        updated = tracker.card_purchases.update(purchase.id, {"description": "99"})
        assert updated.description == "99"
        assert updated.created_at == purchase.created_at

    def test_invalid_update_raises_and_keeps_record(self, tracker):
        created = tracker.transactions.add(make_transaction())
        with pytest.raises(ValueError):
            tracker.transactions.update(created.id, {"amount": 0})
        assert tracker.transactions.get(created.id) == created


class TestDelete:
    """Tests for delete-by-id."""

    def test_delete_removes(self, tracker):
        created = tracker.transactions.add(make_transaction())
        assert tracker.transactions.delete(created.id) is True
        assert tracker.transactions.get_all() == []

    def test_delete_unknown_returns_false(self, tracker):
        tracker.transactions.add(make_transaction())
        assert tracker.transactions.delete("nope") is False
        assert len(tracker.transactions.get_all()) == 1

    def test_deleting_user_category(self, tracker):
        pets = tracker.categories.add(CategoryCreate(name="Pets", icon="Dog", type="expense", color="x"))
        assert tracker.categories.delete(pets.id) is True
        assert pets.id not in [c.id for c in tracker.categories.get_all()]


class TestDefaultCategories:
    """Seeding and delete protection."""

    def test_reading_never_seeds(self, store, audit):
        """Test get_all on an empty collection does not write."""
        categories = CategoryCollection(store, "meubolso_", audit)
        assert categories.get_all() == []
        assert store.keys() == []

    def test_seeding_is_idempotent(self, store, audit):
        """Test seeding twice yields the identical set, once."""
        categories = CategoryCollection(store, "meubolso_", audit)
        first = categories.seed_defaults()
        second = categories.seed_defaults()

        assert len(first) == 12
        assert first == second == categories.get_all()
        assert len(audit.events_of(AuditEventType.CATEGORIES_SEEDED)) == 1

    def test_seeding_skips_non_empty_collection(self, store, audit):
        categories = CategoryCollection(store, "meubolso_", audit)
        own = categories.add(CategoryCreate(name="Pets", icon="Dog", type="expense", color="x"))
        assert categories.seed_defaults() == [own]

    def test_default_category_cannot_be_deleted(self, tracker, audit):
        """Test delete of a default returns False and leaves the collection as is."""
        before = tracker.categories.get_all()
        default = next(c for c in before if c.is_default)

        assert tracker.categories.delete(default.id) is False
        assert tracker.categories.get_all() == before
        assert audit.events_of(AuditEventType.DELETE_REFUSED)


class TestQueries:
    """Collection-scoped queries."""

    def test_purchases_by_card(self, tracker):
        for card_id, amount in (("card-1", "10"), ("card-2", "20"), ("card-1", "30")):
            tracker.card_purchases.add(CardPurchaseCreate(
                card_id=card_id, amount=Decimal(amount), description="x",
                category_id="c", date="2024-03-01", total_amount=Decimal(amount),
            ))
        assert [p.amount for p in tracker.card_purchases.get_by_card("card-1")] == [Decimal("10"), Decimal("30")]
        assert tracker.card_purchases.total_by_card("card-1") == Decimal("40")
        assert tracker.card_purchases.total_by_card("card-9") == Decimal("0")

    def test_bill_mark_paid(self, tracker):
        bill = tracker.card_bills.add(CardBillCreate(
            card_id="card-1", month=3, year=2024, total_amount=Decimal("100"),
            due_date="2024-04-10", closing_date="2024-04-03",
        ))
        paid_at = datetime(2024, 4, 9, 12, tzinfo=timezone.utc)
        paid = tracker.card_bills.mark_paid(bill.id, paid_at)

        assert paid.is_paid is True
        assert paid.paid_at == paid_at
        assert tracker.card_bills.get_by_card("card-1") == [paid]

    def test_investment_total_balance(self, tracker):
        tracker.investments.add(InvestmentCreate(name="A", type="Poupança", current_balance=Decimal("100.10")))
        tracker.investments.add(InvestmentCreate(name="B", type="CDB", current_balance=Decimal("0.20")))
        assert tracker.investments.total_balance() == Decimal("100.30")


class TestMonthFilter:
    """get_by_month uses local calendar months (1-12)."""

    def test_month_boundary(self, tracker, sao_paulo_tz):
        """Test last day of M and first day of M+1 land in their own months."""
        jan_last = tracker.transactions.add(make_transaction(date="2024-01-31T23:30:00"))
        feb_first = tracker.transactions.add(make_transaction(date="2024-02-01T00:15:00"))
        jan_date_only = tracker.transactions.add(make_transaction(date="2024-01-31"))

        assert tracker.get_transactions_by_month(2024, 1) == [jan_last, jan_date_only]
        assert tracker.get_transactions_by_month(2024, 2) == [feb_first]

    def test_utc_timestamps_use_local_calendar(self, tracker, sao_paulo_tz):
        """Test 01:00Z on Feb 1st is still January 31st in UTC-3."""
        late_evening = tracker.transactions.add(make_transaction(date="2024-02-01T01:00:00.000Z"))
        assert tracker.get_transactions_by_month(2024, 1) == [late_evening]
        assert tracker.get_transactions_by_month(2024, 2) == []

    def test_year_is_part_of_the_filter(self, tracker):
        tracker.transactions.add(make_transaction(date="2023-03-10"))
        current = tracker.transactions.add(make_transaction(date="2024-03-10"))
        assert tracker.get_transactions_by_month(2024, 3) == [current]

    def test_month_summary(self, tracker):
        tracker.transactions.add(make_transaction(type="income", amount=Decimal("3000"), date="2024-03-05"))
        tracker.transactions.add(make_transaction(amount=Decimal("89.90"), date="2024-03-10"))
        tracker.transactions.add(make_transaction(amount=Decimal("10.10"), date="2024-03-11"))
        tracker.transactions.add(make_transaction(amount=Decimal("999"), date="2024-04-01"))

        summary = tracker.month_summary(2024, 3)
        assert summary.total_income == Decimal("3000")
        assert summary.total_expense == Decimal("100.00")
        assert summary.balance == Decimal("2900.00")
        assert summary.transaction_count == 3


class TestAlerts:
    """Read/unread tracking."""

    def test_unread_count(self, tracker):
        """Test 5 alerts with 2 read gives 3, then 2 after one more is read."""
        alerts = [tracker.alerts.add(make_alert(title=f"Alert {i}")) for i in range(5)]
        tracker.mark_alert_read(alerts[0].id)
        tracker.mark_alert_read(alerts[1].id)
        assert tracker.count_unread_alerts() == 3

        tracker.mark_alert_read(alerts[2].id)
        assert tracker.count_unread_alerts() == 2

    def test_mark_read_is_idempotent(self, tracker, audit):
        alert = tracker.alerts.add(make_alert())
        first = tracker.mark_alert_read(alert.id)
        updates_after_first = len(audit.events_of(AuditEventType.ENTITY_UPDATED))
        second = tracker.mark_alert_read(alert.id)

        assert first.is_read and second.is_read
        assert first == second
        assert len(audit.events_of(AuditEventType.ENTITY_UPDATED)) == updates_after_first

    def test_mark_read_unknown_id(self, tracker):
        assert tracker.mark_alert_read("nope") is None

    def test_mark_all_read_and_clear(self, tracker):
        for i in range(3):
            tracker.alerts.add(make_alert(title=f"Alert {i}"))
        assert tracker.alerts.mark_all_read() == 3
        assert tracker.alerts.mark_all_read() == 0
        assert tracker.count_unread_alerts() == 0

        tracker.alerts.clear()
        assert tracker.alerts.get_all() == []


class TestFailOpen:
    """Unreadable data and failed writes never raise from CRUD."""

    def test_corrupt_collection_reads_as_empty(self, store, audit):
        store.set_raw("meubolso_transactions", "[{broken")
        transactions = TransactionCollection(store, "meubolso_", audit)

        assert transactions.get_all() == []
        assert audit.events_of(AuditEventType.STORE_READ_FAILED)

    def test_invalid_record_is_hidden_and_logged(self, store, audit):
        store.write("meubolso_transactions", [{"id": "1", "amount": "lots"}])
        transactions = TransactionCollection(store, "meubolso_", audit)

        assert transactions.get_all() == []
        assert [e.entity_id for e in audit.events_of(AuditEventType.RECORD_INVALID)] == ["1"]

    def test_non_list_value_reads_as_empty(self, store, audit):
        store.write("meubolso_transactions", {"not": "a list"})
        transactions = TransactionCollection(store, "meubolso_", audit)

        assert transactions.get_all() == []
        assert audit.events_of(AuditEventType.STORE_READ_FAILED)

    def test_write_failure_is_logged_and_observable(self, tracker, store, audit):
        """Test a failed write still returns the entity and records the failure."""
        store.fail_writes = True
        created = tracker.transactions.add(make_transaction())

        assert created.id
        assert tracker.transactions.last_write.success is False
        assert tracker.transactions.get_all() == []
        assert audit.events_of(AuditEventType.STORE_WRITE_FAILED)


# Records as the web front end writes them: blank optional strings and
# millisecond UTC timestamps from Date.toISOString()
ITAU = {
    "id": "1717000000000-itau",
    "name": "Itaú",
    "limit": 8000,
    "closingDay": 28,
    "dueDay": 5,
    "color": "25 95% 53%",
    "lastFourDigits": "9876",
    "createdAt": "2024-05-29T16:26:40.000Z",
    "updatedAt": "2024-05-29T16:26:40.000Z",
}
NUBANK = {
    "id": "1717000000001-nubank",
    "name": "Nubank",
    "limit": 5000,
    "closingDay": 3,
    "dueDay": 10,
    "color": "262 83% 58%",
    "lastFourDigits": "",
    "createdAt": "2024-05-29T16:26:40.001Z",
    "updatedAt": "2024-05-29T16:26:40.001Z",
}
# Fails the schema (limit is not a number): must survive every write
DAMAGED = {"id": "damaged", "name": "Velho", "limit": "muito"}

NEW_CARD = {"name": "Inter", "limit": 3000, "closingDay": 25, "dueDay": 5, "color": "x"}


class TestStoredRecords:
    """Existing stored data is kept intact across mutations."""

    def stored_names(self, store):
        return [card["name"] for card in store.read("meubolso_credit_cards").value]

    def test_front_end_records_load(self, tracker, store):
        """Test blank lastFourDigits and millisecond Z timestamps validate."""
        store.write("meubolso_credit_cards", [ITAU, NUBANK])

        cards = tracker.credit_cards.get_all()
        assert [c.name for c in cards] == ["Itaú", "Nubank"]
        assert cards[1].last_four_digits == ""
        assert cards[1].created_at.utcoffset().total_seconds() == 0

    def test_blank_last_four_digits_on_add(self, tracker):
        card = tracker.credit_cards.add({**NEW_CARD, "lastFourDigits": ""})
        assert tracker.credit_cards.get(card.id).last_four_digits == ""

    def test_add_keeps_existing_records(self, tracker, store):
        store.write("meubolso_credit_cards", [ITAU, NUBANK])
        tracker.credit_cards.add(NEW_CARD)
        assert self.stored_names(store) == ["Itaú", "Nubank", "Inter"]

    def test_add_keeps_invalid_record_untouched(self, tracker, store, audit):
        """Test a record that fails validation is written back as it was."""
        store.write("meubolso_credit_cards", [ITAU, DAMAGED, NUBANK])

        tracker.credit_cards.add(NEW_CARD)

        stored = store.read("meubolso_credit_cards").value
        assert [card["name"] for card in stored] == ["Itaú", "Velho", "Nubank", "Inter"]
        assert stored[1] == DAMAGED
        assert [c.name for c in tracker.credit_cards.get_all()] == ["Itaú", "Nubank", "Inter"]
        assert audit.events_of(AuditEventType.RECORD_INVALID)

    def test_update_and_delete_keep_invalid_record(self, tracker, store):
        store.write("meubolso_credit_cards", [ITAU, DAMAGED, NUBANK])

        tracker.credit_cards.update(NUBANK["id"], {"name": "Roxinho"})
        tracker.credit_cards.delete(ITAU["id"])

        assert store.read("meubolso_credit_cards").value[0] == DAMAGED
        assert self.stored_names(store) == ["Velho", "Roxinho"]

    def test_invalid_record_can_be_deleted(self, tracker, store):
        store.write("meubolso_credit_cards", [ITAU, DAMAGED])
        assert tracker.credit_cards.update("damaged", {"limit": 100}) is None
        assert tracker.credit_cards.delete("damaged") is True
        assert self.stored_names(store) == ["Itaú"]

    def test_mark_all_read_keeps_invalid_alert(self, tracker, store):
        broken = {"id": "a-broken", "type": "unknown_kind", "title": "?", "message": "?"}
        tracker.alerts.add(make_alert())
        store.write("meubolso_alerts", store.read("meubolso_alerts").value + [broken])

        assert tracker.alerts.mark_all_read() == 1
        assert store.read("meubolso_alerts").value[-1] == broken

    def test_strings_are_stored_verbatim(self, tracker):
        """Test surrounding whitespace in user text survives a round trip."""
        created = tracker.transactions.add(make_transaction(description="  Padaria do João "))
        assert tracker.transactions.get(created.id).description == "  Padaria do João "

    def test_long_text_is_accepted(self, tracker):
        alert = tracker.alerts.add(make_alert(title="x" * 500, message="y" * 5000))
        assert tracker.alerts.get(alert.id).title == "x" * 500
