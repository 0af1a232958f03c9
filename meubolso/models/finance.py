"""
Core Data Models for Meu Bolso

These models define the schemas of everything kept in the local store.
They are designed to:
1. Enforce type safety when values are read back from storage
2. Serialize to the same camelCase JSON the backup files use
3. Keep money as Decimal, never float, inside the program

DESIGN DECISION: Each persisted entity has a `...Create` model holding the
caller-supplied fields and a full model adding id and timestamps. The
repository layer fills in the generated parts, callers never do.
"""

from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Annotated, Optional

from pydantic import (
    AfterValidator,
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Field,
    PlainSerializer,
    computed_field,
)
from pydantic.alias_generators import to_camel


PIN_LENGTH = 6


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def parse_iso(value: str) -> datetime:
    """
    Parse an ISO-8601 date or date-time string.

    Date-only values become midnight. Offsets (including a trailing Z)
    are kept, so the result may be naive or aware.
    """
    return datetime.fromisoformat(value)


def to_local(moment: datetime) -> datetime:
    """
    Express a parsed moment in local wall-clock time.

    Naive values are already local wall time. Aware values are converted
    to the system's local zone.
    """
    if moment.tzinfo is None:
        return moment
    return moment.astimezone()


def _check_iso(value: str) -> str:
    try:
        parse_iso(value)
    except ValueError:
        raise ValueError(f"Not an ISO-8601 date: {value!r}") from None
    return value


def _money_from_number(value):
    # A JSON number arrives as a float; its shortest repr is the text that was written
    if isinstance(value, float):
        return Decimal(repr(value))
    return value


def _check_money(value: Decimal) -> Decimal:
    """Only accept amounts that survive the trip to a JSON number unchanged."""
    if not value.is_finite() or Decimal(repr(float(value))) != value:
        raise ValueError(f"Amount cannot be stored exactly: {value}")
    return value


# Money is a Decimal in memory and a plain JSON number on disk.
# Anything accepted here is written and read back as the same Decimal.
Money = Annotated[
    Decimal,
    BeforeValidator(_money_from_number),
    AfterValidator(_check_money),
    PlainSerializer(lambda v: float(v), return_type=float, when_used="json"),
]

# Business dates stay strings (as entered), but must parse
IsoDate = Annotated[str, AfterValidator(_check_iso)]


class FinanceModel(BaseModel):
    """Base for every stored record: camelCase on disk, snake_case in code."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )

    def to_storage(self) -> dict:
        """JSON-ready dict with the on-disk field names."""
        return self.model_dump(mode="json", by_alias=True)


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class TransactionType(str, Enum):
    INCOME = "income"
    EXPENSE = "expense"


class CategoryType(str, Enum):
    """Which kind of transaction a category can be used for."""
    INCOME = "income"
    EXPENSE = "expense"
    BOTH = "both"


class RecurrenceType(str, Enum):
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"


class MovementType(str, Enum):
    """Direction of an investment movement."""
    DEPOSIT = "deposit"
    WITHDRAWAL = "withdrawal"


class AlertType(str, Enum):
    BILL_DUE = "bill_due"
    LIMIT_WARNING = "limit_warning"
    EXPENSE_HIGH = "expense_high"


class RelatedEntityType(str, Enum):
    CARD = "card"
    BILL = "bill"
    CATEGORY = "category"


# =============================================================================
# SETTINGS (singleton)
# =============================================================================

class UserSettings(FinanceModel):
    """
    Per-install profile settings.

    CRITICAL: The PIN is set once at first access. There is at most one
    UserSettings record in the store.
    """

    pin: str = Field(
        ...,
        pattern=rf"^\d{{{PIN_LENGTH}}}$",
        description="Numeric access PIN"
    )
    use_biometrics: bool = False
    dark_mode: bool = False
    currency: str = "BRL"
    language: str = "pt-BR"
    last_backup: Optional[datetime] = Field(
        default=None,
        description="When a backup file was last exported"
    )
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)


# =============================================================================
# CATEGORIES
# =============================================================================

class CategoryCreate(FinanceModel):
    name: str = Field(..., description="Display name")
    icon: str
    type: CategoryType
    color: str = Field(..., description="HSL triple, e.g. '25 95% 53%'")
    is_default: bool = False


class Category(CategoryCreate):
    id: str
    created_at: datetime


DEFAULT_CATEGORIES: list[CategoryCreate] = [
    CategoryCreate(name="Salário", icon="Wallet", type=CategoryType.INCOME, color="142 76% 36%", is_default=True),
    CategoryCreate(name="Freelance", icon="Laptop", type=CategoryType.INCOME, color="199 89% 48%", is_default=True),
    CategoryCreate(name="Investimentos", icon="TrendingUp", type=CategoryType.INCOME, color="174 62% 47%", is_default=True),
    CategoryCreate(name="Outros", icon="Plus", type=CategoryType.BOTH, color="150 10% 45%", is_default=True),
    CategoryCreate(name="Alimentação", icon="Utensils", type=CategoryType.EXPENSE, color="25 95% 53%", is_default=True),
    CategoryCreate(name="Transporte", icon="Car", type=CategoryType.EXPENSE, color="199 89% 48%", is_default=True),
    CategoryCreate(name="Moradia", icon="Home", type=CategoryType.EXPENSE, color="262 83% 58%", is_default=True),
    CategoryCreate(name="Saúde", icon="Heart", type=CategoryType.EXPENSE, color="0 84% 60%", is_default=True),
    CategoryCreate(name="Educação", icon="GraduationCap", type=CategoryType.EXPENSE, color="38 92% 50%", is_default=True),
    CategoryCreate(name="Lazer", icon="Gamepad2", type=CategoryType.EXPENSE, color="330 81% 60%", is_default=True),
    CategoryCreate(name="Compras", icon="ShoppingBag", type=CategoryType.EXPENSE, color="280 65% 60%", is_default=True),
    CategoryCreate(name="Serviços", icon="Wrench", type=CategoryType.EXPENSE, color="200 18% 46%", is_default=True),
]


# =============================================================================
# TRANSACTIONS
# =============================================================================

class TransactionCreate(FinanceModel):
    """
    An income or expense entry.

    Amount is always positive; the direction comes from `type`.
    """

    type: TransactionType
    amount: Money = Field(..., gt=0, description="Amount in the base currency")
    description: str
    category_id: str
    date: IsoDate
    is_recurring: bool = False
    recurrence_type: Optional[RecurrenceType] = None

    # Installment bookkeeping
    installments: Optional[int] = Field(default=None, ge=1)
    current_installment: Optional[int] = Field(default=None, ge=1)
    parent_transaction_id: Optional[str] = None


class Transaction(TransactionCreate):
    id: str
    created_at: datetime
    updated_at: datetime

    @property
    def local_date(self) -> datetime:
        """`date` in local wall-clock time."""
        return to_local(parse_iso(self.date))


# =============================================================================
# CREDIT CARDS
# =============================================================================

class CreditCardCreate(FinanceModel):
    name: str = Field(..., description="Display name")
    limit: Money = Field(..., gt=0)
    closing_day: int = Field(..., ge=1, le=31)
    due_day: int = Field(..., ge=1, le=31)
    color: str
    last_four_digits: Optional[str] = Field(
        default=None,
        max_length=4,
        description="Left blank ('') when the user skips it"
    )


class CreditCard(CreditCardCreate):
    id: str
    created_at: datetime
    updated_at: datetime


class CardPurchaseCreate(FinanceModel):
    card_id: str
    amount: Money
    description: str
    category_id: str
    date: IsoDate
    installments: int = Field(default=1, ge=1)
    current_installment: int = Field(default=1, ge=1)
    total_amount: Money = Field(..., description="Full price across all installments")


class CardPurchase(CardPurchaseCreate):
    id: str
    created_at: datetime


class CardBillCreate(FinanceModel):
    card_id: str
    month: int = Field(..., ge=1, le=12)
    year: int
    total_amount: Money
    due_date: IsoDate
    closing_date: IsoDate
    is_paid: bool = False
    paid_at: Optional[datetime] = None
    purchases: list[str] = Field(
        default_factory=list,
        description="Ids of the CardPurchase entries on this bill"
    )


class CardBill(CardBillCreate):
    id: str
    created_at: datetime


# =============================================================================
# INVESTMENTS
# =============================================================================

class InvestmentCreate(FinanceModel):
    """
    An investment account.

    `type` is free text on purpose (Poupança, CDB, Fundos, ...).
    """

    name: str = Field(..., description="Display name")
    type: str
    current_balance: Money = Field(default=Decimal("0"))
    yield_percentage: Money = Field(
        default=Decimal("0"),
        description="Annual yield in percent units (12.5 means 12.5%)"
    )


class Investment(InvestmentCreate):
    id: str
    created_at: datetime
    updated_at: datetime


class InvestmentMovementCreate(FinanceModel):
    investment_id: str
    type: MovementType
    amount: Money = Field(..., gt=0)
    date: IsoDate
    description: Optional[str] = None


class InvestmentMovement(InvestmentMovementCreate):
    id: str
    created_at: datetime

    @property
    def signed_amount(self) -> Decimal:
        """Balance effect of this movement."""
        return self.amount if self.type == MovementType.DEPOSIT else -self.amount


# =============================================================================
# ALERTS
# =============================================================================

class AlertCreate(FinanceModel):
    type: AlertType
    title: str
    message: str
    is_read: bool = False
    related_entity_id: Optional[str] = None
    related_entity_type: Optional[RelatedEntityType] = None


class Alert(AlertCreate):
    id: str
    created_at: datetime


# =============================================================================
# AGGREGATES (not persisted as such)
# =============================================================================

class BackupData(FinanceModel):
    """
    A full snapshot of the store.

    Restoring it is a total replace of every collection.
    """

    version: str
    exported_at: datetime
    settings: UserSettings
    categories: list[Category] = Field(default_factory=list)
    transactions: list[Transaction] = Field(default_factory=list)
    credit_cards: list[CreditCard] = Field(default_factory=list)
    card_purchases: list[CardPurchase] = Field(default_factory=list)
    card_bills: list[CardBill] = Field(default_factory=list)
    investments: list[Investment] = Field(default_factory=list)
    investment_movements: list[InvestmentMovement] = Field(default_factory=list)
    alerts: list[Alert] = Field(default_factory=list)


class MonthSummary(FinanceModel):
    """Income/expense totals for one calendar month."""

    month: int = Field(..., ge=1, le=12)
    year: int
    total_income: Money = Decimal("0")
    total_expense: Money = Decimal("0")
    transaction_count: int = Field(default=0, ge=0)

    @computed_field
    @property
    def balance(self) -> Money:
        return self.total_income - self.total_expense
