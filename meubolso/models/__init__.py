"""
Data Models Package

This package contains all Pydantic models used in Meu Bolso.
Everything read from or written to the store must conform to these schemas.
"""

from meubolso.models.finance import (
    DEFAULT_CATEGORIES,
    PIN_LENGTH,
    Alert,
    AlertCreate,
    AlertType,
    BackupData,
    CardBill,
    CardBillCreate,
    CardPurchase,
    CardPurchaseCreate,
    Category,
    CategoryCreate,
    CategoryType,
    CreditCard,
    CreditCardCreate,
    FinanceModel,
    Investment,
    InvestmentCreate,
    InvestmentMovement,
    InvestmentMovementCreate,
    MonthSummary,
    MovementType,
    RecurrenceType,
    RelatedEntityType,
    Transaction,
    TransactionCreate,
    TransactionType,
    UserSettings,
    parse_iso,
    to_local,
    utc_now,
)
from meubolso.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Finance models
    "DEFAULT_CATEGORIES",
    "PIN_LENGTH",
    "Alert",
    "AlertCreate",
    "AlertType",
    "BackupData",
    "CardBill",
    "CardBillCreate",
    "CardPurchase",
    "CardPurchaseCreate",
    "Category",
    "CategoryCreate",
    "CategoryType",
    "CreditCard",
    "CreditCardCreate",
    "FinanceModel",
    "Investment",
    "InvestmentCreate",
    "InvestmentMovement",
    "InvestmentMovementCreate",
    "MonthSummary",
    "MovementType",
    "RecurrenceType",
    "RelatedEntityType",
    "Transaction",
    "TransactionCreate",
    "TransactionType",
    "UserSettings",
    "parse_iso",
    "to_local",
    "utc_now",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
