"""Typed collections over the key/value store."""

from meubolso.repository.collections import (
    AlertCollection,
    CardBillCollection,
    CardPurchaseCollection,
    CategoryCollection,
    Collection,
    CreditCardCollection,
    InvestmentCollection,
    InvestmentMovementCollection,
    TransactionCollection,
)

__all__ = [
    "AlertCollection",
    "CardBillCollection",
    "CardPurchaseCollection",
    "CategoryCollection",
    "Collection",
    "CreditCardCollection",
    "InvestmentCollection",
    "InvestmentMovementCollection",
    "TransactionCollection",
]
