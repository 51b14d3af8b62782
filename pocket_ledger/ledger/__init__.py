"""Ledger package: local cache, Transaction Log and Shared Debt Ledger."""

from pocket_ledger.ledger.cache import PEOPLE, SHARED_ENTRIES, TRANSACTIONS, LocalCache
from pocket_ledger.ledger.shared_ledger import SharedDebtLedger
from pocket_ledger.ledger.transaction_log import TransactionLog

__all__ = [
    "LocalCache",
    "PEOPLE",
    "SHARED_ENTRIES",
    "SharedDebtLedger",
    "TRANSACTIONS",
    "TransactionLog",
]
