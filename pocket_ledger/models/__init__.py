"""
Data Models Package

This package contains all Pydantic models used in Pocket Ledger.
Entries only reach the ledgers after passing these schemas.
"""

from pocket_ledger.models.analytics import (
    CategoryTotal,
    DebtSummary,
    IncomeExpenseTotals,
    Period,
    PeriodSummary,
)
from pocket_ledger.models.audit import (
    AuditSeverity,
    LedgerEvent,
    LedgerEventBuilder,
    LedgerEventType,
)
from pocket_ledger.models.shared import (
    BalanceStanding,
    DebtDirection,
    Person,
    ReconcileResult,
    SharedEntry,
    SharedEntryDraft,
)
from pocket_ledger.models.sync import (
    PendingWrite,
    SyncState,
    WriteAction,
    is_temp_id,
    new_temp_id,
)
from pocket_ledger.models.transaction import (
    Transaction,
    TransactionDraft,
    TransactionKind,
)

__all__ = [
    # Transactions
    "Transaction",
    "TransactionDraft",
    "TransactionKind",
    # Shared debts
    "BalanceStanding",
    "DebtDirection",
    "Person",
    "ReconcileResult",
    "SharedEntry",
    "SharedEntryDraft",
    # Analytics
    "CategoryTotal",
    "DebtSummary",
    "IncomeExpenseTotals",
    "Period",
    "PeriodSummary",
    # Sync
    "PendingWrite",
    "SyncState",
    "WriteAction",
    "is_temp_id",
    "new_temp_id",
    # Audit
    "AuditSeverity",
    "LedgerEvent",
    "LedgerEventBuilder",
    "LedgerEventType",
]
