"""
Personal Transaction Models

A Transaction is one income or expense movement in the user's own
ledger. The personal balance is always derived from these records;
nothing stores it.

DESIGN DECISION: Stored entities are frozen. A change is either a delete,
or a delete followed by a fresh append. Updates to cache state go through
model_copy so a previous snapshot is always available for rollback.
"""

import datetime as dt
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


def utc_now() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


class TransactionKind(str, Enum):
    """Direction of a personal money movement."""
    INCOME = "income"
    EXPENSE = "expense"


class TransactionDraft(BaseModel):
    """
    What a caller supplies to record a transaction.

    The Transaction Log validates drafts and turns them into
    Transactions by adding identity, owner and creation time.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    amount: Decimal = Field(
        ...,
        gt=0,
        description="Amount, always positive; kind carries the sign"
    )
    category: str = Field(
        ...,
        min_length=1,
        description="Free-text category, compared case-sensitively"
    )
    date: dt.date = Field(
        default_factory=dt.date.today,
        description="Calendar date of the transaction"
    )
    notes: Optional[str] = Field(default=None)
    kind: TransactionKind = Field(
        default=TransactionKind.EXPENSE
    )


class Transaction(BaseModel):
    """A recorded personal transaction."""
    model_config = ConfigDict(str_strip_whitespace=True, frozen=True)

    id: str = Field(..., min_length=1)
    owner_id: str = Field(
        ...,
        min_length=1,
        description="User identity the entry belongs to"
    )
    amount: Decimal = Field(..., gt=0)
    category: str = Field(..., min_length=1)
    date: dt.date
    notes: Optional[str] = None
    kind: TransactionKind
    created_at: dt.datetime = Field(default_factory=utc_now)

    @property
    def signed_amount(self) -> Decimal:
        """Contribution of this entry to the net balance."""
        if self.kind == TransactionKind.INCOME:
            return self.amount
        return -self.amount

    @classmethod
    def from_draft(
        cls,
        draft: TransactionDraft,
        entry_id: str,
        owner_id: str,
    ) -> "Transaction":
        return cls(
            id=entry_id,
            owner_id=owner_id,
            amount=draft.amount,
            category=draft.category,
            date=draft.date,
            notes=draft.notes or None,
            kind=draft.kind,
        )
