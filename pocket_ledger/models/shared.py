"""
Shared Debt Models

Peer-to-peer debts between the user and a counterparty.

SIGN CONVENTION (load-bearing for every caller):
    positive cached_balance -> the counterparty owes the user
    negative cached_balance -> the user owes the counterparty
    zero                    -> settled

"lent" moves the balance up, "borrowed" moves it down.
"""

import datetime as dt
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from pocket_ledger.models.transaction import utc_now


class DebtDirection(str, Enum):
    """Which way value moved in a shared entry."""
    LENT = "lent"          # user gave value to the counterparty
    BORROWED = "borrowed"  # user received value from the counterparty


class BalanceStanding(str, Enum):
    """Who owes whom, derived from the sign of a balance."""
    OWES_YOU = "owes_you"
    YOU_OWE = "you_owe"
    SETTLED = "settled"

    @classmethod
    def of(cls, balance: Decimal) -> "BalanceStanding":
        if balance > 0:
            return cls.OWES_YOU
        if balance < 0:
            return cls.YOU_OWE
        return cls.SETTLED


class SharedEntryDraft(BaseModel):
    """What a caller supplies to record a shared debt entry."""
    model_config = ConfigDict(str_strip_whitespace=True)

    amount: Decimal = Field(..., gt=0)
    description: str = Field(
        ...,
        min_length=1,
        description="What the money was for"
    )
    date: dt.date = Field(default_factory=dt.date.today)
    direction: DebtDirection = Field(default=DebtDirection.LENT)


class SharedEntry(BaseModel):
    """A recorded shared debt entry against one counterparty."""
    model_config = ConfigDict(str_strip_whitespace=True, frozen=True)

    id: str = Field(..., min_length=1)
    owner_id: str = Field(..., min_length=1)
    counterparty_id: str = Field(
        ...,
        min_length=1,
        description="Person.id of the other party"
    )
    amount: Decimal = Field(..., gt=0)
    description: str = Field(..., min_length=1)
    date: dt.date
    direction: DebtDirection
    created_at: dt.datetime = Field(default_factory=utc_now)

    @property
    def signed_amount(self) -> Decimal:
        """Contribution of this entry to the counterparty's balance."""
        if self.direction == DebtDirection.LENT:
            return self.amount
        return -self.amount

    @classmethod
    def from_draft(
        cls,
        draft: SharedEntryDraft,
        entry_id: str,
        owner_id: str,
        counterparty_id: str,
    ) -> "SharedEntry":
        return cls(
            id=entry_id,
            owner_id=owner_id,
            counterparty_id=counterparty_id,
            amount=draft.amount,
            description=draft.description,
            date=draft.date,
            direction=draft.direction,
        )


class Person(BaseModel):
    """
    A counterparty in shared debts.

    cached_balance is denormalized: it must always equal the signed sum
    of this person's SharedEntry rows. SharedDebtLedger.reconcile repairs
    it when it does not.
    """
    model_config = ConfigDict(str_strip_whitespace=True, frozen=True)

    id: str = Field(..., min_length=1)
    display_name: str = Field(..., min_length=1)
    cached_balance: Decimal = Field(default=Decimal("0"))
    last_activity_at: dt.datetime = Field(default_factory=utc_now)
    owner_id: Optional[str] = None

    @property
    def standing(self) -> BalanceStanding:
        return BalanceStanding.of(self.cached_balance)


class ReconcileResult(BaseModel):
    """Outcome of recomputing one person's balance from their entries."""

    person_id: str
    previous_balance: Decimal
    balance: Decimal
    entry_count: int = Field(default=0, ge=0)

    @property
    def drift(self) -> Decimal:
        return self.previous_balance - self.balance

    @property
    def corrected(self) -> bool:
        return self.drift != 0
