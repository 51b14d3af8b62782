"""
Transaction Log

Append-only record of personal income/expense entries. The personal
balance is always derived from this log (see analytics.aggregator);
the log never stores it.

GUARANTEES:
- Nothing malformed gets in: amount > 0, non-empty category and a real
  calendar date are checked here, so the aggregator never has to.
- Removal is not idempotent: removing an id twice fails the second time.
- Listing is newest-first by creation time; entries created in the same
  instant come back most-recently-inserted first.
"""

import datetime as dt
from typing import Any, Mapping, Optional, Union
from uuid import uuid4

from pydantic import ValidationError as PydanticValidationError

from pocket_ledger.audit import AuditLogger
from pocket_ledger.errors import ValidationError
from pocket_ledger.ledger.cache import TRANSACTIONS, LocalCache
from pocket_ledger.models.transaction import Transaction, TransactionDraft
from pocket_ledger.services.storage.interface import IdentityProvider


DraftInput = Union[TransactionDraft, Mapping[str, Any]]


def parse_transaction_draft(entry: DraftInput) -> TransactionDraft:
    """Validate caller input into a TransactionDraft."""
    if isinstance(entry, TransactionDraft):
        return entry
    try:
        return TransactionDraft.model_validate(entry)
    except PydanticValidationError as e:
        raise ValidationError.from_pydantic(e)


def newest_first(entries: list) -> list:
    """Order by created_at descending, later insertion first on ties."""
    indexed = sorted(
        enumerate(entries),
        key=lambda pair: (pair[1].created_at, pair[0]),
        reverse=True,
    )
    return [entry for _, entry in indexed]


def within(entry_date: dt.date, date_from: Optional[dt.date], date_to: Optional[dt.date]) -> bool:
    if date_from and entry_date < date_from:
        return False
    if date_to and entry_date > date_to:
        return False
    return True


class TransactionLog:
    """Personal transactions, stored in the injected LocalCache."""

    def __init__(
        self,
        cache: LocalCache,
        identity: IdentityProvider,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._cache = cache
        self._identity = identity
        self._audit = audit_logger or AuditLogger()

    def append(self, entry: DraftInput, entry_id: Optional[str] = None) -> str:
        """
        Validate and record a transaction.

        Args:
            entry: TransactionDraft or a mapping with the same fields
            entry_id: Id to use instead of a fresh one (the sync
                      coordinator passes temporary ids here)

        Returns:
            The id of the new entry

        Raises:
            ValidationError: If the entry is malformed
        """
        draft = parse_transaction_draft(entry)
        entry_id = entry_id or uuid4().hex
        if self._cache.contains(TRANSACTIONS, entry_id):
            raise ValidationError(f"Transaction id already used: {entry_id}", field="id")

        transaction = Transaction.from_draft(
            draft,
            entry_id=entry_id,
            owner_id=self._identity.user_id,
        )
        self._cache.insert(TRANSACTIONS, entry_id, transaction)

        self._audit.log_transaction_appended(
            entry_id=entry_id,
            kind=transaction.kind.value,
            amount=transaction.amount,
            category=transaction.category,
        )
        return entry_id

    def remove(self, entry_id: str) -> Transaction:
        """
        Remove a transaction.

        Raises:
            NotFoundError: If the id is absent (including a second removal)
        """
        _, transaction = self._cache.delete(TRANSACTIONS, entry_id)
        self._audit.log_transaction_removed(entry_id)
        return transaction

    def replace(self, entry_id: str, entry: DraftInput, new_id: Optional[str] = None) -> str:
        """
        Edit a transaction by deleting it and appending the new version.

        The replacement gets a new id. The new input is validated before
        anything is removed, so a bad edit leaves the log untouched.
        """
        draft = parse_transaction_draft(entry)
        self.get_by_id(entry_id)
        self.remove(entry_id)
        replacement_id = self.append(draft, entry_id=new_id)
        self._audit.log_transaction_replaced(entry_id, replacement_id)
        return replacement_id

    def get_by_id(self, entry_id: str) -> Transaction:
        return self._cache.get(TRANSACTIONS, entry_id)

    def list_transactions(
        self,
        date_from: Optional[dt.date] = None,
        date_to: Optional[dt.date] = None,
    ) -> list[Transaction]:
        """Entries newest-first, optionally limited to an inclusive date range."""
        entries = [
            entry for entry in self._cache.values(TRANSACTIONS)
            if within(entry.date, date_from, date_to)
        ]
        return newest_first(entries)

    def recent(self, limit: int = 10) -> list[Transaction]:
        return self.list_transactions()[:limit]

    def count(self) -> int:
        return self._cache.count(TRANSACTIONS)

    def position_of(self, entry_id: str) -> int:
        return self._cache.position(TRANSACTIONS, entry_id)

    def restore(self, transaction: Transaction, position: int) -> None:
        """Put a removed entry back where it was (rollback of a delete)."""
        self._cache.restore(TRANSACTIONS, transaction.id, transaction, position)

    def rekey(self, old_id: str, new_id: str) -> Transaction:
        """Swap a temporary id for the permanent one, keeping position."""
        transaction = self.get_by_id(old_id).model_copy(update={"id": new_id})
        self._cache.rekey(TRANSACTIONS, old_id, new_id, transaction)
        return transaction
