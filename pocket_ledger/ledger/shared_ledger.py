"""
Shared Debt Ledger

Per-counterparty record of "lent" / "borrowed" entries, plus the
denormalized Person.cached_balance derived from them.

INVARIANT: for every person,
    cached_balance == sum(+amount if lent else -amount over their entries)

Every mutation here changes an entry and the matching balance as one
unit: both new values are built first, then committed, and a failure
while committing the second half undoes the first. reconcile() exists
to repair drift introduced from outside (e.g. a remote load).
"""

import datetime as dt
from typing import Any, Mapping, Optional, Union
from uuid import uuid4

from pydantic import ValidationError as PydanticValidationError

from pocket_ledger.analytics.aggregator import person_balance
from pocket_ledger.audit import AuditLogger
from pocket_ledger.errors import DriftError, ValidationError
from pocket_ledger.ledger.cache import PEOPLE, SHARED_ENTRIES, LocalCache
from pocket_ledger.ledger.transaction_log import newest_first, within
from pocket_ledger.models.shared import (
    Person,
    ReconcileResult,
    SharedEntry,
    SharedEntryDraft,
)
from pocket_ledger.models.transaction import utc_now
from pocket_ledger.services.storage.interface import IdentityProvider


SharedDraftInput = Union[SharedEntryDraft, Mapping[str, Any]]


def parse_shared_draft(entry: SharedDraftInput) -> SharedEntryDraft:
    """Validate caller input into a SharedEntryDraft."""
    if isinstance(entry, SharedEntryDraft):
        return entry
    try:
        return SharedEntryDraft.model_validate(entry)
    except PydanticValidationError as e:
        raise ValidationError.from_pydantic(e)


def normalize_name(display_name: str) -> str:
    name = (display_name or "").strip()
    if not name:
        raise ValidationError("Counterparty name is required", field="display_name")
    return name


class SharedDebtLedger:
    """Shared debts and counterparty balances, stored in the LocalCache."""

    def __init__(
        self,
        cache: LocalCache,
        identity: IdentityProvider,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._cache = cache
        self._identity = identity
        self._audit = audit_logger or AuditLogger()

    # ------------------------------------------------------------------
    # People
    # ------------------------------------------------------------------

    def find_person(self, display_name: str) -> Optional[Person]:
        """Person with exactly this display name (after stripping), if any."""
        name = normalize_name(display_name)
        for person in self._cache.values(PEOPLE):
            if person.display_name == name:
                return person
        return None

    def create_person(self, display_name: str, person_id: Optional[str] = None) -> Person:
        name = normalize_name(display_name)
        person = Person(
            id=person_id or uuid4().hex,
            display_name=name,
            owner_id=self._identity.user_id,
        )
        self._cache.insert(PEOPLE, person.id, person)
        self._audit.log_person_created(person.id, name)
        return person

    def ensure_person(self, display_name: str, person_id: Optional[str] = None) -> Person:
        """Return the named person, creating them on first reference."""
        return self.find_person(display_name) or self.create_person(display_name, person_id)

    def get_person(self, person_id: str) -> Person:
        return self._cache.get(PEOPLE, person_id)

    def list_people(self) -> list[Person]:
        """Most recently active first."""
        people = self._cache.values(PEOPLE)
        ordered = sorted(
            enumerate(people),
            key=lambda pair: (pair[1].last_activity_at, pair[0]),
            reverse=True,
        )
        return [person for _, person in ordered]

    def put_person(self, person: Person) -> None:
        """Overwrite a person snapshot (rollback of a failed write)."""
        self._cache.put(PEOPLE, person.id, person)

    def discard_person(self, person_id: str) -> None:
        """
        Drop a person that never got confirmed remotely.

        Only valid while they have no entries; people are otherwise
        never deleted.
        """
        if self.list_entries(person_id):
            raise ValidationError(f"Person {person_id} still has entries", field="person_id")
        self._cache.delete(PEOPLE, person_id)

    # ------------------------------------------------------------------
    # Entries
    # ------------------------------------------------------------------

    def apply_and_rebalance(
        self,
        person_id: str,
        entry: SharedDraftInput,
        entry_id: Optional[str] = None,
    ) -> SharedEntry:
        """
        Append an entry and move the person's balance by its signed amount.

        Raises:
            ValidationError: If the entry is malformed
            NotFoundError: If the person does not exist
        """
        draft = parse_shared_draft(entry)
        person = self.get_person(person_id)
        entry_id = entry_id or uuid4().hex
        if self._cache.contains(SHARED_ENTRIES, entry_id):
            raise ValidationError(f"Shared entry id already used: {entry_id}", field="id")

        shared = SharedEntry.from_draft(
            draft,
            entry_id=entry_id,
            owner_id=self._identity.user_id,
            counterparty_id=person.id,
        )
        updated = person.model_copy(update={
            "cached_balance": person.cached_balance + shared.signed_amount,
            "last_activity_at": utc_now(),
        })

        self._cache.insert(SHARED_ENTRIES, entry_id, shared)
        try:
            self._cache.put(PEOPLE, person.id, updated)
        except Exception:
            self._cache.delete(SHARED_ENTRIES, entry_id)
            raise

        self._audit.log_shared_entry_applied(
            entry_id=entry_id,
            person_id=person.id,
            direction=shared.direction.value,
            amount=shared.amount,
            new_balance=updated.cached_balance,
        )
        return shared

    def append(self, person_id: str, entry: SharedDraftInput, entry_id: Optional[str] = None) -> str:
        """Record an entry for a person; the balance moves with it."""
        return self.apply_and_rebalance(person_id, entry, entry_id).id

    def remove(self, entry_id: str) -> SharedEntry:
        """
        Remove an entry and take its signed amount back out of the balance.

        Raises:
            NotFoundError: If the id is absent (including a second removal)
        """
        shared = self.get_by_id(entry_id)
        person = self.get_person(shared.counterparty_id)
        updated = person.model_copy(update={
            "cached_balance": person.cached_balance - shared.signed_amount,
            "last_activity_at": utc_now(),
        })

        position, _ = self._cache.delete(SHARED_ENTRIES, entry_id)
        try:
            self._cache.put(PEOPLE, person.id, updated)
        except Exception:
            self._cache.restore(SHARED_ENTRIES, entry_id, shared, position)
            raise

        self._audit.log_shared_entry_removed(entry_id, person.id, updated.cached_balance)
        return shared

    def undo_apply(self, entry_id: str, previous_person: Person) -> None:
        """Drop an applied entry and put the person back exactly as before."""
        self._cache.delete(SHARED_ENTRIES, entry_id)
        self._cache.put(PEOPLE, previous_person.id, previous_person)

    def undo_remove(self, shared: SharedEntry, position: int, previous_person: Person) -> None:
        """Re-insert a removed entry and put the person back exactly as before."""
        self._cache.restore(SHARED_ENTRIES, shared.id, shared, position)
        self._cache.put(PEOPLE, previous_person.id, previous_person)

    def get_by_id(self, entry_id: str) -> SharedEntry:
        return self._cache.get(SHARED_ENTRIES, entry_id)

    def position_of(self, entry_id: str) -> int:
        return self._cache.position(SHARED_ENTRIES, entry_id)

    def list_entries(
        self,
        person_id: Optional[str] = None,
        date_from: Optional[dt.date] = None,
        date_to: Optional[dt.date] = None,
    ) -> list[SharedEntry]:
        """Entries newest-first, optionally for one person and date range."""
        entries = [
            entry for entry in self._cache.values(SHARED_ENTRIES)
            if (person_id is None or entry.counterparty_id == person_id)
            and within(entry.date, date_from, date_to)
        ]
        return newest_first(entries)

    # ------------------------------------------------------------------
    # Drift
    # ------------------------------------------------------------------

    def check_drift(self, person_id: str) -> None:
        """
        Raise DriftError if the cached balance disagrees with the entries.

        Nothing is corrected; use reconcile() for that.
        """
        person = self.get_person(person_id)
        recomputed = person_balance(self.list_entries(person_id))
        if person.cached_balance != recomputed:
            raise DriftError(person_id, person.cached_balance, recomputed)

    def reconcile(self, person_id: str) -> ReconcileResult:
        """
        Recompute a person's balance from their entries and overwrite it.

        Idempotent: a second call finds nothing to correct.
        """
        person = self.get_person(person_id)
        entries = self.list_entries(person_id)
        recomputed = person_balance(entries)

        try:
            self.check_drift(person_id)
        except DriftError as drift:
            self._audit.log_drift(drift)
            self._cache.put(
                PEOPLE,
                person_id,
                person.model_copy(update={"cached_balance": recomputed}),
            )
        else:
            self._audit.log_balance_reconciled(person_id, recomputed, len(entries))

        return ReconcileResult(
            person_id=person_id,
            previous_balance=person.cached_balance,
            balance=recomputed,
            entry_count=len(entries),
        )

    def reconcile_all(self) -> list[ReconcileResult]:
        return [self.reconcile(person.id) for person in self._cache.values(PEOPLE)]

    # ------------------------------------------------------------------
    # Re-keying after remote confirmation
    # ------------------------------------------------------------------

    def rekey_person(self, old_id: str, new_id: str) -> Person:
        """Swap a person's temporary id, including every entry's reference."""
        person = self.get_person(old_id).model_copy(update={"id": new_id})
        self._cache.rekey(PEOPLE, old_id, new_id, person)
        for entry in self._cache.values(SHARED_ENTRIES):
            if entry.counterparty_id == old_id:
                self._cache.put(
                    SHARED_ENTRIES,
                    entry.id,
                    entry.model_copy(update={"counterparty_id": new_id}),
                )
        return person

    def rekey_entry(self, old_id: str, new_id: str) -> SharedEntry:
        shared = self.get_by_id(old_id).model_copy(update={"id": new_id})
        self._cache.rekey(SHARED_ENTRIES, old_id, new_id, shared)
        return shared
