"""
Sync Coordinator

Wraps every ledger mutation in an optimistic write against the remote
store:

    1. apply the change to the local cache (temporary id for inserts)
    2. send it to the remote store, bounded by a timeout
    3. confirmed: swap the temporary id for the remote one everywhere
       failed:    undo the local change exactly and raise SyncFailure

DESIGN DECISION: Writes that touch the same entity are serialized with
a per-key asyncio.Lock held from step 1 until step 3 finishes. At most
one write per key is ever in flight, so a rollback can always restore
the snapshot it took and never clobbers a later write.

Keys:
- transactions are keyed by their own id; an edit also holds the key
  of the temporary id it publishes, and a caller whose id was resolved
  while it waited re-acquires under the resolved id
- shared entries are keyed by the counterparty's display name, which
  stays stable while the person's id changes from temporary to permanent

load() is exclusive with writes: it refuses to start while any write
is in flight, and writes arriving during a load wait for it to finish.

Every write ends CONFIRMED or FAILED. If the local cache cannot be
brought in line (a rollback or id swap raises), the write is failed
and the caller gets SyncFailure.

Failed writes are never retried here. Retrying is the caller's call.
"""

import asyncio
from contextlib import asynccontextmanager
from typing import Any, Awaitable, Callable, Optional

from pocket_ledger.audit import AuditLogger
from pocket_ledger.config import RemoteStoreSettings
from pocket_ledger.errors import NotFoundError, SyncFailure
from pocket_ledger.ledger.cache import PEOPLE, SHARED_ENTRIES, TRANSACTIONS, LocalCache
from pocket_ledger.ledger.shared_ledger import (
    SharedDebtLedger,
    SharedDraftInput,
    normalize_name,
    parse_shared_draft,
)
from pocket_ledger.ledger.transaction_log import (
    DraftInput,
    TransactionLog,
    parse_transaction_draft,
)
from pocket_ledger.models.shared import Person, ReconcileResult, SharedEntry
from pocket_ledger.models.sync import PendingWrite, SyncState, WriteAction, new_temp_id
from pocket_ledger.models.transaction import Transaction
from pocket_ledger.services.storage.interface import IdentityProvider, RemoteStoreInterface
from pocket_ledger.sync.codec import (
    balance_patch,
    parse_person,
    parse_shared_entry,
    parse_transaction,
    to_record,
)


Rollback = Callable[[], Awaitable[None]]


class KeyedLock:
    """One asyncio.Lock per key, dropped once nobody holds or waits on it."""

    def __init__(self):
        self._locks: dict[str, asyncio.Lock] = {}
        self._users: dict[str, int] = {}

    @asynccontextmanager
    async def hold(self, key: str):
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._users[key] = self._users.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._users[key] -= 1
            if not self._users[key]:
                del self._users[key]
                del self._locks[key]

    def is_locked(self, key: str) -> bool:
        lock = self._locks.get(key)
        return lock is not None and lock.locked()


def transaction_key(entry_id: str) -> str:
    return f"transaction:{entry_id}"


def person_key(display_name: str) -> str:
    return f"person:{normalize_name(display_name)}"


class SyncCoordinator:
    """
    Optimistic writes from the ledgers to the remote store.

    Usage:
        coordinator = SyncCoordinator(remote, cache, log, shared, identity)
        transaction = await coordinator.add_transaction({"amount": "12.50", ...})
    """

    def __init__(
        self,
        remote: RemoteStoreInterface,
        cache: LocalCache,
        transaction_log: TransactionLog,
        shared_ledger: SharedDebtLedger,
        identity: IdentityProvider,
        tables: Optional[RemoteStoreSettings] = None,
        audit_logger: Optional[AuditLogger] = None,
        timeout: float = 10.0,
    ):
        """
        Args:
            remote: Remote store adapter
            cache: Cache the two ledgers share
            transaction_log: Personal transaction ledger
            shared_ledger: Shared debt ledger
            identity: Supplies the owner id used to scope loads
            tables: Remote table names
            audit_logger: Structured event log
            timeout: Default seconds a remote attempt may take
        """
        self._remote = remote
        self._cache = cache
        self._transactions = transaction_log
        self._shared = shared_ledger
        self._identity = identity
        self._tables = tables or RemoteStoreSettings()
        self._audit = audit_logger or AuditLogger()
        self._timeout = timeout
        self._locks = KeyedLock()
        self._load_lock = asyncio.Lock()
        self._writers = 0
        self._operations: dict[str, PendingWrite] = {}
        self._resolved: dict[str, str] = {}

    # ------------------------------------------------------------------
    # Inspection
    # ------------------------------------------------------------------

    def operations(self) -> list[PendingWrite]:
        """Every write attempted so far, oldest first."""
        return list(self._operations.values())

    def pending(self) -> list[PendingWrite]:
        return [op for op in self._operations.values() if op.state == SyncState.PENDING]

    def get_operation(self, operation_id: str) -> PendingWrite:
        try:
            return self._operations[operation_id]
        except KeyError:
            raise NotFoundError("PendingWrite", operation_id)

    def resolve_id(self, entity_id: str) -> str:
        """Permanent id for a confirmed temporary id; other ids pass through."""
        return self._resolved.get(entity_id, entity_id)

    def is_busy(self, key: str) -> bool:
        return self._locks.is_locked(key)

    # ------------------------------------------------------------------
    # Write lifecycle
    # ------------------------------------------------------------------

    @asynccontextmanager
    async def _writing(self):
        """Register a write; waits while a load is replacing the cache."""
        async with self._load_lock:
            self._writers += 1
        try:
            yield
        finally:
            self._writers -= 1

    @asynccontextmanager
    async def _hold_transaction(self, entry_id: str):
        """
        Hold the lock for a transaction id, following id resolution.

        A temporary id can be confirmed while we wait on its key; the
        lock is then re-taken under the permanent id so both spellings
        share one key.
        """
        while True:
            resolved = self.resolve_id(entry_id)
            key = transaction_key(resolved)
            async with self._locks.hold(key):
                if self.resolve_id(entry_id) == resolved:
                    yield key, resolved
                    return

    def _begin(self, table: str, action: WriteAction, key: str, local_id: str) -> PendingWrite:
        op = PendingWrite(table=table, action=action, key=key, local_id=local_id)
        self._operations[op.operation_id] = op
        self._audit.log_sync_pending(op.operation_id, table, action.value, local_id)
        return op

    def _confirm(self, op: PendingWrite, remote_id: Optional[str] = None) -> None:
        op.confirm(remote_id)
        if op.remote_id != op.local_id:
            self._resolved[op.local_id] = op.remote_id
        self._audit.log_sync_confirmed(op.operation_id, op.table, op.local_id, op.remote_id)

    def _fail(self, op: PendingWrite, message: str) -> None:
        op.fail(message)
        self._audit.log_sync_failed(op.operation_id, op.table, op.local_id, message)

    async def _rollback(self, rollback: Rollback) -> Optional[Exception]:
        """Run a rollback, returning the error instead of raising it."""
        try:
            await rollback()
        except Exception as e:
            return e
        return None

    async def _attempt(
        self,
        op: PendingWrite,
        call: Callable[[], Awaitable[Any]],
        rollback: Rollback,
        timeout: Optional[float],
        settle: Optional[Callable[[Any], Any]] = None,
    ) -> Any:
        """
        Run the remote half of a write, undoing the local half on failure.

        On success, settle (if given) receives the remote result and
        updates the local cache; its return value is returned. The
        operation is confirmed only after settle succeeds.

        Raises:
            SyncFailure: Remote rejected, raised or timed out, or the
                local cache could not be rolled back or settled
            asyncio.CancelledError: Caller cancelled (after rollback)
        """
        timeout = self._timeout if timeout is None else timeout
        try:
            result = await asyncio.wait_for(call(), timeout)
        except asyncio.CancelledError:
            undo_error = await self._rollback(rollback)
            if undo_error is not None:
                self._fail(op, f"cancelled; local rollback failed: {undo_error}")
            else:
                op.fail("cancelled")
                self._audit.log_sync_cancelled(op.operation_id, op.table, op.local_id)
            raise
        except Exception as e:
            undo_error = await self._rollback(rollback)
            if isinstance(e, asyncio.TimeoutError):
                message = f"Remote {op.action.value} on {op.table} timed out after {timeout}s"
            else:
                message = f"Remote {op.action.value} on {op.table} failed: {e}"
            if undo_error is not None:
                message = f"{message}; local rollback failed: {undo_error}"
            self._fail(op, message)
            raise SyncFailure(message, operation_id=op.operation_id, cause=e) from e

        try:
            settled = settle(result) if settle is not None else result
        except Exception as e:
            message = (
                f"Remote {op.action.value} on {op.table} succeeded "
                f"but the local cache could not be updated: {e}"
            )
            self._fail(op, message)
            raise SyncFailure(message, operation_id=op.operation_id, cause=e) from e

        self._confirm(op, result if isinstance(result, str) else None)
        return settled

    async def _compensate(self, op: PendingWrite, table: str, undo: Awaitable[Any]) -> None:
        """Undo a remote write that succeeded before a later step failed."""
        try:
            await asyncio.wait_for(undo, self._timeout)
        except Exception as e:
            self._audit.log_sync_compensation_failed(op.operation_id, table, str(e))

    # ------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------

    async def add_transaction(
        self,
        entry: DraftInput,
        timeout: Optional[float] = None,
    ) -> Transaction:
        """
        Append a transaction locally and insert it remotely.

        Returns:
            The confirmed transaction, carrying its remote id

        Raises:
            ValidationError: Malformed entry (nothing applied)
            SyncFailure: Remote insert failed (local append rolled back)
        """
        draft = parse_transaction_draft(entry)
        table = self._tables.transactions_table
        temp_id = new_temp_id()
        key = transaction_key(temp_id)

        async with self._writing(), self._locks.hold(key):
            self._transactions.append(draft, entry_id=temp_id)
            op = self._begin(table, WriteAction.INSERT, key, temp_id)

            async def call() -> str:
                record = to_record(self._transactions.get_by_id(temp_id))
                return await self._remote.insert(table, record)

            async def rollback() -> None:
                self._transactions.remove(temp_id)

            return await self._attempt(
                op, call, rollback, timeout,
                settle=lambda remote_id: self._transactions.rekey(temp_id, remote_id),
            )

    async def delete_transaction(self, entry_id: str, timeout: Optional[float] = None) -> Transaction:
        """
        Remove a transaction locally and remotely.

        Raises:
            NotFoundError: No such transaction (including a second delete)
            SyncFailure: Remote delete failed (entry restored in place)
        """
        table = self._tables.transactions_table

        async with self._writing(), self._hold_transaction(entry_id) as (key, entry_id):
            position = self._transactions.position_of(entry_id)
            removed = self._transactions.remove(entry_id)
            op = self._begin(table, WriteAction.DELETE, key, entry_id)

            async def call() -> None:
                await self._remote.delete(table, entry_id)

            async def rollback() -> None:
                self._transactions.restore(removed, position)

            await self._attempt(op, call, rollback, timeout)
            return removed

    async def edit_transaction(
        self,
        entry_id: str,
        entry: DraftInput,
        timeout: Optional[float] = None,
    ) -> Transaction:
        """
        Replace a transaction with a new version under a new id.

        The new record is inserted remotely before the old one is
        deleted, so a failure never leaves the remote without either.
        """
        draft = parse_transaction_draft(entry)
        table = self._tables.transactions_table
        temp_id = new_temp_id()

        async with self._writing(), self._hold_transaction(entry_id) as (key, entry_id), \
                self._locks.hold(transaction_key(temp_id)):
            position = self._transactions.position_of(entry_id)
            original = self._transactions.get_by_id(entry_id)
            self._transactions.replace(entry_id, draft, new_id=temp_id)
            op = self._begin(table, WriteAction.UPDATE, key, temp_id)
            inserted: dict[str, str] = {}

            async def call() -> str:
                record = to_record(self._transactions.get_by_id(temp_id))
                inserted["id"] = await self._remote.insert(table, record)
                await self._remote.delete(table, entry_id)
                return inserted["id"]

            async def rollback() -> None:
                if "id" in inserted:
                    await self._compensate(op, table, self._remote.delete(table, inserted["id"]))
                self._transactions.remove(temp_id)
                self._transactions.restore(original, position)

            return await self._attempt(
                op, call, rollback, timeout,
                settle=lambda remote_id: self._transactions.rekey(temp_id, remote_id),
            )

    # ------------------------------------------------------------------
    # Shared entries
    # ------------------------------------------------------------------

    async def _create_person(self, display_name: str, key: str, timeout: Optional[float]) -> Person:
        """Create a person locally and confirm them remotely. Caller holds the key."""
        table = self._tables.people_table
        temp_id = new_temp_id()
        person = self._shared.create_person(display_name, person_id=temp_id)
        op = self._begin(table, WriteAction.INSERT, key, temp_id)

        async def call() -> str:
            return await self._remote.insert(table, to_record(person))

        async def rollback() -> None:
            self._shared.discard_person(temp_id)

        return await self._attempt(
            op, call, rollback, timeout,
            settle=lambda remote_id: self._shared.rekey_person(temp_id, remote_id),
        )

    async def add_shared_entry(
        self,
        display_name: str,
        entry: SharedDraftInput,
        timeout: Optional[float] = None,
    ) -> SharedEntry:
        """
        Record a lent/borrowed entry with a person, creating them if needed.

        The entry insert and the balance update are one logical write:
        if the balance update fails after the entry was inserted, the
        remote entry is deleted again and the local cache returns to
        its pre-write state, including dropping a person created here.

        Raises:
            ValidationError: Malformed entry or blank name (nothing applied)
            SyncFailure: Remote write failed (local change rolled back)
        """
        draft = parse_shared_draft(entry)
        entries_table = self._tables.shared_entries_table
        people_table = self._tables.people_table
        key = person_key(display_name)

        async with self._writing(), self._locks.hold(key):
            person = self._shared.find_person(display_name)
            created = person is None
            if created:
                person = await self._create_person(display_name, key, timeout)

            temp_id = new_temp_id()
            self._shared.apply_and_rebalance(person.id, draft, entry_id=temp_id)
            op = self._begin(entries_table, WriteAction.INSERT, key, temp_id)
            inserted: dict[str, str] = {}

            async def call() -> str:
                record = to_record(self._shared.get_by_id(temp_id))
                inserted["id"] = await self._remote.insert(entries_table, record)
                updated = self._shared.get_person(person.id)
                await self._remote.update(people_table, person.id, balance_patch(updated))
                return inserted["id"]

            async def rollback() -> None:
                if "id" in inserted:
                    await self._compensate(
                        op, entries_table, self._remote.delete(entries_table, inserted["id"])
                    )
                self._shared.undo_apply(temp_id, person)
                if created:
                    await self._compensate(op, people_table, self._remote.delete(people_table, person.id))
                    self._shared.discard_person(person.id)

            return await self._attempt(
                op, call, rollback, timeout,
                settle=lambda remote_id: self._shared.rekey_entry(temp_id, remote_id),
            )

    async def delete_shared_entry(self, entry_id: str, timeout: Optional[float] = None) -> SharedEntry:
        """
        Remove a shared entry and reverse its effect on the balance.

        The balance update goes out first; if the entry delete then
        fails, the remote balance is put back.

        Raises:
            NotFoundError: No such entry (including a second delete)
            SyncFailure: Remote write failed (entry and balance restored)
        """
        entries_table = self._tables.shared_entries_table
        people_table = self._tables.people_table
        entry_id = self.resolve_id(entry_id)
        shared = self._shared.get_by_id(entry_id)
        key = person_key(self._shared.get_person(shared.counterparty_id).display_name)

        async with self._writing(), self._locks.hold(key):
            entry_id = self.resolve_id(entry_id)
            shared = self._shared.get_by_id(entry_id)
            previous = self._shared.get_person(shared.counterparty_id)
            position = self._shared.position_of(entry_id)
            self._shared.remove(entry_id)
            op = self._begin(entries_table, WriteAction.DELETE, key, entry_id)
            updated: dict[str, bool] = {}

            async def call() -> None:
                current = self._shared.get_person(previous.id)
                await self._remote.update(people_table, previous.id, balance_patch(current))
                updated["balance"] = True
                await self._remote.delete(entries_table, entry_id)

            async def rollback() -> None:
                if updated:
                    await self._compensate(
                        op, people_table,
                        self._remote.update(people_table, previous.id, balance_patch(previous)),
                    )
                self._shared.undo_remove(shared, position, previous)

            await self._attempt(op, call, rollback, timeout)
            return shared

    async def reconcile_person(self, person_id: str, timeout: Optional[float] = None) -> ReconcileResult:
        """
        Repair a person's cached balance and push the correction.

        Nothing is written remotely when there was no drift. If the push
        fails, the local balance goes back to its previous value.
        """
        table = self._tables.people_table
        person_id = self.resolve_id(person_id)
        key = person_key(self._shared.get_person(person_id).display_name)

        async with self._writing(), self._locks.hold(key):
            person_id = self.resolve_id(person_id)
            previous = self._shared.get_person(person_id)
            result = self._shared.reconcile(person_id)
            if not result.corrected:
                return result
            op = self._begin(table, WriteAction.UPDATE, key, person_id)

            async def call() -> None:
                current = self._shared.get_person(person_id)
                await self._remote.update(table, person_id, balance_patch(current))

            async def rollback() -> None:
                self._shared.put_person(previous)

            await self._attempt(op, call, rollback, timeout)
            return result

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    async def load(self, timeout: Optional[float] = None) -> dict[str, int]:
        """
        Replace the local cache with the caller's remote records.

        All three tables are fetched and parsed before anything is
        replaced, so a failed load leaves the cache untouched. Balances
        are taken as stored; run reconcile to detect drift.

        Raises:
            SyncFailure: Writes are pending, or the remote read failed
            ValidationError: A remote record is malformed
        """
        async with self._load_lock:
            if self._writers or self.pending():
                raise SyncFailure("Cannot load while writes are pending")
            counts = await self._load(timeout)
        self._audit.log_cache_loaded(counts)
        return counts

    async def _load(self, timeout: Optional[float]) -> dict[str, int]:
        """Fetch, parse and swap in all tables. Caller holds the load lock."""
        timeout = self._timeout if timeout is None else timeout
        owner = {"owner_id": self._identity.user_id}
        try:
            transactions, entries, people = await asyncio.wait_for(
                asyncio.gather(
                    self._remote.query(self._tables.transactions_table, owner),
                    self._remote.query(self._tables.shared_entries_table, owner),
                    self._remote.query(self._tables.people_table, owner),
                ),
                timeout,
            )
        except asyncio.TimeoutError as e:
            raise SyncFailure(f"Remote load timed out after {timeout}s", cause=e) from e
        except Exception as e:
            raise SyncFailure(f"Remote load failed: {e}", cause=e) from e

        parsed = {
            TRANSACTIONS: [parse_transaction(record) for record in transactions],
            SHARED_ENTRIES: [parse_shared_entry(record) for record in entries],
            PEOPLE: [parse_person(record) for record in people],
        }
        if self._writers or self.pending():
            raise SyncFailure("Writes started during load; cache left untouched")
        for table, entities in parsed.items():
            self._cache.replace_table(table, [(entity.id, entity) for entity in entities])

        return {table: len(entities) for table, entities in parsed.items()}
