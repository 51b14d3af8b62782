"""Sync package: optimistic writes to the remote store and record parsing."""

from pocket_ledger.sync.codec import (
    parse_person,
    parse_shared_entry,
    parse_transaction,
    to_record,
)
from pocket_ledger.sync.coordinator import KeyedLock, SyncCoordinator

__all__ = [
    "KeyedLock",
    "SyncCoordinator",
    "parse_person",
    "parse_shared_entry",
    "parse_transaction",
    "to_record",
]
