"""
In-Memory Remote Store

Dict-backed implementation of RemoteStoreInterface. Used by the tests
and for running without any backend configured. Ids are assigned by
the store, the way a database would number rows.
"""

import copy
from typing import Optional
from uuid import uuid4

from pocket_ledger.services.storage.interface import (
    NotFoundError,
    Record,
    RemoteStoreInterface,
)


class InMemoryRemoteStore(RemoteStoreInterface):
    """Tables of records keyed by store-assigned id."""

    def __init__(self):
        self._tables: dict[str, dict[str, Record]] = {}

    def _table(self, table: str) -> dict[str, Record]:
        return self._tables.setdefault(table, {})

    def new_id(self) -> str:
        return uuid4().hex

    async def insert(self, table: str, record: Record) -> str:
        record_id = self.new_id()
        row = copy.deepcopy(record)
        row["id"] = record_id
        self._table(table)[record_id] = row
        return record_id

    async def update(self, table: str, record_id: str, patch: Record) -> None:
        rows = self._table(table)
        if record_id not in rows:
            raise NotFoundError(f"{table} row not found: {record_id}")
        rows[record_id].update(copy.deepcopy(patch))
        rows[record_id]["id"] = record_id

    async def delete(self, table: str, record_id: str) -> None:
        rows = self._table(table)
        if record_id not in rows:
            raise NotFoundError(f"{table} row not found: {record_id}")
        del rows[record_id]

    async def query(self, table: str, filters: Optional[Record] = None) -> list[Record]:
        filters = filters or {}
        return [
            copy.deepcopy(row)
            for row in self._table(table).values()
            if all(row.get(key) == value for key, value in filters.items())
        ]

    def rows(self, table: str) -> list[Record]:
        """Synchronous snapshot, for inspection in tests."""
        return [copy.deepcopy(row) for row in self._table(table).values()]

    def seed(self, table: str, record: Record) -> str:
        """Insert a row with a caller-chosen id, bypassing the async API."""
        row = copy.deepcopy(record)
        row.setdefault("id", self.new_id())
        self._table(table)[row["id"]] = row
        return row["id"]
