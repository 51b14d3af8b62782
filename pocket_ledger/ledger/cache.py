"""
Local Cache

In-memory mapping from entity id to entity, one ordered table per
entity kind. Insertion order is preserved and is the tie-breaker the
ledgers use for ordering.

DESIGN DECISION: The cache is an explicit object owned by the
composition root and handed to the ledgers and the sync coordinator.
Nothing reads it as ambient global state.

All mutations are synchronous. Readers get list copies, so a reader
never observes a half-applied change.
"""

from typing import Iterable, Optional

from pydantic import BaseModel

from pocket_ledger.errors import NotFoundError


TRANSACTIONS = "transactions"
SHARED_ENTRIES = "shared_entries"
PEOPLE = "people"

_RESOURCE_NAMES = {
    TRANSACTIONS: "Transaction",
    SHARED_ENTRIES: "SharedEntry",
    PEOPLE: "Person",
}


class LocalCache:
    """Ordered in-memory tables of ledger entities."""

    def __init__(self):
        self._tables: dict[str, dict[str, BaseModel]] = {
            TRANSACTIONS: {},
            SHARED_ENTRIES: {},
            PEOPLE: {},
        }

    def _table(self, table: str) -> dict[str, BaseModel]:
        try:
            return self._tables[table]
        except KeyError:
            raise ValueError(f"Unknown table: {table}")

    def _missing(self, table: str, entity_id: str) -> NotFoundError:
        return NotFoundError(_RESOURCE_NAMES.get(table, table), entity_id)

    def contains(self, table: str, entity_id: str) -> bool:
        return entity_id in self._table(table)

    def get(self, table: str, entity_id: str) -> BaseModel:
        rows = self._table(table)
        if entity_id not in rows:
            raise self._missing(table, entity_id)
        return rows[entity_id]

    def find(self, table: str, entity_id: str) -> Optional[BaseModel]:
        return self._table(table).get(entity_id)

    def values(self, table: str) -> list:
        """Snapshot of a table in insertion order."""
        return list(self._table(table).values())

    def position(self, table: str, entity_id: str) -> int:
        for index, key in enumerate(self._table(table)):
            if key == entity_id:
                return index
        raise self._missing(table, entity_id)

    def count(self, table: str) -> int:
        return len(self._table(table))

    def insert(self, table: str, entity_id: str, entity: BaseModel) -> None:
        rows = self._table(table)
        if entity_id in rows:
            raise ValueError(f"Duplicate id in {table}: {entity_id}")
        rows[entity_id] = entity

    def put(self, table: str, entity_id: str, entity: BaseModel) -> None:
        """Overwrite an existing row in place, keeping its position."""
        rows = self._table(table)
        if entity_id not in rows:
            raise self._missing(table, entity_id)
        rows[entity_id] = entity

    def delete(self, table: str, entity_id: str) -> tuple[int, BaseModel]:
        """Remove a row, returning its former position and value."""
        position = self.position(table, entity_id)
        entity = self._table(table).pop(entity_id)
        return position, entity

    def restore(self, table: str, entity_id: str, entity: BaseModel, position: int) -> None:
        """Re-insert a deleted row at its former position."""
        rows = self._table(table)
        if entity_id in rows:
            raise ValueError(f"Duplicate id in {table}: {entity_id}")
        items = list(rows.items())
        items.insert(min(position, len(items)), (entity_id, entity))
        self._tables[table] = dict(items)

    def rekey(self, table: str, old_id: str, new_id: str, entity: BaseModel) -> None:
        """Replace a row's key (and value) without moving it."""
        rows = self._table(table)
        if old_id not in rows:
            raise self._missing(table, old_id)
        if new_id != old_id and new_id in rows:
            raise ValueError(f"Duplicate id in {table}: {new_id}")
        self._tables[table] = {
            (new_id if key == old_id else key): (entity if key == old_id else value)
            for key, value in rows.items()
        }

    def replace_table(self, table: str, entities: Iterable[tuple[str, BaseModel]]) -> None:
        self._table(table)
        self._tables[table] = dict(entities)

    def clear(self) -> None:
        for table in self._tables:
            self._tables[table] = {}
