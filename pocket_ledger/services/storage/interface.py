"""
Abstract Storage Interface

DESIGN DECISION: The ledger core only needs a narrow, table-shaped
contract from its remote store. This allows us to:
1. Swap Google Sheets for a real database later
2. Use in-memory storage for testing
3. Keep the sync logic decoupled from any storage technology

Records crossing this boundary are plain JSON-compatible dicts. Turning
them into typed entities is the sync coordinator's job (see sync.codec).

Every method is a coroutine: callers never assume synchronous completion.
"""

from abc import ABC, abstractmethod
from typing import Any, Optional, Protocol


Record = dict[str, Any]


class RemoteStoreInterface(ABC):
    """
    Abstract interface for the remote persistent store.

    Any storage implementation (Google Sheets, PostgreSQL, etc.)
    must implement these methods.
    """

    @abstractmethod
    async def insert(self, table: str, record: Record) -> str:
        """
        Insert a record and return the id the store assigned to it.

        Args:
            table: Table name
            record: Field values, without an id

        Returns:
            The permanent id of the new row

        Raises:
            StorageError: If the insert fails
        """
        pass

    @abstractmethod
    async def update(self, table: str, record_id: str, patch: Record) -> None:
        """
        Apply a partial update to one row.

        Raises:
            StorageError: If the update fails
            NotFoundError: If the row doesn't exist
        """
        pass

    @abstractmethod
    async def delete(self, table: str, record_id: str) -> None:
        """
        Delete one row.

        Raises:
            StorageError: If the delete fails
            NotFoundError: If the row doesn't exist
        """
        pass

    @abstractmethod
    async def query(
        self,
        table: str,
        filters: Optional[Record] = None,
    ) -> list[Record]:
        """
        Rows whose fields equal every filter value, in storage order.

        Each returned record includes its ``id``.

        Raises:
            StorageError: If the read fails
        """
        pass


class IdentityProvider(Protocol):
    """Supplies the opaque user id stamped onto every entry."""

    @property
    def user_id(self) -> str:
        ...


class StaticIdentity:
    """An identity fixed at construction time."""

    def __init__(self, user_id: str):
        if not user_id:
            raise ValueError("user_id is required")
        self._user_id = user_id

    @property
    def user_id(self) -> str:
        return self._user_id


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Row not found in storage."""
    pass


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass
