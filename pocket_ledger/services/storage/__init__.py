"""
Storage Services Package

Provides the abstract remote store contract and its implementations.
Google Sheets is the real backend; the in-memory store serves tests
and offline use.
"""

from pocket_ledger.services.storage.interface import (
    ConnectionError,
    IdentityProvider,
    NotFoundError,
    Record,
    RemoteStoreInterface,
    StaticIdentity,
    StorageError,
)
from pocket_ledger.services.storage.memory import InMemoryRemoteStore
from pocket_ledger.services.storage.google_sheets import (
    GoogleSheetsClient,
    GoogleSheetsRemoteStore,
)

__all__ = [
    # Interfaces
    "IdentityProvider",
    "Record",
    "RemoteStoreInterface",
    "StaticIdentity",
    # Exceptions
    "ConnectionError",
    "NotFoundError",
    "StorageError",
    # Implementations
    "GoogleSheetsClient",
    "GoogleSheetsRemoteStore",
    "InMemoryRemoteStore",
]
