"""Services package."""

from pocket_ledger.services.storage import (
    ConnectionError,
    GoogleSheetsClient,
    GoogleSheetsRemoteStore,
    IdentityProvider,
    InMemoryRemoteStore,
    NotFoundError,
    RemoteStoreInterface,
    StaticIdentity,
    StorageError,
)

__all__ = [
    "ConnectionError",
    "GoogleSheetsClient",
    "GoogleSheetsRemoteStore",
    "IdentityProvider",
    "InMemoryRemoteStore",
    "NotFoundError",
    "RemoteStoreInterface",
    "StaticIdentity",
    "StorageError",
]
