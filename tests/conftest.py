"""
Shared fixtures.

No real API calls in tests: the remote store is the in-memory one,
optionally scripted to fail, stall or block on demand.
"""

import asyncio
import datetime as dt
from typing import Optional

import pytest
from structlog.testing import CapturingLogger

from pocket_ledger.audit import AuditLogger
from pocket_ledger.config import RemoteStoreSettings
from pocket_ledger.ledger import LocalCache, SharedDebtLedger, TransactionLog
from pocket_ledger.services.storage import InMemoryRemoteStore, StaticIdentity, StorageError
from pocket_ledger.sync import SyncCoordinator


USER_ID = "user-1"


class ScriptedRemoteStore(InMemoryRemoteStore):
    """In-memory store whose calls can be made to fail, stall or wait."""

    def __init__(self):
        super().__init__()
        self.calls: list[tuple[str, str]] = []
        self.failures: dict[tuple[str, Optional[str]], Exception] = {}
        self.gates: dict[tuple[str, Optional[str]], asyncio.Event] = {}
        self.delay = 0.0

    def fail_on(self, method: str, table: Optional[str] = None, error: Optional[Exception] = None) -> None:
        self.failures[(method, table)] = error or StorageError(f"{method} rejected")

    def gate(self, method: str, table: Optional[str] = None) -> asyncio.Event:
        """Make a call wait until the returned event is set."""
        event = asyncio.Event()
        self.gates[(method, table)] = event
        return event

    def calls_to(self, method: str, table: str) -> int:
        return self.calls.count((method, table))

    async def _enter(self, method: str, table: str) -> None:
        self.calls.append((method, table))
        gate = self.gates.get((method, table)) or self.gates.get((method, None))
        if gate is not None:
            await gate.wait()
        if self.delay:
            await asyncio.sleep(self.delay)
        error = self.failures.get((method, table)) or self.failures.get((method, None))
        if error is not None:
            raise error

    async def insert(self, table, record):
        await self._enter("insert", table)
        return await super().insert(table, record)

    async def update(self, table, record_id, patch):
        await self._enter("update", table)
        await super().update(table, record_id, patch)

    async def delete(self, table, record_id):
        await self._enter("delete", table)
        await super().delete(table, record_id)

    async def query(self, table, filters=None):
        await self._enter("query", table)
        return await super().query(table, filters)


async def wait_for_call(remote: ScriptedRemoteStore, method: str, table: str) -> None:
    """Yield to the loop until the remote has seen the given call."""
    for _ in range(200):
        if (method, table) in remote.calls:
            return
        await asyncio.sleep(0)
    raise AssertionError(f"{method} on {table} never happened")


@pytest.fixture
def capture():
    return CapturingLogger()


@pytest.fixture
def audit_logger(capture):
    return AuditLogger(capture)


@pytest.fixture
def identity():
    return StaticIdentity(USER_ID)


@pytest.fixture
def cache():
    return LocalCache()


@pytest.fixture
def transaction_log(cache, identity, audit_logger):
    return TransactionLog(cache, identity, audit_logger)


@pytest.fixture
def shared_ledger(cache, identity, audit_logger):
    return SharedDebtLedger(cache, identity, audit_logger)


@pytest.fixture
def remote():
    return ScriptedRemoteStore()


@pytest.fixture
def tables():
    return RemoteStoreSettings()


@pytest.fixture
def coordinator(remote, cache, transaction_log, shared_ledger, identity, tables, audit_logger):
    return SyncCoordinator(
        remote=remote,
        cache=cache,
        transaction_log=transaction_log,
        shared_ledger=shared_ledger,
        identity=identity,
        tables=tables,
        audit_logger=audit_logger,
        timeout=1.0,
    )


@pytest.fixture
def now():
    return dt.datetime(2024, 3, 15, 9, 30)


def events_of(capture: CapturingLogger, event_type: str) -> list[dict]:
    """Captured ledger events of one type, as their logged kwargs."""
    return [
        call.kwargs for call in capture.calls
        if call.kwargs.get("event_type") == event_type
    ]
