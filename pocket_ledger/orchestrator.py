"""
Main Orchestrator for Pocket Ledger

This module ties together all the components: one LocalCache shared
by the Transaction Log and the Shared Debt Ledger, the Sync Coordinator
in front of them, and the read-side Aggregator.

DESIGN DECISION: The orchestrator is the only place that reads settings
and picks a remote store. Everything below it receives its collaborators
explicitly, so tests can assemble the same graph around an in-memory
store.

Writes go through ``context.sync``; reads come from the ledgers'
current local snapshot and never wait on the remote store.
"""

import datetime as dt
from decimal import Decimal
from typing import Optional, Union

import structlog

from pocket_ledger.analytics import aggregator
from pocket_ledger.audit import AuditLogger, configure_logging
from pocket_ledger.config import Settings, get_settings
from pocket_ledger.ledger import LocalCache, SharedDebtLedger, TransactionLog
from pocket_ledger.models.analytics import DebtSummary, Period, PeriodSummary
from pocket_ledger.models.shared import Person
from pocket_ledger.models.transaction import Transaction
from pocket_ledger.services.storage import (
    GoogleSheetsRemoteStore,
    IdentityProvider,
    InMemoryRemoteStore,
    RemoteStoreInterface,
    StaticIdentity,
)
from pocket_ledger.services.storage.google_sheets import TABLE_COLUMNS, GoogleSheetsClient
from pocket_ledger.sync import SyncCoordinator


logger = structlog.get_logger(__name__)


class LedgerContext:
    """
    The assembled ledger: local state, sync and read-side views.

    Usage:
        context = create_ledger_context()
        await context.sync.load()
        await context.sync.add_transaction({"amount": "40", "category": "Food"})
        summary = context.period_summary(Period.LAST_30_DAYS)
    """

    def __init__(
        self,
        settings: Settings,
        cache: LocalCache,
        identity: IdentityProvider,
        audit_logger: AuditLogger,
        transactions: TransactionLog,
        shared: SharedDebtLedger,
        sync: SyncCoordinator,
        remote: RemoteStoreInterface,
    ):
        self.settings = settings
        self.cache = cache
        self.identity = identity
        self.audit_logger = audit_logger
        self.transactions = transactions
        self.shared = shared
        self.sync = sync
        self.remote = remote
        self._ledger_settings = settings.ledger

    def net_balance(self) -> Decimal:
        return aggregator.net_balance(self.transactions.list_transactions())

    def period_summary(
        self,
        period: Union[Period, str],
        now: Optional[dt.datetime] = None,
    ) -> PeriodSummary:
        """Income, expense, net and top categories for one period."""
        return aggregator.period_summary(
            self.transactions.list_transactions(),
            period,
            now or dt.datetime.now(),
            category_limit=self._ledger_settings.category_breakdown_limit,
        )

    def recent_transactions(self) -> list[Transaction]:
        return aggregator.recent(
            self.transactions.list_transactions(),
            limit=self._ledger_settings.recent_limit,
        )

    def people(self) -> list[Person]:
        return self.shared.list_people()

    def debt_summary(self) -> DebtSummary:
        return aggregator.debt_summary(self.shared.list_people())


def _sheets_store(settings: Settings) -> GoogleSheetsRemoteStore:
    tables = settings.remote_store
    columns = {
        tables.transactions_table: TABLE_COLUMNS["transactions"],
        tables.shared_entries_table: TABLE_COLUMNS["shared_entries"],
        tables.people_table: TABLE_COLUMNS["people"],
    }
    return GoogleSheetsRemoteStore(GoogleSheetsClient(settings.google_sheets), columns=columns)


def create_ledger_context(
    remote_store: Optional[RemoteStoreInterface] = None,
    identity: Optional[IdentityProvider] = None,
    settings: Optional[Settings] = None,
    use_google_sheets: bool = False,
    audit_logger: Optional[AuditLogger] = None,
) -> LedgerContext:
    """
    Factory function to create all ledger components.

    Args:
        remote_store: Store to sync with. Takes precedence over
                      use_google_sheets.
        identity: Owner of new entries. Defaults to LEDGER_USER_ID.
        settings: Settings to use instead of the cached ones
        use_google_sheets: Build the Google Sheets store. Falls back to
                           the in-memory store if it is not configured.
        audit_logger: Event logger; defaults to the structlog one

    Returns:
        The wired LedgerContext
    """
    settings = settings or get_settings()
    ledger_settings = settings.ledger

    if audit_logger is None:
        configure_logging(ledger_settings.log_level, ledger_settings.log_json)
        audit_logger = AuditLogger()

    if remote_store is None:
        if use_google_sheets:
            try:
                remote_store = _sheets_store(settings)
            except ValueError as e:
                # Sheets not configured - continue with the in-memory store
                logger.warning("google_sheets_not_configured", error=str(e))
                remote_store = InMemoryRemoteStore()
        else:
            remote_store = InMemoryRemoteStore()

    identity = identity or StaticIdentity(ledger_settings.user_id)
    cache = LocalCache()
    transactions = TransactionLog(cache, identity, audit_logger)
    shared = SharedDebtLedger(cache, identity, audit_logger)
    sync = SyncCoordinator(
        remote=remote_store,
        cache=cache,
        transaction_log=transactions,
        shared_ledger=shared,
        identity=identity,
        tables=settings.remote_store,
        audit_logger=audit_logger,
        timeout=ledger_settings.sync_timeout_seconds,
    )

    return LedgerContext(
        settings=settings,
        cache=cache,
        identity=identity,
        audit_logger=audit_logger,
        transactions=transactions,
        shared=shared,
        sync=sync,
        remote=remote_store,
    )
