"""
Audit Logger

DESIGN DECISION: Every mutation of the ledgers and every sync transition
is logged as a structured event. This provides:
1. Traceability of optimistic writes and their outcomes
2. A visible record of balance drift and its correction
3. Debugging capability when the remote store misbehaves

The audit logger is synchronous: it only writes to the local
structured log, so it never blocks on I/O the ledgers care about.
"""

import logging
import sys
from decimal import Decimal
from typing import Any, Optional

import structlog

from pocket_ledger.errors import DriftError
from pocket_ledger.models.audit import AuditSeverity, LedgerEvent, LedgerEventBuilder


def _processors(json_logs: bool) -> list:
    renderer = (
        structlog.processors.JSONRenderer()
        if json_logs
        else structlog.dev.ConsoleRenderer(colors=False)
    )
    return [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        renderer,
    ]


# Configure structlog for local logging
structlog.configure(
    processors=_processors(json_logs=True),
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


def configure_logging(level: str = "INFO", json_logs: bool = True) -> None:
    """
    Route structlog through the stdlib root logger at the given level.

    Called once by the composition root.
    """
    logging.basicConfig(
        level=getattr(logging, level.upper()),
        format="%(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )
    structlog.configure(
        processors=_processors(json_logs),
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


class AuditLogger:
    """
    Central audit logging service.

    Every event goes to the structured local log at a level derived from
    its severity. Events are not persisted anywhere else.
    """

    def __init__(self, logger: Optional[Any] = None):
        """
        Initialize audit logger.

        Args:
            logger: structlog-compatible logger. Defaults to the
                    module logger; tests pass a CapturingLogger.
        """
        self._logger = logger or structlog.get_logger("pocket_ledger.audit")

    def log(self, event: LedgerEvent) -> None:
        """Log an audit event at the level matching its severity."""
        log_dict = event.to_log_dict()

        if event.severity == AuditSeverity.ERROR:
            self._logger.error("ledger_event", **log_dict)
        elif event.severity == AuditSeverity.WARNING:
            self._logger.warning("ledger_event", **log_dict)
        elif event.severity == AuditSeverity.DEBUG:
            self._logger.debug("ledger_event", **log_dict)
        else:
            self._logger.info("ledger_event", **log_dict)

    def log_transaction_appended(
        self,
        entry_id: str,
        kind: str,
        amount: Decimal,
        category: str,
    ) -> None:
        self.log(LedgerEventBuilder.transaction_appended(entry_id, kind, amount, category))

    def log_transaction_removed(self, entry_id: str) -> None:
        self.log(LedgerEventBuilder.transaction_removed(entry_id))

    def log_transaction_replaced(self, old_id: str, new_id: str) -> None:
        self.log(LedgerEventBuilder.transaction_replaced(old_id, new_id))

    def log_person_created(self, person_id: str, display_name: str) -> None:
        self.log(LedgerEventBuilder.person_created(person_id, display_name))

    def log_shared_entry_applied(
        self,
        entry_id: str,
        person_id: str,
        direction: str,
        amount: Decimal,
        new_balance: Decimal,
    ) -> None:
        self.log(LedgerEventBuilder.shared_entry_applied(
            entry_id=entry_id,
            person_id=person_id,
            direction=direction,
            amount=amount,
            new_balance=new_balance,
        ))

    def log_shared_entry_removed(
        self,
        entry_id: str,
        person_id: str,
        new_balance: Decimal,
    ) -> None:
        self.log(LedgerEventBuilder.shared_entry_removed(entry_id, person_id, new_balance))

    def log_balance_reconciled(
        self,
        person_id: str,
        balance: Decimal,
        entry_count: int,
    ) -> None:
        self.log(LedgerEventBuilder.balance_reconciled(person_id, balance, entry_count))

    def log_drift(self, error: DriftError) -> None:
        """Report a drift that is about to be corrected."""
        self.log(LedgerEventBuilder.balance_drift_detected(
            person_id=error.person_id,
            cached=error.cached,
            recomputed=error.recomputed,
            error_code=error.code,
        ))

    def log_sync_pending(
        self,
        operation_id: str,
        table: str,
        action: str,
        local_id: str,
    ) -> None:
        self.log(LedgerEventBuilder.sync_pending(operation_id, table, action, local_id))

    def log_sync_confirmed(
        self,
        operation_id: str,
        table: str,
        local_id: str,
        remote_id: str,
    ) -> None:
        self.log(LedgerEventBuilder.sync_confirmed(operation_id, table, local_id, remote_id))

    def log_sync_failed(
        self,
        operation_id: str,
        table: str,
        local_id: str,
        error_message: str,
    ) -> None:
        self.log(LedgerEventBuilder.sync_failed(operation_id, table, local_id, error_message))

    def log_sync_cancelled(self, operation_id: str, table: str, local_id: str) -> None:
        self.log(LedgerEventBuilder.sync_cancelled(operation_id, table, local_id))

    def log_sync_compensation_failed(
        self,
        operation_id: str,
        table: str,
        error_message: str,
    ) -> None:
        self.log(LedgerEventBuilder.sync_compensation_failed(operation_id, table, error_message))

    def log_cache_loaded(self, counts: dict[str, int]) -> None:
        self.log(LedgerEventBuilder.cache_loaded(counts))
