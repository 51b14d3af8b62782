"""
Audit Models for Pocket Ledger

Every mutation of the local cache and every sync transition produces
a LedgerEvent. Events feed the structured log; they are not stored.

DESIGN DECISION: Events are built through LedgerEventBuilder so the
event type, severity and entity fields stay consistent between call sites.
"""

import datetime as dt
from decimal import Decimal
from enum import Enum
from typing import Any, Optional
from uuid import uuid4

from pydantic import BaseModel, Field

from pocket_ledger.models.transaction import utc_now


class LedgerEventType(str, Enum):
    """Types of events we audit."""
    # Transaction Log
    TRANSACTION_APPENDED = "transaction_appended"
    TRANSACTION_REMOVED = "transaction_removed"
    TRANSACTION_REPLACED = "transaction_replaced"

    # Shared Debt Ledger
    PERSON_CREATED = "person_created"
    SHARED_ENTRY_APPLIED = "shared_entry_applied"
    SHARED_ENTRY_REMOVED = "shared_entry_removed"
    BALANCE_RECONCILED = "balance_reconciled"
    BALANCE_DRIFT_DETECTED = "balance_drift_detected"

    # Sync Coordinator
    SYNC_PENDING = "sync_pending"
    SYNC_CONFIRMED = "sync_confirmed"
    SYNC_FAILED = "sync_failed"
    SYNC_CANCELLED = "sync_cancelled"
    SYNC_COMPENSATION_FAILED = "sync_compensation_failed"
    CACHE_LOADED = "cache_loaded"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class LedgerEvent(BaseModel):
    """A single audit event."""

    event_id: str = Field(default_factory=lambda: uuid4().hex)
    timestamp: dt.datetime = Field(default_factory=utc_now)
    event_type: LedgerEventType
    severity: AuditSeverity = AuditSeverity.INFO

    # What entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'transaction', 'person')"
    )
    entity_id: Optional[str] = None
    operation_id: Optional[str] = Field(
        default=None,
        description="Sync operation this event belongs to, if any"
    )

    description: str = Field(..., max_length=500)
    details: dict[str, Any] = Field(default_factory=dict)
    error_code: Optional[str] = None
    error_message: Optional[str] = None

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": self.event_id,
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "operation_id": self.operation_id,
            "description": self.description,
            "details": self.details,
            "error_code": self.error_code,
            "error_message": self.error_message,
        }


class LedgerEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = LedgerEventBuilder.transaction_removed(entry_id)
        event = LedgerEventBuilder.sync_cancelled(op_id, table, local_id)
    """

    @staticmethod
    def transaction_appended(entry_id: str, kind: str, amount: Decimal, category: str) -> LedgerEvent:
        return LedgerEvent(
            event_type=LedgerEventType.TRANSACTION_APPENDED,
            entity_type="transaction",
            entity_id=entry_id,
            description=f"Recorded {kind} of {amount} in {category}",
            details={"kind": kind, "amount": str(amount), "category": category},
        )

    @staticmethod
    def transaction_removed(entry_id: str) -> LedgerEvent:
        return LedgerEvent(
            event_type=LedgerEventType.TRANSACTION_REMOVED,
            entity_type="transaction",
            entity_id=entry_id,
            description="Transaction removed",
        )

    @staticmethod
    def transaction_replaced(old_id: str, new_id: str) -> LedgerEvent:
        return LedgerEvent(
            event_type=LedgerEventType.TRANSACTION_REPLACED,
            entity_type="transaction",
            entity_id=new_id,
            description="Transaction edited (delete and recreate)",
            details={"replaced_id": old_id},
        )

    @staticmethod
    def person_created(person_id: str, display_name: str) -> LedgerEvent:
        return LedgerEvent(
            event_type=LedgerEventType.PERSON_CREATED,
            entity_type="person",
            entity_id=person_id,
            description=f"New counterparty: {display_name}",
        )

    @staticmethod
    def shared_entry_applied(
        entry_id: str,
        person_id: str,
        direction: str,
        amount: Decimal,
        new_balance: Decimal,
    ) -> LedgerEvent:
        return LedgerEvent(
            event_type=LedgerEventType.SHARED_ENTRY_APPLIED,
            entity_type="shared_entry",
            entity_id=entry_id,
            description=f"Shared entry {direction} {amount}",
            details={
                "person_id": person_id,
                "direction": direction,
                "amount": str(amount),
                "balance": str(new_balance),
            },
        )

    @staticmethod
    def shared_entry_removed(entry_id: str, person_id: str, new_balance: Decimal) -> LedgerEvent:
        return LedgerEvent(
            event_type=LedgerEventType.SHARED_ENTRY_REMOVED,
            entity_type="shared_entry",
            entity_id=entry_id,
            description="Shared entry removed",
            details={"person_id": person_id, "balance": str(new_balance)},
        )

    @staticmethod
    def balance_reconciled(person_id: str, balance: Decimal, entry_count: int) -> LedgerEvent:
        return LedgerEvent(
            event_type=LedgerEventType.BALANCE_RECONCILED,
            severity=AuditSeverity.DEBUG,
            entity_type="person",
            entity_id=person_id,
            description="Balance matches ledger",
            details={"balance": str(balance), "entry_count": entry_count},
        )

    @staticmethod
    def balance_drift_detected(
        person_id: str,
        cached: Decimal,
        recomputed: Decimal,
        error_code: str,
    ) -> LedgerEvent:
        return LedgerEvent(
            event_type=LedgerEventType.BALANCE_DRIFT_DETECTED,
            severity=AuditSeverity.ERROR,
            entity_type="person",
            entity_id=person_id,
            description="Cached balance drifted from ledger; corrected",
            details={
                "cached": str(cached),
                "recomputed": str(recomputed),
                "delta": str(cached - recomputed),
            },
            error_code=error_code,
        )

    @staticmethod
    def sync_pending(operation_id: str, table: str, action: str, local_id: str) -> LedgerEvent:
        return LedgerEvent(
            event_type=LedgerEventType.SYNC_PENDING,
            severity=AuditSeverity.DEBUG,
            entity_type=table,
            entity_id=local_id,
            operation_id=operation_id,
            description=f"{action} on {table} applied locally",
        )

    @staticmethod
    def sync_confirmed(
        operation_id: str,
        table: str,
        local_id: str,
        remote_id: str,
    ) -> LedgerEvent:
        return LedgerEvent(
            event_type=LedgerEventType.SYNC_CONFIRMED,
            entity_type=table,
            entity_id=remote_id,
            operation_id=operation_id,
            description=f"Remote store confirmed write on {table}",
            details={"local_id": local_id},
        )

    @staticmethod
    def sync_failed(
        operation_id: str,
        table: str,
        local_id: str,
        error_message: str,
    ) -> LedgerEvent:
        return LedgerEvent(
            event_type=LedgerEventType.SYNC_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type=table,
            entity_id=local_id,
            operation_id=operation_id,
            description=f"Remote write on {table} failed; local change rolled back",
            error_code="SYNC_FAILURE",
            error_message=error_message,
        )

    @staticmethod
    def sync_cancelled(operation_id: str, table: str, local_id: str) -> LedgerEvent:
        return LedgerEvent(
            event_type=LedgerEventType.SYNC_CANCELLED,
            severity=AuditSeverity.WARNING,
            entity_type=table,
            entity_id=local_id,
            operation_id=operation_id,
            description=f"Pending write on {table} abandoned; local change rolled back",
        )

    @staticmethod
    def sync_compensation_failed(operation_id: str, table: str, error_message: str) -> LedgerEvent:
        return LedgerEvent(
            event_type=LedgerEventType.SYNC_COMPENSATION_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type=table,
            operation_id=operation_id,
            description=f"Could not undo partial remote write on {table}",
            error_message=error_message,
        )

    @staticmethod
    def cache_loaded(counts: dict[str, int]) -> LedgerEvent:
        return LedgerEvent(
            event_type=LedgerEventType.CACHE_LOADED,
            description="Local cache replaced from remote store",
            details=counts,
        )
