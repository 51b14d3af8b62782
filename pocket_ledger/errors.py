"""
Error taxonomy for the ledger core.

Every error carries a short machine-readable ``code`` next to the
human-readable message, so callers can branch on the kind of failure
without parsing text.

- ValidationError: malformed input, never retried
- NotFoundError: referenced id does not exist, never retried
- SyncFailure: remote write/read failed or timed out, local change rolled back
- DriftError: cached balance disagrees with the summed ledger
"""

from decimal import Decimal
from typing import Optional


class LedgerError(Exception):
    """Base exception for ledger errors."""

    def __init__(self, message: str, code: str = "LEDGER_ERROR"):
        self.message = message
        self.code = code
        super().__init__(message)


class ValidationError(LedgerError):
    """Raised when input validation fails."""

    def __init__(self, message: str, field: Optional[str] = None):
        self.field = field
        super().__init__(message, code="VALIDATION_ERROR")

    @classmethod
    def from_pydantic(cls, exc: Exception) -> "ValidationError":
        """Collapse a pydantic ValidationError into a single ledger error."""
        errors = getattr(exc, "errors", None)
        if not callable(errors):
            return cls(str(exc))
        details = errors()
        if not details:
            return cls(str(exc))
        first = details[0]
        field = ".".join(str(part) for part in first.get("loc", ())) or None
        messages = "; ".join(
            f"{'.'.join(str(p) for p in d.get('loc', ()))}: {d.get('msg')}"
            for d in details
        )
        return cls(messages, field=field)


class NotFoundError(LedgerError):
    """Raised when a referenced entity does not exist."""

    def __init__(self, resource: str, identifier: str):
        self.resource = resource
        self.identifier = identifier
        super().__init__(f"{resource} not found: {identifier}", code="NOT_FOUND")


class SyncFailure(LedgerError):
    """
    Raised when a remote write is rejected, fails or times out.

    The local cache has already been rolled back when this is raised.
    Retrying is the caller's decision.
    """

    def __init__(
        self,
        message: str,
        operation_id: Optional[str] = None,
        cause: Optional[BaseException] = None,
    ):
        self.operation_id = operation_id
        self.cause = cause
        super().__init__(message, code="SYNC_FAILURE")


class DriftError(LedgerError):
    """Cached person balance disagrees with the sum of their entries."""

    def __init__(self, person_id: str, cached: Decimal, recomputed: Decimal):
        self.person_id = person_id
        self.cached = cached
        self.recomputed = recomputed
        super().__init__(
            f"Balance drift for person {person_id}: cached {cached}, "
            f"recomputed {recomputed}",
            code="BALANCE_DRIFT",
        )

    @property
    def delta(self) -> Decimal:
        return self.cached - self.recomputed
