"""
Sync State Models

Each remote write walks a small state machine:

    PENDING  -> CONFIRMED   remote acknowledged, temporary id replaced
    PENDING  -> FAILED      remote rejected / timed out / caller cancelled,
                            local change rolled back

CONFIRMED and FAILED are terminal for that attempt.
"""

import datetime as dt
from enum import Enum
from typing import Optional
from uuid import uuid4

from pydantic import BaseModel, Field

from pocket_ledger.models.transaction import utc_now


TEMP_ID_PREFIX = "tmp-"


def new_temp_id() -> str:
    """Temporary id for an entity the remote store has not numbered yet."""
    return f"{TEMP_ID_PREFIX}{uuid4().hex}"


def is_temp_id(entity_id: str) -> bool:
    return entity_id.startswith(TEMP_ID_PREFIX)


class SyncState(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    FAILED = "failed"


class WriteAction(str, Enum):
    INSERT = "insert"
    UPDATE = "update"
    DELETE = "delete"


class PendingWrite(BaseModel):
    """Bookkeeping for one logical write."""

    operation_id: str = Field(default_factory=lambda: uuid4().hex)
    table: str
    action: WriteAction
    key: str = Field(
        ...,
        description="Serialization key; writes sharing a key never overlap"
    )
    local_id: str = Field(
        ...,
        description="Id used in the local cache while pending"
    )
    remote_id: Optional[str] = None
    state: SyncState = SyncState.PENDING
    error: Optional[str] = None
    started_at: dt.datetime = Field(default_factory=utc_now)
    finished_at: Optional[dt.datetime] = None

    @property
    def is_terminal(self) -> bool:
        return self.state != SyncState.PENDING

    def confirm(self, remote_id: Optional[str] = None) -> None:
        self.state = SyncState.CONFIRMED
        self.remote_id = remote_id or self.remote_id or self.local_id
        self.finished_at = utc_now()

    def fail(self, error: str) -> None:
        self.state = SyncState.FAILED
        self.error = error
        self.finished_at = utc_now()
