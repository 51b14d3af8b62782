"""
Tests for Pocket Ledger models

Test strategy:
1. Unit tests for individual components (models, codec)
2. Flow tests for the ledgers and sync (with an in-memory remote store)
3. No real API calls in tests
"""

import datetime as dt
from decimal import Decimal

import pytest

from pocket_ledger.errors import ValidationError
from pocket_ledger.models import (
    AuditSeverity,
    BalanceStanding,
    DebtDirection,
    LedgerEvent,
    LedgerEventBuilder,
    LedgerEventType,
    PendingWrite,
    Person,
    ReconcileResult,
    SharedEntry,
    SharedEntryDraft,
    SyncState,
    Transaction,
    TransactionDraft,
    TransactionKind,
    WriteAction,
    is_temp_id,
    new_temp_id,
)
from pocket_ledger.sync.codec import (
    parse_person,
    parse_shared_entry,
    parse_transaction,
    to_record,
)


class TestTransactionModels:
    """Tests for transaction models."""

    def test_draft_defaults(self):
        """Test that a draft defaults to an expense dated today."""
        draft = TransactionDraft(amount=Decimal("5"), category="Food")
        assert draft.kind == TransactionKind.EXPENSE
        assert draft.date == dt.date.today()

    def test_draft_strips_whitespace(self):
        """Test that whitespace is stripped from the category."""
        draft = TransactionDraft(amount=Decimal("5"), category="  Food  ")
        assert draft.category == "Food"

    def test_draft_rejects_non_positive_amount(self):
        """Test that zero and negative amounts are rejected."""
        with pytest.raises(ValueError):
            TransactionDraft(amount=Decimal("0"), category="Food")

    def test_signed_amount(self):
        """Test the sign each kind contributes to the net balance."""
        draft = TransactionDraft(amount=Decimal("5"), category="Pay", kind=TransactionKind.INCOME)
        income = Transaction.from_draft(draft, entry_id="t1", owner_id="u")
        expense = income.model_copy(update={"kind": TransactionKind.EXPENSE})
        assert income.signed_amount == Decimal("5")
        assert expense.signed_amount == Decimal("-5")

    def test_transactions_are_frozen(self):
        """Test that stored entries cannot be mutated in place."""
        transaction = Transaction.from_draft(
            TransactionDraft(amount=Decimal("5"), category="Food"), entry_id="t1", owner_id="u"
        )
        with pytest.raises(ValueError):
            transaction.amount = Decimal("6")

    def test_long_text_accepted(self):
        """Test that non-empty text of any length is valid input."""
        draft = TransactionDraft(amount=Decimal("5"), category="C" * 500, notes="n" * 5000)
        entry = SharedEntryDraft(amount=Decimal("5"), description="d" * 1000)
        assert len(draft.category) == 500
        assert len(draft.notes) == 5000
        assert len(entry.description) == 1000
        assert Person(id="p1", display_name="A" * 300).display_name == "A" * 300

    def test_blank_notes_become_none(self):
        """Test that empty notes are not stored."""
        draft = TransactionDraft(amount=Decimal("5"), category="Food", notes="   ")
        assert Transaction.from_draft(draft, entry_id="t1", owner_id="u").notes is None


class TestSharedModels:
    """Tests for shared debt models."""

    def test_sign_convention(self):
        """Test that lent is positive and borrowed negative."""
        draft = SharedEntryDraft(amount=Decimal("40"), description="Taxi", direction=DebtDirection.BORROWED)
        entry = SharedEntry.from_draft(draft, entry_id="e1", owner_id="u", counterparty_id="p1")
        assert entry.signed_amount == Decimal("-40")

    @pytest.mark.parametrize("balance, standing", [
        (Decimal("60"), BalanceStanding.OWES_YOU),
        (Decimal("-1"), BalanceStanding.YOU_OWE),
        (Decimal("0"), BalanceStanding.SETTLED),
    ])
    def test_person_standing(self, balance, standing):
        """Test who owes whom from the balance sign."""
        assert Person(id="p1", display_name="Asha", cached_balance=balance).standing == standing

    def test_reconcile_result_drift(self):
        """Test drift as cached minus recomputed."""
        result = ReconcileResult(
            person_id="p1", previous_balance=Decimal("75"), balance=Decimal("60"), entry_count=2
        )
        assert result.drift == Decimal("15")
        assert result.corrected


class TestSyncModels:
    """Tests for pending write bookkeeping."""

    def test_temp_ids(self):
        """Test the temporary id format."""
        temp_id = new_temp_id()
        assert is_temp_id(temp_id)
        assert not is_temp_id("4f2a")
        assert temp_id != new_temp_id()

    def test_pending_write_lifecycle(self):
        """Test pending to confirmed."""
        op = PendingWrite(table="people", action=WriteAction.INSERT, key="k", local_id="tmp-1")
        assert op.state == SyncState.PENDING
        assert not op.is_terminal
        op.confirm("p-1")
        assert op.state == SyncState.CONFIRMED
        assert op.remote_id == "p-1"
        assert op.finished_at is not None

    def test_pending_write_failure(self):
        """Test pending to failed."""
        op = PendingWrite(table="people", action=WriteAction.DELETE, key="k", local_id="p-1")
        op.fail("rejected")
        assert op.is_terminal
        assert op.error == "rejected"


class TestRecordCodec:
    """Tests for parsing remote records."""

    def test_to_record_drops_id(self):
        """Test that outgoing records never carry an id."""
        person = Person(id="tmp-1", display_name="Asha", cached_balance=Decimal("1.50"))
        record = to_record(person)
        assert "id" not in record
        assert record["cached_balance"] == "1.50"

    def test_parse_stringly_typed_row(self):
        """Test that text cells become typed fields."""
        transaction = parse_transaction({
            "id": 7, "owner_id": "u", "amount": "3.25", "category": "Tea",
            "date": "2024-03-01", "kind": "income", "notes": None,
            "created_at": "2024-03-01T08:00:00+00:00",
        })
        assert transaction.id == "7"
        assert transaction.amount == Decimal("3.25")
        assert transaction.kind == TransactionKind.INCOME

    def test_missing_id_rejected(self):
        """Test that a record without id is refused."""
        with pytest.raises(ValidationError) as exc_info:
            parse_person({"display_name": "Asha"})
        assert exc_info.value.field == "id"

    def test_bad_field_rejected(self):
        """Test that schema violations become ValidationError."""
        with pytest.raises(ValidationError, match="direction"):
            parse_shared_entry({
                "id": "e1", "owner_id": "u", "counterparty_id": "p1", "amount": "5",
                "description": "x", "date": "2024-03-01", "direction": "sideways",
            })


class TestAuditModels:
    """Tests for audit-related models."""

    def test_ledger_event_creation(self):
        """Test LedgerEvent model creation."""
        event = LedgerEvent(
            event_type=LedgerEventType.TRANSACTION_REMOVED,
            description="Transaction t1 removed",
        )
        assert event.severity == AuditSeverity.INFO
        assert event.event_id

    def test_event_to_log_dict(self):
        """Test conversion to a structured log dict."""
        event = LedgerEventBuilder.sync_failed("op1", "people", "tmp-1", "boom")
        log_dict = event.to_log_dict()
        assert log_dict["event_type"] == "sync_failed"
        assert log_dict["severity"] == "warning"
        assert log_dict["operation_id"] == "op1"
        assert log_dict["error_message"] == "boom"

    def test_drift_event_is_error(self):
        """Test that drift is logged at error severity."""
        event = LedgerEventBuilder.balance_drift_detected(
            person_id="p1", cached=Decimal("75"), recomputed=Decimal("60"), error_code="BALANCE_DRIFT"
        )
        assert event.severity == AuditSeverity.ERROR
        assert event.error_code == "BALANCE_DRIFT"
