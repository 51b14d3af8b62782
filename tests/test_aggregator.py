"""Tests for the aggregator's pure functions."""

import datetime as dt
from decimal import Decimal

import pytest

from pocket_ledger.analytics import aggregator
from pocket_ledger.models import (
    BalanceStanding,
    CategoryTotal,
    Person,
    Period,
    Transaction,
    TransactionKind,
)


def make_transaction(
    amount,
    category="Food",
    date=dt.date(2024, 3, 15),
    kind=TransactionKind.EXPENSE,
    entry_id=None,
    created_at=None,
):
    return Transaction(
        id=entry_id or f"t-{category}-{amount}-{date.isoformat()}",
        owner_id="user-1",
        amount=Decimal(str(amount)),
        category=category,
        date=date,
        kind=kind,
        created_at=created_at or dt.datetime(2024, 3, 15, tzinfo=dt.timezone.utc),
    )


class TestNetBalance:
    """Tests for net balance and income/expense totals."""

    def test_income_minus_expense(self):
        """Test the documented food/salary scenario."""
        entries = [
            make_transaction(500, "Food", dt.date(2024, 1, 5)),
            make_transaction(300, "Food", dt.date(2024, 1, 6)),
            make_transaction(2000, "Salary", dt.date(2024, 1, 1), kind=TransactionKind.INCOME),
        ]
        assert aggregator.net_balance(entries) == Decimal("1200")
        assert aggregator.category_breakdown(entries) == [
            CategoryTotal(category="Food", total_amount=Decimal("800")),
        ]

    def test_empty_inputs_yield_zero(self):
        """Test that empty ledgers aggregate to zeros, not errors."""
        assert aggregator.net_balance([]) == Decimal("0")
        assert aggregator.category_breakdown([]) == []
        totals = aggregator.income_expense_totals([])
        assert totals.income == Decimal("0")
        assert totals.expense == Decimal("0")
        assert totals.net == Decimal("0")

    def test_income_expense_totals(self):
        """Test sums grouped by kind."""
        entries = [
            make_transaction(10, "Food"),
            make_transaction("2.50", "Bus"),
            make_transaction(100, "Salary", kind=TransactionKind.INCOME),
        ]
        totals = aggregator.income_expense_totals(entries)
        assert totals.income == Decimal("100")
        assert totals.expense == Decimal("12.50")
        assert totals.net == Decimal("87.50")

    def test_decimal_sums_are_exact(self):
        """Test that cents never drift through float rounding."""
        entries = [make_transaction("0.10", "Snacks", entry_id=f"t{i}") for i in range(3)]
        assert aggregator.net_balance(entries) == Decimal("-0.30")


class TestCategoryBreakdown:
    """Tests for the expense category breakdown."""

    def test_only_expenses_counted(self):
        """Test that income never shows up as a category."""
        entries = [
            make_transaction(50, "Gift", kind=TransactionKind.INCOME),
            make_transaction(20, "Food"),
        ]
        result = aggregator.category_breakdown(entries)
        assert [c.category for c in result] == ["Food"]

    def test_sorted_descending_and_truncated_to_five(self):
        """Test top-5 ordering by total."""
        entries = [
            make_transaction(amount, category)
            for amount, category in [
                (10, "A"), (60, "B"), (30, "C"), (40, "D"),
                (20, "E"), (50, "F"), (5, "G"),
            ]
        ]
        result = aggregator.category_breakdown(entries)
        assert [c.category for c in result] == ["B", "F", "D", "C", "E"]

    def test_ties_keep_first_seen_order(self):
        """Test that equal totals keep input order."""
        entries = [
            make_transaction(10, "Rent"),
            make_transaction(10, "Books"),
            make_transaction(10, "Coffee"),
        ]
        result = aggregator.category_breakdown(entries)
        assert [c.category for c in result] == ["Rent", "Books", "Coffee"]

    def test_categories_are_case_sensitive(self):
        """Test that 'Food' and 'food' are different categories."""
        entries = [make_transaction(10, "Food"), make_transaction(5, "food")]
        result = aggregator.category_breakdown(entries)
        assert [(c.category, c.total_amount) for c in result] == [
            ("Food", Decimal("10")),
            ("food", Decimal("5")),
        ]

    def test_custom_limit(self):
        """Test that the limit is configurable."""
        entries = [make_transaction(i + 1, f"C{i}") for i in range(4)]
        assert len(aggregator.category_breakdown(entries, limit=2)) == 2


class TestFilterByPeriod:
    """Tests for period filtering by calendar date."""

    def test_day_uses_calendar_days(self):
        """Test that yesterday is excluded even when under 24 hours ago."""
        early_now = dt.datetime(2024, 3, 15, 0, 5)
        today = make_transaction(10, "Food", date=dt.date(2024, 3, 15))
        yesterday = make_transaction(10, "Food", date=dt.date(2024, 3, 14))
        result = aggregator.filter_by_period([yesterday, today], Period.DAY, early_now)
        assert result == [today]

    def test_last_30_days_boundary(self, now):
        """Test that the date 30 days back is included and 31 is not."""
        inside = make_transaction(1, "A", date=dt.date(2024, 2, 14))
        outside = make_transaction(1, "B", date=dt.date(2024, 2, 13))
        result = aggregator.filter_by_period([inside, outside], Period.LAST_30_DAYS, now)
        assert result == [inside]

    def test_year_to_date(self, now):
        """Test that Jan 1 is included and last year is not."""
        jan_first = make_transaction(1, "A", date=dt.date(2024, 1, 1))
        last_year = make_transaction(1, "B", date=dt.date(2023, 12, 31))
        result = aggregator.filter_by_period([jan_first, last_year], Period.YEAR_TO_DATE, now)
        assert result == [jan_first]

    def test_accepts_period_strings(self, now):
        """Test that the wire names of periods are accepted."""
        entry = make_transaction(1, "A", date=dt.date(2024, 3, 1))
        assert aggregator.filter_by_period([entry], "yearToDate", now) == [entry]

    def test_preserves_input_order(self, now):
        """Test that filtering is a subsequence of the input."""
        entries = [
            make_transaction(1, "A", date=dt.date(2024, 3, 10)),
            make_transaction(2, "B", date=dt.date(2024, 3, 1)),
            make_transaction(3, "C", date=dt.date(2024, 3, 12)),
        ]
        result = aggregator.filter_by_period(entries, Period.LAST_30_DAYS, now)
        assert [e.category for e in result] == ["A", "B", "C"]

    def test_unknown_period_rejected(self, now):
        """Test that a bogus period name fails loudly."""
        with pytest.raises(ValueError):
            aggregator.filter_by_period([], "fortnight", now)


class TestPeriodSummary:
    """Tests for the combined period summary."""

    def test_summary_for_period(self, now):
        """Test totals, net, label and categories for one period."""
        entries = [
            make_transaction(40, "Food", date=dt.date(2024, 3, 15)),
            make_transaction(100, "Salary", date=dt.date(2024, 3, 15), kind=TransactionKind.INCOME),
            make_transaction(999, "Rent", date=dt.date(2024, 3, 1)),
        ]
        summary = aggregator.period_summary(entries, Period.DAY, now)
        assert summary.label == "Today"
        assert summary.entry_count == 2
        assert summary.totals.income == Decimal("100")
        assert summary.totals.expense == Decimal("40")
        assert summary.net == Decimal("60")
        assert [c.category for c in summary.top_categories] == ["Food"]

    def test_labels(self):
        """Test the display label of every period."""
        assert Period.DAY.label == "Today"
        assert Period.LAST_30_DAYS.label == "Last 30 Days"
        assert Period.YEAR_TO_DATE.label == "This Year"


class TestRecentAndDebts:
    """Tests for the recent list and the debt summary."""

    def test_recent_newest_first_and_limited(self):
        """Test that only the newest entries come back, newest first."""
        base = dt.datetime(2024, 3, 1, tzinfo=dt.timezone.utc)
        entries = [
            make_transaction(1, f"C{i}", entry_id=f"t{i}", created_at=base + dt.timedelta(minutes=i))
            for i in range(12)
        ]
        result = aggregator.recent(entries)
        assert len(result) == 10
        assert result[0].id == "t11"
        assert result[-1].id == "t2"

    def test_recent_ties_prefer_later_insertion(self):
        """Test that equal creation times fall back to insertion order."""
        stamp = dt.datetime(2024, 3, 1, tzinfo=dt.timezone.utc)
        entries = [make_transaction(1, "A", entry_id="first", created_at=stamp),
                   make_transaction(1, "B", entry_id="second", created_at=stamp)]
        assert [e.id for e in aggregator.recent(entries)] == ["second", "first"]

    def test_debt_summary(self):
        """Test owed totals in both directions."""
        people = [
            Person(id="p1", display_name="Asha", cached_balance=Decimal("60")),
            Person(id="p2", display_name="Ben", cached_balance=Decimal("-25")),
            Person(id="p3", display_name="Chen", cached_balance=Decimal("0")),
            Person(id="p4", display_name="Dev", cached_balance=Decimal("15")),
        ]
        summary = aggregator.debt_summary(people)
        assert summary.owed_to_you == Decimal("75")
        assert summary.you_owe == Decimal("25")
        assert summary.net == Decimal("50")
        assert summary.owes_you_count == 2
        assert summary.you_owe_count == 1
        assert summary.settled_count == 1
        assert people[1].standing == BalanceStanding.YOU_OWE
