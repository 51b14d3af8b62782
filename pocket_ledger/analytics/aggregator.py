"""
Aggregator

Pure functions over snapshots of the ledgers. No mutation, no I/O and
no error path: the ledgers reject malformed entries before they get
here, so every function is total and an empty input yields zeros.

All period filtering compares calendar dates, never time of day.
"""

import datetime as dt
from decimal import Decimal
from typing import Iterable, Sequence

from pocket_ledger.models.analytics import (
    CategoryTotal,
    DebtSummary,
    IncomeExpenseTotals,
    Period,
    PeriodSummary,
)
from pocket_ledger.models.shared import BalanceStanding, Person, SharedEntry
from pocket_ledger.models.transaction import Transaction, TransactionKind


ZERO = Decimal("0")
CATEGORY_LIMIT = 5
RECENT_LIMIT = 10
LAST_30_DAYS = dt.timedelta(days=30)


def net_balance(entries: Iterable[Transaction]) -> Decimal:
    """Income minus expense."""
    return sum((entry.signed_amount for entry in entries), ZERO)


def person_balance(entries: Iterable[SharedEntry]) -> Decimal:
    """Signed sum of shared entries: lent adds, borrowed subtracts."""
    return sum((entry.signed_amount for entry in entries), ZERO)


def period_start(period: Period, now: dt.datetime) -> dt.date:
    """First calendar date included in the period."""
    if period == Period.DAY:
        return now.date()
    if period == Period.LAST_30_DAYS:
        return (now - LAST_30_DAYS).date()
    return dt.date(now.year, 1, 1)


def filter_by_period(
    entries: Sequence[Transaction],
    period: Period,
    now: dt.datetime,
) -> list[Transaction]:
    """
    Keep the entries falling in a period, preserving input order.

    day         -> date is now's calendar day
    last30days  -> date on or after the calendar day 30*24h before now
    yearToDate  -> date on or after Jan 1 of now's year
    """
    period = Period(period)
    start = period_start(period, now)
    if period == Period.DAY:
        return [entry for entry in entries if entry.date == start]
    return [entry for entry in entries if entry.date >= start]


def category_breakdown(
    entries: Sequence[Transaction],
    limit: int = CATEGORY_LIMIT,
) -> list[CategoryTotal]:
    """
    Expense totals per exact category string, largest first.

    Ties keep the order in which categories first appear in the input.
    """
    totals: dict[str, Decimal] = {}
    for entry in entries:
        if entry.kind != TransactionKind.EXPENSE:
            continue
        totals[entry.category] = totals.get(entry.category, ZERO) + entry.amount

    # sorted() is stable, so first-seen order survives among equal totals
    ranked = sorted(totals.items(), key=lambda item: item[1], reverse=True)
    return [
        CategoryTotal(category=category, total_amount=total)
        for category, total in ranked[:limit]
    ]


def income_expense_totals(entries: Iterable[Transaction]) -> IncomeExpenseTotals:
    income = ZERO
    expense = ZERO
    for entry in entries:
        if entry.kind == TransactionKind.INCOME:
            income += entry.amount
        else:
            expense += entry.amount
    return IncomeExpenseTotals(income=income, expense=expense)


def period_summary(
    entries: Sequence[Transaction],
    period: Period,
    now: dt.datetime,
    category_limit: int = CATEGORY_LIMIT,
) -> PeriodSummary:
    """Totals, net and top categories for one period."""
    period = Period(period)
    selected = filter_by_period(entries, period, now)
    totals = income_expense_totals(selected)
    return PeriodSummary(
        period=period,
        label=period.label,
        totals=totals,
        net=totals.net,
        top_categories=category_breakdown(selected, limit=category_limit),
        entry_count=len(selected),
    )


def recent(entries: Sequence[Transaction], limit: int = RECENT_LIMIT) -> list[Transaction]:
    """The newest entries by creation time."""
    ordered = sorted(
        enumerate(entries),
        key=lambda pair: (pair[1].created_at, pair[0]),
        reverse=True,
    )
    return [entry for _, entry in ordered[:limit]]


def debt_summary(people: Iterable[Person]) -> DebtSummary:
    """How much is owed in each direction across all counterparties."""
    owed_to_you = ZERO
    you_owe = ZERO
    counts = {standing: 0 for standing in BalanceStanding}
    for person in people:
        counts[person.standing] += 1
        if person.cached_balance > 0:
            owed_to_you += person.cached_balance
        elif person.cached_balance < 0:
            you_owe -= person.cached_balance
    return DebtSummary(
        owed_to_you=owed_to_you,
        you_owe=you_owe,
        owes_you_count=counts[BalanceStanding.OWES_YOU],
        you_owe_count=counts[BalanceStanding.YOU_OWE],
        settled_count=counts[BalanceStanding.SETTLED],
    )
