"""Analytics package: pure aggregation over ledger snapshots."""

from pocket_ledger.analytics.aggregator import (
    category_breakdown,
    debt_summary,
    filter_by_period,
    income_expense_totals,
    net_balance,
    period_summary,
    person_balance,
    recent,
)

__all__ = [
    "category_breakdown",
    "debt_summary",
    "filter_by_period",
    "income_expense_totals",
    "net_balance",
    "period_summary",
    "person_balance",
    "recent",
]
