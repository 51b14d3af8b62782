"""Result models returned by the aggregator."""

from decimal import Decimal
from enum import Enum

from pydantic import BaseModel, Field


class Period(str, Enum):
    """Time windows offered by the analytics view."""
    DAY = "day"
    LAST_30_DAYS = "last30days"
    YEAR_TO_DATE = "yearToDate"

    @property
    def label(self) -> str:
        return {
            Period.DAY: "Today",
            Period.LAST_30_DAYS: "Last 30 Days",
            Period.YEAR_TO_DATE: "This Year",
        }[self]


class CategoryTotal(BaseModel):
    """Total expense for one category."""

    category: str
    total_amount: Decimal


class IncomeExpenseTotals(BaseModel):
    """Income and expense sums over a set of transactions."""

    income: Decimal = Field(default=Decimal("0"))
    expense: Decimal = Field(default=Decimal("0"))

    @property
    def net(self) -> Decimal:
        return self.income - self.expense


class PeriodSummary(BaseModel):
    """Everything the analytics screen shows for one period."""

    period: Period
    label: str
    totals: IncomeExpenseTotals
    net: Decimal
    top_categories: list[CategoryTotal] = Field(default_factory=list)
    entry_count: int = Field(default=0, ge=0)


class DebtSummary(BaseModel):
    """Totals across every counterparty."""

    owed_to_you: Decimal = Field(
        default=Decimal("0"),
        description="Sum of positive balances"
    )
    you_owe: Decimal = Field(
        default=Decimal("0"),
        description="Sum of negative balances, as a positive number"
    )
    owes_you_count: int = 0
    you_owe_count: int = 0
    settled_count: int = 0

    @property
    def net(self) -> Decimal:
        return self.owed_to_you - self.you_owe
