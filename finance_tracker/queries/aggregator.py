"""
Period Aggregation Engine

DESIGN DECISION: Statistics are a pure projection of the transaction list.
Nothing is cached; every call recomputes from the snapshot it is given.
Expected volumes (hundreds to low thousands of records) make this cheap.

All windows come from finance_tracker.periods, the same boundary rules the
budget check uses.
"""

from datetime import datetime, tzinfo
from typing import Iterable, Optional

from finance_tracker import periods
from finance_tracker.models.finance import (
    DEFAULT_CATEGORY,
    AccountType,
    DailyTotals,
    PeriodSummary,
    PeriodTotals,
    Transaction,
    TransactionCategory,
    TransactionType,
)


class PeriodAggregator:
    """
    Sums transactions over calendar windows.

    GUARANTEES:
    - Never mutates its input
    - Uses one boundary definition for every window
    """

    def __init__(self, tz: tzinfo):
        self._tz = tz

    @property
    def tz(self) -> tzinfo:
        return self._tz

    def totals_by_type(
        self,
        transactions: Iterable[Transaction],
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> dict[TransactionType, int]:
        """Sum of amounts per transaction type within [start, end)."""
        totals = {transaction_type: 0 for transaction_type in TransactionType}
        for t in transactions:
            if periods.in_window(t.date, start, end):
                totals[t.type] += t.amount
        return totals

    def period_totals(
        self,
        transactions: Iterable[Transaction],
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> PeriodTotals:
        totals = self.totals_by_type(transactions, start, end)
        return PeriodTotals(
            income=totals[TransactionType.INCOME],
            expense=totals[TransactionType.EXPENSE],
        )

    def period_summary(
        self,
        transactions: Iterable[Transaction],
        now: datetime,
    ) -> PeriodSummary:
        """Income and expense for the current day, week and month."""
        transactions = tuple(transactions)
        return PeriodSummary(
            today=self.period_totals(transactions, *periods.day_window(now, self._tz)),
            week=self.period_totals(transactions, *periods.week_window(now, self._tz)),
            month=self.period_totals(transactions, *periods.month_window(now, self._tz)),
        )

    def last_7_days(
        self,
        transactions: Iterable[Transaction],
        now: datetime,
    ) -> list[DailyTotals]:
        """Daily income and expense for the trailing 7 calendar days, oldest first."""
        transactions = tuple(transactions)
        result = []
        for start, end in periods.last_n_days(now, self._tz, days=7):
            totals = self.period_totals(transactions, start, end)
            result.append(DailyTotals(day=start, income=totals.income, expense=totals.expense))
        return result

    def expenses_by_category(
        self,
        transactions: Iterable[Transaction],
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> dict[TransactionCategory, int]:
        """
        Expense totals per category within [start, end).

        Only categories with spending appear. Uncategorized expenses
        count as the default category.
        """
        totals: dict[TransactionCategory, int] = {}
        for t in transactions:
            if t.type != TransactionType.EXPENSE:
                continue
            if not periods.in_window(t.date, start, end):
                continue
            category = t.category or DEFAULT_CATEGORY
            totals[category] = totals.get(category, 0) + t.amount
        return totals

    def expenses_by_account(
        self,
        transactions: Iterable[Transaction],
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> dict[AccountType, int]:
        """Expense totals per source account within [start, end). Zero totals are dropped."""
        totals: dict[AccountType, int] = {}
        for t in transactions:
            if t.type == TransactionType.EXPENSE and periods.in_window(t.date, start, end):
                totals[t.account] = totals.get(t.account, 0) + t.amount
        return totals

    def today_cash_expense_total(
        self,
        transactions: Iterable[Transaction],
        now: datetime,
    ) -> int:
        """Cash expenses recorded on the local calendar day of `now`."""
        start, end = periods.day_window(now, self._tz)
        return sum(
            t.amount
            for t in transactions
            if t.type == TransactionType.EXPENSE
            and t.account == AccountType.CASH
            and periods.in_window(t.date, start, end)
        )
