"""
Data Models Package

This package contains all Pydantic models used in the Finance Tracker system.
All data flowing through the system must conform to these schemas.
"""

from finance_tracker.models.finance import (
    DEFAULT_CATEGORY,
    TRANSFER_ACCOUNTS,
    AccountType,
    BalanceDelta,
    Balances,
    BudgetEvaluation,
    BudgetSettings,
    BudgetStatus,
    DailyTotals,
    FinanceState,
    GoalProgress,
    PeriodSummary,
    PeriodTotals,
    SavingsGoal,
    Transaction,
    TransactionCategory,
    TransactionType,
    ValidationIssue,
    ensure_utc,
    new_record_id,
    utc_now,
)
from finance_tracker.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Finance models
    "DEFAULT_CATEGORY",
    "TRANSFER_ACCOUNTS",
    "AccountType",
    "BalanceDelta",
    "Balances",
    "BudgetEvaluation",
    "BudgetSettings",
    "BudgetStatus",
    "DailyTotals",
    "FinanceState",
    "GoalProgress",
    "PeriodSummary",
    "PeriodTotals",
    "SavingsGoal",
    "Transaction",
    "TransactionCategory",
    "TransactionType",
    "ValidationIssue",
    "ensure_utc",
    "new_record_id",
    "utc_now",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
