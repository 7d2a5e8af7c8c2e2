"""Validation package."""

from finance_tracker.validation.validator import (
    ConfigurationError,
    GoalValidationError,
    InsufficientBalanceError,
    TransactionValidator,
    ValidationError,
    coerce_amount,
    merge_budget_settings,
    opposite_account,
)

__all__ = [
    "ConfigurationError",
    "GoalValidationError",
    "InsufficientBalanceError",
    "TransactionValidator",
    "ValidationError",
    "coerce_amount",
    "merge_budget_settings",
    "opposite_account",
]
