"""Daily budget package."""

from finance_tracker.budget.evaluator import (
    DEFAULT_WARNING_RATIO,
    evaluate_budget,
    not_applicable,
)

__all__ = ["DEFAULT_WARNING_RATIO", "evaluate_budget", "not_applicable"]
