"""
Daily Cash Budget Evaluator

Classifies a prospective cash expense against the daily cash limit:

- projected > limit            -> HARD_BLOCK (caller must confirm explicitly)
- projected >= ratio * limit   -> WARNING    (informational)
- otherwise                    -> OK

where projected = today's cash expenses + the prospective amount.

IMPORTANT: This is advice, never a gate. The mandatory balance
sufficiency check lives in the validator and is not bypassable.
"""

from decimal import Decimal
from typing import Union

from finance_tracker.models.finance import BudgetEvaluation, BudgetStatus

DEFAULT_WARNING_RATIO = Decimal("0.8")


def evaluate_budget(
    prospective_amount: int,
    today_total: int,
    daily_cash_limit: int,
    warning_ratio: Union[Decimal, float, str] = DEFAULT_WARNING_RATIO,
    notifications_enabled: bool = True,
) -> BudgetEvaluation:
    """
    Evaluate a prospective cash expense.

    Args:
        prospective_amount: Amount of the cash expense being entered
        today_total: Cash expenses already recorded today
        daily_cash_limit: Configured daily limit
        warning_ratio: Share of the limit at which a warning starts
        notifications_enabled: Whether the user wants to be told

    Returns:
        BudgetEvaluation (pure, no side effects)
    """
    ratio = Decimal(str(warning_ratio))
    projected = today_total + prospective_amount

    if projected > daily_cash_limit:
        status = BudgetStatus.HARD_BLOCK
        message = (
            f"Daily budget will be exceeded! Total: {projected:,} "
            f"(limit: {daily_cash_limit:,}). Confirm to continue."
        )
    elif Decimal(projected) >= ratio * Decimal(daily_cash_limit):
        status = BudgetStatus.WARNING
        message = (
            f"Approaching the daily budget: {projected:,} "
            f"of {daily_cash_limit:,} spent today."
        )
    else:
        status = BudgetStatus.OK
        message = None

    return BudgetEvaluation(
        status=status,
        projected_total=projected,
        daily_cash_limit=daily_cash_limit,
        message=message,
        requires_confirmation=status == BudgetStatus.HARD_BLOCK,
        should_notify=notifications_enabled and status != BudgetStatus.OK,
    )


def not_applicable(today_total: int, daily_cash_limit: int) -> BudgetEvaluation:
    """Evaluation for intents the daily cash budget does not cover."""
    return BudgetEvaluation(
        status=BudgetStatus.OK,
        projected_total=today_total,
        daily_cash_limit=daily_cash_limit,
    )
