"""
Savings Goal Tracker

Goals do not own money. Every goal is measured against the single pooled
savings balance, so two goals of 50,000 and 80,000 with 60,000 saved show
100% and 75%.

The current_amount stored on a goal is only a cache of the last sync.
Progress is always recomputed from the pool.
"""

from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Iterable, Optional

from finance_tracker.models.finance import (
    GoalProgress,
    SavingsGoal,
    ValidationIssue,
    ensure_utc,
    utc_now,
)
from finance_tracker.validation.validator import GoalValidationError, coerce_amount

MAX_GOAL_NAME_LENGTH = 100
HUNDRED = Decimal(100)
CENT = Decimal("0.01")


class GoalNotFoundError(LookupError):
    """No savings goal with the requested id."""

    def __init__(self, goal_id: str):
        self.goal_id = goal_id
        super().__init__(f"Savings goal not found: {goal_id}")


def create_goal(
    name: Any,
    target_amount: Any,
    deadline: Optional[datetime] = None,
    now: Optional[datetime] = None,
) -> SavingsGoal:
    """
    Validate and build a new savings goal.

    Raises:
        GoalValidationError: Empty or too long name, non-positive target,
            or a deadline that isn't a datetime
    """
    issues: list[ValidationIssue] = []

    text = name.strip() if isinstance(name, str) else ""
    if not text:
        issues.append(ValidationIssue(
            field="name", issue_type="missing", message="Goal name is required"
        ))
    elif len(text) > MAX_GOAL_NAME_LENGTH:
        issues.append(ValidationIssue(
            field="name",
            issue_type="too_long",
            message=f"Goal name must be at most {MAX_GOAL_NAME_LENGTH} characters",
        ))

    target = coerce_amount(target_amount, issues, field="target_amount")

    if deadline is not None and not isinstance(deadline, datetime):
        issues.append(ValidationIssue(
            field="deadline",
            issue_type="invalid_type",
            message="Deadline must be a date and time",
        ))

    if issues:
        raise GoalValidationError(issues)

    return SavingsGoal(
        name=text,
        target_amount=target,
        deadline=deadline,
        created_at=ensure_utc(now) if now is not None else utc_now(),
    )


def compute_progress(goal: SavingsGoal, savings_balance: int) -> GoalProgress:
    """Progress of a goal against the pooled savings balance."""
    pool = max(savings_balance, 0)
    current = min(pool, goal.target_amount)
    percent = (Decimal(current) * HUNDRED / Decimal(goal.target_amount)).quantize(
        CENT, rounding=ROUND_HALF_UP
    )
    return GoalProgress(
        goal_id=goal.id,
        name=goal.name,
        target_amount=goal.target_amount,
        current_amount=current,
        remaining_amount=goal.target_amount - current,
        percent=min(percent, HUNDRED),
    )


def sync_goal(goal: SavingsGoal, savings_balance: int) -> SavingsGoal:
    """Refresh the cached current_amount from the pool."""
    current = compute_progress(goal, savings_balance).current_amount
    return goal.model_copy(update={"current_amount": current})


def remove_goal(
    goals: Iterable[SavingsGoal], goal_id: str
) -> tuple[tuple[SavingsGoal, ...], Optional[SavingsGoal]]:
    """
    Remove a goal by id.

    Returns:
        (remaining_goals, removed_goal). removed_goal is None when the id
        is unknown, and the goals come back unchanged.
    """
    remaining = []
    removed = None
    for goal in goals:
        if removed is None and goal.id == goal_id:
            removed = goal
        else:
            remaining.append(goal)
    return tuple(remaining), removed


def find_goal(goals: Iterable[SavingsGoal], goal_id: str) -> Optional[SavingsGoal]:
    return next((goal for goal in goals if goal.id == goal_id), None)
