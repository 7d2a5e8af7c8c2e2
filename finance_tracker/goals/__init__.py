"""Savings goals package."""

from finance_tracker.goals.tracker import (
    GoalNotFoundError,
    compute_progress,
    create_goal,
    find_goal,
    remove_goal,
    sync_goal,
)

__all__ = [
    "GoalNotFoundError",
    "compute_progress",
    "create_goal",
    "find_goal",
    "remove_goal",
    "sync_goal",
]
