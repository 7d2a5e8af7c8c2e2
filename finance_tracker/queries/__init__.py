"""Statistics query package."""

from finance_tracker.queries.aggregator import PeriodAggregator

__all__ = ["PeriodAggregator"]
