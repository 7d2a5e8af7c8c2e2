"""
Shared fixtures and in-memory fakes.

No test touches the network or a real spreadsheet. Both storage ports
have an in-memory fake whose calls can be made to fail one step at a time.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional

import pytest

from finance_tracker.audit import AuditLogger
from finance_tracker.config import AppSettings
from finance_tracker.models.finance import (
    Balances,
    BudgetSettings,
    FinanceState,
    SavingsGoal,
    Transaction,
)
from finance_tracker.services.storage.interface import (
    DuplicateError,
    NotFoundError,
    RemoteFinanceStorageInterface,
    StateStorageInterface,
    StorageError,
)


# Wednesday
NOW = datetime(2024, 5, 15, 9, 0, tzinfo=timezone.utc)


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: datetime = NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


class RecordingLogger:
    """Stands in for a structlog logger and keeps every call."""

    def __init__(self):
        self.records: list[tuple[str, str, dict]] = []

    def _record(self, level, event, **kwargs):
        self.records.append((level, event, kwargs))

    def info(self, event, **kwargs):
        self._record("info", event, **kwargs)

    def warning(self, event, **kwargs):
        self._record("warning", event, **kwargs)

    def error(self, event, **kwargs):
        self._record("error", event, **kwargs)

    def event_types(self) -> list[str]:
        return [kwargs.get("event_type") for _, _, kwargs in self.records]


class FakeStateStorage(StateStorageInterface):
    """Local-durable fake: holds one state, can refuse to save."""

    def __init__(self, state: Optional[FinanceState] = None):
        self.state = state
        self.fail_save = False
        self.save_count = 0

    async def load(self) -> Optional[FinanceState]:
        return self.state

    async def save(self, state: FinanceState) -> None:
        if self.fail_save:
            raise StorageError("disk full")
        self.save_count += 1
        self.state = state


class FakeRemoteStorage(RemoteFinanceStorageInterface):
    """
    Remote fake with one entry per call.

    Add a method name to ``fail_on`` to make that call raise StorageError.
    """

    def __init__(self):
        self.balances: Optional[Balances] = None
        self.settings: Optional[BudgetSettings] = None
        self.transactions: list[Transaction] = []  # insertion order
        self.goals: list[SavingsGoal] = []
        self.fail_on: set[str] = set()
        self.calls: list[str] = []

    def _enter(self, name: str) -> None:
        self.calls.append(name)
        if name in self.fail_on:
            raise StorageError(f"{name} unavailable")

    async def load(self) -> Optional[FinanceState]:
        self._enter("load")
        if self.balances is None and not self.transactions and not self.goals:
            return None
        return FinanceState(
            balances=self.balances or Balances(),
            transactions=tuple(reversed(self.transactions)),
            savings_goals=tuple(self.goals),
            budget_settings=self.settings or BudgetSettings(),
        )

    async def insert_transaction(self, transaction: Transaction) -> None:
        self._enter("insert_transaction")
        for existing in self.transactions:
            if existing.id == transaction.id:
                if existing == transaction:
                    return
                raise DuplicateError(transaction.id)
        self.transactions.append(transaction)

    async def delete_transaction(self, transaction_id: str) -> bool:
        self._enter("delete_transaction")
        before = len(self.transactions)
        self.transactions = [t for t in self.transactions if t.id != transaction_id]
        return len(self.transactions) < before

    async def upsert_balances(self, balances: Balances) -> None:
        self._enter("upsert_balances")
        self.balances = balances

    async def insert_goal(self, goal: SavingsGoal) -> None:
        self._enter("insert_goal")
        self.goals.append(goal)

    async def delete_goal(self, goal_id: str) -> bool:
        self._enter("delete_goal")
        before = len(self.goals)
        self.goals = [g for g in self.goals if g.id != goal_id]
        return len(self.goals) < before

    async def update_goal(self, goal: SavingsGoal) -> None:
        self._enter("update_goal")
        for idx, existing in enumerate(self.goals):
            if existing.id == goal.id:
                self.goals[idx] = goal
                return
        raise NotFoundError(goal.id)

    async def update_settings(self, settings: BudgetSettings) -> None:
        self._enter("update_settings")
        self.settings = settings

    async def clear_transactions(self) -> None:
        self._enter("clear_transactions")
        self.transactions = []

    async def clear_goals(self) -> None:
        self._enter("clear_goals")
        self.goals = []


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def app_settings():
    return AppSettings(
        storage_backend="local",
        timezone="UTC",
        default_daily_cash_limit=30000,
        budget_warning_ratio=0.8,
        max_description_length=100,
    )


@pytest.fixture
def recording_logger():
    return RecordingLogger()


@pytest.fixture
def audit_logger(recording_logger):
    return AuditLogger(recording_logger)


@pytest.fixture
def state_storage():
    return FakeStateStorage()


@pytest.fixture
def remote_storage():
    return FakeRemoteStorage()
