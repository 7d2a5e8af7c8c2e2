"""
Persistence Strategies

DESIGN DECISION: The session commits every mutation through ONE port,
whatever the backend. The mutation rules (validation, ledger deltas,
store updates) live in the session, never in a backend.

Two strategies implement the port:
- LocalSnapshotPersistence: the full new state is saved in one call.
  It either lands or it doesn't.
- RemoteSyncPersistence: the change is sent as ordered fine-grained calls
  (record first, then balances). There is no transaction spanning them,
  so a failure after the first step is reported as a PartialCommitError
  naming what completed and what failed.

In both cases the caller keeps its previous in-memory state when a commit
raises.
"""

from abc import ABC, abstractmethod
from typing import Awaitable, Callable, Optional

from finance_tracker.models.finance import FinanceState, SavingsGoal, Transaction
from finance_tracker.services.storage.interface import (
    RemoteFinanceStorageInterface,
    StateStorageInterface,
    StorageError,
)


class PersistenceError(StorageError):
    """A commit failed before anything was applied."""

    def __init__(
        self,
        operation: str,
        failed_step: str,
        message: str,
        completed_steps: Optional[list[str]] = None,
    ):
        self.operation = operation
        self.failed_step = failed_step
        self.completed_steps = list(completed_steps or [])
        super().__init__(f"{operation} failed at {failed_step}: {message}")


class PartialCommitError(PersistenceError):
    """
    A remote commit failed after at least one step succeeded.

    The remote data may now disagree with the last committed local state
    until it is reconciled.
    """
    pass


Step = tuple[str, Callable[[], Awaitable[object]]]


class PersistenceStrategy(ABC):
    """
    The single port the session commits through.

    Every commit_* method receives the NEW state the session is about to
    adopt, plus the record that changed.
    """

    @abstractmethod
    async def load(self) -> Optional[FinanceState]:
        pass

    @abstractmethod
    async def commit_transaction_added(
        self, state: FinanceState, transaction: Transaction
    ) -> None:
        pass

    @abstractmethod
    async def commit_transaction_deleted(
        self, state: FinanceState, transaction: Transaction
    ) -> None:
        pass

    @abstractmethod
    async def commit_goal_added(self, state: FinanceState, goal: SavingsGoal) -> None:
        pass

    @abstractmethod
    async def commit_goal_deleted(self, state: FinanceState, goal_id: str) -> None:
        pass

    @abstractmethod
    async def commit_goal_updated(self, state: FinanceState, goal: SavingsGoal) -> None:
        pass

    @abstractmethod
    async def commit_settings(self, state: FinanceState) -> None:
        pass

    @abstractmethod
    async def commit_reset(self, state: FinanceState) -> None:
        pass

    @abstractmethod
    async def commit_balances(self, state: FinanceState) -> None:
        """Write the balances of ``state`` only."""
        pass


class LocalSnapshotPersistence(PersistenceStrategy):
    """Every commit writes the whole state document."""

    def __init__(self, storage: StateStorageInterface):
        self._storage = storage

    async def load(self) -> Optional[FinanceState]:
        return await self._storage.load()

    async def _save(self, operation: str, state: FinanceState) -> None:
        try:
            await self._storage.save(state)
        except StorageError as e:
            raise PersistenceError(operation, "save", str(e)) from e

    async def commit_transaction_added(self, state, transaction):
        await self._save("add_transaction", state)

    async def commit_transaction_deleted(self, state, transaction):
        await self._save("delete_transaction", state)

    async def commit_goal_added(self, state, goal):
        await self._save("add_savings_goal", state)

    async def commit_goal_deleted(self, state, goal_id):
        await self._save("delete_savings_goal", state)

    async def commit_goal_updated(self, state, goal):
        await self._save("sync_goal_progress", state)

    async def commit_settings(self, state):
        await self._save("update_budget_settings", state)

    async def commit_reset(self, state):
        await self._save("reset_all", state)

    async def commit_balances(self, state):
        await self._save("reconcile", state)


class RemoteSyncPersistence(PersistenceStrategy):
    """
    Sends each change as ordered fine-grained remote calls.

    Step order for transactions: record first, balances second. If the
    balances call fails the record is already stored remotely, which is
    exactly the case PartialCommitError describes.
    """

    def __init__(self, storage: RemoteFinanceStorageInterface):
        self._storage = storage

    async def load(self) -> Optional[FinanceState]:
        return await self._storage.load()

    async def _run(self, operation: str, steps: list[Step]) -> None:
        completed: list[str] = []
        for name, call in steps:
            try:
                await call()
            except Exception as e:
                error_cls = PartialCommitError if completed else PersistenceError
                raise error_cls(operation, name, str(e), completed) from e
            completed.append(name)

    async def commit_transaction_added(self, state, transaction):
        await self._run("add_transaction", [
            ("insert_transaction", lambda: self._storage.insert_transaction(transaction)),
            ("upsert_balances", lambda: self._storage.upsert_balances(state.balances)),
        ])

    async def commit_transaction_deleted(self, state, transaction):
        # A row already gone remotely still gets the balances written
        await self._run("delete_transaction", [
            ("delete_transaction", lambda: self._storage.delete_transaction(transaction.id)),
            ("upsert_balances", lambda: self._storage.upsert_balances(state.balances)),
        ])

    async def commit_goal_added(self, state, goal):
        await self._run("add_savings_goal", [
            ("insert_goal", lambda: self._storage.insert_goal(goal)),
        ])

    async def commit_goal_deleted(self, state, goal_id):
        await self._run("delete_savings_goal", [
            ("delete_goal", lambda: self._storage.delete_goal(goal_id)),
        ])

    async def commit_goal_updated(self, state, goal):
        await self._run("sync_goal_progress", [
            ("update_goal", lambda: self._storage.update_goal(goal)),
        ])

    async def commit_settings(self, state):
        await self._run("update_budget_settings", [
            ("update_settings", lambda: self._storage.update_settings(state.budget_settings)),
        ])

    async def commit_reset(self, state):
        await self._run("reset_all", [
            ("clear_transactions", self._storage.clear_transactions),
            ("clear_goals", self._storage.clear_goals),
            ("upsert_balances", lambda: self._storage.upsert_balances(state.balances)),
            ("update_settings", lambda: self._storage.update_settings(state.budget_settings)),
        ])

    async def commit_balances(self, state):
        await self._run("reconcile", [
            ("upsert_balances", lambda: self._storage.upsert_balances(state.balances)),
        ])
