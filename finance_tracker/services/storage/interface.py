"""
Abstract Storage Interfaces

DESIGN DECISION: We define abstract interfaces for storage operations.
This allows us to:
1. Keep one local-durable and one remote-synced backend behind the same core
2. Use in-memory fakes for testing
3. Keep the balance-mutation rules out of every backend

Two shapes exist because the two kinds of backend commit differently:
- StateStorageInterface: the whole state is written in one call.
- RemoteFinanceStorageInterface: fine-grained calls, each independently
  fallible. No distributed transaction spans them.
"""

from abc import ABC, abstractmethod
from typing import Optional

from finance_tracker.models.finance import (
    Balances,
    BudgetSettings,
    FinanceState,
    SavingsGoal,
    Transaction,
)


class StateStorageInterface(ABC):
    """
    Local-durable storage: load and save the full state as one document.
    """

    @abstractmethod
    async def load(self) -> Optional[FinanceState]:
        """
        Load the stored state.

        Returns:
            The state, or None when nothing has been stored yet

        Raises:
            StorageError: If the stored data can't be read
        """
        pass

    @abstractmethod
    async def save(self, state: FinanceState) -> None:
        """
        Replace the stored state.

        Raises:
            StorageError: If the write fails
        """
        pass


class RemoteFinanceStorageInterface(ABC):
    """
    Remote-synced storage with one call per record change.

    Any implementation (Google Sheets, a hosted database, etc.)
    must implement these methods.
    """

    @abstractmethod
    async def load(self) -> Optional[FinanceState]:
        """
        Load balances, transactions, goals and settings.

        Returns:
            The state, or None when the user has no data yet
        """
        pass

    @abstractmethod
    async def insert_transaction(self, transaction: Transaction) -> None:
        """
        Inserting a row identical to a stored one is a no-op, so a retried
        insert whose first attempt landed succeeds.

        Raises:
            DuplicateError: If a transaction with this id already exists
            StorageError: If the insert fails
        """
        pass

    @abstractmethod
    async def delete_transaction(self, transaction_id: str) -> bool:
        """
        Returns:
            True if a row was deleted, False if the id was unknown
        """
        pass

    @abstractmethod
    async def upsert_balances(self, balances: Balances) -> None:
        pass

    @abstractmethod
    async def insert_goal(self, goal: SavingsGoal) -> None:
        pass

    @abstractmethod
    async def delete_goal(self, goal_id: str) -> bool:
        pass

    @abstractmethod
    async def update_goal(self, goal: SavingsGoal) -> None:
        """
        Raises:
            NotFoundError: If the goal doesn't exist remotely
        """
        pass

    @abstractmethod
    async def update_settings(self, settings: BudgetSettings) -> None:
        pass

    @abstractmethod
    async def clear_transactions(self) -> None:
        """Delete every transaction of the user."""
        pass

    @abstractmethod
    async def clear_goals(self) -> None:
        """Delete every savings goal of the user."""
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class DuplicateError(StorageError):
    """Attempted to insert a duplicate entity."""
    pass


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass


class DataFormatError(StorageError):
    """Stored data could not be parsed into records."""
    pass
