"""
Transaction Store

Ordered collection of transactions, newest first.

DESIGN DECISION: The store is a persistent value. insert and remove_by_id
return a new store and leave the original untouched, so a reader holding
an older store keeps a consistent snapshot while a writer moves on.
"""

from typing import Iterable, Iterator, Optional

from finance_tracker.models.finance import Transaction
from finance_tracker.services.storage.interface import DuplicateError


class TransactionStore:
    """Immutable, newest-first sequence of transactions with unique ids."""

    __slots__ = ("_transactions",)

    def __init__(self, transactions: Iterable[Transaction] = ()):
        items = tuple(transactions)
        seen = set()
        for transaction in items:
            if transaction.id in seen:
                raise DuplicateError(f"Duplicate transaction id: {transaction.id}")
            seen.add(transaction.id)
        self._transactions = items

    def insert(self, transaction: Transaction) -> "TransactionStore":
        """Return a new store with the transaction prepended."""
        if self.find_by_id(transaction.id) is not None:
            raise DuplicateError(f"Duplicate transaction id: {transaction.id}")
        return TransactionStore._from_trusted((transaction,) + self._transactions)

    def remove_by_id(
        self,
        transaction_id: str,
    ) -> tuple["TransactionStore", Optional[Transaction]]:
        """
        Remove a transaction.

        Returns:
            (new_store, removed_transaction). When the id is unknown the
            same store is returned together with None.
        """
        removed = self.find_by_id(transaction_id)
        if removed is None:
            return self, None
        remaining = tuple(t for t in self._transactions if t.id != transaction_id)
        return TransactionStore._from_trusted(remaining), removed

    def find_by_id(self, transaction_id: str) -> Optional[Transaction]:
        for transaction in self._transactions:
            if transaction.id == transaction_id:
                return transaction
        return None

    def list(self) -> tuple[Transaction, ...]:
        """All transactions, newest first."""
        return self._transactions

    @classmethod
    def _from_trusted(cls, items: tuple[Transaction, ...]) -> "TransactionStore":
        store = cls.__new__(cls)
        store._transactions = items
        return store

    def __len__(self) -> int:
        return len(self._transactions)

    def __iter__(self) -> Iterator[Transaction]:
        return iter(self._transactions)

    def __contains__(self, transaction_id: object) -> bool:
        return any(t.id == transaction_id for t in self._transactions)

    def __repr__(self) -> str:
        return f"TransactionStore({len(self._transactions)} transactions)"
