"""Balance ledger package."""

from finance_tracker.ledger.engine import (
    apply_delta,
    apply_transaction,
    compute_delta,
    replay,
    reverse_delta,
    reverse_transaction,
    transaction_delta,
)
from finance_tracker.ledger.store import TransactionStore

__all__ = [
    "TransactionStore",
    "apply_delta",
    "apply_transaction",
    "compute_delta",
    "replay",
    "reverse_delta",
    "reverse_transaction",
    "transaction_delta",
]
