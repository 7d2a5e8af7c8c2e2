"""
Balance Mutation Engine

DESIGN DECISION: There is exactly one function that turns a transaction
into balance changes. Adding a transaction applies its delta, deleting it
applies the same delta with every sign flipped. Both storage backends go
through this module, so the two can never drift apart.

| type     | account | effect                            |
|----------|---------|-----------------------------------|
| income   | bank    | bank += amount                    |
| income   | cash    | cash += amount                    |
| expense  | bank    | bank -= amount                    |
| expense  | cash    | cash -= amount                    |
| expense  | savings | savings -= amount                 |
| transfer | bank    | bank -= amount; cash += amount    |
| transfer | cash    | cash -= amount; bank += amount    |
| save     | bank    | bank -= amount; savings += amount |
| save     | cash    | cash -= amount; savings += amount |

Any other combination is a guarded no-op (zero delta). The validator
rejects those intents, so the guard only fires on malformed stored data.
"""

from typing import Iterable, Optional

from finance_tracker.audit import get_logger
from finance_tracker.models.finance import (
    AccountType,
    BalanceDelta,
    Balances,
    Transaction,
    TransactionType,
    TRANSFER_ACCOUNTS,
)

logger = get_logger(__name__)

ZERO_DELTA = BalanceDelta()


def _single(account: AccountType, amount: int) -> BalanceDelta:
    return BalanceDelta(**{account.value: amount})


def compute_delta(
    transaction_type: TransactionType,
    amount: int,
    account: AccountType,
    target_account: Optional[AccountType] = None,
) -> BalanceDelta:
    """
    Balance changes caused by applying a transaction.

    Args:
        transaction_type: Transaction type
        amount: Positive amount in whole currency units
        account: Account primarily debited or credited
        target_account: Receiving account, transfers only

    Returns:
        The signed change to all three balances
    """
    transaction_type = TransactionType(transaction_type)
    account = AccountType(account)
    target_account = AccountType(target_account) if target_account else None

    if amount <= 0:
        return _guard(transaction_type, amount, account, target_account, "non_positive_amount")

    if transaction_type == TransactionType.INCOME:
        if account == AccountType.SAVINGS:
            return _guard(transaction_type, amount, account, target_account, "income_into_savings")
        return _single(account, amount)

    if transaction_type == TransactionType.EXPENSE:
        return _single(account, -amount)

    if transaction_type == TransactionType.TRANSFER:
        # The counter-account is always the other one of bank/cash
        if (
            account not in TRANSFER_ACCOUNTS
            or target_account not in TRANSFER_ACCOUNTS
            or target_account == account
        ):
            return _guard(transaction_type, amount, account, target_account, "unresolvable_transfer")
        return BalanceDelta(**{account.value: -amount, target_account.value: amount})

    if transaction_type == TransactionType.SAVE:
        if account == AccountType.SAVINGS:
            return _guard(transaction_type, amount, account, target_account, "save_from_savings")
        return BalanceDelta(**{account.value: -amount, "savings": amount})

    return _guard(transaction_type, amount, account, target_account, "unknown_type")


def _guard(transaction_type, amount, account, target_account, reason: str) -> BalanceDelta:
    logger.warning(
        "ledger_guard_noop",
        reason=reason,
        type=transaction_type.value,
        amount=amount,
        account=account.value,
        target_account=target_account.value if target_account else None,
    )
    return ZERO_DELTA


def transaction_delta(transaction: Transaction) -> BalanceDelta:
    """Delta caused by a stored transaction."""
    return compute_delta(
        transaction.type,
        transaction.amount,
        transaction.account,
        transaction.target_account,
    )


def reverse_delta(transaction: Transaction) -> BalanceDelta:
    """Delta that undoes a stored transaction: its own delta with signs flipped."""
    return transaction_delta(transaction).negated()


def apply_delta(balances: Balances, delta: BalanceDelta) -> Balances:
    """Apply a delta to all three balances in one step."""
    return Balances(
        bank=balances.bank + delta.bank,
        cash=balances.cash + delta.cash,
        savings=balances.savings + delta.savings,
    )


def apply_transaction(balances: Balances, transaction: Transaction) -> Balances:
    return apply_delta(balances, transaction_delta(transaction))


def reverse_transaction(balances: Balances, transaction: Transaction) -> Balances:
    return apply_delta(balances, reverse_delta(transaction))


def replay(transactions: Iterable[Transaction]) -> Balances:
    """
    Rebuild balances from zero.

    Transactions are given newest first (store order), so they are
    applied in reverse to follow insertion order.
    """
    balances = Balances()
    for transaction in reversed(tuple(transactions)):
        balances = apply_transaction(balances, transaction)
    return balances
