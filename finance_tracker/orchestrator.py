"""
Main Orchestrator for Finance Tracker

This module ties together all the components and defines the
end-to-end flow of every user action:

    intent → validate → sufficiency gate → ledger delta → commit → swap

DESIGN DECISION: The session enforces the boundaries:
- Nothing reaches the ledger or storage until validation passes
- A debit larger than its source balance is always rejected
- The in-memory state only changes after the commit succeeded
- Every step is logged under one correlation id

One FinanceSession owns one FinanceState. Mutations are serialized by an
asyncio.Lock and each builds a new immutable state, so readers always see
the last committed snapshot and never a half-applied one.
"""

import asyncio
from datetime import datetime
from typing import Any, Awaitable, Callable, Optional
from uuid import UUID

from finance_tracker import periods
from finance_tracker.audit import AuditLogger, create_correlation_id
from finance_tracker.budget import evaluate_budget as evaluate_daily_budget, not_applicable
from finance_tracker.config import AppSettings, get_settings
from finance_tracker.goals import (
    GoalNotFoundError,
    compute_progress,
    create_goal,
    find_goal,
    remove_goal,
    sync_goal,
)
from finance_tracker.ledger import (
    TransactionStore,
    apply_transaction,
    replay,
    reverse_transaction,
)
from finance_tracker.models.finance import (
    AccountType,
    Balances,
    BudgetEvaluation,
    BudgetSettings,
    DailyTotals,
    FinanceState,
    GoalProgress,
    PeriodSummary,
    SavingsGoal,
    Transaction,
    TransactionCategory,
    TransactionType,
    utc_now,
)
from finance_tracker.queries import PeriodAggregator
from finance_tracker.services.persistence import (
    LocalSnapshotPersistence,
    PartialCommitError,
    PersistenceError,
    PersistenceStrategy,
    RemoteSyncPersistence,
)
from finance_tracker.services.storage import (
    GoogleSheetsFinanceStorage,
    JsonFileStateStorage,
)
from finance_tracker.validation import (
    ConfigurationError,
    InsufficientBalanceError,
    TransactionValidator,
    ValidationError,
    coerce_amount,
    merge_budget_settings,
)


class FinanceSession:
    """
    Owns the finance state of one user and applies every change to it.

    Flow of add_transaction:
    1. Validate → schema, then semantics (ValidationError)
    2. Gate → amount within the source balance (InsufficientBalanceError)
    3. Budget → cash expenses are evaluated and logged, never blocked
    4. Ledger → new balances from the transaction delta
    5. Commit → through the persistence strategy
    6. Swap → only now does the session hold the new state

    A PartialCommitError (remote backend only) leaves the session on its
    previous state and marks it as needing reconcile().
    """

    def __init__(
        self,
        persistence: PersistenceStrategy,
        settings: Optional[AppSettings] = None,
        audit_logger: Optional[AuditLogger] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self._persistence = persistence
        self._settings = settings or get_settings().app
        self._audit_logger = audit_logger or AuditLogger()
        self._clock = clock or utc_now
        self._validator = TransactionValidator(
            max_description_length=self._settings.max_description_length
        )
        self._aggregator = PeriodAggregator(self._settings.tzinfo)
        self._lock = asyncio.Lock()
        self._state = self._default_state()
        self._store = TransactionStore()
        self._pending_reconciliation: Optional[PartialCommitError] = None

    @classmethod
    async def open(
        cls,
        persistence: PersistenceStrategy,
        settings: Optional[AppSettings] = None,
        audit_logger: Optional[AuditLogger] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> "FinanceSession":
        """Create a session and load its state once."""
        session = cls(persistence, settings, audit_logger, clock)
        await session.load()
        return session

    def _default_state(self) -> FinanceState:
        return FinanceState.empty(
            BudgetSettings(daily_cash_limit=self._settings.default_daily_cash_limit)
        )

    def _adopt(self, state: FinanceState, store: Optional[TransactionStore] = None) -> None:
        self._store = store if store is not None else TransactionStore(state.transactions)
        self._state = state

    async def load(self) -> FinanceState:
        """
        Load the stored state, or start from the default empty state.

        Raises:
            StorageError: If the backend can't be read
        """
        correlation_id = create_correlation_id()
        async with self._lock:
            state = await self._persistence.load()
            self._adopt(state if state is not None else self._default_state())
            self._pending_reconciliation = None
            self._audit_logger.log_session_loaded(
                transaction_count=len(self._state.transactions),
                goal_count=len(self._state.savings_goals),
                correlation_id=correlation_id,
            )
            return self._state

    async def _commit(self, commit: Awaitable[None], correlation_id: UUID) -> None:
        """Await a persistence commit and log any failure before re-raising."""
        try:
            await commit
        except PartialCommitError as e:
            self._pending_reconciliation = e
            self._audit_logger.log_partial_commit(
                operation=e.operation,
                failed_step=e.failed_step,
                completed_steps=e.completed_steps,
                error_message=str(e),
                correlation_id=correlation_id,
            )
            raise
        except PersistenceError as e:
            self._audit_logger.log_persistence_failed(
                operation=e.operation,
                failed_step=e.failed_step,
                error_message=str(e),
                correlation_id=correlation_id,
            )
            raise

    # ------------------------------------------------------------------
    # Read side: lock-free over the last committed snapshot
    # ------------------------------------------------------------------

    @property
    def state(self) -> FinanceState:
        return self._state

    @property
    def pending_reconciliation(self) -> Optional[PartialCommitError]:
        """The partial commit that left remote data inconsistent, if any."""
        return self._pending_reconciliation

    def list_transactions(self) -> tuple[Transaction, ...]:
        """All transactions, newest first."""
        return self._state.transactions

    def current_balances(self) -> Balances:
        return self._state.balances

    def budget_settings(self) -> BudgetSettings:
        return self._state.budget_settings

    def list_savings_goals(self) -> tuple[SavingsGoal, ...]:
        return self._state.savings_goals

    def goal_progress(self) -> list[GoalProgress]:
        """Progress of every goal against the pooled savings balance."""
        state = self._state
        return [
            compute_progress(goal, state.balances.savings)
            for goal in state.savings_goals
        ]

    def evaluate_budget(
        self,
        amount: Any,
        at: Optional[datetime] = None,
        transaction_type: Any = TransactionType.EXPENSE,
        account: Any = AccountType.CASH,
    ) -> BudgetEvaluation:
        """
        Evaluate a prospective transaction against today's cash spending.

        Only cash expenses are covered by the daily budget; any other
        intent evaluates ok. Call before add_transaction so the user can
        confirm a hard block.

        Raises:
            ValidationError: If the amount isn't a positive whole number
        """
        issues = []
        amount = coerce_amount(amount, issues)
        if issues:
            raise ValidationError(issues)

        state = self._state
        today_total = self._aggregator.today_cash_expense_total(
            state.transactions, at or self._clock()
        )
        if (transaction_type, account) != (TransactionType.EXPENSE, AccountType.CASH):
            return not_applicable(today_total, state.budget_settings.daily_cash_limit)
        return evaluate_daily_budget(
            prospective_amount=amount,
            today_total=today_total,
            daily_cash_limit=state.budget_settings.daily_cash_limit,
            warning_ratio=str(self._settings.budget_warning_ratio),
            notifications_enabled=state.budget_settings.enable_notifications,
        )

    def statistics(self, at: Optional[datetime] = None) -> PeriodSummary:
        """Income and expense for today, this week and this month."""
        return self._aggregator.period_summary(self._state.transactions, at or self._clock())

    def last_7_days(self, at: Optional[datetime] = None) -> list[DailyTotals]:
        return self._aggregator.last_7_days(self._state.transactions, at or self._clock())

    def expenses_by_category(
        self, at: Optional[datetime] = None
    ) -> dict[TransactionCategory, int]:
        """Expenses of the current month per category."""
        start, end = periods.month_window(at or self._clock(), self._aggregator.tz)
        return self._aggregator.expenses_by_category(self._state.transactions, start, end)

    def expenses_by_account(self, at: Optional[datetime] = None) -> dict[AccountType, int]:
        """Expenses of the current month per source account."""
        start, end = periods.month_window(at or self._clock(), self._aggregator.tz)
        return self._aggregator.expenses_by_account(self._state.transactions, start, end)

    # ------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------

    async def add_transaction(
        self,
        transaction_type: Any,
        amount: Any,
        description: Any,
        account: Any,
        target_account: Any = None,
        category: Any = None,
    ) -> Transaction:
        """
        Record a transaction and apply it to the balances.

        Returns:
            The stored transaction

        Raises:
            ValidationError: Malformed intent; nothing changes
            InsufficientBalanceError: Debit larger than the source balance
            PersistenceError: Commit failed; nothing changes in memory
            PartialCommitError: Remote commit half-applied; see reconcile()
        """
        correlation_id = create_correlation_id()

        async with self._lock:
            state = self._state
            now = self._clock()

            try:
                transaction = self._validator.build_transaction(
                    transaction_type,
                    amount,
                    description,
                    account,
                    target_account=target_account,
                    category=category,
                    now=now,
                )
                self._validator.check_sufficient_balance(state.balances, transaction)
            except ValidationError as e:
                self._audit_logger.log_transaction_rejected(
                    reason="validation",
                    error_message=str(e),
                    details={
                        "issues": [
                            {"field": i.field, "type": i.issue_type, "message": i.message}
                            for i in e.issues
                        ]
                    },
                    correlation_id=correlation_id,
                )
                raise
            except InsufficientBalanceError as e:
                self._audit_logger.log_transaction_rejected(
                    reason="insufficient_balance",
                    error_message=str(e),
                    details={
                        "account": e.account.value,
                        "available": e.available,
                        "requested": e.requested,
                    },
                    correlation_id=correlation_id,
                )
                raise

            if (
                transaction.type == TransactionType.EXPENSE
                and transaction.account == AccountType.CASH
            ):
                # Advisory only; a hard block was confirmed by the caller
                evaluation = self.evaluate_budget(transaction.amount, at=now)
                self._audit_logger.log_budget_evaluation(evaluation, correlation_id)

            store = self._store.insert(transaction)
            new_state = state.model_copy(update={
                "balances": apply_transaction(state.balances, transaction),
                "transactions": store.list(),
            })

            await self._commit(
                self._persistence.commit_transaction_added(new_state, transaction),
                correlation_id,
            )
            self._adopt(new_state, store)

            self._audit_logger.log_transaction_added(transaction, correlation_id)
            return transaction

    async def delete_transaction(self, transaction_id: str) -> bool:
        """
        Delete a transaction and reverse its effect on the balances.

        Returns:
            True if deleted, False if no transaction has this id (nothing
            is persisted and the balances stay as they are)
        """
        correlation_id = create_correlation_id()

        async with self._lock:
            state = self._state
            store, removed = self._store.remove_by_id(transaction_id)
            if removed is None:
                self._audit_logger.log_delete_not_found(transaction_id, correlation_id)
                return False

            new_state = state.model_copy(update={
                "balances": reverse_transaction(state.balances, removed),
                "transactions": store.list(),
            })

            await self._commit(
                self._persistence.commit_transaction_deleted(new_state, removed),
                correlation_id,
            )
            self._adopt(new_state, store)

            self._audit_logger.log_transaction_deleted(removed, correlation_id)
            return True

    # ------------------------------------------------------------------
    # Savings goals
    # ------------------------------------------------------------------

    async def add_savings_goal(
        self,
        name: Any,
        target_amount: Any,
        deadline: Optional[datetime] = None,
    ) -> SavingsGoal:
        """
        Raises:
            GoalValidationError: Empty name or non-positive target
        """
        correlation_id = create_correlation_id()

        async with self._lock:
            state = self._state
            goal = create_goal(name, target_amount, deadline, now=self._clock())

            new_state = state.model_copy(update={
                "savings_goals": state.savings_goals + (goal,),
            })
            await self._commit(
                self._persistence.commit_goal_added(new_state, goal),
                correlation_id,
            )
            self._adopt(new_state, self._store)

            self._audit_logger.log_goal_created(goal, correlation_id)
            return goal

    async def delete_savings_goal(self, goal_id: str) -> bool:
        """Returns False when no goal has this id."""
        correlation_id = create_correlation_id()

        async with self._lock:
            state = self._state
            remaining, removed = remove_goal(state.savings_goals, goal_id)
            if removed is None:
                self._audit_logger.log_goal_deleted(goal_id, False, correlation_id)
                return False

            new_state = state.model_copy(update={"savings_goals": remaining})
            await self._commit(
                self._persistence.commit_goal_deleted(new_state, goal_id),
                correlation_id,
            )
            self._adopt(new_state, self._store)

            self._audit_logger.log_goal_deleted(goal_id, True, correlation_id)
            return True

    async def sync_goal_progress(self, goal_id: str) -> SavingsGoal:
        """
        Refresh a goal's cached current_amount from the savings pool.

        Raises:
            GoalNotFoundError: If no goal has this id
        """
        correlation_id = create_correlation_id()

        async with self._lock:
            state = self._state
            goal = find_goal(state.savings_goals, goal_id)
            if goal is None:
                raise GoalNotFoundError(goal_id)

            synced = sync_goal(goal, state.balances.savings)
            new_state = state.model_copy(update={
                "savings_goals": tuple(
                    synced if g.id == goal_id else g for g in state.savings_goals
                ),
            })
            await self._commit(
                self._persistence.commit_goal_updated(new_state, synced),
                correlation_id,
            )
            self._adopt(new_state, self._store)

            self._audit_logger.log_goal_synced(synced, correlation_id)
            return synced

    # ------------------------------------------------------------------
    # Settings, reset and reconciliation
    # ------------------------------------------------------------------

    async def update_budget_settings(self, **partial: Any) -> BudgetSettings:
        """
        Merge a partial update into the budget settings.

        Raises:
            ConfigurationError: Unknown key or invalid value; nothing is persisted
        """
        correlation_id = create_correlation_id()

        async with self._lock:
            state = self._state
            try:
                settings = merge_budget_settings(state.budget_settings, partial)
            except ConfigurationError as e:
                self._audit_logger.log_settings_rejected(str(e), correlation_id)
                raise

            new_state = state.model_copy(update={"budget_settings": settings})
            await self._commit(
                self._persistence.commit_settings(new_state),
                correlation_id,
            )
            self._adopt(new_state, self._store)

            self._audit_logger.log_settings_updated(settings.model_dump(), correlation_id)
            return settings

    async def reset_all(self) -> None:
        """Delete every transaction and goal, zero the balances, restore default settings."""
        correlation_id = create_correlation_id()

        async with self._lock:
            new_state = self._default_state()
            await self._commit(
                self._persistence.commit_reset(new_state),
                correlation_id,
            )
            self._adopt(new_state, TransactionStore())
            self._pending_reconciliation = None

            self._audit_logger.log_data_reset(correlation_id)

    async def reconcile(self) -> Balances:
        """
        Rebuild the balances from the stored transaction list.

        Reloads the backend, replays its transactions from zero, writes the
        resulting balances back and adopts the reconciled state. Clears
        pending_reconciliation on success.

        Raises:
            StorageError: If the reload fails
            PersistenceError: If writing the balances fails (still pending)
        """
        correlation_id = create_correlation_id()

        async with self._lock:
            stored = await self._persistence.load()
            if stored is None:
                stored = self._default_state()

            balances = replay(stored.transactions)
            new_state = stored.model_copy(update={"balances": balances})
            await self._commit(
                self._persistence.commit_balances(new_state),
                correlation_id,
            )
            self._adopt(new_state)
            self._pending_reconciliation = None

            self._audit_logger.log_reconciled(
                balances=balances.model_dump(),
                transaction_count=len(new_state.transactions),
                correlation_id=correlation_id,
            )
            return balances


def create_persistence(backend: Optional[str] = None) -> PersistenceStrategy:
    """
    Build the persistence strategy for a backend name.

    Args:
        backend: "local" or "google_sheets". Defaults to
                 FINANCE_STORAGE_BACKEND.
    """
    backend = backend or get_settings().app.storage_backend

    if backend == "local":
        return LocalSnapshotPersistence(JsonFileStateStorage())
    if backend == "google_sheets":
        return RemoteSyncPersistence(GoogleSheetsFinanceStorage())
    raise ValueError(f"Unknown storage backend: {backend}")


async def create_session(
    backend: Optional[str] = None,
    settings: Optional[AppSettings] = None,
    audit_logger: Optional[AuditLogger] = None,
) -> FinanceSession:
    """
    Factory function to create a loaded session.

    Returns:
        A FinanceSession holding the stored state (or the empty default)
    """
    settings = settings or get_settings().app
    persistence = create_persistence(backend or settings.storage_backend)
    return await FinanceSession.open(
        persistence,
        settings=settings,
        audit_logger=audit_logger,
    )
