"""
Integration tests for FinanceSession over both persistence strategies.

Storage is faked in memory (see conftest.py); failures are injected per step.
"""

import asyncio

import pytest

from finance_tracker.goals import GoalNotFoundError
from finance_tracker.ledger import replay
from finance_tracker.models.finance import (
    AccountType,
    Balances,
    BudgetSettings,
    BudgetStatus,
    FinanceState,
    TransactionCategory,
)
from finance_tracker.orchestrator import FinanceSession, create_persistence
from finance_tracker.services.persistence import (
    LocalSnapshotPersistence,
    PartialCommitError,
    PersistenceError,
    RemoteSyncPersistence,
)
from finance_tracker.validation import (
    ConfigurationError,
    GoalValidationError,
    InsufficientBalanceError,
    ValidationError,
)


@pytest.fixture
def open_local(state_storage, app_settings, audit_logger, clock):
    async def _open():
        return await FinanceSession.open(
            LocalSnapshotPersistence(state_storage),
            settings=app_settings,
            audit_logger=audit_logger,
            clock=clock,
        )
    return _open


@pytest.fixture
def open_remote(remote_storage, app_settings, audit_logger, clock):
    async def _open():
        return await FinanceSession.open(
            RemoteSyncPersistence(remote_storage),
            settings=app_settings,
            audit_logger=audit_logger,
            clock=clock,
        )
    return _open


class TestSessionLoad:
    """Tests for opening a session."""

    @pytest.mark.asyncio
    async def test_empty_storage_gives_default_state(self, open_local):
        """Test that nothing stored means zero balances and default settings."""
        session = await open_local()
        assert session.current_balances() == Balances()
        assert session.list_transactions() == ()
        assert session.budget_settings().daily_cash_limit == 30000
        assert session.pending_reconciliation is None

    @pytest.mark.asyncio
    async def test_stored_state_is_loaded(self, open_local, state_storage):
        """Test that a stored state is adopted as is."""
        state_storage.state = FinanceState(
            balances=Balances(bank=5000),
            budget_settings=BudgetSettings(daily_cash_limit=45000),
        )
        session = await open_local()
        assert session.current_balances().bank == 5000
        assert session.budget_settings().daily_cash_limit == 45000

    @pytest.mark.asyncio
    async def test_reopen_sees_committed_data(self, open_local):
        """Test that a second session sees what the first committed."""
        first = await open_local()
        t = await first.add_transaction("income", 25000, "Gaji", "bank")

        second = await open_local()
        assert second.current_balances() == Balances(bank=25000)
        assert second.list_transactions()[0].id == t.id


class TestAddTransaction:
    """Tests for recording transactions."""

    @pytest.mark.asyncio
    async def test_income_and_expense(self, open_local, state_storage):
        """Test balances move and the record is persisted."""
        session = await open_local()
        await session.add_transaction("income", 100000, "Gaji", "bank")
        t = await session.add_transaction("expense", 15000, "Makan", "bank", category="makan")

        assert session.current_balances() == Balances(bank=85000)
        assert t.category == TransactionCategory.MAKAN
        assert session.list_transactions()[0].id == t.id
        assert state_storage.state.balances == Balances(bank=85000)
        assert state_storage.save_count == 2

    @pytest.mark.asyncio
    async def test_insufficient_balance(self, open_local, state_storage, recording_logger):
        """Test 10001 from a 10000 cash balance fails and 10000 succeeds."""
        session = await open_local()
        await session.add_transaction("income", 10000, "Uang saku", "cash")
        saves = state_storage.save_count

        with pytest.raises(InsufficientBalanceError):
            await session.add_transaction("expense", 10001, "Belanja", "cash")
        assert session.current_balances().cash == 10000
        assert len(session.list_transactions()) == 1
        assert state_storage.save_count == saves
        assert "transaction_rejected" in recording_logger.event_types()

        await session.add_transaction("expense", 10000, "Belanja", "cash")
        assert session.current_balances().cash == 0

    @pytest.mark.asyncio
    async def test_validation_error_changes_nothing(self, open_local, state_storage):
        """Test that a malformed intent never reaches storage."""
        session = await open_local()
        with pytest.raises(ValidationError):
            await session.add_transaction("income", 100, "Bonus", "savings")
        with pytest.raises(ValidationError):
            await session.add_transaction("income", 100, "Gaji", "bank", category="makan")
        assert session.current_balances() == Balances()
        assert state_storage.save_count == 0

    @pytest.mark.asyncio
    async def test_transfer_then_delete_restores_balances(self, open_local):
        """Test transfer symmetry and the inverse law through the session."""
        session = await open_local()
        await session.add_transaction("income", 50000, "Gaji", "bank")
        t = await session.add_transaction(
            "transfer", 20000, "Tarik tunai", "bank", target_account="cash"
        )
        assert session.current_balances() == Balances(bank=30000, cash=20000)

        assert await session.delete_transaction(t.id) is True
        assert session.current_balances() == Balances(bank=50000, cash=0)

    @pytest.mark.asyncio
    async def test_save_moves_into_savings(self, open_local):
        """Test that a save debits cash and credits savings."""
        session = await open_local()
        await session.add_transaction("income", 10000, "Uang saku", "cash")
        await session.add_transaction("save", 4000, "Nabung", "cash")
        assert session.current_balances() == Balances(cash=6000, savings=4000)

    @pytest.mark.asyncio
    async def test_snapshot_is_immutable(self, open_local):
        """Test that a state held by a reader never changes underneath it."""
        session = await open_local()
        snapshot = session.state
        await session.add_transaction("income", 1000, "Gaji", "bank")
        assert snapshot.balances == Balances()
        assert snapshot.transactions == ()

    @pytest.mark.asyncio
    async def test_concurrent_adds_are_serialized(self, open_local):
        """Test that concurrent mutations never lose an update."""
        session = await open_local()
        await asyncio.gather(*(
            session.add_transaction("income", 100, f"Gaji {i}", "cash")
            for i in range(20)
        ))
        assert session.current_balances().cash == 2000
        assert len(session.list_transactions()) == 20
        assert replay(session.list_transactions()) == session.current_balances()


class TestDeleteTransaction:
    """Tests for deleting transactions."""

    @pytest.mark.asyncio
    async def test_delete_is_idempotent(self, open_local, state_storage, recording_logger):
        """Test that deleting twice reverses the balances only once."""
        session = await open_local()
        t = await session.add_transaction("income", 7000, "Gaji", "cash")

        assert await session.delete_transaction(t.id) is True
        saves = state_storage.save_count
        assert await session.delete_transaction(t.id) is False

        assert session.current_balances() == Balances()
        assert state_storage.save_count == saves
        assert "delete_not_found" in recording_logger.event_types()


class TestLocalRollback:
    """A failed local save leaves the session on its previous state."""

    @pytest.mark.asyncio
    async def test_failed_save_keeps_previous_state(
        self, open_local, state_storage, recording_logger
    ):
        """Test that balances and the list are unchanged after a failed save."""
        session = await open_local()
        await session.add_transaction("income", 10000, "Gaji", "bank")

        state_storage.fail_save = True
        with pytest.raises(PersistenceError) as exc_info:
            await session.add_transaction("expense", 3000, "Makan", "bank")

        assert not isinstance(exc_info.value, PartialCommitError)
        assert exc_info.value.failed_step == "save"
        assert session.current_balances() == Balances(bank=10000)
        assert len(session.list_transactions()) == 1
        assert session.pending_reconciliation is None
        assert "persistence_failed" in recording_logger.event_types()

    @pytest.mark.asyncio
    async def test_failed_delete_keeps_transaction(self, open_local, state_storage):
        """Test that a delete whose save fails can be retried."""
        session = await open_local()
        t = await session.add_transaction("income", 10000, "Gaji", "bank")

        state_storage.fail_save = True
        with pytest.raises(PersistenceError):
            await session.delete_transaction(t.id)
        assert session.current_balances() == Balances(bank=10000)

        state_storage.fail_save = False
        assert await session.delete_transaction(t.id) is True
        assert session.current_balances() == Balances()


class TestRemoteSync:
    """Fine-grained remote commits, partial failures and reconciliation."""

    @pytest.mark.asyncio
    async def test_step_order(self, open_remote, remote_storage):
        """Test that the record is written before the balances."""
        session = await open_remote()
        await session.add_transaction("income", 1000, "Gaji", "bank")
        assert remote_storage.calls == ["load", "insert_transaction", "upsert_balances"]
        assert remote_storage.balances == Balances(bank=1000)

    @pytest.mark.asyncio
    async def test_first_step_failure_is_not_partial(self, open_remote, remote_storage):
        """Test that nothing applied means a plain PersistenceError."""
        session = await open_remote()
        remote_storage.fail_on = {"insert_transaction"}

        with pytest.raises(PersistenceError) as exc_info:
            await session.add_transaction("income", 1000, "Gaji", "bank")

        assert not isinstance(exc_info.value, PartialCommitError)
        assert exc_info.value.completed_steps == []
        assert session.pending_reconciliation is None
        assert remote_storage.transactions == []

    @pytest.mark.asyncio
    async def test_partial_commit_then_reconcile(
        self, open_remote, remote_storage, recording_logger
    ):
        """Test that a failed balance update is reported and repaired by replay."""
        session = await open_remote()
        await session.add_transaction("income", 5000, "Gaji", "bank")

        remote_storage.fail_on = {"upsert_balances"}
        with pytest.raises(PartialCommitError) as exc_info:
            await session.add_transaction("income", 2000, "Bonus", "cash")

        error = exc_info.value
        assert error.operation == "add_transaction"
        assert error.failed_step == "upsert_balances"
        assert error.completed_steps == ["insert_transaction"]
        assert session.pending_reconciliation is error
        # Session stays on its last committed state
        assert session.current_balances() == Balances(bank=5000)
        assert len(session.list_transactions()) == 1
        # Remote holds the record with stale balances
        assert len(remote_storage.transactions) == 2
        assert remote_storage.balances == Balances(bank=5000)
        assert "partial_commit" in recording_logger.event_types()

        remote_storage.fail_on = set()
        balances = await session.reconcile()

        assert balances == Balances(bank=5000, cash=2000)
        assert session.current_balances() == balances
        assert remote_storage.balances == balances
        assert len(session.list_transactions()) == 2
        assert session.pending_reconciliation is None
        assert "reconciled" in recording_logger.event_types()

    @pytest.mark.asyncio
    async def test_failed_reconcile_stays_pending(self, open_remote, remote_storage):
        """Test that a reconcile whose write fails keeps the pending marker."""
        session = await open_remote()
        remote_storage.fail_on = {"upsert_balances"}
        with pytest.raises(PartialCommitError):
            await session.add_transaction("income", 2000, "Bonus", "cash")

        with pytest.raises(PersistenceError):
            await session.reconcile()
        assert session.pending_reconciliation is not None
        assert session.current_balances() == Balances()

    @pytest.mark.asyncio
    async def test_remote_delete(self, open_remote, remote_storage):
        """Test that delete removes the row and rewrites the balances."""
        session = await open_remote()
        t = await session.add_transaction("income", 3000, "Gaji", "cash")
        assert await session.delete_transaction(t.id) is True
        assert remote_storage.transactions == []
        assert remote_storage.balances == Balances()

    @pytest.mark.asyncio
    async def test_remote_reset(self, open_remote, remote_storage):
        """Test that reset clears rows, zeroes balances and restores settings."""
        session = await open_remote()
        await session.add_transaction("income", 3000, "Gaji", "cash")
        await session.add_savings_goal("Laptop", 80000)
        await session.update_budget_settings(daily_cash_limit=10000)

        await session.reset_all()

        assert remote_storage.transactions == []
        assert remote_storage.goals == []
        assert remote_storage.balances == Balances()
        assert remote_storage.settings == BudgetSettings()

    @pytest.mark.asyncio
    async def test_reset_failing_after_transactions_cleared(self, open_remote, remote_storage):
        """Test that a reset stopping at the goals sheet is a partial commit."""
        session = await open_remote()
        await session.add_transaction("income", 3000, "Gaji", "cash")
        remote_storage.fail_on = {"clear_goals"}

        with pytest.raises(PartialCommitError) as exc_info:
            await session.reset_all()

        assert exc_info.value.failed_step == "clear_goals"
        assert exc_info.value.completed_steps == ["clear_transactions"]
        assert session.pending_reconciliation is exc_info.value
        assert len(session.list_transactions()) == 1
        assert remote_storage.transactions == []


class TestBudget:
    """Daily cash budget through the session."""

    @pytest.mark.asyncio
    async def test_evaluate_budget(self, open_local):
        """Test warning and hard block after 20000 cash spent today."""
        session = await open_local()
        await session.add_transaction("income", 50000, "Uang saku", "cash")
        await session.add_transaction("expense", 20000, "Belanja", "cash")

        assert session.evaluate_budget(5000).status == BudgetStatus.WARNING
        hard = session.evaluate_budget(15000)
        assert hard.status == BudgetStatus.HARD_BLOCK
        assert hard.requires_confirmation

    @pytest.mark.asyncio
    async def test_bank_expenses_do_not_count(self, open_local):
        """Test that only cash expenses count towards today's total."""
        session = await open_local()
        await session.add_transaction("income", 50000, "Gaji", "bank")
        await session.add_transaction("expense", 29000, "Sewa", "bank")
        assert session.evaluate_budget(1000).status == BudgetStatus.OK

    @pytest.mark.asyncio
    async def test_other_intents_evaluate_ok(self, open_local):
        """Test that bank expenses and non-expenses are outside the cash budget."""
        session = await open_local()
        await session.add_transaction("income", 50000, "Uang saku", "cash")
        await session.add_transaction("expense", 25000, "Belanja", "cash")

        bank = session.evaluate_budget(90000, account="bank")
        assert bank.status == BudgetStatus.OK
        assert bank.projected_total == 25000
        assert not bank.should_notify
        transfer = session.evaluate_budget(
            90000, transaction_type="transfer", account=AccountType.CASH
        )
        assert transfer.status == BudgetStatus.OK

    @pytest.mark.asyncio
    @pytest.mark.parametrize("amount", [0, -500, 12.5, "1000", True])
    async def test_evaluate_budget_rejects_bad_amounts(self, open_local, amount):
        """Test that the prospective amount follows the add_transaction rules."""
        session = await open_local()
        with pytest.raises(ValidationError):
            session.evaluate_budget(amount)

    @pytest.mark.asyncio
    async def test_over_limit_is_never_blocked(self, open_local, recording_logger):
        """Test that a confirmed over-limit expense is recorded and logged."""
        session = await open_local()
        await session.add_transaction("income", 50000, "Uang saku", "cash")
        await session.add_transaction("expense", 35000, "Belanja", "cash")

        assert session.current_balances().cash == 15000
        assert "budget_exceeded" in recording_logger.event_types()

    @pytest.mark.asyncio
    async def test_yesterday_does_not_count(self, open_local, clock):
        """Test that the day boundary resets today's total."""
        session = await open_local()
        await session.add_transaction("income", 50000, "Uang saku", "cash")
        await session.add_transaction("expense", 25000, "Belanja", "cash")
        clock.advance(days=1)
        assert session.evaluate_budget(1000).status == BudgetStatus.OK


class TestBudgetSettings:
    """Tests for updating budget settings."""

    @pytest.mark.asyncio
    async def test_update_settings(self, open_local, state_storage):
        """Test a partial update is merged and persisted."""
        session = await open_local()
        settings = await session.update_budget_settings(daily_cash_limit=50000)
        assert settings.daily_cash_limit == 50000
        assert settings.enable_notifications is True
        assert state_storage.state.budget_settings == settings

    @pytest.mark.asyncio
    async def test_invalid_settings_not_persisted(
        self, open_local, state_storage, recording_logger
    ):
        """Test that a zero limit raises ConfigurationError before persisting."""
        session = await open_local()
        with pytest.raises(ConfigurationError):
            await session.update_budget_settings(daily_cash_limit=0)
        assert state_storage.save_count == 0
        assert session.budget_settings().daily_cash_limit == 30000
        assert "settings_rejected" in recording_logger.event_types()

    @pytest.mark.asyncio
    async def test_notifications_flag(self, open_local):
        """Test that disabling notifications only clears should_notify."""
        session = await open_local()
        await session.update_budget_settings(enable_notifications=False)
        evaluation = session.evaluate_budget(40000)
        assert evaluation.status == BudgetStatus.HARD_BLOCK
        assert not evaluation.should_notify


class TestSavingsGoals:
    """Savings goals through the session."""

    @pytest.mark.asyncio
    async def test_goal_progress_from_pool(self, open_local):
        """Test two goals share the pool: 100% and 75% with 60000 saved."""
        session = await open_local()
        await session.add_transaction("income", 60000, "Gaji", "bank")
        await session.add_transaction("save", 60000, "Nabung", "bank")
        small = await session.add_savings_goal("HP", 50000)
        big = await session.add_savings_goal("Laptop", 80000)

        progress = {p.goal_id: p for p in session.goal_progress()}
        assert progress[small.id].percent == 100
        assert progress[big.id].percent == 75
        assert [g.id for g in session.list_savings_goals()] == [small.id, big.id]

    @pytest.mark.asyncio
    async def test_invalid_goal(self, open_local, state_storage):
        """Test that a bad goal is rejected before persisting."""
        session = await open_local()
        with pytest.raises(GoalValidationError):
            await session.add_savings_goal("", 1000)
        assert state_storage.save_count == 0

    @pytest.mark.asyncio
    async def test_delete_goal(self, open_local):
        """Test deleting a known and an unknown goal."""
        session = await open_local()
        goal = await session.add_savings_goal("HP", 50000)
        assert await session.delete_savings_goal(goal.id) is True
        assert await session.delete_savings_goal(goal.id) is False
        assert session.list_savings_goals() == ()

    @pytest.mark.asyncio
    async def test_sync_goal_progress(self, open_remote, remote_storage):
        """Test that sync caches the pool on the goal, remotely too."""
        session = await open_remote()
        await session.add_transaction("income", 30000, "Gaji", "cash")
        await session.add_transaction("save", 20000, "Nabung", "cash")
        goal = await session.add_savings_goal("HP", 50000)

        synced = await session.sync_goal_progress(goal.id)

        assert synced.current_amount == 20000
        assert session.list_savings_goals()[0].current_amount == 20000
        assert remote_storage.goals[0].current_amount == 20000

    @pytest.mark.asyncio
    async def test_sync_unknown_goal(self, open_local):
        """Test that syncing an unknown goal raises GoalNotFoundError."""
        session = await open_local()
        with pytest.raises(GoalNotFoundError):
            await session.sync_goal_progress("missing")


class TestResetAndStatistics:
    """Tests for reset and the statistics views."""

    @pytest.mark.asyncio
    async def test_reset_all(self, open_local, state_storage, recording_logger):
        """Test that reset empties everything and restores defaults."""
        session = await open_local()
        await session.add_transaction("income", 3000, "Gaji", "cash")
        await session.add_savings_goal("HP", 50000)
        await session.update_budget_settings(daily_cash_limit=10000)

        await session.reset_all()

        assert session.state == FinanceState.empty()
        assert state_storage.state == FinanceState.empty()
        assert "data_reset" in recording_logger.event_types()

    @pytest.mark.asyncio
    async def test_statistics(self, open_local, clock):
        """Test today/week/month summaries and breakdowns."""
        session = await open_local()
        await session.add_transaction("income", 100000, "Gaji", "bank")
        await session.add_transaction("transfer", 30000, "Tarik", "bank", target_account="cash")
        await session.add_transaction("expense", 12000, "Makan", "cash", category="makan")
        await session.add_transaction("expense", 8000, "Listrik", "bank", category="rumah")

        summary = session.statistics()
        assert summary.today.income == 100000
        assert summary.today.expense == 20000
        assert summary.month.expense == 20000

        assert session.expenses_by_category() == {
            TransactionCategory.MAKAN: 12000,
            TransactionCategory.RUMAH: 8000,
        }
        assert session.expenses_by_account() == {
            AccountType.CASH: 12000,
            AccountType.BANK: 8000,
        }

        days = session.last_7_days()
        assert len(days) == 7
        assert days[-1].expense == 20000

        clock.advance(days=31)
        assert session.statistics().month.expense == 0


class TestCreatePersistence:
    """Tests for the backend factory."""

    def test_local_backend(self, tmp_path, monkeypatch):
        """Test that 'local' builds the snapshot strategy."""
        monkeypatch.setenv("LOCAL_STORAGE_DATA_FILE", str(tmp_path / "data.json"))
        assert isinstance(create_persistence("local"), LocalSnapshotPersistence)

    def test_unknown_backend(self):
        """Test that an unknown backend name is rejected."""
        with pytest.raises(ValueError):
            create_persistence("ftp")

