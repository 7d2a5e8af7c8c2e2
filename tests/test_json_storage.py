"""
Tests for the local JSON document backend.
"""

import json

import pytest
from datetime import datetime, timezone

from finance_tracker.models.finance import (
    AccountType,
    Balances,
    BudgetSettings,
    FinanceState,
    SavingsGoal,
    Transaction,
    TransactionCategory,
    TransactionType,
)
from finance_tracker.services.storage import JsonFileStateStorage, StorageError


def sample_state() -> FinanceState:
    return FinanceState(
        balances=Balances(bank=90000, cash=5000, savings=20000),
        transactions=(
            Transaction(
                type=TransactionType.EXPENSE,
                amount=5000,
                description="Makan",
                account=AccountType.CASH,
                category=TransactionCategory.MAKAN,
                date=datetime(2024, 5, 15, 12, 30, 15, 250000, tzinfo=timezone.utc),
            ),
            Transaction(
                type=TransactionType.TRANSFER,
                amount=10000,
                description="Tarik",
                account=AccountType.BANK,
                target_account=AccountType.CASH,
                date=datetime(2024, 5, 15, 8, 0, tzinfo=timezone.utc),
            ),
        ),
        savings_goals=(SavingsGoal(name="Laptop", target_amount=80000),),
        budget_settings=BudgetSettings(daily_cash_limit=40000, enable_notifications=False),
    )


class TestJsonFileStateStorage:
    """Tests for load/save of the whole state."""

    @pytest.mark.asyncio
    async def test_missing_file_loads_none(self, tmp_path):
        """Test that nothing stored yet loads as None."""
        storage = JsonFileStateStorage(tmp_path / "finance.json")
        assert await storage.load() is None

    @pytest.mark.asyncio
    async def test_round_trip(self, tmp_path):
        """Test that a saved state loads back identical, dates included."""
        storage = JsonFileStateStorage(tmp_path / "finance.json")
        state = sample_state()
        await storage.save(state)

        loaded = await storage.load()
        assert loaded == state
        assert loaded.transactions[0].date == state.transactions[0].date

    @pytest.mark.asyncio
    async def test_layout(self, tmp_path):
        """Test the flat document layout on disk."""
        path = tmp_path / "finance.json"
        await JsonFileStateStorage(path).save(sample_state())

        data = json.loads(path.read_text(encoding="utf-8"))
        assert data["bank_balance"] == 90000
        assert data["daily_cash_limit"] == 40000
        assert data["enable_notifications"] is False
        assert data["transactions"][0]["category"] == "makan"
        assert len(data["savings_goals"]) == 1

    @pytest.mark.asyncio
    async def test_save_replaces_previous(self, tmp_path):
        """Test that a later save fully replaces the earlier one."""
        path = tmp_path / "nested" / "finance.json"
        storage = JsonFileStateStorage(path)
        await storage.save(sample_state())
        await storage.save(FinanceState.empty())

        assert await storage.load() == FinanceState.empty()
        assert [p.name for p in path.parent.iterdir()] == ["finance.json"]

    @pytest.mark.asyncio
    async def test_corrupt_file_raises(self, tmp_path):
        """Test that a corrupt document is reported, not silently reset."""
        path = tmp_path / "finance.json"
        path.write_text("{not json", encoding="utf-8")
        with pytest.raises(StorageError):
            await JsonFileStateStorage(path).load()

    @pytest.mark.asyncio
    async def test_invalid_records_raise(self, tmp_path):
        """Test that a structurally wrong document is reported."""
        path = tmp_path / "finance.json"
        path.write_text(json.dumps({"transactions": [{"amount": -1}]}), encoding="utf-8")
        with pytest.raises(StorageError):
            await JsonFileStateStorage(path).load()

        path.write_text("[]", encoding="utf-8")
        with pytest.raises(StorageError):
            await JsonFileStateStorage(path).load()

    @pytest.mark.asyncio
    async def test_undecodable_bytes_raise(self, tmp_path):
        """Test that a file that isn't UTF-8 is reported as a storage error."""
        path = tmp_path / "finance.json"
        path.write_bytes(b'{"bank_balance": "\xff\xfe"}')
        with pytest.raises(StorageError):
            await JsonFileStateStorage(path).load()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("document", [
        {"transactions": 5},
        {"savings_goals": 5},
        {"transactions": [5]},
        {"bank_balance": "lots"},
    ])
    async def test_wrong_shapes_raise(self, tmp_path, document):
        """Test that lists and balances of the wrong type are storage errors."""
        path = tmp_path / "finance.json"
        path.write_text(json.dumps(document), encoding="utf-8")
        with pytest.raises(StorageError):
            await JsonFileStateStorage(path).load()
