"""
Tests for transaction validation, the balance sufficiency gate and
budget settings merging.
"""

import pytest
from datetime import datetime, timezone
from decimal import Decimal

from finance_tracker.models.finance import (
    AccountType,
    Balances,
    BudgetSettings,
    Transaction,
    TransactionCategory,
    TransactionType,
)
from finance_tracker.validation import (
    ConfigurationError,
    InsufficientBalanceError,
    TransactionValidator,
    ValidationError,
    merge_budget_settings,
    opposite_account,
)


@pytest.fixture
def validator():
    return TransactionValidator()


def issue_fields(exc_info) -> set[str]:
    return {issue.field for issue in exc_info.value.issues}


class TestSchemaValidation:
    """Stage 1: types, amount and description."""

    def test_valid_expense_defaults_category(self, validator):
        """Test that an expense without category gets 'lainnya'."""
        t = validator.build_transaction("expense", 15000, "Makan", "cash")
        assert t.type == TransactionType.EXPENSE
        assert t.category == TransactionCategory.LAINNYA

    def test_uses_given_timestamp(self, validator):
        """Test that the record date is the supplied instant."""
        now = datetime(2024, 5, 15, 9, 0, tzinfo=timezone.utc)
        t = validator.build_transaction("income", 100, "Gaji", "bank", now=now)
        assert t.date == now

    @pytest.mark.parametrize("amount", [0, -1, 1.5, "100", None, True, float("nan"), float("inf")])
    def test_rejects_bad_amounts(self, validator, amount):
        """Test that non-positive, fractional and non-numeric amounts are rejected."""
        with pytest.raises(ValidationError) as exc_info:
            validator.build_transaction("income", amount, "Gaji", "bank")
        assert "amount" in issue_fields(exc_info)

    def test_accepts_integral_float_and_decimal(self, validator):
        """Test that whole-valued floats and decimals are accepted as ints."""
        assert validator.build_transaction("income", 100.0, "Gaji", "bank").amount == 100
        assert validator.build_transaction("income", Decimal("250"), "Gaji", "bank").amount == 250

    @pytest.mark.parametrize("description", ["", "   ", None, "x" * 101])
    def test_rejects_bad_descriptions(self, validator, description):
        """Test empty, blank, missing and too long descriptions."""
        with pytest.raises(ValidationError) as exc_info:
            validator.build_transaction("income", 100, description, "bank")
        assert issue_fields(exc_info) == {"description"}

    def test_description_limit_is_configurable(self):
        """Test a shorter configured description limit."""
        validator = TransactionValidator(max_description_length=5)
        with pytest.raises(ValidationError):
            validator.build_transaction("income", 100, "Salary", "bank")

    def test_rejects_unknown_type_and_account(self, validator):
        """Test that unknown enum values are reported."""
        with pytest.raises(ValidationError) as exc_info:
            validator.build_transaction("gift", 100, "Hadiah", "wallet")
        assert issue_fields(exc_info) == {"type", "account"}

    def test_collects_all_issues(self, validator):
        """Test that several problems are reported together."""
        with pytest.raises(ValidationError) as exc_info:
            validator.build_transaction("income", -5, "", "bank")
        assert issue_fields(exc_info) == {"amount", "description"}


class TestSemanticValidation:
    """Stage 2: account rules, transfer target, category."""

    def test_income_into_savings_rejected(self, validator):
        """Test that income can't go straight into savings."""
        with pytest.raises(ValidationError) as exc_info:
            validator.build_transaction("income", 100, "Bonus", "savings")
        assert issue_fields(exc_info) == {"account"}

    def test_save_from_savings_rejected(self, validator):
        """Test that saving from savings is rejected."""
        with pytest.raises(ValidationError):
            validator.build_transaction("save", 100, "Nabung", "savings")

    def test_transfer_requires_target(self, validator):
        """Test that a transfer needs a target account."""
        with pytest.raises(ValidationError) as exc_info:
            validator.build_transaction("transfer", 100, "Tarik", "bank")
        assert issue_fields(exc_info) == {"target_account"}

    def test_transfer_target_must_be_opposite(self, validator):
        """Test that the target is the other one of bank and cash."""
        with pytest.raises(ValidationError):
            validator.build_transaction("transfer", 100, "Tarik", "bank", target_account="bank")
        with pytest.raises(ValidationError):
            validator.build_transaction("transfer", 100, "Tarik", "bank", target_account="savings")

    def test_transfer_from_savings_rejected(self, validator):
        """Test that savings can't be a transfer source."""
        with pytest.raises(ValidationError):
            validator.build_transaction("transfer", 100, "Tarik", "savings", target_account="cash")

    def test_valid_transfer(self, validator):
        """Test a bank to cash transfer."""
        t = validator.build_transaction("transfer", 100, "Tarik", "bank", target_account="cash")
        assert t.target_account == AccountType.CASH

    def test_target_on_non_transfer_rejected(self, validator):
        """Test that a target account is never silently dropped."""
        with pytest.raises(ValidationError) as exc_info:
            validator.build_transaction("income", 100, "Gaji", "bank", target_account="cash")
        assert issue_fields(exc_info) == {"target_account"}

    def test_category_on_non_expense_rejected(self, validator):
        """Test that a category is never silently dropped."""
        with pytest.raises(ValidationError) as exc_info:
            validator.build_transaction("income", 100, "Gaji", "bank", category="makan")
        assert issue_fields(exc_info) == {"category"}

    def test_unknown_category_rejected(self, validator):
        """Test that only known categories are accepted."""
        with pytest.raises(ValidationError):
            validator.build_transaction("expense", 100, "Makan", "cash", category="food")

    def test_opposite_account(self):
        """Test the bank/cash counter-account helper."""
        assert opposite_account(AccountType.BANK) == AccountType.CASH
        assert opposite_account(AccountType.CASH) == AccountType.BANK
        assert opposite_account(AccountType.SAVINGS) is None


class TestBalanceSufficiency:
    """The mandatory gate for expense, transfer and save."""

    def _tx(self, type, amount, account, target=None):
        return Transaction(
            type=type,
            amount=amount,
            description="test",
            account=account,
            target_account=target,
        )

    def test_exact_balance_allowed(self):
        """Test that spending the whole balance is allowed."""
        balances = Balances(cash=10000)
        TransactionValidator.check_sufficient_balance(
            balances, self._tx(TransactionType.EXPENSE, 10000, AccountType.CASH)
        )

    def test_one_over_rejected(self):
        """Test that 10001 from a 10000 balance is rejected."""
        balances = Balances(cash=10000)
        with pytest.raises(InsufficientBalanceError) as exc_info:
            TransactionValidator.check_sufficient_balance(
                balances, self._tx(TransactionType.EXPENSE, 10001, AccountType.CASH)
            )
        assert exc_info.value.available == 10000
        assert exc_info.value.requested == 10001
        assert exc_info.value.account == AccountType.CASH

    def test_transfer_and_save_checked(self):
        """Test that transfers and saves are gated on their source."""
        balances = Balances(bank=500, cash=0)
        with pytest.raises(InsufficientBalanceError):
            TransactionValidator.check_sufficient_balance(
                balances,
                self._tx(TransactionType.TRANSFER, 600, AccountType.BANK, AccountType.CASH),
            )
        with pytest.raises(InsufficientBalanceError):
            TransactionValidator.check_sufficient_balance(
                balances, self._tx(TransactionType.SAVE, 1, AccountType.CASH)
            )

    def test_income_never_gated(self):
        """Test that income is allowed on an empty balance."""
        TransactionValidator.check_sufficient_balance(
            Balances(), self._tx(TransactionType.INCOME, 999999, AccountType.BANK)
        )


class TestMergeBudgetSettings:
    """Tests for partial budget settings updates."""

    def test_partial_update(self):
        """Test that only the given keys change."""
        merged = merge_budget_settings(BudgetSettings(), {"daily_cash_limit": 50000})
        assert merged.daily_cash_limit == 50000
        assert merged.enable_notifications is True

    @pytest.mark.parametrize("partial", [
        {"daily_cash_limit": 0},
        {"daily_cash_limit": -100},
        {"daily_cash_limit": 10.5},
        {"daily_cash_limit": True},
        {"daily_limit": 100},
    ])
    def test_invalid_updates(self, partial):
        """Test that bad values and unknown keys raise ConfigurationError."""
        with pytest.raises(ConfigurationError):
            merge_budget_settings(BudgetSettings(), partial)
