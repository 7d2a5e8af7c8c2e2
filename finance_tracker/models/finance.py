"""
Core Data Models for Finance Tracker

These models define the strict schemas for all data flowing through the system.
They are designed to:
1. Enforce type safety at runtime
2. Provide clear validation error messages
3. Be serializable for storage and logging
4. Be immutable, so a reader always holds a consistent snapshot

DESIGN DECISION: Money is stored as whole currency units in plain integers.
Binary floating point never touches a balance, so applying and reversing a
transaction is exact no matter how many operations have been recorded.
"""

from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Optional
from uuid import uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)


def utc_now() -> datetime:
    """Current instant as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def new_record_id() -> str:
    """Opaque unique identifier for transactions and goals."""
    return str(uuid4())


def ensure_utc(value: datetime) -> datetime:
    """Normalize a datetime to UTC. Naive values are taken to be UTC already."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class AccountType(str, Enum):
    """The three balances a user holds."""
    BANK = "bank"
    CASH = "cash"
    SAVINGS = "savings"


class TransactionType(str, Enum):
    """
    Kinds of transaction.

    The type decides which balances move (see finance_tracker.ledger.engine).
    """
    INCOME = "income"
    EXPENSE = "expense"
    TRANSFER = "transfer"   # bank <-> cash
    SAVE = "save"           # bank/cash -> savings


class TransactionCategory(str, Enum):
    """
    Expense categories.

    DESIGN DECISION: Using a fixed set of tags rather than free text keeps
    the category breakdown in the statistics reliable.
    """
    MAKAN = "makan"
    LAUNDRY = "laundry"
    KEBUTUHAN_SEHARI_HARI = "kebutuhan-sehari-hari"
    RUMAH = "rumah"
    ARISAN = "arisan"
    ORANG_TUA = "orang-tua"
    KEBUTUHAN_MENDADAK = "kebutuhan-mendadak"
    JAJAN = "jajan"
    SELF_REWARD = "self-reward"
    LAINNYA = "lainnya"


DEFAULT_CATEGORY = TransactionCategory.LAINNYA

# Accounts that can take part in a transfer
TRANSFER_ACCOUNTS = (AccountType.BANK, AccountType.CASH)


class BudgetStatus(str, Enum):
    """Classification of a prospective cash expense against the daily limit."""
    OK = "ok"
    WARNING = "warning"         # approaching the limit, no confirmation needed
    HARD_BLOCK = "hard_block"   # over the limit, caller must confirm explicitly


# =============================================================================
# LEDGER MODELS
# =============================================================================

class Balances(BaseModel):
    """
    The three running balances.

    No non-negativity constraint is enforced here. The balance sufficiency
    gate in the validator keeps them >= 0 in correct operation.
    """
    model_config = ConfigDict(frozen=True)

    bank: int = 0
    cash: int = 0
    savings: int = 0

    def balance_of(self, account: AccountType) -> int:
        """Current balance of one account."""
        return getattr(self, AccountType(account).value)

    @property
    def total(self) -> int:
        return self.bank + self.cash + self.savings


class BalanceDelta(BaseModel):
    """Signed change to each of the three balances."""
    model_config = ConfigDict(frozen=True)

    bank: int = 0
    cash: int = 0
    savings: int = 0

    def negated(self) -> "BalanceDelta":
        return BalanceDelta(bank=-self.bank, cash=-self.cash, savings=-self.savings)

    @property
    def is_zero(self) -> bool:
        return self.bank == 0 and self.cash == 0 and self.savings == 0


# =============================================================================
# CORE TRANSACTION MODEL
# =============================================================================

class Transaction(BaseModel):
    """
    A recorded transaction.

    CRITICAL: Transactions are immutable once created. The only way to
    change ledger state is to add or delete one.
    """
    model_config = ConfigDict(str_strip_whitespace=True, frozen=True)

    id: str = Field(
        default_factory=new_record_id,
        min_length=1,
        description="Unique transaction ID"
    )
    type: TransactionType
    amount: int = Field(
        ...,
        gt=0,
        description="Amount in whole currency units"
    )
    description: str = Field(
        ...,
        min_length=1,
        max_length=100,
        description="What the money was for"
    )
    account: AccountType = Field(
        ...,
        description="Account primarily debited or credited"
    )
    target_account: Optional[AccountType] = Field(
        default=None,
        description="Receiving account (transfers only)"
    )
    category: Optional[TransactionCategory] = Field(
        default=None,
        description="Expense category (expenses only)"
    )
    date: datetime = Field(
        default_factory=utc_now,
        description="When the transaction was recorded (UTC)"
    )

    @field_validator('date')
    @classmethod
    def normalize_date(cls, v: datetime) -> datetime:
        return ensure_utc(v)

    @model_validator(mode='after')
    def validate_shape(self) -> 'Transaction':
        """Fields that only make sense for one transaction type."""
        if self.type == TransactionType.TRANSFER:
            if self.target_account is None:
                raise ValueError("Transfer requires a target account")
        elif self.target_account is not None:
            raise ValueError("Target account is only allowed on transfers")

        if self.category is not None and self.type != TransactionType.EXPENSE:
            raise ValueError("Category is only allowed on expenses")

        return self


# =============================================================================
# SAVINGS GOALS AND SETTINGS
# =============================================================================

class SavingsGoal(BaseModel):
    """
    A savings target.

    current_amount is a cached snapshot only. Progress is always measured
    against the pooled savings balance, shared by every goal.
    """
    model_config = ConfigDict(str_strip_whitespace=True, frozen=True)

    id: str = Field(
        default_factory=new_record_id,
        min_length=1,
    )
    name: str = Field(
        ...,
        min_length=1,
        max_length=100,
        description="Goal name"
    )
    target_amount: int = Field(
        ...,
        gt=0,
        description="Amount to reach"
    )
    current_amount: int = Field(
        default=0,
        ge=0,
        description="Last synced progress (informational)"
    )
    deadline: Optional[datetime] = None
    created_at: datetime = Field(default_factory=utc_now)

    @field_validator('deadline', 'created_at')
    @classmethod
    def normalize_dates(cls, v: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(v) if v is not None else None


class BudgetSettings(BaseModel):
    """Per-user budget configuration. Replaced wholesale on update."""
    model_config = ConfigDict(frozen=True)

    daily_cash_limit: int = Field(
        default=30000,
        gt=0,
        description="Daily cash spending limit"
    )
    enable_notifications: bool = Field(
        default=True,
        description="Surface budget warnings to the user"
    )


# =============================================================================
# AGGREGATE STATE
# =============================================================================

class FinanceState(BaseModel):
    """
    The full state of one user's finances.

    Invariant: each balance equals the replay of the stored transactions
    from zero (see finance_tracker.ledger.engine.replay).
    """
    model_config = ConfigDict(frozen=True)

    balances: Balances = Field(default_factory=Balances)
    transactions: tuple[Transaction, ...] = ()   # newest first
    savings_goals: tuple[SavingsGoal, ...] = ()  # creation order
    budget_settings: BudgetSettings = Field(default_factory=BudgetSettings)

    @classmethod
    def empty(cls, budget_settings: Optional[BudgetSettings] = None) -> "FinanceState":
        return cls(budget_settings=budget_settings or BudgetSettings())

    def to_dict(self) -> dict[str, Any]:
        """
        Flatten into a JSON-compatible record.

        Layout: the three balances and the budget settings as primitives,
        plus the transaction and goal lists. Dates are ISO-8601 instants.
        """
        return {
            "bank_balance": self.balances.bank,
            "cash_balance": self.balances.cash,
            "savings_balance": self.balances.savings,
            "daily_cash_limit": self.budget_settings.daily_cash_limit,
            "enable_notifications": self.budget_settings.enable_notifications,
            "transactions": [
                t.model_dump(mode="json") for t in self.transactions
            ],
            "savings_goals": [
                g.model_dump(mode="json") for g in self.savings_goals
            ],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "FinanceState":
        """Inverse of to_dict. Missing keys fall back to defaults."""
        defaults = BudgetSettings()
        return cls(
            balances=Balances(
                bank=data.get("bank_balance") or 0,
                cash=data.get("cash_balance") or 0,
                savings=data.get("savings_balance") or 0,
            ),
            transactions=tuple(
                Transaction.model_validate(t) for t in data.get("transactions") or []
            ),
            savings_goals=tuple(
                SavingsGoal.model_validate(g) for g in data.get("savings_goals") or []
            ),
            budget_settings=BudgetSettings(
                daily_cash_limit=data.get("daily_cash_limit", defaults.daily_cash_limit),
                enable_notifications=data.get(
                    "enable_notifications", defaults.enable_notifications
                ),
            ),
        )


# =============================================================================
# VALIDATION MODELS
# =============================================================================

class ValidationIssue(BaseModel):
    """A single validation issue found."""

    field: str = Field(
        ...,
        description="Field with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'missing', 'invalid_value', 'too_long')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    severity: str = Field(
        default="error",
        pattern="^(error|warning|info)$",
        description="Issue severity"
    )


# =============================================================================
# READ-SIDE RESULT MODELS
# =============================================================================

class BudgetEvaluation(BaseModel):
    """Outcome of checking a prospective cash expense against the daily limit."""
    model_config = ConfigDict(frozen=True)

    status: BudgetStatus
    projected_total: int = Field(
        ...,
        description="Today's cash expenses including the prospective one"
    )
    daily_cash_limit: int
    message: Optional[str] = None
    requires_confirmation: bool = False
    should_notify: bool = False

    @property
    def is_ok(self) -> bool:
        return self.status == BudgetStatus.OK


class GoalProgress(BaseModel):
    """Progress of one goal against the pooled savings balance."""
    model_config = ConfigDict(frozen=True)

    goal_id: str
    name: str
    target_amount: int
    current_amount: int
    remaining_amount: int
    percent: Decimal = Field(
        ...,
        ge=0,
        le=100,
        description="Progress percentage, capped at 100"
    )

    @property
    def is_complete(self) -> bool:
        return self.current_amount >= self.target_amount


class PeriodTotals(BaseModel):
    """Income and expense sums for one window."""
    model_config = ConfigDict(frozen=True)

    income: int = 0
    expense: int = 0


class PeriodSummary(BaseModel):
    """Totals for the current day, week and month."""
    model_config = ConfigDict(frozen=True)

    today: PeriodTotals
    week: PeriodTotals
    month: PeriodTotals


class DailyTotals(BaseModel):
    """Income and expense for a single local calendar day."""
    model_config = ConfigDict(frozen=True)

    day: datetime = Field(
        ...,
        description="Start of the local day"
    )
    income: int = 0
    expense: int = 0
