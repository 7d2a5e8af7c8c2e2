"""
Two-Stage Transaction Validation

DESIGN DECISION: Validation happens in two distinct stages:

STAGE 1 - SCHEMA VALIDATION:
- Known transaction type and account
- Positive whole amount
- Non-empty description within the length limit

STAGE 2 - SEMANTIC VALIDATION:
- Account allowed for the transaction type
  (no income into savings, no save from savings)
- Transfer target present and the opposite of bank/cash
- Category only on expenses (defaults to "lainnya")

Followed by the BALANCE SUFFICIENCY GATE for expense, transfer and save:
the amount must not exceed the source account's balance.

IMPORTANT: Validation NEVER silently fixes issues.
It reports them, and nothing reaches the ledger or storage until it passes.
"""

import math
from datetime import datetime
from decimal import Decimal
from typing import Any, Mapping, Optional

from pydantic import ValidationError as PydanticValidationError

from finance_tracker.models.finance import (
    DEFAULT_CATEGORY,
    TRANSFER_ACCOUNTS,
    AccountType,
    Balances,
    BudgetSettings,
    Transaction,
    TransactionCategory,
    TransactionType,
    ValidationIssue,
)


class ValidationError(Exception):
    """Intent rejected before any state change."""

    def __init__(self, issues: list[ValidationIssue]):
        self.issues = issues
        super().__init__("; ".join(issue.message for issue in issues))


class GoalValidationError(ValidationError):
    """Savings goal input rejected."""
    pass


class InsufficientBalanceError(Exception):
    """Amount exceeds the source account balance. Hard rejection, never a warning."""

    def __init__(self, account: AccountType, available: int, requested: int):
        self.account = account
        self.available = available
        self.requested = requested
        super().__init__(
            f"Insufficient {account.value} balance: "
            f"requested {requested:,}, available {available:,}"
        )


class ConfigurationError(Exception):
    """Budget settings rejected before persisting."""
    pass


# Accounts that may be the source/target of each transaction type
ALLOWED_ACCOUNTS = {
    TransactionType.INCOME: (AccountType.BANK, AccountType.CASH),
    TransactionType.EXPENSE: (AccountType.BANK, AccountType.CASH, AccountType.SAVINGS),
    TransactionType.TRANSFER: TRANSFER_ACCOUNTS,
    TransactionType.SAVE: (AccountType.BANK, AccountType.CASH),
}

# Types whose amount leaves the source account
DEBITING_TYPES = (TransactionType.EXPENSE, TransactionType.TRANSFER, TransactionType.SAVE)


def opposite_account(account: AccountType) -> Optional[AccountType]:
    """The other account of a bank/cash transfer."""
    if account == AccountType.BANK:
        return AccountType.CASH
    if account == AccountType.CASH:
        return AccountType.BANK
    return None


def _issue(field: str, issue_type: str, message: str) -> ValidationIssue:
    return ValidationIssue(field=field, issue_type=issue_type, message=message, severity="error")


def _coerce_enum(enum_cls, value, field: str, issues: list[ValidationIssue]):
    if value is None:
        return None
    try:
        return enum_cls(value)
    except ValueError:
        issues.append(_issue(field, "invalid_value", f"Unknown {field}: {value!r}"))
        return None


def coerce_amount(
    value: Any,
    issues: list[ValidationIssue],
    field: str = "amount",
) -> Optional[int]:
    """Positive whole amount, or None with an issue appended."""
    # bool is an int subclass; never a valid amount
    if isinstance(value, bool) or not isinstance(value, (int, float, Decimal)):
        issues.append(_issue(field, "invalid_type", "Amount must be a number"))
        return None
    if not math.isfinite(value):
        issues.append(_issue(field, "invalid_value", "Amount must be a number"))
        return None
    if value != int(value):
        issues.append(_issue(
            field,
            "invalid_value",
            "Amount must be a whole number of currency units",
        ))
        return None
    amount = int(value)
    if amount <= 0:
        issues.append(_issue(field, "invalid_value", "Amount must be greater than zero"))
        return None
    return amount


class TransactionValidator:
    """
    Validates transaction intents through a two-stage pipeline,
    then builds the immutable Transaction record.
    """

    def __init__(self, max_description_length: int = 100):
        self._max_description_length = max_description_length

    def _validate_schema(
        self,
        transaction_type: Any,
        amount: Any,
        description: Any,
        account: Any,
    ) -> tuple[dict[str, Any], list[ValidationIssue]]:
        """
        Stage 1: Schema validation.

        Returns: (normalized_fields, list_of_issues)
        """
        issues: list[ValidationIssue] = []

        fields = {
            "type": _coerce_enum(TransactionType, transaction_type, "type", issues),
            "account": _coerce_enum(AccountType, account, "account", issues),
            "amount": coerce_amount(amount, issues),
            "description": None,
        }
        if fields["type"] is None and transaction_type is None:
            issues.append(_issue("type", "missing", "Transaction type is required"))
        if fields["account"] is None and account is None:
            issues.append(_issue("account", "missing", "Account is required"))

        text = description.strip() if isinstance(description, str) else ""
        if not text:
            issues.append(_issue("description", "missing", "Description is required"))
        elif len(text) > self._max_description_length:
            issues.append(_issue(
                "description",
                "too_long",
                f"Description must be at most {self._max_description_length} characters",
            ))
        else:
            fields["description"] = text

        return fields, issues

    def _validate_semantic(
        self,
        transaction_type: TransactionType,
        account: AccountType,
        target_account: Any,
        category: Any,
    ) -> tuple[dict[str, Any], list[ValidationIssue]]:
        """
        Stage 2: Semantic validation.

        Returns: (normalized_fields, list_of_issues)
        """
        issues: list[ValidationIssue] = []
        fields: dict[str, Any] = {"target_account": None, "category": None}

        if account not in ALLOWED_ACCOUNTS[transaction_type]:
            issues.append(_issue(
                "account",
                "not_allowed",
                f"{transaction_type.value.capitalize()} is not allowed "
                f"on the {account.value} account",
            ))

        target = _coerce_enum(AccountType, target_account, "target_account", issues)
        if transaction_type == TransactionType.TRANSFER:
            if target_account is None:
                issues.append(_issue(
                    "target_account", "missing", "Transfer requires a target account"
                ))
            elif target is not None and target != opposite_account(account):
                issues.append(_issue(
                    "target_account",
                    "invalid_value",
                    "Transfer target must be the other one of bank and cash",
                ))
            fields["target_account"] = target
        elif target_account is not None:
            issues.append(_issue(
                "target_account",
                "not_allowed",
                "Target account is only allowed on transfers",
            ))

        chosen = _coerce_enum(TransactionCategory, category, "category", issues)
        if transaction_type == TransactionType.EXPENSE:
            fields["category"] = chosen or DEFAULT_CATEGORY
        elif category is not None:
            issues.append(_issue(
                "category", "not_allowed", "Category is only allowed on expenses"
            ))

        return fields, issues

    def validate(
        self,
        transaction_type: Any,
        amount: Any,
        description: Any,
        account: Any,
        target_account: Any = None,
        category: Any = None,
    ) -> tuple[dict[str, Any], list[ValidationIssue]]:
        """
        Run the full two-stage pipeline.

        Returns:
            (normalized_fields, issues). Stage 2 only runs when stage 1
            produced a usable type and account.
        """
        fields, issues = self._validate_schema(transaction_type, amount, description, account)

        if fields["type"] is not None and fields["account"] is not None:
            semantic_fields, semantic_issues = self._validate_semantic(
                fields["type"], fields["account"], target_account, category
            )
            fields.update(semantic_fields)
            issues.extend(semantic_issues)

        return fields, issues

    def build_transaction(
        self,
        transaction_type: Any,
        amount: Any,
        description: Any,
        account: Any,
        target_account: Any = None,
        category: Any = None,
        now: Optional[datetime] = None,
    ) -> Transaction:
        """
        Validate an intent and build the transaction record.

        Raises:
            ValidationError: If any stage reports an error
        """
        fields, issues = self.validate(
            transaction_type, amount, description, account, target_account, category
        )
        if issues:
            raise ValidationError(issues)

        extra = {"date": now} if now is not None else {}
        return Transaction(
            type=fields["type"],
            amount=fields["amount"],
            description=fields["description"],
            account=fields["account"],
            target_account=fields["target_account"],
            category=fields["category"],
            **extra,
        )

    @staticmethod
    def check_sufficient_balance(balances: Balances, transaction: Transaction) -> None:
        """
        Mandatory gate: a debiting transaction may not exceed its source balance.

        Raises:
            InsufficientBalanceError: If the amount is larger than the balance
        """
        if transaction.type not in DEBITING_TYPES:
            return
        available = balances.balance_of(transaction.account)
        if transaction.amount > available:
            raise InsufficientBalanceError(
                account=transaction.account,
                available=available,
                requested=transaction.amount,
            )


def merge_budget_settings(
    current: BudgetSettings,
    partial: Mapping[str, Any],
) -> BudgetSettings:
    """
    Merge a partial update into the current settings and validate the result.

    Raises:
        ConfigurationError: Unknown keys or invalid values (e.g. non-positive limit)
    """
    unknown = set(partial) - set(BudgetSettings.model_fields)
    if unknown:
        raise ConfigurationError(f"Unknown budget settings: {', '.join(sorted(unknown))}")

    limit = partial.get("daily_cash_limit")
    if isinstance(limit, bool) or (limit is not None and not isinstance(limit, int)):
        raise ConfigurationError("Daily cash limit must be a whole number")

    try:
        return BudgetSettings.model_validate({**current.model_dump(), **partial})
    except PydanticValidationError as e:
        messages = "; ".join(
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()
        )
        raise ConfigurationError(f"Invalid budget settings: {messages}") from e
