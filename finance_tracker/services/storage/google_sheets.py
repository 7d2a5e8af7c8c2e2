"""
Google Sheets Storage Implementation

The remote-synced backend. Each record change is its own API call.

DESIGN DECISION: Google Sheets is used as the remote backend because:
1. Users can view their own records directly in Sheets
2. No database setup required
3. Built-in backup (Google's infrastructure)
4. Easy to export/migrate later

TRADEOFFS:
- Not suitable for high-volume data (we're fine for personal use)
- No transactions: inserting a record and updating balances are two calls.
  The session detects a failure between them and reports it.
- Limited query capabilities (we filter in Python)

Worksheets:
- Transactions: one row per transaction
- SavingsGoals: one row per goal
- Account: a header and a single row with balances and budget settings
"""

import asyncio
from datetime import datetime, timezone
from typing import Optional

import gspread
from google.oauth2.service_account import Credentials
from tenacity import (
    retry,
    retry_if_not_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from finance_tracker.config import GoogleSheetsSettings, get_settings
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
from finance_tracker.services.storage.interface import (
    ConnectionError,
    DataFormatError,
    DuplicateError,
    NotFoundError,
    RemoteFinanceStorageInterface,
    StorageError,
)


# Column mappings for Transactions sheet
TRANSACTION_COLUMNS = [
    "id",
    "type",
    "amount",
    "description",
    "account",
    "target_account",
    "category",
    "date",
]

# Column mappings for SavingsGoals sheet
GOAL_COLUMNS = [
    "id",
    "name",
    "target_amount",
    "current_amount",
    "deadline",
    "created_at",
]

# Column mappings for Account sheet (single data row)
ACCOUNT_COLUMNS = [
    "bank_balance",
    "cash_balance",
    "savings_balance",
    "daily_cash_limit",
    "enable_notifications",
    "updated_at",
]

ACCOUNT_ROW_RANGE = "A2:F2"

# Transient API errors are retried. Logical errors are not.
remote_retry = retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=2, max=10),
    retry=retry_if_not_exception_type((DuplicateError, NotFoundError, DataFormatError)),
    reraise=True,
)


def _safe_get(row: list, index: int, default: str = "") -> str:
    try:
        return row[index] if row[index] else default
    except IndexError:
        return default


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication, request timeouts and worksheet creation.
    """

    def __init__(self, settings: Optional[GoogleSheetsSettings] = None):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._settings = settings or get_settings().google_sheets

    @property
    def settings(self) -> GoogleSheetsSettings:
        return self._settings

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def connect(self) -> gspread.Client:
        """
        Establish connection to Google Sheets.

        Uses service account credentials for authentication.
        """
        if self._client is None:
            try:
                scopes = [
                    "https://www.googleapis.com/auth/spreadsheets",
                    "https://www.googleapis.com/auth/drive",
                ]
                credentials = Credentials.from_service_account_file(
                    self._settings.credentials_path,
                    scopes=scopes,
                )
                client = gspread.authorize(credentials)
                client.set_timeout(self._settings.request_timeout_seconds)
                self._client = client
            except FileNotFoundError:
                raise ConnectionError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                )
            except Exception as e:
                raise ConnectionError(f"Failed to connect to Google Sheets: {e}")

        return self._client

    def get_spreadsheet(self) -> gspread.Spreadsheet:
        """Get the configured spreadsheet."""
        if self._spreadsheet is None:
            client = self.connect()
            try:
                self._spreadsheet = client.open_by_key(
                    self._settings.spreadsheet_id
                )
            except gspread.SpreadsheetNotFound:
                raise ConnectionError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                )
        return self._spreadsheet

    def _get_or_create(self, title: str, columns: list[str], rows: int) -> gspread.Worksheet:
        spreadsheet = self.get_spreadsheet()
        try:
            sheet = spreadsheet.worksheet(title)
        except gspread.WorksheetNotFound:
            # Create the sheet with headers
            sheet = spreadsheet.add_worksheet(
                title=title,
                rows=rows,
                cols=len(columns),
            )
            sheet.append_row(columns)
        return sheet

    def get_transactions_sheet(self) -> gspread.Worksheet:
        """Get or create the Transactions worksheet."""
        return self._get_or_create(
            self._settings.transactions_sheet_name, TRANSACTION_COLUMNS, rows=2000
        )

    def get_goals_sheet(self) -> gspread.Worksheet:
        """Get or create the SavingsGoals worksheet."""
        return self._get_or_create(
            self._settings.goals_sheet_name, GOAL_COLUMNS, rows=100
        )

    def get_account_sheet(self) -> gspread.Worksheet:
        """Get or create the Account worksheet."""
        return self._get_or_create(
            self._settings.account_sheet_name, ACCOUNT_COLUMNS, rows=2
        )


class GoogleSheetsFinanceStorage(RemoteFinanceStorageInterface):
    """
    Google Sheets implementation of the remote-synced storage.

    The gspread client is blocking, so every call runs in a worker thread.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    # ------------------------------------------------------------------
    # Row conversion
    # ------------------------------------------------------------------

    @staticmethod
    def _transaction_to_row(transaction: Transaction) -> list:
        """Convert a Transaction to a spreadsheet row."""
        return [
            transaction.id,
            transaction.type.value,
            str(transaction.amount),
            transaction.description,
            transaction.account.value,
            transaction.target_account.value if transaction.target_account else "",
            transaction.category.value if transaction.category else "",
            transaction.date.isoformat(),
        ]

    @staticmethod
    def _row_to_transaction(row: list) -> Transaction:
        """Convert a spreadsheet row to a Transaction."""
        target = _safe_get(row, 5)
        category = _safe_get(row, 6)
        return Transaction(
            id=_safe_get(row, 0),
            type=TransactionType(_safe_get(row, 1)),
            amount=int(_safe_get(row, 2)),
            description=_safe_get(row, 3),
            account=AccountType(_safe_get(row, 4)),
            target_account=AccountType(target) if target else None,
            category=TransactionCategory(category) if category else None,
            date=datetime.fromisoformat(_safe_get(row, 7)),
        )

    @staticmethod
    def _goal_to_row(goal: SavingsGoal) -> list:
        return [
            goal.id,
            goal.name,
            str(goal.target_amount),
            str(goal.current_amount),
            goal.deadline.isoformat() if goal.deadline else "",
            goal.created_at.isoformat(),
        ]

    @staticmethod
    def _row_to_goal(row: list) -> SavingsGoal:
        deadline = _safe_get(row, 4)
        return SavingsGoal(
            id=_safe_get(row, 0),
            name=_safe_get(row, 1),
            target_amount=int(_safe_get(row, 2)),
            current_amount=int(_safe_get(row, 3, "0")),
            deadline=datetime.fromisoformat(deadline) if deadline else None,
            created_at=datetime.fromisoformat(_safe_get(row, 5)),
        )

    @staticmethod
    def _account_row(balances: Balances, settings: BudgetSettings) -> list:
        return [
            str(balances.bank),
            str(balances.cash),
            str(balances.savings),
            str(settings.daily_cash_limit),
            str(settings.enable_notifications),
            datetime.now(timezone.utc).isoformat(),
        ]

    @staticmethod
    def _parse_account_row(row: list) -> tuple[Balances, BudgetSettings]:
        defaults = BudgetSettings()
        balances = Balances(
            bank=int(_safe_get(row, 0, "0")),
            cash=int(_safe_get(row, 1, "0")),
            savings=int(_safe_get(row, 2, "0")),
        )
        settings = BudgetSettings(
            daily_cash_limit=int(_safe_get(row, 3, str(defaults.daily_cash_limit))),
            enable_notifications=(
                _safe_get(row, 4, str(defaults.enable_notifications)).lower() == "true"
            ),
        )
        return balances, settings

    # ------------------------------------------------------------------
    # Blocking helpers (run in a worker thread)
    # ------------------------------------------------------------------

    @staticmethod
    def _find_row(sheet: gspread.Worksheet, record_id: str) -> Optional[int]:
        """1-based sheet row index of a record, or None."""
        all_rows = sheet.get_all_values()
        for idx, row in enumerate(all_rows[1:], start=2):  # Row 1 is the header
            if row and row[0] == record_id:
                return idx
        return None

    @staticmethod
    def _append_once(sheet: gspread.Worksheet, row: list, kind: str) -> None:
        """
        Append a record row unless its id is already stored.

        An identical stored row means an earlier attempt landed and counts
        as success. A different row under the same id is a duplicate.
        """
        for existing in sheet.get_all_values()[1:]:
            if not existing or existing[0] != row[0]:
                continue
            padded = list(existing) + [""] * (len(row) - len(existing))
            if padded[:len(row)] == row:
                return
            raise DuplicateError(f"{kind} already exists: {row[0]}")
        sheet.append_row(row, value_input_option="RAW")

    def _read_account(self) -> Optional[list]:
        rows = self._client.get_account_sheet().get_all_values()[1:]
        for row in rows:
            if row and any(row):
                return row
        return None

    def _write_account(self, balances: Balances, settings: BudgetSettings) -> None:
        sheet = self._client.get_account_sheet()
        row = self._account_row(balances, settings)
        if len(sheet.get_all_values()) > 1:
            sheet.update(range_name=ACCOUNT_ROW_RANGE, values=[row])
        else:
            sheet.append_row(row, value_input_option="RAW")

    def _load(self) -> Optional[FinanceState]:
        account_row = self._read_account()
        transaction_rows = self._client.get_transactions_sheet().get_all_values()[1:]
        goal_rows = self._client.get_goals_sheet().get_all_values()[1:]
        try:
            return self._build_state(account_row, transaction_rows, goal_rows)
        except (TypeError, ValueError) as e:
            raise DataFormatError(f"Unreadable finance data in spreadsheet: {e}")

    def _build_state(
        self, account_row: Optional[list], transaction_rows: list, goal_rows: list
    ) -> Optional[FinanceState]:
        # Skip empty rows
        transactions = [
            self._row_to_transaction(row) for row in transaction_rows if row and row[0]
        ]
        goals = [self._row_to_goal(row) for row in goal_rows if row and row[0]]

        if account_row is None and not transactions and not goals:
            return None

        if account_row is not None:
            balances, settings = self._parse_account_row(account_row)
        else:
            balances, settings = Balances(), BudgetSettings()

        # Rows are appended oldest first; newest first, ties keep insertion order
        transactions.reverse()
        transactions.sort(key=lambda t: t.date, reverse=True)

        return FinanceState(
            balances=balances,
            transactions=tuple(transactions),
            savings_goals=tuple(goals),
            budget_settings=settings,
        )

    def _insert_transaction(self, transaction: Transaction) -> None:
        self._append_once(
            self._client.get_transactions_sheet(),
            self._transaction_to_row(transaction),
            "Transaction",
        )

    def _delete_record(self, sheet: gspread.Worksheet, record_id: str) -> bool:
        idx = self._find_row(sheet, record_id)
        if idx is None:
            return False
        sheet.delete_rows(idx)
        return True

    def _upsert_balances(self, balances: Balances) -> None:
        row = self._read_account()
        settings = self._parse_account_row(row)[1] if row else BudgetSettings()
        self._write_account(balances, settings)

    def _update_settings(self, settings: BudgetSettings) -> None:
        row = self._read_account()
        balances = self._parse_account_row(row)[0] if row else Balances()
        self._write_account(balances, settings)

    def _insert_goal(self, goal: SavingsGoal) -> None:
        self._append_once(
            self._client.get_goals_sheet(), self._goal_to_row(goal), "Savings goal"
        )

    def _update_goal(self, goal: SavingsGoal) -> None:
        sheet = self._client.get_goals_sheet()
        idx = self._find_row(sheet, goal.id)
        if idx is None:
            raise NotFoundError(f"Savings goal not found: {goal.id}")
        sheet.update(range_name=f"A{idx}:F{idx}", values=[self._goal_to_row(goal)])

    @staticmethod
    def _clear_records(sheet: gspread.Worksheet) -> None:
        row_count = len(sheet.get_all_values())
        if row_count > 1:
            sheet.delete_rows(2, row_count)

    async def _call(self, action: str, fn, *args):
        """Run a blocking helper and map unexpected failures to StorageError."""
        try:
            return await asyncio.to_thread(fn, *args)
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to {action}: {e}")

    # ------------------------------------------------------------------
    # RemoteFinanceStorageInterface
    # ------------------------------------------------------------------

    @remote_retry
    async def load(self) -> Optional[FinanceState]:
        return await self._call("load finance data", self._load)

    @remote_retry
    async def insert_transaction(self, transaction: Transaction) -> None:
        await self._call("insert transaction", self._insert_transaction, transaction)

    @remote_retry
    async def delete_transaction(self, transaction_id: str) -> bool:
        return await self._call(
            "delete transaction",
            lambda: self._delete_record(self._client.get_transactions_sheet(), transaction_id),
        )

    @remote_retry
    async def upsert_balances(self, balances: Balances) -> None:
        await self._call("update balances", self._upsert_balances, balances)

    @remote_retry
    async def insert_goal(self, goal: SavingsGoal) -> None:
        await self._call("insert savings goal", self._insert_goal, goal)

    @remote_retry
    async def delete_goal(self, goal_id: str) -> bool:
        return await self._call(
            "delete savings goal",
            lambda: self._delete_record(self._client.get_goals_sheet(), goal_id),
        )

    @remote_retry
    async def update_goal(self, goal: SavingsGoal) -> None:
        await self._call("update savings goal", self._update_goal, goal)

    @remote_retry
    async def update_settings(self, settings: BudgetSettings) -> None:
        await self._call("update budget settings", self._update_settings, settings)

    @remote_retry
    async def clear_transactions(self) -> None:
        await self._call(
            "clear transactions",
            lambda: self._clear_records(self._client.get_transactions_sheet()),
        )

    @remote_retry
    async def clear_goals(self) -> None:
        await self._call(
            "clear savings goals",
            lambda: self._clear_records(self._client.get_goals_sheet()),
        )
