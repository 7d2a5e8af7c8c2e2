"""
Storage Services Package

Provides abstract interfaces and concrete implementations for data storage.
A local JSON document backend and a Google Sheets remote backend sit behind
the same two ports.
"""

from finance_tracker.services.storage.interface import (
    ConnectionError,
    DataFormatError,
    DuplicateError,
    NotFoundError,
    RemoteFinanceStorageInterface,
    StateStorageInterface,
    StorageError,
)
from finance_tracker.services.storage.json_file import JsonFileStateStorage
from finance_tracker.services.storage.google_sheets import (
    GoogleSheetsClient,
    GoogleSheetsFinanceStorage,
)

__all__ = [
    # Interfaces
    "RemoteFinanceStorageInterface",
    "StateStorageInterface",
    # Exceptions
    "ConnectionError",
    "DataFormatError",
    "DuplicateError",
    "NotFoundError",
    "StorageError",
    # Local implementation
    "JsonFileStateStorage",
    # Google Sheets implementation
    "GoogleSheetsClient",
    "GoogleSheetsFinanceStorage",
]
