"""Services package."""

from finance_tracker.services.persistence import (
    LocalSnapshotPersistence,
    PartialCommitError,
    PersistenceError,
    PersistenceStrategy,
    RemoteSyncPersistence,
)
from finance_tracker.services.storage import (
    ConnectionError,
    DuplicateError,
    GoogleSheetsClient,
    GoogleSheetsFinanceStorage,
    JsonFileStateStorage,
    NotFoundError,
    RemoteFinanceStorageInterface,
    StateStorageInterface,
    StorageError,
)

__all__ = [
    # Persistence strategies
    "LocalSnapshotPersistence",
    "PartialCommitError",
    "PersistenceError",
    "PersistenceStrategy",
    "RemoteSyncPersistence",
    # Storage services
    "ConnectionError",
    "DuplicateError",
    "GoogleSheetsClient",
    "GoogleSheetsFinanceStorage",
    "JsonFileStateStorage",
    "NotFoundError",
    "RemoteFinanceStorageInterface",
    "StateStorageInterface",
    "StorageError",
]
