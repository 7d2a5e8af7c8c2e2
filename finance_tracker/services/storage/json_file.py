"""
JSON File Storage Implementation

The local-durable backend. The whole state lives in one JSON document,
rewritten after every mutation.

DESIGN DECISION: Writes go to a temporary file in the same directory which
then replaces the target. A crash mid-write leaves the previous document
intact instead of a truncated one.
"""

import asyncio
import json
import os
import tempfile
from pathlib import Path
from typing import Optional, Union

from pydantic import ValidationError as PydanticValidationError

from finance_tracker.config import get_settings
from finance_tracker.models.finance import FinanceState
from finance_tracker.services.storage.interface import (
    StateStorageInterface,
    StorageError,
)


class JsonFileStateStorage(StateStorageInterface):
    """
    Stores the full finance state as a JSON document on disk.
    """

    def __init__(self, path: Optional[Union[str, Path]] = None):
        self._path = Path(path) if path else get_settings().local_storage.data_file

    @property
    def path(self) -> Path:
        return self._path

    def _read(self) -> Optional[FinanceState]:
        if not self._path.exists():
            return None
        try:
            with self._path.open("r", encoding="utf-8") as handle:
                data = json.load(handle)
        except (json.JSONDecodeError, UnicodeDecodeError, OSError) as e:
            raise StorageError(f"Failed to read {self._path}: {e}")

        if not isinstance(data, dict):
            raise StorageError(f"Unexpected data in {self._path}: expected an object")
        try:
            return FinanceState.from_dict(data)
        except (PydanticValidationError, TypeError, ValueError) as e:
            raise StorageError(f"Invalid finance data in {self._path}: {e}")

    def _write(self, state: FinanceState) -> None:
        payload = state.to_dict()
        target = self._path
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                prefix=f".{target.name}.", suffix=".tmp", dir=target.parent
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as handle:
                    json.dump(payload, handle, indent=2, sort_keys=True)
                os.replace(tmp_name, target)
            except BaseException:
                if os.path.exists(tmp_name):
                    os.unlink(tmp_name)
                raise
        except OSError as e:
            raise StorageError(f"Failed to write {target}: {e}")

    async def load(self) -> Optional[FinanceState]:
        return await asyncio.to_thread(self._read)

    async def save(self, state: FinanceState) -> None:
        await asyncio.to_thread(self._write, state)
