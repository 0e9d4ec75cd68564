"""Durable local key/value storage with atomic JSON writes."""

import copy
import json
import os
import uuid
from pathlib import Path
from threading import Lock
from typing import Any, Dict

from loguru import logger

from ..errors import StorageFailure


class LocalStorage:
    """
    Small JSON-backed key/value store.

    Every write goes to disk immediately (temp file + rename), so a read
    after a successful set() always observes it, also across restarts.
    """

    def __init__(self, storage_file: str):
        """
        Initialize local storage.

        Args:
            storage_file: Path to the JSON file (created on first write)
        """
        self.storage_file = Path(storage_file)
        self._lock = Lock()
        self._data: Dict[str, Any] = self._load()

    def _load(self) -> Dict[str, Any]:
        if not self.storage_file.exists():
            return {}
        try:
            with open(self.storage_file, "r", encoding="utf-8") as f:
                data = json.load(f)
            return data if isinstance(data, dict) else {}
        except (json.JSONDecodeError, OSError) as e:
            logger.warning(f"Could not read {self.storage_file}, starting empty: {e}")
            return {}

    def _save_internal(self, data: Dict[str, Any]) -> None:
        """Atomic write. Caller must hold the lock."""
        temp_file = self.storage_file.with_name(f"{self.storage_file.name}.{uuid.uuid4().hex[:8]}.tmp")
        try:
            self.storage_file.parent.mkdir(parents=True, exist_ok=True)
            with open(temp_file, "w", encoding="utf-8") as f:
                json.dump(data, f, ensure_ascii=False)
            os.replace(temp_file, self.storage_file)
        except (OSError, TypeError, ValueError) as e:
            if temp_file.exists():
                try:
                    temp_file.unlink()
                except OSError:
                    pass
            raise StorageFailure(f"Failed to write {self.storage_file}: {e}") from e

    def get(self, key: str, default: Any = None) -> Any:
        """Get a copy of the stored value."""
        with self._lock:
            return copy.deepcopy(self._data.get(key, default))

    def set(self, key: str, value: Any) -> None:
        """
        Store a value and persist it.

        Raises:
            StorageFailure: the file could not be written; memory is unchanged
        """
        with self._lock:
            updated = dict(self._data)
            updated[key] = copy.deepcopy(value)
            self._save_internal(updated)
            self._data = updated

    def remove(self, key: str) -> None:
        with self._lock:
            if key not in self._data:
                return
            updated = dict(self._data)
            del updated[key]
            self._save_internal(updated)
            self._data = updated

    def keys(self) -> list:
        with self._lock:
            return list(self._data.keys())
