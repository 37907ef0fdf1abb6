"""
Persisted grid settings (filter state and column configuration).

Settings live in a small key-value store holding JSON strings, the same
shape a browser profile's local storage would have:

- `bugGrid_filterState`: the SearchFilterState with ISO-8601 dates
- `bugGrid_columnConfig`: the list of ColumnConfig objects

Storage is best-effort. Unreadable or malformed entries fall back to the
defaults, and failed writes are logged and dropped; neither ever reaches
the caller.
"""

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Optional, Protocol

from pydantic import TypeAdapter, ValidationError

from models.data_models import ColumnConfig, SearchFilterState

logger = logging.getLogger(__name__)

FILTER_STATE_KEY = "bugGrid_filterState"
COLUMN_CONFIG_KEY = "bugGrid_columnConfig"

_column_list_adapter = TypeAdapter(list[ColumnConfig])


class KeyValueStorage(Protocol):
    """String key-value backend; every method may raise on I/O failure."""

    def get(self, key: str) -> Optional[str]: ...

    def set(self, key: str, value: str) -> None: ...

    def remove(self, key: str) -> None: ...


class MemoryStorage:
    """In-process storage, used by tests and embedded grids."""

    def __init__(self, initial: Optional[dict[str, str]] = None):
        self._data: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def remove(self, key: str) -> None:
        self._data.pop(key, None)


class JsonFileStorage:
    """
    Storage backed by a single JSON document on disk.

    The file maps keys to JSON strings. Writes go to a temporary file in the
    same directory which then replaces the original, so a crash mid-write
    never leaves a truncated document behind.
    """

    def __init__(self, path: str | Path):
        self.path = Path(path)

    def _read_all(self) -> dict[str, str]:
        if not self.path.exists():
            return {}
        with self.path.open("r", encoding="utf-8") as f:
            data = json.load(f)
        if not isinstance(data, dict):
            raise ValueError(f"Settings file {self.path} does not contain a JSON object")
        return data

    def _write_all(self, data: dict[str, str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=self.path.parent, prefix=".settings-", suffix=".json")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2)
            os.replace(tmp_path, self.path)
        except BaseException:
            Path(tmp_path).unlink(missing_ok=True)
            raise

    def get(self, key: str) -> Optional[str]:
        value = self._read_all().get(key)
        return value if isinstance(value, str) else None

    def set(self, key: str, value: str) -> None:
        data = self._read_all()
        data[key] = value
        self._write_all(data)

    def remove(self, key: str) -> None:
        data = self._read_all()
        if key in data:
            del data[key]
            self._write_all(data)


class GridSettings:
    """Load/save lifecycle for the persisted grid configuration."""

    def __init__(self, storage: Optional[KeyValueStorage] = None):
        self.storage: KeyValueStorage = storage if storage is not None else MemoryStorage()

    def _read(self, key: str) -> Optional[str]:
        try:
            return self.storage.get(key)
        except Exception as e:
            logger.warning(f"Failed to read saved setting '{key}': {e}")
            return None

    def _write(self, key: str, payload) -> bool:
        try:
            self.storage.set(key, json.dumps(payload))
            return True
        except Exception as e:
            logger.warning(f"Failed to save setting '{key}': {e}")
            return False

    def load_filter_state(self) -> SearchFilterState:
        """Saved filter state with dates re-parsed, or the default state."""
        saved = self._read(FILTER_STATE_KEY)
        if saved is None:
            return SearchFilterState()

        try:
            return SearchFilterState.model_validate_json(saved)
        except ValidationError as e:
            logger.warning(f"Failed to parse saved filter state, using defaults: {e.error_count()} error(s)")
            return SearchFilterState()

    def save_filter_state(self, state: SearchFilterState) -> bool:
        return self._write(FILTER_STATE_KEY, state.to_storage())

    def load_columns(self) -> Optional[list[ColumnConfig]]:
        """Saved column list, or None when absent, malformed or empty."""
        saved = self._read(COLUMN_CONFIG_KEY)
        if saved is None:
            return None

        try:
            columns = _column_list_adapter.validate_json(saved)
        except ValidationError as e:
            logger.warning(f"Failed to parse saved column config, using defaults: {e.error_count()} error(s)")
            return None

        if not columns:
            logger.warning("Saved column config is empty, using defaults")
            return None
        return columns

    def save_columns(self, columns: list[ColumnConfig]) -> bool:
        payload = [column.model_dump(mode="json", by_alias=True) for column in columns]
        return self._write(COLUMN_CONFIG_KEY, payload)

    def clear(self) -> None:
        for key in (FILTER_STATE_KEY, COLUMN_CONFIG_KEY):
            try:
                self.storage.remove(key)
            except Exception as e:
                logger.warning(f"Failed to clear setting '{key}': {e}")
