"""Small key-value settings store persisted as one JSON file."""

import json
import os
import tempfile
from pathlib import Path
from threading import Lock
from typing import Any, Dict, Optional

from loguru import logger

from canvas_store.shared.exceptions import CorruptRecordError, StorageIOError


class SettingsStore:
    """Key-value entries that are always written back as a whole.

    ``set_many`` replaces the file in one atomic rename, so entries written
    together are either all visible or none are.
    """

    def __init__(self, path: Path):
        self.path = path
        self._lock = Lock()

    def get(self, key: str, default: Any = None) -> Any:
        with self._lock:
            return self._read().get(key, default)

    def set(self, key: str, value: Any) -> None:
        self.set_many({key: value})

    def set_many(self, entries: Dict[str, Any]) -> None:
        with self._lock:
            data = self._read()
            data.update(entries)
            self._write(data)
        logger.debug(f"Saved settings keys {sorted(entries)} to {self.path.name}")

    def remove(self, key: str) -> None:
        with self._lock:
            data = self._read()
            if data.pop(key, None) is not None:
                self._write(data)

    def _read(self) -> Dict[str, Any]:
        try:
            raw = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return {}
        except OSError as e:
            raise StorageIOError(f"Failed to read settings: {e}", details={"path": str(self.path)})

        try:
            data = json.loads(raw) if raw.strip() else {}
        except ValueError as e:
            raise CorruptRecordError(f"Settings file is not valid JSON: {e}", details={"path": str(self.path)})

        if not isinstance(data, dict):
            raise CorruptRecordError("Settings file does not hold a JSON object", details={"path": str(self.path)})
        return data

    def _write(self, data: Dict[str, Any]) -> None:
        tmp_name: Optional[str] = None
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=str(self.path.parent), prefix=f".{self.path.name}.", suffix=".tmp")
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(data, handle, indent=2, sort_keys=True)
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(tmp_name, self.path)
        except OSError as e:
            if tmp_name is not None and os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise StorageIOError(f"Failed to write settings: {e}", details={"path": str(self.path)})
