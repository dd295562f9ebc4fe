"""
State Storage for AutoApply
@file purpose: Small key/value store persisted as one JSON file under BASE_DIR
(automation windows, cached job descriptions)
"""

import json
import logging
import os
import threading
from typing import Any, Callable, Dict, Optional

from constants import AUTOMATION_STATE_FILE

logger = logging.getLogger(__name__)

# One lock per state file, so separate StateStorage objects on the same path
# never interleave their read-modify-write cycles
_file_locks: Dict[str, threading.Lock] = {}
_file_locks_guard = threading.Lock()


def _lock_for(path: str) -> threading.Lock:
    with _file_locks_guard:
        return _file_locks.setdefault(os.path.abspath(path), threading.Lock())


class StateStorage:
    """Key/value store backed by a JSON file, shared by every session"""

    def __init__(self, state_file: Optional[str] = None):
        self.state_file = state_file or AUTOMATION_STATE_FILE
        self._lock = _lock_for(self.state_file)

    def _read(self) -> Dict[str, Any]:
        try:
            if os.path.exists(self.state_file):
                with open(self.state_file, "r", encoding="utf-8") as f:
                    data = json.load(f)
                    if isinstance(data, dict):
                        return data
                    logger.warning(f"Ignoring malformed state file {self.state_file}")
        except Exception as e:
            logger.error(f"Error loading automation state: {e}")
        return {}

    def _write(self, data: Dict[str, Any]):
        try:
            os.makedirs(os.path.dirname(self.state_file) or ".", exist_ok=True)
            with open(self.state_file, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2, default=str)
        except Exception as e:
            logger.error(f"Error saving automation state: {e}")

    def get(self, key: str, default: Any = None) -> Any:
        with self._lock:
            return self._read().get(key, default)

    def set(self, key: str, value: Any):
        with self._lock:
            data = self._read()
            data[key] = value
            self._write(data)

    def update(self, key: str, change: Callable[[Any], Any], default: Any = None) -> Any:
        """
        Replace the value under ``key`` with ``change(current)`` while holding
        the file lock, so concurrent writers see each other's updates.
        Returns the stored value.
        """
        with self._lock:
            data = self._read()
            value = change(data.get(key, default))
            data[key] = value
            self._write(data)
            return value

    def remove(self, key: str):
        with self._lock:
            data = self._read()
            if key in data:
                del data[key]
                self._write(data)
