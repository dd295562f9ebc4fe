"""
Window Manager for AutoApply
@file purpose: Track the browser windows opened for automation and persist
them under the "automationWindows" storage key
"""

import logging
import time
from typing import Any, Callable, Dict, Iterable, List, Optional

from background.storage import StateStorage
from constants import AUTOMATION_WINDOWS_KEY

logger = logging.getLogger(__name__)


def _index_windows(stored) -> Dict[Any, Dict[str, Any]]:
    windows = {}
    for window_data in stored or []:
        if isinstance(window_data, dict) and "windowId" in window_data:
            windows[window_data["windowId"]] = window_data
        else:
            logger.warning(f"Ignoring malformed automation window entry: {window_data!r}")
    return windows


class WindowManager:
    """
    Registry of automation windows, keyed by window id.

    One manager is shared by every session of an orchestrator. Each change is
    applied to the persisted list under the storage lock and the in-memory
    registry is refreshed from the result, so windows registered by other
    sessions (or other managers on the same file) are never overwritten.
    """

    def __init__(self, storage: Optional[StateStorage] = None):
        self.storage = storage or StateStorage()
        self.storage_key = AUTOMATION_WINDOWS_KEY
        self.automation_windows: Dict[Any, Dict[str, Any]] = {}

    def initialize(self):
        self.load_automation_windows()
        logger.info(f"Window manager initialized ({len(self.automation_windows)} known windows)")

    def load_automation_windows(self):
        self.automation_windows = _index_windows(self.storage.get(self.storage_key, []))

    def _update_windows(self, change: Callable[[Dict[Any, Dict[str, Any]]], Any]):
        result = {}

        def apply(stored) -> List[Dict[str, Any]]:
            windows = _index_windows(stored)
            result["value"] = change(windows)
            return list(windows.values())

        self.automation_windows = _index_windows(self.storage.update(self.storage_key, apply, []))
        return result.get("value")

    def save_automation_windows(self):
        """Merge the in-memory registry into what is already stored"""
        self._update_windows(lambda windows: windows.update(self.automation_windows))

    def register_automation_window(self, window_id, metadata: Optional[Dict[str, Any]] = None):
        window_data = {
            "windowId": window_id,
            **(metadata or {}),
            "registeredAt": int(time.time() * 1000),
        }
        self._update_windows(lambda windows: windows.__setitem__(window_id, window_data))
        logger.info(f"Registered automation window {window_id}")
        return window_data

    def check_if_automation_window(self, sender) -> Dict[str, bool]:
        """Answer for a tab asking whether it lives in an automation window"""
        window_id = getattr(sender, "window_id", None)
        return {"isAutomationWindow": window_id is not None and window_id in self.automation_windows}

    def handle_window_closed(self, window_id):
        removed = self._update_windows(lambda windows: windows.pop(window_id, None))
        if removed is not None:
            logger.info(f"Cleaned up automation window {window_id}")

    def is_automation_window(self, window_id) -> bool:
        return window_id in self.automation_windows

    def get_automation_window_data(self, window_id) -> Optional[Dict[str, Any]]:
        return self.automation_windows.get(window_id)

    def cleanup_invalid_windows(self, valid_window_ids: Iterable) -> int:
        """Forget windows that no longer exist; returns how many were removed"""
        valid = set(valid_window_ids)

        def drop_stale(windows):
            stale = [window_id for window_id in windows if window_id not in valid]
            for window_id in stale:
                del windows[window_id]
            return len(stale)

        removed = self._update_windows(drop_stale)
        if removed:
            logger.info(f"Cleaned up {removed} invalid automation window(s)")
        return removed
