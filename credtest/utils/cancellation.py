"""
Run-wide cancellation signal.

A CancellationToken is handed to the engine and checked at every dispatch
point. Waits inside the engine use it instead of time.sleep so that a
cancelled run wakes up promptly.
"""

import os
import threading
from typing import Optional


class CancellationToken:
    """Thread-safe, one-shot cancellation flag."""

    def __init__(self, kill_file: Optional[str] = None):
        """
        Args:
            kill_file: Optional path whose existence also counts as cancellation
        """
        self._event = threading.Event()
        self.kill_file = kill_file
        self.reason: Optional[str] = None

    def cancel(self, reason: str = "cancelled") -> None:
        if not self._event.is_set():
            self.reason = reason
            self._event.set()

    @property
    def cancelled(self) -> bool:
        if not self._event.is_set() and self.kill_file and os.path.exists(self.kill_file):
            self.cancel(f"kill file {self.kill_file} detected")
        return self._event.is_set()

    def wait(self, timeout: Optional[float] = None) -> bool:
        """
        Sleep up to `timeout` seconds, returning early on cancellation.

        Returns:
            True if the token was cancelled
        """
        if self.cancelled:
            return True
        return self._event.wait(timeout)
