"""Shared shutdown signal passed explicitly to every queue operation."""

from __future__ import annotations

import threading
from typing import Optional


class CancellationToken:
    """Monotonic, thread-safe shutdown flag.

    Once cancelled it never resets. The first reason given is kept so that
    the pool can report why the workers stopped.
    """

    def __init__(self) -> None:
        self._event = threading.Event()
        self._lock = threading.Lock()
        self._reason: Optional[str] = None

    def cancel(self, reason: str = "requested") -> bool:
        """Trip the token. Returns True only for the call that tripped it."""
        with self._lock:
            if self._event.is_set():
                return False
            self._reason = reason
            self._event.set()
            return True

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> Optional[str]:
        return self._reason

    def wait(self, timeout: Optional[float] = None) -> bool:
        return self._event.wait(timeout)
