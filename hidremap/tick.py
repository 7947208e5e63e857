"""A thread-safe flag signalling that a tick is due."""

from __future__ import annotations

import threading


class TickFlag:
    """A pending-tick flag that can be set from one thread and consumed from another."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._pending = False

    def set(self) -> None:
        """Mark a tick as pending."""
        with self._lock:
            self._pending = True

    def get_and_clear(self) -> bool:
        """Return whether a tick was pending and clear the flag."""
        with self._lock:
            pending = self._pending
            self._pending = False
        return pending