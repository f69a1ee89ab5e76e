"""Process-wide log of opened destinations."""

from __future__ import annotations

import threading


class History:
    """Append-only list of destinations, safe to share between clusters."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._entries: list[str] = []

    def append(self, destination: str) -> None:
        with self._lock:
            self._entries.append(destination)

    def all(self) -> tuple[str, ...]:
        """Snapshot of every destination so far, oldest first."""
        with self._lock:
            return tuple(self._entries)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


_history = History()


def get_history() -> History:
    return _history
