"""Ordered set of sessions belonging to one cluster."""

from __future__ import annotations

import itertools
from typing import Iterator

from .session import Session

_cluster_ids = itertools.count(1)


class SessionRegistry:
    """Sessions of one cluster in insertion order.

    Insertion order is display order. Removing a session never reorders the
    ones that remain.
    """

    def __init__(self, cluster_id: int | None = None) -> None:
        self.cluster_id = cluster_id if cluster_id is not None else next(_cluster_ids)
        self._sessions: list[Session] = []

    def __iter__(self) -> Iterator[Session]:
        return iter(list(self._sessions))

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, session: object) -> bool:
        return session in self._sessions

    def add(self, session: Session) -> None:
        if session in self._sessions:
            raise ValueError(f"{session} is already registered")
        self._sessions.append(session)

    def remove(self, session: Session) -> bool:
        """Forget ``session``. Returns False if it was not registered."""
        try:
            self._sessions.remove(session)
        except ValueError:
            return False
        return True

    def snapshot(self) -> list[Session]:
        return list(self._sessions)

    def live(self) -> list[Session]:
        return [s for s in self._sessions if s.is_alive()]

    def clear(self) -> list[Session]:
        """Empty the registry, returning what it held."""
        sessions, self._sessions = self._sessions, []
        return sessions

    def listing(self) -> list[str]:
        """One line per session, in registry order."""
        return [
            f"{index:>3}. {session.endpoint} [{session.status.value}]"
            for index, session in enumerate(self._sessions, start=1)
        ]
