"""In-process pending set for development and tests.

Not shared across processes, so a real drain worker cannot see it; the
Redis store is the production backend.
"""

from __future__ import annotations

import threading

from tokengate.adapters.pending_set.base import AbstractPendingSetStore


class InMemoryPendingSetStore(AbstractPendingSetStore):
    """Dict of member → score guarded by a lock."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._scores: dict[str, float] = {}

    def insert_if_absent(self, member: str, score: float) -> bool:
        with self._lock:
            if member in self._scores:
                return False
            self._scores[member] = score
            return True

    def size(self) -> int:
        with self._lock:
            return len(self._scores)

    def members(self) -> list[tuple[str, float]]:
        """Pending members in drain order (lowest score first).

        Inspection helper for tests and debugging; the drain worker reads the
        shared store directly.
        """
        with self._lock:
            return sorted(self._scores.items(), key=lambda item: item[1])
