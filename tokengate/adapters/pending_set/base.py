"""Ordered pending-set interface.

The pending set is shared with an out-of-process drain worker, so the only
contract is: atomic insert-if-absent, score-ordered members, a size query.
Members are never removed through this interface.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


class AbstractPendingSetStore(ABC):
    """Score-ordered set of pending subjects.

    Implementations raise ``StoreUnavailableAppError`` when the store cannot
    be reached.
    """

    @abstractmethod
    def insert_if_absent(self, member: str, score: float) -> bool:
        """Add ``member`` with ``score`` unless already present.

        Must be a single atomic operation against the store.

        Returns:
            True if the member was inserted, False if it was already pending.
        """
        raise NotImplementedError

    @abstractmethod
    def size(self) -> int:
        """Return the number of pending members."""
        raise NotImplementedError
