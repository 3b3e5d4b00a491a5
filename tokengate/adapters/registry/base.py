"""Identity registry interface.

The registry owns token registrations. The admission layer only reads it,
except for :meth:`AbstractIdentityRegistry.register`, which is the
persistence step that follows a collision check and is where uniqueness is
actually enforced.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Callable


def fold_name(name: str) -> str:
    """Canonical form used for case-insensitive name comparison."""
    return name.strip().casefold()


def fold_symbol(symbol: str) -> str:
    """Canonical form used for symbol comparison (symbols are upper-cased)."""
    return symbol.strip().upper()


@dataclass(frozen=True)
class IdentityRegistration:
    """A registered token identity.

    Attributes:
        subject: Token identifier (mint address); unique across the registry.
        name: Display name as submitted.
        symbol: Ticker symbol, upper-cased.
        created_at: Timezone-aware creation timestamp.
        graduated: Whether the token has graduated (locks its identity for good).
        verified: Downstream verification status; None when never confirmed.
        active: Retired registrations are ignored by lookups.
    """

    subject: str
    name: str
    symbol: str
    created_at: datetime
    graduated: bool = False
    verified: bool | None = None
    active: bool = True


ConflictPredicate = Callable[[IdentityRegistration], bool]


class AbstractIdentityRegistry(ABC):
    """Read-mostly registry of token identities.

    Implementations raise ``StoreUnavailableAppError`` when the underlying
    store cannot be reached.
    """

    @abstractmethod
    def find_identity(self, name: str, symbol: str | None = None) -> IdentityRegistration | None:
        """Return the active registration matching ``name`` (and ``symbol`` if given).

        Matching is case-insensitive. When several registrations match, a
        graduated one wins, then the most recently created.
        """
        raise NotImplementedError

    @abstractmethod
    def find_subject(self, subject: str) -> IdentityRegistration | None:
        """Return the registration for a token identifier, if any."""
        raise NotImplementedError

    @abstractmethod
    def register(
        self,
        registration: IdentityRegistration,
        *,
        is_conflict: ConflictPredicate,
    ) -> IdentityRegistration:
        """Insert a registration, re-checking for conflicts atomically.

        The newest active registration with the same name and symbol is passed
        to ``is_conflict`` inside the same transaction as the insert.

        Raises:
            IdentityTakenAppError: If ``is_conflict`` returns True, or the
                subject is already registered.
        """
        raise NotImplementedError

    def close(self) -> None:
        """Release store resources."""
