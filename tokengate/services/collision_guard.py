"""Copycat deterrence for token names and symbols.

The guard decides whether a proposed identity may proceed to registration.
A registration locks its (name, symbol) permanently once graduated, and for
a short deterrence window after creation otherwise; the window lapses on its
own because the lock state is recomputed from ``now - created_at`` on every
evaluation.

The guard is advisory: it performs one registry lookup, writes nothing, and
the registry re-checks at insert time (see :meth:`CollisionGuard.register`).
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Callable

from tokengate.adapters.registry.base import (
    AbstractIdentityRegistry,
    IdentityRegistration,
    fold_symbol,
)
from tokengate.core.errors import ValidationAppError
from tokengate.core.logging import hash_for_log

logger = logging.getLogger(__name__)

DEFAULT_DETERRENCE_WINDOW_SECONDS = 600.0


class LockStatus(str, Enum):
    UNLOCKED = "unlocked"
    LOCKED_GRADUATED = "locked_graduated"
    LOCKED_RECENT = "locked_recent"


@dataclass(frozen=True)
class LockState:
    """Outcome of a collision evaluation.

    Attributes:
        status: Lock variant.
        remaining_seconds: Time left on a ``LOCKED_RECENT`` lock, else None.
        match: The registration that produced the lock, if any.
    """

    status: LockStatus
    remaining_seconds: float | None = None
    match: IdentityRegistration | None = None

    @property
    def locked(self) -> bool:
        return self.status is not LockStatus.UNLOCKED

    @classmethod
    def unlocked(cls, match: IdentityRegistration | None = None) -> "LockState":
        return cls(status=LockStatus.UNLOCKED, match=match)


@dataclass(frozen=True)
class ProposedIdentity:
    """A validated, normalized (name, symbol) pair."""

    name: str
    symbol: str | None


class CollisionGuard:
    """Classifies proposed identities against the registry.

    Attributes:
        registry: Registry consulted for prior registrations.
        deterrence_window_seconds: Lock duration for non-graduated registrations.
    """

    def __init__(
        self,
        registry: AbstractIdentityRegistry,
        *,
        deterrence_window_seconds: float = DEFAULT_DETERRENCE_WINDOW_SECONDS,
        min_name_length: int = 3,
        max_name_length: int = 32,
        max_symbol_length: int = 10,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if deterrence_window_seconds < 0:
            raise ValueError("deterrence_window_seconds must be >= 0")

        self.registry = registry
        self.deterrence_window_seconds = deterrence_window_seconds
        self._min_name_length = min_name_length
        self._max_name_length = max_name_length
        self._max_symbol_length = max_symbol_length
        self._clock = clock

    def normalize(self, name: str | None, symbol: str | None = None) -> ProposedIdentity:
        """Trim and validate a proposed identity.

        Raises:
            ValidationAppError: ``name_required``, ``name_too_short``,
                ``name_too_long`` or ``symbol_too_long``.
        """
        trimmed_name = (name or "").strip()
        if not trimmed_name:
            raise ValidationAppError(
                code="name_required",
                message="Token name is required",
                details={"field": "name"},
            )
        if len(trimmed_name) < self._min_name_length:
            raise ValidationAppError(
                code="name_too_short",
                message=f"Token name must be at least {self._min_name_length} characters long",
                details={
                    "field": "name",
                    "min_length": self._min_name_length,
                    "actual_length": len(trimmed_name),
                },
            )
        if len(trimmed_name) > self._max_name_length:
            raise ValidationAppError(
                code="name_too_long",
                message=f"Token name must be at most {self._max_name_length} characters long",
                details={
                    "field": "name",
                    "max_length": self._max_name_length,
                    "actual_length": len(trimmed_name),
                },
            )

        # An empty or blank symbol means name-only mode
        folded_symbol = fold_symbol(symbol) if symbol and symbol.strip() else None
        if folded_symbol is not None and len(folded_symbol) > self._max_symbol_length:
            raise ValidationAppError(
                code="symbol_too_long",
                message=f"Token symbol must be at most {self._max_symbol_length} characters long",
                details={
                    "field": "symbol",
                    "max_length": self._max_symbol_length,
                    "actual_length": len(folded_symbol),
                },
            )

        return ProposedIdentity(name=trimmed_name, symbol=folded_symbol)

    def classify(self, registration: IdentityRegistration | None, now: float) -> LockState:
        """Derive the lock state a registration imposes at time ``now``."""
        if registration is None:
            return LockState.unlocked()
        if registration.graduated:
            return LockState(status=LockStatus.LOCKED_GRADUATED, match=registration)

        # A creation time ahead of ``now`` (clock skew) counts as just created
        elapsed = max(0.0, now - registration.created_at.timestamp())
        if elapsed < self.deterrence_window_seconds:
            return LockState(
                status=LockStatus.LOCKED_RECENT,
                remaining_seconds=self.deterrence_window_seconds - elapsed,
                match=registration,
            )
        return LockState.unlocked(match=registration)

    def evaluate(self, name: str | None, symbol: str | None = None) -> LockState:
        """Decide whether ``(name, symbol)`` is currently locked.

        With a symbol, both name and symbol must match; without one, the name
        alone is matched (older callers only send a name).

        Raises:
            ValidationAppError: If the proposed identity is malformed.
            StoreUnavailableAppError: If the registry cannot be reached.
        """
        proposed = self.normalize(name, symbol)
        registration = self.registry.find_identity(proposed.name, proposed.symbol)
        state = self.classify(registration, self._clock())

        logger.info(
            "collision_guard.evaluated",
            extra={
                "name_hash": hash_for_log(proposed.name.casefold()),
                "mode": "name_symbol" if proposed.symbol else "name_only",
                "lock_state": state.status.value,
                "remaining_s": state.remaining_seconds,
            },
        )
        return state

    def register(self, subject: str, name: str, symbol: str) -> IdentityRegistration:
        """Persist a new identity, re-validating the lock inside the write.

        Two concurrent registrations of the same identity can both pass
        :meth:`evaluate`; the registry runs :meth:`classify` again in the
        insert transaction, so only one of them lands.

        Raises:
            ValidationAppError: If the identity is malformed or the symbol is missing.
            IdentityTakenAppError: If the identity is locked or the subject exists.
            StoreUnavailableAppError: If the registry cannot be reached.
        """
        proposed = self.normalize(name, symbol)
        if proposed.symbol is None:
            raise ValidationAppError(
                code="symbol_required",
                message="Token symbol is required for registration",
                details={"field": "symbol"},
            )

        now = self._clock()
        registration = IdentityRegistration(
            subject=subject,
            name=proposed.name,
            symbol=proposed.symbol,
            created_at=datetime.fromtimestamp(now, tz=timezone.utc),
        )
        stored = self.registry.register(
            registration,
            is_conflict=lambda existing: self.classify(existing, self._clock()).locked,
        )
        logger.info(
            "collision_guard.registered",
            extra={"name_hash": hash_for_log(proposed.name.casefold()), "symbol": proposed.symbol},
        )
        return stored
