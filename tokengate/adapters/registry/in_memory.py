"""In-process identity registry, used for development and tests."""

from __future__ import annotations

import threading

from tokengate.adapters.registry.base import (
    AbstractIdentityRegistry,
    ConflictPredicate,
    IdentityRegistration,
    fold_name,
    fold_symbol,
)
from tokengate.core.errors import IdentityTakenAppError


def _precedence(registration: IdentityRegistration) -> tuple[bool, float]:
    return registration.graduated, registration.created_at.timestamp()


class InMemoryIdentityRegistry(AbstractIdentityRegistry):
    """Registry held in a dict keyed by subject, guarded by one lock."""

    def __init__(self, registrations: list[IdentityRegistration] | None = None) -> None:
        self._lock = threading.Lock()
        self._by_subject: dict[str, IdentityRegistration] = {}
        for registration in registrations or []:
            self._by_subject[registration.subject] = registration

    def _match_locked(self, name: str, symbol: str | None) -> IdentityRegistration | None:
        folded_name = fold_name(name)
        folded_symbol = fold_symbol(symbol) if symbol else None

        matches = [
            r
            for r in self._by_subject.values()
            if r.active
            and fold_name(r.name) == folded_name
            and (folded_symbol is None or fold_symbol(r.symbol) == folded_symbol)
        ]
        if not matches:
            return None
        return max(matches, key=_precedence)

    def find_identity(self, name: str, symbol: str | None = None) -> IdentityRegistration | None:
        with self._lock:
            return self._match_locked(name, symbol)

    def find_subject(self, subject: str) -> IdentityRegistration | None:
        with self._lock:
            return self._by_subject.get(subject)

    def register(
        self,
        registration: IdentityRegistration,
        *,
        is_conflict: ConflictPredicate,
    ) -> IdentityRegistration:
        with self._lock:
            if registration.subject in self._by_subject:
                raise IdentityTakenAppError(
                    code="subject_taken",
                    message="This token is already registered",
                )

            existing = self._match_locked(registration.name, registration.symbol)
            if existing is not None and is_conflict(existing):
                raise IdentityTakenAppError(
                    code="identity_taken",
                    message="Token name and symbol are already taken",
                )

            self._by_subject[registration.subject] = registration
            return registration

    def __len__(self) -> int:
        with self._lock:
            return len(self._by_subject)
