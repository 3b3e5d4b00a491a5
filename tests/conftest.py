"""Pytest configuration and fixtures shared across all test modules.

Environment defaults are set before any import that might load settings, so
tests never depend on a developer's .env file or a running Redis.
"""

import os

# CRITICAL: Set this before any imports that might load settings
os.environ["APP_ENV"] = "testing"
os.environ.setdefault("LOG_LEVEL", "WARNING")
os.environ.setdefault("RATE_LIMIT_BACKEND", "memory")
os.environ.setdefault("VERIFICATION_QUEUE_BACKEND", "memory")
os.environ.setdefault("REGISTRY_BACKEND", "memory")

from datetime import datetime, timezone

import pytest

from tokengate.adapters.pending_set.in_memory import InMemoryPendingSetStore
from tokengate.adapters.registry.base import IdentityRegistration
from tokengate.adapters.registry.in_memory import InMemoryIdentityRegistry


class FakeClock:
    """Deterministic, manually advanced time source (UNIX seconds)."""

    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.current = start

    def __call__(self) -> float:
        return self.current

    def advance(self, seconds: float) -> None:
        self.current += seconds


def make_registration(
    clock: FakeClock,
    *,
    subject: str = "MoonMint1111111111111111111111111111111111",
    name: str = "MoonCoin",
    symbol: str = "MOON",
    age_seconds: float = 0.0,
    graduated: bool = False,
    verified: bool | None = None,
    active: bool = True,
) -> IdentityRegistration:
    return IdentityRegistration(
        subject=subject,
        name=name,
        symbol=symbol,
        created_at=datetime.fromtimestamp(clock() - age_seconds, tz=timezone.utc),
        graduated=graduated,
        verified=verified,
        active=active,
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def registry() -> InMemoryIdentityRegistry:
    return InMemoryIdentityRegistry()


@pytest.fixture
def pending() -> InMemoryPendingSetStore:
    return InMemoryPendingSetStore()
