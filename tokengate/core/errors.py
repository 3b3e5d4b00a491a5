"""Application-level exception types.

This module defines domain errors used across services/adapters, enabling
consistent error handling, logging, and API responses.

A subject that is already queued is a normal enqueue result, not an error.
``IdentityTakenAppError`` is raised only where a registration is refused.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, NotRequired, TypedDict


class ErrorDetails(TypedDict, total=False):
    """Structured error context for observability and clients.

    Fields are optional to keep backward compatibility while encouraging
    consistent shapes across the codebase.
    """

    code: str
    message: str
    hint: str
    field: str
    min_length: int
    max_length: int
    actual_length: int
    store: str
    lock_state: str
    remaining_seconds: float
    request_id: str
    context: NotRequired[dict[str, Any]]


@dataclass
class AppError(Exception):
    """Base error for application/domain failures.

    Attributes:
        code: Stable, machine-readable error code.
        message: Human-readable error message.
        details: Optional structured details for debugging/observability.
    """

    code: str
    message: str
    details: ErrorDetails | None = None

    def __post_init__(self) -> None:
        # Populate Exception args so str(error) is useful in logs/tracebacks.
        super().__init__(self.message)


class ValidationAppError(AppError):
    """Raised when input/config validation fails."""


class IdentityTakenAppError(AppError):
    """Raised when a token identity cannot be registered because it is in use."""


class StoreUnavailableAppError(AppError):
    """Raised when a backing store (registry, pending set, rate limit table) fails.

    The rate limiter turns it into a degraded decision; elsewhere it surfaces
    as HTTP 503.
    """
