"""Pydantic schemas for token identity checks and registration."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from tokengate.services.collision_guard import LockStatus


class CheckNameRequest(BaseModel):
    """Proposed identity to check before creating a token."""

    name: str = Field(..., description="Token name (trimmed, case-insensitive).")
    symbol: str | None = Field(
        default=None,
        description="Ticker symbol. When omitted only the name is checked.",
    )


class CheckNameResponse(BaseModel):
    """Lock state of a proposed identity."""

    exists: bool = Field(..., description="True when the identity is currently locked.")
    lock_state: LockStatus
    remaining_seconds: float | None = Field(
        default=None,
        description="Seconds until a recent-creation lock lapses.",
    )
    message: str


class RegisterTokenRequest(BaseModel):
    subject: str = Field(..., description="Token mint address.")
    name: str
    symbol: str


class RegisteredToken(BaseModel):
    subject: str
    name: str
    symbol: str
    created_at: datetime
    graduated: bool
