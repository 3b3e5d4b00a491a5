"""Pydantic schemas for the verification queue endpoints."""

from __future__ import annotations

from pydantic import BaseModel, Field

from tokengate.services.verification_queue import EnqueueReason


class VerificationStatusResponse(BaseModel):
    subject: str
    verified: bool | None = Field(
        default=None,
        description="Confirmed verification status; null when the token is unknown or unconfirmed.",
    )


class EnqueueResponse(BaseModel):
    """Result of reporting a token for verification."""

    queued: bool = Field(..., description="True only when this call added the job.")
    reason: EnqueueReason
    queue_size: int | None = Field(
        default=None,
        description="Pending jobs after this call; absent when the queue was not consulted.",
    )


class QueueDepthResponse(BaseModel):
    depth: int
    threshold: int
    above_threshold: bool
