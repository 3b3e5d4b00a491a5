from fastapi import APIRouter, Depends

from tokengate.core.container import Container
from tokengate.core.rate_limit import get_container, rate_limited
from tokengate.schemas.verification import (
    EnqueueResponse,
    QueueDepthResponse,
    VerificationStatusResponse,
)
from tokengate.services.verification_queue import validate_subject

router = APIRouter(tags=["Verification"])


@router.get(
    "/tokens/{subject}/verification",
    response_model=VerificationStatusResponse,
)
def get_verification_status(
    subject: str,
    container: Container = Depends(get_container),
) -> VerificationStatusResponse:
    """Return the confirmed verification status recorded for a token."""
    subject = validate_subject(subject)
    record = container.registry.find_subject(subject)
    return VerificationStatusResponse(
        subject=subject,
        verified=record.verified if record is not None else None,
    )


@router.post(
    "/tokens/{subject}/verification",
    response_model=EnqueueResponse,
    dependencies=[Depends(rate_limited("verification"))],
)
def request_verification(
    subject: str,
    container: Container = Depends(get_container),
) -> EnqueueResponse:
    """Queue a token for server-side verification.

    Called when a client sees the token as verified downstream. Repeated
    reports while a job is pending are acknowledged without queueing again.
    """
    result = container.require_verification_queue().enqueue(subject)
    return EnqueueResponse(
        queued=result.enqueued,
        reason=result.reason,
        queue_size=result.depth,
    )


@router.get("/verification-queue", response_model=QueueDepthResponse)
def get_queue_depth(container: Container = Depends(get_container)) -> QueueDepthResponse:
    """Backlog size of the verification queue, for monitoring."""
    queue = container.require_verification_queue()
    depth = queue.depth()
    return QueueDepthResponse(
        depth=depth,
        threshold=queue.depth_warning_threshold,
        above_threshold=depth > queue.depth_warning_threshold,
    )
