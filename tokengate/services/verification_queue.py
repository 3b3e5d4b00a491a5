"""Deduplicated scheduling of background verification jobs.

Clients report that a token looks verified downstream; the queue makes sure
each such subject is pending at most once. Subjects the registry already
marks as verified are skipped without touching the pending set. Entries are
drained (and removed) by an external worker.
"""

from __future__ import annotations

import logging
import re
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable

from tokengate.adapters.pending_set.base import AbstractPendingSetStore
from tokengate.adapters.registry.base import AbstractIdentityRegistry
from tokengate.core.errors import StoreUnavailableAppError, ValidationAppError

logger = logging.getLogger(__name__)

_SUBJECT_MAX_LENGTH = 128
_SUBJECT_PATTERN = re.compile(r"^\S+$")


class EnqueueReason(str, Enum):
    ADDED_TO_QUEUE = "added_to_queue"
    ALREADY_IN_QUEUE = "already_in_queue"
    ALREADY_VERIFIED = "already_verified"


@dataclass(frozen=True)
class EnqueueResult:
    """Outcome of :meth:`VerificationQueue.enqueue`.

    ``depth`` is the pending-set size observed right after the insert, or
    None when the pending set was not consulted or its size could not be read.
    """

    reason: EnqueueReason
    depth: int | None = None

    @property
    def enqueued(self) -> bool:
        return self.reason is EnqueueReason.ADDED_TO_QUEUE

    @property
    def skipped(self) -> bool:
        return not self.enqueued


def validate_subject(subject: str | None) -> str:
    """Return the trimmed subject or raise ``invalid_subject``."""
    trimmed = (subject or "").strip()
    if not trimmed or len(trimmed) > _SUBJECT_MAX_LENGTH or not _SUBJECT_PATTERN.match(trimmed):
        raise ValidationAppError(
            code="invalid_subject",
            message="Token address is required and must not contain whitespace",
            details={"field": "subject", "max_length": _SUBJECT_MAX_LENGTH},
        )
    return trimmed


class VerificationQueue:
    """At-most-one pending verification job per subject."""

    def __init__(
        self,
        registry: AbstractIdentityRegistry,
        pending: AbstractPendingSetStore,
        *,
        depth_warning_threshold: int = 1000,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if depth_warning_threshold < 0:
            raise ValueError("depth_warning_threshold must be >= 0")

        self.registry = registry
        self.pending = pending
        self.depth_warning_threshold = depth_warning_threshold
        self._clock = clock

    def enqueue(self, subject: str) -> EnqueueResult:
        """Schedule verification of ``subject`` unless verified or already pending.

        Raises:
            ValidationAppError: If ``subject`` is malformed.
            StoreUnavailableAppError: If the registry or pending set is unreachable.
        """
        subject = validate_subject(subject)

        record = self.registry.find_subject(subject)
        if record is not None and record.verified is True:
            logger.info(
                "verification_queue.skipped",
                extra={"subject": subject, "reason": EnqueueReason.ALREADY_VERIFIED.value},
            )
            return EnqueueResult(reason=EnqueueReason.ALREADY_VERIFIED)

        # Millisecond scores keep drain order compatible with other producers
        inserted = self.pending.insert_if_absent(subject, self._clock() * 1000)
        reason = EnqueueReason.ADDED_TO_QUEUE if inserted else EnqueueReason.ALREADY_IN_QUEUE
        try:
            depth: int | None = self.depth()
        except StoreUnavailableAppError as exc:
            # The insert already happened; report its outcome without a depth
            logger.warning(
                "verification_queue.depth_unavailable",
                extra={"subject": subject, "error_code": exc.code},
            )
            depth = None

        logger.info(
            "verification_queue.enqueued" if inserted else "verification_queue.skipped",
            extra={"subject": subject, "reason": reason.value, "depth": depth},
        )
        return EnqueueResult(reason=reason, depth=depth)

    def depth(self) -> int:
        """Return the pending-set size, warning when it exceeds the threshold.

        A growing backlog means the drain worker has stalled; the warning is
        an observation, not a failure.
        """
        depth = self.pending.size()
        if depth > self.depth_warning_threshold:
            logger.warning(
                "verification_queue.depth_warning",
                extra={"depth": depth, "threshold": self.depth_warning_threshold},
            )
        return depth
