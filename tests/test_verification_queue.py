"""Tests for deduplicated verification scheduling."""

import threading
from unittest.mock import MagicMock

import pytest

from conftest import FakeClock, make_registration
from tokengate.adapters.pending_set.base import AbstractPendingSetStore
from tokengate.adapters.pending_set.in_memory import InMemoryPendingSetStore
from tokengate.adapters.registry.in_memory import InMemoryIdentityRegistry
from tokengate.core.errors import StoreUnavailableAppError, ValidationAppError
from tokengate.services.verification_queue import (
    EnqueueReason,
    VerificationQueue,
    validate_subject,
)


def _queue(registry, pending, clock, *, threshold: int = 1000) -> VerificationQueue:
    return VerificationQueue(registry, pending, depth_warning_threshold=threshold, clock=clock)


class TestEnqueue:
    def test_first_enqueue_adds_then_duplicate_is_skipped(self, registry, pending, clock) -> None:
        queue = _queue(registry, pending, clock)
        before = queue.depth()

        first = queue.enqueue("Mint1")
        second = queue.enqueue("Mint1")

        assert first.enqueued is True
        assert first.reason is EnqueueReason.ADDED_TO_QUEUE
        assert first.depth == before + 1
        assert second.skipped is True
        assert second.reason is EnqueueReason.ALREADY_IN_QUEUE
        assert queue.depth() == before + 1

    def test_verified_subject_never_touches_pending_set(self, pending, clock: FakeClock) -> None:
        registry = InMemoryIdentityRegistry([make_registration(clock, subject="Mint1", verified=True)])
        queue = _queue(registry, pending, clock)

        result = queue.enqueue("Mint1")

        assert result.reason is EnqueueReason.ALREADY_VERIFIED
        assert result.depth is None
        assert queue.depth() == 0

    @pytest.mark.parametrize("verified", [None, False])
    def test_unconfirmed_registration_is_enqueued(self, pending, clock, verified) -> None:
        registry = InMemoryIdentityRegistry(
            [make_registration(clock, subject="Mint1", verified=verified)]
        )

        assert _queue(registry, pending, clock).enqueue("Mint1").enqueued is True

    def test_unknown_subject_is_enqueued(self, registry, pending, clock) -> None:
        assert _queue(registry, pending, clock).enqueue("NeverSeen").enqueued is True

    def test_score_is_epoch_milliseconds(self, registry, pending, clock) -> None:
        queue = _queue(registry, pending, clock)

        queue.enqueue("Mint1")
        clock.advance(2)
        queue.enqueue("Mint2")

        assert pending.members() == [
            ("Mint1", 1_700_000_000_000.0),
            ("Mint2", 1_700_000_002_000.0),
        ]

    def test_subject_is_trimmed(self, registry, pending, clock) -> None:
        queue = _queue(registry, pending, clock)

        queue.enqueue("  Mint1 ")

        assert queue.enqueue("Mint1").reason is EnqueueReason.ALREADY_IN_QUEUE

    @pytest.mark.parametrize("subject", ["", "   ", None, "has space", "x" * 129])
    def test_invalid_subject_is_rejected(self, registry, pending, clock, subject) -> None:
        with pytest.raises(ValidationAppError) as exc_info:
            _queue(registry, pending, clock).enqueue(subject)

        assert exc_info.value.code == "invalid_subject"
        assert pending.size() == 0

    def test_concurrent_enqueues_produce_one_winner(self, registry, pending, clock) -> None:
        queue = _queue(registry, pending, clock)
        workers = 16
        barrier = threading.Barrier(workers)
        reasons: list[EnqueueReason] = []
        reasons_lock = threading.Lock()

        def _worker() -> None:
            barrier.wait()
            result = queue.enqueue("Mint1")
            with reasons_lock:
                reasons.append(result.reason)

        threads = [threading.Thread(target=_worker) for _ in range(workers)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert reasons.count(EnqueueReason.ADDED_TO_QUEUE) == 1
        assert reasons.count(EnqueueReason.ALREADY_IN_QUEUE) == workers - 1
        assert pending.size() == 1

    def test_pending_store_errors_propagate(self, registry, clock) -> None:
        store = MagicMock(spec=AbstractPendingSetStore)
        store.insert_if_absent.side_effect = StoreUnavailableAppError(
            code="pending_set_unavailable",
            message="Verification queue is unavailable",
        )

        with pytest.raises(StoreUnavailableAppError):
            _queue(registry, store, clock).enqueue("Mint1")

    def test_depth_failure_after_insert_still_reports_outcome(self, registry, clock, caplog) -> None:
        store = MagicMock(spec=AbstractPendingSetStore)
        store.insert_if_absent.return_value = True
        store.size.side_effect = StoreUnavailableAppError(
            code="pending_set_unavailable",
            message="Verification queue is unavailable",
        )

        with caplog.at_level("WARNING", logger="tokengate.services.verification_queue"):
            result = _queue(registry, store, clock).enqueue("Mint1")

        assert result.reason is EnqueueReason.ADDED_TO_QUEUE
        assert result.depth is None
        store.insert_if_absent.assert_called_once()
        records = [r for r in caplog.records if r.getMessage() == "verification_queue.depth_unavailable"]
        assert records
        assert records[0].error_code == "pending_set_unavailable"


class TestDepth:
    def test_depth_warning_above_threshold(self, registry, pending, clock, caplog) -> None:
        queue = _queue(registry, pending, clock, threshold=2)
        queue.enqueue("Mint1")
        queue.enqueue("Mint2")

        with caplog.at_level("WARNING", logger="tokengate.services.verification_queue"):
            assert queue.depth() == 2
            assert not [r for r in caplog.records if r.getMessage() == "verification_queue.depth_warning"]

            queue.enqueue("Mint3")

        warnings = [r for r in caplog.records if r.getMessage() == "verification_queue.depth_warning"]
        assert len(warnings) == 1
        assert warnings[0].depth == 3
        assert warnings[0].threshold == 2

    def test_negative_threshold_is_rejected(self, registry, pending) -> None:
        with pytest.raises(ValueError):
            VerificationQueue(registry, pending, depth_warning_threshold=-1)


def test_validate_subject_returns_trimmed_value() -> None:
    assert validate_subject(" Mint1 ") == "Mint1"
