"""Tests for retry-on-conflict — attempt bound, back-off curve, cancellation."""

from __future__ import annotations

import random
import threading

import pytest

from stepforge.core.retry import (
    Backoff,
    OperationCancelledError,
    RetryExhaustedError,
    RetryPolicy,
)
from stepforge.store.base import ConflictError, NotFoundError


class _Flaky:
    """Raises ConflictError for the first *conflicts* calls."""

    def __init__(self, conflicts: int) -> None:
        self.conflicts = conflicts
        self.calls = 0

    def __call__(self) -> str:
        self.calls += 1
        if self.calls <= self.conflicts:
            raise ConflictError("the object has been modified")
        return "ok"


class TestBackoff:
    def test_yields_one_wait_between_each_attempt(self):
        assert len(list(Backoff(steps=5).delays())) == 4

    def test_single_step_never_waits(self):
        assert list(Backoff(steps=1).delays()) == []

    def test_exponential_growth_without_jitter(self):
        delays = list(Backoff(steps=4, duration=1.0, factor=2.0, jitter=0.0).delays())
        assert delays == [1.0, 2.0, 4.0]

    def test_cap(self):
        delays = list(Backoff(steps=4, duration=1.0, factor=10.0, jitter=0.0, cap=5.0).delays())
        assert delays == [1.0, 5.0, 5.0]

    def test_jitter_stays_within_bound(self):
        backoff = Backoff(steps=20, duration=0.01, jitter=0.1)
        for delay in backoff.delays(random.Random(42)):
            assert 0.01 <= delay <= 0.011

    def test_steps_must_be_positive(self):
        with pytest.raises(ValueError):
            Backoff(steps=0)


class TestRetryPolicy:
    def test_success_first_try(self, no_sleep_retry: RetryPolicy):
        fn = _Flaky(0)
        assert no_sleep_retry.run(fn) == "ok"
        assert fn.calls == 1

    def test_succeeds_after_steps_minus_one_conflicts(self, no_sleep_retry: RetryPolicy):
        fn = _Flaky(4)
        assert no_sleep_retry.run(fn) == "ok"
        assert fn.calls == 5

    def test_exhausts_after_steps_conflicts(self, no_sleep_retry: RetryPolicy):
        fn = _Flaky(100)
        with pytest.raises(RetryExhaustedError) as exc_info:
            no_sleep_retry.run(fn)
        assert fn.calls == 5
        assert exc_info.value.attempts == 5
        assert isinstance(exc_info.value.last_error, ConflictError)

    def test_sleeps_between_attempts(self):
        waits: list[float] = []
        policy = RetryPolicy(
            Backoff(steps=3, duration=0.5, factor=2.0, jitter=0.0), sleep=waits.append
        )
        policy.run(_Flaky(2))
        assert waits == [0.5, 1.0]

    def test_other_errors_propagate_immediately(self, no_sleep_retry: RetryPolicy):
        calls = []

        def fn() -> None:
            calls.append(1)
            raise NotFoundError("gone")

        with pytest.raises(NotFoundError):
            no_sleep_retry.run(fn)
        assert len(calls) == 1

    def test_cancelled_before_first_attempt(self):
        cancel = threading.Event()
        cancel.set()
        fn = _Flaky(0)
        with pytest.raises(OperationCancelledError):
            RetryPolicy(cancel=cancel).run(fn)
        assert fn.calls == 0

    def test_cancel_during_backoff_aborts(self):
        cancel = threading.Event()
        policy = RetryPolicy(
            Backoff(steps=5), sleep=lambda _seconds: cancel.set(), cancel=cancel
        )
        fn = _Flaky(100)
        with pytest.raises(OperationCancelledError):
            policy.run(fn)
        assert fn.calls == 1

    def test_cancel_event_wakes_wait(self):
        cancel = threading.Event()
        cancel.set()
        policy = RetryPolicy(Backoff(steps=2, duration=60.0), cancel=cancel)
        # Already set: the wait returns at once and the retry aborts.
        with pytest.raises(OperationCancelledError):
            policy._wait(60.0)
