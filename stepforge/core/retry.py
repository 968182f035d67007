"""Bounded retry-on-conflict with exponential back-off.

The only safety mechanism against concurrent writers of the shared store
is optimistic concurrency: a write that loses the race fails with
``ConflictError`` and is retried against fresh state. ``RetryPolicy``
bounds that loop. Sleep, randomness and cancellation are injectable so
tests can simulate conflicts deterministically without real delays.
"""

from __future__ import annotations

import logging
import random
import threading
import time
from collections.abc import Callable, Iterator
from typing import TypeVar

from pydantic import BaseModel, ConfigDict, Field

from stepforge.store.base import ConflictError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RetryExhaustedError(RuntimeError):
    """Raised when every attempt allowed by the back-off hit a conflict."""

    def __init__(self, attempts: int, last_error: Exception) -> None:
        super().__init__(
            f"gave up after {attempts} conflicting attempts: {last_error}"
        )
        self.attempts = attempts
        self.last_error = last_error


class OperationCancelledError(RuntimeError):
    """Raised when the run was cancelled while waiting to retry."""


class Backoff(BaseModel):
    """Retry schedule.

    ``steps`` is the maximum number of attempts. The wait before attempt
    ``n + 1`` is ``duration * factor**n`` seconds, plus up to
    ``jitter * delay`` of random slack, capped at ``cap`` when set.
    Defaults match the conventional retry-on-conflict schedule: five
    attempts, 10ms apart.
    """

    model_config = ConfigDict(frozen=True)

    steps: int = Field(default=5, ge=1)
    duration: float = Field(default=0.01, ge=0.0)
    factor: float = Field(default=1.0, ge=0.0)
    jitter: float = Field(default=0.1, ge=0.0)
    cap: float | None = None

    def delays(self, rng: random.Random | None = None) -> Iterator[float]:
        """Yield the ``steps - 1`` waits between consecutive attempts."""
        rng = rng or random.Random()
        delay = self.duration
        for _ in range(self.steps - 1):
            wait = delay
            if self.jitter > 0:
                wait += rng.random() * self.jitter * delay
            if self.cap is not None:
                wait = min(wait, self.cap)
            yield wait
            delay *= self.factor


DEFAULT_BACKOFF = Backoff()


class RetryPolicy:
    """Runs a callable until it stops raising ``ConflictError``.

    Parameters
    ----------
    backoff:
        Attempt bound and wait curve.
    sleep:
        Called with each wait in seconds. Defaults to ``time.sleep``, or to
        ``cancel.wait`` when *cancel* is given.
    cancel:
        Shared cancellation signal; once set, pending retries abort with
        ``OperationCancelledError``.
    rng:
        Source of jitter.
    """

    def __init__(
        self,
        backoff: Backoff = DEFAULT_BACKOFF,
        *,
        sleep: Callable[[float], object] | None = None,
        cancel: threading.Event | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self.backoff = backoff
        self._sleep = sleep
        self._cancel = cancel
        self._rng = rng

    @property
    def cancelled(self) -> bool:
        return self._cancel is not None and self._cancel.is_set()

    def check_cancelled(self) -> None:
        """Raise ``OperationCancelledError`` once the run is cancelled."""
        if self.cancelled:
            raise OperationCancelledError("run cancelled")

    def _wait(self, seconds: float) -> None:
        if self._sleep is not None:
            self._sleep(seconds)
        elif self._cancel is not None:
            self._cancel.wait(seconds)
        else:
            time.sleep(seconds)
        if self.cancelled:
            raise OperationCancelledError("run cancelled while waiting to retry")

    def run(self, fn: Callable[[], T]) -> T:
        """Call *fn*, retrying on conflict. Other exceptions propagate."""
        delays = self.backoff.delays(self._rng)
        attempt = 0
        while True:
            if self.cancelled:
                raise OperationCancelledError("run cancelled before attempt")
            attempt += 1
            try:
                return fn()
            except ConflictError as exc:
                delay = next(delays, None)
                if delay is None:
                    raise RetryExhaustedError(attempt, exc) from exc
                logger.warning(
                    "Conflict on attempt %d/%d, retrying in %.3fs: %s",
                    attempt,
                    self.backoff.steps,
                    delay,
                    exc,
                )
                self._wait(delay)
