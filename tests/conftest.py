"""Shared test fixtures for stepforge."""

from __future__ import annotations

from collections.abc import Callable, Iterable
from pathlib import Path

import pytest

from stepforge.core.parameters import DeferredParameters
from stepforge.core.retry import Backoff, RetryPolicy
from stepforge.models.config import RunContext
from stepforge.models.links import StepLink, internal_image_link
from stepforge.steps.base import Operation, Step
from stepforge.store.memory import InMemoryImageStore

TEST_NAMESPACE = "ci-op-test"


@pytest.fixture
def tmp_dir(tmp_path: Path) -> Path:
    """Provide a temporary directory for test artifacts."""
    return tmp_path


@pytest.fixture
def store() -> InMemoryImageStore:
    """Provide an empty in-memory image store."""
    return InMemoryImageStore(internal_registry="registry.svc:5000", record_calls=True)


@pytest.fixture
def context() -> RunContext:
    """Provide a deterministic run context."""
    return RunContext(namespace=TEST_NAMESPACE, run_id="sf-test-run-001")


@pytest.fixture
def params() -> DeferredParameters:
    return DeferredParameters()


@pytest.fixture
def no_sleep_retry() -> RetryPolicy:
    """A default-length retry policy that never actually sleeps."""
    return RetryPolicy(Backoff(), sleep=lambda _seconds: None)


# ---------------------------------------------------------------------------
# Step factory, shared across graph and runner tests
# ---------------------------------------------------------------------------


class RecordingStep(Step):
    """Step with declared links whose lifecycle calls are recorded."""

    def __init__(
        self,
        name: str,
        *,
        requires: Iterable[StepLink] = (),
        creates: Iterable[StepLink] = (),
        done: bool = False,
        fail: bool = False,
        crash: bool = False,
        journal: list[tuple[str, str]] | None = None,
        on_run: Callable[[], None] | None = None,
    ) -> None:
        super().__init__()
        self._name = name
        self._requires = frozenset(requires)
        self._creates = frozenset(creates)
        self._done = done
        self._fail = fail
        self._crash = crash
        self.journal = journal if journal is not None else []
        self._on_run = on_run

    @property
    def name(self) -> str:
        return self._name

    @property
    def description(self) -> str:
        return f"recording step {self._name}"

    def requires(self) -> frozenset[StepLink]:
        return self._requires

    def creates(self) -> frozenset[StepLink]:
        return self._creates

    def run(self, dry_run: bool) -> None:
        self.journal.append(("run", self._name))
        if self._on_run is not None:
            self._on_run()
        if self._crash:
            raise KeyError("boom")
        if self._fail:
            raise self.fail(Operation.CREATE, "store unavailable")

    def done(self) -> bool:
        self.journal.append(("done", self._name))
        return self._done


@pytest.fixture
def make_step() -> Callable[..., RecordingStep]:
    """Factory fixture: ``make_step("a", needs=["x"], makes=["y"])``.

    ``needs`` and ``makes`` are pipeline tags turned into internal links.
    """

    def _factory(
        name: str,
        needs: Iterable[str] = (),
        makes: Iterable[str] = (),
        **kwargs,
    ) -> RecordingStep:
        return RecordingStep(
            name,
            requires=[internal_image_link(tag) for tag in needs],
            creates=[internal_image_link(tag) for tag in makes],
            **kwargs,
        )

    return _factory
