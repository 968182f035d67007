"""Step execution states and the per-run report."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class StepState(str, Enum):
    """Where a step stands within a single run."""

    PENDING = "pending"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    SKIPPED = "skipped"  # done() reported the goal already satisfied
    FAILED = "failed"
    BLOCKED = "blocked"  # an upstream step failed
    CANCELLED = "cancelled"


# States that satisfy a dependent's prerequisites.
COMPLETED_STATES: frozenset[StepState] = frozenset(
    {StepState.SUCCEEDED, StepState.SKIPPED}
)


class StepResult(BaseModel):
    """Outcome of one step in a run."""

    model_config = ConfigDict(frozen=True)

    name: str
    description: str = ""
    state: StepState = StepState.PENDING
    operation: str | None = None  # failing operation, when state is FAILED
    error: str | None = None
    inputs: list[str] = []
    started_at: datetime | None = None
    finished_at: datetime | None = None

    @property
    def duration_seconds(self) -> float | None:
        if self.started_at is None or self.finished_at is None:
            return None
        return (self.finished_at - self.started_at).total_seconds()


class RunReport(BaseModel):
    """Aggregate outcome of a pipeline run, in execution order."""

    model_config = ConfigDict(frozen=True)

    run_id: str
    namespace: str
    dry_run: bool = False
    results: list[StepResult] = []
    parameters: dict[str, str] = {}
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )

    @property
    def succeeded(self) -> bool:
        return all(r.state in COMPLETED_STATES for r in self.results)

    def result_for(self, name: str) -> StepResult:
        for result in self.results:
            if result.name == name:
                return result
        raise KeyError(name)

    def count(self, state: StepState) -> int:
        return sum(1 for r in self.results if r.state == state)
