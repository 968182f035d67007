"""Pipeline runner — drives a step graph to convergence.

Lifecycle of one step:

    wait for prerequisites -> done()? -> inputs() -> run()

- A step is submitted only once every step producing one of its required
  links has succeeded or was found already done.
- ``done() == True`` skips ``run()`` entirely, so re-running a partially
  completed pipeline is safe.
- Independent steps execute concurrently on a thread pool.
- A failed step blocks all of its transitive dependents; branches already
  in flight finish. The run then fails with every step error attached.
- ``cancel()`` (or Ctrl-C while waiting) stops new steps from starting,
  including steps already queued on the pool, and wakes up retry
  back-offs. Mutations already committed are not rolled back.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Sequence
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from datetime import datetime, timezone

from stepforge.core.parameters import DeferredParameters
from stepforge.core.retry import OperationCancelledError
from stepforge.core.step_graph import StepGraph
from stepforge.models.config import RunContext
from stepforge.models.steps import RunReport, StepResult, StepState
from stepforge.steps.base import Operation, Step, StepError

logger = logging.getLogger(__name__)


class PipelineFailedError(RuntimeError):
    """Raised when one or more steps failed; carries every step error."""

    def __init__(self, report: RunReport, errors: list[StepError]) -> None:
        lines = [f"{len(errors)} step(s) failed in run {report.run_id}:"]
        lines.extend(f"  - {err}" for err in errors)
        super().__init__("\n".join(lines))
        self.report = report
        self.errors = errors


class PipelineRunner:
    """Executes a fixed set of steps in dependency order.

    Parameters
    ----------
    steps:
        The run's steps. The graph is built (and validated) immediately.
    context:
        The run's ambient context.
    params:
        The run's parameter table; its resolved values end up in the report.
    dry_run:
        Render desired state instead of mutating the store. Completion
        checks are skipped.
    max_workers:
        Upper bound on concurrently executing steps.
    cancel:
        Shared cancellation signal. Pass the same event to the steps'
        ``RetryPolicy`` so in-flight back-offs abort too.
    """

    def __init__(
        self,
        steps: Sequence[Step],
        context: RunContext,
        *,
        params: DeferredParameters | None = None,
        dry_run: bool = False,
        max_workers: int = 4,
        cancel: threading.Event | None = None,
    ) -> None:
        self.graph = StepGraph(steps)
        self.context = context
        self.params = params or DeferredParameters()
        self.dry_run = dry_run
        self.max_workers = max(1, max_workers)
        self._cancel = cancel or threading.Event()

        self._lock = threading.Lock()
        self._states: dict[str, StepState] = {
            name: StepState.PENDING for name in self.graph.step_names
        }
        self._results: dict[str, StepResult] = {}
        self._errors: list[StepError] = []

    # ------------------------------------------------------------------
    # Control
    # ------------------------------------------------------------------

    def cancel(self) -> None:
        """Stop scheduling new steps and abort pending retries."""
        logger.warning("Cancelling run %s", self.context.run_id)
        self._cancel.set()

    @property
    def cancelled(self) -> bool:
        return self._cancel.is_set()

    def get_states(self) -> dict[str, StepState]:
        with self._lock:
            return dict(self._states)

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    def run(self) -> RunReport:
        """Run every step to convergence.

        Returns the report; raises ``PipelineFailedError`` if any step failed.
        """
        logger.info(
            "Running %d steps in %s (run %s%s)",
            len(self.graph),
            self.context.namespace,
            self.context.run_id,
            ", dry run" if self.dry_run else "",
        )
        futures: dict[Future[StepResult], str] = {}

        with ThreadPoolExecutor(
            max_workers=self.max_workers, thread_name_prefix="stepforge"
        ) as pool:
            self._submit_ready(pool, futures)
            while futures:
                try:
                    finished, _ = wait(futures, return_when=FIRST_COMPLETED)
                except KeyboardInterrupt:
                    # Queued steps come back cancelled; in-flight ones finish.
                    logger.warning("Interrupted, waiting for running steps to finish")
                    self.cancel()
                    continue
                for future in finished:
                    name = futures.pop(future)
                    self._record(name, future.result())
                self._submit_ready(pool, futures)

        self._finalize_unstarted()
        report = self._build_report()
        if self._errors:
            raise PipelineFailedError(report, list(self._errors))
        logger.info(
            "Run %s complete: %d succeeded, %d already done",
            self.context.run_id,
            report.count(StepState.SUCCEEDED),
            report.count(StepState.SKIPPED),
        )
        return report

    def _submit_ready(
        self, pool: ThreadPoolExecutor, futures: dict[Future[StepResult], str]
    ) -> None:
        if self.cancelled:
            return
        with self._lock:
            ready = [
                name
                for name in self.graph.step_names
                if self._states[name] == StepState.PENDING
                and self.graph.are_prerequisites_met(name, self._states)
            ]
            for name in ready:
                self._states[name] = StepState.RUNNING
        for name in ready:
            futures[pool.submit(self._execute, self.graph.get_step(name))] = name

    def _execute(self, step: Step) -> StepResult:
        """Run one step's lifecycle; never raises."""
        started = datetime.now(timezone.utc)
        inputs: list[str] = []
        if self.cancelled:
            logger.info("Not starting %s: run cancelled", step.name)
            return self._cancelled(step, started, inputs)
        try:
            if not self.dry_run and step.done():
                logger.info("Skipping %s: already done", step.name)
                state = StepState.SKIPPED
            else:
                inputs = step.inputs(self.dry_run)
                logger.info("Executing %s: %s", step.name, step.description)
                step.run(self.dry_run)
                state = StepState.SUCCEEDED
        except StepError as exc:
            if isinstance(exc.__cause__, OperationCancelledError):
                logger.info("Step %s cancelled during %s", step.name, exc.operation.value)
                return self._cancelled(step, started, inputs)
            return self._failure(step, exc, started, inputs)
        except Exception as exc:
            logger.exception("Unexpected error in %s", step.name)
            wrapped = StepError(step.name, Operation.EXECUTE, str(exc))
            wrapped.__cause__ = exc
            return self._failure(step, wrapped, started, inputs)

        return StepResult(
            name=step.name,
            description=step.description,
            state=state,
            inputs=inputs,
            started_at=started,
            finished_at=datetime.now(timezone.utc),
        )

    def _cancelled(
        self, step: Step, started: datetime, inputs: list[str]
    ) -> StepResult:
        return StepResult(
            name=step.name,
            description=step.description,
            state=StepState.CANCELLED,
            inputs=inputs,
            started_at=started,
            finished_at=datetime.now(timezone.utc),
        )

    def _failure(
        self, step: Step, exc: StepError, started: datetime, inputs: list[str]
    ) -> StepResult:
        logger.error("Step %s failed (%s): %s", step.name, exc.operation.value, exc.message)
        with self._lock:
            self._errors.append(exc)
        return StepResult(
            name=step.name,
            description=step.description,
            state=StepState.FAILED,
            operation=exc.operation.value,
            error=exc.message,
            inputs=inputs,
            started_at=started,
            finished_at=datetime.now(timezone.utc),
        )

    def _record(self, name: str, result: StepResult) -> None:
        with self._lock:
            self._states[name] = result.state
            self._results[name] = result
            if result.state == StepState.FAILED:
                blocked = self.graph.cascade_block(name, self._states)
                for blocked_name in blocked:
                    logger.warning("Step %s blocked by failure of %s", blocked_name, name)

    def _finalize_unstarted(self) -> None:
        """Steps never started end as BLOCKED or CANCELLED."""
        with self._lock:
            for name, state in self._states.items():
                if state == StepState.PENDING:
                    self._states[name] = (
                        StepState.CANCELLED if self.cancelled else StepState.BLOCKED
                    )

    def _build_report(self) -> RunReport:
        with self._lock:
            results = []
            for name in self.graph.step_names:
                result = self._results.get(name)
                if result is None:
                    step = self.graph.get_step(name)
                    result = StepResult(
                        name=name,
                        description=step.description,
                        state=self._states[name],
                    )
                results.append(result)
        return RunReport(
            run_id=self.context.run_id,
            namespace=self.context.namespace,
            dry_run=self.dry_run,
            results=results,
            parameters=self.params.resolved(),
        )
