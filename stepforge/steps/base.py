"""Abstract step contract shared by every step kind.

The scheduler depends only on this interface, never on concrete kinds:

    requires() / creates()   — dependency metadata, fixed at construction
    provides()               — exported parameters (lazy providers)
    inputs(dry_run)          — identities of the inputs the step consumes
    done()                   — read-only completion check
    run(dry_run)             — reconciliation

Every fatal error leaves a step as ``StepError`` tagged with the
``Operation`` that failed, so the caller can aggregate and log failures
without knowing the step kind.
"""

from __future__ import annotations

import abc
import sys
from enum import Enum
from typing import TextIO

from pydantic import BaseModel

from stepforge.core.parameters import ParameterMap
from stepforge.models.links import StepLink


class Operation(str, Enum):
    """The step operation an error is attributed to."""

    RESOLVE_SOURCE = "resolve-source"
    CREATE = "create"
    UPDATE = "update"
    FETCH_FOR_COMPLETION = "fetch-for-completion"
    RESOLVE_PARAMETER = "resolve-parameter"
    RENDER = "render"
    WRITE = "write"
    EXECUTE = "execute"


class StepError(RuntimeError):
    """A fatal step failure, tagged with the failing operation."""

    def __init__(self, step_name: str, operation: Operation, message: str) -> None:
        super().__init__(f"step {step_name} failed to {operation.value}: {message}")
        self.step_name = step_name
        self.operation = operation
        self.message = message


class Step(abc.ABC):
    """Abstract base for all pipeline steps.

    Subclasses **must** implement ``name``, ``description``, ``requires``,
    ``creates``, ``run`` and ``done``. ``provides`` and ``inputs`` default
    to exporting and consuming nothing.

    ``out`` is the diagnostic stream dry-run renderings are written to;
    ``None`` means the process's stdout at the time of writing.
    """

    def __init__(self, *, out: TextIO | None = None) -> None:
        self._out = out

    # ------------------------------------------------------------------
    # Identity
    # ------------------------------------------------------------------

    @property
    @abc.abstractmethod
    def name(self) -> str:
        """Unique, human-readable step name."""
        ...

    @property
    @abc.abstractmethod
    def description(self) -> str:
        ...

    # ------------------------------------------------------------------
    # Dependency metadata
    # ------------------------------------------------------------------

    @abc.abstractmethod
    def requires(self) -> frozenset[StepLink]:
        """Links that must exist before this step runs."""
        ...

    @abc.abstractmethod
    def creates(self) -> frozenset[StepLink]:
        """Links this step makes available once done."""
        ...

    def provides(self) -> tuple[ParameterMap, StepLink | None]:
        """Exported parameters and the link that makes them valid."""
        return {}, None

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    def inputs(self, dry_run: bool) -> list[str]:
        return []

    @abc.abstractmethod
    def run(self, dry_run: bool) -> None:
        """Drive remote state toward the desired state.

        Must not mutate the store when *dry_run* is true.
        """
        ...

    @abc.abstractmethod
    def done(self) -> bool:
        """Return whether remote state already satisfies this step.

        Absence is "not done", never an error.
        """
        ...

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def fail(self, operation: Operation, message: str) -> StepError:
        """Build a ``StepError`` for this step (callers ``raise`` it)."""
        return StepError(self.name, operation, message)

    def render(self, resource: BaseModel) -> None:
        """Write the would-be *resource* to the diagnostic stream."""
        try:
            text = resource.model_dump_json(indent=2, by_alias=True, exclude_none=True)
        except ValueError as exc:
            raise self.fail(Operation.RENDER, f"failed to marshal resource: {exc}") from exc
        out = self._out or sys.stdout
        out.write(text + "\n")

    def __repr__(self) -> str:
        return f"<{type(self).__name__} name={self.name!r}>"
