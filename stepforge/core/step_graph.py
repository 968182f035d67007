"""Step dependency DAG, derived from link declarations.

An edge A -> B exists iff ``A.creates() & B.requires()`` is non-empty.
The graph is built once per run and enforces:

- every required link is created by some step;
- no cycles;
- step names are unique.

Violations are configuration errors, raised before anything executes.
"""

from __future__ import annotations

from collections import deque
from collections.abc import Mapping, Sequence

from stepforge.models.links import StepLink
from stepforge.models.steps import COMPLETED_STATES, StepState
from stepforge.steps.base import Step


class GraphError(ValueError):
    """Base class for pipeline configuration errors found in the graph."""


class CyclicDependencyError(GraphError):
    """Raised when the step graph contains a cycle."""


class UnresolvedLinkError(GraphError):
    """Raised when a step requires a link that no step creates."""

    def __init__(self, missing: list[tuple[str, StepLink]]) -> None:
        details = "; ".join(f"{name} requires {link}" for name, link in missing)
        super().__init__(f"unresolved step requirements: {details}")
        self.missing = missing


class DuplicateStepError(GraphError):
    """Raised when two steps share a name."""


class StepGraph:
    """Directed acyclic graph over a fixed set of steps.

    Parameters
    ----------
    steps:
        The run's steps, in declaration order. Ties in topological order
        are broken by this order.
    """

    def __init__(self, steps: Sequence[Step]) -> None:
        self._steps: dict[str, Step] = {}
        for step in steps:
            if step.name in self._steps:
                raise DuplicateStepError(f"duplicate step name {step.name!r}")
            self._steps[step.name] = step
        self._position = {name: i for i, name in enumerate(self._steps)}

        # link -> names of the steps creating it
        creators: dict[StepLink, list[str]] = {}
        for name, step in self._steps.items():
            for link in step.creates():
                creators.setdefault(link, []).append(name)

        # Forward edges: name -> prerequisite names
        self._prerequisites: dict[str, list[str]] = {name: [] for name in self._steps}
        # Reverse edges: name -> direct dependents
        self._dependents: dict[str, list[str]] = {name: [] for name in self._steps}

        missing: list[tuple[str, StepLink]] = []
        for name, step in self._steps.items():
            for link in sorted(step.requires(), key=str):
                producers = [p for p in creators.get(link, []) if p != name]
                if not producers:
                    missing.append((name, link))
                    continue
                for producer in producers:
                    if producer not in self._prerequisites[name]:
                        self._prerequisites[name].append(producer)
                        self._dependents[producer].append(name)
        if missing:
            raise UnresolvedLinkError(missing)

        for name in self._steps:
            self._prerequisites[name].sort(key=self._position.__getitem__)
            self._dependents[name].sort(key=self._position.__getitem__)

        self._order = self._topological_order()

    def _topological_order(self) -> list[str]:
        """Kahn's algorithm; raises ``CyclicDependencyError`` on a cycle."""
        in_degree = {name: len(prereqs) for name, prereqs in self._prerequisites.items()}
        queue = deque(name for name in self._steps if in_degree[name] == 0)
        order: list[str] = []

        while queue:
            node = queue.popleft()
            order.append(node)
            for dep in self._dependents[node]:
                in_degree[dep] -= 1
                if in_degree[dep] == 0:
                    queue.append(dep)

        if len(order) != len(self._steps):
            stuck = sorted(
                (name for name, degree in in_degree.items() if degree > 0),
                key=self._position.__getitem__,
            )
            raise CyclicDependencyError(
                f"step graph has a cycle through: {', '.join(stuck)}"
            )
        return order

    # ------------------------------------------------------------------
    # Query methods
    # ------------------------------------------------------------------

    @property
    def step_names(self) -> list[str]:
        """All step names in topological order."""
        return list(self._order)

    def get_step(self, name: str) -> Step:
        return self._steps[name]

    def get_prerequisites(self, name: str) -> list[str]:
        """Direct prerequisites of a step."""
        return list(self._prerequisites.get(name, []))

    def get_dependents(self, name: str) -> list[str]:
        """All transitive dependents of a step (BFS)."""
        result: list[str] = []
        queue = deque(self._dependents.get(name, []))
        visited: set[str] = set()
        while queue:
            node = queue.popleft()
            if node in visited:
                continue
            visited.add(node)
            result.append(node)
            queue.extend(self._dependents.get(node, []))
        return result

    def layers(self) -> list[list[str]]:
        """Group steps by depth: a layer only depends on earlier layers."""
        depth: dict[str, int] = {}
        for name in self._order:
            prereqs = self._prerequisites[name]
            depth[name] = 1 + max((depth[p] for p in prereqs), default=-1)
        result: list[list[str]] = [[] for _ in range(max(depth.values(), default=-1) + 1)]
        for name in self._order:
            result[depth[name]].append(name)
        return result

    # ------------------------------------------------------------------
    # State helpers
    # ------------------------------------------------------------------

    def are_prerequisites_met(self, name: str, states: Mapping[str, StepState]) -> bool:
        """Whether every prerequisite succeeded or was already done."""
        return all(
            states.get(prereq) in COMPLETED_STATES
            for prereq in self._prerequisites.get(name, [])
        )

    def cascade_block(self, failed: str, states: dict[str, StepState]) -> list[str]:
        """Mark every pending transitive dependent of *failed* as BLOCKED.

        Returns the names that were newly blocked.
        """
        blocked: list[str] = []
        for name in self.get_dependents(failed):
            if states.get(name, StepState.PENDING) == StepState.PENDING:
                states[name] = StepState.BLOCKED
                blocked.append(name)
        return blocked

    def __len__(self) -> int:
        return len(self._steps)
