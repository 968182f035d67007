"""Deferred parameters — values steps export to their dependents.

A step exports a ``ParameterMap``: name -> zero-argument provider. The
provider typically reads remote state, so it is only ever invoked when a
consumer asks for the value; an unused, broken provider never fails a
run. ``DeferredParameters`` is the run-wide, name-keyed table of those
providers and of the values resolved so far.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable

from stepforge.models.links import StepLink

logger = logging.getLogger(__name__)

ParameterProvider = Callable[[], str]
ParameterMap = dict[str, ParameterProvider]


class ParameterResolutionError(RuntimeError):
    """Raised when a parameter is unknown or its provider fails."""

    def __init__(self, name: str, message: str) -> None:
        super().__init__(f"could not resolve parameter {name}: {message}")
        self.name = name


class DeferredParameters:
    """Thread-safe table of lazily-resolved, memoized parameters.

    Providers are registered once, when the pipeline is assembled, together
    with the link of the step that makes their value valid. Values are
    computed on first ``get()`` and cached for the rest of the run.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._providers: dict[str, ParameterProvider] = {}
        self._links: dict[str, list[StepLink]] = {}
        self._values: dict[str, str] = {}

    def add(self, name: str, link: StepLink | None, provider: ParameterProvider) -> None:
        """Register *provider* under *name*; *link* names its producer."""
        with self._lock:
            if name in self._providers:
                raise ValueError(f"parameter {name} is already provided")
            self._providers[name] = provider
            self._links[name] = [link] if link is not None else []

    def add_map(self, params: ParameterMap, link: StepLink | None) -> None:
        for name, provider in params.items():
            self.add(name, link, provider)

    def names(self) -> list[str]:
        with self._lock:
            return sorted(self._providers)

    def all_links(self) -> frozenset[StepLink]:
        with self._lock:
            return frozenset(link for links in self._links.values() for link in links)

    def get(self, name: str) -> str:
        """Resolve *name*, invoking its provider at most once per run."""
        with self._lock:
            if name in self._values:
                return self._values[name]
            provider = self._providers.get(name)
        if provider is None:
            raise ParameterResolutionError(name, "no step provides it")

        logger.debug("Resolving parameter %s", name)
        try:
            value = provider()
        except ParameterResolutionError:
            raise
        except Exception as exc:
            raise ParameterResolutionError(name, str(exc)) from exc

        with self._lock:
            # A concurrent caller may have won; keep the first value.
            return self._values.setdefault(name, value)

    def map(self) -> dict[str, str]:
        """Resolve every registered parameter."""
        return {name: self.get(name) for name in self.names()}

    def resolved(self) -> dict[str, str]:
        """Snapshot of the values resolved so far."""
        with self._lock:
            return dict(self._values)
