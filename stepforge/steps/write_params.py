"""Write parameters step — the consumer end of deferred parameters.

Resolves every parameter exported by the pipeline and writes them to a
file as ``NAME=value`` lines, shell-quoted, so later tooling can source
them. Requires every link the parameters depend on, so it only runs once
all producers are done.
"""

from __future__ import annotations

import logging
import shlex
import sys
from pathlib import Path
from typing import TextIO

from stepforge.core.parameters import DeferredParameters, ParameterResolutionError
from stepforge.models.links import StepLink
from stepforge.steps.base import Operation, Step

logger = logging.getLogger(__name__)


class WriteParametersStep(Step):
    def __init__(
        self,
        params: DeferredParameters,
        path: Path,
        *,
        out: TextIO | None = None,
    ) -> None:
        super().__init__(out=out)
        self._params = params
        self._path = Path(path)
        # Parameters must all be registered before this step is built.
        self._requires = params.all_links()

    @property
    def name(self) -> str:
        return "[parameters:write]"

    @property
    def description(self) -> str:
        return f"Write the job parameters to {self._path}"

    def requires(self) -> frozenset[StepLink]:
        return self._requires

    def creates(self) -> frozenset[StepLink]:
        return frozenset()

    def run(self, dry_run: bool) -> None:
        if dry_run:
            # Providers read remote state; never invoke them in a dry run.
            names = self._params.names()
            logger.info("Would write %d parameters to %s", len(names), self._path)
            out = self._out or sys.stdout
            out.writelines(f"{name}=<deferred>\n" for name in names)
            return

        try:
            values = self._params.map()
        except ParameterResolutionError as exc:
            raise self.fail(Operation.RESOLVE_PARAMETER, str(exc)) from exc

        content = "".join(
            f"{name}={shlex.quote(value)}\n" for name, value in sorted(values.items())
        )
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._path.write_text(content, encoding="utf-8")
        except OSError as exc:
            raise self.fail(
                Operation.WRITE, f"could not write parameters to {self._path}: {exc}"
            ) from exc
        logger.info("Wrote %d parameters to %s", len(values), self._path)

    def done(self) -> bool:
        # Values may change between runs; always rewrite.
        return False
