"""stepforge: a step-based pipeline engine for container-image artifacts.

Steps declare the links they require and create; the runner orders them
into a DAG and reconciles each one against an image-stream/tag store:
create-or-update under optimistic concurrency, skipped when already
done, exporting lazily-resolved parameters to their dependents.
"""

__version__ = "0.1.0"

from stepforge.core.runner import PipelineFailedError, PipelineRunner
from stepforge.core.step_graph import StepGraph
from stepforge.steps.base import Step, StepError

__all__ = [
    "PipelineRunner",
    "PipelineFailedError",
    "StepGraph",
    "Step",
    "StepError",
    "__version__",
]
