"""Pipeline assembly — configuration file to step list.

``build_steps`` turns a ``PipelineConfig`` into concrete steps wired to a
store, registering every exported parameter in the run's
``DeferredParameters`` before the consumer step is constructed.
"""

from __future__ import annotations

import logging
import tomllib
from pathlib import Path
from typing import TextIO

from pydantic import ValidationError

from stepforge.core.parameters import DeferredParameters
from stepforge.core.retry import RetryPolicy
from stepforge.models.config import PipelineConfig, RunContext
from stepforge.steps.base import Step
from stepforge.steps.input_image_tag import InputImageTagStep
from stepforge.steps.output_image_tag import OutputImageTagStep
from stepforge.steps.release_images import ReleaseImagesTagStep
from stepforge.steps.write_params import WriteParametersStep
from stepforge.store.base import ImageStreamClient, ImageStreamTagClient

logger = logging.getLogger(__name__)


class PipelineConfigError(ValueError):
    """Raised when a pipeline configuration file cannot be loaded."""


def load_pipeline_config(path: Path) -> PipelineConfig:
    """Load a ``PipelineConfig`` from a ``.toml`` or ``.json`` file."""
    path = Path(path)
    try:
        raw = path.read_bytes()
    except OSError as exc:
        raise PipelineConfigError(f"could not read {path}: {exc}") from exc

    try:
        if path.suffix == ".toml":
            return PipelineConfig.model_validate(tomllib.loads(raw.decode("utf-8")))
        if path.suffix == ".json":
            return PipelineConfig.model_validate_json(raw)
    except (tomllib.TOMLDecodeError, UnicodeDecodeError, ValidationError) as exc:
        raise PipelineConfigError(f"invalid pipeline configuration {path}: {exc}") from exc
    raise PipelineConfigError(
        f"unsupported configuration format {path.suffix!r} (expected .toml or .json)"
    )


def build_steps(
    config: PipelineConfig,
    context: RunContext,
    ist_client: ImageStreamTagClient,
    is_client: ImageStreamClient,
    *,
    params: DeferredParameters,
    retry: RetryPolicy | None = None,
    out: TextIO | None = None,
) -> list[Step]:
    """Build the steps of a run, in declaration order.

    One input step per input image, the release import step, one output
    step per output image, then the parameter writer when
    ``parameters_file`` is set.
    """
    retry = retry or RetryPolicy()
    steps: list[Step] = []

    for input_config in config.input_images:
        steps.append(
            InputImageTagStep(input_config, ist_client, context, retry=retry, out=out)
        )

    steps.append(
        ReleaseImagesTagStep(
            config.release, ist_client, is_client, context, retry=retry, out=out
        )
    )

    for output_config in config.output_images:
        steps.append(
            OutputImageTagStep(
                output_config, ist_client, is_client, context, retry=retry, out=out
            )
        )

    for step in steps:
        provided, link = step.provides()
        params.add_map(provided, link)

    if config.parameters_file is not None:
        steps.append(WriteParametersStep(params, config.parameters_file, out=out))

    logger.debug("Built %d steps for run %s", len(steps), context.run_id)
    return steps
