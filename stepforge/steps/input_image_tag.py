"""Input image tag step — brings an external base image into the pipeline.

Tags ``<namespace>/<name>:<tag>`` into ``pipeline:<to>`` of the run
namespace, making the internal image link ``<to>`` available to every
step that builds on it.
"""

from __future__ import annotations

import logging
from typing import TextIO

from stepforge.core.retry import RetryPolicy
from stepforge.models.config import InputImageTagStepConfiguration, RunContext
from stepforge.models.images import ImageStreamTag
from stepforge.models.links import PIPELINE_IMAGE_STREAM, StepLink, internal_image_link
from stepforge.steps.base import Step
from stepforge.steps.reconcile import (
    DRY_RUN_IMAGE,
    ensure_image_stream_tag,
    fetch_image_stream_tag,
    image_stream_tag,
    image_stream_tag_matches,
    resolve_image,
)
from stepforge.store.base import ImageStreamTagClient

logger = logging.getLogger(__name__)


class InputImageTagStep(Step):
    """Tag an external image into ``pipeline:<to>``."""

    def __init__(
        self,
        config: InputImageTagStepConfiguration,
        ist_client: ImageStreamTagClient,
        context: RunContext,
        *,
        retry: RetryPolicy | None = None,
        out: TextIO | None = None,
    ) -> None:
        super().__init__(out=out)
        self.config = config
        self._ist_client = ist_client
        self._context = context
        self._retry = retry or RetryPolicy()

    @property
    def name(self) -> str:
        return f"[input:{self.config.to}]"

    @property
    def description(self) -> str:
        return (
            f"Find the input image {self._base_spec} and tag it into the pipeline"
        )

    def requires(self) -> frozenset[StepLink]:
        return frozenset()

    def creates(self) -> frozenset[StepLink]:
        return frozenset({internal_image_link(self.config.to)})

    def inputs(self, dry_run: bool) -> list[str]:
        if dry_run:
            return [DRY_RUN_IMAGE]
        return [self._resolve_source()]

    def run(self, dry_run: bool) -> None:
        logger.info(
            "Tagging %s into %s:%s", self._base_spec, PIPELINE_IMAGE_STREAM, self.config.to
        )
        if dry_run:
            self.render(self._desired(DRY_RUN_IMAGE))
            return

        desired = self._desired(self._resolve_source())
        ensure_image_stream_tag(self, self._ist_client, desired, self._retry)

    def done(self) -> bool:
        logger.info(
            "Checking for existence of %s/%s:%s",
            self._context.namespace,
            PIPELINE_IMAGE_STREAM,
            self.config.to,
        )
        actual = fetch_image_stream_tag(
            self,
            self._ist_client,
            self._context.namespace,
            f"{PIPELINE_IMAGE_STREAM}:{self.config.to}",
        )
        if actual is None:
            return False
        return image_stream_tag_matches(actual, self._desired(self._resolve_source()))

    @property
    def _base_namespace(self) -> str:
        return self.config.base_image.namespace or self._context.namespace

    @property
    def _base_spec(self) -> str:
        base = self.config.base_image
        return f"{self._base_namespace}/{base.name}:{base.tag}"

    def _resolve_source(self) -> str:
        base = self.config.base_image
        return resolve_image(
            self, self._ist_client, self._base_namespace, f"{base.name}:{base.tag}"
        )

    def _desired(self, image: str) -> ImageStreamTag:
        base = self.config.base_image
        return image_stream_tag(
            self._context.namespace,
            PIPELINE_IMAGE_STREAM,
            self.config.to,
            source_stream=base.name,
            source_namespace=self._base_namespace,
            image=image,
        )
