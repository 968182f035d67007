"""Output image tag step.

Ensures a tag exists in the named output image stream that resolves to
the built pipeline image ``pipeline:<from>``. When the target carries an
export name the step also exports ``IMAGE_<NAME>``: the pull spec of the
output tag, resolved lazily from the output image stream.
"""

from __future__ import annotations

import logging
from typing import TextIO

from stepforge.core.parameters import ParameterMap, ParameterResolutionError
from stepforge.core.retry import RetryPolicy
from stepforge.models.config import OutputImageTagStepConfiguration, RunContext
from stepforge.models.images import ImageStreamTag
from stepforge.models.links import (
    PIPELINE_IMAGE_STREAM,
    STABLE_IMAGE_STREAM,
    StepLink,
    external_image_link,
    internal_image_link,
    release_images_link,
)
from stepforge.steps.base import Step
from stepforge.steps.reconcile import (
    DRY_RUN_IMAGE,
    ensure_image_stream_tag,
    fetch_image_stream_tag,
    image_stream_tag,
    image_stream_tag_matches,
    resolve_image,
)
from stepforge.store.base import ImageStreamClient, ImageStreamTagClient, StoreError

logger = logging.getLogger(__name__)


def parameter_name(export_as: str) -> str:
    """``IMAGE_<EXPORT_AS>`` with dashes turned into underscores."""
    return f"IMAGE_{export_as.replace('-', '_').upper()}"


class OutputImageTagStep(Step):
    """Tag ``pipeline:<from>`` into ``<namespace>/<name>:<tag>``."""

    def __init__(
        self,
        config: OutputImageTagStepConfiguration,
        ist_client: ImageStreamTagClient,
        is_client: ImageStreamClient,
        context: RunContext,
        *,
        retry: RetryPolicy | None = None,
        out: TextIO | None = None,
    ) -> None:
        super().__init__(out=out)
        self.config = config
        self._ist_client = ist_client
        self._is_client = is_client
        self._context = context
        self._retry = retry or RetryPolicy()

    # ------------------------------------------------------------------
    # Identity
    # ------------------------------------------------------------------

    @property
    def name(self) -> str:
        to = self.config.to
        if not to.export_as:
            return f"[output:{to.name}:{to.tag}]"
        return to.export_as

    @property
    def description(self) -> str:
        to = self.config.to
        if not to.export_as:
            return (
                f"Tag the image {self.config.from_} into the image stream tag "
                f"{to.name}:{to.tag}"
            )
        return f"Tag the image {self.config.from_} into the stable image stream"

    # ------------------------------------------------------------------
    # Dependency metadata
    # ------------------------------------------------------------------

    def requires(self) -> frozenset[StepLink]:
        return frozenset({internal_image_link(self.config.from_), release_images_link()})

    def creates(self) -> frozenset[StepLink]:
        links = {external_image_link(self.config.to)}
        if self.config.to.export_as:
            links.add(internal_image_link(self.config.to.export_as))
        return frozenset(links)

    def provides(self) -> tuple[ParameterMap, StepLink | None]:
        if not self.config.to.export_as:
            return {}, None
        return (
            {parameter_name(self.config.to.export_as): self._pull_spec},
            external_image_link(self.config.to),
        )

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    def run(self, dry_run: bool) -> None:
        to = self.config.to
        namespace = self.namespace
        if (
            self.config.from_ == to.tag
            and namespace == self._context.namespace
            and to.name == STABLE_IMAGE_STREAM
        ):
            logger.info("Tagging %s into %s", self.config.from_, to.name)
        else:
            logger.info(
                "Tagging %s into %s/%s:%s", self.config.from_, namespace, to.name, to.tag
            )

        if dry_run:
            self.render(self._desired(DRY_RUN_IMAGE))
            return

        desired = self._desired(self._resolve_source())
        ensure_image_stream_tag(self, self._ist_client, desired, self._retry)

    def done(self) -> bool:
        to = self.config.to
        namespace = self.namespace
        logger.info("Checking for existence of %s/%s:%s", namespace, to.name, to.tag)
        actual = fetch_image_stream_tag(
            self, self._ist_client, namespace, f"{to.name}:{to.tag}"
        )
        if actual is None:
            return False

        # Re-resolved on every call: completion tracks the current
        # pipeline image, not whatever an earlier run or dry-run saw.
        desired = self._desired(self._resolve_source())
        # An existing tag that points elsewhere is not done.
        return image_stream_tag_matches(actual, desired)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @property
    def namespace(self) -> str:
        return self.config.to.namespace or self._context.namespace

    def _resolve_source(self) -> str:
        return resolve_image(
            self,
            self._ist_client,
            self._context.namespace,
            f"{PIPELINE_IMAGE_STREAM}:{self.config.from_}",
        )

    def _desired(self, image: str) -> ImageStreamTag:
        to = self.config.to
        return image_stream_tag(
            self.namespace,
            to.name,
            to.tag,
            source_stream=PIPELINE_IMAGE_STREAM,
            source_namespace=self._context.namespace,
            image=image,
        )

    def _pull_spec(self) -> str:
        to = self.config.to
        name = parameter_name(to.export_as)
        try:
            stream = self._is_client.get(self.namespace, to.name)
        except StoreError as exc:
            raise ParameterResolutionError(
                name, f"could not retrieve output imagestream: {exc}"
            ) from exc

        if stream.status.public_docker_image_repository:
            registry = stream.status.public_docker_image_repository
        elif stream.status.docker_image_repository:
            registry = stream.status.docker_image_repository
        else:
            raise ParameterResolutionError(
                name, f"image stream {to.export_as} has no accessible image registry value"
            )
        return f"{registry}:{to.tag}"
