"""Release images step — imports a release payload into ``stable``.

Every tag of the configured release image stream is tagged into
``stable:<tag>`` of the run namespace. Without a release configuration
there is nothing to import and the step is trivially done; it still
creates the release-images link so output steps can depend on it.
"""

from __future__ import annotations

import logging
from typing import TextIO

from stepforge.core.retry import RetryPolicy
from stepforge.models.config import ReleaseTagConfiguration, RunContext
from stepforge.models.images import ImageStreamTag
from stepforge.models.links import STABLE_IMAGE_STREAM, StepLink, release_images_link
from stepforge.steps.base import Operation, Step
from stepforge.steps.reconcile import (
    ensure_image_stream_tag,
    fetch_image_stream_tag,
    image_stream_tag,
    image_stream_tag_matches,
)
from stepforge.store.base import ImageStreamClient, ImageStreamTagClient, StoreError

logger = logging.getLogger(__name__)


class ReleaseImagesTagStep(Step):
    """Tag each image of the release stream into ``stable``."""

    def __init__(
        self,
        config: ReleaseTagConfiguration | None,
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

    @property
    def name(self) -> str:
        return "[release-inputs]"

    @property
    def description(self) -> str:
        if self.config is None:
            return "No release payload configured; nothing to import"
        return (
            f"Find all of the input images from {self.config.namespace}/"
            f"{self.config.name} and tag them into the {STABLE_IMAGE_STREAM} stream"
        )

    def requires(self) -> frozenset[StepLink]:
        return frozenset()

    def creates(self) -> frozenset[StepLink]:
        return frozenset({release_images_link()})

    def inputs(self, dry_run: bool) -> list[str]:
        if self.config is None:
            return []
        return sorted(
            ist.tag.from_.name
            for ist in self._desired_tags()
            if ist.tag is not None and ist.tag.from_ is not None
        )

    def run(self, dry_run: bool) -> None:
        if self.config is None:
            logger.info("No release payload configured, skipping import")
            return

        desired_tags = self._desired_tags()
        logger.info(
            "Tagging %d release images from %s/%s into %s",
            len(desired_tags),
            self.config.namespace,
            self.config.name,
            STABLE_IMAGE_STREAM,
        )
        for desired in desired_tags:
            if dry_run:
                self.render(desired)
            else:
                ensure_image_stream_tag(self, self._ist_client, desired, self._retry)

    def done(self) -> bool:
        if self.config is None:
            return True
        for desired in self._desired_tags():
            actual = fetch_image_stream_tag(
                self, self._ist_client, self._context.namespace, desired.metadata.name
            )
            if actual is None or not image_stream_tag_matches(actual, desired):
                return False
        return True

    def _desired_tags(self) -> list[ImageStreamTag]:
        """Desired ``stable:<tag>`` entries for the current release stream."""
        if self.config is None:
            return []
        try:
            stream = self._is_client.get(self.config.namespace, self.config.name)
        except StoreError as exc:
            raise self.fail(
                Operation.RESOLVE_SOURCE,
                f"could not resolve release image stream "
                f"{self.config.namespace}/{self.config.name}: {exc}",
            ) from exc

        desired: list[ImageStreamTag] = []
        for tag in stream.status.tags:
            if not tag.items:
                continue
            desired.append(
                image_stream_tag(
                    self._context.namespace,
                    STABLE_IMAGE_STREAM,
                    tag.tag,
                    source_stream=self.config.name,
                    source_namespace=self.config.namespace,
                    image=tag.items[0].image,
                )
            )
        return desired
