"""Step link identities — the edges of the dependency graph.

A link names something a step produces or consumes. Two links are equal
iff their kind and identifying fields are equal; the graph forms edges
purely on that equality.
"""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict

if TYPE_CHECKING:
    from stepforge.models.config import ImageStreamTagReference

PIPELINE_IMAGE_STREAM = "pipeline"
STABLE_IMAGE_STREAM = "stable"


class LinkKind(str, Enum):
    """What kind of resource a link denotes."""

    INTERNAL_IMAGE = "internal_image"
    EXTERNAL_IMAGE = "external_image"
    RELEASE_IMAGES = "release_images"


class StepLink(BaseModel):
    """Opaque, hashable identifier for a producible/consumable resource."""

    model_config = ConfigDict(frozen=True)

    kind: LinkKind
    namespace: str = ""
    name: str = ""
    tag: str = ""

    def __str__(self) -> str:
        if self.kind == LinkKind.INTERNAL_IMAGE:
            return f"{self.kind.value}({PIPELINE_IMAGE_STREAM}:{self.tag})"
        if self.kind == LinkKind.EXTERNAL_IMAGE:
            prefix = f"{self.namespace}/" if self.namespace else ""
            return f"{self.kind.value}({prefix}{self.name}:{self.tag})"
        return self.kind.value


def internal_image_link(tag: str) -> StepLink:
    """Link to a tag of the run's ``pipeline`` image stream."""
    return StepLink(kind=LinkKind.INTERNAL_IMAGE, name=PIPELINE_IMAGE_STREAM, tag=tag)


def external_image_link(ref: ImageStreamTagReference) -> StepLink:
    """Link to an output image stream tag; the export name is not part of it."""
    return StepLink(
        kind=LinkKind.EXTERNAL_IMAGE,
        namespace=ref.namespace,
        name=ref.name,
        tag=ref.tag,
    )


def release_images_link() -> StepLink:
    """Link satisfied once the release payload is tagged into ``stable``."""
    return StepLink(kind=LinkKind.RELEASE_IMAGES)
