"""stepforge data models — all Pydantic v2, all frozen (immutable)."""

from stepforge.models.config import (
    ImageStreamTagReference,
    InputImageTagStepConfiguration,
    OutputImageTagStepConfiguration,
    PipelineConfig,
    ReleaseTagConfiguration,
    RunContext,
)
from stepforge.models.images import (
    Image,
    ImageStream,
    ImageStreamStatus,
    ImageStreamTag,
    NamedTagEventList,
    ObjectMeta,
    ObjectReference,
    TagEvent,
    TagReference,
    TagReferencePolicy,
)
from stepforge.models.links import (
    PIPELINE_IMAGE_STREAM,
    STABLE_IMAGE_STREAM,
    LinkKind,
    StepLink,
    external_image_link,
    internal_image_link,
    release_images_link,
)
from stepforge.models.steps import COMPLETED_STATES, RunReport, StepResult, StepState

__all__ = [
    # links
    "LinkKind",
    "StepLink",
    "PIPELINE_IMAGE_STREAM",
    "STABLE_IMAGE_STREAM",
    "internal_image_link",
    "external_image_link",
    "release_images_link",
    # config
    "RunContext",
    "ImageStreamTagReference",
    "OutputImageTagStepConfiguration",
    "InputImageTagStepConfiguration",
    "ReleaseTagConfiguration",
    "PipelineConfig",
    # images
    "ObjectMeta",
    "ObjectReference",
    "TagReferencePolicy",
    "TagReference",
    "Image",
    "ImageStreamTag",
    "TagEvent",
    "NamedTagEventList",
    "ImageStreamStatus",
    "ImageStream",
    # steps
    "StepState",
    "COMPLETED_STATES",
    "StepResult",
    "RunReport",
]
