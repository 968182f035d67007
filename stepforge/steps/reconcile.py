"""Create-or-update reconciliation of image stream tags.

Shared by every tagging step:

1. create the desired tag;
2. if it already exists, fetch it, copy its ``resource_version`` onto the
   desired tag and update;
3. retry 2 on conflict under the step's ``RetryPolicy``.

We don't care about the existing tag's state, we just want it to look
like the desired one, so only the concurrency token is carried over.
"""

from __future__ import annotations

import logging

from stepforge.core.retry import OperationCancelledError, RetryExhaustedError, RetryPolicy
from stepforge.models.images import (
    LOCAL_TAG_REFERENCE_POLICY,
    ImageStreamTag,
    ObjectMeta,
    ObjectReference,
    TagReference,
    TagReferencePolicy,
)
from stepforge.steps.base import Operation, Step
from stepforge.store.base import (
    AlreadyExistsError,
    ImageStreamTagClient,
    NotFoundError,
    StoreError,
)

logger = logging.getLogger(__name__)

# Identity used in place of a resolved image when nothing may be read.
DRY_RUN_IMAGE = "dry-fake"


def image_stream_tag(
    namespace: str,
    stream: str,
    tag: str,
    *,
    source_stream: str,
    source_namespace: str,
    image: str,
) -> ImageStreamTag:
    """Desired ``namespace/stream:tag`` pointing at ``source_stream@image``."""
    return ImageStreamTag(
        metadata=ObjectMeta(name=f"{stream}:{tag}", namespace=namespace),
        tag=TagReference(
            reference_policy=TagReferencePolicy(type=LOCAL_TAG_REFERENCE_POLICY),
            from_=ObjectReference(
                kind="ImageStreamImage",
                name=f"{source_stream}@{image}",
                namespace=source_namespace,
            ),
        ),
    )


def resolve_image(
    step: Step, client: ImageStreamTagClient, namespace: str, name: str
) -> str:
    """Dereference ``namespace/name`` (``stream:tag``) to its image identity."""
    try:
        ist = client.get(namespace, name)
    except StoreError as exc:
        raise step.fail(
            Operation.RESOLVE_SOURCE, f"could not resolve base image {namespace}/{name}: {exc}"
        ) from exc
    if ist.image is None or not ist.image.name:
        raise step.fail(
            Operation.RESOLVE_SOURCE,
            f"could not resolve base image {namespace}/{name}: tag has no image",
        )
    return ist.image.name


def fetch_image_stream_tag(
    step: Step, client: ImageStreamTagClient, namespace: str, name: str
) -> ImageStreamTag | None:
    """Return the current tag, or ``None`` when it does not exist."""
    try:
        return client.get(namespace, name)
    except NotFoundError:
        return None
    except StoreError as exc:
        raise step.fail(
            Operation.FETCH_FOR_COMPLETION,
            f"could not retrieve imagestreamtag {namespace}/{name}: {exc}",
        ) from exc


def image_stream_tag_matches(actual: ImageStreamTag, desired: ImageStreamTag) -> bool:
    """Compare only the fields a step owns: the tag reference.

    Store bookkeeping (``resource_version``, ``uid``) and the resolved
    ``image`` are ignored.
    """
    return actual.tag == desired.tag


def ensure_image_stream_tag(
    step: Step,
    client: ImageStreamTagClient,
    desired: ImageStreamTag,
    retry: RetryPolicy,
) -> ImageStreamTag:
    """Create *desired*, or update the existing tag to match it."""
    namespace, name = desired.metadata.namespace, desired.metadata.name
    try:
        retry.check_cancelled()
        return client.create(desired)
    except AlreadyExistsError:
        logger.debug("%s/%s already exists, updating", namespace, name)
    except (OperationCancelledError, StoreError) as exc:
        raise step.fail(
            Operation.CREATE, f"could not create imagestreamtag {namespace}/{name}: {exc}"
        ) from exc

    def _update() -> ImageStreamTag:
        existing = client.get(namespace, name)
        metadata = desired.metadata.model_copy(
            update={"resource_version": existing.metadata.resource_version}
        )
        return client.update(desired.model_copy(update={"metadata": metadata}))

    try:
        return retry.run(_update)
    except (RetryExhaustedError, OperationCancelledError, StoreError) as exc:
        raise step.fail(
            Operation.UPDATE, f"could not update imagestreamtag {namespace}/{name}: {exc}"
        ) from exc
