"""Image stream and image stream tag resources held by the remote store.

Field names are snake_case; serialization uses the store's camelCase
aliases (``model_dump(by_alias=True)``).
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

LOCAL_TAG_REFERENCE_POLICY = "Local"
SOURCE_TAG_REFERENCE_POLICY = "Source"


class _Resource(BaseModel):
    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )


class ObjectMeta(_Resource):
    """Identity plus store-managed bookkeeping (``resource_version``, ``uid``)."""

    name: str
    namespace: str
    resource_version: str = ""
    uid: str = ""


class ObjectReference(_Resource):
    kind: str
    name: str
    namespace: str = ""


class TagReferencePolicy(_Resource):
    type: str = SOURCE_TAG_REFERENCE_POLICY


class TagReference(_Resource):
    """The part of a tag a step owns: where it points and how it resolves."""

    name: str = ""
    from_: ObjectReference | None = Field(default=None, alias="from")
    reference_policy: TagReferencePolicy = TagReferencePolicy()


class Image(_Resource):
    name: str
    docker_image_reference: str = ""


class ImageStreamTag(_Resource):
    """A single ``stream:tag`` entry."""

    metadata: ObjectMeta
    tag: TagReference | None = None
    image: Image | None = None

    @property
    def stream_name(self) -> str:
        return self.metadata.name.partition(":")[0]

    @property
    def tag_name(self) -> str:
        return self.metadata.name.partition(":")[2]


class TagEvent(_Resource):
    image: str
    docker_image_reference: str = ""


class NamedTagEventList(_Resource):
    tag: str
    items: list[TagEvent] = []


class ImageStreamStatus(_Resource):
    docker_image_repository: str = ""
    public_docker_image_repository: str = ""
    tags: list[NamedTagEventList] = []


class ImageStream(_Resource):
    metadata: ObjectMeta
    status: ImageStreamStatus = ImageStreamStatus()
