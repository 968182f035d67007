"""In-process image store with real optimistic-concurrency semantics.

Backs the CLI and the test-suite. Behaves like the remote store as far as
steps can observe:

- every write bumps ``metadata.resource_version``;
- an update whose token is stale fails with ``ConflictError``;
- creating ``stream:tag`` implicitly creates the image stream and keeps
  its ``status.tags`` in sync;
- ``ImageStreamImage`` / ``ImageStreamTag`` references are resolved to
  the image they denote, exactly once, at write time.
"""

from __future__ import annotations

import itertools
import json
import logging
import threading
import uuid
from pathlib import Path

from pydantic import BaseModel, ConfigDict

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
)
from stepforge.store.base import AlreadyExistsError, ConflictError, NotFoundError, StoreError

logger = logging.getLogger(__name__)

DEFAULT_INTERNAL_REGISTRY = "image-registry.openshift-image-registry.svc:5000"


class SeedImage(BaseModel):
    """One ``namespace/stream:tag -> image`` entry of a state file."""

    model_config = ConfigDict(frozen=True)

    namespace: str
    stream: str
    tag: str
    image: str


class StoreState(BaseModel):
    """Initial contents of an in-memory store (``--state`` file of the CLI)."""

    model_config = ConfigDict(frozen=True)

    images: list[SeedImage] = []
    image_streams: list[ImageStream] = []


class InMemoryImageStore:
    """Thread-safe image store keyed by ``(namespace, name)``.

    Parameters
    ----------
    internal_registry:
        Host used for ``status.dockerImageRepository`` of created streams.
    public_registry:
        Host used for ``status.publicDockerImageRepository``; empty means
        streams have no externally reachable address.
    record_calls:
        Append every tag and stream operation to ``calls``. Off by default.
    """

    def __init__(
        self,
        internal_registry: str = DEFAULT_INTERNAL_REGISTRY,
        public_registry: str = "",
        record_calls: bool = False,
    ) -> None:
        self.internal_registry = internal_registry
        self.public_registry = public_registry
        self._lock = threading.RLock()
        self._tags: dict[tuple[str, str], ImageStreamTag] = {}
        self._streams: dict[tuple[str, str], ImageStream] = {}
        self._versions = itertools.count(1)
        self.record_calls = record_calls
        # (operation, namespace, name) for every call, in order
        self.calls: list[tuple[str, str, str]] = []

        self.image_stream_tags = _ImageStreamTags(self)
        self.image_streams = _ImageStreams(self)

    # ------------------------------------------------------------------
    # Seeding
    # ------------------------------------------------------------------

    def tag_image(self, namespace: str, stream: str, tag: str, image: str) -> ImageStreamTag:
        """Point ``namespace/stream:tag`` at *image*, creating or replacing it."""
        with self._lock:
            repository = self._internal_repository(namespace, stream)
            ist = ImageStreamTag(
                metadata=ObjectMeta(name=f"{stream}:{tag}", namespace=namespace),
                tag=TagReference(
                    name=tag,
                    from_=ObjectReference(kind="DockerImage", name=f"{repository}@{image}"),
                ),
                image=Image(name=image, docker_image_reference=f"{repository}@{image}"),
            )
            return self._write(ist)

    def put_image_stream(self, stream: ImageStream) -> ImageStream:
        """Store *stream* verbatim (status included)."""
        with self._lock:
            key = (stream.metadata.namespace, stream.metadata.name)
            self._streams[key] = stream.model_copy(
                update={"metadata": self._bump(stream.metadata)}
            )
            return self._streams[key]

    def load_state(self, path: Path) -> None:
        """Seed the store from a JSON ``StoreState`` document."""
        state = StoreState.model_validate_json(Path(path).read_text(encoding="utf-8"))
        for stream in state.image_streams:
            self.put_image_stream(stream)
        for seed in state.images:
            self.tag_image(seed.namespace, seed.stream, seed.tag, seed.image)
        logger.info(
            "Loaded %d images and %d image streams from %s",
            len(state.images),
            len(state.image_streams),
            path,
        )

    def dump_state(self) -> str:
        """Return every stored tag as indented JSON (diagnostics)."""
        with self._lock:
            tags = [
                ist.model_dump(mode="json", by_alias=True, exclude_none=True)
                for _, ist in sorted(self._tags.items())
            ]
        return json.dumps(tags, indent=2)

    # ------------------------------------------------------------------
    # Tag operations
    # ------------------------------------------------------------------

    def get_tag(self, namespace: str, name: str) -> ImageStreamTag:
        with self._lock:
            self._record_call(("get", namespace, name))
            try:
                return self._tags[(namespace, name)]
            except KeyError:
                raise NotFoundError(
                    f'imagestreamtags.image.openshift.io "{name}" not found in {namespace}'
                ) from None

    def create_tag(self, ist: ImageStreamTag) -> ImageStreamTag:
        with self._lock:
            namespace, name = ist.metadata.namespace, ist.metadata.name
            self._record_call(("create", namespace, name))
            if (namespace, name) in self._tags:
                raise AlreadyExistsError(
                    f'imagestreamtags.image.openshift.io "{name}" already exists'
                )
            return self._write(ist.model_copy(update={"image": self._resolve(ist)}))

    def update_tag(self, ist: ImageStreamTag) -> ImageStreamTag:
        with self._lock:
            namespace, name = ist.metadata.namespace, ist.metadata.name
            self._record_call(("update", namespace, name))
            current = self._tags.get((namespace, name))
            if current is None:
                raise NotFoundError(
                    f'imagestreamtags.image.openshift.io "{name}" not found in {namespace}'
                )
            if ist.metadata.resource_version != current.metadata.resource_version:
                raise ConflictError(
                    f'Operation cannot be fulfilled on imagestreamtags "{name}": '
                    "the object has been modified; please apply your changes "
                    "to the latest version and try again"
                )
            return self._write(ist.model_copy(update={"image": self._resolve(ist)}))

    # ------------------------------------------------------------------
    # Stream operations
    # ------------------------------------------------------------------

    def get_stream(self, namespace: str, name: str) -> ImageStream:
        with self._lock:
            self._record_call(("get_stream", namespace, name))
            try:
                return self._streams[(namespace, name)]
            except KeyError:
                raise NotFoundError(
                    f'imagestreams.image.openshift.io "{name}" not found in {namespace}'
                ) from None

    # ------------------------------------------------------------------
    # Internals (lock held by caller)
    # ------------------------------------------------------------------

    def _record_call(self, call: tuple[str, str, str]) -> None:
        if self.record_calls:
            self.calls.append(call)

    def _bump(self, metadata: ObjectMeta) -> ObjectMeta:
        return metadata.model_copy(
            update={
                "resource_version": str(next(self._versions)),
                "uid": metadata.uid or uuid.uuid4().hex,
            }
        )

    def _internal_repository(self, namespace: str, stream: str) -> str:
        return f"{self.internal_registry}/{namespace}/{stream}"

    def _resolve(self, ist: ImageStreamTag) -> Image:
        """Return the image a tag's ``from`` reference points at."""
        if ist.tag is None or ist.tag.from_ is None:
            if ist.image is None:
                raise StoreError(f"imagestreamtag {ist.metadata.name} has no image source")
            return ist.image

        ref = ist.tag.from_
        namespace = ref.namespace or ist.metadata.namespace
        if ref.kind == "ImageStreamImage":
            stream, sep, digest = ref.name.partition("@")
            if not sep or not digest:
                raise StoreError(f"invalid ImageStreamImage reference {ref.name!r}")
            repository = self._internal_repository(namespace, stream)
            return Image(name=digest, docker_image_reference=f"{repository}@{digest}")
        if ref.kind == "ImageStreamTag":
            source = self._tags.get((namespace, ref.name))
            if source is None or source.image is None:
                raise NotFoundError(
                    f'imagestreamtags.image.openshift.io "{ref.name}" not found in {namespace}'
                )
            return source.image
        if ref.kind == "DockerImage":
            return Image(name=ref.name.rpartition("@")[2], docker_image_reference=ref.name)
        raise StoreError(f"unsupported reference kind {ref.kind!r}")

    def _write(self, ist: ImageStreamTag) -> ImageStreamTag:
        namespace, name = ist.metadata.namespace, ist.metadata.name
        stream, tag = ist.stream_name, ist.tag_name
        if not stream or not tag:
            raise StoreError(f"imagestreamtag name {name!r} must be <stream>:<tag>")

        current = self._tags.get((namespace, name))
        metadata = ist.metadata
        if current is not None:
            metadata = metadata.model_copy(update={"uid": current.metadata.uid})
        stored = ist.model_copy(update={"metadata": self._bump(metadata)})
        self._tags[(namespace, name)] = stored
        self._record_stream_tag(namespace, stream, tag, stored.image)
        return stored

    def _record_stream_tag(
        self, namespace: str, stream: str, tag: str, image: Image | None
    ) -> None:
        existing = self._streams.get((namespace, stream))
        if existing is None:
            public = (
                f"{self.public_registry}/{namespace}/{stream}"
                if self.public_registry
                else ""
            )
            existing = ImageStream(
                metadata=ObjectMeta(name=stream, namespace=namespace),
                status=ImageStreamStatus(
                    docker_image_repository=self._internal_repository(namespace, stream),
                    public_docker_image_repository=public,
                ),
            )

        tags = [t for t in existing.status.tags if t.tag != tag]
        if image is not None:
            event = TagEvent(
                image=image.name,
                docker_image_reference=image.docker_image_reference,
            )
            tags.append(NamedTagEventList(tag=tag, items=[event]))
        tags.sort(key=lambda t: t.tag)

        status = existing.status.model_copy(update={"tags": tags})
        self._streams[(namespace, stream)] = existing.model_copy(
            update={"metadata": self._bump(existing.metadata), "status": status}
        )


class _ImageStreamTags:
    """``ImageStreamTagClient`` view of an ``InMemoryImageStore``."""

    def __init__(self, store: InMemoryImageStore) -> None:
        self._store = store

    def get(self, namespace: str, name: str) -> ImageStreamTag:
        return self._store.get_tag(namespace, name)

    def create(self, ist: ImageStreamTag) -> ImageStreamTag:
        return self._store.create_tag(ist)

    def update(self, ist: ImageStreamTag) -> ImageStreamTag:
        return self._store.update_tag(ist)


class _ImageStreams:
    """``ImageStreamClient`` view of an ``InMemoryImageStore``."""

    def __init__(self, store: InMemoryImageStore) -> None:
        self._store = store

    def get(self, namespace: str, name: str) -> ImageStream:
        return self._store.get_stream(namespace, name)
