"""Contract of the remote image store and its error taxonomy.

Any object with the right methods satisfies these Protocols; steps depend
only on them, never on a concrete client.

Resources carry ``metadata.resource_version``: a concurrency token that
must be echoed unchanged on update. A stale token makes the update fail
with ``ConflictError``.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from stepforge.models.images import ImageStream, ImageStreamTag


class StoreError(RuntimeError):
    """Base class for errors reported by the remote store."""


class NotFoundError(StoreError):
    """The requested resource does not exist."""


class AlreadyExistsError(StoreError):
    """A create was attempted for a resource that already exists."""


class ConflictError(StoreError):
    """An update carried a stale ``resource_version``."""


@runtime_checkable
class ImageStreamTagClient(Protocol):
    """Read/write access to image stream tags (``stream:tag`` names)."""

    def get(self, namespace: str, name: str) -> ImageStreamTag:
        """Return the tag or raise ``NotFoundError``."""
        ...

    def create(self, ist: ImageStreamTag) -> ImageStreamTag:
        """Create the tag or raise ``AlreadyExistsError``."""
        ...

    def update(self, ist: ImageStreamTag) -> ImageStreamTag:
        """Replace the tag or raise ``ConflictError`` / ``NotFoundError``."""
        ...


@runtime_checkable
class ImageStreamClient(Protocol):
    """Read access to image streams."""

    def get(self, namespace: str, name: str) -> ImageStream:
        """Return the stream or raise ``NotFoundError``."""
        ...
