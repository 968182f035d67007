"""Image store contract and the in-memory implementation."""

from stepforge.store.base import (
    AlreadyExistsError,
    ConflictError,
    ImageStreamClient,
    ImageStreamTagClient,
    NotFoundError,
    StoreError,
)
from stepforge.store.memory import InMemoryImageStore, StoreState

__all__ = [
    "StoreError",
    "NotFoundError",
    "AlreadyExistsError",
    "ConflictError",
    "ImageStreamTagClient",
    "ImageStreamClient",
    "InMemoryImageStore",
    "StoreState",
]
