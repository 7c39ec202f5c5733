"""Object store abstraction and backends."""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from typing import Dict, List, Optional

from .models import ObjectInfo, StoredObject, StorageConfig

logger = logging.getLogger(__name__)


class ObjectStoreError(Exception):
    """Generic object store failure"""
    pass


class InvalidKeyError(ObjectStoreError):
    """Raised when a key cannot be mapped safely onto the backend"""
    pass


class ObjectStore(ABC):
    """Flat key -> blob storage used by the file handlers."""

    @abstractmethod
    async def get(self, key: str) -> Optional[StoredObject]:
        """Return the object, or None if the key does not exist."""

    @abstractmethod
    async def put(self, key: str, data: bytes, content_type: str) -> ObjectInfo:
        """Store data under key, replacing any previous object."""

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Remove key. No-op if the key does not exist."""

    @abstractmethod
    async def list(self, prefix: str = "") -> List[ObjectInfo]:
        """Return every object whose key starts with prefix, sorted by key."""


class MemoryObjectStore(ObjectStore):
    """Process-local store, used for tests and throwaway deployments."""

    def __init__(self) -> None:
        self._objects: Dict[str, StoredObject] = {}

    async def get(self, key: str) -> Optional[StoredObject]:
        return self._objects.get(key)

    async def put(self, key: str, data: bytes, content_type: str) -> ObjectInfo:
        obj = StoredObject(
            key=key,
            data=bytes(data),
            content_type=content_type,
            size=len(data),
            uploaded=time.time(),
        )
        self._objects[key] = obj
        logger.debug("Stored object", extra={"key": key, "size": obj.size})
        return obj.info()

    async def delete(self, key: str) -> None:
        self._objects.pop(key, None)

    async def list(self, prefix: str = "") -> List[ObjectInfo]:
        return [
            self._objects[key].info()
            for key in sorted(self._objects)
            if key.startswith(prefix)
        ]

    def __len__(self) -> int:
        return len(self._objects)


def create_object_store(config: StorageConfig) -> ObjectStore:
    """Build the backend named in the storage configuration"""
    backend = config.backend.lower()

    if backend == "memory":
        logger.warning("Using in-memory object store; objects are lost on restart")
        return MemoryObjectStore()

    if backend == "filesystem":
        from .fs import FilesystemObjectStore

        return FilesystemObjectStore(config.path)

    raise ValueError(f"Unknown storage backend: {config.backend}")


__all__ = [
    "ObjectStore",
    "ObjectStoreError",
    "InvalidKeyError",
    "MemoryObjectStore",
    "create_object_store",
]
