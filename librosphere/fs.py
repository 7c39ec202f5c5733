"""
Filesystem-backed object store for LibroSphere
"""

import logging
import stat as stat_module
import uuid
from pathlib import Path
from typing import List, Optional, Union
from urllib.parse import quote, unquote

import aiofiles
import aiofiles.os

from .models import ObjectInfo, StoredObject
from .storage import ObjectStore, ObjectStoreError, InvalidKeyError
from .utils import get_extension, get_mime_type

logger = logging.getLogger(__name__)

# In-flight uploads are written beside their target and renamed into place.
# "+" never appears in an encoded key, so partial files cannot collide with objects.
PARTIAL_MARKER = "+"
PARTIAL_SUFFIX = ".librosphere-partial"

# Longest file name most filesystems accept, in bytes
MAX_NAME_LENGTH = 255


def encode_key(key: str) -> str:
    """File name for an object key; every "/" is escaped so keys stay flat"""
    return quote(key, safe="")


def decode_name(name: str) -> str:
    return unquote(name)


def safe_join(root_path: Path, key: str) -> Path:
    """
    Map an object key onto a file directly inside root_path

    Keys are opaque: "a/b.txt", "a//b.txt" and "a" are three distinct files.

    Args:
        root_path: Storage root (must be resolved)
        key: Object key

    Returns:
        Resolved absolute path within root

    Raises:
        InvalidKeyError: If the key is empty, too long, or would escape the root
    """
    if not key:
        raise InvalidKeyError("Empty object key")

    name = encode_key(key)
    if name in (".", ".."):
        raise InvalidKeyError(f"Path traversal detected: {key}")
    if len(name.encode("utf-8")) > MAX_NAME_LENGTH:
        raise InvalidKeyError(f"Object key too long: {len(key)} characters")

    base_path = root_path.resolve()
    try:
        resolved_path = (base_path / name).resolve(strict=False)
    except OSError as e:
        raise ObjectStoreError(f"Failed to resolve path: {e}")

    # A symlink planted in the root must not lead out of it
    if resolved_path.parent != base_path:
        raise InvalidKeyError(f"Path traversal detected: {key}")

    return resolved_path


class FilesystemObjectStore(ObjectStore):
    """Stores each object as one file in the root, named by its percent-encoded key."""

    def __init__(self, root: Union[str, Path]):
        self.root = Path(root).resolve()
        self.root.mkdir(parents=True, exist_ok=True)
        logger.info(f"Filesystem object store at {self.root}")

    async def get(self, key: str) -> Optional[StoredObject]:
        file_path = safe_join(self.root, key)

        try:
            if not await aiofiles.os.path.isfile(file_path):
                return None

            async with aiofiles.open(file_path, 'rb') as f:
                data = await f.read()
            stat = await aiofiles.os.stat(file_path)

        except FileNotFoundError:
            # Deleted between the check and the read
            return None
        except OSError as e:
            raise ObjectStoreError(f"Failed to read object: {e}")

        return StoredObject(
            key=key,
            data=data,
            content_type=get_mime_type(get_extension(key)),
            size=len(data),
            uploaded=stat.st_mtime,
        )

    async def put(self, key: str, data: bytes, content_type: str) -> ObjectInfo:
        file_path = safe_join(self.root, key)
        tmp_path = file_path.with_name(
            f"{file_path.name}{PARTIAL_MARKER}{uuid.uuid4().hex[:8]}{PARTIAL_SUFFIX}"
        )

        try:
            async with aiofiles.open(tmp_path, 'wb') as f:
                await f.write(data)

            await aiofiles.os.replace(tmp_path, file_path)
            stat = await aiofiles.os.stat(file_path)

        except OSError as e:
            # Clean up partial file
            if await aiofiles.os.path.exists(tmp_path):
                await aiofiles.os.remove(tmp_path)
            raise ObjectStoreError(f"Failed to store object: {e}")

        logger.info(f"Stored object: {key} ({stat.st_size} bytes)")
        return ObjectInfo(
            key=key,
            size=stat.st_size,
            uploaded=stat.st_mtime,
            content_type=content_type,
        )

    async def delete(self, key: str) -> None:
        file_path = safe_join(self.root, key)

        try:
            if not await aiofiles.os.path.isfile(file_path):
                return
            await aiofiles.os.remove(file_path)
        except FileNotFoundError:
            return
        except OSError as e:
            raise ObjectStoreError(f"Failed to delete object: {e}")

        logger.info(f"Deleted object: {key}")

    async def list(self, prefix: str = "") -> List[ObjectInfo]:
        entries: List[ObjectInfo] = []

        try:
            names = await aiofiles.os.listdir(self.root)
        except OSError as e:
            raise ObjectStoreError(f"Failed to list objects: {e}")

        for name in names:
            if PARTIAL_MARKER in name:
                continue

            key = decode_name(name)
            if not key.startswith(prefix):
                continue

            try:
                stat = await aiofiles.os.stat(self.root / name)
            except OSError as e:
                logger.warning(f"Failed to stat {name}: {e}")
                continue

            # Anything other than a regular file was not written by this store
            if not stat_module.S_ISREG(stat.st_mode):
                continue

            entries.append(ObjectInfo(
                key=key,
                size=stat.st_size,
                uploaded=stat.st_mtime,
                content_type=get_mime_type(get_extension(key)),
            ))

        entries.sort(key=lambda x: x.key)
        return entries
