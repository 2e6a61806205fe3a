"""
Blob storage for uploaded document files.

Document bytes live outside the database under an opaque ``file_key``.
:class:`LocalBlobStore` keeps them on the local filesystem using aiofiles;
another backend only has to implement the four coroutines of
:class:`BlobStore`.

Keys are ``<32 hex chars>-<sanitised original filename>``, so they are
unique, readable in a directory listing, and can never escape the storage
root.
"""

import logging
import re
import uuid
from abc import ABC, abstractmethod
from pathlib import Path
from typing import AsyncIterator

import aiofiles
import aiofiles.os

from auditvault.core.config import settings

logger = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]")
_KEY_PATTERN = re.compile(r"^[0-9a-f]{32}-[A-Za-z0-9._-]+$")


class BlobNotFoundError(Exception):
    """Raised when a key has no stored object."""

    def __init__(self, key: str):
        self.key = key
        super().__init__(f"Blob '{key}' not found")


def make_file_key(filename: str) -> str:
    """Build a fresh storage key for an uploaded ``filename``."""
    safe = _UNSAFE_CHARS.sub("_", Path(filename or "").name).lstrip(".") or "file"
    return f"{uuid.uuid4().hex}-{safe[:200]}"


class BlobStore(ABC):
    """Interface of a blob store."""

    @abstractmethod
    async def put(self, key: str, data: bytes) -> None:
        """Store ``data`` under ``key``, replacing any previous object."""

    @abstractmethod
    def open(self, key: str) -> AsyncIterator[bytes]:
        """Stream the object's bytes in chunks."""

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Remove the object; a missing key is not an error."""

    @abstractmethod
    async def exists(self, key: str) -> bool:
        ...


class LocalBlobStore(BlobStore):
    """Filesystem-backed store rooted at ``root``."""

    def __init__(self, root: str):
        self.root = Path(root).resolve()

    def _path(self, key: str) -> Path:
        if not _KEY_PATTERN.match(key):
            raise ValueError(f"Invalid blob key: {key!r}")
        return self.root / key

    async def put(self, key: str, data: bytes) -> None:
        path = self._path(key)
        await aiofiles.os.makedirs(self.root, exist_ok=True)
        tmp_path = path.with_name(path.name + ".part")
        async with aiofiles.open(tmp_path, "wb") as f:
            await f.write(data)
        await aiofiles.os.replace(tmp_path, path)
        logger.debug("Stored blob %s (%d bytes)", key, len(data))

    async def open(self, key: str) -> AsyncIterator[bytes]:
        path = self._path(key)
        if not await aiofiles.os.path.exists(path):
            raise BlobNotFoundError(key)
        async with aiofiles.open(path, "rb") as f:
            while True:
                chunk = await f.read(CHUNK_SIZE)
                if not chunk:
                    break
                yield chunk

    async def delete(self, key: str) -> None:
        path = self._path(key)
        if await aiofiles.os.path.exists(path):
            await aiofiles.os.remove(path)
            logger.debug("Deleted blob %s", key)

    async def exists(self, key: str) -> bool:
        return await aiofiles.os.path.exists(self._path(key))


blob_store = LocalBlobStore(settings.UPLOAD_DIR)


def get_blob_store() -> BlobStore:
    """FastAPI dependency returning the configured blob store."""
    return blob_store


def original_filename(key: str) -> str:
    """Recover the sanitised upload filename from a key made by :func:`make_file_key`."""
    return key.split("-", 1)[1] if "-" in key else key
