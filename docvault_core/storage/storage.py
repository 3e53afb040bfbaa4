"""Blob storage for document content on the local filesystem or Google Cloud Storage.

@public

Provides async, streamed put/get/delete keyed by opaque storage keys, with a
unified API over both backends. Missing keys raise BlobNotFoundError so callers
can tell "no blob" from "empty blob". Backend failures raise StoreError and are
never retried here.
"""

from __future__ import annotations

import asyncio
import os
from collections.abc import AsyncIterable, AsyncIterator
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol
from uuid import uuid4

from google.api_core.exceptions import GoogleAPIError
from google.api_core.exceptions import NotFound as GcsNotFound
from prefect_gcp import GcpCredentials
from prefect_gcp.cloud_storage import GcsBucket

from docvault_core.exceptions import BlobNotFoundError, InvalidStorageKeyError, StoreError
from docvault_core.logging import get_vault_logger
from docvault_core.settings import settings

logger = get_vault_logger(__name__)

CHUNK_SIZE = 64 * 1024

ByteSource = bytes | AsyncIterable[bytes]
"""Upload payload: whole content or an async stream of chunks."""


@dataclass(frozen=True)
class ObjectInfo:
    """Stored blob metadata.

    @public

    Attributes:
        key: Storage key (POSIX-style, no leading slash)
        size: Size in bytes (-1 if unknown)
    """

    key: str
    size: int


def _norm_rel(path: str) -> str:
    """Normalize path to POSIX-style relative format.

    Returns:
        Normalized relative path string.
    """
    if not path:
        return ""
    parts = [p for p in path.replace("\\", "/").split("/") if p not in ("", ".")]
    clean: list[str] = []
    for p in parts:
        if p == ".." and clean:
            clean.pop()
        elif p != "..":
            clean.append(p)
    return "/".join(clean)


async def _chunks(source: ByteSource) -> AsyncIterator[bytes]:
    """Yield the payload as chunks regardless of how it was supplied."""
    if isinstance(source, (bytes, bytearray, memoryview)):
        data = bytes(source)
        for start in range(0, len(data), CHUNK_SIZE):
            yield data[start : start + CHUNK_SIZE]
        return
    async for chunk in source:
        if chunk:
            yield bytes(chunk)


class _AsyncBackend(Protocol):
    """Protocol for storage backend implementations."""

    async def exists(self, key: str) -> bool: ...
    async def list(self, prefix: str) -> list[ObjectInfo]: ...
    async def write_stream(self, key: str, chunks: AsyncIterator[bytes]) -> int: ...
    def read_stream(self, key: str) -> AsyncIterator[bytes]: ...
    async def delete(self, key: str) -> None: ...


class _FileBackend:
    """Local filesystem backend using async I/O.

    Writes go to a temporary sibling file that replaces the target on completion,
    so readers never see a partially written blob.
    """

    def __init__(self, root: Path):
        self.root = root

    def _abs(self, key: str) -> Path:
        return (self.root / _norm_rel(key)).resolve()

    async def exists(self, key: str) -> bool:
        p = self._abs(key)
        return await asyncio.to_thread(p.is_file)

    async def list(self, prefix: str) -> list[ObjectInfo]:
        base = self._abs(prefix)

        def _walk() -> list[ObjectInfo]:
            items: list[ObjectInfo] = []
            if not base.exists():
                return items
            for root, _dirs, files in os.walk(base):
                root_path = Path(root)
                for f in files:
                    if f.endswith(".tmp"):
                        continue
                    p = root_path / f
                    rel = str(p.relative_to(self.root)).replace("\\", "/")
                    items.append(ObjectInfo(key=_norm_rel(rel), size=p.stat().st_size))
            return items

        try:
            return await asyncio.to_thread(_walk)
        except OSError as e:
            raise StoreError(f"Failed to list blobs under '{prefix}': {e}") from e

    async def write_stream(self, key: str, chunks: AsyncIterator[bytes]) -> int:
        p = self._abs(key)
        tmp = p.with_name(f"{p.name}.{uuid4().hex}.tmp")
        written = 0
        try:
            await asyncio.to_thread(p.parent.mkdir, parents=True, exist_ok=True)
            f = await asyncio.to_thread(tmp.open, "wb")
            try:
                async for chunk in chunks:
                    await asyncio.to_thread(f.write, chunk)
                    written += len(chunk)
            finally:
                f.close()
            await asyncio.to_thread(os.replace, tmp, p)
        except OSError as e:
            raise StoreError(f"Failed to write blob '{key}': {e}") from e
        finally:
            tmp.unlink(missing_ok=True)
        return written

    async def read_stream(self, key: str) -> AsyncIterator[bytes]:
        p = self._abs(key)
        try:
            f = await asyncio.to_thread(p.open, "rb")
        except FileNotFoundError as e:
            raise BlobNotFoundError(key) from e
        except OSError as e:
            raise StoreError(f"Failed to open blob '{key}': {e}") from e
        try:
            while chunk := await asyncio.to_thread(f.read, CHUNK_SIZE):
                yield chunk
        finally:
            f.close()

    async def delete(self, key: str) -> None:
        p = self._abs(key)
        try:
            await asyncio.to_thread(p.unlink)
        except FileNotFoundError as e:
            raise BlobNotFoundError(key) from e
        except OSError as e:
            raise StoreError(f"Failed to delete blob '{key}': {e}") from e


class _GCSBackend:
    """Google Cloud Storage backend using a Prefect GcsBucket block.

    google-cloud-storage calls are blocking, so each runs in a worker thread.
    """

    def __init__(self, *, bucket_block: GcsBucket):
        self.bucket_block = bucket_block
        self._bucket = None

    def _get_bucket(self):
        if self._bucket is None:
            client = self.bucket_block.gcp_credentials.get_cloud_storage_client()
            self._bucket = client.bucket(self.bucket_block.bucket)
        return self._bucket

    def _with_bucket_folder(self, key: str) -> str:
        """Compose the full object path including the block's bucket_folder.

        Returns:
            Full object path with bucket folder prefix.
        """
        rel = _norm_rel(key)
        folder = _norm_rel(self.bucket_block.bucket_folder or "")
        return f"{folder}/{rel}" if folder else rel

    def _blob(self, key: str):
        return self._get_bucket().blob(self._with_bucket_folder(key))

    async def exists(self, key: str) -> bool:
        try:
            return await asyncio.to_thread(lambda: self._blob(key).exists())
        except GoogleAPIError as e:
            raise StoreError(f"Failed to check blob '{key}': {e}") from e

    async def list(self, prefix: str) -> list[ObjectInfo]:
        root = self._with_bucket_folder(prefix)
        folder = _norm_rel(self.bucket_block.bucket_folder or "")

        def _list() -> list[ObjectInfo]:
            items: list[ObjectInfo] = []
            for blob in self._get_bucket().list_blobs(prefix=root or None):
                name = blob.name.rstrip("/")
                if folder and name.startswith(folder + "/"):
                    name = name[len(folder) + 1 :]
                if name:
                    items.append(ObjectInfo(key=_norm_rel(name), size=blob.size if blob.size is not None else -1))
            return items

        try:
            return await asyncio.to_thread(_list)
        except GoogleAPIError as e:
            raise StoreError(f"Failed to list blobs under '{prefix}': {e}") from e

    async def write_stream(self, key: str, chunks: AsyncIterator[bytes]) -> int:
        written = 0
        try:
            writer = await asyncio.to_thread(lambda: self._blob(key).open("wb"))
            async for chunk in chunks:
                await asyncio.to_thread(writer.write, chunk)
                written += len(chunk)
            # Closing finalizes the upload; an interrupted stream leaves it unfinished.
            await asyncio.to_thread(writer.close)
        except GoogleAPIError as e:
            raise StoreError(f"Failed to write blob '{key}': {e}") from e
        return written

    async def read_stream(self, key: str) -> AsyncIterator[bytes]:
        try:
            reader = await asyncio.to_thread(lambda: self._blob(key).open("rb"))
            try:
                while chunk := await asyncio.to_thread(reader.read, CHUNK_SIZE):
                    yield chunk
            finally:
                reader.close()
        except GcsNotFound as e:
            raise BlobNotFoundError(key) from e
        except GoogleAPIError as e:
            raise StoreError(f"Failed to read blob '{key}': {e}") from e

    async def delete(self, key: str) -> None:
        try:
            await asyncio.to_thread(lambda: self._blob(key).delete())
        except GcsNotFound as e:
            raise BlobNotFoundError(key) from e
        except GoogleAPIError as e:
            raise StoreError(f"Failed to delete blob '{key}': {e}") from e


class Storage:
    """Async blob store for document content.

    @public

    Supports:
        - Local filesystem (file:// or relative paths)
        - Google Cloud Storage (gs://bucket/prefix)

    Keys are opaque strings chosen by the caller. Writing an existing key
    replaces it silently; callers own key uniqueness.

    Examples:
        >>> storage = Storage.from_uri("./vault_data/blobs")
        >>> await storage.put("license.png", b"...")
        >>> async for chunk in await storage.get("license.png"):
        ...     handle(chunk)
        >>> await storage.delete("license.png")
    """

    def __init__(self, scheme: str, backend: _AsyncBackend):
        self.scheme = scheme
        self._backend = backend

    @staticmethod
    def from_uri(uri: str, *, gcs_project: str | None = None) -> Storage:
        """Create Storage instance from URI.

        Args:
            uri: Storage URI (file://, gs://, or relative path)
            gcs_project: Google Cloud project (defaults to settings.gcs_project)

        Returns:
            Storage instance configured for the URI

        Raises:
            ValueError: If URI scheme is unsupported
        """
        if "://" not in uri:
            root = Path(uri).expanduser().resolve()
            return Storage("file", _FileBackend(root))

        scheme, rest = uri.split("://", 1)
        if scheme == "file":
            root = Path(rest).expanduser().resolve()
            return Storage("file", _FileBackend(root))

        if scheme != "gs":
            raise ValueError(f"Unsupported URI scheme: {scheme}. Use file:// or gs://")

        if "/" in rest:
            bucket_name, prefix = rest.split("/", 1)
        else:
            bucket_name, prefix = rest, ""

        credentials = GcpCredentials(project=gcs_project or settings.gcs_project or None)
        bucket_block = GcsBucket(bucket=bucket_name, bucket_folder=_norm_rel(prefix), gcp_credentials=credentials)
        return Storage("gs", _GCSBackend(bucket_block=bucket_block))

    @staticmethod
    def _key(key: str) -> str:
        rel = _norm_rel(key)
        if not rel:
            raise InvalidStorageKeyError(f"Invalid storage key: {key!r}")
        return rel

    async def exists(self, key: str) -> bool:
        """Check whether a blob is stored under key."""
        return await self._backend.exists(self._key(key))

    async def list(self, prefix: str = "") -> list[ObjectInfo]:
        """List stored blobs under a prefix."""
        return await self._backend.list(_norm_rel(prefix))

    async def put(self, key: str, content: ByteSource) -> int:
        """Store content under key, replacing any existing blob.

        Returns:
            Number of bytes written.
        """
        rel = self._key(key)
        size = await self._backend.write_stream(rel, _chunks(content))
        logger.debug(f"Stored blob '{rel}' ({size} bytes)")
        return size

    async def get(self, key: str) -> AsyncIterator[bytes]:
        """Open a stored blob for streamed reading.

        Returns:
            Async iterator over the blob's bytes.

        Raises:
            BlobNotFoundError: No blob is stored under key.
        """
        rel = self._key(key)
        if not await self._backend.exists(rel):
            raise BlobNotFoundError(key)
        return self._backend.read_stream(rel)

    async def read_bytes(self, key: str) -> bytes:
        """Read a whole blob into memory.

        Raises:
            BlobNotFoundError: No blob is stored under key.
        """
        stream = await self.get(key)
        return b"".join([chunk async for chunk in stream])

    async def delete(self, key: str) -> None:
        """Delete the blob stored under key.

        Raises:
            BlobNotFoundError: No blob is stored under key.
        """
        rel = self._key(key)
        await self._backend.delete(rel)
        logger.debug(f"Deleted blob '{rel}'")
