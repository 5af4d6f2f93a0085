"""Blob storage for images attached to memories.

Two backends share the ``BlobStore`` interface:

- ``LocalBlobStore``: a sandboxed directory served by the API at ``/blobs/``.
- ``S3BlobStore``: an S3 bucket with virtual-hosted public URLs.
"""

from __future__ import annotations

import asyncio
import hashlib
import io
import logging
import mimetypes
import re
from pathlib import Path, PurePosixPath
from typing import Any, Protocol, runtime_checkable

from slugify import slugify

from src.config import settings
from src.errors import StorageError

logger = logging.getLogger(__name__)

MAX_BLOB_SIZE = 20 * 1024 * 1024  # 20 MB
IMAGE_PREFIX = "memories"

_SAFE_COMPONENT_RE = re.compile(r"[^a-zA-Z0-9._\-]")


def detect_content_type(filename: str, fallback: str = "application/octet-stream") -> str:
    ctype, _ = mimetypes.guess_type(filename)
    return ctype or fallback


def make_image_key(filename: str, data: bytes, owner_id: str) -> str:
    """Build ``memories/<owner_id>/<slug>-<sha256[:16]><ext>``.

    Identical uploads for different memories never share a key.
    """
    p = PurePosixPath(filename or "image")
    stem = slugify(p.stem) or "image"
    sig = hashlib.sha256(data).hexdigest()[:16]
    ext = (p.suffix or "").lower()
    return f"{IMAGE_PREFIX}/{owner_id}/{stem}-{sig}{ext}"


@runtime_checkable
class BlobStore(Protocol):
    """Minimal object store used for memory images."""

    async def put(self, key: str, data: bytes, content_type: str) -> str:
        """Store *data* under *key*. Returns its public URL."""
        ...

    async def delete(self, key: str) -> bool:
        """Remove *key*. Returns True if something was deleted."""
        ...

    async def exists(self, key: str) -> bool: ...

    async def list_keys(self) -> list[str]: ...


class LocalBlobStore:
    """Blob store rooted in a local directory.

    Keys are ``/``-separated paths; each component is sanitized and the
    resolved path must stay inside the root.
    """

    def __init__(self, root: Path | None = None, base_url: str | None = None) -> None:
        self._root = (root or settings.blob_dir).resolve()
        self._root.mkdir(parents=True, exist_ok=True)
        self._base_url = (base_url or settings.public_base_url).rstrip("/")

    @property
    def root(self) -> Path:
        return self._root

    @staticmethod
    def sanitize_component(name: str) -> str:
        """Replace unsafe characters and strip leading dots.

        Raises ``ValueError`` if the result is empty.
        """
        sanitized = _SAFE_COMPONENT_RE.sub("_", name).lstrip(".")[:255]
        if not sanitized:
            msg = f"Key component is empty after sanitization: {name!r}"
            raise ValueError(msg)
        return sanitized

    def resolve(self, key: str) -> Path:
        """Map a key to a path inside the root (rejects traversal)."""
        parts = [self.sanitize_component(p) for p in key.split("/") if p]
        if not parts:
            msg = f"Key resolves to empty after sanitization: {key!r}"
            raise ValueError(msg)
        target = self._root.joinpath(*parts).resolve()
        if not target.is_relative_to(self._root):
            msg = f"Path traversal detected: {key!r}"
            raise ValueError(msg)
        return target

    def url_for(self, key: str) -> str:
        return f"{self._base_url}/blobs/{key}"

    async def put(self, key: str, data: bytes, content_type: str) -> str:
        if len(data) > MAX_BLOB_SIZE:
            raise StorageError(f"Blob too large: {len(data)} bytes (max {MAX_BLOB_SIZE})")
        try:
            target = self.resolve(key)
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(data)
        except (OSError, ValueError) as exc:
            raise StorageError(f"Failed to store blob {key}: {exc}") from exc
        logger.debug("Stored blob %s (%d bytes, %s)", key, len(data), content_type)
        return self.url_for(key)

    async def read(self, key: str) -> bytes:
        target = self.resolve(key)
        if not target.is_file():
            msg = f"Blob not found: {key}"
            raise FileNotFoundError(msg)
        return target.read_bytes()

    async def delete(self, key: str) -> bool:
        target = self.resolve(key)
        if not target.is_file():
            return False
        target.unlink()
        logger.info("Deleted blob %s", key)
        return True

    async def exists(self, key: str) -> bool:
        return self.resolve(key).is_file()

    async def list_keys(self) -> list[str]:
        return sorted(
            p.relative_to(self._root).as_posix() for p in self._root.rglob("*") if p.is_file()
        )


class S3BlobStore:
    """Blob store backed by an S3 bucket (boto3 calls run in a thread)."""

    def __init__(self, bucket: str | None = None, client: Any = None) -> None:
        self.bucket = bucket or settings.s3_bucket
        if not self.bucket:
            msg = "S3 bucket not configured (S3_BUCKET)"
            raise ValueError(msg)
        self._s3 = client or self._make_client()

    @staticmethod
    def _make_client() -> Any:
        import boto3
        from botocore.client import Config

        return boto3.client(
            "s3",
            region_name=settings.aws_region,
            config=Config(s3={"addressing_style": "virtual"}),
        )

    def url_for(self, key: str) -> str:
        return f"https://{self.bucket}.s3.amazonaws.com/{key}"

    async def put(self, key: str, data: bytes, content_type: str) -> str:
        try:
            await asyncio.to_thread(
                self._s3.upload_fileobj,
                Fileobj=io.BytesIO(data),
                Bucket=self.bucket,
                Key=key,
                ExtraArgs={"ContentType": content_type},
            )
        except Exception as exc:
            raise StorageError(f"S3 upload failed for {key}: {exc}") from exc
        return self.url_for(key)

    async def delete(self, key: str) -> bool:
        try:
            await asyncio.to_thread(self._s3.delete_object, Bucket=self.bucket, Key=key)
        except Exception as exc:
            raise StorageError(f"S3 delete failed for {key}: {exc}") from exc
        logger.info("Deleted blob s3://%s/%s", self.bucket, key)
        return True

    async def exists(self, key: str) -> bool:
        from botocore.exceptions import ClientError

        try:
            await asyncio.to_thread(self._s3.head_object, Bucket=self.bucket, Key=key)
        except ClientError:
            return False
        return True

    async def list_keys(self) -> list[str]:
        resp = await asyncio.to_thread(
            self._s3.list_objects_v2, Bucket=self.bucket, Prefix=f"{IMAGE_PREFIX}/"
        )
        return sorted(obj["Key"] for obj in resp.get("Contents", []))


_store: BlobStore | None = None


def get_blob_store() -> BlobStore:
    """Return (and lazily create) the configured blob store."""
    global _store  # noqa: PLW0603
    if _store is None:
        _store = S3BlobStore() if settings.blob_backend == "s3" else LocalBlobStore()
    return _store
