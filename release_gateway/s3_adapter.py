"""
Object storage for release artifacts and manifests.

Features:
- S3 backend when USE_S3=true, in-memory dict otherwise (local development)
- Optional key prefix inside the bucket
- Streaming reads; whole-object writes (multipart upload on S3)

Settings used:
- USE_S3=true|false
- S3_BUCKET_NAME=your-bucket
- S3_REGION=us-east-2
- S3_PREFIX=optional/prefix (no leading slash)
"""

from __future__ import annotations

import hashlib
import logging
import threading
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from typing import Any, BinaryIO

from release_gateway.config import GatewaySettings

logger = logging.getLogger(__name__)

_CHUNK_SIZE = 64 * 1024
_MISSING_KEY_CODES = ("NoSuchKey", "404", "NotFound")


@dataclass
class StoredObject:
    key: str
    body: Iterable[bytes]
    size: int
    etag: str
    content_type: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def read(self) -> bytes:
        return b"".join(self.body)


def _iter_stream(stream: Any) -> Iterator[bytes]:
    if hasattr(stream, "iter_chunks"):
        yield from stream.iter_chunks(_CHUNK_SIZE)
        return
    while True:
        chunk = stream.read(_CHUNK_SIZE)
        if not chunk:
            break
        yield chunk


class ObjectStorage:
    """Object storage abstraction - uses S3 or an in-memory dict."""

    def __init__(self, settings: GatewaySettings, client: Any | None = None) -> None:
        self.bucket = settings.s3_bucket_name
        self.prefix = settings.s3_prefix
        self._memory_objects: dict[str, tuple[bytes, str | None]] = {}
        self._lock = threading.Lock()
        self.client = client
        self.use_s3 = settings.use_s3
        if self.use_s3 and self.client is None:
            try:
                import boto3

                self.client = boto3.client("s3", region_name=settings.s3_region)
                logger.info("S3 enabled: bucket=%s region=%s prefix=%s", self.bucket, settings.s3_region, self.prefix)
            except Exception:
                logger.exception("Failed to initialize S3 client; using in-memory storage")
                self.client = None
        self.enabled = bool(self.use_s3 and self.bucket and self.client)
        if self.use_s3 and not self.enabled:
            logger.error("S3 requested but bucket or client missing; using in-memory storage")

    def _key(self, key: str) -> str:
        key = key.lstrip("/")
        if self.prefix:
            return f"{self.prefix}/{key}" if key else self.prefix
        return key

    def get(self, key: str) -> StoredObject | None:
        """Fetch an object; None when the key does not exist."""
        if self.enabled:
            from botocore.exceptions import ClientError

            try:
                obj = self.client.get_object(Bucket=self.bucket, Key=self._key(key))
            except ClientError as e:
                code = str(e.response.get("Error", {}).get("Code", ""))
                if code in _MISSING_KEY_CODES:
                    logger.info("S3 object not found: %s", key)
                    return None
                logger.exception("S3 get_object failed for %s", key)
                raise
            return StoredObject(
                key=key,
                body=_iter_stream(obj["Body"]),
                size=int(obj.get("ContentLength", 0) or 0),
                etag=obj.get("ETag", ""),
                content_type=obj.get("ContentType"),
                metadata=dict(obj.get("Metadata") or {}),
            )

        with self._lock:
            found = self._memory_objects.get(key)
        if found is None:
            return None
        data, content_type = found
        return StoredObject(
            key=key,
            body=[data],
            size=len(data),
            etag=f'"{hashlib.md5(data).hexdigest()}"',
            content_type=content_type,
        )

    def put(self, key: str, fileobj: BinaryIO, content_type: str | None = None) -> None:
        if self.enabled:
            extra: dict[str, Any] = {}
            if content_type:
                extra["ContentType"] = content_type
            logger.info("S3 put: bucket=%s key=%s", self.bucket, self._key(key))
            try:
                self.client.upload_fileobj(fileobj, self.bucket, self._key(key), ExtraArgs=extra or None)
            except Exception:
                logger.exception("S3 upload_fileobj failed for %s", key)
                raise
            return

        data = fileobj.read()
        with self._lock:
            self._memory_objects[key] = (data, content_type)
        logger.info("Stored %s in memory (%d bytes)", key, len(data))

    def delete(self, key: str) -> None:
        if self.enabled:
            try:
                self.client.delete_object(Bucket=self.bucket, Key=self._key(key))
            except Exception:
                logger.exception("Failed to delete S3 object: %s", key)
                raise
            return

        with self._lock:
            self._memory_objects.pop(key, None)
