"""In-memory object store gateway.

Process-local implementation of ObjectStoreGateway for development and
tests. Mirrors the S3 semantics the versioning layer depends on:
- Buckets must exist before use (NoSuchBucket otherwise)
- Deleting a missing key is a no-op
- Conditional put refuses to overwrite an existing key
- At most 10 tags per object
"""

from __future__ import annotations

import hashlib
import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import BinaryIO

from docvault.storage.errors import (
    ObjectNotFoundError,
    PreconditionFailedError,
    StorageBackendError,
)
from docvault.storage.gateway import ObjectStoreGateway
from docvault.storage.models import ObjectListing, ObjectStat, StoredObject
from docvault.storage.tracing import traced_gateway_operation

logger = logging.getLogger(__name__)

MAX_TAGS_PER_OBJECT = 10


@dataclass
class _Entry:
    body: bytes
    content_type: str
    headers: dict[str, str]
    last_modified: datetime
    etag: str
    tags: dict[str, str] = field(default_factory=dict)


def _utcnow() -> datetime:
    return datetime.now(UTC)


class InMemoryObjectStoreGateway(ObjectStoreGateway):
    """Dictionary-backed gateway, thread-safe via a single lock."""

    def __init__(
        self,
        buckets: list[str] | None = None,
        *,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        """Initialize the gateway.

        Args:
            buckets: Bucket names to create up front.
            clock: Source of ``last_modified`` timestamps.
        """
        self._lock = threading.Lock()
        self._clock = clock
        self._buckets: dict[str, dict[str, _Entry]] = {}
        for bucket in buckets or []:
            self._buckets[bucket] = {}

    @property
    def backend_name(self) -> str:
        """Return the backend identifier."""
        return "memory"

    def _bucket(self, bucket: str) -> dict[str, _Entry]:
        objects = self._buckets.get(bucket)
        if objects is None:
            raise StorageBackendError(message="NoSuchBucket", bucket=bucket)
        return objects

    def _entry(self, bucket: str, key: str) -> _Entry:
        entry = self._bucket(bucket).get(key)
        if entry is None:
            raise ObjectNotFoundError(bucket=bucket, key=key)
        return entry

    def _stat(self, bucket: str, key: str, entry: _Entry) -> ObjectStat:
        return ObjectStat(
            bucket=bucket,
            key=key,
            size=len(entry.body),
            last_modified=entry.last_modified,
            content_type=entry.content_type,
            etag=entry.etag,
            headers=dict(entry.headers),
        )

    def ensure_bucket(self, bucket: str) -> None:
        """Create the bucket if it does not exist yet."""
        with self._lock:
            if bucket not in self._buckets:
                self._buckets[bucket] = {}
                logger.info("Bucket %s created", bucket)

    @traced_gateway_operation("put")
    def put(
        self,
        bucket: str,
        key: str,
        stream: BinaryIO,
        size: int,
        *,
        content_type: str = "application/octet-stream",
        headers: dict[str, str] | None = None,
        if_none_match: bool = False,
    ) -> ObjectStat:
        """Store an object."""
        data = stream.read()
        if len(data) != size:
            raise StorageBackendError(
                message=f"IncompleteBody: expected {size} bytes, read {len(data)}",
                bucket=bucket,
                key=key,
            )

        with self._lock:
            objects = self._bucket(bucket)
            if if_none_match and key in objects:
                raise PreconditionFailedError(bucket=bucket, key=key)

            entry = _Entry(
                body=data,
                content_type=content_type,
                headers={k.lower(): v for k, v in (headers or {}).items()},
                last_modified=self._clock(),
                etag=hashlib.md5(data, usedforsecurity=False).hexdigest(),
            )
            objects[key] = entry
            stat = self._stat(bucket, key, entry)

        logger.debug("Stored object: bucket=%s key=%s size=%d", bucket, key, size)
        return stat

    @traced_gateway_operation("get")
    def get(
        self,
        bucket: str,
        key: str,
        *,
        version_id: str | None = None,
    ) -> StoredObject:
        """Retrieve an object body and its stat record."""
        with self._lock:
            entry = self._entry(bucket, key)
            return StoredObject(stat=self._stat(bucket, key, entry), body=entry.body)

    @traced_gateway_operation("stat")
    def stat(self, bucket: str, key: str) -> ObjectStat:
        """Get object metadata without retrieving content."""
        with self._lock:
            return self._stat(bucket, key, self._entry(bucket, key))

    @traced_gateway_operation("list")
    def list(
        self,
        bucket: str,
        *,
        prefix: str | None = None,
        recursive: bool = True,
    ) -> list[ObjectListing]:
        """List objects in a bucket, ordered by key."""
        prefix = prefix or ""
        with self._lock:
            items = sorted(self._bucket(bucket).items())

        result: list[ObjectListing] = []
        for key, entry in items:
            if not key.startswith(prefix):
                continue
            if not recursive and "/" in key[len(prefix) :]:
                continue
            result.append(
                ObjectListing(
                    key=key,
                    size=len(entry.body),
                    last_modified=entry.last_modified,
                    etag=entry.etag,
                )
            )
        return result

    @traced_gateway_operation("get_tags")
    def get_tags(self, bucket: str, key: str) -> dict[str, str]:
        """Return the tag set of an object."""
        with self._lock:
            return dict(self._entry(bucket, key).tags)

    @traced_gateway_operation("set_tags")
    def set_tags(self, bucket: str, key: str, tags: dict[str, str]) -> None:
        """Replace the tag set of an object."""
        if len(tags) > MAX_TAGS_PER_OBJECT:
            raise StorageBackendError(
                message=f"InvalidTag: at most {MAX_TAGS_PER_OBJECT} tags per object",
                bucket=bucket,
                key=key,
            )
        with self._lock:
            self._entry(bucket, key).tags = dict(tags)

    @traced_gateway_operation("remove_tags")
    def remove_tags(self, bucket: str, key: str) -> None:
        """Remove every tag from an object."""
        with self._lock:
            self._entry(bucket, key).tags = {}

    @traced_gateway_operation("delete")
    def delete(
        self,
        bucket: str,
        key: str,
        *,
        version_id: str | None = None,
    ) -> None:
        """Delete an object; missing keys are ignored."""
        with self._lock:
            removed = self._bucket(bucket).pop(key, None)
        if removed is not None:
            logger.debug("Deleted object: bucket=%s key=%s", bucket, key)
