"""Object store gateway data models.

Typed, immutable records returned by ObjectStoreGateway implementations.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime


@dataclass(frozen=True)
class ObjectStat:
    """Result of a stat (HEAD) call against a single object.

    Attributes:
        bucket: Physical bucket name.
        key: Object key.
        size: Content length in bytes.
        last_modified: Timestamp assigned by the object store.
        content_type: MIME type recorded at upload.
        etag: Content fingerprint reported by the store.
        headers: User metadata headers, keys lower-cased without the
            ``x-amz-meta-`` prefix.
    """

    bucket: str
    key: str
    size: int
    last_modified: datetime
    content_type: str
    etag: str
    headers: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class ObjectListing:
    """One entry of a bucket listing.

    Attributes:
        key: Object key.
        size: Content length in bytes.
        last_modified: Timestamp assigned by the object store.
        etag: Content fingerprint reported by the store.
        is_latest: Whether this entry is the current version of the key.
        version_id: Store-level version identifier, if the bucket is versioned.
    """

    key: str
    size: int
    last_modified: datetime
    etag: str
    is_latest: bool = True
    version_id: str | None = None


@dataclass(frozen=True)
class StoredObject:
    """Object body together with its stat record."""

    stat: ObjectStat
    body: bytes
