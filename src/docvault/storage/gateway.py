"""Object store gateway interface definition.

Provides the narrow capability boundary the versioning layer consumes:
put/get/stat/list/delete plus object tagging, all against named buckets.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import BinaryIO

from docvault.storage.models import ObjectListing, ObjectStat, StoredObject


class ObjectStoreGateway(ABC):
    """Abstract base class for object store gateways.

    Implementations:
    - S3ObjectStoreGateway: boto3 against AWS S3 or any S3-compatible store
    - InMemoryObjectStoreGateway: process-local fake (dev/test)

    All implementations must support a conditional put that refuses to
    overwrite an existing key; the versioning layer relies on it to close
    the scan-then-write race.
    """

    @property
    @abstractmethod
    def backend_name(self) -> str:
        """Return the backend identifier for observability (e.g. "s3", "memory")."""
        ...

    @abstractmethod
    def ensure_bucket(self, bucket: str) -> None:
        """Create the bucket if it does not exist yet.

        Raises:
            StorageBackendError: If the bucket cannot be checked or created.
        """
        ...

    @abstractmethod
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
        """Store an object.

        Args:
            bucket: Physical bucket name.
            key: Object key.
            stream: Readable binary stream positioned at the start of the content.
            size: Content length in bytes.
            content_type: MIME type of the content.
            headers: User metadata headers (bare names, no ``x-amz-meta-`` prefix).
            if_none_match: If True, only write when ``key`` does not exist yet.

        Returns:
            Stat record of the stored object.

        Raises:
            PreconditionFailedError: If ``if_none_match`` is set and the key exists.
            StorageBackendError: If the backend cannot complete the write.
        """
        ...

    @abstractmethod
    def get(
        self,
        bucket: str,
        key: str,
        *,
        version_id: str | None = None,
    ) -> StoredObject:
        """Retrieve an object body and its stat record.

        Raises:
            ObjectNotFoundError: If the object (or version) does not exist.
            StorageBackendError: If the backend cannot complete the read.
        """
        ...

    @abstractmethod
    def stat(self, bucket: str, key: str) -> ObjectStat:
        """Get object metadata without retrieving content.

        Raises:
            ObjectNotFoundError: If the object does not exist.
            StorageBackendError: If the backend cannot complete the call.
        """
        ...

    @abstractmethod
    def list(
        self,
        bucket: str,
        *,
        prefix: str | None = None,
        recursive: bool = True,
    ) -> list[ObjectListing]:
        """List objects in a bucket.

        Args:
            bucket: Physical bucket name.
            prefix: Optional key prefix filter.
            recursive: If False, only keys without a further "/" after the
                prefix are returned.

        Returns:
            Listing entries ordered by key. Empty list for an empty bucket.

        Raises:
            StorageBackendError: If the backend cannot complete the listing.
        """
        ...

    @abstractmethod
    def get_tags(self, bucket: str, key: str) -> dict[str, str]:
        """Return the tag set of an object (empty dict when untagged).

        Raises:
            ObjectNotFoundError: If the object does not exist.
            StorageBackendError: If the backend cannot complete the call.
        """
        ...

    @abstractmethod
    def set_tags(self, bucket: str, key: str, tags: dict[str, str]) -> None:
        """Replace the tag set of an object.

        Raises:
            ObjectNotFoundError: If the object does not exist.
            StorageBackendError: If the backend cannot complete the call.
        """
        ...

    @abstractmethod
    def remove_tags(self, bucket: str, key: str) -> None:
        """Remove every tag from an object.

        Raises:
            ObjectNotFoundError: If the object does not exist.
            StorageBackendError: If the backend cannot complete the call.
        """
        ...

    @abstractmethod
    def delete(
        self,
        bucket: str,
        key: str,
        *,
        version_id: str | None = None,
    ) -> None:
        """Delete an object.

        Deleting a key that does not exist is not an error, matching S3.

        Raises:
            StorageBackendError: If the backend cannot complete the deletion.
        """
        ...
