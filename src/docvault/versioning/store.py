"""Versioned document store.

Composes bucket routing, scan-based version resolution, the key codec and
the metadata codec on top of an ObjectStoreGateway:

- Every revision is a separate immutable object named ``{name}_v{N}{ext}``
- Placement follows the lifecycle category ("working" or stable default)
- New versions are written with a conditional put; a lost race re-resolves
  the version number and retries up to ``max_version_attempts``
- Tagging failures after a successful write are reported, not rolled back
- Bulk deletion attempts every item and reports partial failure

The authenticated author is passed explicitly into every write.
"""

from __future__ import annotations

import io
import logging
from collections.abc import Callable
from datetime import UTC, datetime
from typing import TYPE_CHECKING, BinaryIO

from docvault.storage.errors import (
    ObjectNotFoundError,
    ObjectStorageError,
    PreconditionFailedError,
)
from docvault.versioning.buckets import SEARCH_ORDER, Bucket, BucketNames, route_bucket
from docvault.versioning.errors import (
    LogicalDocumentNotFoundError,
    NoVersionsFoundError,
    NotFoundError,
    PartialBulkFailureError,
    TooManyTagsError,
    VersionConflictError,
)
from docvault.versioning.keys import decode_key, encode_key, try_decode_key
from docvault.versioning.metadata import (
    StructuredMetadata,
    decode_headers,
    encode_headers,
)
from docvault.versioning.models import (
    AuthorIdentity,
    DocumentVersion,
    MetadataFields,
    UploadOutcome,
)
from docvault.versioning.resolver import ResolvedVersion, VersionResolver

if TYPE_CHECKING:
    from docvault.config import StoreConfig
    from docvault.storage.gateway import ObjectStoreGateway
    from docvault.storage.models import ObjectStat

logger = logging.getLogger(__name__)

DEFAULT_CONTENT_TYPE = "application/octet-stream"
MAX_TAGS_PER_OBJECT = 10

Content = bytes | bytearray | BinaryIO


def _utcnow() -> datetime:
    return datetime.now(UTC)


def _open_content(content: Content) -> tuple[BinaryIO, int, int]:
    """Normalize content into a seekable stream.

    Returns:
        Tuple of (stream, start offset, size in bytes).
    """
    if isinstance(content, bytes | bytearray):
        data = bytes(content)
        return io.BytesIO(data), 0, len(data)

    if content.seekable():
        start = content.tell()
        end = content.seek(0, io.SEEK_END)
        content.seek(start)
        return content, start, end - start

    data = content.read()
    return io.BytesIO(data), 0, len(data)


def _check_tag_count(tags: dict[str, str] | None, key: str | None = None) -> None:
    if tags and len(tags) > MAX_TAGS_PER_OBJECT:
        raise TooManyTagsError(
            f"At most {MAX_TAGS_PER_OBJECT} tags per object, got {len(tags)}",
            key=key,
        )


class VersionedStore:
    """Immutable, versioned document storage over two lifecycle buckets."""

    def __init__(
        self,
        gateway: ObjectStoreGateway,
        bucket_names: BucketNames,
        *,
        max_version_attempts: int = 5,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        """Initialize the store.

        Args:
            gateway: Object store gateway.
            bucket_names: Physical names of the working and stable buckets.
            max_version_attempts: Conditional-put attempts before a
                VersionConflictError is raised.
            clock: Source of creation/update stamps.
        """
        if max_version_attempts <= 0:
            raise ValueError("max_version_attempts must be positive")
        self._gateway = gateway
        self._bucket_names = bucket_names
        self._resolver = VersionResolver(gateway, bucket_names)
        self._max_version_attempts = max_version_attempts
        self._clock = clock
        self._buckets_ready = False

    @classmethod
    def from_config(cls, gateway: ObjectStoreGateway, config: StoreConfig) -> VersionedStore:
        """Create a store using bucket names and retry bound from configuration."""
        return cls(
            gateway,
            BucketNames(working=config.working_bucket, stable=config.stable_bucket),
            max_version_attempts=config.max_version_attempts,
        )

    @property
    def gateway(self) -> ObjectStoreGateway:
        return self._gateway

    @property
    def bucket_names(self) -> BucketNames:
        return self._bucket_names

    def _ensure_buckets(self) -> None:
        if self._buckets_ready:
            return
        for bucket in Bucket:
            self._gateway.ensure_bucket(self._bucket_names.physical(bucket))
        self._buckets_ready = True

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def upload_new(
        self,
        base_file_name: str,
        content: Content,
        *,
        author: AuthorIdentity,
        lifecycle_category: str | None = None,
        metadata: MetadataFields | None = None,
        tags: dict[str, str] | None = None,
        content_type: str = DEFAULT_CONTENT_TYPE,
    ) -> UploadOutcome:
        """Upload the first revision of a logical document.

        Args:
            base_file_name: Externally meaningful name, e.g. "report.pdf".
            content: Bytes or a readable binary stream.
            author: Authenticated caller; recorded as created-by.
            lifecycle_category: Drives bucket placement. Falls back to
                ``metadata.lifecycle_category`` when None.
            metadata: Caller-supplied review/test fields and custom pairs.
            tags: Tag slot -> value mapping (at most 10).
            content_type: MIME type of the content.

        Returns:
            UploadOutcome with the stored DocumentVersion.

        Raises:
            TooManyTagsError: If more than 10 tags are supplied.
            VersionConflictError: If concurrent writers exhaust the retries.
        """
        fields = metadata or MetadataFields()
        category = lifecycle_category
        if category is None:
            category = fields.lifecycle_category
        bucket = route_bucket(category)
        _check_tag_count(tags)
        self._ensure_buckets()

        now = self._clock()
        structured = StructuredMetadata(
            date_created=now,
            created_by=author.email,
            lifecycle_category=category,
            reviewed_by=fields.reviewed_by,
            date_reviewed=fields.date_reviewed,
            tested_by=fields.tested_by,
            date_tested=fields.date_tested,
        )

        outcome = self._write_version(
            base_file_name,
            bucket,
            content,
            structured=structured,
            custom=fields.custom,
            tags=tags,
            content_type=content_type,
            floor=1,
        )
        if outcome.version != 1:
            logger.warning(
                "Upload of new document %s produced version %d: name collides with "
                "existing versions in %s",
                base_file_name,
                outcome.version,
                bucket.value,
            )
        logger.info(
            "File %s uploaded as version %d of %s to %s by %s",
            outcome.versioned_key,
            outcome.version,
            base_file_name,
            bucket.value,
            author.user_id,
        )
        return outcome

    def create_version(
        self,
        base_file_name: str,
        content: Content,
        *,
        author: AuthorIdentity,
        metadata: MetadataFields | None = None,
        tags: dict[str, str] | None = None,
        content_type: str = DEFAULT_CONTENT_TYPE,
    ) -> UploadOutcome:
        """Store a new revision of an existing logical document.

        The document stays in the bucket of its existing versions (working
        preferred) unless ``metadata.lifecycle_category`` is supplied, in
        which case that category picks the bucket. Version numbers never go
        backwards across buckets.

        Raises:
            LogicalDocumentNotFoundError: If no version exists in either bucket.
            TooManyTagsError: If more than 10 tags are supplied.
            VersionConflictError: If concurrent writers exhaust the retries.
        """
        fields = metadata or MetadataFields()
        _check_tag_count(tags)
        self._ensure_buckets()

        existing = self._all_versions(base_file_name)
        if not existing:
            raise LogicalDocumentNotFoundError(
                "No prior version exists; use upload_new for the first revision",
                base_file_name=base_file_name,
            )

        current_bucket = next(b for b in SEARCH_ORDER if any(v.bucket is b for v in existing))
        latest = max(existing, key=lambda v: v.version)

        category = fields.lifecycle_category
        if category is not None:
            bucket = route_bucket(category)
        else:
            # Carry the category of the newest version in the target bucket so
            # the recorded category always routes to where the object lives.
            bucket = current_bucket
            newest_here = max(
                (v for v in existing if v.bucket is bucket), key=lambda v: v.version
            )
            category = self._stored_category(newest_here)

        now = self._clock()
        structured = StructuredMetadata(
            date_created=now,
            created_by=author.email,
            date_updated=now,
            updated_by=author.email,
            lifecycle_category=category,
            reviewed_by=fields.reviewed_by,
            date_reviewed=fields.date_reviewed,
            tested_by=fields.tested_by,
            date_tested=fields.date_tested,
        )

        outcome = self._write_version(
            base_file_name,
            bucket,
            content,
            structured=structured,
            custom=fields.custom,
            tags=tags,
            content_type=content_type,
            floor=latest.version + 1,
        )
        logger.info(
            "File %s created as version %d of %s in %s by %s",
            outcome.versioned_key,
            outcome.version,
            base_file_name,
            bucket.value,
            author.user_id,
        )
        return outcome

    def _stored_category(self, resolved: ResolvedVersion) -> str | None:
        """Read the lifecycle category recorded on an existing version."""
        physical = self._bucket_names.physical(resolved.bucket)
        try:
            stat = self._gateway.stat(physical, resolved.listing.key)
        except ObjectNotFoundError:
            return None
        return decode_headers(stat.headers).metadata.lifecycle_category

    def _write_version(
        self,
        base_file_name: str,
        bucket: Bucket,
        content: Content,
        *,
        structured: StructuredMetadata,
        custom: dict[str, str],
        tags: dict[str, str] | None,
        content_type: str,
        floor: int,
    ) -> UploadOutcome:
        """Claim the next free version with a conditional put, then tag it."""
        if not base_file_name:
            raise ValueError("base_file_name must be non-empty")

        physical = self._bucket_names.physical(bucket)
        stream, start, size = _open_content(content)

        for attempt in range(1, self._max_version_attempts + 1):
            version = max(self._resolver.next_version(base_file_name, bucket), floor)
            key = encode_key(base_file_name, version)
            headers = encode_headers(
                structured,
                base_file_name=base_file_name,
                version=version,
                custom=custom,
            )

            stream.seek(start)
            try:
                stat = self._gateway.put(
                    physical,
                    key,
                    stream,
                    size,
                    content_type=content_type,
                    headers=headers,
                    if_none_match=True,
                )
            except PreconditionFailedError:
                logger.warning(
                    "Version %d of %s was claimed concurrently (attempt %d/%d)",
                    version,
                    base_file_name,
                    attempt,
                    self._max_version_attempts,
                )
                continue

            tag_warning = self._apply_tags(physical, key, tags)
            applied = dict(tags) if tags and tag_warning is None else {}
            return UploadOutcome(
                document=self._describe(bucket, stat, applied),
                tag_warning=tag_warning,
            )

        raise VersionConflictError(
            base_file_name=base_file_name,
            attempts=self._max_version_attempts,
        )

    def _apply_tags(self, physical: str, key: str, tags: dict[str, str] | None) -> str | None:
        """Apply tags after a write; failures are downgraded to a warning string."""
        if not tags:
            return None
        try:
            self._gateway.set_tags(physical, key, tags)
        except ObjectStorageError as e:
            logger.warning("Stored %s but tagging failed: %s", key, e)
            return f"Tagging failed: {e}"
        return None

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def _locate(self, versioned_key: str) -> tuple[Bucket, ObjectStat]:
        """Find the bucket holding a key: working first, then stable."""
        decode_key(versioned_key)
        self._ensure_buckets()
        for bucket in SEARCH_ORDER:
            try:
                stat = self._gateway.stat(self._bucket_names.physical(bucket), versioned_key)
            except ObjectNotFoundError:
                continue
            return bucket, stat
        raise NotFoundError("File not found", key=versioned_key)

    def _all_versions(self, base_file_name: str) -> list[ResolvedVersion]:
        versions: list[ResolvedVersion] = []
        for bucket in SEARCH_ORDER:
            versions.extend(self._resolver.scan(base_file_name, bucket))
        return versions

    def _describe(
        self,
        bucket: Bucket,
        stat: ObjectStat,
        tags: dict[str, str],
    ) -> DocumentVersion:
        decoded_key = try_decode_key(stat.key)
        decoded_headers = decode_headers(stat.headers)
        return DocumentVersion(
            versioned_key=stat.key,
            base_file_name=decoded_key.base_file_name if decoded_key else stat.key,
            version=decoded_key.version if decoded_key else None,
            bucket=bucket,
            size=stat.size,
            last_modified=stat.last_modified,
            content_type=stat.content_type,
            etag=stat.etag,
            tags=tags,
            metadata=decoded_headers.metadata,
            custom_metadata=decoded_headers.custom,
        )

    def _describe_key(self, bucket: Bucket, key: str) -> DocumentVersion | None:
        """Stat and tag-read one key; None if it vanished meanwhile."""
        physical = self._bucket_names.physical(bucket)
        try:
            stat = self._gateway.stat(physical, key)
            tags = self._gateway.get_tags(physical, key)
        except ObjectNotFoundError:
            logger.debug("Object %s disappeared while listing %s", key, physical)
            return None
        return self._describe(bucket, stat, tags)

    def download(self, versioned_key: str) -> BinaryIO:
        """Return the content of one version as a stream.

        Raises:
            MalformedKeyError: If the key is not versioned.
            NotFoundError: If the key is absent from both buckets.
        """
        bucket, _ = self._locate(versioned_key)
        try:
            stored = self._gateway.get(self._bucket_names.physical(bucket), versioned_key)
        except ObjectNotFoundError as e:
            raise NotFoundError("File not found", key=versioned_key) from e
        logger.info("File %s downloaded from %s", versioned_key, bucket.value)
        return io.BytesIO(stored.body)

    def _latest(self, base_file_name: str) -> ResolvedVersion:
        self._ensure_buckets()
        versions = self._all_versions(base_file_name)
        if not versions:
            raise NoVersionsFoundError("No versions found", base_file_name=base_file_name)
        return max(versions, key=lambda v: (v.version, v.listing.last_modified))

    def download_latest(self, base_file_name: str) -> BinaryIO:
        """Return the content of the numerically highest version.

        Raises:
            NoVersionsFoundError: If the document has no versions.
        """
        latest = self._latest(base_file_name)
        try:
            stored = self._gateway.get(
                self._bucket_names.physical(latest.bucket), latest.listing.key
            )
        except ObjectNotFoundError as e:
            raise NotFoundError("File not found", key=latest.listing.key) from e
        logger.info("Latest version %s of %s downloaded", latest.listing.key, base_file_name)
        return io.BytesIO(stored.body)

    def list_versions(self, base_file_name: str) -> list[DocumentVersion]:
        """List every version of a document, newest version first.

        Ties on version number (same version in both buckets) are broken by
        last-modified, newest first. Returns an empty list when none exist.
        """
        self._ensure_buckets()
        result: list[DocumentVersion] = []
        for resolved in self._all_versions(base_file_name):
            described = self._describe_key(resolved.bucket, resolved.listing.key)
            if described is not None:
                result.append(described)

        result.sort(key=lambda d: (d.version or 0, d.last_modified), reverse=True)
        logger.info("Found %d versions of %s", len(result), base_file_name)
        return result

    def get_version_info(self, versioned_key: str) -> DocumentVersion:
        """Return stat, tags and decoded metadata of one version.

        Raises:
            MalformedKeyError: If the key is not versioned.
            NotFoundError: If the key is absent from both buckets.
        """
        bucket, stat = self._locate(versioned_key)
        try:
            tags = self._gateway.get_tags(self._bucket_names.physical(bucket), versioned_key)
        except ObjectNotFoundError as e:
            raise NotFoundError("File not found", key=versioned_key) from e
        return self._describe(bucket, stat, tags)

    def latest_version_info(self, base_file_name: str) -> DocumentVersion:
        """Return the DocumentVersion of the numerically highest version.

        Raises:
            NoVersionsFoundError: If the document has no versions.
        """
        latest = self._latest(base_file_name)
        described = self._describe_key(latest.bucket, latest.listing.key)
        if described is None:
            raise NoVersionsFoundError("No versions found", base_file_name=base_file_name)
        return described

    def exists(self, versioned_key: str) -> bool:
        """Check whether a versioned key exists in either bucket."""
        try:
            self._locate(versioned_key)
        except NotFoundError:
            return False
        return True

    def list_documents(self) -> list[DocumentVersion]:
        """Describe every object in both buckets.

        Objects whose key is not versioned are included with ``version`` None.
        """
        self._ensure_buckets()
        result: list[DocumentVersion] = []
        for bucket in SEARCH_ORDER:
            physical = self._bucket_names.physical(bucket)
            for listing in self._gateway.list(physical, recursive=True):
                described = self._describe_key(bucket, listing.key)
                if described is not None:
                    result.append(described)
        logger.info("Listed %d objects with metadata", len(result))
        return result

    # ------------------------------------------------------------------
    # Deletes
    # ------------------------------------------------------------------

    def delete_version(self, versioned_key: str) -> None:
        """Remove exactly one version; other versions are untouched.

        Raises:
            MalformedKeyError: If the key is not versioned.
            NotFoundError: If the key is absent from both buckets.
        """
        bucket, _ = self._locate(versioned_key)
        self._gateway.delete(self._bucket_names.physical(bucket), versioned_key)
        logger.info("File %s deleted from %s", versioned_key, bucket.value)

    def delete_all_versions(self, base_file_name: str) -> list[str]:
        """Delete every version of a document in both buckets.

        Items are processed sequentially and every one is attempted. Deletion
        is not transactional: on partial failure the successful deletes stay.

        Returns:
            Keys that were deleted (empty when the document had no versions).

        Raises:
            PartialBulkFailureError: If any individual delete failed.
        """
        self._ensure_buckets()
        deleted: list[str] = []
        failures: dict[str, str] = {}

        for resolved in self._all_versions(base_file_name):
            key = resolved.listing.key
            try:
                self._gateway.delete(self._bucket_names.physical(resolved.bucket), key)
            except ObjectStorageError as e:
                logger.error("Failed to delete %s from %s: %s", key, resolved.bucket.value, e)
                failures[key] = str(e)
                continue
            deleted.append(key)

        logger.info(
            "All versions of %s deletion completed: deleted=%d failed=%d",
            base_file_name,
            len(deleted),
            len(failures),
        )
        if failures:
            raise PartialBulkFailureError(
                "Some versions could not be deleted",
                succeeded=deleted,
                failures=failures,
                base_file_name=base_file_name,
            )
        return deleted

    # ------------------------------------------------------------------
    # Tags
    # ------------------------------------------------------------------

    def get_tags(self, versioned_key: str) -> dict[str, str]:
        """Return the tag set of one version.

        Raises:
            NotFoundError: If the key is absent from both buckets.
        """
        return self.get_version_info(versioned_key).tags

    def set_tags(self, versioned_key: str, tags: dict[str, str]) -> None:
        """Replace the tag set of one version.

        Raises:
            TooManyTagsError: If more than 10 tags are supplied.
            NotFoundError: If the key is absent from both buckets.
        """
        _check_tag_count(tags, versioned_key)
        bucket, _ = self._locate(versioned_key)
        try:
            self._gateway.set_tags(self._bucket_names.physical(bucket), versioned_key, tags)
        except ObjectNotFoundError as e:
            raise NotFoundError("File not found", key=versioned_key) from e
        logger.info("Tags set for file %s", versioned_key)

    def delete_tags(self, versioned_key: str) -> None:
        """Remove every tag from one version.

        Raises:
            NotFoundError: If the key is absent from both buckets.
        """
        bucket, _ = self._locate(versioned_key)
        try:
            self._gateway.remove_tags(self._bucket_names.physical(bucket), versioned_key)
        except ObjectNotFoundError as e:
            raise NotFoundError("File not found", key=versioned_key) from e
        logger.info("Tags removed for file %s", versioned_key)
