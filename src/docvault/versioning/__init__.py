"""docvault versioned document store.

Every revision of a logical document is an immutable object whose key
encodes the version: ``report.pdf`` is stored as ``report_v1.pdf``,
``report_v2.pdf``, ... Documents live in one of two lifecycle buckets
(working / stable) chosen by their lifecycle category.
"""

from docvault.versioning.buckets import SEARCH_ORDER, Bucket, BucketNames, route_bucket
from docvault.versioning.errors import (
    DocVaultError,
    LogicalDocumentNotFoundError,
    MalformedKeyError,
    NotFoundError,
    NoVersionsFoundError,
    PartialBulkFailureError,
    TooManyTagsError,
    VersionConflictError,
)
from docvault.versioning.keys import VersionedKey, decode_key, encode_key, try_decode_key
from docvault.versioning.metadata import StructuredMetadata, decode_headers, encode_headers
from docvault.versioning.models import (
    AuthorIdentity,
    DocumentVersion,
    MetadataFields,
    UploadOutcome,
    UploadResult,
)
from docvault.versioning.resolver import ResolvedVersion, VersionResolver
from docvault.versioning.store import MAX_TAGS_PER_OBJECT, VersionedStore

__all__ = [
    "VersionedStore",
    "VersionResolver",
    "ResolvedVersion",
    "MAX_TAGS_PER_OBJECT",
    "Bucket",
    "BucketNames",
    "SEARCH_ORDER",
    "route_bucket",
    "VersionedKey",
    "encode_key",
    "decode_key",
    "try_decode_key",
    "StructuredMetadata",
    "encode_headers",
    "decode_headers",
    "AuthorIdentity",
    "DocumentVersion",
    "MetadataFields",
    "UploadOutcome",
    "UploadResult",
    "DocVaultError",
    "NotFoundError",
    "LogicalDocumentNotFoundError",
    "NoVersionsFoundError",
    "MalformedKeyError",
    "TooManyTagsError",
    "VersionConflictError",
    "PartialBulkFailureError",
]
