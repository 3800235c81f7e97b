"""Versioned document models.

DocumentVersion is the domain record of one immutable stored revision.
MetadataFields and UploadResult are the caller-facing request/response
shapes consumed by the HTTP layer.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Annotated, Any

from pydantic import BaseModel, ConfigDict, Field

from docvault.versioning.buckets import Bucket
from docvault.versioning.metadata import StructuredMetadata


@dataclass(frozen=True)
class AuthorIdentity:
    """Resolved identity of the authenticated caller.

    Attributes:
        user_id: Stable identifier from the identity provider.
        email: Resolved email; recorded as created-by / updated-by.
        username: Optional display name.
    """

    user_id: str
    email: str
    username: str | None = None


class MetadataFields(BaseModel):
    """Caller-supplied metadata for an upload or new version.

    Creation and update stamps are not accepted here; the store sets them
    from the authenticated author.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    lifecycle_category: Annotated[str | None, Field(max_length=100)] = None
    reviewed_by: str | None = None
    date_reviewed: datetime | None = None
    tested_by: str | None = None
    date_tested: datetime | None = None
    custom: dict[str, str] = Field(default_factory=dict)


@dataclass(frozen=True)
class DocumentVersion:
    """One immutable stored revision of a logical document.

    ``version`` is None only for objects whose key is not versioned, which
    appear in whole-bucket listings but never in version listings.
    """

    versioned_key: str
    base_file_name: str
    version: int | None
    bucket: Bucket
    size: int
    last_modified: datetime
    content_type: str
    etag: str
    tags: dict[str, str] = field(default_factory=dict)
    metadata: StructuredMetadata = field(default_factory=StructuredMetadata)
    custom_metadata: dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-serializable dictionary."""
        return {
            "versioned_key": self.versioned_key,
            "base_file_name": self.base_file_name,
            "version": self.version,
            "bucket": self.bucket.value,
            "size": self.size,
            "last_modified": self.last_modified.isoformat(),
            "content_type": self.content_type,
            "etag": self.etag,
            "tags": dict(self.tags),
            "metadata": self.metadata.to_dict(),
            "custom_metadata": dict(self.custom_metadata),
        }


class UploadResult(BaseModel):
    """Caller-facing response of an upload or new-version call."""

    model_config = ConfigDict(frozen=True)

    versioned_file_name: str
    version: int
    base_file_name: str
    bucket: Bucket
    tag_warning: str | None = None


@dataclass(frozen=True)
class UploadOutcome:
    """Stored version plus any non-fatal tagging failure.

    ``tag_warning`` is set when the content was stored but applying tags
    failed; the upload itself is not rolled back.
    """

    document: DocumentVersion
    tag_warning: str | None = None

    @property
    def versioned_key(self) -> str:
        return self.document.versioned_key

    @property
    def version(self) -> int:
        return self.document.version or 0

    def to_result(self) -> UploadResult:
        """Build the caller-facing response."""
        return UploadResult(
            versioned_file_name=self.document.versioned_key,
            version=self.version,
            base_file_name=self.document.base_file_name,
            bucket=self.document.bucket,
            tag_warning=self.tag_warning,
        )
