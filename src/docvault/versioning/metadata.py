"""Structured lifecycle metadata and its object-store header encoding.

Headers use fixed lower-case hyphenated names (bare, without the
``x-amz-meta-`` prefix; a prefixed map is accepted when decoding).
Timestamps are ISO-8601 with UTC offset.

Decoding is lenient: unknown headers never fail a decode, malformed
timestamps are dropped with a warning. Metadata display must not block
file access.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, fields
from datetime import UTC, datetime
from typing import Final

logger = logging.getLogger(__name__)

USER_METADATA_PREFIX: Final[str] = "x-amz-meta-"

HEADER_DATE_CREATED: Final[str] = "date-created"
HEADER_CREATED_BY: Final[str] = "created-by"
HEADER_DATE_UPDATED: Final[str] = "date-updated"
HEADER_UPDATED_BY: Final[str] = "updated-by"
HEADER_LIFECYCLE_CATEGORY: Final[str] = "lifecycle-category"
HEADER_DATE_REVIEWED: Final[str] = "date-reviewed"
HEADER_REVIEWED_BY: Final[str] = "reviewed-by"
HEADER_TESTED_BY: Final[str] = "tested-by"
HEADER_DATE_TESTED: Final[str] = "date-tested"

# Diagnostic headers written on every version; the key stays authoritative.
HEADER_BASE_FILENAME: Final[str] = "base-filename"
HEADER_VERSION: Final[str] = "version"

# attribute name -> header name
_FIELD_HEADERS: Final[dict[str, str]] = {
    "date_created": HEADER_DATE_CREATED,
    "created_by": HEADER_CREATED_BY,
    "date_updated": HEADER_DATE_UPDATED,
    "updated_by": HEADER_UPDATED_BY,
    "lifecycle_category": HEADER_LIFECYCLE_CATEGORY,
    "date_reviewed": HEADER_DATE_REVIEWED,
    "reviewed_by": HEADER_REVIEWED_BY,
    "tested_by": HEADER_TESTED_BY,
    "date_tested": HEADER_DATE_TESTED,
}

_TIMESTAMP_FIELDS: Final[frozenset[str]] = frozenset(
    {"date_created", "date_updated", "date_reviewed", "date_tested"}
)

RESERVED_HEADERS: Final[frozenset[str]] = frozenset(
    set(_FIELD_HEADERS.values()) | {HEADER_BASE_FILENAME, HEADER_VERSION}
)


@dataclass(frozen=True)
class StructuredMetadata:
    """Lifecycle metadata of one document version.

    ``date_created``/``created_by`` and ``date_updated``/``updated_by`` are
    stamped by the store from the authenticated author; review and test
    fields are caller-supplied.
    """

    date_created: datetime | None = None
    created_by: str | None = None
    date_updated: datetime | None = None
    updated_by: str | None = None
    lifecycle_category: str | None = None
    reviewed_by: str | None = None
    date_reviewed: datetime | None = None
    tested_by: str | None = None
    date_tested: datetime | None = None

    def to_dict(self) -> dict[str, str | None]:
        """Convert to a JSON-serializable dictionary."""
        result: dict[str, str | None] = {}
        for f in fields(self):
            value = getattr(self, f.name)
            result[f.name] = format_timestamp(value) if isinstance(value, datetime) else value
        return result


@dataclass(frozen=True)
class DecodedHeaders:
    """Result of decoding an object's header map."""

    metadata: StructuredMetadata
    custom: dict[str, str] = field(default_factory=dict)
    base_file_name: str | None = None
    version: int | None = None


def format_timestamp(value: datetime) -> str:
    """Render a timestamp in round-trippable ISO-8601; naive values are taken as UTC."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.isoformat()


def parse_timestamp(raw: str) -> datetime | None:
    """Parse an ISO-8601 timestamp, returning None when malformed."""
    text = raw.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        value = datetime.fromisoformat(text)
    except ValueError:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value


def _parse_version(raw: str) -> int | None:
    try:
        value = int(raw.strip())
    except ValueError:
        return None
    return value if value > 0 else None


def encode_headers(
    metadata: StructuredMetadata,
    *,
    base_file_name: str | None = None,
    version: int | None = None,
    custom: dict[str, str] | None = None,
) -> dict[str, str]:
    """Serialize metadata into a flat header map.

    Unset fields are omitted. Custom pairs are lower-cased and may not
    shadow a reserved header; such pairs are dropped with a warning.
    """
    headers: dict[str, str] = {}

    for name, value in (custom or {}).items():
        header = name.strip().lower()
        if not header:
            continue
        if header.startswith(USER_METADATA_PREFIX):
            header = header[len(USER_METADATA_PREFIX) :]
        if header in RESERVED_HEADERS:
            logger.warning("Dropping custom metadata %r: reserved header name", name)
            continue
        headers[header] = value

    for attr, header in _FIELD_HEADERS.items():
        value = getattr(metadata, attr)
        if value is None or value == "":
            continue
        headers[header] = format_timestamp(value) if isinstance(value, datetime) else str(value)

    if base_file_name is not None:
        headers[HEADER_BASE_FILENAME] = base_file_name
    if version is not None:
        headers[HEADER_VERSION] = str(version)

    return headers


def decode_headers(headers: dict[str, str]) -> DecodedHeaders:
    """Parse a header map back into structured metadata.

    Never raises on content: malformed timestamps and versions are dropped.
    """
    values: dict[str, object] = {}
    custom: dict[str, str] = {}
    base_file_name: str | None = None
    version: int | None = None
    header_fields = {header: attr for attr, header in _FIELD_HEADERS.items()}

    for raw_name, raw_value in headers.items():
        name = raw_name.lower()
        if name.startswith(USER_METADATA_PREFIX):
            name = name[len(USER_METADATA_PREFIX) :]

        attr = header_fields.get(name)
        if attr is None:
            if name == HEADER_BASE_FILENAME:
                base_file_name = raw_value
            elif name == HEADER_VERSION:
                version = _parse_version(raw_value)
            else:
                custom[name] = raw_value
            continue

        if attr in _TIMESTAMP_FIELDS:
            parsed = parse_timestamp(raw_value)
            if parsed is None:
                logger.warning("Dropping malformed timestamp header %s=%r", name, raw_value)
                continue
            values[attr] = parsed
        else:
            values[attr] = raw_value

    return DecodedHeaders(
        metadata=StructuredMetadata(**values),  # type: ignore[arg-type]
        custom=custom,
        base_file_name=base_file_name,
        version=version,
    )
