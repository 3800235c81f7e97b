"""Lifecycle bucket routing.

Maps a caller-supplied lifecycle category onto one of the two logical
buckets, and logical buckets onto physical bucket names.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum

WORKING_CATEGORY = "working"


class Bucket(StrEnum):
    """Logical lifecycle partition of the object store."""

    WORKING = "working"
    STABLE = "stable"


# Probe order when a key or document is located without a known bucket.
SEARCH_ORDER: tuple[Bucket, Bucket] = (Bucket.WORKING, Bucket.STABLE)


def route_bucket(lifecycle_category: str | None) -> Bucket:
    """Classify an upload by its lifecycle category.

    Only a case-insensitive exact match of "working" selects the working
    bucket; anything else, including empty or missing, is stable.
    """
    if lifecycle_category is not None and lifecycle_category.lower() == WORKING_CATEGORY:
        return Bucket.WORKING
    return Bucket.STABLE


@dataclass(frozen=True)
class BucketNames:
    """Physical bucket names behind the logical buckets."""

    working: str
    stable: str

    def physical(self, bucket: Bucket) -> str:
        """Return the physical bucket name for a logical bucket."""
        return self.working if bucket is Bucket.WORKING else self.stable
