"""Scan-based version resolution.

The next version number of a logical document is derived from the objects
actually present in a bucket: ``max(existing) + 1``, or 1 when none exist.
There is no separate counter to drift from object presence. The scan alone
is racy; VersionedStore pairs it with a conditional put and retries.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from docvault.storage.gateway import ObjectStoreGateway
from docvault.storage.models import ObjectListing
from docvault.versioning.buckets import Bucket, BucketNames
from docvault.versioning.keys import split_file_name, try_decode_key

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ResolvedVersion:
    """A listing entry that decodes to a version of the requested document."""

    bucket: Bucket
    version: int
    listing: ObjectListing


class VersionResolver:
    """Enumerates versions of a logical document within one bucket."""

    def __init__(self, gateway: ObjectStoreGateway, bucket_names: BucketNames) -> None:
        self._gateway = gateway
        self._bucket_names = bucket_names

    def scan(self, base_file_name: str, bucket: Bucket) -> list[ResolvedVersion]:
        """List every stored version of ``base_file_name`` in ``bucket``.

        Every versioned key of a document starts with ``{name}_v``, so the
        listing is narrowed by that prefix; decoding then drops keys that
        belong to other documents sharing the prefix.

        Returns:
            Versions in ascending version order.
        """
        name, _ = split_file_name(base_file_name)
        physical = self._bucket_names.physical(bucket)
        listings = self._gateway.list(physical, prefix=f"{name}_v", recursive=True)

        found: list[ResolvedVersion] = []
        for listing in listings:
            decoded = try_decode_key(listing.key)
            if decoded is None or decoded.base_file_name != base_file_name:
                continue
            found.append(ResolvedVersion(bucket=bucket, version=decoded.version, listing=listing))

        found.sort(key=lambda v: v.version)
        return found

    def next_version(self, base_file_name: str, bucket: Bucket) -> int:
        """Return the next free version number of a document in a bucket."""
        versions = self.scan(base_file_name, bucket)
        if not versions:
            return 1
        return versions[-1].version + 1
