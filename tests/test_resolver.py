"""Tests for scan-based version resolution."""

from __future__ import annotations

import io

from docvault.storage.memory_gateway import InMemoryObjectStoreGateway
from docvault.versioning.buckets import Bucket, BucketNames
from docvault.versioning.resolver import VersionResolver
from tests.fixtures.stores import STABLE_BUCKET, WORKING_BUCKET


def _put(gateway: InMemoryObjectStoreGateway, bucket: str, key: str) -> None:
    gateway.put(bucket, key, io.BytesIO(b"x"), 1)


class TestVersionResolver:
    """Tests for VersionResolver."""

    def test_no_versions(
        self, gateway: InMemoryObjectStoreGateway, bucket_names: BucketNames
    ) -> None:
        resolver = VersionResolver(gateway, bucket_names)

        assert resolver.scan("a.txt", Bucket.STABLE) == []
        assert resolver.next_version("a.txt", Bucket.STABLE) == 1

    def test_next_is_max_plus_one_with_gaps(
        self, gateway: InMemoryObjectStoreGateway, bucket_names: BucketNames
    ) -> None:
        for key in ["a_v1.txt", "a_v4.txt", "a_v10.txt"]:
            _put(gateway, STABLE_BUCKET, key)

        resolver = VersionResolver(gateway, bucket_names)

        assert [v.version for v in resolver.scan("a.txt", Bucket.STABLE)] == [1, 4, 10]
        assert resolver.next_version("a.txt", Bucket.STABLE) == 11

    def test_scan_is_per_bucket(
        self, gateway: InMemoryObjectStoreGateway, bucket_names: BucketNames
    ) -> None:
        _put(gateway, WORKING_BUCKET, "a_v3.txt")

        resolver = VersionResolver(gateway, bucket_names)

        assert resolver.next_version("a.txt", Bucket.WORKING) == 4
        assert resolver.next_version("a.txt", Bucket.STABLE) == 1

    def test_ignores_other_documents_and_unversioned_keys(
        self, gateway: InMemoryObjectStoreGateway, bucket_names: BucketNames
    ) -> None:
        for key in ["a_v1.txt", "a_v2.csv", "a_v1_v5.txt", "a_vX.txt", "a.txt", "ab_v7.txt"]:
            _put(gateway, STABLE_BUCKET, key)

        versions = VersionResolver(gateway, bucket_names).scan("a.txt", Bucket.STABLE)

        assert [(v.listing.key, v.version) for v in versions] == [("a_v1.txt", 1)]
        assert all(v.bucket is Bucket.STABLE for v in versions)
