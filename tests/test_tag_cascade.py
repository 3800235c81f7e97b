"""Tests for the tag cascade sweep and TagService.

- After a sweep no object in either bucket carries the tag (any casing)
- Other tags on the same object are kept
- Per-object failures are skipped and reported; the sweep continues
- TagService deletes the catalog entry only after the sweep
"""

from __future__ import annotations

import io

import pytest

from docvault.storage.errors import StorageBackendError
from docvault.storage.memory_gateway import InMemoryObjectStoreGateway
from docvault.tags.cascade import TagCascadeCoordinator
from docvault.tags.catalog import InMemoryTagCatalog, TagNotFoundError
from docvault.tags.service import TagService
from docvault.versioning.buckets import BucketNames
from docvault.versioning.errors import PartialBulkFailureError
from docvault.versioning.models import AuthorIdentity
from tests.fixtures.stores import STABLE_BUCKET, WORKING_BUCKET


class FailingTagWriteGateway(InMemoryObjectStoreGateway):
    """Gateway whose tag writes fail for keys listed in ``failing_keys``.

    The set starts empty so objects can be seeded normally first.
    """

    def __init__(self, buckets: list[str]) -> None:
        super().__init__(buckets)
        self.failing_keys: set[str] = set()

    def set_tags(self, bucket: str, key: str, tags: dict[str, str]) -> None:
        if key in self.failing_keys:
            raise StorageBackendError(message="SlowDown", bucket=bucket, key=key)
        super().set_tags(bucket, key, tags)

    def remove_tags(self, bucket: str, key: str) -> None:
        if key in self.failing_keys:
            raise StorageBackendError(message="SlowDown", bucket=bucket, key=key)
        super().remove_tags(bucket, key)


def _seed(
    gateway: InMemoryObjectStoreGateway, bucket: str, key: str, tags: dict[str, str]
) -> None:
    gateway.put(bucket, key, io.BytesIO(b"x"), 1)
    if tags:
        gateway.set_tags(bucket, key, tags)


@pytest.fixture
def seeded(gateway: InMemoryObjectStoreGateway) -> InMemoryObjectStoreGateway:
    _seed(gateway, WORKING_BUCKET, "a_v1.txt", {"Tag1": "Draft", "Tag2": "Finance"})
    _seed(gateway, WORKING_BUCKET, "a_v2.txt", {"Tag1": "draft"})
    _seed(gateway, STABLE_BUCKET, "b_v1.txt", {"Tag1": "DRAFT", "Tag3": "Legal"})
    _seed(gateway, STABLE_BUCKET, "c_v1.txt", {"Tag1": "Final"})
    _seed(gateway, STABLE_BUCKET, "legacy.txt", {"Tag1": "Draft"})
    _seed(gateway, STABLE_BUCKET, "untagged_v1.txt", {})
    return gateway


def _all_tags(gateway: InMemoryObjectStoreGateway) -> dict[str, dict[str, str]]:
    return {
        o.key: gateway.get_tags(bucket, o.key)
        for bucket in (WORKING_BUCKET, STABLE_BUCKET)
        for o in gateway.list(bucket)
    }


class TestRemoveTagEverywhere:
    """Tests for TagCascadeCoordinator."""

    def test_strips_tag_in_both_buckets(
        self, seeded: InMemoryObjectStoreGateway, bucket_names: BucketNames
    ) -> None:
        cascade = TagCascadeCoordinator(seeded, bucket_names)

        modified = cascade.remove_tag_everywhere("Draft")

        assert modified == 4
        assert _all_tags(seeded) == {
            "a_v1.txt": {"Tag2": "Finance"},
            "a_v2.txt": {},
            "b_v1.txt": {"Tag3": "Legal"},
            "c_v1.txt": {"Tag1": "Final"},
            "legacy.txt": {},
            "untagged_v1.txt": {},
        }

    def test_is_idempotent(
        self, seeded: InMemoryObjectStoreGateway, bucket_names: BucketNames
    ) -> None:
        cascade = TagCascadeCoordinator(seeded, bucket_names)
        cascade.remove_tag_everywhere("draft")

        assert cascade.remove_tag_everywhere("draft") == 0

    def test_unknown_tag_changes_nothing(
        self, seeded: InMemoryObjectStoreGateway, bucket_names: BucketNames
    ) -> None:
        before = _all_tags(seeded)

        report = TagCascadeCoordinator(seeded, bucket_names).sweep("Nonexistent")

        assert report.modified == []
        assert report.scanned == 6
        assert _all_tags(seeded) == before

    def test_matches_case_but_not_whitespace(
        self, gateway: InMemoryObjectStoreGateway, bucket_names: BucketNames
    ) -> None:
        _seed(gateway, WORKING_BUCKET, "a_v1.txt", {"Tag1": "dRaFt", "Tag2": " Draft "})

        report = TagCascadeCoordinator(gateway, bucket_names).sweep("Draft")

        assert report.modified == ["a_v1.txt"]
        assert gateway.get_tags(WORKING_BUCKET, "a_v1.txt") == {"Tag2": " Draft "}

    def test_failures_are_skipped_and_reported(self, bucket_names: BucketNames) -> None:
        gateway = FailingTagWriteGateway([WORKING_BUCKET, STABLE_BUCKET])
        _seed(gateway, WORKING_BUCKET, "a_v1.txt", {"Tag1": "Draft", "Tag2": "Finance"})
        _seed(gateway, WORKING_BUCKET, "b_v1.txt", {"Tag1": "Draft"})
        _seed(gateway, STABLE_BUCKET, "c_v1.txt", {"Tag1": "Draft", "Tag2": "Legal"})
        gateway.failing_keys.add("a_v1.txt")
        cascade = TagCascadeCoordinator(gateway, bucket_names)

        with pytest.raises(PartialBulkFailureError) as exc_info:
            cascade.remove_tag_everywhere("Draft")

        assert sorted(exc_info.value.succeeded) == ["b_v1.txt", "c_v1.txt"]
        assert list(exc_info.value.failures) == ["a_v1.txt"]
        assert gateway.get_tags(WORKING_BUCKET, "b_v1.txt") == {}
        assert gateway.get_tags(STABLE_BUCKET, "c_v1.txt") == {"Tag2": "Legal"}
        assert gateway.get_tags(WORKING_BUCKET, "a_v1.txt") == {"Tag1": "Draft", "Tag2": "Finance"}

    def test_missing_bucket_is_reported(self) -> None:
        gateway = InMemoryObjectStoreGateway([WORKING_BUCKET])
        _seed(gateway, WORKING_BUCKET, "a_v1.txt", {"Tag1": "Draft"})
        names = BucketNames(working=WORKING_BUCKET, stable=STABLE_BUCKET)

        report = TagCascadeCoordinator(gateway, names).sweep("Draft")

        assert report.modified == ["a_v1.txt"]
        assert list(report.failures) == [f"{STABLE_BUCKET}/"]


class TestTagService:
    """Tests for catalog operations with cascade-before-delete."""

    @pytest.fixture
    def service(
        self, seeded: InMemoryObjectStoreGateway, bucket_names: BucketNames
    ) -> TagService:
        catalog = InMemoryTagCatalog(["Draft", "Final"])
        return TagService(catalog, TagCascadeCoordinator(seeded, bucket_names))

    def test_list_and_create(self, service: TagService, author: AuthorIdentity) -> None:
        service.create_tag("Archive", author)

        assert [t.name for t in service.list_tags()] == ["Archive", "Draft", "Final"]

    def test_delete_sweeps_then_removes_entry(
        self,
        service: TagService,
        seeded: InMemoryObjectStoreGateway,
        author: AuthorIdentity,
    ) -> None:
        draft = next(t for t in service.list_tags() if t.name == "Draft")

        result = service.delete_tag(draft.id, author)

        assert result.tag == draft
        assert result.objects_modified == 4
        assert result.failed_keys == []
        assert [t.name for t in service.list_tags()] == ["Final"]
        for tags in _all_tags(seeded).values():
            assert all(value.casefold() != "draft" for value in tags.values())

    def test_delete_unknown_tag(self, service: TagService, author: AuthorIdentity) -> None:
        with pytest.raises(TagNotFoundError):
            service.delete_tag(999, author)

    def test_delete_with_failures_still_removes_entry(
        self, bucket_names: BucketNames, author: AuthorIdentity
    ) -> None:
        gateway = FailingTagWriteGateway([WORKING_BUCKET, STABLE_BUCKET])
        _seed(gateway, WORKING_BUCKET, "a_v1.txt", {"Tag1": "Draft"})
        gateway.failing_keys.add("a_v1.txt")
        catalog = InMemoryTagCatalog(["Draft"])
        service = TagService(catalog, TagCascadeCoordinator(gateway, bucket_names))

        result = service.delete_tag(catalog.list_tags()[0].id, author)

        assert result.objects_modified == 0
        assert result.failed_keys == ["a_v1.txt"]
        assert catalog.list_tags() == []
