"""Pytest configuration and fixtures for docvault tests.

This module provides common fixtures and configuration for all tests.
"""

from __future__ import annotations

import pytest

from docvault.storage.memory_gateway import InMemoryObjectStoreGateway
from docvault.versioning.buckets import BucketNames
from docvault.versioning.models import AuthorIdentity
from docvault.versioning.store import VersionedStore
from tests.fixtures.stores import STABLE_BUCKET, WORKING_BUCKET, TickingClock


@pytest.fixture(autouse=True)
def disable_tracing(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep span emission off unless a test opts in."""
    monkeypatch.delenv("DOCVAULT_OTEL_ENABLED", raising=False)
    monkeypatch.delenv("DOCVAULT_OTEL_TEST_CAPTURE", raising=False)


@pytest.fixture
def clock() -> TickingClock:
    return TickingClock()


@pytest.fixture
def bucket_names() -> BucketNames:
    return BucketNames(working=WORKING_BUCKET, stable=STABLE_BUCKET)


@pytest.fixture
def gateway(clock: TickingClock) -> InMemoryObjectStoreGateway:
    """In-memory gateway with both buckets created."""
    return InMemoryObjectStoreGateway([WORKING_BUCKET, STABLE_BUCKET], clock=clock)


@pytest.fixture
def store(
    gateway: InMemoryObjectStoreGateway,
    bucket_names: BucketNames,
    clock: TickingClock,
) -> VersionedStore:
    return VersionedStore(gateway, bucket_names, max_version_attempts=3, clock=clock)


@pytest.fixture
def author() -> AuthorIdentity:
    return AuthorIdentity(user_id="u-alice", email="alice@example.com", username="alice")


@pytest.fixture
def other_author() -> AuthorIdentity:
    return AuthorIdentity(user_id="u-bob", email="bob@example.com", username="bob")
