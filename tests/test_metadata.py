"""Tests for the structured metadata header codec.

- Set fields round-trip; unset fields are omitted
- Custom pairs are lower-cased and never shadow structured headers
- Decoding is lenient: malformed timestamps are dropped, unknown headers kept
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime, timedelta, timezone

import pytest

from docvault.versioning.metadata import (
    HEADER_BASE_FILENAME,
    HEADER_CREATED_BY,
    HEADER_DATE_CREATED,
    HEADER_VERSION,
    StructuredMetadata,
    decode_headers,
    encode_headers,
    format_timestamp,
    parse_timestamp,
)

CREATED = datetime(2024, 3, 1, 9, 30, 15, tzinfo=UTC)


class TestEncodeHeaders:
    """Tests for metadata -> header map."""

    def test_unset_fields_are_omitted(self) -> None:
        headers = encode_headers(StructuredMetadata(created_by="alice@example.com"))

        assert headers == {HEADER_CREATED_BY: "alice@example.com"}

    def test_timestamps_are_iso8601_with_offset(self) -> None:
        headers = encode_headers(StructuredMetadata(date_created=CREATED))

        assert headers[HEADER_DATE_CREATED] == "2024-03-01T09:30:15+00:00"

    def test_naive_timestamp_is_taken_as_utc(self) -> None:
        assert format_timestamp(datetime(2024, 3, 1, 9, 30)) == "2024-03-01T09:30:00+00:00"

    def test_diagnostic_headers(self) -> None:
        headers = encode_headers(StructuredMetadata(), base_file_name="a.pdf", version=3)

        assert headers[HEADER_BASE_FILENAME] == "a.pdf"
        assert headers[HEADER_VERSION] == "3"

    def test_custom_keys_are_lower_cased(self) -> None:
        headers = encode_headers(StructuredMetadata(), custom={"Project-Code": "X1"})

        assert headers == {"project-code": "X1"}

    def test_custom_cannot_shadow_structured(self, caplog: pytest.LogCaptureFixture) -> None:
        with caplog.at_level(logging.WARNING):
            headers = encode_headers(
                StructuredMetadata(created_by="alice@example.com"),
                version=1,
                custom={"Created-By": "mallory", "x-amz-meta-version": "99"},
            )

        assert headers[HEADER_CREATED_BY] == "alice@example.com"
        assert headers[HEADER_VERSION] == "1"
        assert "reserved header" in caplog.text


class TestDecodeHeaders:
    """Tests for header map -> metadata."""

    def test_round_trip(self) -> None:
        metadata = StructuredMetadata(
            date_created=CREATED,
            created_by="alice@example.com",
            date_updated=CREATED + timedelta(days=1),
            updated_by="bob@example.com",
            lifecycle_category="Working",
            reviewed_by="carol",
            date_reviewed=CREATED + timedelta(days=2),
            tested_by="dave",
            date_tested=datetime(2024, 3, 4, 8, 0, tzinfo=timezone(timedelta(hours=3))),
        )

        decoded = decode_headers(
            encode_headers(metadata, base_file_name="a.pdf", version=2, custom={"team": "ops"})
        )

        assert decoded.metadata == metadata
        assert decoded.custom == {"team": "ops"}
        assert decoded.base_file_name == "a.pdf"
        assert decoded.version == 2

    def test_accepts_prefixed_and_mixed_case_names(self) -> None:
        decoded = decode_headers(
            {
                "X-Amz-Meta-Created-By": "alice@example.com",
                "x-amz-meta-date-created": "2024-03-01T09:30:15Z",
            }
        )

        assert decoded.metadata.created_by == "alice@example.com"
        assert decoded.metadata.date_created == CREATED

    def test_malformed_timestamp_is_dropped(self, caplog: pytest.LogCaptureFixture) -> None:
        with caplog.at_level(logging.WARNING):
            decoded = decode_headers(
                {HEADER_DATE_CREATED: "yesterday", HEADER_CREATED_BY: "alice@example.com"}
            )

        assert decoded.metadata.date_created is None
        assert decoded.metadata.created_by == "alice@example.com"
        assert "malformed timestamp" in caplog.text

    def test_unknown_headers_become_custom(self) -> None:
        decoded = decode_headers({"department": "finance"})

        assert decoded.custom == {"department": "finance"}
        assert decoded.metadata == StructuredMetadata()

    def test_malformed_version_header_is_ignored(self) -> None:
        assert decode_headers({HEADER_VERSION: "two"}).version is None
        assert decode_headers({HEADER_VERSION: "0"}).version is None

    def test_empty_map(self) -> None:
        decoded = decode_headers({})

        assert decoded.metadata == StructuredMetadata()
        assert decoded.custom == {}


class TestParseTimestamp:
    """Tests for lenient timestamp parsing."""

    def test_zulu_suffix(self) -> None:
        assert parse_timestamp("2024-03-01T09:30:15Z") == CREATED

    def test_naive_is_utc(self) -> None:
        assert parse_timestamp("2024-03-01T09:30:15") == CREATED

    @pytest.mark.parametrize("raw", ["", "not-a-date", "2024-13-01T00:00:00"])
    def test_malformed(self, raw: str) -> None:
        assert parse_timestamp(raw) is None

    def test_to_dict_renders_timestamps(self) -> None:
        data = StructuredMetadata(date_created=CREATED, created_by="a").to_dict()

        assert data["date_created"] == "2024-03-01T09:30:15+00:00"
        assert data["created_by"] == "a"
        assert data["reviewed_by"] is None
