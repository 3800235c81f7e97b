"""Tests for the docvault CLI.

Per CLI contract:
- JSON output on stdout with sorted keys
- Exit code 0 on success, 1 on failure, 2 when the target is not found
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import pytest

from docvault.cli import CliContext, create_parser, main
from docvault.storage.memory_gateway import InMemoryObjectStoreGateway
from docvault.tags.cascade import TagCascadeCoordinator
from docvault.tags.catalog import InMemoryTagCatalog
from docvault.tags.service import TagService
from docvault.versioning.buckets import BucketNames
from docvault.versioning.store import VersionedStore

AUTHOR = ["--author", "alice@example.com"]


@pytest.fixture
def ctx(
    gateway: InMemoryObjectStoreGateway,
    bucket_names: BucketNames,
    store: VersionedStore,
) -> CliContext:
    catalog = InMemoryTagCatalog(["Draft"])
    return CliContext(
        store=store,
        tags=TagService(catalog, TagCascadeCoordinator(gateway, bucket_names)),
    )


@pytest.fixture
def source_file(tmp_path: Path) -> Path:
    path = tmp_path / "invoice.pdf"
    path.write_bytes(b"%PDF-1.7 first")
    return path


def _run(
    ctx: CliContext, capsys: pytest.CaptureFixture[str], argv: list[str]
) -> tuple[int, Any]:
    code = main(argv, context=ctx)
    out = capsys.readouterr().out
    return code, json.loads(out) if out.strip() else None


def _run_without_context(capsys: pytest.CaptureFixture[str], argv: list[str]) -> tuple[int, Any]:
    code = main(argv)
    out = capsys.readouterr().out
    return code, json.loads(out)


class TestUpload:
    """Tests for upload and new-version."""

    def test_upload_then_new_version(
        self,
        ctx: CliContext,
        capsys: pytest.CaptureFixture[str],
        source_file: Path,
    ) -> None:
        code, result = _run(
            ctx,
            capsys,
            ["upload", str(source_file), "--category", "working", "--tag", "Tag1=Draft", *AUTHOR],
        )

        assert code == 0
        assert result == {
            "base_file_name": "invoice.pdf",
            "bucket": "working",
            "tag_warning": None,
            "version": 1,
            "versioned_file_name": "invoice_v1.pdf",
        }

        source_file.write_bytes(b"%PDF-1.7 second")
        code, result = _run(
            ctx,
            capsys,
            ["new-version", str(source_file), "--reviewed-by", "bob@example.com", *AUTHOR],
        )

        assert code == 0
        assert result["versioned_file_name"] == "invoice_v2.pdf"
        assert result["bucket"] == "working"

        info = ctx.store.get_version_info("invoice_v2.pdf")
        assert info.content_type == "application/pdf"
        assert info.metadata.reviewed_by == "bob@example.com"

    def test_upload_with_custom_name_and_meta(
        self,
        ctx: CliContext,
        capsys: pytest.CaptureFixture[str],
        source_file: Path,
    ) -> None:
        code, result = _run(
            ctx,
            capsys,
            ["upload", str(source_file), "--name", "q1/report.pdf", "--meta", "team=ops", *AUTHOR],
        )

        assert code == 0
        assert result["versioned_file_name"] == "q1/report_v1.pdf"
        assert ctx.store.get_version_info("q1/report_v1.pdf").custom_metadata == {"team": "ops"}

    def test_new_version_without_prior_is_not_found(
        self,
        ctx: CliContext,
        capsys: pytest.CaptureFixture[str],
        source_file: Path,
    ) -> None:
        code, result = _run(ctx, capsys, ["new-version", str(source_file), *AUTHOR])

        assert code == 2
        assert result["error"]["code"] == "NOT_FOUND"

    def test_bad_tag_argument(
        self,
        ctx: CliContext,
        capsys: pytest.CaptureFixture[str],
        source_file: Path,
    ) -> None:
        code, result = _run(ctx, capsys, ["upload", str(source_file), "--tag", "Draft", *AUTHOR])

        assert code == 1
        assert result["error"]["code"] == "INVALID_ARGUMENT"

    def test_missing_input_file(
        self, ctx: CliContext, capsys: pytest.CaptureFixture[str], tmp_path: Path
    ) -> None:
        code, result = _run(ctx, capsys, ["upload", str(tmp_path / "nope.pdf"), *AUTHOR])

        assert code == 1
        assert result["error"]["code"] == "INVALID_ARGUMENT"


class TestReadCommands:
    """Tests for download, versions and info."""

    @pytest.fixture(autouse=True)
    def two_versions(self, ctx: CliContext, author: Any) -> None:
        ctx.store.upload_new("notes.txt", b"one", author=author)
        ctx.store.create_version("notes.txt", b"two", author=author)

    def test_download(
        self,
        ctx: CliContext,
        capsys: pytest.CaptureFixture[str],
        tmp_path: Path,
    ) -> None:
        out = tmp_path / "out.txt"

        code, result = _run(ctx, capsys, ["download", "notes_v1.txt", "--out", str(out)])

        assert code == 0
        assert result == {"key": "notes_v1.txt", "path": str(out), "size": 3}
        assert out.read_bytes() == b"one"

    def test_download_latest_default_path(
        self,
        ctx: CliContext,
        capsys: pytest.CaptureFixture[str],
        tmp_path: Path,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        monkeypatch.chdir(tmp_path)

        code, _ = _run(ctx, capsys, ["download-latest", "notes.txt"])

        assert code == 0
        assert (tmp_path / "notes.txt").read_bytes() == b"two"

    def test_download_unversioned_key_fails(
        self, ctx: CliContext, capsys: pytest.CaptureFixture[str]
    ) -> None:
        code, result = _run(ctx, capsys, ["download", "notes.txt"])

        assert code == 1
        assert result["error"]["code"] == "MalformedKeyError"

    def test_versions(self, ctx: CliContext, capsys: pytest.CaptureFixture[str]) -> None:
        code, result = _run(ctx, capsys, ["versions", "notes.txt"])

        assert code == 0
        assert [v["version"] for v in result["versions"]] == [2, 1]

    def test_info_missing(self, ctx: CliContext, capsys: pytest.CaptureFixture[str]) -> None:
        code, result = _run(ctx, capsys, ["info", "notes_v9.txt"])

        assert code == 2
        assert result["error"]["code"] == "NOT_FOUND"

    def test_exists(self, ctx: CliContext, capsys: pytest.CaptureFixture[str]) -> None:
        code, result = _run(ctx, capsys, ["exists", "notes_v2.txt"])
        assert code == 0
        assert result == {"key": "notes_v2.txt", "exists": True}

        code, result = _run(ctx, capsys, ["exists", "notes_v3.txt"])
        assert code == 2
        assert result == {"key": "notes_v3.txt", "exists": False}

    def test_list_documents(self, ctx: CliContext, capsys: pytest.CaptureFixture[str]) -> None:
        code, result = _run(ctx, capsys, ["list"])

        assert code == 0
        assert sorted(d["versioned_key"] for d in result["documents"]) == [
            "notes_v1.txt",
            "notes_v2.txt",
        ]
        assert {d["bucket"] for d in result["documents"]} == {"stable"}

    def test_delete_and_delete_all(
        self, ctx: CliContext, capsys: pytest.CaptureFixture[str]
    ) -> None:
        code, result = _run(ctx, capsys, ["delete", "notes_v2.txt"])
        assert code == 0
        assert result == {"deleted": ["notes_v2.txt"]}

        code, result = _run(ctx, capsys, ["delete-all", "notes.txt"])
        assert code == 0
        assert result == {"base_file_name": "notes.txt", "deleted": ["notes_v1.txt"]}


class TestTagCommands:
    """Tests for tags and catalog subcommands."""

    def test_tags_set_get_clear(
        self, ctx: CliContext, capsys: pytest.CaptureFixture[str], author: Any
    ) -> None:
        ctx.store.upload_new("a.txt", b"x", author=author)

        assert _run(ctx, capsys, ["tags", "set", "a_v1.txt", "--tag", "Tag1=Final"])[0] == 0
        assert _run(ctx, capsys, ["tags", "get", "a_v1.txt"])[1]["tags"] == {"Tag1": "Final"}
        assert _run(ctx, capsys, ["tags", "clear", "a_v1.txt"])[0] == 0
        assert ctx.store.get_tags("a_v1.txt") == {}

    def test_catalog_create_list_delete(
        self, ctx: CliContext, capsys: pytest.CaptureFixture[str], author: Any
    ) -> None:
        ctx.store.upload_new("a.txt", b"x", author=author, tags={"Tag1": "Draft"})

        code, created = _run(ctx, capsys, ["catalog", "create", "Final", *AUTHOR])
        assert code == 0
        assert created["name"] == "Final"

        _, listed = _run(ctx, capsys, ["catalog", "list"])
        assert [t["name"] for t in listed["tags"]] == ["Draft", "Final"]

        draft_id = listed["tags"][0]["id"]
        code, deleted = _run(ctx, capsys, ["catalog", "delete", str(draft_id), *AUTHOR])
        assert code == 0
        assert deleted["objects_modified"] == 1
        assert ctx.store.get_tags("a_v1.txt") == {}

    def test_catalog_duplicate(self, ctx: CliContext, capsys: pytest.CaptureFixture[str]) -> None:
        code, result = _run(ctx, capsys, ["catalog", "create", "draft", *AUTHOR])

        assert code == 1
        assert result["error"]["code"] == "DuplicateTagError"

    def test_catalog_delete_unknown(
        self, ctx: CliContext, capsys: pytest.CaptureFixture[str]
    ) -> None:
        code, result = _run(ctx, capsys, ["catalog", "delete", "999", *AUTHOR])

        assert code == 2
        assert result["error"]["code"] == "NOT_FOUND"


class TestParser:
    """Tests for argument parsing."""

    def test_no_command_prints_help(self, capsys: pytest.CaptureFixture[str]) -> None:
        assert main([]) == 0
        assert "usage" in capsys.readouterr().out

    def test_catalog_requires_database_url(
        self, capsys: pytest.CaptureFixture[str], monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.delenv("DOCVAULT_DATABASE_URL", raising=False)

        code, result = _run_without_context(capsys, ["catalog", "list"])

        assert code == 1
        assert result["error"]["code"] == "ConfigError"
        assert "DOCVAULT_DATABASE_URL" in result["error"]["message"]

    def test_author_required_for_writes(self) -> None:
        with pytest.raises(SystemExit):
            create_parser().parse_args(["upload", "a.txt"])
