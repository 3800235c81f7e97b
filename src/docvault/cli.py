"""docvault CLI - versioned document store from the command line.

Usage:
    python -m docvault upload FILE --author EMAIL [--name NAME] [--category CAT]
    python -m docvault new-version FILE --author EMAIL [--name NAME] [--category CAT]
    python -m docvault download KEY [--out PATH]
    python -m docvault download-latest NAME [--out PATH]
    python -m docvault versions NAME
    python -m docvault info KEY
    python -m docvault exists KEY
    python -m docvault list
    python -m docvault delete KEY
    python -m docvault delete-all NAME
    python -m docvault tags get|set|clear KEY [--tag SLOT=VALUE ...]
    python -m docvault catalog list|create|delete ...

Catalog commands require DOCVAULT_DATABASE_URL so entries persist between
runs. Write commands accept ``--tag SLOT=VALUE`` and ``--meta KEY=VALUE``
(repeatable) plus review/test fields.

Exit codes:
    0: Success
    1: Failure (invalid input, storage error, partial bulk failure)
    2: Not found
"""

from __future__ import annotations

import argparse
import json
import logging
import mimetypes
import os
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from docvault.config import ENV_DATABASE_URL, ConfigError, load_store_config
from docvault.observability.tracing import configure_tracing
from docvault.storage.errors import ObjectStorageError
from docvault.storage.s3_gateway import S3ObjectStoreGateway
from docvault.tags.cascade import TagCascadeCoordinator
from docvault.tags.catalog import InMemoryTagCatalog, SqlTagCatalog, TagCatalog, TagNotFoundError
from docvault.tags.service import TagService
from docvault.versioning.errors import DocVaultError, NotFoundError, PartialBulkFailureError
from docvault.versioning.models import AuthorIdentity, MetadataFields
from docvault.versioning.store import VersionedStore

logger = logging.getLogger(__name__)

ENV_LOG_LEVEL = "DOCVAULT_LOG_LEVEL"

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_NOT_FOUND = 2


@dataclass(frozen=True)
class CliContext:
    """Collaborators used by command handlers."""

    store: VersionedStore
    tags: TagService


def build_context(*, require_catalog: bool = False) -> CliContext:
    """Wire the S3 gateway, store and tag catalog from environment configuration.

    Args:
        require_catalog: Fail unless a persistent catalog database is
            configured. Without ``DOCVAULT_DATABASE_URL`` the catalog lives in
            process memory and is lost when the command exits.

    Raises:
        ConfigError: If ``require_catalog`` is set and no database URL is configured.
    """
    config = load_store_config()

    catalog: TagCatalog
    if config.database_url:
        catalog = SqlTagCatalog.from_url(config.database_url)
    elif require_catalog:
        raise ConfigError(f"{ENV_DATABASE_URL} is required for catalog commands")
    else:
        catalog = InMemoryTagCatalog()

    gateway = S3ObjectStoreGateway.from_config(config)
    store = VersionedStore.from_config(gateway, config)
    cascade = TagCascadeCoordinator(gateway, store.bucket_names)
    return CliContext(store=store, tags=TagService(catalog, cascade))


def _output_json(data: Any) -> None:
    """Output JSON to stdout with deterministic ordering."""
    print(json.dumps(data, sort_keys=True, indent=2))


def _make_error_result(code: str, message: str, **details: Any) -> dict[str, Any]:
    result: dict[str, Any] = {"error": {"code": code, "message": message}}
    if details:
        result["error"]["details"] = details
    return result


def _parse_pairs(values: list[str] | None, flag: str) -> dict[str, str]:
    """Parse repeated ``NAME=VALUE`` arguments into a dict."""
    pairs: dict[str, str] = {}
    for raw in values or []:
        name, sep, value = raw.partition("=")
        if not sep or not name.strip():
            raise ValueError(f"{flag} expects NAME=VALUE, got {raw!r}")
        pairs[name.strip()] = value
    return pairs


def _author(args: argparse.Namespace) -> AuthorIdentity:
    return AuthorIdentity(user_id=args.author_id or args.author, email=args.author)


def _metadata_fields(args: argparse.Namespace, *, category: str | None) -> MetadataFields:
    return MetadataFields(
        lifecycle_category=category,
        reviewed_by=args.reviewed_by,
        date_reviewed=args.date_reviewed,
        tested_by=args.tested_by,
        date_tested=args.date_tested,
        custom=_parse_pairs(args.meta, "--meta"),
    )


def _content_type(args: argparse.Namespace, path: Path) -> str:
    if args.content_type:
        return args.content_type
    guessed, _ = mimetypes.guess_type(path.name)
    return guessed or "application/octet-stream"


def _write_download(stream: Any, out: str | None, default_name: str) -> dict[str, Any]:
    target = Path(out) if out else Path(default_name.rsplit("/", 1)[-1])
    data = stream.read()
    target.write_bytes(data)
    return {"path": str(target), "size": len(data)}


def cmd_upload(args: argparse.Namespace, ctx: CliContext) -> int:
    path = Path(args.file)
    with path.open("rb") as f:
        outcome = ctx.store.upload_new(
            args.name or path.name,
            f,
            author=_author(args),
            metadata=_metadata_fields(args, category=args.category),
            tags=_parse_pairs(args.tag, "--tag") or None,
            content_type=_content_type(args, path),
        )
    _output_json(outcome.to_result().model_dump(mode="json"))
    return EXIT_OK


def cmd_new_version(args: argparse.Namespace, ctx: CliContext) -> int:
    path = Path(args.file)
    with path.open("rb") as f:
        outcome = ctx.store.create_version(
            args.name or path.name,
            f,
            author=_author(args),
            metadata=_metadata_fields(args, category=args.category),
            tags=_parse_pairs(args.tag, "--tag") or None,
            content_type=_content_type(args, path),
        )
    _output_json(outcome.to_result().model_dump(mode="json"))
    return EXIT_OK


def cmd_download(args: argparse.Namespace, ctx: CliContext) -> int:
    stream = ctx.store.download(args.key)
    result = _write_download(stream, args.out, args.key)
    _output_json({"key": args.key, **result})
    return EXIT_OK


def cmd_download_latest(args: argparse.Namespace, ctx: CliContext) -> int:
    stream = ctx.store.download_latest(args.name)
    result = _write_download(stream, args.out, args.name)
    _output_json({"base_file_name": args.name, **result})
    return EXIT_OK


def cmd_versions(args: argparse.Namespace, ctx: CliContext) -> int:
    versions = ctx.store.list_versions(args.name)
    _output_json({"base_file_name": args.name, "versions": [v.to_dict() for v in versions]})
    return EXIT_OK


def cmd_info(args: argparse.Namespace, ctx: CliContext) -> int:
    _output_json(ctx.store.get_version_info(args.key).to_dict())
    return EXIT_OK


def cmd_exists(args: argparse.Namespace, ctx: CliContext) -> int:
    found = ctx.store.exists(args.key)
    _output_json({"key": args.key, "exists": found})
    return EXIT_OK if found else EXIT_NOT_FOUND


def cmd_list(args: argparse.Namespace, ctx: CliContext) -> int:
    documents = ctx.store.list_documents()
    _output_json({"documents": [d.to_dict() for d in documents]})
    return EXIT_OK


def cmd_delete(args: argparse.Namespace, ctx: CliContext) -> int:
    ctx.store.delete_version(args.key)
    _output_json({"deleted": [args.key]})
    return EXIT_OK


def cmd_delete_all(args: argparse.Namespace, ctx: CliContext) -> int:
    deleted = ctx.store.delete_all_versions(args.name)
    _output_json({"base_file_name": args.name, "deleted": deleted})
    return EXIT_OK


def cmd_tags(args: argparse.Namespace, ctx: CliContext) -> int:
    if args.tags_command == "get":
        _output_json({"key": args.key, "tags": ctx.store.get_tags(args.key)})
    elif args.tags_command == "set":
        tags = _parse_pairs(args.tag, "--tag")
        ctx.store.set_tags(args.key, tags)
        _output_json({"key": args.key, "tags": tags})
    else:
        ctx.store.delete_tags(args.key)
        _output_json({"key": args.key, "tags": {}})
    return EXIT_OK


def cmd_catalog(args: argparse.Namespace, ctx: CliContext) -> int:
    if args.catalog_command == "list":
        _output_json({"tags": [t.model_dump() for t in ctx.tags.list_tags()]})
    elif args.catalog_command == "create":
        tag = ctx.tags.create_tag(args.tag_name, _author(args))
        _output_json(tag.model_dump())
    else:
        result = ctx.tags.delete_tag(args.tag_id, _author(args))
        _output_json(result.model_dump())
        if result.failed_keys:
            return EXIT_FAILURE
    return EXIT_OK


def _add_author_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--author", required=True, metavar="EMAIL", help="Author email")
    parser.add_argument("--author-id", metavar="ID", help="Author user id (default: email)")


def _add_write_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("file", metavar="FILE", help="Path of the content to upload")
    parser.add_argument("--name", help="Base file name (default: FILE's name)")
    parser.add_argument("--category", help="Lifecycle category; 'working' or stable")
    parser.add_argument("--content-type", help="MIME type (default: guessed)")
    parser.add_argument("--reviewed-by")
    parser.add_argument("--date-reviewed", metavar="ISO8601")
    parser.add_argument("--tested-by")
    parser.add_argument("--date-tested", metavar="ISO8601")
    parser.add_argument("--tag", action="append", metavar="SLOT=VALUE", help="Tag (repeatable)")
    parser.add_argument(
        "--meta", action="append", metavar="KEY=VALUE", help="Custom metadata (repeatable)"
    )
    _add_author_arguments(parser)


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="docvault",
        description="docvault - immutable versioned document storage",
    )

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    upload_parser = subparsers.add_parser("upload", help="Upload the first version of a document")
    _add_write_arguments(upload_parser)
    upload_parser.set_defaults(handler=cmd_upload)

    new_version_parser = subparsers.add_parser(
        "new-version", help="Store a new version of an existing document"
    )
    _add_write_arguments(new_version_parser)
    new_version_parser.set_defaults(handler=cmd_new_version)

    download_parser = subparsers.add_parser("download", help="Download one version")
    download_parser.add_argument("key", metavar="KEY", help="Versioned key, e.g. report_v2.pdf")
    download_parser.add_argument("--out", metavar="PATH", help="Output path (default: KEY)")
    download_parser.set_defaults(handler=cmd_download)

    latest_parser = subparsers.add_parser("download-latest", help="Download the newest version")
    latest_parser.add_argument("name", metavar="NAME", help="Base file name")
    latest_parser.add_argument("--out", metavar="PATH", help="Output path (default: NAME)")
    latest_parser.set_defaults(handler=cmd_download_latest)

    versions_parser = subparsers.add_parser("versions", help="List versions, newest first")
    versions_parser.add_argument("name", metavar="NAME", help="Base file name")
    versions_parser.set_defaults(handler=cmd_versions)

    info_parser = subparsers.add_parser("info", help="Show metadata and tags of one version")
    info_parser.add_argument("key", metavar="KEY")
    info_parser.set_defaults(handler=cmd_info)

    exists_parser = subparsers.add_parser("exists", help="Check whether a version exists")
    exists_parser.add_argument("key", metavar="KEY")
    exists_parser.set_defaults(handler=cmd_exists)

    list_parser = subparsers.add_parser("list", help="List every stored object with metadata")
    list_parser.set_defaults(handler=cmd_list)

    delete_parser = subparsers.add_parser("delete", help="Delete one version")
    delete_parser.add_argument("key", metavar="KEY")
    delete_parser.set_defaults(handler=cmd_delete)

    delete_all_parser = subparsers.add_parser("delete-all", help="Delete every version")
    delete_all_parser.add_argument("name", metavar="NAME", help="Base file name")
    delete_all_parser.set_defaults(handler=cmd_delete_all)

    # tags command with get/set/clear subcommands
    tags_parser = subparsers.add_parser("tags", help="Per-version tag operations")
    tags_subparsers = tags_parser.add_subparsers(dest="tags_command", help="Tag subcommands")
    for name, help_text in [
        ("get", "Show tags of a version"),
        ("set", "Replace tags of a version"),
        ("clear", "Remove all tags of a version"),
    ]:
        sub = tags_subparsers.add_parser(name, help=help_text)
        sub.add_argument("key", metavar="KEY")
        if name == "set":
            sub.add_argument("--tag", action="append", metavar="SLOT=VALUE", required=True)
        sub.set_defaults(handler=cmd_tags)

    # catalog command with list/create/delete subcommands
    catalog_parser = subparsers.add_parser(
        "catalog", help="Predefined tag catalog (requires DOCVAULT_DATABASE_URL)"
    )
    catalog_subparsers = catalog_parser.add_subparsers(
        dest="catalog_command", help="Catalog subcommands"
    )
    catalog_subparsers.add_parser("list", help="List predefined tags").set_defaults(
        handler=cmd_catalog
    )
    create_parser_ = catalog_subparsers.add_parser("create", help="Add a predefined tag")
    create_parser_.add_argument("tag_name", metavar="NAME")
    _add_author_arguments(create_parser_)
    create_parser_.set_defaults(handler=cmd_catalog)
    delete_tag_parser = catalog_subparsers.add_parser(
        "delete", help="Strip a tag from every document, then delete it"
    )
    delete_tag_parser.add_argument("tag_id", metavar="ID", type=int)
    _add_author_arguments(delete_tag_parser)
    delete_tag_parser.set_defaults(handler=cmd_catalog)

    return parser


def _configure_logging() -> None:
    level = os.environ.get(ENV_LOG_LEVEL, "INFO").upper()
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def main(argv: list[str] | None = None, context: CliContext | None = None) -> int:
    """Main entry point.

    Args:
        argv: Arguments (default: sys.argv[1:]).
        context: Pre-built collaborators; built from the environment if None.

    Exit codes:
        0: Success
        1: Failure
        2: Not found
    """
    parser = create_parser()
    args = parser.parse_args(argv)

    handler = getattr(args, "handler", None)
    if handler is None:
        parser.print_help()
        return EXIT_OK

    _configure_logging()

    try:
        configure_tracing()
        ctx = context or build_context(require_catalog=args.command == "catalog")
        return handler(args, ctx)
    except (NotFoundError, TagNotFoundError) as e:
        _output_json(_make_error_result("NOT_FOUND", str(e)))
        return EXIT_NOT_FOUND
    except PartialBulkFailureError as e:
        _output_json(
            _make_error_result(
                "PARTIAL_FAILURE", str(e), succeeded=e.succeeded, failures=e.failures
            )
        )
        return EXIT_FAILURE
    except (ValidationError, ValueError, OSError) as e:
        _output_json(_make_error_result("INVALID_ARGUMENT", str(e)))
        return EXIT_FAILURE
    except (DocVaultError, ObjectStorageError, ConfigError) as e:
        logger.error("Command %s failed: %s", args.command, e)
        _output_json(_make_error_result(type(e).__name__, str(e)))
        return EXIT_FAILURE


if __name__ == "__main__":
    sys.exit(main())
