"""Versioned object key codec.

A versioned key is ``{name}_v{version}{extension}`` where name/extension is
the base file name split at its last dot. Versions are 1-based decimal
integers without leading zeros. This naming is persisted and must stay
bit-exact.

Caveat: decoding always takes the last ``_v{digits}`` run before the
extension as the version marker. A base name that already ends in such a
run (``notes_v2.txt``) still round-trips, but an unversioned object stored
under that name is indistinguishable from version 2 of ``notes.txt``.
"""

from __future__ import annotations

import re
from typing import NamedTuple

from docvault.versioning.errors import MalformedKeyError

_VERSION_SUFFIX = re.compile(r"^(?P<name>.*)_v(?P<version>[1-9][0-9]*)$", re.DOTALL)


class VersionedKey(NamedTuple):
    """Decoded form of a versioned key."""

    base_file_name: str
    version: int


def split_file_name(file_name: str) -> tuple[str, str]:
    """Split a file name into (name, extension) at the last dot.

    The dot must sit in the final path segment; without one the extension is
    empty. The extension keeps its leading dot.
    """
    slash = file_name.rfind("/")
    dot = file_name.rfind(".")
    if dot <= slash:
        return file_name, ""
    return file_name[:dot], file_name[dot:]


def encode_key(base_file_name: str, version: int) -> str:
    """Compose the versioned key for a base file name.

    >>> encode_key("invoice.pdf", 2)
    'invoice_v2.pdf'

    Raises:
        ValueError: If the name is empty or the version is not positive.
    """
    if not base_file_name:
        raise ValueError("base_file_name must be non-empty")
    if isinstance(version, bool) or version < 1:
        raise ValueError(f"version must be a positive integer, got {version!r}")

    name, extension = split_file_name(base_file_name)
    return f"{name}_v{version}{extension}"


def decode_key(versioned_key: str) -> VersionedKey:
    """Parse a versioned key back into (base file name, version).

    >>> decode_key("invoice_v2.pdf")
    VersionedKey(base_file_name='invoice.pdf', version=2)

    Raises:
        MalformedKeyError: If the key has no ``_v{N}`` marker before its extension.
    """
    name, extension = split_file_name(versioned_key)
    match = _VERSION_SUFFIX.match(name)
    if match is None:
        raise MalformedKeyError("Key has no _v{N} version suffix", key=versioned_key)

    base_file_name = f"{match.group('name')}{extension}"
    if not base_file_name:
        raise MalformedKeyError("Key has an empty base file name", key=versioned_key)

    return VersionedKey(base_file_name=base_file_name, version=int(match.group("version")))


def try_decode_key(key: str) -> VersionedKey | None:
    """Decode a key, returning None for keys that are not versioned."""
    try:
        return decode_key(key)
    except MalformedKeyError:
        return None
