"""Versioned document store error taxonomy.

Logical errors (NotFoundError and subclasses, MalformedKeyError) are
deterministic and never retried. VersionConflictError is raised only after
the bounded conditional-put retry loop is exhausted.
"""

from __future__ import annotations


class DocVaultError(Exception):
    """Base exception for versioned document store operations.

    Attributes:
        message: Human-readable error message.
        key: Versioned object key involved (if applicable).
        base_file_name: Logical document name involved (if applicable).
    """

    def __init__(
        self,
        message: str,
        *,
        key: str | None = None,
        base_file_name: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.key = key
        self.base_file_name = base_file_name

    def __str__(self) -> str:
        parts = [self.message]
        if self.base_file_name:
            parts.append(f"base_file_name={self.base_file_name}")
        if self.key:
            parts.append(f"key={self.key}")
        return " ".join(parts)


class NotFoundError(DocVaultError):
    """Raised when an object or logical document is absent from both buckets."""


class LogicalDocumentNotFoundError(NotFoundError):
    """Raised when a new version is requested for a document with no versions.

    The first revision of a document must go through upload_new.
    """


class NoVersionsFoundError(NotFoundError):
    """Raised when the latest version is requested and none exist."""


class MalformedKeyError(DocVaultError):
    """Raised when a key does not carry a ``_v{N}`` version marker.

    Indicates caller misuse: a base file name was passed where a versioned
    key is required.
    """


class TooManyTagsError(DocVaultError):
    """Raised when a tag set exceeds the per-object limit."""


class VersionConflictError(DocVaultError):
    """Raised when concurrent writers kept claiming the next version number.

    Attributes:
        attempts: Number of conditional puts attempted.
    """

    def __init__(
        self,
        message: str = "Could not claim a free version number",
        *,
        key: str | None = None,
        base_file_name: str | None = None,
        attempts: int = 0,
    ) -> None:
        super().__init__(message, key=key, base_file_name=base_file_name)
        self.attempts = attempts


class PartialBulkFailureError(DocVaultError):
    """Raised when some items of a bulk operation failed.

    Completed per-item effects are not rolled back.

    Attributes:
        succeeded: Keys processed successfully.
        failures: Mapping of key to the error message of its failure.
    """

    def __init__(
        self,
        message: str,
        *,
        succeeded: list[str] | None = None,
        failures: dict[str, str] | None = None,
        base_file_name: str | None = None,
    ) -> None:
        super().__init__(message, base_file_name=base_file_name)
        self.succeeded = list(succeeded or [])
        self.failures = dict(failures or {})

    def __str__(self) -> str:
        return (
            f"{super().__str__()} succeeded={len(self.succeeded)} failed={len(self.failures)}"
        )
