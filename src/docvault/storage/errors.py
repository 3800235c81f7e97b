"""Object store gateway error types.

Typed exceptions raised by ObjectStoreGateway implementations. Transport
failures (network, permission) surface as StorageBackendError and are not
retried by the layers above.
"""

from __future__ import annotations


class ObjectStorageError(Exception):
    """Base exception for object store gateway operations.

    Attributes:
        message: Human-readable error message.
        bucket: Physical bucket associated with the operation (if applicable).
        key: Object key associated with the operation (if applicable).
    """

    def __init__(
        self,
        message: str,
        *,
        bucket: str | None = None,
        key: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.bucket = bucket
        self.key = key

    def __str__(self) -> str:
        parts = [self.message]
        if self.bucket:
            parts.append(f"bucket={self.bucket}")
        if self.key:
            parts.append(f"key={self.key}")
        return " ".join(parts)


class ObjectNotFoundError(ObjectStorageError):
    """Raised when an object (or a specific object version) does not exist."""

    def __init__(
        self,
        message: str = "Object not found",
        *,
        bucket: str | None = None,
        key: str | None = None,
        version_id: str | None = None,
    ) -> None:
        super().__init__(message, bucket=bucket, key=key)
        self.version_id = version_id


class PreconditionFailedError(ObjectStorageError):
    """Raised when a conditional write loses: the target key already exists."""

    def __init__(
        self,
        message: str = "Precondition failed: object already exists",
        *,
        bucket: str | None = None,
        key: str | None = None,
    ) -> None:
        super().__init__(message, bucket=bucket, key=key)


class StorageBackendError(ObjectStorageError):
    """Raised when the backend itself cannot complete an operation.

    Covers transport and permission failures as opposed to logical errors
    like a missing object. The original exception is kept as ``cause``.
    """

    def __init__(
        self,
        message: str = "Storage backend error",
        *,
        bucket: str | None = None,
        key: str | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(message, bucket=bucket, key=key)
        self.cause = cause
