"""Environment-driven configuration for docvault.

Environment Variables:
    DOCVAULT_WORKING_BUCKET: Physical bucket for working documents
        (default: "docvault-working")
    DOCVAULT_STABLE_BUCKET: Physical bucket for stable documents
        (default: "docvault-stable")
    DOCVAULT_S3_ENDPOINT_URL: S3-compatible endpoint, e.g. a MinIO URL (optional)
    DOCVAULT_S3_REGION: Region name (default: "us-east-1")
    DOCVAULT_S3_ACCESS_KEY_ID / DOCVAULT_S3_SECRET_ACCESS_KEY: Static
        credentials (optional; boto3 default chain when unset)
    DOCVAULT_S3_REQUEST_TIMEOUT_S: Connect/read timeout in seconds (default: 30)
    DOCVAULT_MAX_VERSION_ATTEMPTS: Conditional-put attempts before a version
        conflict is surfaced (default: 5)
    DOCVAULT_DATABASE_URL: SQLAlchemy URL of the tag catalog (optional)
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Final

ENV_WORKING_BUCKET: Final[str] = "DOCVAULT_WORKING_BUCKET"
ENV_STABLE_BUCKET: Final[str] = "DOCVAULT_STABLE_BUCKET"
ENV_S3_ENDPOINT_URL: Final[str] = "DOCVAULT_S3_ENDPOINT_URL"
ENV_S3_REGION: Final[str] = "DOCVAULT_S3_REGION"
ENV_S3_ACCESS_KEY_ID: Final[str] = "DOCVAULT_S3_ACCESS_KEY_ID"
ENV_S3_SECRET_ACCESS_KEY: Final[str] = "DOCVAULT_S3_SECRET_ACCESS_KEY"
ENV_S3_REQUEST_TIMEOUT_S: Final[str] = "DOCVAULT_S3_REQUEST_TIMEOUT_S"
ENV_MAX_VERSION_ATTEMPTS: Final[str] = "DOCVAULT_MAX_VERSION_ATTEMPTS"
ENV_DATABASE_URL: Final[str] = "DOCVAULT_DATABASE_URL"

DEFAULT_WORKING_BUCKET: Final[str] = "docvault-working"
DEFAULT_STABLE_BUCKET: Final[str] = "docvault-stable"
DEFAULT_S3_REGION: Final[str] = "us-east-1"
DEFAULT_S3_REQUEST_TIMEOUT_S: Final[int] = 30
DEFAULT_MAX_VERSION_ATTEMPTS: Final[int] = 5


class ConfigError(Exception):
    """Raised when docvault configuration is missing or invalid."""


@dataclass(frozen=True)
class StoreConfig:
    """Store configuration (immutable).

    Attributes:
        working_bucket: Physical bucket backing Bucket.WORKING.
        stable_bucket: Physical bucket backing Bucket.STABLE.
        s3_endpoint_url: Custom endpoint for S3-compatible stores.
        s3_region: Region name.
        s3_access_key_id: Static access key, or None for the default chain.
        s3_secret_access_key: Static secret key, or None for the default chain.
        s3_request_timeout_s: Connect/read timeout in seconds.
        max_version_attempts: Bound on conditional-put retries.
        database_url: SQLAlchemy URL of the tag catalog, or None.
    """

    working_bucket: str = DEFAULT_WORKING_BUCKET
    stable_bucket: str = DEFAULT_STABLE_BUCKET
    s3_endpoint_url: str | None = None
    s3_region: str = DEFAULT_S3_REGION
    s3_access_key_id: str | None = None
    s3_secret_access_key: str | None = None
    s3_request_timeout_s: int = DEFAULT_S3_REQUEST_TIMEOUT_S
    max_version_attempts: int = DEFAULT_MAX_VERSION_ATTEMPTS
    database_url: str | None = None

    def __post_init__(self) -> None:
        """Validate configuration values."""
        if not self.working_bucket or not self.stable_bucket:
            raise ConfigError("Bucket names must be non-empty")
        if self.working_bucket == self.stable_bucket:
            raise ConfigError(
                f"Working and stable buckets must differ, both are '{self.working_bucket}'"
            )
        if self.s3_request_timeout_s <= 0:
            raise ConfigError(
                f"{ENV_S3_REQUEST_TIMEOUT_S} must be a positive integer, "
                f"got {self.s3_request_timeout_s}"
            )
        if self.max_version_attempts <= 0:
            raise ConfigError(
                f"{ENV_MAX_VERSION_ATTEMPTS} must be a positive integer, "
                f"got {self.max_version_attempts}"
            )
        if (self.s3_access_key_id is None) != (self.s3_secret_access_key is None):
            raise ConfigError(
                f"{ENV_S3_ACCESS_KEY_ID} and {ENV_S3_SECRET_ACCESS_KEY} must be set together"
            )


def _parse_positive_int(env_var: str, default: int) -> int:
    """Parse a positive integer from an environment variable.

    Raises:
        ConfigError: If the value is set but not a positive integer.
    """
    raw = os.environ.get(env_var)
    if raw is None or not raw.strip():
        return default

    raw = raw.strip()
    try:
        value = int(raw)
    except ValueError as e:
        raise ConfigError(f"{env_var} must be a positive integer, got '{raw}'") from e

    if value <= 0:
        raise ConfigError(f"{env_var} must be a positive integer, got {value}")
    return value


def _optional_str(env_var: str) -> str | None:
    raw = os.environ.get(env_var, "").strip()
    return raw or None


def load_store_config() -> StoreConfig:
    """Load store configuration from environment variables.

    Returns:
        StoreConfig with validated values.

    Raises:
        ConfigError: If any value is invalid.
    """
    return StoreConfig(
        working_bucket=os.environ.get(ENV_WORKING_BUCKET, DEFAULT_WORKING_BUCKET).strip(),
        stable_bucket=os.environ.get(ENV_STABLE_BUCKET, DEFAULT_STABLE_BUCKET).strip(),
        s3_endpoint_url=_optional_str(ENV_S3_ENDPOINT_URL),
        s3_region=_optional_str(ENV_S3_REGION) or DEFAULT_S3_REGION,
        s3_access_key_id=_optional_str(ENV_S3_ACCESS_KEY_ID),
        s3_secret_access_key=_optional_str(ENV_S3_SECRET_ACCESS_KEY),
        s3_request_timeout_s=_parse_positive_int(
            ENV_S3_REQUEST_TIMEOUT_S, DEFAULT_S3_REQUEST_TIMEOUT_S
        ),
        max_version_attempts=_parse_positive_int(
            ENV_MAX_VERSION_ATTEMPTS, DEFAULT_MAX_VERSION_ATTEMPTS
        ),
        database_url=_optional_str(ENV_DATABASE_URL),
    )
