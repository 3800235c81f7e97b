"""S3 object store gateway.

boto3 implementation of ObjectStoreGateway for AWS S3 and S3-compatible
services (MinIO, Ceph RGW, ...). User metadata travels as ``x-amz-meta-*``
headers; boto3 strips and re-adds the prefix, so headers here use bare
lower-case names.

Conditional put uses ``IfNoneMatch="*"``; a 412 from the store is mapped to
PreconditionFailedError.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, BinaryIO

import boto3
from botocore.config import Config as BotoConfig
from botocore.exceptions import BotoCoreError, ClientError

from docvault.storage.errors import (
    ObjectNotFoundError,
    PreconditionFailedError,
    StorageBackendError,
)
from docvault.storage.gateway import ObjectStoreGateway
from docvault.storage.models import ObjectListing, ObjectStat, StoredObject
from docvault.storage.tracing import traced_gateway_operation

if TYPE_CHECKING:
    from docvault.config import StoreConfig

logger = logging.getLogger(__name__)

_NOT_FOUND_CODES = frozenset({"NoSuchKey", "404", "NotFound"})
# A 409 ConditionalRequestConflict means another conditional write to the same
# key is in flight; it is retried like a lost precondition.
_PRECONDITION_CODES = frozenset(
    {"PreconditionFailed", "412", "ConditionalRequestConflict", "409"}
)


def _error_code(err: ClientError) -> str:
    return str(err.response.get("Error", {}).get("Code", ""))


def _clean_etag(etag: Any) -> str:
    return etag.strip('"') if isinstance(etag, str) else ""


def create_s3_client(config: StoreConfig) -> Any:
    """Build a boto3 S3 client from store configuration."""
    session = boto3.Session(
        aws_access_key_id=config.s3_access_key_id,
        aws_secret_access_key=config.s3_secret_access_key,
        region_name=config.s3_region,
    )
    return session.client(
        "s3",
        region_name=config.s3_region,
        endpoint_url=config.s3_endpoint_url,
        config=BotoConfig(
            connect_timeout=config.s3_request_timeout_s,
            read_timeout=config.s3_request_timeout_s,
            retries={"max_attempts": 5, "mode": "standard"},
            s3={"addressing_style": "path"} if config.s3_endpoint_url else None,
        ),
    )


class S3ObjectStoreGateway(ObjectStoreGateway):
    """ObjectStoreGateway backed by a boto3 S3 client."""

    def __init__(self, client: Any) -> None:
        """Initialize with a boto3 S3 client (see create_s3_client)."""
        self._s3 = client

    @classmethod
    def from_config(cls, config: StoreConfig) -> S3ObjectStoreGateway:
        """Create a gateway with a client built from configuration."""
        return cls(create_s3_client(config))

    @property
    def backend_name(self) -> str:
        """Return the backend identifier."""
        return "s3"

    def _translate(
        self,
        err: Exception,
        operation: str,
        bucket: str,
        key: str | None = None,
    ) -> Exception:
        """Map a boto3 error onto the gateway error taxonomy."""
        if isinstance(err, ClientError):
            code = _error_code(err)
            if code in _NOT_FOUND_CODES:
                return ObjectNotFoundError(bucket=bucket, key=key)
            if code in _PRECONDITION_CODES:
                return PreconditionFailedError(bucket=bucket, key=key)
            return StorageBackendError(
                message=f"{operation} failed: {code or err}",
                bucket=bucket,
                key=key,
                cause=err,
            )
        return StorageBackendError(
            message=f"{operation} failed: {err}",
            bucket=bucket,
            key=key,
            cause=err,
        )

    def ensure_bucket(self, bucket: str) -> None:
        """Create the bucket if it does not exist yet."""
        try:
            self._s3.head_bucket(Bucket=bucket)
            return
        except ClientError as e:
            if _error_code(e) not in _NOT_FOUND_CODES | {"NoSuchBucket"}:
                raise self._translate(e, "head_bucket", bucket) from e
        except BotoCoreError as e:
            raise self._translate(e, "head_bucket", bucket) from e

        kwargs: dict[str, Any] = {"Bucket": bucket}
        region = self._s3.meta.region_name
        if region and region != "us-east-1":
            kwargs["CreateBucketConfiguration"] = {"LocationConstraint": region}
        try:
            self._s3.create_bucket(**kwargs)
        except (ClientError, BotoCoreError) as e:
            raise self._translate(e, "create_bucket", bucket) from e
        logger.info("Bucket %s created", bucket)

    @traced_gateway_operation("put")
    def put(
        self,
        bucket: str,
        key: str,
        stream: BinaryIO,
        size: int,
        *,
        content_type: str = "application/octet-stream",
        headers: dict[str, str] | None = None,
        if_none_match: bool = False,
    ) -> ObjectStat:
        """Store an object."""
        kwargs: dict[str, Any] = {
            "Bucket": bucket,
            "Key": key,
            "Body": stream,
            "ContentLength": size,
            "ContentType": content_type,
            "Metadata": {k.lower(): v for k, v in (headers or {}).items()},
        }
        if if_none_match:
            kwargs["IfNoneMatch"] = "*"

        try:
            self._s3.put_object(**kwargs)
        except (ClientError, BotoCoreError) as e:
            raise self._translate(e, "put_object", bucket, key) from e

        logger.debug("Stored object: bucket=%s key=%s size=%d", bucket, key, size)
        return self.stat(bucket, key)

    @traced_gateway_operation("get")
    def get(
        self,
        bucket: str,
        key: str,
        *,
        version_id: str | None = None,
    ) -> StoredObject:
        """Retrieve an object body and its stat record."""
        kwargs: dict[str, Any] = {"Bucket": bucket, "Key": key}
        if version_id is not None:
            kwargs["VersionId"] = version_id
        try:
            resp = self._s3.get_object(**kwargs)
            body = resp["Body"].read()
        except (ClientError, BotoCoreError) as e:
            raise self._translate(e, "get_object", bucket, key) from e

        return StoredObject(stat=self._stat_from_response(bucket, key, resp), body=body)

    @traced_gateway_operation("stat")
    def stat(self, bucket: str, key: str) -> ObjectStat:
        """Get object metadata without retrieving content."""
        try:
            resp = self._s3.head_object(Bucket=bucket, Key=key)
        except (ClientError, BotoCoreError) as e:
            raise self._translate(e, "head_object", bucket, key) from e
        return self._stat_from_response(bucket, key, resp)

    def _stat_from_response(self, bucket: str, key: str, resp: dict[str, Any]) -> ObjectStat:
        return ObjectStat(
            bucket=bucket,
            key=key,
            size=int(resp.get("ContentLength", 0)),
            last_modified=resp["LastModified"],
            content_type=resp.get("ContentType") or "application/octet-stream",
            etag=_clean_etag(resp.get("ETag")),
            headers={k.lower(): v for k, v in resp.get("Metadata", {}).items()},
        )

    @traced_gateway_operation("list")
    def list(
        self,
        bucket: str,
        *,
        prefix: str | None = None,
        recursive: bool = True,
    ) -> list[ObjectListing]:
        """List objects in a bucket, following continuation tokens."""
        kwargs: dict[str, Any] = {"Bucket": bucket}
        if prefix:
            kwargs["Prefix"] = prefix
        if not recursive:
            kwargs["Delimiter"] = "/"

        result: list[ObjectListing] = []
        try:
            paginator = self._s3.get_paginator("list_objects_v2")
            for page in paginator.paginate(**kwargs):
                for item in page.get("Contents", []):
                    result.append(
                        ObjectListing(
                            key=item["Key"],
                            size=int(item.get("Size", 0)),
                            last_modified=item["LastModified"],
                            etag=_clean_etag(item.get("ETag")),
                        )
                    )
        except (ClientError, BotoCoreError) as e:
            raise self._translate(e, "list_objects_v2", bucket) from e

        return result

    @traced_gateway_operation("get_tags")
    def get_tags(self, bucket: str, key: str) -> dict[str, str]:
        """Return the tag set of an object."""
        try:
            resp = self._s3.get_object_tagging(Bucket=bucket, Key=key)
        except (ClientError, BotoCoreError) as e:
            raise self._translate(e, "get_object_tagging", bucket, key) from e
        return {tag["Key"]: tag["Value"] for tag in resp.get("TagSet", [])}

    @traced_gateway_operation("set_tags")
    def set_tags(self, bucket: str, key: str, tags: dict[str, str]) -> None:
        """Replace the tag set of an object."""
        tag_set = [{"Key": k, "Value": v} for k, v in tags.items()]
        try:
            self._s3.put_object_tagging(Bucket=bucket, Key=key, Tagging={"TagSet": tag_set})
        except (ClientError, BotoCoreError) as e:
            raise self._translate(e, "put_object_tagging", bucket, key) from e

    @traced_gateway_operation("remove_tags")
    def remove_tags(self, bucket: str, key: str) -> None:
        """Remove every tag from an object."""
        try:
            self._s3.delete_object_tagging(Bucket=bucket, Key=key)
        except (ClientError, BotoCoreError) as e:
            raise self._translate(e, "delete_object_tagging", bucket, key) from e

    @traced_gateway_operation("delete")
    def delete(
        self,
        bucket: str,
        key: str,
        *,
        version_id: str | None = None,
    ) -> None:
        """Delete an object."""
        kwargs: dict[str, Any] = {"Bucket": bucket, "Key": key}
        if version_id is not None:
            kwargs["VersionId"] = version_id
        try:
            self._s3.delete_object(**kwargs)
        except (ClientError, BotoCoreError) as e:
            raise self._translate(e, "delete_object", bucket, key) from e
        logger.debug("Deleted object: bucket=%s key=%s", bucket, key)
