"""docvault object store gateway.

Narrow capability boundary over an S3-compatible object store.

Backends:
- S3ObjectStoreGateway: AWS S3 / MinIO via boto3 (production)
- InMemoryObjectStoreGateway: process-local fake (dev/test)
"""

from docvault.storage.errors import (
    ObjectNotFoundError,
    ObjectStorageError,
    PreconditionFailedError,
    StorageBackendError,
)
from docvault.storage.gateway import ObjectStoreGateway
from docvault.storage.memory_gateway import InMemoryObjectStoreGateway
from docvault.storage.models import ObjectListing, ObjectStat, StoredObject
from docvault.storage.s3_gateway import S3ObjectStoreGateway

__all__ = [
    "ObjectStoreGateway",
    "InMemoryObjectStoreGateway",
    "S3ObjectStoreGateway",
    "ObjectListing",
    "ObjectStat",
    "StoredObject",
    "ObjectStorageError",
    "ObjectNotFoundError",
    "PreconditionFailedError",
    "StorageBackendError",
]
