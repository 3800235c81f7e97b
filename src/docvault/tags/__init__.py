"""docvault tag catalog and cascade sweep."""

from docvault.tags.cascade import CascadeReport, TagCascadeCoordinator
from docvault.tags.catalog import (
    DuplicateTagError,
    InMemoryTagCatalog,
    PredefinedTag,
    SqlTagCatalog,
    TagCatalog,
    TagNotFoundError,
    TagValidationError,
)
from docvault.tags.service import TagDeletionResult, TagService

__all__ = [
    "TagCatalog",
    "InMemoryTagCatalog",
    "SqlTagCatalog",
    "PredefinedTag",
    "TagCascadeCoordinator",
    "CascadeReport",
    "TagService",
    "TagDeletionResult",
    "TagValidationError",
    "DuplicateTagError",
    "TagNotFoundError",
]
