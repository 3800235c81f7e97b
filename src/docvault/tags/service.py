"""Tag catalog service.

Orders the two halves of tag deletion: the cascade sweep over every
object runs first, then the catalog entry is removed.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict, Field

from docvault.tags.catalog import PredefinedTag, TagCatalog

if TYPE_CHECKING:
    from docvault.tags.cascade import TagCascadeCoordinator
    from docvault.versioning.models import AuthorIdentity

logger = logging.getLogger(__name__)


class TagDeletionResult(BaseModel):
    """Outcome of deleting a catalog tag.

    ``failed_keys`` lists objects that may still carry the deleted name;
    re-running the sweep for the name is safe.
    """

    model_config = ConfigDict(frozen=True)

    tag: PredefinedTag
    objects_modified: int
    failed_keys: list[str] = Field(default_factory=list)


class TagService:
    """Catalog operations with cascade-before-delete."""

    def __init__(self, catalog: TagCatalog, cascade: TagCascadeCoordinator) -> None:
        self._catalog = catalog
        self._cascade = cascade

    def list_tags(self) -> list[PredefinedTag]:
        return self._catalog.list_tags()

    def create_tag(self, name: str, author: AuthorIdentity) -> PredefinedTag:
        """Add a tag name to the catalog.

        Raises:
            TagValidationError: If the name is empty or over 100 characters.
            DuplicateTagError: If the name already exists case-insensitively.
        """
        tag = self._catalog.create(name)
        logger.info("Tag %r (id=%d) created by %s", tag.name, tag.id, author.user_id)
        return tag

    def delete_tag(self, tag_id: int, author: AuthorIdentity) -> TagDeletionResult:
        """Strip the tag from every object, then remove it from the catalog.

        Every object is attempted before the catalog entry goes away. Objects
        that failed are reported in the result rather than blocking deletion.

        Raises:
            TagNotFoundError: If the id is unknown.
        """
        tag = self._catalog.get(tag_id)
        report = self._cascade.sweep(tag.name)
        self._catalog.delete(tag_id)

        if report.failures:
            logger.warning(
                "Tag %r deleted by %s; %d objects may still carry it",
                tag.name,
                author.user_id,
                len(report.failures),
            )
        else:
            logger.info(
                "Tag %r deleted by %s; removed from %d objects",
                tag.name,
                author.user_id,
                len(report.modified),
            )

        return TagDeletionResult(
            tag=tag,
            objects_modified=len(report.modified),
            failed_keys=sorted(report.failures),
        )
