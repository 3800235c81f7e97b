"""Tag cascade sweep.

Tag values on objects are copies of catalog names; the relational store
cannot see or constrain them. Before a catalog entry is deleted, every
object in both buckets is scanned and any tag slot whose value equals the
deleted name (case-insensitively) is removed.

The sweep is best-effort and idempotent: per-object failures are logged and
skipped so one bad object never aborts the rest, and re-running it only
touches objects that still carry the tag.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from docvault.storage.errors import ObjectNotFoundError, ObjectStorageError
from docvault.versioning.buckets import SEARCH_ORDER, BucketNames
from docvault.versioning.errors import PartialBulkFailureError

if TYPE_CHECKING:
    from docvault.storage.gateway import ObjectStoreGateway

logger = logging.getLogger(__name__)


@dataclass
class CascadeReport:
    """Outcome of one sweep.

    Attributes:
        tag_name: Name that was swept.
        scanned: Number of objects examined.
        modified: Keys whose tag set was reduced.
        failures: Key -> error message for objects that could not be processed.
    """

    tag_name: str
    scanned: int = 0
    modified: list[str] = field(default_factory=list)
    failures: dict[str, str] = field(default_factory=dict)


class TagCascadeCoordinator:
    """Strips a tag value from every object across both buckets."""

    def __init__(self, gateway: ObjectStoreGateway, bucket_names: BucketNames) -> None:
        self._gateway = gateway
        self._bucket_names = bucket_names

    def sweep(self, tag_name: str) -> CascadeReport:
        """Attempt every object and report what changed and what failed."""
        report = CascadeReport(tag_name=tag_name)
        wanted = tag_name.casefold()

        for bucket in SEARCH_ORDER:
            physical = self._bucket_names.physical(bucket)
            try:
                listings = self._gateway.list(physical, recursive=True)
            except ObjectStorageError as e:
                logger.warning("Tag cascade could not list %s: %s", physical, e)
                report.failures[f"{physical}/"] = str(e)
                continue

            for listing in listings:
                report.scanned += 1
                try:
                    changed = self._strip(physical, listing.key, wanted)
                except ObjectNotFoundError:
                    logger.debug("Object %s disappeared during tag cascade", listing.key)
                    continue
                except ObjectStorageError as e:
                    logger.warning(
                        "Tag cascade failed for %s in %s: %s", listing.key, physical, e
                    )
                    report.failures[listing.key] = str(e)
                    continue
                if changed:
                    report.modified.append(listing.key)

        logger.info(
            "Tag cascade for %r: scanned=%d modified=%d failed=%d",
            tag_name,
            report.scanned,
            len(report.modified),
            len(report.failures),
        )
        return report

    def _strip(self, physical: str, key: str, wanted: str) -> bool:
        tags = self._gateway.get_tags(physical, key)
        remaining = {slot: value for slot, value in tags.items() if value.casefold() != wanted}
        if len(remaining) == len(tags):
            return False

        if remaining:
            self._gateway.set_tags(physical, key, remaining)
        else:
            self._gateway.remove_tags(physical, key)
        return True

    def remove_tag_everywhere(self, tag_name: str) -> int:
        """Remove ``tag_name`` from every object that carries it.

        Returns:
            Number of objects modified.

        Raises:
            PartialBulkFailureError: If some objects could not be processed;
                modifications already made are kept.
        """
        report = self.sweep(tag_name)
        if report.failures:
            raise PartialBulkFailureError(
                f"Tag {tag_name!r} could not be removed from every object",
                succeeded=report.modified,
                failures=report.failures,
            )
        return len(report.modified)
