"""Predefined tag catalog.

The catalog is the list of tag names users may attach to documents. Tag
values on stored objects are denormalized copies of these names, so removing
a catalog entry must be preceded by a cascade sweep (see cascade.py).

Implementations:
- InMemoryTagCatalog: process-local (dev/test)
- SqlTagCatalog: SQLAlchemy engine, table ``predefined_tags``
"""

from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Final

from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy import create_engine, text
from sqlalchemy.exc import IntegrityError
from sqlalchemy.pool import StaticPool

from docvault.versioning.errors import DocVaultError

if TYPE_CHECKING:
    from sqlalchemy import Engine

logger = logging.getLogger(__name__)

MAX_TAG_NAME_LENGTH: Final[int] = 100


class TagValidationError(DocVaultError):
    """Raised when a tag name is empty or too long."""


class DuplicateTagError(DocVaultError):
    """Raised when a tag name already exists (case-insensitively)."""


class TagNotFoundError(DocVaultError):
    """Raised when a tag id is not in the catalog."""

    def __init__(self, tag_id: int) -> None:
        self.tag_id = tag_id
        super().__init__(f"Tag {tag_id} not found")


class PredefinedTag(BaseModel):
    """Catalog entry."""

    model_config = ConfigDict(frozen=True)

    id: int
    name: str = Field(min_length=1, max_length=MAX_TAG_NAME_LENGTH)


def normalize_tag_name(name: str) -> str:
    """Trim and validate a tag name.

    Raises:
        TagValidationError: If the trimmed name is empty or over 100 characters.
    """
    trimmed = name.strip()
    if not trimmed:
        raise TagValidationError("Tag name must be non-empty")
    if len(trimmed) > MAX_TAG_NAME_LENGTH:
        raise TagValidationError(
            f"Tag name must be at most {MAX_TAG_NAME_LENGTH} characters, got {len(trimmed)}"
        )
    return trimmed


def tag_name_key(name: str) -> str:
    """Case-insensitive comparison key for tag names."""
    return name.strip().casefold()


class TagCatalog(ABC):
    """Storage contract for predefined tags."""

    @abstractmethod
    def list_tags(self) -> list[PredefinedTag]:
        """Return every tag ordered by name."""
        ...

    @abstractmethod
    def get(self, tag_id: int) -> PredefinedTag:
        """Return one tag.

        Raises:
            TagNotFoundError: If the id is unknown.
        """
        ...

    @abstractmethod
    def create(self, name: str) -> PredefinedTag:
        """Add a tag.

        Raises:
            TagValidationError: If the name is invalid.
            DuplicateTagError: If the name exists case-insensitively.
        """
        ...

    @abstractmethod
    def delete(self, tag_id: int) -> PredefinedTag:
        """Remove a tag and return the removed entry.

        Raises:
            TagNotFoundError: If the id is unknown.
        """
        ...


class InMemoryTagCatalog(TagCatalog):
    """Thread-safe in-process catalog."""

    def __init__(self, names: list[str] | None = None) -> None:
        self._lock = threading.Lock()
        self._tags: dict[int, PredefinedTag] = {}
        self._next_id = 1
        for name in names or []:
            self.create(name)

    def list_tags(self) -> list[PredefinedTag]:
        with self._lock:
            return sorted(self._tags.values(), key=lambda t: (tag_name_key(t.name), t.id))

    def get(self, tag_id: int) -> PredefinedTag:
        with self._lock:
            tag = self._tags.get(tag_id)
        if tag is None:
            raise TagNotFoundError(tag_id)
        return tag

    def create(self, name: str) -> PredefinedTag:
        trimmed = normalize_tag_name(name)
        wanted = tag_name_key(trimmed)
        with self._lock:
            if any(tag_name_key(t.name) == wanted for t in self._tags.values()):
                raise DuplicateTagError(f"Tag {trimmed!r} already exists")
            tag = PredefinedTag(id=self._next_id, name=trimmed)
            self._tags[tag.id] = tag
            self._next_id += 1
        return tag

    def delete(self, tag_id: int) -> PredefinedTag:
        with self._lock:
            tag = self._tags.pop(tag_id, None)
        if tag is None:
            raise TagNotFoundError(tag_id)
        return tag


class SqlTagCatalog(TagCatalog):
    """SQLAlchemy-backed catalog.

    Uniqueness is enforced by a UNIQUE column holding the case-folded name.
    The table is created on first use if missing.
    """

    _CREATE_TABLE_SQL = """
        CREATE TABLE IF NOT EXISTS predefined_tags (
            id {id_type},
            name VARCHAR(100) NOT NULL,
            name_key VARCHAR(100) NOT NULL UNIQUE
        )
    """

    def __init__(self, engine: Engine) -> None:
        """Initialize the catalog.

        Args:
            engine: SQLAlchemy engine; the table is created if missing.
        """
        self._engine = engine
        self._ensure_table()

    @classmethod
    def from_url(cls, url: str) -> SqlTagCatalog:
        """Create a catalog from a database URL.

        In-memory SQLite URLs share one connection so every call sees the
        same database.
        """
        if url in ("sqlite://", "sqlite:///:memory:"):
            engine = create_engine(
                url,
                connect_args={"check_same_thread": False},
                poolclass=StaticPool,
            )
        else:
            engine = create_engine(url, pool_pre_ping=True)
        return cls(engine)

    def _ensure_table(self) -> None:
        if self._engine.dialect.name == "postgresql":
            id_type = "SERIAL PRIMARY KEY"
        else:
            id_type = "INTEGER PRIMARY KEY"
        with self._engine.begin() as conn:
            conn.execute(text(self._CREATE_TABLE_SQL.format(id_type=id_type)))

    def list_tags(self) -> list[PredefinedTag]:
        with self._engine.connect() as conn:
            rows = conn.execute(
                text("SELECT id, name FROM predefined_tags ORDER BY name_key, id")
            ).fetchall()
        return [PredefinedTag(id=row.id, name=row.name) for row in rows]

    def get(self, tag_id: int) -> PredefinedTag:
        with self._engine.connect() as conn:
            row = conn.execute(
                text("SELECT id, name FROM predefined_tags WHERE id = :id"),
                {"id": tag_id},
            ).fetchone()
        if row is None:
            raise TagNotFoundError(tag_id)
        return PredefinedTag(id=row.id, name=row.name)

    def create(self, name: str) -> PredefinedTag:
        trimmed = normalize_tag_name(name)
        try:
            with self._engine.begin() as conn:
                row = conn.execute(
                    text(
                        """
                        INSERT INTO predefined_tags (name, name_key)
                        VALUES (:name, :name_key)
                        RETURNING id
                        """
                    ),
                    {"name": trimmed, "name_key": tag_name_key(trimmed)},
                ).fetchone()
        except IntegrityError as e:
            raise DuplicateTagError(f"Tag {trimmed!r} already exists") from e

        if row is None:
            raise DocVaultError(f"Insert of tag {trimmed!r} returned no id")
        return PredefinedTag(id=row.id, name=trimmed)

    def delete(self, tag_id: int) -> PredefinedTag:
        with self._engine.begin() as conn:
            row = conn.execute(
                text("SELECT id, name FROM predefined_tags WHERE id = :id"),
                {"id": tag_id},
            ).fetchone()
            if row is None:
                raise TagNotFoundError(tag_id)
            conn.execute(text("DELETE FROM predefined_tags WHERE id = :id"), {"id": tag_id})
        return PredefinedTag(id=row.id, name=row.name)
