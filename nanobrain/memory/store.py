"""
nanobrain Memory Store

File-backed storage for memories: one markdown file with a YAML header per
memory, laid out under the memory directory as

    entities/<category>/<name>.md
    episodes/<YYYY-MM>/<slug>.md
    archive/...            (soft-deleted memories, same relative layout)

Search is lexical only: case-insensitive substring matching over name, tags
and content.
"""

import logging
import os
import re
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, List, Optional, Union

from nanobrain.errors import (
    InvalidInputError,
    MemoryConflictError,
    MemoryNotFoundError,
    PinnedMemoryError,
)
from nanobrain.memory.frontmatter import parse_frontmatter, render_memory_file
from nanobrain.memory.schemas import (
    ArchiveResult,
    MemoryEntry,
    MemoryType,
    SearchResult,
    StoredMemory,
)

logger = logging.getLogger(__name__)

ARCHIVE_DIR = "archive"
ENTITIES_DIR = "entities"
EPISODES_DIR = "episodes"

# Root-level documents that live next to memories but are not memories
RESERVED_FILES = frozenset({"MEMORY.md", "STRATEGY.md"})

# Tiered lexical relevance; the highest matching tier wins
NAME_RELEVANCE = 1.0
TAG_RELEVANCE = 0.8
CONTENT_RELEVANCE = 0.5

MAX_SEARCH_LIMIT = 100

_SLUG_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]*$")


class MemoryStore:
    """Durable CRUD and lexical search over markdown memory files."""

    def __init__(self, memory_dir: Union[str, Path]):
        self.memory_dir = Path(memory_dir)
        self.memory_dir.mkdir(parents=True, exist_ok=True)

    # =====================================================================
    # Create
    # =====================================================================

    def store_entity(
        self,
        category: str,
        name: str,
        content: str,
        tags: Iterable[str] = (),
        pinned: bool = False,
    ) -> StoredMemory:
        """Create a long-lived entity memory.

        Raises MemoryConflictError if the entity already exists.
        """
        _require_slug(category, "category")
        _require_slug(name, "name")

        memory_id = f"entity-{category}-{name}"
        relative_path = Path(ENTITIES_DIR) / category / f"{name}.md"
        self._write_new(relative_path, memory_id, MemoryType.ENTITY, category,
                        tags, pinned, content, _utcnow())
        return StoredMemory(id=memory_id, path=str(relative_path))

    def store_episode(
        self,
        slug: str,
        content: str,
        tags: Iterable[str] = (),
        pinned: bool = False,
        as_of: Optional[datetime] = None,
    ) -> StoredMemory:
        """Create an episodic memory filed under its year-month.

        ``as_of`` sets both the month bucket and the created timestamp.
        """
        _require_slug(slug, "slug")

        moment = _as_utc(as_of) if as_of else _utcnow()
        month = moment.strftime("%Y-%m")
        memory_id = f"episode-{month}-{slug}"
        relative_path = Path(EPISODES_DIR) / month / f"{slug}.md"
        self._write_new(relative_path, memory_id, MemoryType.EPISODE, month,
                        tags, pinned, content, moment)
        return StoredMemory(id=memory_id, path=str(relative_path))

    # =====================================================================
    # Read / update
    # =====================================================================

    def retrieve(self, memory_id: str) -> MemoryEntry:
        """Load a live memory by id. Raises MemoryNotFoundError."""
        relative_path = self._find_path(memory_id)
        if relative_path is None:
            raise MemoryNotFoundError(memory_id)
        return self._load(relative_path)

    def exists(self, memory_id: str) -> bool:
        return self._find_path(memory_id) is not None

    def update(self, memory_id: str, content: str) -> MemoryEntry:
        """Replace a memory's body, keeping metadata and refreshing ``updated``."""
        relative_path = self._find_path(memory_id)
        if relative_path is None:
            raise MemoryNotFoundError(memory_id)

        absolute_path = self.memory_dir / relative_path
        metadata, _ = parse_frontmatter(absolute_path.read_text(encoding="utf-8"))
        metadata["updated"] = _utcnow().isoformat()
        _atomic_write(absolute_path, render_memory_file(metadata, content))
        logger.debug("Updated memory %s", memory_id)
        return self._load(relative_path)

    def list(self, memory_type: Optional[Union[MemoryType, str]] = None) -> List[MemoryEntry]:
        """All live memories, optionally of one type, in path order."""
        wanted = MemoryType(memory_type) if memory_type else None
        entries = []
        for relative_path in self._memory_files():
            try:
                entry = self._load(relative_path)
            except InvalidInputError as e:
                logger.warning("Skipping unreadable memory file %s: %s", relative_path, e)
                continue
            if wanted is not None and entry.type != wanted:
                continue
            entries.append(entry)
        return entries

    def search(
        self,
        query: str,
        memory_type: Optional[Union[MemoryType, str]] = None,
        limit: int = 20,
    ) -> List[SearchResult]:
        """Lexical search ranked by tiered relevance.

        Name match scores 1.0, tag match 0.8, content match 0.5; the highest
        tier matched wins. Non-matching memories are excluded.
        """
        normalized = query.strip().lower()
        if not normalized:
            return []

        results = []
        for entry in self.list(memory_type):
            relevance = 0.0
            if normalized in entry.name.lower():
                relevance = max(relevance, NAME_RELEVANCE)
            if any(normalized in tag.lower() for tag in entry.tags):
                relevance = max(relevance, TAG_RELEVANCE)
            if normalized in entry.content.lower():
                relevance = max(relevance, CONTENT_RELEVANCE)
            if relevance > 0:
                results.append(SearchResult(entry=entry, relevance_score=relevance))

        results.sort(key=lambda r: r.relevance_score, reverse=True)
        return results[:max(1, min(MAX_SEARCH_LIMIT, limit))]

    # =====================================================================
    # Archive
    # =====================================================================

    def delete(self, memory_id: str) -> ArchiveResult:
        """Soft-delete a memory by moving it under ``archive/``.

        Raises MemoryNotFoundError, or PinnedMemoryError for pinned memories.
        """
        relative_path = self._find_path(memory_id)
        if relative_path is None:
            raise MemoryNotFoundError(memory_id)

        entry = self._load(relative_path)
        if entry.pinned:
            raise PinnedMemoryError(memory_id)

        archive_path = Path(ARCHIVE_DIR) / relative_path
        absolute_archive = self.memory_dir / archive_path
        absolute_archive.parent.mkdir(parents=True, exist_ok=True)
        os.replace(self.memory_dir / relative_path, absolute_archive)

        logger.info("Archived memory %s -> %s", memory_id, archive_path)
        return ArchiveResult(id=memory_id, archive_path=str(archive_path))

    # =====================================================================
    # Internals
    # =====================================================================

    def _write_new(
        self,
        relative_path: Path,
        memory_id: str,
        memory_type: MemoryType,
        category: str,
        tags: Iterable[str],
        pinned: bool,
        content: str,
        moment: datetime,
    ) -> None:
        absolute_path = self.memory_dir / relative_path
        if absolute_path.exists():
            raise MemoryConflictError(memory_id, str(relative_path))

        timestamp = moment.isoformat()
        metadata = {
            "id": memory_id,
            "type": memory_type.value,
            "category": category,
            "tags": _unique(tags),
            "created": timestamp,
            "updated": timestamp,
            "pinned": bool(pinned),
        }
        absolute_path.parent.mkdir(parents=True, exist_ok=True)
        _atomic_write(absolute_path, render_memory_file(metadata, content))
        logger.debug("Stored %s at %s", memory_id, relative_path)

    def _find_path(self, memory_id: str) -> Optional[Path]:
        for relative_path in self._memory_files():
            try:
                metadata, _ = parse_frontmatter(
                    (self.memory_dir / relative_path).read_text(encoding="utf-8")
                )
            except InvalidInputError:
                continue
            if metadata["id"] == memory_id:
                return relative_path
        return None

    def _load(self, relative_path: Path) -> MemoryEntry:
        raw = (self.memory_dir / relative_path).read_text(encoding="utf-8")
        metadata, body = parse_frontmatter(raw)
        return MemoryEntry(
            id=metadata["id"],
            type=MemoryType(metadata["type"]),
            category=metadata["category"],
            name=relative_path.stem,
            path=str(relative_path),
            content=body,
            tags=metadata["tags"],
            created=metadata["created"],
            updated=metadata["updated"],
            pinned=metadata["pinned"],
        )

    def _memory_files(self) -> List[Path]:
        """Relative paths of live memory files, sorted for a stable order."""
        collected = []
        for absolute_path in self.memory_dir.rglob("*.md"):
            if not absolute_path.is_file():
                continue
            relative_path = absolute_path.relative_to(self.memory_dir)
            if relative_path.parts[0] == ARCHIVE_DIR:
                continue
            if len(relative_path.parts) == 1 and relative_path.name in RESERVED_FILES:
                continue
            collected.append(relative_path)
        return sorted(collected)


# =========================================================================
# Helpers
# =========================================================================


def _require_slug(value: str, field_name: str) -> None:
    if not value or not _SLUG_RE.match(value):
        raise InvalidInputError(
            f"Invalid {field_name} {value!r}: use letters, digits, '.', '_' or '-'"
        )


def _unique(tags: Iterable[str]) -> List[str]:
    seen = []
    for tag in tags:
        tag = str(tag).strip()
        if tag and tag not in seen:
            seen.append(tag)
    return seen


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(moment: datetime) -> datetime:
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


def _atomic_write(path: Path, text: str) -> None:
    tmp_path = path.with_name(f".{path.name}.tmp")
    tmp_path.write_text(text, encoding="utf-8")
    os.replace(tmp_path, path)


def parse_timestamp(value: str) -> datetime:
    """Parse an ISO-8601 timestamp into an aware UTC datetime."""
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    return _as_utc(datetime.fromisoformat(value))
