"""
Tests for nanobrain.memory.store - markdown memory CRUD, search and archive.
"""

from datetime import datetime, timezone

import pytest

pytestmark = pytest.mark.memory

from nanobrain.errors import (
    InvalidInputError,
    MemoryConflictError,
    MemoryNotFoundError,
    PinnedMemoryError,
)
from nanobrain.memory.frontmatter import parse_frontmatter
from nanobrain.memory.schemas import MemoryType
from nanobrain.memory.store import MemoryStore, parse_timestamp


class TestStoreEntity:
    def test_id_and_path(self, store, memory_dir):
        stored = store.store_entity("people", "alice", "# Alice\nLikes tea", ["team"])
        assert stored.id == "entity-people-alice"
        assert stored.path == "entities/people/alice.md"
        assert (memory_dir / "entities" / "people" / "alice.md").is_file()

    def test_file_has_frontmatter(self, store, memory_dir):
        store.store_entity("people", "alice", "Likes tea", ["team", "team", "ml"], pinned=True)
        text = (memory_dir / "entities" / "people" / "alice.md").read_text()
        metadata, body = parse_frontmatter(text)
        assert metadata["id"] == "entity-people-alice"
        assert metadata["type"] == "entity"
        assert metadata["category"] == "people"
        assert metadata["tags"] == ["team", "ml"]
        assert metadata["pinned"] is True
        assert metadata["created"] == metadata["updated"]
        assert body == "Likes tea"

    def test_conflict(self, store):
        store.store_entity("people", "alice", "one")
        with pytest.raises(MemoryConflictError):
            store.store_entity("people", "alice", "two")

    @pytest.mark.parametrize("category,name", [
        ("people", "../escape"),
        ("", "alice"),
        ("people", "has space"),
        ("-leading", "alice"),
    ])
    def test_rejects_unsafe_names(self, store, category, name):
        with pytest.raises(InvalidInputError):
            store.store_entity(category, name, "content")


class TestStoreEpisode:
    def test_id_uses_month(self, store):
        stored = store.store_episode(
            "debug-auth", "Fixed login", as_of=datetime(2026, 2, 20, 9, 30, tzinfo=timezone.utc)
        )
        assert stored.id == "episode-2026-02-debug-auth"
        assert stored.path == "episodes/2026-02/debug-auth.md"

    def test_as_of_sets_timestamps(self, store):
        moment = datetime(2026, 2, 20, 9, 30, tzinfo=timezone.utc)
        store.store_episode("debug-auth", "Fixed login", as_of=moment)
        entry = store.retrieve("episode-2026-02-debug-auth")
        assert entry.type == MemoryType.EPISODE
        assert entry.category == "2026-02"
        assert parse_timestamp(entry.created) == moment
        assert entry.created == entry.updated

    def test_naive_as_of_treated_as_utc(self, store):
        store.store_episode("naive", "x", as_of=datetime(2026, 3, 1, 12, 0))
        entry = store.retrieve("episode-2026-03-naive")
        assert parse_timestamp(entry.created) == datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


class TestRetrieveUpdate:
    def test_retrieve(self, store):
        store.store_entity("projects", "nanobrain", "Memory engine", ["python"])
        entry = store.retrieve("entity-projects-nanobrain")
        assert entry.name == "nanobrain"
        assert entry.content == "Memory engine"
        assert entry.tags == ["python"]
        assert entry.pinned is False

    def test_retrieve_missing(self, store):
        with pytest.raises(MemoryNotFoundError, match="entity-people-nobody"):
            store.retrieve("entity-people-nobody")

    def test_exists(self, store):
        store.store_entity("people", "alice", "x")
        assert store.exists("entity-people-alice")
        assert not store.exists("entity-people-bob")

    def test_update_keeps_metadata(self, store):
        store.store_entity("people", "alice", "old", ["team"], pinned=True)
        before = store.retrieve("entity-people-alice")
        after = store.update("entity-people-alice", "new body")
        assert after.content == "new body"
        assert after.tags == ["team"]
        assert after.pinned is True
        assert after.created == before.created
        assert parse_timestamp(after.updated) >= parse_timestamp(before.updated)

    def test_update_missing(self, store):
        with pytest.raises(MemoryNotFoundError):
            store.update("entity-people-ghost", "x")


class TestList:
    def test_filters_by_type(self, store):
        store.store_entity("people", "alice", "a")
        store.store_episode("ep", "b", as_of=datetime(2026, 1, 5, tzinfo=timezone.utc))
        assert [e.id for e in store.list(MemoryType.ENTITY)] == ["entity-people-alice"]
        assert [e.id for e in store.list("episode")] == ["episode-2026-01-ep"]
        assert len(store.list()) == 2

    def test_sorted_by_path(self, store):
        store.store_entity("projects", "zeta", "z")
        store.store_entity("people", "bob", "b")
        store.store_entity("people", "alice", "a")
        assert [e.id for e in store.list()] == [
            "entity-people-alice", "entity-people-bob", "entity-projects-zeta",
        ]

    def test_skips_reserved_and_invalid_files(self, store, memory_dir):
        store.store_entity("people", "alice", "a")
        (memory_dir / "MEMORY.md").write_text("# MEMORY\n")
        (memory_dir / "STRATEGY.md").write_text("be nice\n")
        broken = memory_dir / "entities" / "people" / "broken.md"
        broken.write_text("no frontmatter here\n")
        assert [e.id for e in store.list()] == ["entity-people-alice"]


class TestSearch:
    @pytest.fixture
    def seeded(self, store):
        store.store_entity("people", "alice", "Works on the auth service", ["ml"])
        store.store_entity("projects", "auth", "Login flows", ["security"])
        store.store_entity("projects", "billing", "Invoices", ["auth-adjacent"])
        store.store_entity("people", "bob", "Unrelated")
        return store

    def test_relevance_tiers(self, seeded):
        results = {r.id: r.relevance_score for r in seeded.search("auth")}
        assert results == {
            "entity-projects-auth": 1.0,
            "entity-projects-billing": 0.8,
            "entity-people-alice": 0.5,
        }

    def test_sorted_descending(self, seeded):
        scores = [r.relevance_score for r in seeded.search("auth")]
        assert scores == sorted(scores, reverse=True)

    def test_case_insensitive(self, seeded):
        assert [r.id for r in seeded.search("ALICE")] == ["entity-people-alice"]

    def test_blank_query(self, seeded):
        assert seeded.search("   ") == []

    def test_limit_clamped(self, seeded):
        assert len(seeded.search("auth", limit=0)) == 1
        assert len(seeded.search("auth", limit=1000)) == 3

    def test_type_filter(self, seeded):
        seeded.store_episode("auth-debug", "x", as_of=datetime(2026, 1, 1, tzinfo=timezone.utc))
        ids = [r.id for r in seeded.search("auth", memory_type=MemoryType.EPISODE)]
        assert ids == ["episode-2026-01-auth-debug"]


class TestDelete:
    def test_moves_to_archive(self, store, memory_dir):
        store.store_entity("people", "alice", "a")
        result = store.delete("entity-people-alice")
        assert result.archived is True
        assert result.archive_path == "archive/entities/people/alice.md"
        assert (memory_dir / "archive" / "entities" / "people" / "alice.md").is_file()
        assert not (memory_dir / "entities" / "people" / "alice.md").exists()

    def test_archived_not_visible(self, store):
        store.store_entity("people", "alice", "a")
        store.delete("entity-people-alice")
        assert store.list() == []
        with pytest.raises(MemoryNotFoundError):
            store.retrieve("entity-people-alice")
        with pytest.raises(MemoryNotFoundError):
            store.delete("entity-people-alice")

    def test_pinned_refused(self, store):
        store.store_entity("people", "alice", "a", pinned=True)
        with pytest.raises(PinnedMemoryError):
            store.delete("entity-people-alice")
        assert store.exists("entity-people-alice")


class TestPersistence:
    def test_reopen_sees_memories(self, memory_dir):
        MemoryStore(memory_dir).store_entity("people", "alice", "a")
        assert MemoryStore(memory_dir).exists("entity-people-alice")

    def test_parse_timestamp_z_suffix(self):
        assert parse_timestamp("2026-02-20T10:00:00Z") == datetime(
            2026, 2, 20, 10, 0, tzinfo=timezone.utc
        )
