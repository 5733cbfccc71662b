"""
Tests for nanobrain.memory.generator - the MEMORY.md summary document.
"""

from datetime import datetime, timezone

import pytest

pytestmark = pytest.mark.memory

from nanobrain.memory.generator import (
    EMPTY_MESSAGE,
    SUMMARY_FILENAME,
    generate_memory_md,
    read_strategy,
    render_memory_md,
)


class TestRender:
    def test_empty(self, store, tracker):
        assert render_memory_md(store, tracker, 5000) == f"# MEMORY\n\n{EMPTY_MESSAGE}\n"

    def test_sections_in_fixed_order(self, store, tracker):
        store.store_episode("standup", "Talked about auth", as_of=datetime(2026, 2, 1, tzinfo=timezone.utc))
        store.store_entity("preferences", "editor", "Uses vim")
        store.store_entity("projects", "nanobrain", "Memory engine")
        store.store_entity("people", "alice", "Likes tea")
        # highest score first would be the episode; sections still follow the fixed order
        tracker.set_score("episode-2026-02-standup", 0.9)
        tracker.set_score("entity-preferences-editor", 0.6)
        tracker.set_score("entity-projects-nanobrain", 0.7)
        tracker.set_score("entity-people-alice", 0.8)

        text = render_memory_md(store, tracker, 5000)

        headings = [line for line in text.splitlines() if line.startswith("## ")]
        assert headings == ["## People", "## Projects", "## Preferences", "## Recent Episodes"]
        assert "### alice\n<!-- score: 0.800 -->\nLikes tea\n" in text
        assert "### standup\n<!-- score: 0.900 -->\nTalked about auth\n" in text

    def test_budget_limits_entries(self, store, tracker):
        store.store_entity("people", "alice", "a" * 40)
        store.store_entity("people", "bob", "b" * 40)
        tracker.set_score("entity-people-alice", 0.9)
        tracker.set_score("entity-people-bob", 0.4)

        text = render_memory_md(store, tracker, 10)

        assert "### alice" in text
        assert "### bob" not in text

    def test_zero_budget_is_empty(self, store, tracker):
        store.store_entity("people", "alice", "x")
        tracker.ensure_record("entity-people-alice")
        assert EMPTY_MESSAGE in render_memory_md(store, tracker, 0)

    def test_archived_records_skipped(self, store, tracker):
        store.store_entity("projects", "old", "gone")
        tracker.set_score("entity-projects-old", 0.9)
        store.delete("entity-projects-old")
        assert EMPTY_MESSAGE in render_memory_md(store, tracker, 5000)

    def test_unsectioned_entities_left_out(self, store, tracker):
        store.store_entity("notes", "misc", "scratch")
        tracker.ensure_record("entity-notes-misc")
        text = render_memory_md(store, tracker, 5000)
        assert "misc" not in text
        assert EMPTY_MESSAGE not in text


class TestGenerate:
    def test_writes_file(self, memory_dir, store, tracker):
        store.store_entity("people", "alice", "Likes tea")
        tracker.ensure_record("entity-people-alice")

        path = generate_memory_md(memory_dir, store, tracker)

        assert path == memory_dir / SUMMARY_FILENAME
        text = path.read_text()
        assert text.startswith("# MEMORY\n\n## People\n")
        assert text.endswith("\n")

    def test_summary_is_not_a_memory(self, memory_dir, store, tracker):
        generate_memory_md(memory_dir, store, tracker)
        assert store.list() == []


class TestReadStrategy:
    def test_reads_file(self, tmp_path):
        path = tmp_path / "STRATEGY.md"
        path.write_text("Prefer short answers.\n")
        assert read_strategy(path) == "Prefer short answers.\n"

    def test_missing_file(self, tmp_path):
        assert read_strategy(tmp_path / "nope.md") == ""
