"""
End-to-end tests: a memory directory used across sessions.
"""

from datetime import datetime, timezone

import pytest

pytestmark = pytest.mark.memory

from nanobrain.config.models import NanobrainConfig
from nanobrain.memory.context import open_memory
from nanobrain.memory.schemas import MemoryType


class TestSessionLoop:
    def test_rewarded_memory_rises_and_survives(self, memory):
        memory.store.store_entity("projects", "deploy", "How we deploy: blue/green")
        memory.store.store_entity("projects", "legacy-deploy", "Old deploy script, deprecated")

        # Three sessions find both; the user keeps correcting the legacy note
        for session in ("s1", "s2", "s3"):
            memory.ranker.search_and_record(session, "deploy")
            memory.tracker.apply_outcome(session, "task_completed")
        memory.tracker.set_score("entity-projects-legacy-deploy", 0.1)

        results = memory.ranker.credit_weighted_search("deploy")
        assert results[0].id == "entity-projects-deploy"

        report = memory.lifecycle.compact()
        assert report.pruned == 1
        assert memory.store.exists("entity-projects-deploy")
        assert not memory.store.exists("entity-projects-legacy-deploy")

    def test_episode_to_summary(self, memory, memory_dir):
        day = datetime(2026, 2, 20, 10, tzinfo=timezone.utc)
        memory.store.store_entity("people", "alice", "Prefers short answers")
        memory.store.store_episode("release", "- ships on thursdays", ["release"], as_of=day)
        memory.store.store_episode("retro", "- tag releases in git", ["release"], as_of=day)
        memory.tracker.set_score("episode-2026-02-release", 0.4)
        memory.tracker.set_score("episode-2026-02-retro", 0.4)
        memory.tracker.set_score("entity-people-alice", 0.9)

        report = memory.lifecycle.compact()
        assert (report.consolidated, report.promoted) == (1, 1)

        path = memory.generate_summary()
        text = path.read_text()
        assert text.index("## People") < text.index("## Projects") < text.index("## Recent Episodes")
        assert "### promoted-merged-2026-02-20-release" in text
        assert "Prefers short answers" in text

    def test_state_persists_across_reopen(self, memory_dir):
        config = NanobrainConfig(memory_dir=str(memory_dir))
        first = open_memory(memory_dir, config=config)
        first.store.store_entity("people", "alice", "x")
        first.ranker.search_and_record("s1", "alice")
        first.close()

        second = open_memory(memory_dir, config=config)
        try:
            assert second.tracker.apply_outcome("s1", "positive_feedback") == 1
            assert second.tracker.get_score("entity-people-alice") == pytest.approx(0.48)
            assert [e.id for e in second.store.list(MemoryType.ENTITY)] == ["entity-people-alice"]
        finally:
            second.close()

    def test_memory_dir_config_applies(self, memory_dir):
        (memory_dir / "config.yaml").write_text("credit:\n  alpha: 0.5\n")
        memory = open_memory(memory_dir)
        try:
            memory.store.store_entity("people", "alice", "x")
            memory.ranker.search_and_record("s1", "alice")
            memory.tracker.apply_outcome("s1", "user_correction")
            assert memory.tracker.get_score("entity-people-alice") == pytest.approx(0.05)
        finally:
            memory.close()
