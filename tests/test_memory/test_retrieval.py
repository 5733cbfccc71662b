"""
Tests for nanobrain.memory.retrieval - credit-weighted ranking.
"""

import pytest

pytestmark = pytest.mark.memory

from nanobrain.config.models import RetrievalConfig
from nanobrain.memory.retrieval import RetrievalRanker


@pytest.fixture
def ranker(store, tracker):
    return RetrievalRanker(store, tracker)


class TestCreditWeightedSearch:
    def test_credit_outranks_keyword(self, store, tracker, ranker):
        # name match (1.0) with poor credit vs content match (0.5) with high credit
        store.store_entity("projects", "deploy", "Release scripts")
        store.store_entity("projects", "runbook", "How we deploy on fridays")
        tracker.set_score("entity-projects-deploy", 0.1)
        tracker.set_score("entity-projects-runbook", 0.9)

        results = ranker.credit_weighted_search("deploy")

        assert [r.id for r in results] == ["entity-projects-runbook", "entity-projects-deploy"]
        top = results[0]
        assert top.relevance_score == 0.5
        assert top.credit_score == 0.9
        assert top.combined_score == pytest.approx(0.4 * 0.5 + 0.6 * 0.9)

    def test_unscored_memories_start_at_initial_score(self, store, ranker):
        store.store_entity("people", "alice", "x")
        (result,) = ranker.credit_weighted_search("alice")
        assert result.credit_score == 0.5
        assert result.combined_score == pytest.approx(0.4 * 1.0 + 0.6 * 0.5)

    def test_limit_clamped(self, store, ranker):
        for i in range(25):
            store.store_entity("notes", f"note-{i:02d}", "shared keyword")
        assert len(ranker.credit_weighted_search("keyword", limit=0)) == 1
        assert len(ranker.credit_weighted_search("keyword", limit=3)) == 3
        assert len(ranker.credit_weighted_search("keyword", limit=50)) == 20

    def test_oversampling_lets_credit_lift_candidates(self, store, tracker, ranker):
        # equal relevance everywhere; the best-credited one sorts last by path
        for i in range(8):
            store.store_entity("notes", f"note-{i:02d}", "alpha")
        tracker.set_score("entity-notes-note-07", 1.0)
        (top,) = ranker.credit_weighted_search("alpha", limit=1)
        assert top.id == "entity-notes-note-07"

    def test_no_match(self, store, ranker):
        store.store_entity("people", "alice", "x")
        assert ranker.credit_weighted_search("zzz") == []

    def test_custom_weights(self, store, tracker):
        ranker = RetrievalRanker(store, tracker, RetrievalConfig(relevance_weight=1.0, credit_weight=0.0))
        store.store_entity("projects", "deploy", "Release scripts")
        store.store_entity("projects", "runbook", "How we deploy")
        tracker.set_score("entity-projects-runbook", 1.0)
        assert ranker.credit_weighted_search("deploy")[0].id == "entity-projects-deploy"


class TestSearchAndRecord:
    def test_records_pending_turn(self, store, tracker, ranker):
        store.store_entity("people", "alice", "likes tea")
        store.store_entity("people", "bob", "likes tea too")

        results = ranker.search_and_record("s1", "tea")

        (turn,) = tracker.get_pending_turns("s1")
        assert turn.retrieved_memory_ids == [r.id for r in results]

    def test_outcome_credits_returned_memories(self, store, tracker, ranker):
        store.store_entity("people", "alice", "likes tea")
        ranker.search_and_record("s1", "alice")
        tracker.apply_outcome("s1", "user_correction")
        assert tracker.get_score("entity-people-alice") == pytest.approx(0.41)

    def test_no_results_no_turn(self, ranker, tracker):
        assert ranker.search_and_record("s1", "nothing") == []
        assert tracker.get_pending_turns("s1") == []
