"""
Tests for nanobrain.memory.budget - greedy token budget allocation.
"""

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

pytestmark = pytest.mark.memory

from nanobrain.memory.budget import allocate_budget, estimate_tokens
from nanobrain.memory.schemas import BudgetEntry


def _entry(memory_id, score, chars):
    return BudgetEntry(id=memory_id, score=score, content="x" * chars)


class TestEstimateTokens:
    @pytest.mark.parametrize("chars,tokens", [(0, 0), (1, 1), (4, 1), (5, 2), (200, 50)])
    def test_ceil_division(self, chars, tokens):
        assert estimate_tokens("x" * chars) == tokens

    def test_custom_ratio(self):
        assert estimate_tokens("x" * 10, chars_per_token=3) == 4


class TestAllocateBudget:
    def test_skips_entry_that_does_not_fit(self):
        entries = [_entry("a", 0.9, 200), _entry("b", 0.7, 120), _entry("c", 0.8, 160)]
        selected = allocate_budget(entries, 80)
        assert [e.id for e in selected] == ["a", "b"]

    @pytest.mark.parametrize("max_tokens", [0, -10])
    def test_non_positive_budget(self, max_tokens):
        assert allocate_budget([_entry("a", 1.0, 4)], max_tokens) == []

    def test_empty_content_never_selected(self):
        selected = allocate_budget([_entry("empty", 1.0, 0), _entry("a", 0.5, 4)], 10)
        assert [e.id for e in selected] == ["a"]

    def test_stable_on_ties(self):
        entries = [_entry("first", 0.5, 4), _entry("second", 0.5, 4), _entry("third", 0.5, 4)]
        assert [e.id for e in allocate_budget(entries, 2)] == ["first", "second"]

    def test_exact_fit(self):
        assert [e.id for e in allocate_budget([_entry("a", 0.5, 40)], 10)] == ["a"]


budget_entries = st.lists(
    st.builds(
        BudgetEntry,
        id=st.text(alphabet="abcdef", min_size=1, max_size=6),
        score=st.floats(min_value=0.0, max_value=1.0),
        content=st.text(max_size=120),
    ),
    max_size=20,
)


class TestBudgetProperties:
    @given(entries=budget_entries, max_tokens=st.integers(min_value=-5, max_value=200))
    @settings(max_examples=200)
    def test_never_exceeds_budget(self, entries, max_tokens):
        selected = allocate_budget(entries, max_tokens)
        assert sum(estimate_tokens(e.content) for e in selected) <= max(0, max_tokens)
        assert all(e.content for e in selected)

    @given(entries=budget_entries, max_tokens=st.integers(min_value=1, max_value=200))
    @settings(max_examples=200)
    def test_selection_in_score_order(self, entries, max_tokens):
        scores = [e.score for e in allocate_budget(entries, max_tokens)]
        assert scores == sorted(scores, reverse=True)
