"""
Credit-weighted retrieval.

Lexical search finds candidates; the credit ledger decides their order:

    combined = relevance_weight * relevance + credit_weight * credit

with default weights 0.4 / 0.6, so a memory that sessions have repeatedly
rewarded outranks one that merely matches the keyword.
"""

import logging
from typing import List, Optional, Union

from nanobrain.config.models import RetrievalConfig
from nanobrain.memory.credit import CreditTracker
from nanobrain.memory.schemas import MemoryType, WeightedResult
from nanobrain.memory.store import MemoryStore

logger = logging.getLogger(__name__)


class RetrievalRanker:
    """Blends MemoryStore relevance with CreditTracker scores."""

    def __init__(
        self,
        store: MemoryStore,
        tracker: CreditTracker,
        config: Optional[RetrievalConfig] = None,
    ):
        self.store = store
        self.tracker = tracker
        self.config = config or RetrievalConfig()

    def credit_weighted_search(
        self,
        query: str,
        limit: int = 5,
        memory_type: Optional[Union[MemoryType, str]] = None,
    ) -> List[WeightedResult]:
        """Search, re-rank by combined score and return at most ``limit`` hits.

        Candidates are oversampled (max(limit * 4, 10)) so credit can lift a
        lower-relevance memory into the final list. ``limit`` is clamped to
        [1, max_results].
        """
        cfg = self.config
        candidate_count = max(limit * cfg.oversample_factor, cfg.min_candidates)
        candidates = self.store.search(query, memory_type, candidate_count)

        weighted = []
        for candidate in candidates:
            credit_score = self.tracker.get_score(candidate.id)
            combined = (
                cfg.relevance_weight * candidate.relevance_score
                + cfg.credit_weight * credit_score
            )
            weighted.append(WeightedResult(
                entry=candidate.entry,
                relevance_score=candidate.relevance_score,
                credit_score=credit_score,
                combined_score=combined,
            ))

        weighted.sort(key=lambda r: r.combined_score, reverse=True)
        return weighted[:max(1, min(cfg.max_results, limit))]

    def search_and_record(
        self,
        session_id: str,
        query: str,
        limit: int = 5,
        memory_type: Optional[Union[MemoryType, str]] = None,
    ) -> List[WeightedResult]:
        """Ranked search whose results become the session's pending turn."""
        results = self.credit_weighted_search(query, limit, memory_type)
        self.tracker.record_retrieval(session_id, [r.id for r in results])
        logger.debug("Search %r for session %s returned %d result(s)",
                     query, session_id, len(results))
        return results
