"""
nanobrain Memory Economy

Persistent memory whose retention and ranking are driven by how useful each
memory turned out to be.

Features:
- Markdown memory store with lexical search and archive-on-delete
- Credit ledger: EMA trust scores updated by session outcome signals
- Lifecycle passes: consolidate same-day episodes, promote bullet facts,
  prune low-credit memories
- Credit-weighted retrieval and a token-budgeted MEMORY.md summary

Invariants:
- A credit record is created at most once per memory id
- An outcome resolves only the session's most recent pending turn
- An episode is promoted at most once
- entity-people-* memories are never pruned
"""

from nanobrain.memory.context import MemoryContext, open_memory
from nanobrain.memory.credit import CreditTracker
from nanobrain.memory.ledger import CreditLedger
from nanobrain.memory.lifecycle import LifecycleEngine
from nanobrain.memory.retrieval import RetrievalRanker
from nanobrain.memory.store import MemoryStore

__all__ = [
    "MemoryStore", "CreditLedger", "CreditTracker", "LifecycleEngine",
    "RetrievalRanker", "MemoryContext", "open_memory",
]
