"""
nanobrain Memory Data Schemas

Dataclasses for stored memories, ledger rows and pass results.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional


class MemoryType(str, Enum):
    """Kinds of memory the store holds."""
    ENTITY = "entity"
    EPISODE = "episode"


class OutcomeSignal(str, Enum):
    """Session outcome signals that carry a fixed reward."""
    TASK_COMPLETED = "task_completed"
    POSITIVE_FEEDBACK = "positive_feedback"
    TOOL_SUCCESS = "tool_success"
    USER_CORRECTION = "user_correction"
    SESSION_ABANDONED = "session_abandoned"


# =========================================================================
# Memory store
# =========================================================================


@dataclass
class MemoryEntry:
    """A memory loaded from its markdown file."""

    id: str
    type: MemoryType
    category: str
    name: str
    path: str  # relative to the memory directory
    content: str
    tags: List[str] = field(default_factory=list)
    created: str = ""
    updated: str = ""
    pinned: bool = False


@dataclass
class SearchResult:
    """A memory matched by lexical search."""

    entry: MemoryEntry
    relevance_score: float

    @property
    def id(self) -> str:
        return self.entry.id


@dataclass
class StoredMemory:
    """Result of creating a memory."""

    id: str
    path: str
    created: bool = True


@dataclass
class ArchiveResult:
    """Result of archiving (soft-deleting) a memory."""

    id: str
    archive_path: str
    archived: bool = True


# =========================================================================
# Credit ledger
# =========================================================================


@dataclass
class CreditRecord:
    """Trust score for a single memory id."""

    id: str
    score: float
    access_count: int
    created_at: str
    last_accessed: str
    decay_rate: float


@dataclass
class TurnRecord:
    """One retrieval batch awaiting outcome attribution."""

    id: int
    session_id: str
    retrieved_memory_ids: List[str]
    outcome: Optional[str]
    created_at: str

    @property
    def resolved(self) -> bool:
        return self.outcome is not None


@dataclass
class CreditEvent:
    """Append-only audit row written per memory per outcome."""

    id: int
    memory_id: str
    event_type: str
    reward: float
    old_score: float
    new_score: float
    session_id: Optional[str]
    created_at: str


@dataclass
class LifecycleLogEntry:
    """Append-only record of a lifecycle action."""

    id: int
    action: str  # decay/promote/consolidate/prune
    target_ids: List[str]
    details: Optional[str]
    created_at: str


@dataclass
class ScoredId:
    """A ledger id with its current score, as returned by ranking queries."""

    id: str
    score: float
    access_count: int = 0


# =========================================================================
# Pass results
# =========================================================================


@dataclass
class LifecycleReport:
    """Merged outcome of a consolidate/promote/prune run."""

    consolidated: int = 0
    promoted: int = 0
    pruned: int = 0
    details: List[str] = field(default_factory=list)

    def merge(self, other: "LifecycleReport") -> "LifecycleReport":
        return LifecycleReport(
            consolidated=self.consolidated + other.consolidated,
            promoted=self.promoted + other.promoted,
            pruned=self.pruned + other.pruned,
            details=[*self.details, *other.details],
        )


@dataclass
class WeightedResult:
    """A search hit re-ranked by blending relevance and credit."""

    entry: MemoryEntry
    relevance_score: float
    credit_score: float
    combined_score: float

    @property
    def id(self) -> str:
        return self.entry.id


@dataclass
class BudgetEntry:
    """A candidate for inclusion under a token budget."""

    id: str
    score: float
    content: str


@dataclass
class ContradictionResult:
    """Outcome of the negation-based contradiction check."""

    has_contradiction: bool
    conflicting_id: Optional[str] = None
    suggestion: Optional[str] = None
