"""
Wiring for a memory directory.

open_memory() builds the store, ledger, tracker, ranker and lifecycle engine
for one memory directory from the effective configuration. Components never
look each other up; this is the only place they are assembled.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

from nanobrain.config.loader import load_config
from nanobrain.config.models import NanobrainConfig
from nanobrain.memory.credit import CreditTracker
from nanobrain.memory.generator import generate_memory_md
from nanobrain.memory.ledger import CreditLedger
from nanobrain.memory.lifecycle import LifecycleEngine
from nanobrain.memory.retrieval import RetrievalRanker
from nanobrain.memory.store import MemoryStore


@dataclass
class MemoryContext:
    """Everything needed to operate on one memory directory."""

    memory_dir: Path
    config: NanobrainConfig
    store: MemoryStore
    ledger: CreditLedger
    tracker: CreditTracker
    ranker: RetrievalRanker
    lifecycle: LifecycleEngine

    def generate_summary(self, max_tokens: Optional[int] = None) -> Path:
        budget = self.config.budget
        return generate_memory_md(
            self.memory_dir,
            self.store,
            self.tracker,
            budget.max_tokens if max_tokens is None else max_tokens,
            budget.chars_per_token,
            budget.top_candidates,
        )

    def close(self) -> None:
        self.ledger.close()


def open_memory(
    memory_dir: Optional[Union[str, Path]] = None,
    config: Optional[NanobrainConfig] = None,
) -> MemoryContext:
    """Open (creating if needed) a memory directory and its ledger."""
    if config is None:
        config = load_config(memory_dir)
    resolved = Path(memory_dir or config.memory_dir).expanduser()

    store = MemoryStore(resolved)
    ledger = CreditLedger.for_memory_dir(resolved)
    tracker = CreditTracker(ledger, config.credit)
    return MemoryContext(
        memory_dir=resolved,
        config=config,
        store=store,
        ledger=ledger,
        tracker=tracker,
        ranker=RetrievalRanker(store, tracker, config.retrieval),
        lifecycle=LifecycleEngine(store, tracker, config.lifecycle),
    )
