"""
MEMORY.md summary generation.

Renders the highest-credit memories that fit a token budget into a single
markdown document, grouped into fixed sections by id prefix. Each entry
carries its credit score as an HTML comment so the agent can see how much
the memory is trusted.
"""

import logging
from pathlib import Path
from typing import Dict, List, Union

from nanobrain.errors import MemoryNotFoundError
from nanobrain.memory.budget import CHARS_PER_TOKEN, allocate_budget
from nanobrain.memory.credit import CreditTracker
from nanobrain.memory.schemas import BudgetEntry, MemoryEntry, MemoryType
from nanobrain.memory.store import MemoryStore

logger = logging.getLogger(__name__)

SUMMARY_FILENAME = "MEMORY.md"
TOP_CANDIDATES = 500
EMPTY_MESSAGE = "No memories yet. I'll learn about you as we interact."

# Section title -> id prefix; episodes are collected separately
ENTITY_SECTIONS = (
    ("People", "entity-people-"),
    ("Projects", "entity-projects-"),
    ("Preferences", "entity-preferences-"),
)
EPISODE_SECTION = "Recent Episodes"


def render_memory_md(
    store: MemoryStore,
    tracker: CreditTracker,
    max_tokens: int,
    chars_per_token: int = CHARS_PER_TOKEN,
    top_candidates: int = TOP_CANDIDATES,
) -> str:
    """Build the MEMORY.md text without writing it."""
    scored: List[tuple] = []
    for record in tracker.get_top_scored(top_candidates):
        try:
            entry = store.retrieve(record.id)
        except MemoryNotFoundError:
            # Ledger rows outlive archived memories
            continue
        scored.append((entry, record.score))

    budgeted = allocate_budget(
        [BudgetEntry(id=e.id, score=s, content=e.content) for e, s in scored],
        max_tokens,
        chars_per_token,
    )
    included = {b.id for b in budgeted}
    selected = [(e, s) for e, s in scored if e.id in included]

    sections: Dict[str, List[tuple]] = {title: [] for title, _ in ENTITY_SECTIONS}
    sections[EPISODE_SECTION] = []
    for entry, score in selected:
        if entry.type == MemoryType.EPISODE:
            sections[EPISODE_SECTION].append((entry, score))
            continue
        for title, prefix in ENTITY_SECTIONS:
            if entry.id.startswith(prefix):
                sections[title].append((entry, score))
                break

    lines = ["# MEMORY", ""]
    if not selected:
        lines.extend([EMPTY_MESSAGE, ""])
    else:
        for title, section_entries in sections.items():
            if not section_entries:
                continue
            lines.extend([f"## {title}", ""])
            for entry, score in section_entries:
                lines.extend(_render_entry(entry, score))

    return "\n".join(lines)


def generate_memory_md(
    memory_dir: Union[str, Path],
    store: MemoryStore,
    tracker: CreditTracker,
    max_tokens: int = 5000,
    chars_per_token: int = CHARS_PER_TOKEN,
    top_candidates: int = TOP_CANDIDATES,
) -> Path:
    """Render MEMORY.md and write it into the memory directory."""
    output = render_memory_md(store, tracker, max_tokens, chars_per_token, top_candidates)
    out_path = Path(memory_dir) / SUMMARY_FILENAME
    out_path.write_text(f"{output}\n", encoding="utf-8")
    logger.info("Wrote %s", out_path)
    return out_path


def read_strategy(strategy_path: Union[str, Path]) -> str:
    """Text of a strategy document, or "" if it cannot be read."""
    try:
        return Path(strategy_path).resolve().read_text(encoding="utf-8")
    except OSError:
        return ""


def _render_entry(entry: MemoryEntry, score: float) -> List[str]:
    return [
        f"### {entry.name}",
        f"<!-- score: {score:.3f} -->",
        entry.content.strip(),
        "",
    ]
