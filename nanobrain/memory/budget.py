"""
Token-budgeted selection of memory content.

allocate_budget() is a greedy, score-ordered fill: it walks candidates from
highest to lowest score and takes each one whose estimated cost still fits.
An entry that does not fit is skipped and smaller entries further down can
still be taken. This is not an optimal subset-sum packing; replacing it with
one would change which entries are chosen on ties and near-ties.
"""

import math
from typing import List, Sequence

from nanobrain.memory.schemas import BudgetEntry

CHARS_PER_TOKEN = 4


def estimate_tokens(text: str, chars_per_token: int = CHARS_PER_TOKEN) -> int:
    """Rough token count: ceil(len / chars_per_token)."""
    return math.ceil(len(text) / chars_per_token)


def allocate_budget(
    entries: Sequence[BudgetEntry],
    max_tokens: int,
    chars_per_token: int = CHARS_PER_TOKEN,
) -> List[BudgetEntry]:
    """Pick the highest-scored entries that fit within max_tokens.

    Entries with empty content cost nothing and are never selected.
    """
    if max_tokens <= 0:
        return []

    selected = []
    used_tokens = 0
    for entry in sorted(entries, key=lambda e: e.score, reverse=True):
        cost = estimate_tokens(entry.content, chars_per_token)
        if cost <= 0:
            continue
        if used_tokens + cost > max_tokens:
            continue
        selected.append(entry)
        used_tokens += cost

    return selected
