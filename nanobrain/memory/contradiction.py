"""
Negation-based contradiction check.

A deliberately simple heuristic: two statements about the same subject are
flagged when exactly one of them contains a negation word.
"""

import re
from typing import Iterable

from nanobrain.memory.schemas import ContradictionResult, MemoryEntry

NEGATION_WORDS = ("not", "never", "no", "cannot", "can't", "won't", "without")

_NEGATION_RE = re.compile(
    r"\b(?:" + "|".join(re.escape(w) for w in NEGATION_WORDS) + r")\b",
    re.IGNORECASE,
)

SUGGESTION = "Review both entries and reconcile the conflicting claim."


def has_negation(content: str) -> bool:
    return _NEGATION_RE.search(content) is not None


def detect_contradiction(
    new_content: str, existing: Iterable[MemoryEntry]
) -> ContradictionResult:
    """Report the first existing entry whose negation polarity differs."""
    new_negated = has_negation(new_content)
    for entry in existing:
        if has_negation(entry.content) != new_negated:
            return ContradictionResult(
                has_contradiction=True,
                conflicting_id=entry.id,
                suggestion=SUGGESTION,
            )
    return ContradictionResult(has_contradiction=False)
