"""
nanobrain - Long-lived memory for autonomous agents.

nanobrain provides:
- A file-backed markdown memory store (entities and episodes)
- A credit ledger that learns which memories actually helped
- Lifecycle passes that consolidate, promote and prune memories
- Credit-weighted retrieval and a token-budgeted MEMORY.md summary
"""

__version__ = "0.3.1"
