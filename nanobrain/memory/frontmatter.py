"""
Frontmatter codec for memory files.

A memory file is a YAML header delimited by ``---`` lines followed by the
markdown body:

    ---
    id: entity-people-alice
    type: entity
    category: people
    tags:
    - ml-team
    created: '2026-02-20T10:00:00+00:00'
    updated: '2026-02-20T10:00:00+00:00'
    pinned: false
    ---

    # Alice
"""

from datetime import date, datetime
from typing import Any, Dict, Tuple

import yaml

from nanobrain.errors import InvalidInputError

REQUIRED_FIELDS = ("id", "type", "category", "created", "updated", "pinned")
FIELD_ORDER = ("id", "type", "category", "tags", "created", "updated", "pinned")
VALID_TYPES = frozenset({"entity", "episode"})


def parse_frontmatter(markdown: str) -> Tuple[Dict[str, Any], str]:
    """Split a memory file into (metadata, body).

    Raises InvalidInputError when the header is missing, unparsable,
    incomplete, or names an unknown memory type.
    """
    if not markdown.startswith("---\n"):
        raise InvalidInputError("Missing frontmatter block")

    lines = markdown.split("\n")
    closing = None
    for i, line in enumerate(lines[1:], start=1):
        if line.strip() == "---":
            closing = i
            break
    if closing is None:
        raise InvalidInputError("Invalid frontmatter format: no closing delimiter")

    raw_header = "\n".join(lines[1:closing])
    body = "\n".join(lines[closing + 1:]).strip()

    try:
        data = yaml.safe_load(raw_header) or {}
    except yaml.YAMLError as e:
        raise InvalidInputError(f"Invalid frontmatter YAML: {e}") from e
    if not isinstance(data, dict):
        raise InvalidInputError("Frontmatter must be a mapping")

    missing = [f for f in REQUIRED_FIELDS if data.get(f) in (None, "")]
    if missing:
        raise InvalidInputError(f"Incomplete frontmatter metadata: missing {', '.join(missing)}")

    memory_type = str(data["type"])
    if memory_type not in VALID_TYPES:
        raise InvalidInputError(f"Invalid memory type: {memory_type}")

    metadata = {
        "id": str(data["id"]),
        "type": memory_type,
        "category": str(data["category"]),
        "tags": _coerce_tags(data.get("tags")),
        "created": _coerce_timestamp(data["created"]),
        "updated": _coerce_timestamp(data["updated"]),
        "pinned": _coerce_bool(data["pinned"]),
    }
    return metadata, body


def format_frontmatter(metadata: Dict[str, Any]) -> str:
    """Render metadata as a ``---`` delimited YAML header."""
    ordered = {key: metadata[key] for key in FIELD_ORDER if key in metadata}
    ordered["tags"] = list(ordered.get("tags") or [])
    header = yaml.safe_dump(ordered, sort_keys=False, allow_unicode=True)
    return f"---\n{header}---"


def render_memory_file(metadata: Dict[str, Any], content: str) -> str:
    """Full file text: header, blank line, trimmed body, trailing newline."""
    return f"{format_frontmatter(metadata)}\n\n{content.strip()}\n"


def _coerce_tags(raw: Any) -> list:
    if raw is None:
        return []
    if isinstance(raw, str):
        # Legacy comma-separated tag strings
        return [t.strip().strip("'\"") for t in raw.split(",") if t.strip()]
    if isinstance(raw, (list, tuple)):
        return [str(t) for t in raw if t is not None and str(t).strip()]
    raise InvalidInputError(f"Invalid tags value: {raw!r}")


def _coerce_timestamp(raw: Any) -> str:
    if isinstance(raw, (datetime, date)):
        return raw.isoformat()
    return str(raw)


def _coerce_bool(raw: Any) -> bool:
    if isinstance(raw, bool):
        return raw
    return str(raw).strip().lower() == "true"
