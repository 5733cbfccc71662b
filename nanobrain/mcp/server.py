#!/usr/bin/env python3
"""
nanobrain MCP Tool Server

A Model Context Protocol server that gives an agent its long-lived memory.
Searches made through the server are recorded as pending turns for the
server's session, so a later memory_outcome call credits exactly the
memories that session was shown.

Usage:
    nanobrain mcp serve [--session-id ID]
"""

import json
import logging
import os
import uuid
from typing import Any, Dict, Optional

from pydantic import ValidationError

try:
    from mcp.server import Server
    from mcp.server.stdio import stdio_server
    from mcp.types import (
        TextContent,
        Tool,
    )
    MCP_AVAILABLE = True
except ImportError:
    MCP_AVAILABLE = False

from nanobrain.errors import NanobrainError
from nanobrain.mcp.schemas import (
    MemoryCompactRequest,
    MemoryGenerateRequest,
    MemoryIdRequest,
    MemoryOutcomeRequest,
    MemorySearchRequest,
    MemoryStoreRequest,
    MemoryUpdateRequest,
)
from nanobrain.memory.context import MemoryContext
from nanobrain.memory.contradiction import detect_contradiction
from nanobrain.memory.schemas import MemoryEntry, MemoryType

logger = logging.getLogger(__name__)

# Version for MCP server identification
MCP_SERVER_VERSION = "0.3.1"

SESSION_ENV = "SESSION_ID"

TOOL_DESCRIPTIONS = {
    "memory_store": (
        "Store a new memory. Entities (type=entity) need a category and name "
        "and hold long-lived facts; episodes (type=episode) need a slug and "
        "record what happened in a session."
    ),
    "memory_retrieve": "Read one memory by id.",
    "memory_update": "Replace the body of an existing memory.",
    "memory_search": (
        "Search memories. Results are ranked by keyword relevance blended with "
        "how useful each memory has proven in past sessions."
    ),
    "memory_delete": "Archive a memory. Pinned memories cannot be archived.",
    "memory_outcome": (
        "Report how the session went (task_completed, positive_feedback, "
        "tool_success, user_correction, session_abandoned). Credits the "
        "memories returned by the most recent search."
    ),
    "memory_compact": "Consolidate same-day episodes, promote facts and prune low-credit memories.",
    "memory_generate": "Regenerate the MEMORY.md summary under a token budget.",
}


def _check_mcp_available():
    """Raise RuntimeError if MCP SDK is not installed."""
    if not MCP_AVAILABLE:
        raise RuntimeError(
            "MCP SDK not installed. Install with: pip install 'nanobrain[mcp]' "
            "or pip install mcp"
        )


def _entry_to_dict(entry: MemoryEntry) -> Dict[str, Any]:
    return {
        "id": entry.id,
        "type": entry.type.value,
        "category": entry.category,
        "name": entry.name,
        "path": entry.path,
        "content": entry.content,
        "tags": entry.tags,
        "created": entry.created,
        "updated": entry.updated,
        "pinned": entry.pinned,
    }


class NanobrainMCPServer:
    """
    nanobrain memory tools over MCP.

    Tool handlers are plain methods taking the raw argument dict and
    returning a JSON string; dispatch() validates arguments against the
    request model and turns failures into {"error": ...} results.
    """

    def __init__(self, memory: MemoryContext, session_id: Optional[str] = None):
        self.memory = memory
        self.session_id = session_id or os.environ.get(SESSION_ENV) or f"mcp-{uuid.uuid4().hex[:12]}"
        self.server = None
        self._request_count = 0

        self.tools: Dict[str, tuple] = {
            "memory_store": (MemoryStoreRequest, self._handle_store),
            "memory_retrieve": (MemoryIdRequest, self._handle_retrieve),
            "memory_update": (MemoryUpdateRequest, self._handle_update),
            "memory_search": (MemorySearchRequest, self._handle_search),
            "memory_delete": (MemoryIdRequest, self._handle_delete),
            "memory_outcome": (MemoryOutcomeRequest, self._handle_outcome),
            "memory_compact": (MemoryCompactRequest, self._handle_compact),
            "memory_generate": (MemoryGenerateRequest, self._handle_generate),
        }

    # =====================================================================
    # Protocol wiring
    # =====================================================================

    def _setup_handlers(self):
        """Register MCP protocol handlers."""
        _check_mcp_available()
        self.server = Server("nanobrain-memory")

        @self.server.list_tools()
        async def list_tools() -> list[Tool]:
            """Return the list of tools this server provides."""
            return [
                Tool(
                    name=name,
                    description=TOOL_DESCRIPTIONS[name],
                    inputSchema=model.model_json_schema(),
                )
                for name, (model, _) in self.tools.items()
            ]

        @self.server.call_tool()
        async def call_tool(name: str, arguments: dict) -> list[TextContent]:
            """Handle a tool call."""
            return [TextContent(type="text", text=self.dispatch(name, arguments))]

    async def run_stdio(self):
        """
        Run the server on stdio transport.

        This is the main entry point for 'nanobrain mcp serve'.
        """
        _check_mcp_available()
        if self.server is None:
            self._setup_handlers()

        logger.info("Starting nanobrain MCP server (session %s)...", self.session_id)
        logger.info(f"Version: {MCP_SERVER_VERSION}")

        async with stdio_server() as (read_stream, write_stream):
            await self.server.run(
                read_stream,
                write_stream,
                self.server.create_initialization_options(),
            )

    def dispatch(self, name: str, arguments: Optional[Dict[str, Any]]) -> str:
        """Validate and run one tool call, always returning a JSON string."""
        self._request_count += 1

        entry = self.tools.get(name)
        if entry is None:
            return json.dumps({
                "error": f"Unknown tool: {name}",
                "available_tools": list(self.tools.keys()),
            })

        model, handler = entry
        try:
            request = model.model_validate(arguments or {})
            return handler(request)
        except ValidationError as e:
            return json.dumps({"error": f"Invalid arguments: {e}", "tool": name})
        except NanobrainError as e:
            logger.warning(f"Tool {name} failed: {e}")
            return json.dumps({"error": str(e), "tool": name})

    # =====================================================================
    # Tool handlers
    # =====================================================================

    def _handle_store(self, request: MemoryStoreRequest) -> str:
        store = self.memory.store
        if request.type == MemoryType.ENTITY:
            stored = store.store_entity(
                request.category, request.name, request.content, request.tags, request.pinned
            )
        else:
            stored = store.store_episode(
                request.slug, request.content, request.tags, request.pinned
            )
        self.memory.tracker.ensure_record(stored.id)

        result: Dict[str, Any] = {"id": stored.id, "path": stored.path, "created": True}
        if request.type == MemoryType.ENTITY:
            result["contradiction"] = self._check_contradiction(
                stored.id, request.category, request.content
            )
        return json.dumps(result)

    def _check_contradiction(
        self, memory_id: str, category: str, content: str
    ) -> Optional[Dict[str, Any]]:
        siblings = [
            e for e in self.memory.store.list(MemoryType.ENTITY)
            if e.category == category and e.id != memory_id
        ]
        check = detect_contradiction(content, siblings)
        if not check.has_contradiction:
            return None

        self.memory.ledger.record_contradiction(
            memory_id, check.conflicting_id, check.suggestion
        )
        logger.info("Possible contradiction between %s and %s",
                    memory_id, check.conflicting_id)
        return {"conflicting_id": check.conflicting_id, "suggestion": check.suggestion}

    def _handle_retrieve(self, request: MemoryIdRequest) -> str:
        entry = self.memory.store.retrieve(request.id)
        result = _entry_to_dict(entry)
        result["score"] = self.memory.tracker.get_score(entry.id)
        return json.dumps(result)

    def _handle_update(self, request: MemoryUpdateRequest) -> str:
        entry = self.memory.store.update(request.id, request.content)
        return json.dumps({"id": entry.id, "updated": entry.updated})

    def _handle_search(self, request: MemorySearchRequest) -> str:
        results = self.memory.ranker.search_and_record(
            self.session_id, request.query, request.limit, request.type
        )
        return json.dumps({
            "session_id": self.session_id,
            "results": [
                {
                    "id": r.id,
                    "type": r.entry.type.value,
                    "content": r.entry.content,
                    "relevance": r.relevance_score,
                    "credit": r.credit_score,
                    "score": r.combined_score,
                }
                for r in results
            ],
        })

    def _handle_delete(self, request: MemoryIdRequest) -> str:
        archived = self.memory.store.delete(request.id)
        return json.dumps({
            "id": archived.id,
            "archived": archived.archived,
            "archive_path": archived.archive_path,
        })

    def _handle_outcome(self, request: MemoryOutcomeRequest) -> str:
        session_id = request.session_id or self.session_id
        credited = self.memory.tracker.apply_outcome(session_id, request.signal)
        return json.dumps({
            "session_id": session_id,
            "signal": request.signal.value,
            "credited": credited,
        })

    def _handle_compact(self, request: MemoryCompactRequest) -> str:
        report = self.memory.lifecycle.compact()
        return json.dumps({
            "consolidated": report.consolidated,
            "promoted": report.promoted,
            "pruned": report.pruned,
            "details": report.details,
        })

    def _handle_generate(self, request: MemoryGenerateRequest) -> str:
        path = self.memory.generate_summary(request.max_tokens)
        return json.dumps({"path": str(path)})


def create_server(memory: MemoryContext, session_id: Optional[str] = None) -> "NanobrainMCPServer":
    """Create a NanobrainMCPServer instance for programmatic use."""
    return NanobrainMCPServer(memory, session_id=session_id)
