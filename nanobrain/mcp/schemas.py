"""
Request models for the MCP tools.

Each tool's arguments are validated here before they reach the memory
layer; the JSON Schema advertised to clients is generated from the same
models.
"""

from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, Field, model_validator

from nanobrain.memory.schemas import MemoryType, OutcomeSignal


class MemoryStoreRequest(BaseModel):
    """Create an entity (category + name) or an episode (slug)."""
    type: MemoryType
    content: str = Field(min_length=1, description="Markdown body of the memory")
    category: Optional[str] = Field(default=None, description="Entity category, e.g. people")
    name: Optional[str] = Field(default=None, description="Entity name within its category")
    slug: Optional[str] = Field(default=None, description="Episode slug")
    tags: List[str] = Field(default_factory=list)
    pinned: bool = False

    model_config = {"extra": "forbid"}

    @model_validator(mode="after")
    def check_identity(self) -> "MemoryStoreRequest":
        if self.type == MemoryType.ENTITY and not (self.category and self.name):
            raise ValueError("entity memories require 'category' and 'name'")
        if self.type == MemoryType.EPISODE and not self.slug:
            raise ValueError("episode memories require 'slug'")
        return self


class MemoryIdRequest(BaseModel):
    """Address a single memory by id."""
    id: str = Field(min_length=1, description="Memory id, e.g. entity-people-alice")

    model_config = {"extra": "forbid"}


class MemoryUpdateRequest(MemoryIdRequest):
    content: str = Field(min_length=1, description="Replacement markdown body")


class MemorySearchRequest(BaseModel):
    query: str = Field(min_length=1, description="Case-insensitive search text")
    limit: int = Field(default=5, ge=1, le=20)
    type: Optional[MemoryType] = None

    model_config = {"extra": "forbid"}


class MemoryOutcomeRequest(BaseModel):
    signal: OutcomeSignal
    session_id: Optional[str] = Field(
        default=None, description="Session to credit (default: this server's session)"
    )

    model_config = {"extra": "forbid"}


class MemoryCompactRequest(BaseModel):
    model_config = {"extra": "forbid"}


class MemoryGenerateRequest(BaseModel):
    max_tokens: Optional[int] = Field(default=None, ge=0, description="Token budget for MEMORY.md")

    model_config = {"extra": "forbid"}
