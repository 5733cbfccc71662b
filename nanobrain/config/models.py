"""
Pydantic models for nanobrain configuration validation.

These models define the schema for config.yaml (global ~/.nanobrain/config.yaml
and per-memory-directory config.yaml). They provide:
- Type-safe configuration loading with automatic validation
- Human-readable error messages for invalid configuration
- Defaults matching the tuned constants of the memory economy
"""

from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator


# ============================================================================
# Configuration Section Models
# ============================================================================


class CreditConfig(BaseModel):
    """Credit tracker tuning."""
    alpha: float = Field(default=0.1, gt=0.0, le=1.0)
    initial_score: float = Field(default=0.5, ge=0.0, le=1.0)
    decay_rate: float = Field(default=0.01, gt=0.0)

    model_config = {"extra": "allow"}


class LifecycleConfig(BaseModel):
    """Thresholds for consolidate/promote/prune passes."""
    prune_threshold: float = Field(default=0.2, ge=0.0, le=1.0)
    promote_threshold: float = Field(default=0.7, ge=0.0, le=1.0)
    promotion_transfer: float = Field(default=0.25, ge=0.0, le=1.0)
    protected_prefixes: List[str] = Field(default_factory=lambda: ["entity-people-"])
    # Cap a promoted episode's score just below the threshold
    cap_promoted_episode: bool = False

    model_config = {"extra": "allow"}

    @field_validator("protected_prefixes")
    @classmethod
    def validate_prefixes(cls, v: List[str]) -> List[str]:
        if any(not p.strip() for p in v):
            raise ValueError("protected_prefixes must not contain empty strings")
        return v


class RetrievalConfig(BaseModel):
    """Blend of lexical relevance and credit in ranked search."""
    relevance_weight: float = Field(default=0.4, ge=0.0, le=1.0)
    credit_weight: float = Field(default=0.6, ge=0.0, le=1.0)
    max_results: int = Field(default=20, gt=0)
    oversample_factor: int = Field(default=4, gt=0)
    min_candidates: int = Field(default=10, gt=0)

    model_config = {"extra": "allow"}

    @model_validator(mode="after")
    def check_weights(self) -> "RetrievalConfig":
        total = self.relevance_weight + self.credit_weight
        if abs(total - 1.0) > 1e-9:
            raise ValueError(
                f"relevance_weight ({self.relevance_weight}) + credit_weight "
                f"({self.credit_weight}) must sum to 1.0"
            )
        return self


class BudgetConfig(BaseModel):
    """Token budget for the rendered MEMORY.md summary."""
    max_tokens: int = Field(default=5000, ge=0)
    chars_per_token: int = Field(default=4, gt=0)
    top_candidates: int = Field(default=500, gt=0, le=1000)

    model_config = {"extra": "allow"}


# ============================================================================
# Root Configuration Model
# ============================================================================


class NanobrainConfig(BaseModel):
    """
    Root Pydantic model for nanobrain configuration.

    Validates the merged configuration from builtin, global and memory
    directory layers. Uses extra="allow" at the root level to be
    forward-compatible with new config keys.
    """
    version: Optional[int] = None
    memory_dir: Optional[str] = None

    credit: CreditConfig = Field(default_factory=CreditConfig)
    lifecycle: LifecycleConfig = Field(default_factory=LifecycleConfig)
    retrieval: RetrievalConfig = Field(default_factory=RetrievalConfig)
    budget: BudgetConfig = Field(default_factory=BudgetConfig)

    model_config = {"extra": "allow"}
