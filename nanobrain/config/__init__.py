"""nanobrain configuration module."""

from nanobrain.config.loader import GLOBAL_CONFIG_PATH, load_config
from nanobrain.config.models import (
    BudgetConfig,
    CreditConfig,
    LifecycleConfig,
    NanobrainConfig,
    RetrievalConfig,
)

__all__ = [
    "load_config", "GLOBAL_CONFIG_PATH",
    "NanobrainConfig", "CreditConfig", "LifecycleConfig",
    "RetrievalConfig", "BudgetConfig",
]
