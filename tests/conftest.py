"""Pytest configuration and fixtures for nanobrain tests."""

from pathlib import Path
from unittest.mock import patch

import pytest

from nanobrain.config.models import NanobrainConfig


@pytest.fixture(autouse=True)
def _isolate_config(tmp_path, monkeypatch):
    """Keep tests away from the real ~/.nanobrain config and memory directory.

    The global config path points at a file that does not exist and the
    memory directory environment override is cleared, so every test sees
    built-in defaults unless it writes its own config.
    """
    monkeypatch.delenv("NANOBRAIN_MEMORY_DIR", raising=False)
    monkeypatch.delenv("SESSION_ID", raising=False)
    isolated_global = tmp_path / "global-home" / "config.yaml"
    with patch("nanobrain.config.loader.GLOBAL_CONFIG_PATH", isolated_global):
        yield


@pytest.fixture
def memory_dir(tmp_path) -> Path:
    path = tmp_path / "memory"
    path.mkdir()
    return path


@pytest.fixture
def store(memory_dir):
    from nanobrain.memory.store import MemoryStore
    return MemoryStore(memory_dir)


@pytest.fixture
def ledger(memory_dir):
    """A CreditLedger on a temporary engine.db."""
    from nanobrain.memory.ledger import CreditLedger
    led = CreditLedger.for_memory_dir(memory_dir)
    yield led
    led.close()


@pytest.fixture
def tracker(ledger):
    from nanobrain.memory.credit import CreditTracker
    return CreditTracker(ledger)


@pytest.fixture
def memory(memory_dir):
    """A fully wired MemoryContext with default configuration."""
    from nanobrain.memory.context import open_memory
    ctx = open_memory(memory_dir, config=NanobrainConfig(memory_dir=str(memory_dir)))
    yield ctx
    ctx.close()
