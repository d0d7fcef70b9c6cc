"""Shared pytest fixtures for the Logify test suite."""

from __future__ import annotations

import logging
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import List

import pytest

from logify.config import get_settings
from logify.domain.log_entry.models import LogEntry
from logify.domain.pipelines.types import PipelineContext, RecordingSink

FIXTURES_DIR = Path(__file__).parent / "fixtures"

FIXED_INSTANT = datetime(2024, 3, 16, 8, 30, 0, tzinfo=timezone.utc)


@pytest.fixture(autouse=True)
def isolated_settings(monkeypatch):
    """Keep LOGIFY_* variables from the host out of every test."""
    for name in list(os.environ):
        if name.startswith("LOGIFY_") or name == "LOG_LEVEL":
            monkeypatch.delenv(name, raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def sample_csv_path() -> Path:
    """Four-row sample: login/30.5, search/15.2, logout/5.0, login/25.8."""
    return FIXTURES_DIR / "sample_logs.csv"


@pytest.fixture
def fixed_clock():
    """Clock that always returns FIXED_INSTANT."""
    return lambda: FIXED_INSTANT


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def pipeline_context(fixed_clock, sink) -> PipelineContext:
    """Create a standard pipeline context for testing."""
    return PipelineContext(
        pipeline_name="test_pipeline",
        clock=fixed_clock,
        execution_id="test-001",
        sink=sink,
    )


def _make_entry(
    action: str = "login",
    duration: float = 1.0,
    user_id: str = "user1",
    minute: int = 0,
    metadata=None,
) -> LogEntry:
    return LogEntry(
        timestamp=datetime(2024, 3, 15, 10, minute, 0, tzinfo=timezone.utc),
        user_id=user_id,
        action=action,
        duration=duration,
        metadata=metadata,
    )


@pytest.fixture
def entry_factory():
    """Build LogEntry values with sensible defaults."""
    return _make_entry


@pytest.fixture
def sample_entries() -> List[LogEntry]:
    return [
        _make_entry("login", 30.5, "user1", 0),
        _make_entry("search", 15.2, "user2", 5),
        _make_entry("logout", 5.0, "user1", 10),
        _make_entry("login", 25.8, "user3", 15),
    ]


@pytest.fixture(autouse=True)
def reset_logging_handlers():
    """Detach handlers installed by configure_logging after each test."""
    yield
    root = logging.getLogger()
    for handler in list(root.handlers):
        if getattr(handler, "_logify_handler", False):
            root.removeHandler(handler)
            handler.close()
