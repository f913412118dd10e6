"""
Shared pytest fixtures for breakwater tests.

This module provides:
- structlog / settings cache reset between tests
- A fake monotonic clock whose ``sleep`` advances time instantly
- Fake driver connections for the psycopg2 factory and setup runner
"""

import os
import sys
import threading
from pathlib import Path
from unittest.mock import MagicMock

import pytest
import structlog

# Ensure breakwater package is importable
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from breakwater.core.config import clear_settings_cache


# =============================================================================
# Isolation Fixtures
# =============================================================================


@pytest.fixture(autouse=True)
def reset_structlog():
    """Undo any configure_logging() call so capture_logs() sees every event."""
    structlog.reset_defaults()
    yield
    structlog.reset_defaults()


@pytest.fixture(autouse=True)
def clean_settings(monkeypatch, tmp_path):
    """Fresh settings for every test, unaffected by the developer's env or .env."""
    for key in list(os.environ):
        if key.startswith("BREAKWATER_"):
            monkeypatch.delenv(key, raising=False)
    monkeypatch.chdir(tmp_path)
    clear_settings_cache()
    yield
    clear_settings_cache()


# =============================================================================
# Time
# =============================================================================


class FakeClock:
    """Deterministic monotonic clock. ``sleep`` advances it without blocking."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start
        self.sleeps: list[float] = []
        self._lock = threading.Lock()

    def __call__(self) -> float:
        with self._lock:
            return self.now

    def advance(self, seconds: float) -> None:
        with self._lock:
            self.now += seconds

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.advance(seconds)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


# =============================================================================
# Connections
# =============================================================================


class ScriptedFactory:
    """Connection factory that fails a fixed number of times, then succeeds."""

    def __init__(self, failures: int = 0, error: type[Exception] = ConnectionRefusedError):
        self.failures = failures
        self.error = error
        self.calls: list[tuple] = []
        self.connection = object()

    def __call__(self, ctx, target):
        self.calls.append((ctx, target))
        if len(self.calls) <= self.failures:
            raise self.error(f"connection refused (call {len(self.calls)})")
        return self.connection


@pytest.fixture
def scripted_factory():
    return ScriptedFactory


@pytest.fixture
def mock_conn() -> MagicMock:
    """A DB-API connection double whose cursor works as a context manager."""
    conn = MagicMock(name="conn")
    conn.closed = 0
    cursor = MagicMock(name="cursor")
    conn.cursor.return_value.__enter__.return_value = cursor
    conn.cursor.return_value.__exit__.return_value = False
    return conn
