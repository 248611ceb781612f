# ============================================================================
# SHARED TEST FIXTURES
# ============================================================================
# EPOCH: 1 - JOB TREES
# STATUS: Tests - Fake connections and cursors
# PURPOSE: Drive repositories and services without a live database
# CREATED: 18 OCT 2026
# ============================================================================
"""
Shared fixtures.

FakeCursor records every execute() call and replays queued fetch results.
FakeConnection hands out that cursor and counts commits and rollbacks of
conn.transaction() blocks, calling optional hooks on each.
"""

from contextlib import asynccontextmanager
from typing import Any, Callable, List, Optional
from unittest.mock import MagicMock

import pytest

from core.config import reset_defaults


class FakeCursor:
    """Async cursor stand-in with scripted results."""

    def __init__(self):
        self.adapters = MagicMock()
        self.executed: List[tuple] = []
        self.fetch_results: List[List[dict]] = []
        self.rowcounts: List[int] = []
        self.rowcount = -1

    async def execute(self, query, params=None):
        self.executed.append((query, params))
        if self.rowcounts:
            self.rowcount = self.rowcounts.pop(0)

    async def fetchall(self):
        return self.fetch_results.pop(0)

    async def fetchone(self):
        rows = self.fetch_results.pop(0)
        return rows[0] if rows else None

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return False

    def query_text(self, index: int = -1) -> str:
        """Render a recorded statement without a connection."""
        query = self.executed[index][0]
        return query if isinstance(query, str) else query.as_string()


class FakeConnection:
    """Async connection stand-in with transaction bookkeeping."""

    def __init__(
        self,
        cursor: Optional[FakeCursor] = None,
        on_commit: Optional[Callable[[], Any]] = None,
        on_rollback: Optional[Callable[[], Any]] = None,
    ):
        self._cursor = cursor or FakeCursor()
        self.cursor_kwargs: List[dict] = []
        self.commits = 0
        self.rollbacks = 0
        self.on_commit = on_commit
        self.on_rollback = on_rollback

    def cursor(self, **kwargs):
        self.cursor_kwargs.append(kwargs)
        return self._cursor

    @asynccontextmanager
    async def transaction(self):
        try:
            yield
        except BaseException:
            self.rollbacks += 1
            if self.on_rollback:
                self.on_rollback()
            raise
        else:
            self.commits += 1
            if self.on_commit:
                self.on_commit()


@pytest.fixture
def fake_cursor():
    return FakeCursor()


@pytest.fixture
def fake_conn(fake_cursor):
    return FakeConnection(fake_cursor)


@pytest.fixture(autouse=True)
def clean_defaults(monkeypatch):
    """Each test reads configuration from a clean environment."""
    for var in (
        "JOBTREE_HELPERS_SCHEMA",
        "JOBTREE_QUEUE_SCHEMA",
        "JOBTREE_POOL_MIN_SIZE",
        "JOBTREE_POOL_MAX_SIZE",
        "JOBTREE_USE_LOCAL_TIME",
    ):
        monkeypatch.delenv(var, raising=False)
    reset_defaults()
    yield
    reset_defaults()


@pytest.fixture
def make_conn():
    """FakeConnection factory, for tests that need commit/rollback hooks."""
    return FakeConnection
