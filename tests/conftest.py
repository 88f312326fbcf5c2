"""Shared test fixtures for Statecraft.

Provides an empty todo-list state and an in-memory history store.
Contracts and scripted inference helpers live in tests/support.py.
"""

from __future__ import annotations

import pytest

from statecraft.storage import SqlHistoryStore, create_history_engine
from tests.support import TodoList


@pytest.fixture
def empty_todos() -> TodoList:
    return TodoList(items=[])


@pytest.fixture
def history_store():
    """SqlHistoryStore on an in-memory SQLite engine."""
    store = SqlHistoryStore(create_history_engine(":memory:"))
    yield store
    store.close()
