"""Durable history storage."""

from statecraft.storage.engine import create_history_engine, create_session_factory, init_db
from statecraft.storage.protocols import HistoryStore
from statecraft.storage.sqlite import SqlHistoryStore

__all__ = [
    "HistoryStore",
    "SqlHistoryStore",
    "create_history_engine",
    "create_session_factory",
    "init_db",
]
