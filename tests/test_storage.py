"""Tests for durable history storage.

Covers schema initialization, transition and snapshot persistence,
query ordering, and file-backed reopening.
"""

from __future__ import annotations

from datetime import datetime, timezone

import pytest
from sqlalchemy import inspect, select

from statecraft.lifecycle import LifecycleEvent, LifecycleState, create_audit_entry
from statecraft.storage import HistoryStore, SqlHistoryStore, create_history_engine, init_db
from statecraft.storage.engine import SCHEMA_VERSION, create_session_factory
from statecraft.storage.schema import MetaRow
from statecraft.validation.rollback import StateSnapshot
from tests.support import Todo, TodoList

S = LifecycleState
E = LifecycleEvent


def _entry(from_state, to_state, event, payload=None, dispatch_id="dsp_1"):
    return create_audit_entry(from_state, to_state, event, payload, dispatch_id)


class TestSchema:

    def test_tables_created(self, history_store):
        tables = set(inspect(history_store.engine).get_table_names())
        assert {"audit_entries", "snapshots", "_statecraft_meta"} <= tables

    def test_init_db_idempotent(self):
        engine = create_history_engine(":memory:")
        init_db(engine)
        init_db(engine)
        with create_session_factory(engine)() as session:
            rows = session.execute(select(MetaRow)).scalars().all()
        assert [(row.key, row.value) for row in rows] == [("schema_version", SCHEMA_VERSION)]
        engine.dispose()

    def test_satisfies_protocol(self, history_store):
        assert isinstance(history_store, HistoryStore)


class TestTransitions:

    def test_round_trip(self, history_store):
        entry = _entry(S.IDLE, S.OPTIMISTIC, E.DISPATCH, {"intent": "add milk"})
        history_store.record_transition("todos", entry)

        (loaded,) = history_store.list_transitions("todos")
        assert loaded == entry
        assert loaded.from_state is S.IDLE
        assert loaded.event is E.DISPATCH
        assert loaded.timestamp.tzinfo is not None

    def test_order_and_limit(self, history_store):
        entries = [
            _entry(S.IDLE, S.GENERATING, E.DISPATCH_NO_OPTIMISTIC),
            _entry(S.GENERATING, S.VALIDATING, E.RESPONSE_RECEIVED),
            _entry(S.VALIDATING, S.GATING, E.VALID),
        ]
        for entry in entries:
            history_store.record_transition("todos", entry)

        assert [e.id for e in history_store.list_transitions("todos")] == [e.id for e in entries]
        assert [e.id for e in history_store.list_transitions("todos", limit=2)] == [
            entries[1].id,
            entries[2].id,
        ]

    def test_filter_by_state_id(self, history_store):
        history_store.record_transition("a", _entry(S.IDLE, S.GENERATING, E.DISPATCH_NO_OPTIMISTIC))
        history_store.record_transition("b", _entry(S.IDLE, S.GENERATING, E.DISPATCH_NO_OPTIMISTIC))
        history_store.record_transition("b", _entry(S.GENERATING, S.REJECTED, E.ERROR))

        assert len(history_store.list_transitions("a")) == 1
        assert len(history_store.list_transitions("b")) == 2
        assert len(history_store.list_transitions()) == 3
        assert history_store.state_ids() == ["a", "b"]

    def test_unserializable_payload_stored_as_repr(self, history_store):
        marker = object()
        history_store.record_transition(
            "todos", _entry(S.IDLE, S.OPTIMISTIC, E.DISPATCH, {"obj": marker}),
        )
        (loaded,) = history_store.list_transitions("todos")
        assert loaded.payload == {"obj": repr(marker)}

    def test_empty(self, history_store):
        assert history_store.list_transitions() == []
        assert history_store.state_ids() == []


class TestSnapshots:

    def test_model_stored_as_json(self, history_store):
        state = TodoList(items=[Todo(id="1", text="milk", done=False)])
        snapshot = StateSnapshot(
            id="snap_1",
            data=state,
            label="before: add milk",
            timestamp=datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc),
        )
        history_store.record_snapshot("todos", snapshot)

        (loaded,) = history_store.list_snapshots("todos")
        assert loaded.id == "snap_1"
        assert loaded.label == "before: add milk"
        assert loaded.data == {"items": [{"id": "1", "text": "milk", "done": False}]}
        assert loaded.timestamp == snapshot.timestamp
        assert TodoList.model_validate(loaded.data) == state

    def test_order(self, history_store):
        for index in range(3):
            history_store.record_snapshot("todos", StateSnapshot(f"snap_{index}", index, "x"))
        history_store.record_snapshot("other", StateSnapshot("snap_other", 0, "x"))
        assert [s.id for s in history_store.list_snapshots("todos")] == [
            "snap_0", "snap_1", "snap_2",
        ]


class TestFileBacked:

    def test_reopen_keeps_history(self, tmp_path):
        db_path = str(tmp_path / "history.db")
        store = SqlHistoryStore.open(db_path)
        entry = _entry(S.IDLE, S.GENERATING, E.DISPATCH_NO_OPTIMISTIC)
        store.record_transition("todos", entry)
        store.close()

        reopened = SqlHistoryStore.open(db_path)
        try:
            assert [e.id for e in reopened.list_transitions("todos")] == [entry.id]
        finally:
            reopened.close()

    def test_duplicate_entry_id_rejected(self, history_store):
        from sqlalchemy.exc import IntegrityError

        entry = _entry(S.IDLE, S.GENERATING, E.DISPATCH_NO_OPTIMISTIC)
        history_store.record_transition("todos", entry)
        with pytest.raises(IntegrityError):
            history_store.record_transition("todos", entry)
