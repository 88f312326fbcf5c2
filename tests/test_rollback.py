"""Tests for RollbackManager snapshot history."""

from __future__ import annotations

import pytest

from statecraft.validation.rollback import RollbackManager


def _filled(n: int, max_snapshots: int = 10) -> tuple[RollbackManager, list[str]]:
    manager = RollbackManager(max_snapshots=max_snapshots)
    ids = [manager.snapshot({"v": i}, f"label {i}") for i in range(n)]
    return manager, ids


class TestSnapshot:

    def test_ids_are_unique_and_prefixed(self):
        _, ids = _filled(5)
        assert len(set(ids)) == 5
        assert all(snap_id.startswith("snap_") for snap_id in ids)

    def test_deep_copy_on_snapshot(self):
        manager = RollbackManager()
        state = {"items": [{"text": "milk"}]}
        manager.snapshot(state, "before")
        state["items"][0]["text"] = "eggs"
        state["items"].append({"text": "bread"})
        assert manager.get_last_good_state() == {"items": [{"text": "milk"}]}

    def test_deep_copy_on_read(self):
        manager = RollbackManager()
        manager.snapshot({"items": [1]}, "x")
        restored = manager.get_last_good_state()
        restored["items"].append(2)
        assert manager.get_last_good_state() == {"items": [1]}
        manager.history()[0].data["items"].append(3)
        assert manager.get_last_good_state() == {"items": [1]}

    def test_eviction_keeps_most_recent(self):
        manager, ids = _filled(13, max_snapshots=10)
        assert len(manager) == 10
        assert [snap.id for snap in manager.history()] == ids[3:]

    def test_empty_manager(self):
        manager = RollbackManager()
        assert manager.get_last_good_state() is None
        assert manager.latest_snapshot() is None
        assert manager.available_rollbacks == 0
        assert manager.rollback_steps(2) is None

    def test_invalid_max_snapshots(self):
        with pytest.raises(ValueError):
            RollbackManager(max_snapshots=0)


class TestRollback:

    def test_rollback_to_truncates(self):
        manager, ids = _filled(5)
        assert manager.rollback_to(ids[2]) == {"v": 2}
        assert [snap.id for snap in manager.history()] == ids[:3]

    def test_rollback_to_unknown(self):
        manager, _ = _filled(3)
        assert manager.rollback_to("snap_missing") is None
        assert len(manager) == 3

    def test_rollback_steps(self):
        manager, ids = _filled(5)
        assert manager.rollback_steps(0) == {"v": 4}
        assert len(manager) == 5
        assert manager.rollback_steps(2) == {"v": 2}
        assert len(manager) == 3

    def test_rollback_steps_clamps_to_oldest(self):
        manager, ids = _filled(3)
        assert manager.rollback_steps(50) == {"v": 0}
        assert [snap.id for snap in manager.history()] == ids[:1]

    def test_rollback_steps_negative(self):
        manager, _ = _filled(2)
        with pytest.raises(ValueError):
            manager.rollback_steps(-1)

    def test_available_rollbacks(self):
        manager, _ = _filled(4)
        assert manager.available_rollbacks == 3

    def test_clear(self):
        manager, _ = _filled(4)
        manager.clear()
        assert len(manager) == 0
        assert manager.get_last_good_state() is None


class TestAutoRollback:

    def test_invokes_callback_with_last_good(self):
        calls = []
        manager = RollbackManager(on_rollback=lambda cur, good, reason: calls.append((cur, good, reason)))
        manager.snapshot({"v": 1}, "before")
        assert manager.auto_rollback({"v": 99}, "validation failed") == {"v": 1}
        assert calls == [({"v": 99}, {"v": 1}, "validation failed")]

    def test_no_callback_without_history(self):
        calls = []
        manager = RollbackManager(on_rollback=lambda *args: calls.append(args))
        assert manager.auto_rollback({"v": 99}, "x") is None
        assert calls == []

    def test_callback_errors_propagate(self):
        def boom(*args):
            raise RuntimeError("callback failed")

        manager = RollbackManager(on_rollback=boom)
        manager.snapshot({}, "x")
        with pytest.raises(RuntimeError):
            manager.auto_rollback({}, "reason")
