"""Rollback manager: bounded snapshot history for state recovery.

Snapshots are deep copies taken before each dispatch, so mutating the
live state afterwards can never corrupt history (and vice versa).
History is trimmed from the oldest end once ``max_snapshots`` is
exceeded.
"""

from __future__ import annotations

import copy
import logging
import uuid
from collections.abc import Callable
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

RollbackCallback = Callable[[Any, Any, str], None]


@dataclass(frozen=True)
class StateSnapshot(Generic[T]):
    """An immutable, deep-copied state captured for rollback."""

    id: str
    data: T
    label: str
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class RollbackManager(Generic[T]):
    """Keeps the last ``max_snapshots`` states and restores them on demand.

    Args:
        max_snapshots: History depth (>= 1).
        on_rollback: Called as ``on_rollback(current, last_good, reason)``
            by auto_rollback() when a last good state exists.
    """

    def __init__(
        self,
        max_snapshots: int = 10,
        on_rollback: RollbackCallback | None = None,
    ) -> None:
        if max_snapshots < 1:
            raise ValueError(f"max_snapshots must be >= 1, got {max_snapshots}")
        self._max_snapshots = max_snapshots
        self._on_rollback = on_rollback
        self._snapshots: list[StateSnapshot[T]] = []

    @property
    def max_snapshots(self) -> int:
        return self._max_snapshots

    def __len__(self) -> int:
        return len(self._snapshots)

    @property
    def available_rollbacks(self) -> int:
        """Snapshots older than the newest one."""
        return max(0, len(self._snapshots) - 1)

    def snapshot(self, data: T, label: str) -> str:
        """Store a deep copy of ``data`` and return the new snapshot id."""
        snap = StateSnapshot(
            id=f"snap_{uuid.uuid4().hex[:16]}",
            data=copy.deepcopy(data),
            label=label,
        )
        self._snapshots.append(snap)
        while len(self._snapshots) > self._max_snapshots:
            evicted = self._snapshots.pop(0)
            logger.debug("Evicted snapshot %s", evicted.id)
        return snap.id

    def get_last_good_state(self) -> T | None:
        """Deep copy of the newest snapshot's data, or None if empty."""
        if not self._snapshots:
            return None
        return copy.deepcopy(self._snapshots[-1].data)

    def latest_snapshot(self) -> StateSnapshot[T] | None:
        if not self._snapshots:
            return None
        snap = self._snapshots[-1]
        return replace(snap, data=copy.deepcopy(snap.data))

    def rollback_to(self, snapshot_id: str) -> T | None:
        """Truncate history to end at ``snapshot_id`` and return its data.

        Returns None (history untouched) if the id is unknown.
        """
        for index, snap in enumerate(self._snapshots):
            if snap.id == snapshot_id:
                del self._snapshots[index + 1:]
                logger.info("Rolled back to snapshot %s (%s)", snap.id, snap.label)
                return copy.deepcopy(snap.data)
        logger.warning("Rollback target not found: %s", snapshot_id)
        return None

    def rollback_steps(self, steps: int) -> T | None:
        """Roll back ``steps`` snapshots from the newest.

        ``steps=0`` returns the newest snapshot. Steps beyond the history
        clamp to the oldest retained snapshot.

        Raises:
            ValueError: If steps is negative.
        """
        if steps < 0:
            raise ValueError(f"steps must be >= 0, got {steps}")
        if not self._snapshots:
            return None
        target = max(0, len(self._snapshots) - 1 - steps)
        return self.rollback_to(self._snapshots[target].id)

    def auto_rollback(self, current_state: T, reason: str) -> T | None:
        """Notify ``on_rollback`` and return the last good state."""
        last_good = self.get_last_good_state()
        if last_good is not None and self._on_rollback is not None:
            self._on_rollback(current_state, last_good, reason)
        return last_good

    def history(self) -> list[StateSnapshot[T]]:
        """All retained snapshots, oldest first, with deep-copied data."""
        return [replace(snap, data=copy.deepcopy(snap.data)) for snap in self._snapshots]

    def clear(self) -> None:
        self._snapshots.clear()
