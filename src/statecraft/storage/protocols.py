"""Persistence hook consumed by SemanticState."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from statecraft.lifecycle import AuditEntry
    from statecraft.validation.rollback import StateSnapshot


@runtime_checkable
class HistoryStore(Protocol):
    """Durable sink for audit entries and snapshots.

    Called synchronously from the controller as each entry or snapshot
    is created. ``state_id`` separates the histories of different
    controllers sharing one store.
    """

    def record_transition(self, state_id: str, entry: AuditEntry) -> None:
        ...

    def record_snapshot(self, state_id: str, snapshot: StateSnapshot) -> None:
        ...
