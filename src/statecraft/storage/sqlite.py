"""SQLAlchemy implementation of the HistoryStore protocol.

Uses SQLAlchemy 2.0-style queries (select() + session.execute()). Each
call runs in its own short session, so one store can be shared by many
controllers.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from pydantic_core import to_jsonable_python
from sqlalchemy import Engine, select
from sqlalchemy.orm import Session, sessionmaker

from statecraft.lifecycle import AuditEntry
from statecraft.storage.engine import create_history_engine, create_session_factory, init_db
from statecraft.storage.schema import AuditRow, SnapshotRow
from statecraft.validation.rollback import StateSnapshot

logger = logging.getLogger(__name__)


def _jsonable(value: Any) -> Any:
    return to_jsonable_python(value, fallback=repr)


def _naive_utc(value: datetime) -> datetime:
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc)
    return value.replace(tzinfo=None)


def _aware(value: datetime) -> datetime:
    return value if value.tzinfo is not None else value.replace(tzinfo=timezone.utc)


class SqlHistoryStore:
    """Persists audit entries and snapshots to a SQL database.

    Args:
        engine: Engine to use. Tables are created if missing.
    """

    def __init__(self, engine: Engine) -> None:
        init_db(engine)
        self._engine = engine
        self._session_factory: sessionmaker[Session] = create_session_factory(engine)

    @classmethod
    def open(cls, db_path: str = ":memory:", *, url: str | None = None) -> SqlHistoryStore:
        """Open (creating if needed) a store at ``db_path`` or ``url``."""
        return cls(create_history_engine(db_path, url=url))

    @property
    def engine(self) -> Engine:
        return self._engine

    def close(self) -> None:
        self._engine.dispose()

    # ------------------------------------------------------------------
    # HistoryStore protocol
    # ------------------------------------------------------------------

    def record_transition(self, state_id: str, entry: AuditEntry) -> None:
        row = AuditRow(
            entry_id=entry.id,
            state_id=state_id,
            dispatch_id=entry.dispatch_id,
            from_state=entry.from_state,
            to_state=entry.to_state,
            event=entry.event,
            payload_json=_jsonable(entry.payload),
            created_at=_naive_utc(entry.timestamp),
        )
        with self._session_factory() as session:
            session.add(row)
            session.commit()

    def record_snapshot(self, state_id: str, snapshot: StateSnapshot) -> None:
        row = SnapshotRow(
            snapshot_id=snapshot.id,
            state_id=state_id,
            label=snapshot.label,
            data_json=_jsonable(snapshot.data),
            created_at=_naive_utc(snapshot.timestamp),
        )
        with self._session_factory() as session:
            session.add(row)
            session.commit()
        logger.debug("Persisted snapshot %s for %s", snapshot.id, state_id)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def list_transitions(
        self,
        state_id: str | None = None,
        limit: int | None = None,
    ) -> list[AuditEntry]:
        """Persisted audit entries, oldest first.

        Args:
            state_id: Restrict to one controller.
            limit: Keep only the newest ``limit`` entries.
        """
        stmt = select(AuditRow)
        if state_id is not None:
            stmt = stmt.where(AuditRow.state_id == state_id)
        stmt = stmt.order_by(AuditRow.seq.desc())
        if limit is not None:
            stmt = stmt.limit(limit)
        with self._session_factory() as session:
            rows = list(session.execute(stmt).scalars())
        rows.reverse()
        return [
            AuditEntry(
                id=row.entry_id,
                timestamp=_aware(row.created_at),
                from_state=row.from_state,
                to_state=row.to_state,
                event=row.event,
                payload=row.payload_json,
                dispatch_id=row.dispatch_id,
            )
            for row in rows
        ]

    def list_snapshots(self, state_id: str) -> list[StateSnapshot]:
        """Persisted snapshots of ``state_id``, oldest first, data as plain JSON."""
        stmt = (
            select(SnapshotRow)
            .where(SnapshotRow.state_id == state_id)
            .order_by(SnapshotRow.seq)
        )
        with self._session_factory() as session:
            rows = session.execute(stmt).scalars().all()
        return [
            StateSnapshot(
                id=row.snapshot_id,
                data=row.data_json,
                label=row.label,
                timestamp=_aware(row.created_at),
            )
            for row in rows
        ]

    def state_ids(self) -> list[str]:
        """Every state id with at least one persisted transition, sorted."""
        stmt = select(AuditRow.state_id).distinct().order_by(AuditRow.state_id)
        with self._session_factory() as session:
            return list(session.execute(stmt).scalars())
