"""SQLAlchemy ORM schema for durable dispatch history.

Tables: audit_entries, snapshots, _statecraft_meta.

LifecycleState and LifecycleEvent are imported from the lifecycle
module and stored by value; they are not redefined here.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from sqlalchemy import JSON, DateTime, Integer, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from statecraft.lifecycle import LifecycleEvent, LifecycleState


class Base(DeclarativeBase):
    """Base class for all statecraft ORM models."""

    pass


class AuditRow(Base):
    """One accepted lifecycle transition of one controller."""

    __tablename__ = "audit_entries"

    seq: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    entry_id: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    state_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    dispatch_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True, index=True)
    from_state: Mapped[LifecycleState] = mapped_column(nullable=False)
    to_state: Mapped[LifecycleState] = mapped_column(nullable=False)
    event: Mapped[LifecycleEvent] = mapped_column(nullable=False)
    payload_json: Mapped[Optional[Any]] = mapped_column(JSON, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)


class SnapshotRow(Base):
    """A rollback snapshot, stored as JSON."""

    __tablename__ = "snapshots"

    seq: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    snapshot_id: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    state_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    label: Mapped[str] = mapped_column(Text, nullable=False)
    data_json: Mapped[Optional[Any]] = mapped_column(JSON, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)


class MetaRow(Base):
    """Key-value metadata for the database itself (e.g., schema version)."""

    __tablename__ = "_statecraft_meta"

    key: Mapped[str] = mapped_column(String(255), primary_key=True)
    value: Mapped[str] = mapped_column(Text, nullable=False)
