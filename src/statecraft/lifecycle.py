"""Dispatch lifecycle state machine and audit log.

The transition table is the single source of truth for which events a
state accepts. Any (state, event) pair not in the table is a no-op:
LifecycleMachine.send() logs it at WARNING and leaves the state as is.
"""

from __future__ import annotations

import enum
import logging
import uuid
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

logger = logging.getLogger(__name__)


class LifecycleState(str, enum.Enum):
    """Where a dispatch currently is."""

    IDLE = "IDLE"
    OPTIMISTIC = "OPTIMISTIC"
    GENERATING = "GENERATING"
    VALIDATING = "VALIDATING"
    CORRECTING = "CORRECTING"
    GATING = "GATING"
    SETTLED = "SETTLED"
    REJECTED = "REJECTED"

    def __str__(self) -> str:
        return self.value


class LifecycleEvent(str, enum.Enum):
    """Inputs that drive LifecycleState transitions."""

    DISPATCH = "DISPATCH"
    DISPATCH_NO_OPTIMISTIC = "DISPATCH_NO_OPTIMISTIC"
    START_INFERENCE = "START_INFERENCE"
    RESPONSE_RECEIVED = "RESPONSE_RECEIVED"
    ERROR = "ERROR"
    VALID = "VALID"
    INVALID = "INVALID"
    RETRY = "RETRY"
    MAX_RETRIES = "MAX_RETRIES"
    CONFIDENT = "CONFIDENT"
    NEEDS_CONFIRMATION = "NEEDS_CONFIRMATION"
    USER_CONFIRMED = "USER_CONFIRMED"
    USER_REJECTED = "USER_REJECTED"
    RESET = "RESET"

    def __str__(self) -> str:
        return self.value


S = LifecycleState
E = LifecycleEvent

TRANSITIONS: dict[LifecycleState, dict[LifecycleEvent, LifecycleState]] = {
    S.IDLE: {E.DISPATCH: S.OPTIMISTIC, E.DISPATCH_NO_OPTIMISTIC: S.GENERATING},
    S.OPTIMISTIC: {E.START_INFERENCE: S.GENERATING},
    S.GENERATING: {E.RESPONSE_RECEIVED: S.VALIDATING, E.ERROR: S.REJECTED},
    S.VALIDATING: {E.VALID: S.GATING, E.INVALID: S.CORRECTING},
    S.CORRECTING: {E.RETRY: S.GENERATING, E.MAX_RETRIES: S.REJECTED},
    S.GATING: {
        E.CONFIDENT: S.SETTLED,
        E.NEEDS_CONFIRMATION: S.GATING,
        E.USER_CONFIRMED: S.SETTLED,
        E.USER_REJECTED: S.REJECTED,
    },
    S.SETTLED: {E.RESET: S.IDLE},
    S.REJECTED: {E.RESET: S.IDLE},
}

TERMINAL_STATES = frozenset({S.SETTLED, S.REJECTED})

del S, E


def _coerce_event(event: LifecycleEvent | str) -> LifecycleEvent | None:
    if isinstance(event, LifecycleEvent):
        return event
    try:
        return LifecycleEvent(event)
    except ValueError:
        return None


def get_next_state(
    state: LifecycleState | str,
    event: LifecycleEvent | str,
) -> LifecycleState | None:
    """Look up the transition for ``(state, event)``; None when undefined."""
    try:
        current = LifecycleState(state)
    except ValueError:
        return None
    coerced = _coerce_event(event)
    if coerced is None:
        return None
    return TRANSITIONS.get(current, {}).get(coerced)


@dataclass(frozen=True)
class AuditEntry:
    """One accepted transition."""

    id: str
    timestamp: datetime
    from_state: LifecycleState
    to_state: LifecycleState
    event: LifecycleEvent
    payload: Any = None
    dispatch_id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "timestamp": self.timestamp.isoformat(),
            "from_state": self.from_state.value,
            "to_state": self.to_state.value,
            "event": self.event.value,
            "payload": self.payload,
            "dispatch_id": self.dispatch_id,
        }


def create_audit_entry(
    from_state: LifecycleState,
    to_state: LifecycleState,
    event: LifecycleEvent,
    payload: Any = None,
    dispatch_id: str | None = None,
) -> AuditEntry:
    return AuditEntry(
        id=f"txn_{uuid.uuid4().hex[:16]}",
        timestamp=datetime.now(timezone.utc),
        from_state=from_state,
        to_state=to_state,
        event=event,
        payload=payload,
        dispatch_id=dispatch_id,
    )


AuditListener = Callable[[AuditEntry], None]


@dataclass
class LifecycleMachine:
    """Current lifecycle state plus the append-only log that got it there.

    Attributes:
        state: Current state (IDLE initially).
        dispatch_id: Stamped onto every audit entry this machine creates.
        listener: Called with each accepted entry, after it is appended.
    """

    state: LifecycleState = LifecycleState.IDLE
    dispatch_id: str | None = None
    listener: AuditListener | None = None
    _history: list[AuditEntry] = field(default_factory=list, repr=False)

    @property
    def history(self) -> list[AuditEntry]:
        return list(self._history)

    def can_send(self, event: LifecycleEvent | str) -> bool:
        return get_next_state(self.state, event) is not None

    def send(self, event: LifecycleEvent | str, payload: Any = None) -> bool:
        """Apply ``event``; returns False (state unchanged) if undefined."""
        next_state = get_next_state(self.state, event)
        if next_state is None:
            logger.warning("Invalid transition: %s + %s", self.state, event)
            return False

        entry = create_audit_entry(
            self.state,
            next_state,
            LifecycleEvent(event),
            payload=payload,
            dispatch_id=self.dispatch_id,
        )
        logger.debug("Transition: %s -> %s (%s)", entry.from_state, entry.to_state, entry.event)
        self.state = next_state
        self._history.append(entry)
        if self.listener is not None:
            self.listener(entry)
        return True
